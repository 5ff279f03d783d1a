from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(tags=["Health"])


@router.get("/health")
def liveness() -> dict:
    """Liveness check.

    Does not touch the ledger or the quota store; use ``/api/health`` for
    readiness.

    Returns:
        dict: ``{"status": "ok", "service": "tempo-tiny-faucet"}``.
    """

    return {"status": "ok", "service": "tempo-tiny-faucet"}
