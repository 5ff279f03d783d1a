import logging
from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Path

from tiny_faucet.api.dependencies import FundingDep, LedgerDep, LimiterDep, QuotaStoreDep
from tiny_faucet.core.config import ALLOWED_AMOUNTS, TEMPO_TOKENS, settings
from tiny_faucet.core.errors import LedgerUnavailableError, QuotaStoreUnavailableError, ValidationAppError
from tiny_faucet.core.rate_limit import enforce_quota
from tiny_faucet.schemas.faucet import (
    BalanceResponse,
    FundData,
    FundRequest,
    FundResponse,
    HealthResponse,
    InfoResponse,
    RateLimitInfo,
    RateLimitPolicy,
    RateLimitStatusResponse,
    TokenInfo,
)
from tiny_faucet.utils.address import is_valid_address

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Faucet"])


def _explorer_tx_url(tx_hash: str) -> str:
    return f"{settings.ledger.explorer_url.rstrip('/')}/tx/{tx_hash}"


@router.post(
    "/fund",
    response_model=FundResponse,
    responses={
        400: {"description": "Invalid address, token or amount"},
        429: {"description": "Funding quota exhausted for this address"},
        502: {"description": "Transfer rejected by the ledger"},
        503: {"description": "Ledger or quota store unavailable, or faucet empty"},
    },
)
async def fund(payload: FundRequest, limiter: LimiterDep, funding: FundingDep) -> FundResponse:
    """Send faucet tokens to an address.

    Consumes one slot of the address's quota, then transfers the requested
    amount from the service wallet, replenishing it once if it runs dry.

    Args:
        payload: Recipient address, token and amount tier.

    Returns:
        FundResponse: Transaction hash, explorer link and updated quota.
    """
    decision = await enforce_quota(limiter, payload.address)

    logger.info(
        "funding.requested",
        extra={"recipient": payload.address, "token": payload.token, "amount": payload.amount},
    )
    result = await funding.fund(payload.address, payload.token, payload.amount)

    return FundResponse(
        data=FundData(
            recipient=result.recipient,
            token=result.token,
            token_address=TEMPO_TOKENS[result.token],
            amount=result.amount,
            tx_hash=result.tx_hash,
            explorer_url=_explorer_tx_url(result.tx_hash),
        ),
        rate_limit=RateLimitInfo(remaining=decision.remaining, reset_at=decision.reset_at),
    )


@router.get("/rate-limit/{address}", response_model=RateLimitStatusResponse)
async def rate_limit_status(
    address: Annotated[str, Path(description="Account address to inspect")],
    limiter: LimiterDep,
) -> RateLimitStatusResponse:
    """Report how many funding requests an address has left."""
    if not is_valid_address(address):
        raise ValidationAppError(
            code="invalid_address",
            message="Invalid Ethereum address",
            details={"recipient": address},
        )

    snapshot = await limiter.inspect(address)
    return RateLimitStatusResponse(
        address=address,
        requests_used=snapshot.count,
        requests_remaining=snapshot.remaining,
        reset_at=snapshot.reset_at,
    )


@router.get("/balance/{token}", response_model=BalanceResponse)
async def balance(token: str, ledger: LedgerDep) -> BalanceResponse:
    """Return the service wallet balance of a supported token."""
    if token not in TEMPO_TOKENS:
        raise ValidationAppError(
            code="invalid_token",
            message=f"Invalid token. Must be one of: {', '.join(TEMPO_TOKENS)}",
            details={"token": token},
        )

    amount = await ledger.get_balance(token)
    return BalanceResponse(token=token, balance=str(amount), address=TEMPO_TOKENS[token])


@router.get("/info", response_model=InfoResponse)
def info(ledger: LedgerDep) -> InfoResponse:
    """Describe supported tokens, amount tiers and the quota policy."""
    return InfoResponse(
        supported_tokens=[TokenInfo(name=name, address=addr) for name, addr in TEMPO_TOKENS.items()],
        allowed_amounts=list(ALLOWED_AMOUNTS),
        wallet_address=ledger.wallet_address,
        rate_limit=RateLimitPolicy(
            max_requests=settings.rate_limit.max_requests,
            window_ms=settings.rate_limit.window_ms,
        ),
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"description": "Ledger RPC or quota store unreachable"}},
)
async def readiness(ledger: LedgerDep, store: QuotaStoreDep) -> HealthResponse:
    """Readiness check: the ledger RPC and the quota store both answer."""
    try:
        chain_id = await ledger.get_chain_id()
    except LedgerUnavailableError as exc:
        raise LedgerUnavailableError(
            code="service_unhealthy",
            message="Service unavailable",
            details=exc.details,
        ) from exc

    try:
        store_ok = await store.ping()
    except QuotaStoreUnavailableError as exc:
        raise QuotaStoreUnavailableError(
            code="service_unhealthy",
            message="Service unavailable",
            details=exc.details,
        ) from exc
    if not store_ok:
        raise QuotaStoreUnavailableError(
            code="service_unhealthy",
            message="Service unavailable",
            details={"reason": "quota store did not answer ping"},
        )

    return HealthResponse(
        wallet=ledger.wallet_address,
        chain_id=str(chain_id),
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
