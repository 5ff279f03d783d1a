"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.

Taxonomy:
- ValidationAppError: malformed input, never retried.
- RateLimitExceededError: quota denial, caller waits until reset_at.
- InsufficientFundsError: service wallet still short after one replenishment.
- LedgerUnavailableError: RPC/transport fault, caller may retry with backoff.
- TransferRejectedError: the ledger refused to execute the transfer.
- QuotaStoreUnavailableError: quota store fault, retryable.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional; only the ones relevant to an error are populated.
    """

    hint: str
    reason: str
    errors: list[str]
    remaining: int
    limit: int
    reset_at: str
    retry_after: int
    token: str
    required: str
    available: str
    recipient: str
    tx_hash: str
    backend: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class InvalidRecipientError(ValidationAppError):
    """Raised when a recipient is not a well-formed account address."""


class RateLimitExceededError(AppError):
    """Raised when an address has used up its funding quota.

    ``headers`` carries the X-RateLimit-* / Retry-After values for the response.
    """

    def __init__(
        self,
        *,
        limit: int,
        reset_at: str,
        retry_after: int,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(
            code="rate_limit_exceeded",
            message="Rate limit exceeded. Try again after the window resets.",
            details={
                "limit": limit,
                "remaining": 0,
                "reset_at": reset_at,
                "retry_after": retry_after,
            },
        )
        self.headers = headers or {}


class InsufficientFundsError(AppError):
    """Raised when the service wallet cannot cover a transfer after replenishing."""


class LedgerUnavailableError(AppError):
    """Raised when the ledger RPC cannot be reached or times out."""


class TransferRejectedError(AppError):
    """Raised when the ledger declines or reverts a transfer."""


class QuotaStoreUnavailableError(AppError):
    """Raised when the quota store cannot be read or written."""
