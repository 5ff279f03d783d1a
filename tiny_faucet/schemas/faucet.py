"""Pydantic schemas for faucet requests and responses."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from tiny_faucet.core.config import AllowedAmount, TokenName
from tiny_faucet.utils.address import is_valid_address


class FundRequest(BaseModel):
    """Body of ``POST /api/fund``."""

    address: str = Field(
        ...,
        description="Recipient account address (0x-prefixed, 20 bytes).",
        examples=["0x742d35Cc6634C0532925a3b844Bc454e4438f44e"],
    )
    token: TokenName = Field(
        ...,
        description="Token to send.",
    )
    amount: AllowedAmount = Field(
        ...,
        description="Whole token units to send; one of the allowed tiers.",
    )

    @field_validator("address")
    @classmethod
    def _check_address(cls, value: str) -> str:
        value = value.strip()
        if not is_valid_address(value):
            raise ValueError("Invalid Ethereum address")
        return value


class FundData(BaseModel):
    recipient: str
    token: str
    token_address: str
    amount: int
    tx_hash: str
    explorer_url: str


class RateLimitInfo(BaseModel):
    remaining: int = Field(..., description="Funding requests left in the current window.")
    reset_at: str = Field(..., description="ISO-8601 UTC time when the window resets.")


class FundResponse(BaseModel):
    """Successful funding response."""

    success: bool = True
    message: str = "Tokens sent successfully"
    data: FundData
    rate_limit: RateLimitInfo


class RateLimitStatusResponse(BaseModel):
    """Quota usage for an address; reading it never consumes a slot."""

    success: bool = True
    address: str
    requests_used: int
    requests_remaining: int
    reset_at: str | None = Field(
        default=None,
        description="ISO-8601 UTC reset time, or null when no window is active.",
    )


class BalanceResponse(BaseModel):
    success: bool = True
    token: str
    balance: str = Field(..., description="Service wallet balance in whole token units.")
    address: str = Field(..., description="Token contract address.")


class TokenInfo(BaseModel):
    name: str
    address: str


class RateLimitPolicy(BaseModel):
    max_requests: int
    window_ms: int


class InfoResponse(BaseModel):
    success: bool = True
    supported_tokens: list[TokenInfo]
    allowed_amounts: list[int]
    wallet_address: str
    rate_limit: RateLimitPolicy


class HealthResponse(BaseModel):
    success: bool = True
    status: str = "healthy"
    service: str = "tempo-tiny-faucet"
    wallet: str
    chain_id: str
    timestamp: str
