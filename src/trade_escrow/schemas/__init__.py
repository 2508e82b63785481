"""Pydantic API schemas."""

from trade_escrow.schemas.deal import (
    ApproveRequest,
    BalanceResponse,
    DealEventResponse,
    DealResponse,
    DealStatusResponse,
    HealthResponse,
    LockDealRequest,
    MintRequest,
    PayoutResponse,
    TransferReceiptResponse,
)

__all__ = [
    "ApproveRequest",
    "BalanceResponse",
    "DealEventResponse",
    "DealResponse",
    "DealStatusResponse",
    "HealthResponse",
    "LockDealRequest",
    "MintRequest",
    "PayoutResponse",
    "TransferReceiptResponse",
]
