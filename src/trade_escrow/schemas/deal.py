"""Pydantic schemas for the Deal API.

These schemas define the request/response shapes for the REST API.
They are separate from the ORM models to maintain clean boundaries
between the API and database layers.

Amounts are integers in the smallest denomination and may exceed 2**64;
responses serialize them as JSON numbers.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

DEAL_ID_PATTERN = r"^(0x)?[0-9a-fA-F]{64}$"
UINT256_MAX = 2**256 - 1

# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------


class LockDealRequest(BaseModel):
    """Request body for locking a new deal. The caller is the buyer."""

    deal_id: str = Field(
        ...,
        pattern=DEAL_ID_PATTERN,
        description="Caller-chosen 32-byte identifier as hex (0x prefix optional)",
        examples=["0x" + "ab" * 32],
    )
    producer: str = Field(..., min_length=1, max_length=128)
    carrier: str = Field(..., min_length=1, max_length=128)
    arbiter: str = Field(..., min_length=1, max_length=128)
    producer_amount: int = Field(
        ...,
        ge=0,
        le=UINT256_MAX,
        description="Commodity price in the smallest denomination",
        examples=[1000],
    )
    carrier_amount: int = Field(
        ...,
        ge=0,
        le=UINT256_MAX,
        description="Freight price in the smallest denomination",
        examples=[325],
    )


class MintRequest(BaseModel):
    """Credit simulated value to an identity."""

    identity: str = Field(..., min_length=1, max_length=128)
    amount: int = Field(..., ge=0)


class ApproveRequest(BaseModel):
    """Allow the escrow custody address to pull value from the caller."""

    amount: int = Field(..., ge=0)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------


class DealResponse(BaseModel):
    """Public view of a deal. Readable by anyone."""

    model_config = ConfigDict(from_attributes=True)

    deal_id: str
    exists: bool
    buyer: str
    producer: str
    carrier: str
    arbiter: str
    producer_amount: int
    carrier_amount: int
    fee: int
    signature_mask: int
    arbiter_acknowledged: bool
    status: str | None = None

    @classmethod
    def from_view(cls, view) -> DealResponse:  # noqa: ANN001
        return cls(
            deal_id=view.deal_id,
            exists=view.exists,
            buyer=view.buyer,
            producer=view.producer,
            carrier=view.carrier,
            arbiter=view.arbiter,
            producer_amount=view.producer_amount,
            carrier_amount=view.carrier_amount,
            fee=view.fee,
            signature_mask=view.signature_mask,
            arbiter_acknowledged=view.arbiter_acknowledged,
            status=view.status.value if view.exists else None,
        )


class DealStatusResponse(BaseModel):
    """Lightweight status check response."""

    deal_id: str
    status: str
    signature_mask: int
    arbiter_acknowledged: bool
    allowed_events: list[str] = Field(
        description="Signing events that can fire from the current status"
    )


class DealEventResponse(BaseModel):
    """Response schema for an audit event."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    deal_id: str
    event_type: str
    actor: str
    signature_mask: int
    metadata: dict | None = Field(default=None, validation_alias="metadata_json")
    created_at: datetime


class TransferReceiptResponse(BaseModel):
    role: str
    recipient: str
    amount: int


class PayoutResponse(BaseModel):
    """Result of a successful finalize."""

    deal_id: str
    producer_take: int
    carrier_take: int
    arbiter_take: int
    receipts: list[TransferReceiptResponse]


class BalanceResponse(BaseModel):
    identity: str
    balance: int
    allowance: int = Field(description="Amount the escrow custody may pull from this identity")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "0.1.0"
    database: str = "unknown"
    locks: str = "unknown"
