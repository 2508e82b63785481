"""SQLAlchemy 2.0 ORM models for Trade Escrow.

Two tables:
    1. deals        - One row per deal identifier; the zeroed row is kept
                      forever as the payout receipt.
    2. deal_events  - Append-only audit log of every deal mutation.

Design decisions:
    - Caller-supplied 32-byte identifiers (0x-hex) as the deals primary key.
    - Amounts are unbounded integers in the smallest denomination (18-decimal
      fixed point needs more than 64 bits), stored as decimal text through
      UInt256 so every backend round-trips them exactly.
    - CHECK constraints make an out-of-order signature mask unrepresentable.
    - deal_events is append-only: no UPDATE or DELETE at the application level.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    TypeDecorator,
    Uuid,
    event,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from trade_escrow.domain.deal import DealView

MAX_UINT256_DIGITS = 78


class UInt256(TypeDecorator):
    """Non-negative integer up to 2**256 - 1, persisted as decimal text."""

    impl = String(MAX_UINT256_DIGITS)
    cache_ok = True

    def process_bind_param(self, value, dialect):  # noqa: ANN001
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValueError(f"UInt256 column requires a non-negative int, got {value!r}")
        if value.bit_length() > 256:
            raise ValueError("UInt256 column value exceeds 256 bits")
        return str(value)

    def process_result_value(self, value, dialect):  # noqa: ANN001
        if value is None:
            return None
        return int(value)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def _set_updated_at(mapper, connection, target):  # noqa: ANN001
    """SQLAlchemy event listener that updates `updated_at` before flush."""
    if hasattr(target, "updated_at"):
        target.updated_at = datetime.now(UTC)


# ---------------------------------------------------------------------------
# 1. deals
# ---------------------------------------------------------------------------
class Deal(Base):
    """An escrowed trade between a buyer, a producer and a carrier, refereed by an arbiter."""

    __tablename__ = "deals"

    # --- Primary Key ---
    deal_id: Mapped[str] = mapped_column(
        String(66),
        primary_key=True,
        comment="Caller-supplied 32-byte identifier, 0x-prefixed lowercase hex",
    )

    # --- Participants (fixed at lock time) ---
    buyer: Mapped[str] = mapped_column(String(128), nullable=False)
    producer: Mapped[str] = mapped_column(String(128), nullable=False)
    carrier: Mapped[str] = mapped_column(String(128), nullable=False)
    arbiter: Mapped[str] = mapped_column(String(128), nullable=False)

    # --- Financials ---
    producer_amount: Mapped[int] = mapped_column(
        UInt256,
        nullable=False,
        comment="Commodity price; zeroed when paid out",
    )
    carrier_amount: Mapped[int] = mapped_column(
        UInt256,
        nullable=False,
        comment="Freight price; zeroed when paid out",
    )

    # --- Authorization ---
    signature_mask: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Bit 0 buyer, bit 1 producer, bit 2 carrier",
    )
    arbiter_acknowledged: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    # --- Timestamps ---
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )
    settled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=None,
    )

    # --- Relationships ---
    events: Mapped[list[DealEvent]] = relationship(
        "DealEvent",
        back_populates="deal",
        cascade="all, delete-orphan",
        order_by="DealEvent.created_at.asc()",
        lazy="selectin",
    )

    # --- Table Constraints & Indexes ---
    __table_args__ = (
        CheckConstraint(
            "signature_mask IN (0, 2, 6, 7)",
            name="ck_deal_ordered_signatures",
        ),
        CheckConstraint(
            "arbiter_acknowledged = false OR signature_mask = 7",
            name="ck_deal_ack_requires_signatures",
        ),
        Index("idx_deal_buyer", "buyer"),
        Index("idx_deal_producer", "producer"),
        Index("idx_deal_carrier", "carrier"),
        Index("idx_deal_arbiter", "arbiter"),
    )

    @property
    def is_active(self) -> bool:
        return self.producer_amount > 0 or self.carrier_amount > 0

    def to_view(self) -> DealView:
        """Detach a snapshot that outlives the session."""
        return DealView(
            deal_id=self.deal_id,
            buyer=self.buyer,
            producer=self.producer,
            carrier=self.carrier,
            arbiter=self.arbiter,
            producer_amount=self.producer_amount,
            carrier_amount=self.carrier_amount,
            signature_mask=self.signature_mask,
            arbiter_acknowledged=self.arbiter_acknowledged,
        )

    def __repr__(self) -> str:
        return (
            f"<Deal id={self.deal_id} mask={self.signature_mask:03b} "
            f"producer={self.producer_amount} carrier={self.carrier_amount}>"
        )


# ---------------------------------------------------------------------------
# 2. deal_events (Append-Only Audit Log)
# ---------------------------------------------------------------------------
class DealEvent(Base):
    """Immutable audit record of a deal mutation.

    This table is APPEND-ONLY. No UPDATE or DELETE operations are permitted
    at the application level.
    """

    __tablename__ = "deal_events"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    deal_id: Mapped[str] = mapped_column(
        String(66),
        ForeignKey("deals.deal_id", ondelete="CASCADE"),
        nullable=False,
    )
    event_type: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        comment="EventType enum value (e.g., DEAL_LOCKED, CARRIER_SIGNED)",
    )
    actor: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        comment="Identity that triggered this event",
    )
    signature_mask: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Deal signature mask after this event",
    )
    metadata_json: Mapped[dict | None] = mapped_column(
        "metadata",
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=True,
        default=None,
        comment="Amounts, fee, payout split; integers are stored as strings",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    deal: Mapped[Deal] = relationship(
        "Deal",
        back_populates="events",
    )

    __table_args__ = (
        Index("idx_event_deal", "deal_id"),
        Index("idx_event_type", "event_type"),
        Index("idx_event_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<DealEvent id={self.id} deal={self.deal_id} type={self.event_type}>"


event.listen(Deal, "before_update", _set_updated_at)
