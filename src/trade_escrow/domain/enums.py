"""Domain enumerations for Trade Escrow.

These enums define the canonical roles, signature bits, and derived states
used throughout the system. They are framework-agnostic (no SQLAlchemy,
no FastAPI imports).
"""

import enum


class Role(enum.StrEnum):
    """The four parties bound to a deal at lock time."""

    BUYER = "buyer"
    PRODUCER = "producer"
    CARRIER = "carrier"
    ARBITER = "arbiter"


class SignatureBit(enum.IntFlag):
    """Bits of a deal's signature mask.

    Bit 0 is the buyer, bit 1 the producer, bit 2 the carrier. The buyer bit
    may only be set once both other bits are set.
    """

    BUYER = 0b001
    PRODUCER = 0b010
    CARRIER = 0b100
    ALL = 0b111

    @classmethod
    def for_role(cls, role: Role) -> "SignatureBit":
        """Return the bit a signing role sets. The arbiter does not sign."""
        try:
            return _ROLE_BITS[role]
        except KeyError:
            raise ValueError(f"Role '{role}' has no signature bit") from None


_ROLE_BITS = {
    Role.BUYER: SignatureBit.BUYER,
    Role.PRODUCER: SignatureBit.PRODUCER,
    Role.CARRIER: SignatureBit.CARRIER,
}


class DealStatus(enum.StrEnum):
    """Lifecycle states of a deal, derived from the signature mask.

    Status is never persisted; see domain/state_machine.py for the mapping
    and the transition table.
    """

    LOCKED = "LOCKED"
    PRODUCER_SIGNED = "PRODUCER_SIGNED"
    IN_TRANSIT = "IN_TRANSIT"
    RELEASE_AUTHORIZED = "RELEASE_AUTHORIZED"
    SETTLED = "SETTLED"


class EventType(enum.StrEnum):
    """Types of audit events recorded in the deal_events table.

    Every successful mutation of a deal produces exactly one event.
    """

    DEAL_LOCKED = "DEAL_LOCKED"
    PRODUCER_SIGNED = "PRODUCER_SIGNED"
    CARRIER_SIGNED = "CARRIER_SIGNED"
    BUYER_SIGNED = "BUYER_SIGNED"
    ARBITER_ACKNOWLEDGED = "ARBITER_ACKNOWLEDGED"
