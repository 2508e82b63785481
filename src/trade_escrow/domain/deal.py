"""Read-only view of a deal record.

Services hand out DealView snapshots rather than live ORM rows, so callers
never observe a deal mid-update.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

from trade_escrow.domain.enums import DealStatus, Role, SignatureBit
from trade_escrow.domain.fees import compute_fee
from trade_escrow.domain.state_machine import status_from_mask


@dataclass(frozen=True)
class DealView:
    """Snapshot of a deal.

    Attributes:
        deal_id: Canonical 0x-prefixed identifier.
        buyer, producer, carrier, arbiter: Identities bound at lock time.
        producer_amount: Commodity price; zero once paid out.
        carrier_amount: Freight price; zero once paid out.
        signature_mask: Bit 0 buyer, bit 1 producer, bit 2 carrier.
        arbiter_acknowledged: Set by a successful finalize.
        exists: False for the all-zero "no deal" sentinel.
    """

    deal_id: str
    buyer: str
    producer: str
    carrier: str
    arbiter: str
    producer_amount: int
    carrier_amount: int
    signature_mask: int
    arbiter_acknowledged: bool
    exists: bool = True

    @classmethod
    def empty(cls, deal_id: str) -> DealView:
        """Return the sentinel returned for identifiers with no deal."""
        return cls(
            deal_id=deal_id,
            buyer="",
            producer="",
            carrier="",
            arbiter="",
            producer_amount=0,
            carrier_amount=0,
            signature_mask=0,
            arbiter_acknowledged=False,
            exists=False,
        )

    @property
    def is_active(self) -> bool:
        return self.producer_amount > 0 or self.carrier_amount > 0

    @property
    def is_settled(self) -> bool:
        return self.arbiter_acknowledged and not self.is_active

    @property
    def fee(self) -> int:
        return compute_fee(self.producer_amount, self.carrier_amount)

    @property
    def status(self) -> DealStatus:
        return status_from_mask(self.signature_mask, self.arbiter_acknowledged)

    def has_signed(self, role: Role) -> bool:
        return bool(self.signature_mask & SignatureBit.for_role(role))

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value if self.exists else None
        return data
