"""Value Transfer Protocol.

Defines the interface of the external fungible-value ledger the escrow
depends on. This is a Protocol (structural subtyping) so concrete ledgers
don't need to inherit from a base class - they just need to match the shape.

An implementation may call back into the deal service from inside either
method; the service is written so that such re-entry cannot double-pay.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class TransferReceipt:
    """A payout transfer that completed.

    Attributes:
        role: The role that received the value (producer, carrier, arbiter).
        recipient: The identity credited.
        amount: Value moved, in the smallest denomination.
    """

    role: str
    recipient: str
    amount: int

    def to_dict(self) -> dict:
        return {"role": self.role, "recipient": self.recipient, "amount": self.amount}


@runtime_checkable
class ValueTransfer(Protocol):
    """Protocol that value ledgers must satisfy.

    Concrete implementations:
        - services/token_ledger.py (in-memory simulated ledger)
    """

    custody_address: str

    async def transfer_from(self, sender: str, recipient: str, amount: int) -> bool:
        """Move amount from sender to recipient using sender's allowance.

        Returns:
            False if the sender's balance or allowance is insufficient.
        """
        ...

    async def transfer(self, recipient: str, amount: int) -> bool:
        """Move amount out of escrow custody to recipient.

        Returns:
            False if the transfer could not be made.
        """
        ...
