"""Arbiter fee and payout split arithmetic.

The arbiter fee is a flat 3% of the combined producer and carrier amounts,
truncated toward zero. Settlement amounts depend on the exact integer
result, so everything here is integer-only.
"""

from __future__ import annotations

from dataclasses import dataclass

ARBITER_FEE_PERCENT = 3


def _check_amount(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")


def compute_fee(producer_amount: int, carrier_amount: int) -> int:
    """Return floor((producer_amount + carrier_amount) * 3 / 100)."""
    _check_amount("producer_amount", producer_amount)
    _check_amount("carrier_amount", carrier_amount)
    return (producer_amount + carrier_amount) * ARBITER_FEE_PERCENT // 100


def total_locked(producer_amount: int, carrier_amount: int) -> int:
    """Return the value pulled from the buyer at lock time."""
    return producer_amount + carrier_amount + compute_fee(producer_amount, carrier_amount)


@dataclass(frozen=True)
class PayoutSplit:
    """Three-way distribution of a deal's escrowed value."""

    producer_take: int
    carrier_take: int
    arbiter_take: int

    @property
    def total(self) -> int:
        return self.producer_take + self.carrier_take + self.arbiter_take

    def to_dict(self) -> dict:
        return {
            "producer_take": self.producer_take,
            "carrier_take": self.carrier_take,
            "arbiter_take": self.arbiter_take,
        }


def split_payout(producer_amount: int, carrier_amount: int) -> PayoutSplit:
    """Compute the payout for a deal from its stored amounts."""
    return PayoutSplit(
        producer_take=producer_amount,
        carrier_take=carrier_amount,
        arbiter_take=compute_fee(producer_amount, carrier_amount),
    )
