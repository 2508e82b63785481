"""Tests for arbiter fee and payout split arithmetic."""

from __future__ import annotations

import pytest

from trade_escrow.domain.fees import (
    ARBITER_FEE_PERCENT,
    PayoutSplit,
    compute_fee,
    split_payout,
    total_locked,
)

WEI = 10**18


class TestComputeFee:
    def test_reference_deal(self) -> None:
        assert compute_fee(1000, 325) == 39
        assert total_locked(1000, 325) == 1364

    @pytest.mark.parametrize(
        ("producer", "carrier", "expected"),
        [
            (0, 0, 0),
            (33, 0, 0),  # 0.99 truncates to 0
            (34, 0, 1),  # 1.02 truncates to 1
            (0, 100, 3),
            (50, 50, 3),
            (199, 0, 5),  # 5.97 is never rounded up
            (10**6, 1, 30_000),
        ],
    )
    def test_truncates_toward_zero(self, producer: int, carrier: int, expected: int) -> None:
        assert compute_fee(producer, carrier) == expected

    def test_matches_floor_division_for_range(self) -> None:
        for total in range(0, 1000):
            assert compute_fee(total, 0) == (total * 3) // 100
            assert compute_fee(0, total) == compute_fee(total, 0)

    def test_eighteen_decimal_amounts_are_exact(self) -> None:
        producer = 12_345 * WEI + 678
        carrier = 987 * WEI + 1
        assert compute_fee(producer, carrier) == (producer + carrier) * 3 // 100
        assert ARBITER_FEE_PERCENT == 3

    @pytest.mark.parametrize("bad", [-1, 1.5, "10", True, None])
    def test_rejects_non_integer_or_negative(self, bad) -> None:  # noqa: ANN001
        with pytest.raises(ValueError):
            compute_fee(bad, 0)
        with pytest.raises(ValueError):
            compute_fee(0, bad)


class TestSplitPayout:
    def test_reference_split(self) -> None:
        split = split_payout(1000, 325)
        assert split == PayoutSplit(producer_take=1000, carrier_take=325, arbiter_take=39)

    @pytest.mark.parametrize(
        ("producer", "carrier"),
        [(1000, 325), (1, 1), (0, 7), (999_999_999, 3), (5 * WEI, 3 * WEI + 17)],
    )
    def test_conservation(self, producer: int, carrier: int) -> None:
        assert split_payout(producer, carrier).total == total_locked(producer, carrier)

    def test_to_dict(self) -> None:
        assert split_payout(100, 0).to_dict() == {
            "producer_take": 100,
            "carrier_take": 0,
            "arbiter_take": 3,
        }
