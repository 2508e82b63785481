"""Tests for the deals schema: exact amounts and signature constraints."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError, StatementError

from trade_escrow.infrastructure.database.orm_models import Deal, UInt256
from trade_escrow.infrastructure.database.repositories import DealRepository

DEAL_ID = "0x" + "cd" * 32


def _deal(**overrides) -> Deal:  # noqa: ANN003
    fields = {
        "deal_id": DEAL_ID,
        "buyer": "b",
        "producer": "p",
        "carrier": "c",
        "arbiter": "a",
        "producer_amount": 2**256 - 1,
        "carrier_amount": 10**18,
        "signature_mask": 0,
        "arbiter_acknowledged": False,
    }
    fields.update(overrides)
    return Deal(**fields)


class TestUInt256:
    def test_bind_and_result(self) -> None:
        col = UInt256()
        assert col.process_bind_param(12345678901234567890123, None) == "12345678901234567890123"
        assert col.process_result_value("12345678901234567890123", None) == 12345678901234567890123
        assert col.process_bind_param(None, None) is None

    @pytest.mark.parametrize("bad", [-1, 2**256, True, 1.0])
    def test_rejects_out_of_range(self, bad) -> None:  # noqa: ANN001
        with pytest.raises(ValueError):
            UInt256().process_bind_param(bad, None)


class TestDealPersistence:
    @pytest.mark.asyncio
    async def test_max_uint256_round_trips(self, session_factory) -> None:
        async with session_factory() as session, session.begin():
            await DealRepository(session).add(_deal())

        async with session_factory() as session:
            deal = await DealRepository(session).get_by_id(DEAL_ID)
            assert deal.producer_amount == 2**256 - 1
            assert deal.carrier_amount == 10**18
            assert deal.to_view().is_active

    @pytest.mark.asyncio
    async def test_out_of_order_mask_is_unrepresentable(self, session_factory) -> None:
        with pytest.raises(IntegrityError):
            async with session_factory() as session, session.begin():
                await DealRepository(session).add(_deal(signature_mask=0b100))

    @pytest.mark.asyncio
    async def test_acknowledgement_requires_all_signatures(self, session_factory) -> None:
        with pytest.raises(IntegrityError):
            async with session_factory() as session, session.begin():
                await DealRepository(session).add(
                    _deal(signature_mask=0b110, arbiter_acknowledged=True)
                )

    @pytest.mark.asyncio
    async def test_negative_amount_never_reaches_the_database(self, session_factory) -> None:
        with pytest.raises(StatementError):
            async with session_factory() as session, session.begin():
                await DealRepository(session).add(_deal(carrier_amount=-1))
