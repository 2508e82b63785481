"""Tests for engine pooling and how the service runs its units of work."""

from __future__ import annotations

import asyncio

import pytest

from trade_escrow.infrastructure.database.engine import (
    create_engine_from_url,
    make_session_factory,
    shares_single_connection,
)
from trade_escrow.infrastructure.locks import InProcessDealLocks
from trade_escrow.services.deal_service import DealService
from trade_escrow.services.token_ledger import SimulatedTokenLedger


class TestPooling:
    @pytest.mark.asyncio
    async def test_memory_sqlite_shares_one_connection(self) -> None:
        engine = create_engine_from_url("sqlite+aiosqlite:///:memory:")
        try:
            assert shares_single_connection(engine)
        finally:
            await engine.dispose()

    @pytest.mark.asyncio
    async def test_file_sqlite_uses_separate_connections(self, tmp_path) -> None:
        engine = create_engine_from_url(f"sqlite+aiosqlite:///{tmp_path / 'deals.db'}")
        try:
            assert not shares_single_connection(engine)
        finally:
            await engine.dispose()


class TestUnitOfWorkSerialization:
    def test_shared_connection_serializes_sessions(self, session_factory) -> None:
        service = DealService(
            session_factory, transfer=SimulatedTokenLedger(), locks=InProcessDealLocks()
        )
        assert isinstance(service._serial, asyncio.Lock)

    @pytest.mark.asyncio
    async def test_pooled_engine_does_not_serialize(self, tmp_path) -> None:
        engine = create_engine_from_url(f"sqlite+aiosqlite:///{tmp_path / 'deals.db'}")
        try:
            service = DealService(
                make_session_factory(engine),
                transfer=SimulatedTokenLedger(),
                locks=InProcessDealLocks(),
            )
            assert not isinstance(service._serial, asyncio.Lock)
        finally:
            await engine.dispose()
