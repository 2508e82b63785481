"""Shared test fixtures for the Trade Escrow test suite.

Provides:
    - An in-memory SQLite database (aiosqlite) per test
    - A simulated value ledger and a DealService wired to both
    - A funded buyer and a locked deal for lifecycle tests
"""

from __future__ import annotations

import pytest
import pytest_asyncio

from trade_escrow.domain.identifiers import deal_id_from_reference
from trade_escrow.infrastructure.database.engine import (
    create_engine_from_url,
    create_tables,
    make_session_factory,
)
from trade_escrow.infrastructure.locks import InProcessDealLocks
from trade_escrow.services.deal_service import DealService
from trade_escrow.services.token_ledger import SimulatedTokenLedger

BUYER = "buyer-0xB0B"
PRODUCER = "producer-0xP40"
CARRIER = "carrier-0xC42"
ARBITER = "arbiter-0xA21"
CUSTODY = "escrow-custody"

PRODUCER_AMOUNT = 1000
CARRIER_AMOUNT = 325
FEE = 39
TOTAL = 1364


# ---------------------------------------------------------------------------
# Infrastructure Fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def engine():
    eng = create_engine_from_url("sqlite+aiosqlite:///:memory:")
    await create_tables(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def ledger() -> SimulatedTokenLedger:
    return SimulatedTokenLedger(custody_address=CUSTODY)


@pytest.fixture
def service(session_factory, ledger) -> DealService:
    return DealService(
        session_factory=session_factory,
        transfer=ledger,
        locks=InProcessDealLocks(),
    )


# ---------------------------------------------------------------------------
# Domain Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def deal_id() -> str:
    """Return a deterministic deal identifier."""
    return deal_id_from_reference("batch-2026-0001")


@pytest.fixture
def funded_buyer(ledger) -> str:
    """Give the buyer exactly one deal's worth of value, approved for escrow."""
    ledger.mint(BUYER, TOTAL)
    ledger.approve(BUYER, CUSTODY, TOTAL)
    return BUYER


@pytest_asyncio.fixture
async def locked_deal(service, funded_buyer, deal_id) -> str:
    """Lock the reference deal (1000 + 325) and return its identifier."""
    await service.lock_deal(
        deal_id=deal_id,
        buyer=funded_buyer,
        producer=PRODUCER,
        carrier=CARRIER,
        arbiter=ARBITER,
        producer_amount=PRODUCER_AMOUNT,
        carrier_amount=CARRIER_AMOUNT,
    )
    return deal_id


@pytest_asyncio.fixture
async def signed_deal(service, locked_deal) -> str:
    """A locked deal that producer, carrier and buyer have signed, in order."""
    await service.producer_sign(locked_deal, PRODUCER)
    await service.carrier_sign(locked_deal, CARRIER)
    await service.buyer_sign(locked_deal, BUYER)
    return locked_deal
