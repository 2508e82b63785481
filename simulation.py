#!/usr/bin/env python3
"""Trade Escrow - End-to-End Simulation.

Walks four parties (buyer, producer, carrier, arbiter) through the deal
lifecycle against the simulated value ledger:

    Scenario 1: Happy Path
        - Buyer locks 1000 (producer) + 325 (carrier) + 39 fee
        - Producer, carrier, buyer sign in order
        - Arbiter finalizes -> 1000 / 325 / 39 paid out

    Scenario 2: Premature Finalize
        - Producer and carrier sign, the buyer has not
        - Arbiter tries to finalize -> MISSING_AUTHORIZATION, nothing moves

    Scenario 3: Out-of-Order Signature
        - Carrier signs before the producer -> OUT_OF_ORDER
        - Producer signs, carrier retries -> accepted

    Scenario 4: Re-entrant Payout
        - The producer's wallet calls finalize again on receipt
        - The nested call is rejected (ALREADY_SETTLED); every party is paid once

Usage:
    # Option A: PostgreSQL at DATABASE_URL:
    uv run python simulation.py

    # Option B: SQLite in-memory:
    uv run python simulation.py --sqlite

    # Run a specific scenario:
    uv run python simulation.py --sqlite --scenario 4
"""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Configure structured logging BEFORE importing app modules
# ---------------------------------------------------------------------------
from trade_escrow.logging_config import get_logger, setup_logging

setup_logging(log_level="INFO", json_logs=False)
logger = get_logger("simulation")

from trade_escrow.domain.exceptions import EscrowError  # noqa: E402
from trade_escrow.domain.identifiers import deal_id_from_reference  # noqa: E402
from trade_escrow.infrastructure.locks import InProcessDealLocks  # noqa: E402
from trade_escrow.services.deal_service import DealService  # noqa: E402
from trade_escrow.services.token_ledger import SimulatedTokenLedger  # noqa: E402

# Module-level state
_engine = None


# ---------------------------------------------------------------------------
# Database lifecycle helpers
# ---------------------------------------------------------------------------
async def init_database(use_sqlite: bool = False):
    """Initialize the database engine and create tables. Returns a session factory."""
    global _engine

    from trade_escrow.infrastructure.database.engine import (
        create_engine_from_url,
        create_tables,
        get_engine,
        init_db,
        make_session_factory,
    )

    if use_sqlite:
        _engine = create_engine_from_url("sqlite+aiosqlite:///:memory:")
        await create_tables(_engine)
        logger.info("database.sqlite_initialized")
        return make_session_factory(_engine)

    await init_db()
    return make_session_factory(get_engine())


async def shutdown_database() -> None:
    """Close database connections."""
    global _engine

    if _engine is not None:
        await _engine.dispose()
        _engine = None
    else:
        from trade_escrow.infrastructure.database.engine import close_db
        await close_db()


# ---------------------------------------------------------------------------
# Simulation world
# ---------------------------------------------------------------------------
@dataclass
class Parties:
    buyer: str = "buyer-0x" + "B" * 8
    producer: str = "producer-0x" + "P" * 8
    carrier: str = "carrier-0x" + "C" * 8
    arbiter: str = "arbiter-0x" + "A" * 8


@dataclass
class World:
    """One service, one ledger, one cast of parties, shared by all scenarios."""

    service: DealService
    ledger: SimulatedTokenLedger
    parties: Parties = field(default_factory=Parties)

    def fund_buyer(self, amount: int) -> None:
        self.ledger.mint(self.parties.buyer, amount)
        self.ledger.approve(self.parties.buyer, self.ledger.custody_address, amount)
        logger.info("🔵 BUYER: Funded and approved escrow", amount=amount)

    async def lock(self, reference: str, producer_amount: int, carrier_amount: int) -> str:
        deal_id = deal_id_from_reference(reference)
        p = self.parties
        view = await self.service.lock_deal(
            deal_id=deal_id,
            buyer=p.buyer,
            producer=p.producer,
            carrier=p.carrier,
            arbiter=p.arbiter,
            producer_amount=producer_amount,
            carrier_amount=carrier_amount,
        )
        logger.info("🔵 BUYER: Deal locked", deal_id=deal_id[:18] + "...", fee=view.fee)
        return deal_id


_world: World | None = None


def world() -> World:
    assert _world is not None, "init_world() not called"
    return _world


def init_world(session_factory) -> World:  # noqa: ANN001
    global _world
    ledger = SimulatedTokenLedger(custody_address="escrow-custody")
    _world = World(
        service=DealService(session_factory, transfer=ledger, locks=InProcessDealLocks()),
        ledger=ledger,
    )
    return _world


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------
def banner(text: str) -> None:
    """Print a prominent banner."""
    width = 70
    print("\n" + "=" * width)
    print(f"  {text}")
    print("=" * width + "\n")


def section(text: str) -> None:
    """Print a section header."""
    print(f"\n--- {text} ---\n")


def print_balances() -> None:
    w = world()
    p = w.parties
    for name, identity in (
        ("buyer", p.buyer),
        ("producer", p.producer),
        ("carrier", p.carrier),
        ("arbiter", p.arbiter),
        ("custody", w.ledger.custody_address),
    ):
        print(f"  {name:<9} {w.ledger.balance_of(identity):>8}")


async def print_audit_trail(deal_id: str) -> None:
    """Print the full audit trail for a deal."""
    events = await world().service.get_events(deal_id)
    print("\n  📜 Audit Trail:")
    for i, evt in enumerate(events, 1):
        print(f"    {i}. [{evt.event_type}] mask={evt.signature_mask:03b} (by {evt.actor})")
    print()


async def attempt(label: str, coro) -> None:  # noqa: ANN001
    """Await a deal operation and report a domain rejection instead of raising."""
    try:
        await coro
        print(f"  ✅ {label}")
    except EscrowError as exc:
        print(f"  ❌ {label}: {exc.code}")


# ===========================================================================
# Scenario 1: Happy Path
# ===========================================================================
async def scenario_1_happy_path() -> None:
    banner("SCENARIO 1: Happy Path (1000 + 325, fee 39)")
    w = world()
    p = w.parties

    w.fund_buyer(1364)
    deal_id = await w.lock("sim-happy-path", 1000, 325)

    section("Signatures")
    await w.service.producer_sign(deal_id, p.producer)
    await w.service.carrier_sign(deal_id, p.carrier)
    await w.service.buyer_sign(deal_id, p.buyer)
    print(f"  Status: {(await w.service.get_status(deal_id))['status']}")

    section("Finalize")
    result = await w.service.finalize(deal_id, p.arbiter)
    for receipt in result.receipts:
        print(f"  💸 {receipt.role:<9} {receipt.amount:>6} -> {receipt.recipient}")
    print_balances()
    await print_audit_trail(deal_id)


# ===========================================================================
# Scenario 2: Premature Finalize
# ===========================================================================
async def scenario_2_premature_finalize() -> None:
    banner("SCENARIO 2: Arbiter Finalizes Before the Buyer Signs")
    w = world()
    p = w.parties

    w.fund_buyer(515)
    deal_id = await w.lock("sim-premature", 400, 100)
    await w.service.producer_sign(deal_id, p.producer)
    await w.service.carrier_sign(deal_id, p.carrier)

    before = w.ledger.balance_of(w.ledger.custody_address)
    await attempt("arbiter finalizes", w.service.finalize(deal_id, p.arbiter))
    after = w.ledger.balance_of(w.ledger.custody_address)
    print(f"  Custody unchanged: {before == after} ({after})")

    await attempt("buyer signs", w.service.buyer_sign(deal_id, p.buyer))
    await attempt("arbiter finalizes", w.service.finalize(deal_id, p.arbiter))
    await print_audit_trail(deal_id)


# ===========================================================================
# Scenario 3: Out-of-Order Signature
# ===========================================================================
async def scenario_3_out_of_order() -> None:
    banner("SCENARIO 3: Carrier Signs Before the Producer")
    w = world()
    p = w.parties

    w.fund_buyer(103)
    deal_id = await w.lock("sim-out-of-order", 50, 50)

    await attempt("carrier signs", w.service.carrier_sign(deal_id, p.carrier))
    await attempt("buyer signs", w.service.buyer_sign(deal_id, p.buyer))
    await attempt("producer signs", w.service.producer_sign(deal_id, p.producer))
    await attempt("carrier signs", w.service.carrier_sign(deal_id, p.carrier))
    print(f"  Status: {(await w.service.get_status(deal_id))['status']}")


# ===========================================================================
# Scenario 4: Re-entrant Payout
# ===========================================================================
async def scenario_4_reentrant_payout() -> None:
    banner("SCENARIO 4: Recipient Calls Finalize Again Mid-Payout")
    w = world()
    p = w.parties

    w.fund_buyer(1364)
    deal_id = await w.lock("sim-reentrant", 1000, 325)
    await w.service.producer_sign(deal_id, p.producer)
    await w.service.carrier_sign(deal_id, p.carrier)
    await w.service.buyer_sign(deal_id, p.buyer)

    async def greedy_producer(recipient: str, amount: int) -> None:
        if recipient == p.producer:
            logger.info("🟠 PRODUCER: Received payout, calling finalize again", amount=amount)
            await attempt("nested finalize", w.service.finalize(deal_id, p.arbiter))

    w.ledger.on_transfer = greedy_producer
    try:
        result = await w.service.finalize(deal_id, p.arbiter)
    finally:
        w.ledger.on_transfer = None

    outflows = [t for t in w.ledger.transfer_log if t[0] == w.ledger.custody_address]
    print(f"  Receipts: {len(result.receipts)}")
    print(f"  Outbound transfers for this deal: {outflows[-3:]}")
    print_balances()


# ===========================================================================
# Main
# ===========================================================================
SCENARIOS = {
    1: scenario_1_happy_path,
    2: scenario_2_premature_finalize,
    3: scenario_3_out_of_order,
    4: scenario_4_reentrant_payout,
}


async def run(scenarios: list[int], use_sqlite: bool = False) -> None:
    """Run the selected scenarios against one database and ledger."""
    session_factory = await init_database(use_sqlite=use_sqlite)
    init_world(session_factory)

    try:
        print("\n" + "🚢" * 35)
        print("  TRADE ESCROW - SIMULATION")
        db_type = "SQLite (in-memory)" if use_sqlite else "PostgreSQL"
        print(f"  Database: {db_type}")
        print("🚢" * 35 + "\n")

        for num in scenarios:
            await SCENARIOS[num]()

        print("\n" + "=" * 70)
        print("  ✅ ALL SCENARIOS COMPLETED")
        print("=" * 70 + "\n")
    finally:
        await shutdown_database()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Trade Escrow Simulation")
    parser.add_argument(
        "--scenario",
        type=int,
        default=0,
        choices=[0, *SCENARIOS],
        help="Run a specific scenario (1-4). Default: run all.",
    )
    parser.add_argument(
        "--sqlite",
        action="store_true",
        help="Use SQLite in-memory instead of PostgreSQL (no Docker needed).",
    )
    args = parser.parse_args()

    selected = list(SCENARIOS) if args.scenario == 0 else [args.scenario]
    asyncio.run(run(selected, use_sqlite=args.sqlite))
