"""Deal Service - core business logic for the deal lifecycle.

This is the application layer that coordinates between:
    - Domain state machine (signing order guard)
    - Repositories (data access)
    - Per-deal locks (exclusive access)
    - The external value ledger (deposits and payouts)

Both REST routes and MCP tools call into this service, ensuring a single
source of truth for all business rules.

Every operation is one unit of work: take the deal lock, open a
transaction, check, write, commit. Identities are explicit parameters;
authenticating them is the caller's job.

Payout failure window: finalize commits the zeroed amounts BEFORE any value
leaves custody, so a re-entrant or concurrent finalize sees AlreadySettled
and nothing is paid twice. If an outbound transfer then fails, the deal
stays settled and PayoutTransferError is raised; the undelivered value sits
in custody until an operator moves it.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from statemachine.exceptions import TransitionNotAllowed

from trade_escrow.domain.deal import DealView
from trade_escrow.domain.enums import EventType, Role, SignatureBit
from trade_escrow.domain.exceptions import (
    AlreadySettledError,
    DealNotFoundError,
    DuplicateDealError,
    InsufficientFundsError,
    InvalidDealTermsError,
    MissingAuthorizationError,
    OutOfOrderError,
    PayoutTransferError,
    UnauthorizedError,
)
from trade_escrow.domain.fees import PayoutSplit, compute_fee, split_payout
from trade_escrow.domain.identifiers import normalize_deal_id
from trade_escrow.domain.state_machine import DealAuthorizationMachine
from trade_escrow.domain.transfer_protocol import TransferReceipt
from trade_escrow.infrastructure.database.engine import shares_single_connection
from trade_escrow.infrastructure.database.orm_models import Deal
from trade_escrow.infrastructure.database.repositories import (
    DealEventRepository,
    DealRepository,
)
from trade_escrow.infrastructure.locks import InProcessDealLocks
from trade_escrow.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from trade_escrow.domain.transfer_protocol import ValueTransfer
    from trade_escrow.infrastructure.database.orm_models import DealEvent
    from trade_escrow.infrastructure.locks import DealLockManager

logger = get_logger(__name__)

_SIGN_EVENTS = {
    Role.PRODUCER: ("producer_signs", EventType.PRODUCER_SIGNED, ""),
    Role.CARRIER: ("carrier_signs", EventType.CARRIER_SIGNED, "producer must sign before carrier"),
    Role.BUYER: ("buyer_signs", EventType.BUYER_SIGNED, "not yet in transit"),
}


@dataclass(frozen=True)
class PayoutResult:
    """Outcome of a successful finalize."""

    deal_id: str
    split: PayoutSplit
    receipts: list[TransferReceipt] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "deal_id": self.deal_id,
            **self.split.to_dict(),
            "receipts": [r.to_dict() for r in self.receipts],
        }


class DealService:
    """Manages the deal lifecycle: lock, ordered signing, finalize and payout."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        transfer: ValueTransfer,
        locks: DealLockManager | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._transfer = transfer
        self._locks = locks if locks is not None else InProcessDealLocks()
        # On a single shared connection (in-memory SQLite) one rollback would
        # undo every open transaction, so units of work run one at a time.
        engine = session_factory.kw.get("bind")
        if engine is not None and shares_single_connection(engine):
            self._serial: contextlib.AbstractAsyncContextManager = asyncio.Lock()
        else:
            self._serial = contextlib.nullcontext()

    @contextlib.asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        async with self._serial:
            async with self._session_factory() as session:
                yield session

    @contextlib.asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        async with self._session() as session, session.begin():
            yield session

    # ------------------------------------------------------------------
    # Lock
    # ------------------------------------------------------------------

    async def lock_deal(
        self,
        deal_id: str | bytes,
        buyer: str,
        producer: str,
        carrier: str,
        arbiter: str,
        producer_amount: int,
        carrier_amount: int,
    ) -> DealView:
        """Create a deal and pull its total (amounts plus arbiter fee) from the buyer."""
        deal_id = normalize_deal_id(deal_id)
        fee = self._validate_terms(
            buyer, producer, carrier, arbiter, producer_amount, carrier_amount
        )
        total = producer_amount + carrier_amount + fee

        async with self._locks.hold(deal_id):
            async with self._transaction() as session:
                deals = DealRepository(session)
                existing = await deals.get_for_update(deal_id)
                if existing is not None and (existing.is_active or existing.arbiter_acknowledged):
                    raise DuplicateDealError(deal_id)

                terms = {
                    "buyer": buyer,
                    "producer": producer,
                    "carrier": carrier,
                    "arbiter": arbiter,
                    "producer_amount": producer_amount,
                    "carrier_amount": carrier_amount,
                    "signature_mask": 0,
                    "arbiter_acknowledged": False,
                }
                if existing is None:
                    deal = await deals.add(Deal(deal_id=deal_id, **terms))
                else:
                    # A zero-value deal never held funds; it may be replaced.
                    deal = existing
                    for name, value in terms.items():
                        setattr(deal, name, value)
                    await deals.save(deal)

                # The transaction rolls back on failure, so no deal survives it.
                pulled = await self._transfer.transfer_from(
                    buyer, self._transfer.custody_address, total
                )
                if not pulled:
                    logger.warning("deal.lock_rejected", deal_id=deal_id, buyer=buyer, total=str(total))
                    raise InsufficientFundsError(buyer, total)

                await DealEventRepository(session).record(
                    deal_id=deal_id,
                    event_type=EventType.DEAL_LOCKED,
                    actor=buyer,
                    signature_mask=0,
                    metadata={
                        "producer_amount": str(producer_amount),
                        "carrier_amount": str(carrier_amount),
                        "fee": str(fee),
                        "total": str(total),
                    },
                )
                view = deal.to_view()

        logger.info("deal.locked", deal_id=deal_id, buyer=buyer, total=str(total), fee=str(fee))
        return view

    # ------------------------------------------------------------------
    # Authorization gate
    # ------------------------------------------------------------------

    async def producer_sign(self, deal_id: str | bytes, caller: str) -> DealView:
        """Producer authorizes release. First step of the workflow."""
        return await self._sign(deal_id, caller, Role.PRODUCER)

    async def carrier_sign(self, deal_id: str | bytes, caller: str) -> DealView:
        """Carrier authorizes release; the producer must have signed."""
        return await self._sign(deal_id, caller, Role.CARRIER)

    async def buyer_sign(self, deal_id: str | bytes, caller: str) -> DealView:
        """Buyer authorizes release; producer and carrier must have signed."""
        return await self._sign(deal_id, caller, Role.BUYER)

    async def sign(self, deal_id: str | bytes, caller: str, role: Role) -> DealView:
        """Dispatch to the signing operation for a role."""
        if role is Role.ARBITER:
            raise ValueError("The arbiter acknowledges through finalize, not sign")
        return await self._sign(deal_id, caller, role)

    async def _sign(self, deal_id: str | bytes, caller: str, role: Role) -> DealView:
        deal_id = normalize_deal_id(deal_id)
        event_name, event_type, order_reason = _SIGN_EVENTS[role]
        bit = SignatureBit.for_role(role)

        async with self._locks.hold(deal_id):
            async with self._transaction() as session:
                deals = DealRepository(session)
                deal = await self._get_for_update_or_raise(deals, deal_id)
                self._require_role(deal, role, caller)
                if deal.arbiter_acknowledged:
                    raise AlreadySettledError(deal_id)

                if deal.signature_mask & bit:
                    logger.debug("deal.sign_repeated", deal_id=deal_id, role=role.value)
                    return deal.to_view()

                sm = DealAuthorizationMachine.from_mask(deal.signature_mask)
                try:
                    getattr(sm, event_name)()
                except TransitionNotAllowed as err:
                    raise OutOfOrderError(deal_id, order_reason) from err

                deal.signature_mask |= int(bit)
                await deals.save(deal)
                await DealEventRepository(session).record(
                    deal_id=deal_id,
                    event_type=event_type,
                    actor=caller,
                    signature_mask=deal.signature_mask,
                )
                view = deal.to_view()

        logger.info(
            "deal.signed",
            deal_id=deal_id,
            role=role.value,
            status=view.status.value,
        )
        return view

    # ------------------------------------------------------------------
    # Finalize / payout
    # ------------------------------------------------------------------

    async def finalize(self, deal_id: str | bytes, caller: str) -> PayoutResult:
        """Arbiter acknowledges a fully signed deal and the escrow pays out.

        Raises:
            UnauthorizedError: Caller is not the deal's arbiter.
            AlreadySettledError: The deal was already paid out.
            MissingAuthorizationError: Not all three roles have signed.
            PayoutTransferError: An outbound transfer failed after settlement.
        """
        deal_id = normalize_deal_id(deal_id)

        async with self._locks.hold(deal_id):
            async with self._transaction() as session:
                deals = DealRepository(session)
                deal = await self._get_for_update_or_raise(deals, deal_id)
                self._require_role(deal, Role.ARBITER, caller)
                if not deal.is_active:
                    raise AlreadySettledError(deal_id)
                if deal.signature_mask != SignatureBit.ALL:
                    raise MissingAuthorizationError(deal_id, deal.signature_mask)

                deal.arbiter_acknowledged = True
                split = split_payout(deal.producer_amount, deal.carrier_amount)
                payees = (
                    (Role.PRODUCER, deal.producer, split.producer_take),
                    (Role.CARRIER, deal.carrier, split.carrier_take),
                    (Role.ARBITER, deal.arbiter, split.arbiter_take),
                )

                # Zeroed and committed before any value leaves custody.
                deal.producer_amount = 0
                deal.carrier_amount = 0
                deal.settled_at = datetime.now(UTC)
                await deals.save(deal)
                await DealEventRepository(session).record(
                    deal_id=deal_id,
                    event_type=EventType.ARBITER_ACKNOWLEDGED,
                    actor=caller,
                    signature_mask=deal.signature_mask,
                    metadata={k: str(v) for k, v in split.to_dict().items()},
                )

        logger.info("deal.settled", deal_id=deal_id, total=str(split.total))
        receipts = await self._pay_out(deal_id, payees)
        return PayoutResult(deal_id=deal_id, split=split, receipts=receipts)

    async def _pay_out(
        self,
        deal_id: str,
        payees: tuple[tuple[Role, str, int], ...],
    ) -> list[TransferReceipt]:
        receipts: list[TransferReceipt] = []
        for role, recipient, amount in payees:
            if amount == 0:
                continue
            try:
                sent = await self._transfer.transfer(recipient, amount)
            except Exception as exc:
                logger.error(
                    "deal.payout_failed",
                    deal_id=deal_id,
                    role=role.value,
                    recipient=recipient,
                    amount=str(amount),
                    error=str(exc),
                )
                raise PayoutTransferError(deal_id, recipient, amount, receipts) from exc
            if not sent:
                logger.error(
                    "deal.payout_failed",
                    deal_id=deal_id,
                    role=role.value,
                    recipient=recipient,
                    amount=str(amount),
                )
                raise PayoutTransferError(deal_id, recipient, amount, receipts)
            receipts.append(TransferReceipt(role=role.value, recipient=recipient, amount=amount))
            logger.info(
                "deal.payout_sent",
                deal_id=deal_id,
                role=role.value,
                recipient=recipient,
                amount=str(amount),
            )
        return receipts

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    async def get_deal(self, deal_id: str | bytes) -> DealView:
        """Return the deal, or the all-zero sentinel if none exists."""
        deal_id = normalize_deal_id(deal_id)
        async with self._session() as session:
            deal = await DealRepository(session).get_by_id(deal_id)
            return deal.to_view() if deal is not None else DealView.empty(deal_id)

    async def get_status(self, deal_id: str | bytes) -> dict:
        """Get deal status with the signing events allowed next."""
        view = await self.get_deal(deal_id)
        if not view.exists:
            raise DealNotFoundError(view.deal_id)
        sm = DealAuthorizationMachine(current_status=view.status.value)
        return {
            "deal_id": view.deal_id,
            "status": view.status.value,
            "signature_mask": view.signature_mask,
            "arbiter_acknowledged": view.arbiter_acknowledged,
            "allowed_events": sm.get_allowed_events(),
        }

    async def get_events(self, deal_id: str | bytes) -> list[DealEvent]:
        """Get audit trail."""
        deal_id = normalize_deal_id(deal_id)
        async with self._session() as session:
            return await DealEventRepository(session).get_by_deal(deal_id)

    async def list_deals_for_party(self, identity: str) -> list[DealView]:
        """Every deal in which an identity holds a role."""
        async with self._session() as session:
            deals = await DealRepository(session).list_by_party(identity)
            return [d.to_view() for d in deals]

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _get_for_update_or_raise(deals: DealRepository, deal_id: str) -> Deal:
        deal = await deals.get_for_update(deal_id)
        if deal is None:
            raise DealNotFoundError(deal_id)
        return deal

    @staticmethod
    def _require_role(deal: Deal, role: Role, caller: str) -> None:
        if caller != getattr(deal, role.value):
            raise UnauthorizedError(deal.deal_id, role.value, caller)

    @staticmethod
    def _validate_terms(
        buyer: str,
        producer: str,
        carrier: str,
        arbiter: str,
        producer_amount: int,
        carrier_amount: int,
    ) -> int:
        """Check lock parameters and return the arbiter fee."""
        parties = (buyer, producer, carrier, arbiter)
        if not all(isinstance(p, str) and p for p in parties):
            raise InvalidDealTermsError("All four party identities are required")
        if len(set(parties)) != len(parties):
            raise InvalidDealTermsError("Buyer, producer, carrier and arbiter must be distinct")
        try:
            return compute_fee(producer_amount, carrier_amount)
        except ValueError as err:
            raise InvalidDealTermsError(str(err)) from err
