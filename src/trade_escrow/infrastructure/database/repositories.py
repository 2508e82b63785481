"""Repository classes for database access.

Repositories encapsulate all SQL queries and provide a clean interface
to the service layer. They accept an AsyncSession and never manage
their own transactions (that's the caller's responsibility).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import or_, select

from trade_escrow.infrastructure.database.orm_models import Deal, DealEvent

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from trade_escrow.domain.enums import EventType


class DealRepository:
    """Data access for deals."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, deal: Deal) -> Deal:
        """Insert a new deal."""
        self._session.add(deal)
        await self._session.flush()
        return deal

    async def get_by_id(self, deal_id: str) -> Deal | None:
        """Fetch a deal by its identifier."""
        result = await self._session.execute(
            select(Deal).where(Deal.deal_id == deal_id)
        )
        return result.scalar_one_or_none()

    async def get_for_update(self, deal_id: str) -> Deal | None:
        """Fetch a deal and take a row lock on backends that support it."""
        result = await self._session.execute(
            select(Deal).where(Deal.deal_id == deal_id).with_for_update()
        )
        return result.scalar_one_or_none()

    async def list_by_party(self, identity: str) -> list[Deal]:
        """Fetch all deals in which an identity holds any role, newest first."""
        result = await self._session.execute(
            select(Deal)
            .where(
                or_(
                    Deal.buyer == identity,
                    Deal.producer == identity,
                    Deal.carrier == identity,
                    Deal.arbiter == identity,
                )
            )
            .order_by(Deal.created_at.desc())
        )
        return list(result.scalars().all())

    async def save(self, deal: Deal) -> Deal:
        """Flush pending changes on a deal."""
        await self._session.flush()
        return deal


class DealEventRepository:
    """Data access for the append-only audit event log."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record(
        self,
        deal_id: str,
        event_type: EventType,
        actor: str,
        signature_mask: int,
        metadata: dict | None = None,
    ) -> DealEvent:
        """Append a new audit event. This is the ONLY write operation allowed."""
        evt = DealEvent(
            deal_id=deal_id,
            event_type=event_type.value,
            actor=actor,
            signature_mask=signature_mask,
            metadata_json=metadata,
        )
        self._session.add(evt)
        await self._session.flush()
        return evt

    async def get_by_deal(self, deal_id: str) -> list[DealEvent]:
        """Fetch all events for a deal in chronological order."""
        result = await self._session.execute(
            select(DealEvent)
            .where(DealEvent.deal_id == deal_id)
            .order_by(DealEvent.created_at.asc())
        )
        return list(result.scalars().all())
