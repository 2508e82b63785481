"""FastAPI dependency injection providers.

These are used with Depends() in route handlers to inject the deal
service, the simulated value ledger, the caller identity, and configuration.
MCP tools reuse the same providers so both surfaces share one service.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Header

from trade_escrow.config import get_settings
from trade_escrow.infrastructure.database.engine import get_session_factory
from trade_escrow.infrastructure.locks import build_lock_manager
from trade_escrow.services.deal_service import DealService
from trade_escrow.services.token_ledger import SimulatedTokenLedger

_token_ledger: SimulatedTokenLedger | None = None
_deal_service: DealService | None = None


def get_token_ledger() -> SimulatedTokenLedger:
    """Provide the process-wide simulated value ledger."""
    global _token_ledger
    if _token_ledger is None:
        _token_ledger = SimulatedTokenLedger(
            custody_address=get_settings().escrow_custody_address
        )
    return _token_ledger


def get_deal_service() -> DealService:
    """Provide the process-wide deal service."""
    global _deal_service
    if _deal_service is None:
        _deal_service = DealService(
            session_factory=get_session_factory(),
            transfer=get_token_ledger(),
            locks=build_lock_manager(get_settings()),
        )
    return _deal_service


def reset_services() -> None:
    """Drop cached providers. Called on shutdown."""
    global _token_ledger, _deal_service
    _token_ledger = None
    _deal_service = None


def get_caller(
    x_caller_identity: Annotated[str, Header(min_length=1, max_length=128)],
) -> str:
    """Identity of the authenticated caller, supplied by the upstream gateway."""
    return x_caller_identity
