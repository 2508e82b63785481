"""Application services - use case orchestration."""

from trade_escrow.services.deal_service import DealService, PayoutResult
from trade_escrow.services.token_ledger import SimulatedTokenLedger

__all__ = ["DealService", "PayoutResult", "SimulatedTokenLedger"]
