"""Simulated value ledger routes.

Lets development clients fund identities and approve the escrow custody
address without a real token. A deployment with a chain-backed ledger
does not mount this router.

Routes:
    POST   /api/v1/ledger/mint                 - Credit value to an identity
    POST   /api/v1/ledger/approve              - Caller approves escrow custody
    GET    /api/v1/ledger/balances/{identity}  - Balance and escrow allowance
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from trade_escrow.api.deps import get_caller, get_token_ledger
from trade_escrow.schemas.deal import ApproveRequest, BalanceResponse, MintRequest
from trade_escrow.services.token_ledger import SimulatedTokenLedger

router = APIRouter(prefix="/api/v1/ledger", tags=["Simulated Ledger"])

Ledger = Annotated[SimulatedTokenLedger, Depends(get_token_ledger)]


def _balance(ledger: SimulatedTokenLedger, identity: str) -> BalanceResponse:
    return BalanceResponse(
        identity=identity,
        balance=ledger.balance_of(identity),
        allowance=ledger.allowance(identity, ledger.custody_address),
    )


@router.post("/mint", response_model=BalanceResponse, summary="Credit simulated value")
async def mint(request: MintRequest, ledger: Ledger) -> BalanceResponse:
    ledger.mint(request.identity, request.amount)
    return _balance(ledger, request.identity)


@router.post("/approve", response_model=BalanceResponse, summary="Approve escrow custody")
async def approve(
    request: ApproveRequest,
    caller: Annotated[str, Depends(get_caller)],
    ledger: Ledger,
) -> BalanceResponse:
    ledger.approve(caller, ledger.custody_address, request.amount)
    return _balance(ledger, caller)


@router.get("/balances/{identity}", response_model=BalanceResponse, summary="Get balance")
async def get_balance(identity: str, ledger: Ledger) -> BalanceResponse:
    return _balance(ledger, identity)
