"""Deal REST API routes.

These endpoints provide the HTTP interface for locking deals, the three
signing steps, finalize, and public reads. The MCP tools in
mcp_server/tools.py call the same service.

The acting identity comes from the X-Caller-Identity header.

Routes:
    POST   /api/v1/deals                           - Lock a new deal (caller = buyer)
    GET    /api/v1/deals?party=...                 - Deals an identity takes part in
    GET    /api/v1/deals/{deal_id}                 - Deal record (zeroed if none)
    GET    /api/v1/deals/{deal_id}/status          - Status and next allowed events
    GET    /api/v1/deals/{deal_id}/events          - Audit trail
    POST   /api/v1/deals/{deal_id}/sign/producer   - Producer signs
    POST   /api/v1/deals/{deal_id}/sign/carrier    - Carrier signs
    POST   /api/v1/deals/{deal_id}/sign/buyer      - Buyer signs
    POST   /api/v1/deals/{deal_id}/finalize        - Arbiter finalizes and pays out
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from trade_escrow.api.deps import get_caller, get_deal_service
from trade_escrow.schemas.deal import (
    DealEventResponse,
    DealResponse,
    DealStatusResponse,
    LockDealRequest,
    PayoutResponse,
)
from trade_escrow.services.deal_service import DealService

router = APIRouter(prefix="/api/v1/deals", tags=["Deals"])

Service = Annotated[DealService, Depends(get_deal_service)]
Caller = Annotated[str, Depends(get_caller)]


# ---------------------------------------------------------------------------
# Lock
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=DealResponse,
    status_code=201,
    summary="Lock a new deal",
)
async def lock_deal(request: LockDealRequest, caller: Caller, svc: Service) -> DealResponse:
    """Create a deal and pull amounts plus the 3% arbiter fee from the caller."""
    view = await svc.lock_deal(
        deal_id=request.deal_id,
        buyer=caller,
        producer=request.producer,
        carrier=request.carrier,
        arbiter=request.arbiter,
        producer_amount=request.producer_amount,
        carrier_amount=request.carrier_amount,
    )
    return DealResponse.from_view(view)


# ---------------------------------------------------------------------------
# Signing
# ---------------------------------------------------------------------------


@router.post(
    "/{deal_id}/sign/producer",
    response_model=DealResponse,
    summary="Producer authorizes release",
)
async def producer_sign(deal_id: str, caller: Caller, svc: Service) -> DealResponse:
    """First signature; no precondition."""
    return DealResponse.from_view(await svc.producer_sign(deal_id, caller))


@router.post(
    "/{deal_id}/sign/carrier",
    response_model=DealResponse,
    summary="Carrier authorizes release",
)
async def carrier_sign(deal_id: str, caller: Caller, svc: Service) -> DealResponse:
    """Requires the producer's signature."""
    return DealResponse.from_view(await svc.carrier_sign(deal_id, caller))


@router.post(
    "/{deal_id}/sign/buyer",
    response_model=DealResponse,
    summary="Buyer authorizes release",
)
async def buyer_sign(deal_id: str, caller: Caller, svc: Service) -> DealResponse:
    """Requires producer and carrier signatures."""
    return DealResponse.from_view(await svc.buyer_sign(deal_id, caller))


# ---------------------------------------------------------------------------
# Finalize
# ---------------------------------------------------------------------------


@router.post(
    "/{deal_id}/finalize",
    response_model=PayoutResponse,
    summary="Arbiter finalizes and the escrow pays out",
)
async def finalize(deal_id: str, caller: Caller, svc: Service) -> PayoutResponse:
    """Pay producer, carrier and arbiter once all three roles have signed."""
    result = await svc.finalize(deal_id, caller)
    return PayoutResponse(**result.to_dict())


# ---------------------------------------------------------------------------
# Read endpoints (public)
# ---------------------------------------------------------------------------


@router.get(
    "",
    response_model=list[DealResponse],
    summary="List deals for a party",
)
async def list_deals(
    svc: Service,
    party: Annotated[str, Query(min_length=1, max_length=128)],
) -> list[DealResponse]:
    """Every deal in which the identity is buyer, producer, carrier or arbiter."""
    views = await svc.list_deals_for_party(party)
    return [DealResponse.from_view(v) for v in views]


@router.get(
    "/{deal_id}",
    response_model=DealResponse,
    summary="Get deal details",
)
async def get_deal(deal_id: str, svc: Service) -> DealResponse:
    """Fetch a deal. Unknown identifiers return the zeroed record with exists=false."""
    return DealResponse.from_view(await svc.get_deal(deal_id))


@router.get(
    "/{deal_id}/status",
    response_model=DealStatusResponse,
    summary="Get lightweight status check",
)
async def get_status(deal_id: str, svc: Service) -> DealStatusResponse:
    """Return the current status and the signing events allowed next."""
    return DealStatusResponse(**await svc.get_status(deal_id))


@router.get(
    "/{deal_id}/events",
    response_model=list[DealEventResponse],
    summary="Get audit trail",
)
async def get_events(deal_id: str, svc: Service) -> list[DealEventResponse]:
    """Return the full audit trail for a deal."""
    events = await svc.get_events(deal_id)
    return [DealEventResponse.model_validate(e) for e in events]
