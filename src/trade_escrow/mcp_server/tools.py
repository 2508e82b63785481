"""MCP Tool definitions for Trade Escrow.

These tools expose the deal lifecycle via the Model Context Protocol,
allowing agents acting for a buyer, producer, carrier or arbiter to
discover and call them programmatically.

Tools:
    - lock_deal: Lock a new deal (caller is the buyer)
    - sign_deal: Producer, carrier or buyer signs
    - finalize_deal: Arbiter finalizes and the escrow pays out
    - get_deal: Read a deal record

The MCP server is mounted into FastAPI at /mcp via app.mount(). Tools share
the deal service with the REST routes. Domain errors come back as
{"error": code, "message": ...}; anything else propagates.
"""

from __future__ import annotations

from mcp.server.fastmcp import FastMCP

from trade_escrow.api.deps import get_deal_service
from trade_escrow.domain.enums import Role
from trade_escrow.domain.exceptions import EscrowError
from trade_escrow.logging_config import get_logger

logger = get_logger(__name__)

mcp = FastMCP(
    "Trade Escrow",
    json_response=True,
)

_SIGNING_ROLES = {Role.PRODUCER.value, Role.CARRIER.value, Role.BUYER.value}


def _error(tool: str, exc: EscrowError) -> dict:
    logger.warning(f"mcp.{tool}.rejected", code=exc.code, error=exc.message)
    return {"error": exc.code, "message": exc.message}


@mcp.tool()
async def lock_deal(
    deal_id: str,
    caller: str,
    producer: str,
    carrier: str,
    arbiter: str,
    producer_amount: int,
    carrier_amount: int,
) -> dict:
    """Lock a new deal, pulling amounts plus a 3% arbiter fee from the caller.

    Args:
        deal_id: 32-byte identifier as 64 hex chars (0x prefix optional).
        caller: Your identity; you become the buyer.
        producer: Identity of the commodity producer.
        carrier: Identity of the freight carrier.
        arbiter: Identity of the neutral arbiter.
        producer_amount: Commodity price in the smallest denomination.
        carrier_amount: Freight price in the smallest denomination.

    Returns:
        The locked deal, including the fee that was charged.
    """
    try:
        view = await get_deal_service().lock_deal(
            deal_id=deal_id,
            buyer=caller,
            producer=producer,
            carrier=carrier,
            arbiter=arbiter,
            producer_amount=producer_amount,
            carrier_amount=carrier_amount,
        )
    except EscrowError as exc:
        return _error("lock_deal", exc)
    return {
        **view.to_dict(),
        "fee": view.fee,
        "message": "Deal locked. Next step: the producer signs.",
    }


@mcp.tool()
async def sign_deal(deal_id: str, caller: str, role: str) -> dict:
    """Authorize release of a deal in your role.

    Order is enforced: producer first, then carrier, then buyer.

    Args:
        deal_id: The deal identifier.
        caller: Your identity; must match the role's identity on the deal.
        role: One of 'producer', 'carrier', 'buyer'.

    Returns:
        The deal with its updated signature mask and status.
    """
    if role not in _SIGNING_ROLES:
        return {
            "error": "INVALID_ROLE",
            "message": f"role must be one of {sorted(_SIGNING_ROLES)}",
        }
    try:
        view = await get_deal_service().sign(deal_id, caller, Role(role))
    except EscrowError as exc:
        return _error("sign_deal", exc)
    return view.to_dict()


@mcp.tool()
async def finalize_deal(deal_id: str, caller: str) -> dict:
    """Acknowledge a fully signed deal as its arbiter and pay everyone out.

    Args:
        deal_id: The deal identifier.
        caller: Your identity; must be the deal's arbiter.

    Returns:
        The producer, carrier and arbiter takes and the transfers made.
    """
    try:
        result = await get_deal_service().finalize(deal_id, caller)
    except EscrowError as exc:
        return _error("finalize_deal", exc)
    return {**result.to_dict(), "message": "Deal settled."}


@mcp.tool()
async def get_deal(deal_id: str) -> dict:
    """Read a deal. Unknown identifiers return a zeroed record with exists=false.

    Args:
        deal_id: The deal identifier.
    """
    try:
        view = await get_deal_service().get_deal(deal_id)
    except EscrowError as exc:
        return _error("get_deal", exc)
    return view.to_dict()
