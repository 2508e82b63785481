"""Simulated value ledger - an in-memory stand-in for the external token.

Implements the ValueTransfer protocol with balances and allowances, the way
an ERC-20 style token behaves: the buyer approves the escrow custody
address, and lock pulls the total with transfer_from.

Used for development, the simulation script and tests. A real deployment
plugs a chain-backed ledger into DealService instead.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

from trade_escrow.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    TransferHook = Callable[[str, int], Awaitable[None]]

logger = get_logger(__name__)


class SimulatedTokenLedger:
    """Fungible balances with allowances, held in memory."""

    def __init__(
        self,
        custody_address: str = "escrow-custody",
        on_transfer: TransferHook | None = None,
    ) -> None:
        """Initialize an empty ledger.

        Args:
            custody_address: Identity that holds escrowed value.
            on_transfer: Awaited after every successful outbound transfer with
                (recipient, amount). Lets a recipient call back into the
                escrow mid-payout, the way a token hook can on-chain.
        """
        self.custody_address = custody_address
        self.on_transfer = on_transfer
        self._balances: dict[str, int] = defaultdict(int)
        self._allowances: dict[tuple[str, str], int] = defaultdict(int)
        self.frozen: set[str] = set()
        self.transfer_log: list[tuple[str, str, int]] = []

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def mint(self, identity: str, amount: int) -> int:
        """Credit new value to an identity. Returns the new balance."""
        self._require_amount(amount)
        self._balances[identity] += amount
        logger.debug("ledger.minted", identity=identity, amount=str(amount))
        return self._balances[identity]

    def approve(self, owner: str, spender: str, amount: int) -> None:
        """Set how much spender may pull from owner with transfer_from."""
        self._require_amount(amount)
        self._allowances[(owner, spender)] = amount
        logger.debug("ledger.approved", owner=owner, spender=spender, amount=str(amount))

    def balance_of(self, identity: str) -> int:
        return self._balances.get(identity, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    # ------------------------------------------------------------------
    # ValueTransfer protocol
    # ------------------------------------------------------------------

    async def transfer_from(self, sender: str, recipient: str, amount: int) -> bool:
        """Pull value from sender on behalf of the custody address."""
        self._require_amount(amount)
        spender = self.custody_address
        if self.balance_of(sender) < amount or self.allowance(sender, spender) < amount:
            logger.info(
                "ledger.transfer_from_rejected",
                sender=sender,
                amount=str(amount),
                balance=str(self.balance_of(sender)),
                allowance=str(self.allowance(sender, spender)),
            )
            return False
        self._allowances[(sender, spender)] -= amount
        self._move(sender, recipient, amount)
        return True

    async def transfer(self, recipient: str, amount: int) -> bool:
        """Send value out of custody."""
        self._require_amount(amount)
        if recipient in self.frozen or self.balance_of(self.custody_address) < amount:
            logger.info("ledger.transfer_rejected", recipient=recipient, amount=str(amount))
            return False
        self._move(self.custody_address, recipient, amount)
        if self.on_transfer is not None:
            await self.on_transfer(recipient, amount)
        return True

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _move(self, sender: str, recipient: str, amount: int) -> None:
        self._balances[sender] -= amount
        self._balances[recipient] += amount
        self.transfer_log.append((sender, recipient, amount))

    @staticmethod
    def _require_amount(amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise ValueError(f"amount must be a non-negative int, got {amount!r}")
