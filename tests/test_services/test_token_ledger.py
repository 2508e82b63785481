"""Tests for the in-memory SimulatedTokenLedger."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from trade_escrow.domain.transfer_protocol import ValueTransfer
from trade_escrow.services.token_ledger import SimulatedTokenLedger


@pytest.fixture
def token() -> SimulatedTokenLedger:
    ledger = SimulatedTokenLedger(custody_address="vault")
    ledger.mint("alice", 500)
    return ledger


class TestAdministration:
    def test_satisfies_transfer_protocol(self, token) -> None:
        assert isinstance(token, ValueTransfer)

    def test_mint_accumulates(self, token) -> None:
        assert token.mint("alice", 250) == 750
        assert token.balance_of("alice") == 750
        assert token.balance_of("nobody") == 0

    def test_approve_overwrites(self, token) -> None:
        token.approve("alice", "vault", 100)
        token.approve("alice", "vault", 40)
        assert token.allowance("alice", "vault") == 40

    @pytest.mark.parametrize("bad", [-5, 2.5, True])
    def test_rejects_bad_amounts(self, token, bad) -> None:  # noqa: ANN001
        with pytest.raises(ValueError):
            token.mint("alice", bad)


class TestTransferFrom:
    @pytest.mark.asyncio
    async def test_pull_spends_allowance(self, token) -> None:
        token.approve("alice", "vault", 300)

        assert await token.transfer_from("alice", "vault", 200) is True

        assert token.balance_of("alice") == 300
        assert token.balance_of("vault") == 200
        assert token.allowance("alice", "vault") == 100
        assert token.transfer_log == [("alice", "vault", 200)]

    @pytest.mark.asyncio
    async def test_pull_without_allowance(self, token) -> None:
        assert await token.transfer_from("alice", "vault", 1) is False
        assert token.balance_of("alice") == 500

    @pytest.mark.asyncio
    async def test_pull_beyond_balance(self, token) -> None:
        token.approve("alice", "vault", 10_000)
        assert await token.transfer_from("alice", "vault", 501) is False
        assert token.allowance("alice", "vault") == 10_000
        assert token.transfer_log == []


class TestTransfer:
    @pytest.mark.asyncio
    async def test_send_from_custody(self, token) -> None:
        token.mint("vault", 90)
        assert await token.transfer("bob", 60) is True
        assert token.balance_of("vault") == 30
        assert token.balance_of("bob") == 60

    @pytest.mark.asyncio
    async def test_custody_shortfall(self, token) -> None:
        assert await token.transfer("bob", 1) is False

    @pytest.mark.asyncio
    async def test_frozen_recipient(self, token) -> None:
        token.mint("vault", 90)
        token.frozen.add("bob")
        assert await token.transfer("bob", 10) is False
        assert token.balance_of("vault") == 90

    @pytest.mark.asyncio
    async def test_hook_runs_after_value_moves(self, token) -> None:
        token.mint("vault", 90)
        seen: list[int] = []

        async def hook(recipient: str, amount: int) -> None:
            seen.append(token.balance_of(recipient))

        token.on_transfer = hook
        await token.transfer("bob", 25)

        assert seen == [25]

    @pytest.mark.asyncio
    async def test_hook_not_called_on_rejection(self, token) -> None:
        hook = AsyncMock()
        token.on_transfer = hook
        await token.transfer("bob", 1)
        hook.assert_not_awaited()
