"""Tests for domain enumerations."""

from __future__ import annotations

import pytest

from trade_escrow.domain.enums import DealStatus, EventType, Role, SignatureBit


class TestRole:
    def test_all_roles_exist(self) -> None:
        assert {r.value for r in Role} == {"buyer", "producer", "carrier", "arbiter"}

    def test_role_is_str_enum(self) -> None:
        assert isinstance(Role.BUYER, str)
        assert Role.CARRIER == "carrier"


class TestSignatureBit:
    def test_bit_layout(self) -> None:
        assert SignatureBit.BUYER == 0b001
        assert SignatureBit.PRODUCER == 0b010
        assert SignatureBit.CARRIER == 0b100
        assert SignatureBit.ALL == SignatureBit.BUYER | SignatureBit.PRODUCER | SignatureBit.CARRIER

    def test_for_role(self) -> None:
        assert SignatureBit.for_role(Role.PRODUCER) is SignatureBit.PRODUCER
        assert SignatureBit.for_role(Role.CARRIER) is SignatureBit.CARRIER
        assert SignatureBit.for_role(Role.BUYER) is SignatureBit.BUYER

    def test_arbiter_has_no_bit(self) -> None:
        with pytest.raises(ValueError, match="no signature bit"):
            SignatureBit.for_role(Role.ARBITER)


class TestDealStatus:
    def test_all_statuses_exist(self) -> None:
        expected = {"LOCKED", "PRODUCER_SIGNED", "IN_TRANSIT", "RELEASE_AUTHORIZED", "SETTLED"}
        assert {s.value for s in DealStatus} == expected


class TestEventType:
    def test_one_event_per_mutation(self) -> None:
        # lock + three signatures + arbiter acknowledgement
        assert len(EventType) == 5

    def test_event_type_is_str_enum(self) -> None:
        assert isinstance(EventType.DEAL_LOCKED, str)
