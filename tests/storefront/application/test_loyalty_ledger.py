"""Tests for staff loyalty adjustments and balance refreshes."""

import asyncio

from storefront.errors import ErrorKind
from storefront.loyalty.ledger import LoyaltyLedger


class TestAdjust:
    def test_adjust_points(self, backend_client, fake_backend):
        result = asyncio.run(LoyaltyLedger(backend_client).adjust("7", 25))

        assert result.ok
        assert result.value == 25
        assert fake_backend.calls("loyalty")[0]["json"] == {"userId": 7, "points": 25}
        assert fake_backend.users[0]["puntos_actuales"] == 145

    def test_zero_adjustment_is_refused(self, backend_client, fake_backend):
        result = asyncio.run(LoyaltyLedger(backend_client).adjust("7", 0))

        assert result.kind is ErrorKind.LOYALTY_ADJUSTMENT_FAILED
        assert fake_backend.requests == []

    def test_backend_rejection(self, backend_client):
        result = asyncio.run(LoyaltyLedger(backend_client).adjust("999", 10))
        assert result.kind is ErrorKind.LOYALTY_ADJUSTMENT_FAILED
        assert "Usuario no encontrado" in result.message


class TestRefresh:
    def test_refresh_reconciles_optimistic_balance(self, backend_client, loyalty):
        loyalty.apply_earned(13)

        result = asyncio.run(LoyaltyLedger(backend_client).refresh(loyalty, "7"))

        assert result.ok
        assert result.value.points == 120
        assert loyalty.unconfirmed is False

    def test_refresh_failure_keeps_cached_balance(self, backend_client, fake_backend, loyalty):
        loyalty.apply_earned(13)
        fake_backend.fail("users", 500)

        result = asyncio.run(LoyaltyLedger(backend_client).refresh(loyalty, "7"))

        assert result.kind is ErrorKind.LOYALTY_REFRESH_FAILED
        assert loyalty.points == 13
        assert loyalty.unconfirmed is True

    def test_unknown_user(self, backend_client, loyalty):
        result = asyncio.run(LoyaltyLedger(backend_client).refresh(loyalty, "999"))
        assert result.kind is ErrorKind.LOYALTY_REFRESH_FAILED
