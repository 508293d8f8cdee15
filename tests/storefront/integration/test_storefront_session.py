"""End-to-end session tests: cart, checkout, tracking and kitchen over the fake backend."""

import asyncio

import pytest
from storefront.config import StorefrontSettings
from storefront.fulfillment.state_machine import FulfillmentStatus
from storefront.gateway import get_gateway
from storefront.gateway.fake_adapter import FakeGateway
from storefront.gateway.port import PaymentDetails
from storefront.session import StorefrontSession
from storefront.storage import get_storage
from storefront.storage.memory_adapter import MemoryStore
from storefront.tracking.tracker import TrackerScope


@pytest.fixture()
def settings():
    return StorefrontSettings(api_url="http://backend.test/api", storage="memory", poll_interval=0.01)


@pytest.fixture()
def session(settings, memory_store, fake_gateway, backend_transport):
    return StorefrontSession(
        settings,
        storage=memory_store,
        gateway=fake_gateway,
        transport=backend_transport,
        init_domain=False,
    )


class TestWiring:
    def test_session_registers_its_adapters(self, session, memory_store, fake_gateway):
        assert get_storage() is memory_store
        assert get_gateway() is fake_gateway

    def test_adapters_built_from_settings_are_registered(self, settings, backend_transport):
        session = StorefrontSession(settings, transport=backend_transport, init_domain=False)

        assert isinstance(session.storage, MemoryStore)
        assert get_storage() is session.storage
        assert isinstance(get_gateway(), FakeGateway)
        asyncio.run(session.backend.aclose())

    def test_trackers_are_independent(self, session):
        assert session.customer_tracker() is not session.customer_tracker()
        assert session.customer_tracker().scope is TrackerScope.MINE
        assert session.kitchen.tracker.scope is TrackerScope.ACTIVE


class TestOrderLifecycle:
    def test_shop_pay_cook_and_deliver(self, session, products, fake_backend):
        async def scenario():
            async with session:
                session.cart.add_item(products[1])
                session.cart.add_item(products[1])
                session.cart.add_item(products[2])

                placed = await session.coordinator.checkout(
                    session.cart.snapshot(), "ana@example.com", PaymentDetails("pm_card_visa")
                )
                assert placed.ok

                customer = session.customer_tracker()
                mine = await customer.poll()
                assert mine.get(placed.value.order_id).status is FulfillmentStatus.PENDING

                for _ in range(3):
                    snapshot = await session.kitchen.tracker.poll()
                    ticket = snapshot.get(placed.value.order_id)
                    moved = await session.kitchen.advance(ticket)
                    assert moved.ok

                mine = await customer.poll()
                return placed.value, mine

        confirmation, mine = asyncio.run(scenario())

        assert confirmation.amount == 130.0
        assert mine.get(confirmation.order_id).status is FulfillmentStatus.DELIVERED
        assert session.cart.snapshot().is_empty
        assert session.loyalty.points == 13
        assert [c["json"]["estado"] for c in fake_backend.calls("update_status")] == [
            "en_preparacion",
            "listo",
            "entregado",
        ]

    def test_exit_stops_kitchen_tracker(self, session):
        async def scenario():
            async with session:
                session.kitchen.tracker.start(lambda snapshot: None)
                await asyncio.sleep(0.02)
            return session.kitchen.tracker.running

        assert asyncio.run(scenario()) is False
