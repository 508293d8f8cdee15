"""Tests for KitchenBoard staff actions."""

import asyncio

import pytest
from storefront.api.schemas import TrackedOrder
from storefront.errors import ErrorKind
from storefront.fulfillment.kitchen import KitchenBoard
from storefront.fulfillment.state_machine import FulfillmentStatus
from storefront.tracking.tracker import OrderStatusTracker, TrackerScope


@pytest.fixture()
def board(backend_client):
    return KitchenBoard(backend_client, OrderStatusTracker(backend_client, TrackerScope.ACTIVE))


def _ticket(board, order_id):
    snapshot = asyncio.run(board.tracker.poll())
    return snapshot.get(order_id)


class TestAdvance:
    def test_advance_patches_next_status(self, board, fake_backend):
        order = fake_backend.add_order(status="pendiente")
        ticket = _ticket(board, order["id"])

        result = asyncio.run(board.advance(ticket))

        assert result.ok
        assert result.value.status is FulfillmentStatus.PREPARING
        call = fake_backend.calls("update_status")[0]
        assert call["method"] == "PATCH"
        assert call["path"] == f"/api/orders/{order['id']}/status"
        assert call["json"] == {"estado": "en_preparacion"}

    def test_board_repolls_after_update(self, board, fake_backend):
        order = fake_backend.add_order(status="en_preparacion")
        ticket = _ticket(board, order["id"])

        asyncio.run(board.advance(ticket))

        assert len(fake_backend.calls("list_orders")) == 2
        assert board.tracker.status_of(order["id"]) is FulfillmentStatus.READY

    def test_delivered_ticket_leaves_the_board(self, board, fake_backend):
        order = fake_backend.add_order(status="listo")
        ticket = _ticket(board, order["id"])

        result = asyncio.run(board.advance(ticket))

        assert result.value.status is FulfillmentStatus.DELIVERED
        assert board.tickets() == ()

    def test_failed_update_shows_no_change(self, board, fake_backend):
        order = fake_backend.add_order(status="pendiente")
        ticket = _ticket(board, order["id"])
        fake_backend.fail("update_status", 500)

        result = asyncio.run(board.advance(ticket))

        assert result.kind is ErrorKind.STATUS_UPDATE_FAILED
        assert result.retryable
        assert board.tracker.status_of(order["id"]) is FulfillmentStatus.PENDING
        assert fake_backend.order(order["id"])["estado"] == "pendiente"

    def test_terminal_ticket_cannot_advance(self, board, fake_backend):
        order = fake_backend.add_order(status="entregado")
        ticket = TrackedOrder.model_validate(order)

        result = asyncio.run(board.advance(ticket))

        assert result.kind is ErrorKind.INVALID_TRANSITION
        assert fake_backend.calls("update_status") == []


class TestCancel:
    def test_cancel_open_ticket(self, board, fake_backend):
        order = fake_backend.add_order(status="en_preparacion")
        ticket = _ticket(board, order["id"])

        result = asyncio.run(board.cancel(ticket))

        assert result.ok
        assert result.value.status is FulfillmentStatus.CANCELLED
        assert fake_backend.calls("update_status")[0]["json"] == {"estado": "cancelado"}
        assert board.tickets() == ()

    def test_cancelled_ticket_cannot_be_cancelled_again(self, board, fake_backend):
        order = fake_backend.add_order(status="cancelado")
        ticket = TrackedOrder.model_validate(order)

        result = asyncio.run(board.cancel(ticket))

        assert result.kind is ErrorKind.INVALID_TRANSITION
