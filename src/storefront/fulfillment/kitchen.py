"""Kitchen board: staff actions on order tickets.

The board never shows a status the backend has not accepted. An action
PATCHes the order first and only then re-polls the tracker, so the ticket
moves when the next snapshot says it moved.
"""

import structlog

from storefront.api.client import BackendClient
from storefront.api.errors import BackendError
from storefront.api.schemas import TrackedOrder
from storefront.errors import ErrorKind, InvalidTransition
from storefront.fulfillment.state_machine import FulfillmentStatus, cancel_status, next_status
from storefront.results import Err, Ok, Result
from storefront.tracking.tracker import OrderStatusTracker

logger = structlog.get_logger(__name__)


class KitchenBoard:
    def __init__(self, backend: BackendClient, tracker: OrderStatusTracker) -> None:
        self._backend = backend
        self.tracker = tracker

    def tickets(self) -> tuple[TrackedOrder, ...]:
        return self.tracker.snapshot.orders

    async def advance(self, order: TrackedOrder) -> Result[TrackedOrder]:
        try:
            target = next_status(order.status)
        except InvalidTransition as exc:
            return Err.of(ErrorKind.INVALID_TRANSITION, str(exc), order_id=order.id, status=order.status.value)
        return await self._move(order, target)

    async def cancel(self, order: TrackedOrder) -> Result[TrackedOrder]:
        try:
            target = cancel_status(order.status)
        except InvalidTransition as exc:
            return Err.of(ErrorKind.INVALID_TRANSITION, str(exc), order_id=order.id, status=order.status.value)
        return await self._move(order, target)

    async def _move(self, order: TrackedOrder, target: FulfillmentStatus) -> Result[TrackedOrder]:
        try:
            await self._backend.update_order_status(order.id, target)
        except BackendError as exc:
            logger.warning(
                "Order status update failed",
                order_id=order.id,
                current=order.status.value,
                target=target.value,
                error=str(exc),
            )
            return Err.of(ErrorKind.STATUS_UPDATE_FAILED, str(exc), order_id=order.id, target=target.value)

        logger.info("Order status updated", order_id=order.id, previous=order.status.value, status=target.value)
        snapshot = await self.tracker.poll()
        refreshed = None if snapshot.poll_failed else snapshot.get(order.id)
        if refreshed is None:
            # Terminal tickets leave the active board; a failed re-poll still means the PATCH was accepted.
            refreshed = order.model_copy(update={"status": target})
        return Ok(refreshed)
