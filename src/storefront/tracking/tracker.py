"""OrderStatusTracker — fixed-interval polling of the backend's order lists.

Each tracker owns its own snapshot; two trackers never share state. A
successful tick replaces the snapshot wholesale. A failed tick keeps the last
known orders and only raises the ``poll_failed`` flag, which the next
successful tick clears. There is no backoff: the next attempt is one interval
later.
"""

import asyncio
import contextlib
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

import structlog
from pydantic import ValidationError

from storefront.api.client import BackendClient
from storefront.api.errors import BackendError
from storefront.api.schemas import TrackedOrder
from storefront.errors import ErrorKind
from storefront.fulfillment.state_machine import FulfillmentStatus, is_terminal
from storefront.results import Err

logger = structlog.get_logger(__name__)

SnapshotListener = Callable[["OrderListSnapshot"], Awaitable[None] | None]


class TrackerScope(Enum):
    MINE = "mine"
    ACTIVE = "active"


@dataclass(frozen=True)
class StatusChange:
    order_id: str
    previous: FulfillmentStatus
    current: FulfillmentStatus


@dataclass(frozen=True)
class OrderListChanges:
    added: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()
    status_changed: tuple[StatusChange, ...] = ()

    @property
    def any(self) -> bool:
        return bool(self.added or self.removed or self.status_changed)


@dataclass(frozen=True)
class OrderListSnapshot:
    orders: tuple[TrackedOrder, ...] = ()
    fetched_at: datetime | None = None
    poll_failed: bool = False
    error: Err | None = None
    changes: OrderListChanges = field(default_factory=OrderListChanges)

    def get(self, order_id: str) -> TrackedOrder | None:
        return next((order for order in self.orders if order.id == str(order_id)), None)

    def is_stale(self, max_age: float, now: datetime | None = None) -> bool:
        """True when nothing has been fetched yet or the last success is older than ``max_age`` seconds."""
        if self.fetched_at is None:
            return True
        now = now or datetime.now(UTC)
        return now - self.fetched_at > timedelta(seconds=max_age)


def diff_orders(previous: tuple[TrackedOrder, ...], current: tuple[TrackedOrder, ...]) -> OrderListChanges:
    before = {order.id: order.status for order in previous}
    after = {order.id: order.status for order in current}
    return OrderListChanges(
        added=tuple(order_id for order_id in after if order_id not in before),
        removed=tuple(order_id for order_id in before if order_id not in after),
        status_changed=tuple(
            StatusChange(order_id, before[order_id], status)
            for order_id, status in after.items()
            if order_id in before and before[order_id] != status
        ),
    )


class OrderStatusTracker:
    def __init__(self, backend: BackendClient, scope: TrackerScope, interval: float = 5.0) -> None:
        if interval <= 0:
            raise ValueError("Polling interval must be positive")
        self._backend = backend
        self.scope = scope
        self.interval = interval
        self._snapshot = OrderListSnapshot()
        self._task: asyncio.Task | None = None

    @property
    def snapshot(self) -> OrderListSnapshot:
        return self._snapshot

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def status_of(self, order_id: str) -> FulfillmentStatus | None:
        order = self._snapshot.get(order_id)
        return order.status if order else None

    # -------------------------------------------------------------------
    # One tick
    # -------------------------------------------------------------------
    async def _fetch(self) -> list[dict[str, Any]]:
        if self.scope is TrackerScope.MINE:
            return await self._backend.list_my_orders()
        return await self._backend.list_orders()

    def _parse(self, rows: list[Any]) -> tuple[TrackedOrder, ...]:
        orders = []
        for row in rows:
            try:
                order = TrackedOrder.model_validate(row)
            except ValidationError as exc:
                row_id = row.get("id") if isinstance(row, dict) else None
                logger.warning("Skipping malformed order row", scope=self.scope.value, order_id=row_id, error=str(exc))
                continue
            if self.scope is TrackerScope.ACTIVE and is_terminal(order.status):
                continue
            orders.append(order)
        return tuple(orders)

    async def poll(self) -> OrderListSnapshot:
        previous = self._snapshot
        try:
            rows = await self._fetch()
        except BackendError as exc:
            logger.warning("Order poll failed", scope=self.scope.value, error=str(exc))
            self._snapshot = OrderListSnapshot(
                orders=previous.orders,
                fetched_at=previous.fetched_at,
                poll_failed=True,
                error=Err.of(ErrorKind.POLL_FAILED, str(exc)),
            )
            return self._snapshot

        orders = self._parse(rows)
        self._snapshot = OrderListSnapshot(
            orders=orders,
            fetched_at=datetime.now(UTC),
            changes=diff_orders(previous.orders, orders),
        )
        if self._snapshot.changes.any:
            logger.debug(
                "Order list changed",
                scope=self.scope.value,
                added=len(self._snapshot.changes.added),
                removed=len(self._snapshot.changes.removed),
                status_changed=len(self._snapshot.changes.status_changed),
            )
        return self._snapshot

    # -------------------------------------------------------------------
    # Streams
    # -------------------------------------------------------------------
    async def subscribe(self) -> AsyncIterator[OrderListSnapshot]:
        """Yield one snapshot per tick, starting immediately.

        Every call is a fresh stream. Closing the iterator (``aclose`` or
        leaving an ``async for``) stops its polling.
        """
        while True:
            yield await self.poll()
            await asyncio.sleep(self.interval)

    async def _run(self, listener: SnapshotListener) -> None:
        async for snapshot in self.subscribe():
            try:
                outcome = listener(snapshot)
                if asyncio.iscoroutine(outcome):
                    await outcome
            except Exception:
                logger.exception("Order snapshot listener failed", scope=self.scope.value)

    def start(self, listener: SnapshotListener) -> asyncio.Task:
        if self.running:
            raise RuntimeError(f"{self.scope.value} tracker is already running")
        self._task = asyncio.get_running_loop().create_task(self._run(listener))
        logger.info("Order tracker started", scope=self.scope.value, interval=self.interval)
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Order tracker stopped", scope=self.scope.value)

    @contextlib.asynccontextmanager
    async def watching(self, listener: SnapshotListener) -> AsyncIterator["OrderStatusTracker"]:
        self.start(listener)
        try:
            yield self
        finally:
            await self.stop()
