"""Fulfillment state machine shared by the customer timeline and the kitchen board.

State Machine:
    PENDING → PREPARING → READY → DELIVERED
    {PENDING, PREPARING, READY} → CANCELLED   (staff only)

Both views read the same ``_NEXT_STATUS`` table: the customer timeline marks
how far along an order is, the kitchen button names the next step. They
cannot disagree about what comes next.
"""

from dataclasses import dataclass
from enum import Enum

from storefront.errors import InvalidTransition


class FulfillmentStatus(Enum):
    PENDING = "pendiente"
    PREPARING = "en_preparacion"
    READY = "listo"
    DELIVERED = "entregado"
    CANCELLED = "cancelado"


_NEXT_STATUS = {
    FulfillmentStatus.PENDING: FulfillmentStatus.PREPARING,
    FulfillmentStatus.PREPARING: FulfillmentStatus.READY,
    FulfillmentStatus.READY: FulfillmentStatus.DELIVERED,
}

TERMINAL_STATUSES = frozenset({FulfillmentStatus.DELIVERED, FulfillmentStatus.CANCELLED})

# Forward path in display order, derived from the transition table.
PROGRESSION: tuple[FulfillmentStatus, ...] = (
    FulfillmentStatus.PENDING,
    *_NEXT_STATUS.values(),
)

STATUS_LABELS = {
    FulfillmentStatus.PENDING: "Order received",
    FulfillmentStatus.PREPARING: "Being prepared",
    FulfillmentStatus.READY: "Ready for pickup",
    FulfillmentStatus.DELIVERED: "Delivered",
    FulfillmentStatus.CANCELLED: "Cancelled",
}

# Keyed by the status the action moves the ticket *to*.
_ACTION_LABELS = {
    FulfillmentStatus.PREPARING: "Start cooking",
    FulfillmentStatus.READY: "Finish order",
    FulfillmentStatus.DELIVERED: "Hand to customer",
}


def _coerce(status: FulfillmentStatus | str) -> FulfillmentStatus:
    return status if isinstance(status, FulfillmentStatus) else FulfillmentStatus(status)


def is_terminal(status: FulfillmentStatus | str) -> bool:
    return _coerce(status) in TERMINAL_STATUSES


def can_advance(status: FulfillmentStatus | str) -> bool:
    return _coerce(status) in _NEXT_STATUS


def next_status(status: FulfillmentStatus | str) -> FulfillmentStatus:
    """Return the unique next status, or raise InvalidTransition from a terminal one."""
    current = _coerce(status)
    if current not in _NEXT_STATUS:
        raise InvalidTransition(current.value)
    return _NEXT_STATUS[current]


def can_cancel(status: FulfillmentStatus | str) -> bool:
    return not is_terminal(status)


def cancel_status(status: FulfillmentStatus | str) -> FulfillmentStatus:
    """Return CANCELLED if ``status`` may be cancelled, else raise InvalidTransition."""
    current = _coerce(status)
    if current in TERMINAL_STATUSES:
        raise InvalidTransition(current.value, action="cancel")
    return FulfillmentStatus.CANCELLED


def action_label(status: FulfillmentStatus | str) -> str | None:
    """Label for the kitchen button on a ticket in ``status``; None when there is no next step."""
    current = _coerce(status)
    if current not in _NEXT_STATUS:
        return None
    return _ACTION_LABELS[_NEXT_STATUS[current]]


@dataclass(frozen=True)
class TimelineStep:
    status: FulfillmentStatus
    label: str
    reached: bool
    current: bool


def timeline(status: FulfillmentStatus | str) -> list[TimelineStep]:
    """Customer-facing progress for an order in ``status``.

    A cancelled order shows the single cancelled step; there is no way to tell
    from the status alone how far it got before cancellation.
    """
    current = _coerce(status)
    if current is FulfillmentStatus.CANCELLED:
        return [TimelineStep(current, STATUS_LABELS[current], reached=True, current=True)]

    position = PROGRESSION.index(current)
    return [
        TimelineStep(
            status=step,
            label=STATUS_LABELS[step],
            reached=index <= position,
            current=index == position,
        )
        for index, step in enumerate(PROGRESSION)
    ]
