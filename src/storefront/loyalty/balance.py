"""Locally cached loyalty-points balance.

The ledger itself lives on the backend. After an order is placed the client
adds the points it was told it earned straight away and marks the balance
unconfirmed; the next authoritative read replaces the value and clears the
flag, so optimistic patches never drift.
"""

import threading
from dataclasses import dataclass

import structlog

from storefront.storage import get_storage
from storefront.storage.port import KeyValueStore

logger = structlog.get_logger(__name__)

LOYALTY_STORAGE_KEY = "storefront.loyalty"


@dataclass(frozen=True)
class LoyaltyView:
    confirmed_points: int
    pending_delta: int

    @property
    def points(self) -> int:
        return self.confirmed_points + self.pending_delta

    @property
    def unconfirmed(self) -> bool:
        return self.pending_delta != 0


class LoyaltyBalance:
    def __init__(self, storage: KeyValueStore | None = None) -> None:
        self._storage = storage or get_storage()
        self._lock = threading.Lock()
        stored = self._storage.get(LOYALTY_STORAGE_KEY) or {}
        self._confirmed = int(stored.get("confirmed", 0))
        self._pending = int(stored.get("pending", 0))

    def view(self) -> LoyaltyView:
        with self._lock:
            return LoyaltyView(self._confirmed, self._pending)

    @property
    def points(self) -> int:
        return self.view().points

    @property
    def unconfirmed(self) -> bool:
        return self.view().unconfirmed

    def apply_earned(self, delta: int) -> LoyaltyView:
        """Optimistically add points reported by the backend for a new order."""
        with self._lock:
            self._pending += delta
            self._save()
            view = LoyaltyView(self._confirmed, self._pending)
        logger.info("Loyalty points applied optimistically", delta=delta, points=view.points)
        return view

    def reconcile(self, authoritative_points: int) -> LoyaltyView:
        """Replace the cached balance with the backend's figure."""
        with self._lock:
            drift = authoritative_points - (self._confirmed + self._pending)
            self._confirmed = authoritative_points
            self._pending = 0
            self._save()
            view = LoyaltyView(self._confirmed, self._pending)
        if drift:
            logger.info("Loyalty balance corrected on refresh", drift=drift, points=view.points)
        return view

    def _save(self) -> None:
        self._storage.set(LOYALTY_STORAGE_KEY, {"confirmed": self._confirmed, "pending": self._pending})
