"""CartStore — the single mutation surface for the session's cart.

Every surface that shows or edits the cart goes through one store. A
mutation is applied to the aggregate, persisted to local storage, and only
then announced to subscribers, all before the call returns. If the write
fails the in-memory cart is rolled back to what is on disk.
"""

import threading
from collections.abc import Callable

import structlog

from storefront.api.schemas import Product
from storefront.cart.cart import Cart
from storefront.cart.snapshot import CartDocumentError, CartSnapshot
from storefront.storage import get_storage
from storefront.storage.port import KeyValueStore, StorageError

logger = structlog.get_logger(__name__)

CART_STORAGE_KEY = "storefront.cart"
UNREADABLE_CART_KEY = "storefront.cart.unreadable"

CartListener = Callable[[CartSnapshot, list], None]


class CartStore:
    def __init__(self, storage: KeyValueStore | None = None) -> None:
        self._storage = storage or get_storage()
        # Re-entrant so a listener may read snapshot() while being notified.
        self._lock = threading.RLock()
        self._listeners: list[CartListener] = []
        self._persisted = self._load()
        self._cart = Cart.from_snapshot(self._persisted)

    def _load(self) -> CartSnapshot:
        try:
            document = self._storage.get(CART_STORAGE_KEY)
        except StorageError:
            logger.warning("Could not read persisted cart, starting empty", exc_info=True)
            return CartSnapshot()
        if document is None:
            return CartSnapshot()
        try:
            snapshot = CartSnapshot.from_document(document)
        except CartDocumentError as exc:
            logger.warning("Persisted cart unreadable, starting empty", error=str(exc))
            try:
                self._storage.set(UNREADABLE_CART_KEY, document)
            except StorageError:
                logger.error("Unreadable cart could not be set aside", exc_info=True)
            return CartSnapshot()
        logger.debug("Cart rehydrated", lines=len(snapshot.lines), total=snapshot.total)
        return snapshot

    # -------------------------------------------------------------------
    # Observation
    # -------------------------------------------------------------------
    def subscribe(self, listener: CartListener) -> Callable[[], None]:
        """Register ``listener(snapshot, events)``; returns a function that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def snapshot(self) -> CartSnapshot:
        with self._lock:
            return self._cart.to_snapshot()

    @property
    def item_count(self) -> int:
        return self.snapshot().item_count

    @property
    def total(self) -> float:
        return self.snapshot().total

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def add_item(self, product: Product, quantity: int = 1) -> CartSnapshot:
        with self._lock:
            self._cart.add_item(
                product_id=product.id,
                name=product.name,
                unit_price=product.price,
                available=product.available,
                quantity=quantity,
            )
            return self._commit()

    def remove_item(self, product_id: str) -> CartSnapshot:
        with self._lock:
            if not self._cart.remove_item(product_id):
                return self._persisted
            return self._commit()

    def set_quantity(self, product_id: str, quantity: int) -> CartSnapshot:
        with self._lock:
            if not self._cart.set_quantity(product_id, quantity):
                return self._persisted
            return self._commit()

    def clear(self, reason: str = "user_request") -> CartSnapshot:
        with self._lock:
            if not self._cart.clear(reason=reason):
                return self._persisted
            return self._commit()

    def _commit(self) -> CartSnapshot:
        snapshot = self._cart.to_snapshot()
        events = list(self._cart._events)
        self._cart._events.clear()

        try:
            self._storage.set(CART_STORAGE_KEY, snapshot.to_document())
        except StorageError:
            logger.error("Cart could not be persisted, rolling back", exc_info=True)
            self._cart = Cart.from_snapshot(self._persisted)
            raise

        self._persisted = snapshot
        self._notify(snapshot, events)
        return snapshot

    def _notify(self, snapshot: CartSnapshot, events: list) -> None:
        for listener in list(self._listeners):
            try:
                listener(snapshot, events)
            except Exception:
                logger.exception("Cart listener failed", listener=getattr(listener, "__name__", repr(listener)))
