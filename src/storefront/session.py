"""StorefrontSession — wires the core's collaborators from settings.

One session per running client. It owns the HTTP client and the protean
domain context for its lifetime:

    async with StorefrontSession() as session:
        session.cart.add_item(product)
        result = await session.coordinator.checkout(session.cart.snapshot(), email, payment)
"""

import structlog

from storefront.api.client import BackendClient, TokenProvider
from storefront.cart.store import CartStore
from storefront.checkout.coordinator import PaymentCoordinator
from storefront.checkout.materializer import OrderMaterializer
from storefront.checkout.reconciliation import ReconciliationLog
from storefront.config import StorefrontSettings
from storefront.domain import storefront
from storefront.fulfillment.kitchen import KitchenBoard
from storefront.gateway import build_gateway, get_gateway, set_gateway
from storefront.gateway.port import PaymentGateway
from storefront.loyalty.balance import LoyaltyBalance
from storefront.loyalty.ledger import LoyaltyLedger
from storefront.storage import build_storage, get_storage, set_storage
from storefront.storage.port import KeyValueStore
from storefront.tracking.tracker import OrderStatusTracker, TrackerScope

logger = structlog.get_logger(__name__)

_domain_initialized = False


def _init_domain() -> None:
    global _domain_initialized
    if not _domain_initialized:
        storefront.init()
        _domain_initialized = True


class StorefrontSession:
    def __init__(
        self,
        settings: StorefrontSettings | None = None,
        storage: KeyValueStore | None = None,
        gateway: PaymentGateway | None = None,
        token_provider: TokenProvider | None = None,
        transport=None,
        init_domain: bool = True,
    ) -> None:
        self.settings = settings or StorefrontSettings.from_env()
        self._init_domain = init_domain
        self._domain_ctx = None

        set_storage(storage or build_storage(self.settings))
        set_gateway(gateway or build_gateway(self.settings))
        self.storage = get_storage()

        self.backend = BackendClient(
            self.settings.api_url,
            timeout=self.settings.http_timeout,
            token_provider=token_provider,
            transport=transport,
        )
        self.loyalty = LoyaltyBalance(self.storage)
        self.loyalty_ledger = LoyaltyLedger(self.backend)
        self.reconciliation = ReconciliationLog(self.storage)
        self.materializer = OrderMaterializer(self.backend, self.storage, order_note=self.settings.order_note)
        self.kitchen = KitchenBoard(self.backend, self.kitchen_tracker())
        self._cart: CartStore | None = None
        self._coordinator: PaymentCoordinator | None = None

    # The cart is an aggregate; it needs the domain context that __aenter__ pushes.
    @property
    def cart(self) -> CartStore:
        if self._cart is None:
            self._cart = CartStore(self.storage)
        return self._cart

    @property
    def coordinator(self) -> PaymentCoordinator:
        if self._coordinator is None:
            self._coordinator = PaymentCoordinator(
                backend=self.backend,
                gateway=get_gateway(),
                materializer=self.materializer,
                cart_store=self.cart,
                loyalty=self.loyalty,
                reconciliation=self.reconciliation,
                store_name=self.settings.store_name,
                currency=self.settings.currency,
                confirmation_timeout=self.settings.confirmation_timeout,
            )
        return self._coordinator

    def customer_tracker(self) -> OrderStatusTracker:
        """A new tracker over the signed-in customer's own orders."""
        return OrderStatusTracker(self.backend, TrackerScope.MINE, interval=self.settings.poll_interval)

    def kitchen_tracker(self) -> OrderStatusTracker:
        """A new tracker over every non-terminal order."""
        return OrderStatusTracker(self.backend, TrackerScope.ACTIVE, interval=self.settings.poll_interval)

    async def __aenter__(self) -> "StorefrontSession":
        if self._init_domain:
            _init_domain()
            self._domain_ctx = storefront.domain_context()
            self._domain_ctx.push()
        logger.info(
            "Storefront session opened",
            api_url=self.settings.api_url,
            storage=self.settings.storage,
            gateway=type(get_gateway()).__name__,
        )
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.kitchen.tracker.stop()
        await self.backend.aclose()
        if self._domain_ctx is not None:
            self._domain_ctx.pop()
            self._domain_ctx = None
        logger.info("Storefront session closed")
