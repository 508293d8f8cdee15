"""OrderMaterializer — turns a paid cart into a backend order.

Idempotency is keyed by the gateway intent id on both sides of the wire:
the id travels in the create-order body and as an ``Idempotency-Key`` header
for backends that honour it, and every order this client creates is written
to a local ledger before anything else happens. Asking to materialize an
intent that is already in the ledger returns the recorded order and makes
no request.
"""

from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Any

import structlog

from storefront.api.client import BackendClient
from storefront.api.errors import BackendError
from storefront.api.schemas import (
    ConfirmedProduct,
    ConfirmPaymentRequest,
    CreateOrderRequest,
    OrderItemRequest,
    wire_id,
)
from storefront.cart.snapshot import CartSnapshot
from storefront.errors import ErrorKind
from storefront.fulfillment.state_machine import FulfillmentStatus
from storefront.results import Err, Ok, Result
from storefront.storage import get_storage
from storefront.storage.port import KeyValueStore, StorageError

logger = structlog.get_logger(__name__)

MATERIALIZED_STORAGE_KEY = "storefront.materialized"


@dataclass(frozen=True)
class MaterializedOrder:
    order_id: str
    intent_id: str
    status: FulfillmentStatus
    total_to_pay: float | None
    points_earned: int
    payment_linked: bool
    created_at: str
    replayed: bool = False

    def to_document(self) -> dict[str, Any]:
        return {
            "orderId": self.order_id,
            "intentId": self.intent_id,
            "status": self.status.value,
            "totalToPay": self.total_to_pay,
            "pointsEarned": self.points_earned,
            "paymentLinked": self.payment_linked,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_document(cls, document: dict[str, Any], replayed: bool = False) -> "MaterializedOrder":
        return cls(
            order_id=document["orderId"],
            intent_id=document["intentId"],
            status=FulfillmentStatus(document["status"]),
            total_to_pay=document.get("totalToPay"),
            points_earned=int(document.get("pointsEarned", 0)),
            payment_linked=bool(document.get("paymentLinked", False)),
            created_at=document["createdAt"],
            replayed=replayed,
        )


class OrderMaterializer:
    def __init__(
        self,
        backend: BackendClient,
        storage: KeyValueStore | None = None,
        order_note: str = "Pedido Web",
    ) -> None:
        self._backend = backend
        self._storage = storage or get_storage()
        self._order_note = order_note

    def _ledger(self) -> dict[str, dict[str, Any]]:
        return self._storage.get(MATERIALIZED_STORAGE_KEY) or {}

    def _remember(self, order: MaterializedOrder) -> None:
        ledger = self._ledger()
        ledger[order.intent_id] = order.to_document()
        try:
            self._storage.set(MATERIALIZED_STORAGE_KEY, ledger)
        except StorageError:
            # The backend holds the order; a retry is deduplicated by the Idempotency-Key header.
            logger.error(
                "Materialized order could not be recorded locally",
                order_id=order.order_id,
                intent_id=order.intent_id,
                exc_info=True,
            )

    def lookup(self, gateway_intent_id: str) -> MaterializedOrder | None:
        """Return the order already created for this intent, if any."""
        document = self._ledger().get(gateway_intent_id)
        return MaterializedOrder.from_document(document, replayed=True) if document else None

    async def materialize(self, paid_cart: CartSnapshot, gateway_intent_id: str) -> Result[MaterializedOrder]:
        recorded = self.lookup(gateway_intent_id)
        if recorded is not None:
            logger.info("Order already materialized for intent", intent_id=gateway_intent_id, order_id=recorded.order_id)
            return Ok(recorded)

        if paid_cart.is_empty:
            return Err.of(ErrorKind.ORDER_CREATION_FAILED, "Paid cart has no lines", intent_id=gateway_intent_id)

        request = CreateOrderRequest(
            items=[
                OrderItemRequest(
                    producto_id=wire_id(line.product_id),
                    cantidad=line.quantity,
                    notas=self._order_note,
                )
                for line in paid_cart.lines
            ],
            payment_intent_id=gateway_intent_id,
        )

        try:
            created = await self._backend.create_order(request, idempotency_key=gateway_intent_id)
        except BackendError as exc:
            logger.warning("Order creation failed", intent_id=gateway_intent_id, error=str(exc))
            return Err.of(ErrorKind.ORDER_CREATION_FAILED, str(exc), intent_id=gateway_intent_id)

        order = MaterializedOrder(
            order_id=created.id,
            intent_id=gateway_intent_id,
            status=created.status,
            total_to_pay=created.total_to_pay,
            points_earned=created.points_earned,
            payment_linked=False,
            created_at=datetime.now(UTC).isoformat(),
        )
        self._remember(order)
        logger.info(
            "Order materialized",
            order_id=order.order_id,
            intent_id=gateway_intent_id,
            points_earned=order.points_earned,
        )

        if await self._link_payment(paid_cart, order):
            order = replace(order, payment_linked=True)
            self._remember(order)
        return Ok(order)

    async def _link_payment(self, paid_cart: CartSnapshot, order: MaterializedOrder) -> bool:
        """Attach the captured payment to the new order on the backend."""
        request = ConfirmPaymentRequest(
            payment_intent_id=order.intent_id,
            pedido_id=wire_id(order.order_id),
            productos=[
                ConfirmedProduct(
                    producto_id=wire_id(line.product_id),
                    cantidad=line.quantity,
                    precio_unitario=line.unit_price,
                    notas_personalizadas=self._order_note,
                )
                for line in paid_cart.lines
            ],
        )
        try:
            await self._backend.confirm_payment(request)
        except BackendError as exc:
            # The order exists and is paid; only the backend's payment record lacks the link.
            logger.warning(
                "Payment could not be linked to order",
                order_id=order.order_id,
                intent_id=order.intent_id,
                error=str(exc),
            )
            return False
        return True
