"""PaymentCoordinator — checkout from cart snapshot to materialized order.

Flow:
    1. Empty cart / nothing to charge / missing email → rejected locally, no network
    2. Backend creates a payment intent for the snapshot's total
    3. Gateway confirms the intent with the payer's details (never retried here)
    4. Succeeded → OrderMaterializer creates the order for the *same* snapshot
    5a. Order created → cart cleared, earned points applied optimistically
    5b. Order failed → PostPaymentReconciliationFailed, cart kept, case recorded

Steps 3-5 run in a task the caller cannot cancel: abandoning a gateway
confirmation half way does not mean the charge was not captured, so the flow
always runs to an outcome and that outcome is always logged.
"""

import asyncio
from dataclasses import dataclass

import structlog
from pydantic import ValidationError

from storefront.api.client import BackendClient
from storefront.api.errors import BackendError
from storefront.api.schemas import PaymentIntentRequest, PaymentStatusReport
from storefront.cart.snapshot import CartSnapshot
from storefront.cart.store import CartStore
from storefront.checkout.materializer import MaterializedOrder, OrderMaterializer
from storefront.checkout.reconciliation import ReconciliationLog
from storefront.errors import ErrorKind
from storefront.gateway.port import (
    GatewayConfirmation,
    GatewayError,
    GatewayTimeout,
    PaymentDetails,
    PaymentGateway,
    intent_id_from_secret,
)
from storefront.loyalty.balance import LoyaltyBalance
from storefront.results import Err, Ok, Result
from storefront.storage.port import StorageError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PaymentIntent:
    client_secret: str
    gateway_intent_id: str
    amount: float
    currency: str
    status: str = "requires_confirmation"


@dataclass(frozen=True)
class OrderConfirmation:
    order_id: str
    gateway_intent_id: str
    amount: float
    points_earned: int
    payment_linked: bool


class PaymentCoordinator:
    def __init__(
        self,
        backend: BackendClient,
        gateway: PaymentGateway,
        materializer: OrderMaterializer,
        cart_store: CartStore,
        loyalty: LoyaltyBalance,
        reconciliation: ReconciliationLog,
        store_name: str = "Crepa Urbana",
        currency: str = "usd",
        confirmation_timeout: float = 60.0,
    ) -> None:
        self._backend = backend
        self._gateway = gateway
        self._materializer = materializer
        self._cart_store = cart_store
        self._loyalty = loyalty
        self._reconciliation = reconciliation
        self._store_name = store_name
        self._currency = currency
        self._confirmation_timeout = confirmation_timeout
        self._in_flight = False
        self._settling: set[asyncio.Task] = set()
        # Gateway confirmations we stopped waiting for but that may still capture.
        self._unsettled: set[asyncio.Future] = set()

    @property
    def in_flight(self) -> bool:
        return self._in_flight or bool(self._unsettled)

    # -------------------------------------------------------------------
    # Checkout
    # -------------------------------------------------------------------
    async def checkout(self, cart: CartSnapshot, contact_email: str, payment: PaymentDetails) -> Result[OrderConfirmation]:
        if cart.item_count == 0:
            return Err.of(ErrorKind.EMPTY_CART)
        if not contact_email or "@" not in contact_email:
            return Err.of(ErrorKind.INVALID_CHECKOUT_DETAILS, field="contact_email")
        if self.in_flight:
            return Err.of(ErrorKind.CHECKOUT_IN_PROGRESS)

        self._in_flight = True
        settle = None
        try:
            intent = await self._create_intent(cart, contact_email)
            if not intent.ok:
                return intent

            settle = asyncio.ensure_future(self._settle(cart, intent.value, contact_email, payment))
            self._settling.add(settle)
            settle.add_done_callback(self._settled)
            return await asyncio.shield(settle)
        finally:
            if settle is None:
                self._in_flight = False

    def _settled(self, task: asyncio.Task) -> None:
        self._settling.discard(task)
        self._in_flight = False
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Checkout settlement crashed", error=repr(exc))
            return
        result = task.result()
        if not result.ok:
            logger.info("Checkout settled with error", kind=result.kind.value, **result.details)

    async def _create_intent(self, cart: CartSnapshot, contact_email: str) -> Result[PaymentIntent]:
        if cart.total <= 0:
            # The gateway cannot charge a zero amount.
            logger.warning("Checkout refused for a cart with no amount to charge", lines=len(cart.lines))
            return Err.of(ErrorKind.INTENT_CREATION_FAILED, "Nothing to charge for this cart", amount=cart.total)
        try:
            request = PaymentIntentRequest(
                monto=cart.total,
                email=contact_email,
                descripcion=f"{len(cart.lines)} producto(s) - {self._store_name}",
            )
        except ValidationError as exc:
            logger.warning("Payment intent request rejected locally", amount=cart.total, error=str(exc))
            return Err.of(ErrorKind.INTENT_CREATION_FAILED, str(exc))
        try:
            created = await self._backend.create_payment_intent(request)
        except BackendError as exc:
            logger.warning("Payment intent creation failed", amount=cart.total, error=str(exc))
            return Err.of(ErrorKind.INTENT_CREATION_FAILED, str(exc))

        if not created.client_secret:
            return Err.of(ErrorKind.INTENT_CREATION_FAILED, "Backend returned no client secret")

        intent = PaymentIntent(
            client_secret=created.client_secret,
            gateway_intent_id=created.payment_intent_id or intent_id_from_secret(created.client_secret),
            amount=created.amount if created.amount is not None else cart.total,
            currency=created.currency or self._currency,
        )
        logger.info("Payment intent created", intent_id=intent.gateway_intent_id, amount=intent.amount)
        return Ok(intent)

    async def _settle(
        self,
        cart: CartSnapshot,
        intent: PaymentIntent,
        contact_email: str,
        payment: PaymentDetails,
    ) -> Result[OrderConfirmation]:
        confirmation = await self._confirm(cart, intent, contact_email, payment)
        if not confirmation.ok:
            return confirmation

        intent_id = confirmation.value.intent_id or intent.gateway_intent_id
        materialized = await self._materializer.materialize(cart, intent_id)
        if not materialized.ok:
            self._record_case(intent_id, intent.amount, intent.currency, cart, materialized.message)
            return Err.of(
                ErrorKind.POST_PAYMENT_RECONCILIATION_FAILED,
                materialized.message,
                intent_id=intent_id,
                amount=intent.amount,
            )

        return Ok(self._complete(materialized.value, intent.amount))

    async def _confirm(
        self,
        cart: CartSnapshot,
        intent: PaymentIntent,
        contact_email: str,
        payment: PaymentDetails,
    ) -> Result[GatewayConfirmation]:
        intent_id = intent.gateway_intent_id
        gateway_call = asyncio.ensure_future(
            self._gateway.confirm_card_payment(intent.client_secret, payment, contact_email)
        )
        try:
            confirmation = await asyncio.wait_for(asyncio.shield(gateway_call), self._confirmation_timeout)
        except TimeoutError:
            logger.error("Payment confirmation still running after timeout", intent_id=intent_id)
            self._unsettled.add(gateway_call)
            gateway_call.add_done_callback(lambda task: self._late_confirmation(task, cart, intent))
            return Err.of(ErrorKind.PAYMENT_STATUS_UNKNOWN, "Confirmation timed out", intent_id=intent_id)
        except GatewayTimeout as exc:
            logger.error("Payment confirmation timed out", intent_id=intent_id, error=str(exc))
            return Err.of(ErrorKind.PAYMENT_STATUS_UNKNOWN, str(exc), intent_id=intent_id)
        except GatewayError as exc:
            logger.error("Payment confirmation failed without a verdict", intent_id=intent_id, error=str(exc))
            return Err.of(ErrorKind.PAYMENT_STATUS_UNKNOWN, str(exc), intent_id=intent_id)

        if confirmation.succeeded:
            logger.info("Payment captured", intent_id=intent_id, amount=intent.amount)
            return Ok(confirmation)
        if confirmation.pending:
            logger.warning("Payment not settled yet", intent_id=intent_id, status=confirmation.status)
            return Err.of(
                ErrorKind.PAYMENT_STATUS_UNKNOWN,
                f"Payment status: {confirmation.status}",
                intent_id=intent_id,
                status=confirmation.status,
            )

        logger.info("Payment declined", intent_id=intent_id, decline_code=confirmation.decline_code)
        return Err.of(
            ErrorKind.PAYMENT_DECLINED,
            confirmation.error_message or f"Payment status: {confirmation.status}",
            intent_id=intent_id,
            decline_code=confirmation.decline_code,
        )

    def _late_confirmation(self, task: asyncio.Task, cart: CartSnapshot, intent: PaymentIntent) -> None:
        """A confirmation we stopped waiting for has finished; record it if money moved."""
        self._unsettled.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Late payment confirmation failed", intent_id=intent.gateway_intent_id, error=str(exc))
            return
        confirmation = task.result()
        if confirmation.succeeded:
            self._record_case(
                confirmation.intent_id or intent.gateway_intent_id,
                intent.amount,
                intent.currency,
                cart,
                "Payment captured after confirmation timed out",
            )
        else:
            logger.info(
                "Late payment confirmation settled without capture",
                intent_id=intent.gateway_intent_id,
                status=confirmation.status,
            )

    def _record_case(self, intent_id: str, amount: float, currency: str, cart: CartSnapshot, reason: str) -> None:
        try:
            self._reconciliation.record(intent_id=intent_id, amount=amount, currency=currency, cart=cart, reason=reason)
        except StorageError:
            # Last resort: the log line is then the only record of the charge.
            logger.critical(
                "Reconciliation case could not be stored",
                intent_id=intent_id,
                amount=amount,
                currency=currency,
                lines=[line.to_document() for line in cart.lines],
                exc_info=True,
            )

    def _complete(self, order: MaterializedOrder, amount: float) -> OrderConfirmation:
        try:
            self._cart_store.clear(reason="order_placed")
        except StorageError:
            # The order exists; a stale cart on disk must not turn this into a failure.
            logger.error("Cart could not be cleared after order", order_id=order.order_id, exc_info=True)
        self._apply_points(order)

        return OrderConfirmation(
            order_id=order.order_id,
            gateway_intent_id=order.intent_id,
            amount=amount,
            points_earned=order.points_earned,
            payment_linked=order.payment_linked,
        )

    def _apply_points(self, order: MaterializedOrder) -> None:
        if not order.points_earned or order.replayed:
            return
        try:
            self._loyalty.apply_earned(order.points_earned)
        except StorageError:
            # The next authoritative refresh brings the balance back in line.
            logger.error(
                "Earned points could not be cached",
                order_id=order.order_id,
                points=order.points_earned,
                exc_info=True,
            )

    # -------------------------------------------------------------------
    # Follow-ups the shopper or support trigger explicitly
    # -------------------------------------------------------------------
    async def check_payment_status(self, gateway_intent_id: str) -> Result[PaymentStatusReport]:
        try:
            report = await self._backend.get_payment_status(gateway_intent_id)
        except BackendError as exc:
            logger.warning("Payment status lookup failed", intent_id=gateway_intent_id, error=str(exc))
            return Err.of(ErrorKind.PAYMENT_STATUS_CHECK_FAILED, str(exc), intent_id=gateway_intent_id)
        return Ok(report)

    async def retry_materialization(self, gateway_intent_id: str) -> Result[OrderConfirmation]:
        """Retry order creation for a recorded reconciliation case."""
        case = self._reconciliation.get(gateway_intent_id)
        if case is None or case.resolved:
            return Err.of(ErrorKind.RECONCILIATION_NOT_FOUND, intent_id=gateway_intent_id)

        materialized = await self._materializer.materialize(case.cart, gateway_intent_id)
        if not materialized.ok:
            self._record_case(gateway_intent_id, case.amount, case.currency, case.cart, materialized.message)
            return Err.of(
                ErrorKind.POST_PAYMENT_RECONCILIATION_FAILED,
                materialized.message,
                intent_id=gateway_intent_id,
                amount=case.amount,
            )

        order = materialized.value
        try:
            self._reconciliation.resolve(gateway_intent_id, order.order_id)
        except StorageError:
            logger.error(
                "Reconciliation case could not be marked resolved",
                intent_id=gateway_intent_id,
                order_id=order.order_id,
                exc_info=True,
            )
        if self._cart_store.snapshot() == case.cart:
            return Ok(self._complete(order, case.amount))

        # The shopper has changed the cart since; leave their new selection alone.
        self._apply_points(order)
        return Ok(
            OrderConfirmation(
                order_id=order.order_id,
                gateway_intent_id=gateway_intent_id,
                amount=case.amount,
                points_earned=order.points_earned,
                payment_linked=order.payment_linked,
            )
        )
