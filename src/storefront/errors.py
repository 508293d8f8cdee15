"""Error taxonomy for the storefront core.

Every failure the core can report carries an ``ErrorKind``. The kind decides
the plain-language message shown to the shopper, whether an explicit retry
is safe, and how loudly it is logged.
"""

from enum import Enum


class Severity(Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorKind(Enum):
    PRODUCT_UNAVAILABLE = "ProductUnavailable"
    EMPTY_CART = "EmptyCart"
    INVALID_CHECKOUT_DETAILS = "InvalidCheckoutDetails"
    CHECKOUT_IN_PROGRESS = "CheckoutInProgress"
    INTENT_CREATION_FAILED = "IntentCreationFailed"
    PAYMENT_DECLINED = "PaymentDeclined"
    PAYMENT_STATUS_UNKNOWN = "PaymentStatusUnknown"
    PAYMENT_STATUS_CHECK_FAILED = "PaymentStatusCheckFailed"
    ORDER_CREATION_FAILED = "OrderCreationFailed"
    POST_PAYMENT_RECONCILIATION_FAILED = "PostPaymentReconciliationFailed"
    RECONCILIATION_NOT_FOUND = "ReconciliationNotFound"
    INVALID_TRANSITION = "InvalidTransition"
    STATUS_UPDATE_FAILED = "StatusUpdateFailed"
    POLL_FAILED = "PollFailed"
    LOYALTY_ADJUSTMENT_FAILED = "LoyaltyAdjustmentFailed"
    LOYALTY_REFRESH_FAILED = "LoyaltyRefreshFailed"

    @property
    def message(self) -> str:
        return _USER_MESSAGES[self]

    @property
    def retryable(self) -> bool:
        """Whether the user may safely try the same action again."""
        return self in _RETRYABLE

    @property
    def severity(self) -> Severity:
        return _SEVERITY.get(self, Severity.WARNING)


_USER_MESSAGES = {
    ErrorKind.PRODUCT_UNAVAILABLE: "This item is sold out right now.",
    ErrorKind.EMPTY_CART: "Your cart is empty. Add something before paying.",
    ErrorKind.INVALID_CHECKOUT_DETAILS: "Please enter a valid email address before paying.",
    ErrorKind.CHECKOUT_IN_PROGRESS: "Your payment is already being processed. Please wait.",
    ErrorKind.INTENT_CREATION_FAILED: "We could not start the payment. Nothing was charged, please try again.",
    ErrorKind.PAYMENT_DECLINED: "Your card was declined. Your cart is saved, try another card.",
    ErrorKind.PAYMENT_STATUS_UNKNOWN: (
        "We could not confirm whether your payment went through. "
        "Your cart is saved. Please check your payment status before paying again."
    ),
    ErrorKind.PAYMENT_STATUS_CHECK_FAILED: "We could not look up your payment status. Please try again shortly.",
    ErrorKind.ORDER_CREATION_FAILED: "We could not create your order.",
    ErrorKind.POST_PAYMENT_RECONCILIATION_FAILED: (
        "Your payment was successful but we could not create your order. "
        "Please contact support with your payment reference; your cart has been kept."
    ),
    ErrorKind.RECONCILIATION_NOT_FOUND: "There is no pending payment with that reference.",
    ErrorKind.INVALID_TRANSITION: "This order cannot move to another stage.",
    ErrorKind.STATUS_UPDATE_FAILED: "The order status could not be updated. Please try again.",
    ErrorKind.POLL_FAILED: "Showing the last known order status; reconnecting.",
    ErrorKind.LOYALTY_ADJUSTMENT_FAILED: "The points adjustment could not be saved. Please try again.",
    ErrorKind.LOYALTY_REFRESH_FAILED: "Your points balance could not be refreshed; showing the last known value.",
}

_RETRYABLE = {
    ErrorKind.INTENT_CREATION_FAILED,
    ErrorKind.PAYMENT_DECLINED,
    ErrorKind.PAYMENT_STATUS_CHECK_FAILED,
    ErrorKind.ORDER_CREATION_FAILED,
    ErrorKind.STATUS_UPDATE_FAILED,
    ErrorKind.POLL_FAILED,
    ErrorKind.LOYALTY_ADJUSTMENT_FAILED,
    ErrorKind.LOYALTY_REFRESH_FAILED,
}

_SEVERITY = {
    ErrorKind.PRODUCT_UNAVAILABLE: Severity.INFO,
    ErrorKind.EMPTY_CART: Severity.INFO,
    ErrorKind.INVALID_CHECKOUT_DETAILS: Severity.INFO,
    ErrorKind.CHECKOUT_IN_PROGRESS: Severity.INFO,
    ErrorKind.PAYMENT_DECLINED: Severity.INFO,
    ErrorKind.PAYMENT_STATUS_UNKNOWN: Severity.ERROR,
    ErrorKind.ORDER_CREATION_FAILED: Severity.ERROR,
    ErrorKind.POST_PAYMENT_RECONCILIATION_FAILED: Severity.CRITICAL,
    ErrorKind.INVALID_TRANSITION: Severity.ERROR,
}


class StorefrontError(Exception):
    """Base class for errors raised (not returned) by the storefront core."""

    kind: ErrorKind

    def __init__(self, message: str | None = None, kind: ErrorKind | None = None) -> None:
        if kind is not None:
            self.kind = kind
        super().__init__(message or self.kind.message)


class ProductUnavailable(StorefrontError):
    kind = ErrorKind.PRODUCT_UNAVAILABLE

    def __init__(self, product_id: str, name: str | None = None) -> None:
        self.product_id = product_id
        super().__init__(f"Product {name or product_id} is not available")


class InvalidTransition(StorefrontError):
    kind = ErrorKind.INVALID_TRANSITION

    def __init__(self, current_status: str, action: str = "advance") -> None:
        self.current_status = current_status
        self.action = action
        super().__init__(f"Cannot {action} an order in status {current_status}")
