"""Payment gateway port (abstract interface).

The backend creates the payment intent; the client confirms it with the
gateway using the intent's client secret. The gateway alone decides whether
funds were captured. This contract lets FakeGateway (dev/test) and
StripeGateway (production) be swapped without touching checkout code.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

SUCCEEDED = "succeeded"
PROCESSING = "processing"
REQUIRES_ACTION = "requires_action"
REQUIRES_PAYMENT_METHOD = "requires_payment_method"
CANCELED = "canceled"

# Statuses where the charge may still complete after we stop waiting.
PENDING_STATUSES = frozenset({PROCESSING, REQUIRES_ACTION})


class GatewayError(Exception):
    """The confirmation call failed without a definitive answer from the gateway."""


class GatewayTimeout(GatewayError):
    """The confirmation call timed out; the charge may or may not have been captured."""


@dataclass(frozen=True)
class PaymentDetails:
    """What the payer entered: a gateway payment method reference and billing zip."""

    payment_method: str
    billing_zip: str = "00000"


@dataclass(frozen=True)
class GatewayConfirmation:
    """Result of a confirmation attempt the gateway actually answered."""

    status: str
    intent_id: str | None = None
    error_message: str | None = None
    decline_code: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCEEDED

    @property
    def pending(self) -> bool:
        return self.status in PENDING_STATUSES


def intent_id_from_secret(client_secret: str) -> str:
    """Stripe-style client secrets are ``<intent id>_secret_<nonce>``."""
    intent_id, sep, _ = client_secret.partition("_secret_")
    return intent_id if sep else client_secret


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    async def confirm_card_payment(
        self,
        client_secret: str,
        payment: PaymentDetails,
        email: str,
    ) -> GatewayConfirmation:
        """Confirm the intent behind ``client_secret``.

        Returns the gateway's verdict. Raises GatewayTimeout or GatewayError
        when no verdict was received.
        """
        ...
