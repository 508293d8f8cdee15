"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- FakeGateway for development and testing
- StripeGateway for production, selected with PAYMENT_GATEWAY=stripe

A StorefrontSession registers its gateway here on start; checkout resolves
the gateway through get_gateway().
"""

from storefront.config import StorefrontSettings
from storefront.gateway.port import PaymentGateway

_current_gateway: PaymentGateway | None = None


def build_gateway(settings: StorefrontSettings) -> PaymentGateway:
    """Create the gateway named by ``settings.payment_gateway``."""
    if settings.payment_gateway == "stripe":
        from storefront.gateway.stripe_adapter import StripeGateway

        if not settings.stripe_publishable_key:
            raise ValueError("STRIPE_PUBLISHABLE_KEY is required for the Stripe gateway")
        return StripeGateway(publishable_key=settings.stripe_publishable_key)
    if settings.payment_gateway == "fake":
        from storefront.gateway.fake_adapter import FakeGateway

        return FakeGateway()
    raise ValueError(f"Unknown payment gateway: {settings.payment_gateway}")


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway, building it from the environment on first use."""
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = build_gateway(StorefrontSettings.from_env())
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None
