"""Configurable fake payment gateway for development and testing.

This adapter simulates the gateway's confirmation handshake without any
external calls. It can be configured at runtime to succeed, decline, stay
pending, time out or error, which covers every branch checkout has to handle.

Follows the same pattern as Stripe's test mode (test payment methods such as
``pm_card_chargeDeclined``) but simplified.
"""

import asyncio

from storefront.gateway.port import (
    PROCESSING,
    REQUIRES_PAYMENT_METHOD,
    SUCCEEDED,
    GatewayConfirmation,
    GatewayError,
    GatewayTimeout,
    PaymentDetails,
    PaymentGateway,
    intent_id_from_secret,
)

DECLINED_PAYMENT_METHOD = "pm_card_chargeDeclined"


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    OUTCOMES = ("succeed", "decline", "processing", "timeout", "error")

    def __init__(self) -> None:
        self.outcome: str = "succeed"
        self.failure_reason: str = "Your card was declined."
        self.delay: float = 0.0
        self.calls: list[dict] = []
        self.completed: list[GatewayConfirmation] = []

    def configure(self, outcome: str = "succeed", failure_reason: str = "Your card was declined.", delay: float = 0.0) -> None:
        """Configure gateway behavior at runtime."""
        if outcome not in self.OUTCOMES:
            raise ValueError(f"Unknown outcome: {outcome}")
        self.outcome = outcome
        self.failure_reason = failure_reason
        self.delay = delay

    async def confirm_card_payment(
        self,
        client_secret: str,
        payment: PaymentDetails,
        email: str,
    ) -> GatewayConfirmation:
        self.calls.append(
            {
                "method": "confirm_card_payment",
                "client_secret": client_secret,
                "payment_method": payment.payment_method,
                "billing_zip": payment.billing_zip,
                "email": email,
            }
        )
        if self.delay:
            await asyncio.sleep(self.delay)

        intent_id = intent_id_from_secret(client_secret)
        outcome = "decline" if payment.payment_method == DECLINED_PAYMENT_METHOD else self.outcome

        if outcome == "timeout":
            raise GatewayTimeout(f"Confirmation of {intent_id} timed out")
        if outcome == "error":
            raise GatewayError(f"Gateway unreachable while confirming {intent_id}")

        if outcome == "decline":
            confirmation = GatewayConfirmation(
                status=REQUIRES_PAYMENT_METHOD,
                intent_id=intent_id,
                error_message=self.failure_reason,
                decline_code="card_declined",
            )
        elif outcome == "processing":
            confirmation = GatewayConfirmation(status=PROCESSING, intent_id=intent_id)
        else:
            confirmation = GatewayConfirmation(status=SUCCEEDED, intent_id=intent_id)

        self.completed.append(confirmation)
        return confirmation
