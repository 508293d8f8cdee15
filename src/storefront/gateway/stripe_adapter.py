"""Stripe payment gateway adapter.

Confirms a PaymentIntent from the client side the way Stripe.js does: a
``POST /v1/payment_intents/{id}/confirm`` authenticated with the publishable
key and carrying the intent's client secret. Billing details (email, zip) are
attached when the UI tokenises the card into ``payment_method``, so they are
not resent here. Card errors come back as HTTP 402 with the intent
attached; anything without a verdict becomes a GatewayError so checkout
treats the charge as unknown.
"""

import httpx
import structlog

from storefront.gateway.port import (
    REQUIRES_PAYMENT_METHOD,
    GatewayConfirmation,
    GatewayError,
    GatewayTimeout,
    PaymentDetails,
    PaymentGateway,
    intent_id_from_secret,
)

logger = structlog.get_logger(__name__)

STRIPE_API_BASE = "https://api.stripe.com"


class StripeGateway(PaymentGateway):
    """Production Stripe gateway adapter."""

    def __init__(
        self,
        publishable_key: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        api_base: str = STRIPE_API_BASE,
    ) -> None:
        self.publishable_key = publishable_key
        self.timeout = timeout
        self.api_base = api_base
        self._transport = transport

    async def confirm_card_payment(
        self,
        client_secret: str,
        payment: PaymentDetails,
        email: str,
    ) -> GatewayConfirmation:
        intent_id = intent_id_from_secret(client_secret)
        form = {
            "client_secret": client_secret,
            "payment_method": payment.payment_method,
        }

        async with httpx.AsyncClient(
            base_url=self.api_base,
            timeout=self.timeout,
            transport=self._transport,
            auth=(self.publishable_key, ""),
        ) as client:
            try:
                response = await client.post(f"/v1/payment_intents/{intent_id}/confirm", data=form)
            except httpx.TimeoutException as exc:
                raise GatewayTimeout(f"Stripe confirmation of {intent_id} timed out") from exc
            except httpx.TransportError as exc:
                raise GatewayError(f"Stripe unreachable while confirming {intent_id}: {exc}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise GatewayError(f"Stripe returned a non-JSON body ({response.status_code})") from exc

        if response.status_code == 200:
            return GatewayConfirmation(status=body.get("status", ""), intent_id=body.get("id", intent_id))

        error = body.get("error", {}) if isinstance(body, dict) else {}
        if response.status_code == 402 or error.get("type") == "card_error":
            intent = error.get("payment_intent") or {}
            logger.info("Stripe declined card", intent_id=intent_id, decline_code=error.get("decline_code"))
            return GatewayConfirmation(
                status=intent.get("status", REQUIRES_PAYMENT_METHOD),
                intent_id=intent.get("id", intent_id),
                error_message=error.get("message", "Your card was declined."),
                decline_code=error.get("decline_code") or error.get("code"),
            )

        raise GatewayError(f"Stripe returned {response.status_code}: {error.get('message', 'unknown error')}")
