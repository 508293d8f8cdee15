"""Async HTTP client for the storefront backend.

One thin method per endpoint. Every method either returns the decoded payload
(``{"data": ...}`` envelopes unwrapped, lists and models parsed) or raises a
``BackendError`` subclass. Deciding what a failure means for the shopper is
left to the caller.
"""

from collections.abc import Callable
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from storefront.api.errors import (
    BackendRejected,
    BackendTimeout,
    BackendUnavailable,
    MalformedResponse,
)
from storefront.api.schemas import (
    ConfirmPaymentRequest,
    CreatedOrder,
    CreateOrderRequest,
    LoyaltyAdjustRequest,
    PaymentIntentCreated,
    PaymentIntentRequest,
    PaymentStatusReport,
    Product,
    UpdateOrderStatusRequest,
    UserSummary,
    dump,
)
from storefront.fulfillment.state_machine import FulfillmentStatus

logger = structlog.get_logger(__name__)

TokenProvider = Callable[[], str | None]


def _unwrap(body: Any) -> Any:
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body


class BackendClient:
    """Backend API client over a shared ``httpx.AsyncClient``."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        token_provider: TokenProvider | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url
        self._token_provider = token_provider
        self._http = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # -------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------
    def _headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers = dict(extra or {})
        token = self._token_provider() if self._token_provider else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        json: Any = None,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        try:
            response = await self._http.request(
                method,
                path,
                json=json,
                params=params,
                headers=self._headers(headers),
            )
        except httpx.TimeoutException as exc:
            logger.warning("Backend request timed out", method=method, path=path)
            raise BackendTimeout(f"{method} {path} timed out", method, path) from exc
        except httpx.TransportError as exc:
            logger.warning("Backend unreachable", method=method, path=path, error=str(exc))
            raise BackendUnavailable(f"{method} {path} failed: {exc}", method, path) from exc

        if response.status_code >= 400:
            rejected = BackendRejected.from_response(response, method, path)
            logger.warning(
                "Backend rejected request",
                method=method,
                path=path,
                status_code=rejected.status_code,
                detail=rejected.detail,
            )
            raise rejected

        if response.status_code == 204 or not response.content:
            return None
        try:
            return _unwrap(response.json())
        except ValueError as exc:
            raise MalformedResponse(f"{method} {path} returned a non-JSON body", method, path) from exc

    @staticmethod
    def _parse(model, payload: Any, method: str, path: str):
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise MalformedResponse(f"{method} {path} returned an unexpected body: {exc}", method, path) from exc

    @staticmethod
    def _expect_list(payload: Any, method: str, path: str) -> list[Any]:
        if not isinstance(payload, list):
            raise MalformedResponse(f"{method} {path} did not return a list", method, path)
        return payload

    # -------------------------------------------------------------------
    # Catalogue
    # -------------------------------------------------------------------
    async def list_products(self) -> list[Product]:
        payload = self._expect_list(await self._request("GET", "/products"), "GET", "/products")
        return [self._parse(Product, row, "GET", "/products") for row in payload]

    async def create_product(self, fields: dict[str, Any]) -> Any:
        return await self._request("POST", "/products", json=fields)

    async def update_product(self, product_id: str, fields: dict[str, Any]) -> Any:
        return await self._request("PUT", f"/products/{product_id}", json=fields)

    async def delete_product(self, product_id: str) -> Any:
        return await self._request("DELETE", f"/products/{product_id}")

    # -------------------------------------------------------------------
    # Orders
    # -------------------------------------------------------------------
    async def create_order(self, request: CreateOrderRequest, idempotency_key: str | None = None) -> CreatedOrder:
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        payload = await self._request("POST", "/orders", json=dump(request), headers=headers)
        return self._parse(CreatedOrder, payload, "POST", "/orders")

    async def list_my_orders(self) -> list[dict[str, Any]]:
        return self._expect_list(await self._request("GET", "/orders/my-orders"), "GET", "/orders/my-orders")

    async def list_orders(self) -> list[dict[str, Any]]:
        return self._expect_list(await self._request("GET", "/orders"), "GET", "/orders")

    async def update_order_status(self, order_id: str, status: FulfillmentStatus) -> Any:
        request = UpdateOrderStatusRequest(estado=status)
        return await self._request("PATCH", f"/orders/{order_id}/status", json=dump(request))

    # -------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------
    async def create_payment_intent(self, request: PaymentIntentRequest) -> PaymentIntentCreated:
        payload = await self._request("POST", "/payments/create-intent", json=dump(request))
        return self._parse(PaymentIntentCreated, payload, "POST", "/payments/create-intent")

    async def confirm_payment(self, request: ConfirmPaymentRequest) -> Any:
        return await self._request("POST", "/payments/confirm", json=dump(request))

    async def get_payment_status(self, payment_intent_id: str) -> PaymentStatusReport:
        path = f"/payments/status/{payment_intent_id}"
        payload = await self._request("GET", path)
        return self._parse(PaymentStatusReport, payload, "GET", path)

    # -------------------------------------------------------------------
    # Loyalty / users
    # -------------------------------------------------------------------
    async def adjust_loyalty(self, request: LoyaltyAdjustRequest) -> Any:
        return await self._request("POST", "/loyalty/adjust", json=dump(request))

    async def list_users(self) -> list[UserSummary]:
        payload = self._expect_list(await self._request("GET", "/users"), "GET", "/users")
        return [self._parse(UserSummary, row, "GET", "/users") for row in payload]
