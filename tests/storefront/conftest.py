import asyncio
import copy
from datetime import UTC, datetime

import httpx
import pytest
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.pytest import DomainFixture

API_BASE_URL = "http://backend.test/api"

CATALOGUE = [
    {"id": 1, "nombre": "Crepa Nutella", "precio": 50.0, "disponible": True, "categoria": "dulce"},
    {"id": 2, "nombre": "Crepa Jamon y Queso", "precio": 30.0, "disponible": True, "categoria": "salada"},
    {"id": 3, "nombre": "Crepa de Temporada", "precio": 45.0, "disponible": False, "categoria": "dulce"},
]


class FakeBackend:
    """In-process stand-in for the storefront REST backend.

    Speaks the backend's Spanish wire format. Any route can be made to fail
    with ``fail(route, status_code)``; every request is recorded.
    """

    def __init__(self):
        self.products = copy.deepcopy(CATALOGUE)
        self.orders: list[dict] = []
        self.users = [
            {"id": 7, "nombre": "Ana", "email": "ana@example.com", "puntos_actuales": 120},
            {"id": 8, "nombre": "Luis", "email": "luis@example.com", "puntos_actuales": 0},
        ]
        self.intents: dict[str, dict] = {}
        self.current_user_id = 7
        self.failures: dict[str, tuple[int, dict]] = {}
        self.requests: list[dict] = []
        self._next_order_id = 100
        self._next_intent = 1

    # -- test controls ---------------------------------------------------
    def fail(self, route, status_code=500, body=None):
        self.failures[route] = (status_code, body or {"error": "Internal server error"})

    def recover(self, route):
        self.failures.pop(route, None)

    def calls(self, route):
        return [r for r in self.requests if r["route"] == route]

    def add_order(self, status="pendiente", user_id=7, total=50.0, items=None):
        order = {
            "id": self._next_order_id,
            "estado": status,
            "total_pagar": total,
            "fecha_creacion": datetime.now(UTC).isoformat(),
            "usuario_id": user_id,
            "User": {"nombre": next((u["nombre"] for u in self.users if u["id"] == user_id), None)},
            "items": items or [{"producto_id": 1, "cantidad": 1, "precio_unitario": 50.0, "Producto": {"nombre": "Crepa Nutella"}}],
        }
        self._next_order_id += 1
        self.orders.append(order)
        return order

    def order(self, order_id):
        return next((o for o in self.orders if str(o.get("id")) == str(order_id)), None)

    # -- app -------------------------------------------------------------
    async def _enter(self, route, request: Request):
        body = None
        if request.method in ("POST", "PUT", "PATCH"):
            raw = await request.body()
            body = await request.json() if raw else None
        self.requests.append(
            {
                "route": route,
                "method": request.method,
                "path": request.url.path,
                "json": body,
                "headers": dict(request.headers),
            }
        )
        if route in self.failures:
            status_code, payload = self.failures[route]
            return body, JSONResponse(payload, status_code=status_code)
        return body, None

    def build_app(self):
        router = APIRouter(prefix="/api")

        @router.get("/products")
        async def list_products(request: Request):
            _, failure = await self._enter("products", request)
            return failure or self.products

        @router.post("/payments/create-intent")
        async def create_intent(request: Request):
            body, failure = await self._enter("create_intent", request)
            if failure:
                return failure
            intent_id = f"pi_test_{self._next_intent}"
            self._next_intent += 1
            self.intents[intent_id] = {"monto": body["monto"], "estado": "requires_confirmation", "pedido_id": None}
            return {"clientSecret": f"{intent_id}_secret_abc", "paymentIntentId": intent_id}

        @router.post("/payments/confirm")
        async def confirm_payment(request: Request):
            body, failure = await self._enter("confirm_payment", request)
            if failure:
                return failure
            intent = self.intents.setdefault(body["payment_intent_id"], {"monto": None})
            intent.update(estado="succeeded", pedido_id=body.get("pedido_id"))
            return {"success": True}

        @router.get("/payments/status/{intent_id}")
        async def payment_status(intent_id: str, request: Request):
            _, failure = await self._enter("payment_status", request)
            if failure:
                return failure
            intent = self.intents.get(intent_id)
            if intent is None:
                return JSONResponse({"error": "Payment intent not found"}, status_code=404)
            return {"payment_intent_id": intent_id, **intent}

        @router.post("/orders")
        async def create_order(request: Request):
            body, failure = await self._enter("create_order", request)
            if failure:
                return failure
            prices = {p["id"]: p["precio"] for p in self.products}
            total = round(sum(prices[i["producto_id"]] * i["cantidad"] for i in body["items"]), 2)
            order = self.add_order(
                total=total,
                user_id=self.current_user_id,
                items=[
                    {"producto_id": i["producto_id"], "cantidad": i["cantidad"], "notas_personalizadas": i.get("notas")}
                    for i in body["items"]
                ],
            )
            payload = {"id": order["id"], "estado": order["estado"], "total_pagar": total, "puntos_ganados": int(total // 10)}
            return JSONResponse({"data": payload}, status_code=201)

        @router.get("/orders/my-orders")
        async def my_orders(request: Request):
            _, failure = await self._enter("my_orders", request)
            if failure:
                return failure
            return [o for o in self.orders if not isinstance(o, dict) or o.get("usuario_id") == self.current_user_id]

        @router.get("/orders")
        async def all_orders(request: Request):
            _, failure = await self._enter("list_orders", request)
            return failure or {"data": self.orders}

        @router.patch("/orders/{order_id}/status")
        async def update_status(order_id: str, request: Request):
            body, failure = await self._enter("update_status", request)
            if failure:
                return failure
            order = self.order(order_id)
            if order is None:
                return JSONResponse({"message": "Pedido no encontrado"}, status_code=404)
            order["estado"] = body["estado"]
            return {"data": order}

        @router.post("/loyalty/adjust")
        async def adjust_loyalty(request: Request):
            body, failure = await self._enter("loyalty", request)
            if failure:
                return failure
            user = next((u for u in self.users if u["id"] == body["userId"]), None)
            if user is None:
                return JSONResponse({"error": "Usuario no encontrado"}, status_code=404)
            user["puntos_actuales"] += body["points"]
            return {"success": True, "puntos_actuales": user["puntos_actuales"]}

        @router.get("/users")
        async def list_users(request: Request):
            _, failure = await self._enter("users", request)
            return failure or self.users

        app = FastAPI()
        app.include_router(router)
        return app


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    with storefront_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def _reset_adapters():
    yield

    from storefront.gateway import reset_gateway
    from storefront.storage import reset_storage

    reset_gateway()
    reset_storage()


@pytest.fixture()
def memory_store():
    from storefront.storage.memory_adapter import MemoryStore

    return MemoryStore()


@pytest.fixture()
def fake_gateway():
    from storefront.gateway.fake_adapter import FakeGateway

    return FakeGateway()


@pytest.fixture()
def fake_backend():
    return FakeBackend()


@pytest.fixture()
def backend_transport(fake_backend):
    return httpx.ASGITransport(app=fake_backend.build_app())


@pytest.fixture()
def backend_client(backend_transport):
    from storefront.api.client import BackendClient

    client = BackendClient(API_BASE_URL, timeout=5.0, transport=backend_transport)
    yield client
    asyncio.run(client.aclose())


@pytest.fixture()
def products():
    from storefront.api.schemas import Product

    return {row["id"]: Product.model_validate(row) for row in CATALOGUE}


@pytest.fixture()
def cart_store(memory_store):
    from storefront.cart.store import CartStore

    return CartStore(memory_store)


@pytest.fixture()
def loyalty(memory_store):
    from storefront.loyalty.balance import LoyaltyBalance

    return LoyaltyBalance(memory_store)


@pytest.fixture()
def reconciliation(memory_store):
    from storefront.checkout.reconciliation import ReconciliationLog

    return ReconciliationLog(memory_store)


@pytest.fixture()
def materializer(backend_client, memory_store):
    from storefront.checkout.materializer import OrderMaterializer

    return OrderMaterializer(backend_client, memory_store)


@pytest.fixture()
def coordinator(backend_client, fake_gateway, materializer, cart_store, loyalty, reconciliation):
    from storefront.checkout.coordinator import PaymentCoordinator

    return PaymentCoordinator(
        backend=backend_client,
        gateway=fake_gateway,
        materializer=materializer,
        cart_store=cart_store,
        loyalty=loyalty,
        reconciliation=reconciliation,
        store_name="Crepa Urbana",
        confirmation_timeout=2.0,
    )
