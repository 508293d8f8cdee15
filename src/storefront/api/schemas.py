"""Pydantic request/response schemas for the storefront backend API.

These are external contracts (anti-corruption layer). The backend speaks
Spanish field names (``nombre``, ``precio``, ``estado`` ...); everything past
this module uses the core's own names.
"""

from datetime import datetime
from typing import Annotated, Any

from pydantic import AliasChoices, AliasPath, BaseModel, BeforeValidator, Field

from storefront.fulfillment.state_machine import FulfillmentStatus

# Backend ids arrive as integers or strings; the core always holds strings.
WireId = Annotated[str, BeforeValidator(lambda value: str(value))]


def wire_id(value: str) -> int | str:
    """Turn a core id back into the form the backend stores (integers stay integers)."""
    return int(value) if value.isdigit() else value


class _Response(BaseModel):
    model_config = {"populate_by_name": True, "extra": "ignore"}


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------
class Product(_Response):
    id: WireId
    name: str = Field(validation_alias=AliasChoices("nombre", "name"))
    price: float = Field(ge=0, validation_alias=AliasChoices("precio", "price"))
    available: bool = Field(default=True, validation_alias=AliasChoices("disponible", "available"))
    description: str | None = Field(default=None, validation_alias=AliasChoices("descripcion", "description"))
    category: str | None = Field(default=None, validation_alias=AliasChoices("categoria", "category"))


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class OrderItemRequest(BaseModel):
    producto_id: int | str
    cantidad: int = Field(ge=1)
    notas: str | None = None


class CreateOrderRequest(BaseModel):
    items: list[OrderItemRequest]
    payment_intent_id: str | None = None


class UpdateOrderStatusRequest(BaseModel):
    estado: FulfillmentStatus

    model_config = {"use_enum_values": True}


class TrackedOrderItem(_Response):
    product_id: WireId = Field(validation_alias=AliasChoices("producto_id", "product_id"))
    quantity: int = Field(validation_alias=AliasChoices("cantidad", "quantity"))
    unit_price: float | None = Field(default=None, validation_alias=AliasChoices("precio_unitario", "unit_price"))
    notes: str | None = Field(
        default=None,
        validation_alias=AliasChoices("notas_personalizadas", "notas", "notes"),
    )
    product_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices(AliasPath("Producto", "nombre"), "producto_nombre", "product_name"),
    )


class TrackedOrder(_Response):
    """An order as the backend reports it. Immutable from the client's side."""

    model_config = {"populate_by_name": True, "extra": "ignore", "frozen": True}

    id: WireId
    status: FulfillmentStatus = Field(validation_alias=AliasChoices("estado", "status"))
    items: tuple[TrackedOrderItem, ...] = ()
    total_to_pay: float | None = Field(default=None, validation_alias=AliasChoices("total_pagar", "total_to_pay"))
    created_at: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("fecha_creacion", "createdAt", "created_at"),
    )
    customer_id: WireId | None = Field(
        default=None,
        validation_alias=AliasChoices("usuario_id", "userId", "customer_id"),
    )
    customer_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices(AliasPath("User", "nombre"), "customer_name"),
    )


class CreatedOrder(_Response):
    id: WireId = Field(validation_alias=AliasChoices("id", "pedido_id", AliasPath("pedido", "id")))
    status: FulfillmentStatus = Field(
        default=FulfillmentStatus.PENDING,
        validation_alias=AliasChoices("estado", AliasPath("pedido", "estado"), "status"),
    )
    total_to_pay: float | None = Field(
        default=None,
        validation_alias=AliasChoices("total_pagar", AliasPath("pedido", "total_pagar")),
    )
    points_earned: int = Field(default=0, validation_alias=AliasChoices("puntos_ganados", "points_earned"))


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------
class PaymentIntentRequest(BaseModel):
    monto: float = Field(gt=0)
    email: str
    descripcion: str
    metodo_pago: str = "tarjeta"


class PaymentIntentCreated(_Response):
    client_secret: str = Field(validation_alias=AliasChoices("clientSecret", "client_secret"))
    payment_intent_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("paymentIntentId", "payment_intent_id"),
    )
    amount: float | None = Field(default=None, validation_alias=AliasChoices("monto", "amount"))
    currency: str | None = Field(default=None, validation_alias=AliasChoices("moneda", "currency"))


class ConfirmedProduct(BaseModel):
    producto_id: int | str
    cantidad: int
    precio_unitario: float
    notas_personalizadas: str | None = None


class ConfirmPaymentRequest(BaseModel):
    payment_intent_id: str
    pedido_id: int | str | None = None
    metodo_pago: str = "tarjeta"
    productos: list[ConfirmedProduct] = []


class PaymentStatusReport(_Response):
    payment_intent_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("payment_intent_id", "paymentIntentId", "id"),
    )
    status: str = Field(validation_alias=AliasChoices("estado", "status"))
    order_id: WireId | None = Field(default=None, validation_alias=AliasChoices("pedido_id", "order_id"))
    amount: float | None = Field(default=None, validation_alias=AliasChoices("monto", "amount"))


# ---------------------------------------------------------------------------
# Loyalty / users
# ---------------------------------------------------------------------------
class LoyaltyAdjustRequest(BaseModel):
    userId: int | str
    points: int


class UserSummary(_Response):
    id: WireId
    name: str | None = Field(default=None, validation_alias=AliasChoices("nombre", "name"))
    email: str | None = None
    points: int = Field(default=0, validation_alias=AliasChoices("puntos_actuales", "points"))


def dump(model: BaseModel) -> dict[str, Any]:
    """Serialise a request model to the JSON body the backend expects."""
    return model.model_dump(mode="json", exclude_none=True)
