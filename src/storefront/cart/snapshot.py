"""Immutable cart snapshots and the persisted cart document.

A snapshot is what leaves the CartStore: checkout charges and orders exactly
the snapshot it was handed, observers render it, and persistence writes it.

Persisted shape (version 1):
    {"version": 1, "lines": [{"productId", "name", "unitPrice", "quantity", "available"}]}

The unversioned list the browser client used to write
(``[{"id", "nombre", "precio", "cantidad", "disponible"}]``) is read as version 0.
"""

from dataclasses import dataclass
from typing import Any

DOCUMENT_VERSION = 1


class CartDocumentError(ValueError):
    """A persisted cart document could not be read."""


@dataclass(frozen=True)
class CartLineSnapshot:
    product_id: str
    name: str
    unit_price: float
    quantity: int
    available: bool = True

    @property
    def subtotal(self) -> float:
        return round(self.unit_price * self.quantity, 2)

    def to_document(self) -> dict[str, Any]:
        return {
            "productId": self.product_id,
            "name": self.name,
            "unitPrice": self.unit_price,
            "quantity": self.quantity,
            "available": self.available,
        }


@dataclass(frozen=True)
class CartSnapshot:
    lines: tuple[CartLineSnapshot, ...] = ()

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def total(self) -> float:
        return round(sum(line.unit_price * line.quantity for line in self.lines), 2)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def line(self, product_id: str) -> CartLineSnapshot | None:
        return next((line for line in self.lines if line.product_id == str(product_id)), None)

    def to_document(self) -> dict[str, Any]:
        return {
            "version": DOCUMENT_VERSION,
            "lines": [line.to_document() for line in self.lines],
        }

    @classmethod
    def from_document(cls, document: Any) -> "CartSnapshot":
        if isinstance(document, list):
            return cls(lines=tuple(_legacy_line(row) for row in document))

        if not isinstance(document, dict):
            raise CartDocumentError(f"Unsupported cart document type: {type(document).__name__}")

        version = document.get("version")
        if version != DOCUMENT_VERSION:
            raise CartDocumentError(f"Unsupported cart document version: {version!r}")

        return cls(lines=tuple(_line(row) for row in document.get("lines", [])))


def _line(row: dict[str, Any]) -> CartLineSnapshot:
    try:
        line = CartLineSnapshot(
            product_id=str(row["productId"]),
            name=str(row["name"]),
            unit_price=float(row["unitPrice"]),
            quantity=int(row["quantity"]),
            available=bool(row.get("available", True)),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise CartDocumentError(f"Malformed cart line: {row!r}") from exc
    if line.quantity < 1:
        raise CartDocumentError(f"Cart line {line.product_id} has quantity {line.quantity}")
    return line


def _legacy_line(row: dict[str, Any]) -> CartLineSnapshot:
    try:
        return _line(
            {
                "productId": row["id"],
                "name": row["nombre"],
                "unitPrice": row["precio"],
                "quantity": row["cantidad"],
                "available": row.get("disponible", True),
            }
        )
    except (KeyError, TypeError) as exc:
        raise CartDocumentError(f"Malformed legacy cart line: {row!r}") from exc
