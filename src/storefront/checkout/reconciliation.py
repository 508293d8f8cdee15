"""Reconciliation log — payments that were captured without an order.

When the gateway confirms a charge but the order cannot be created, the
intent id, amount and the exact cart that was charged are written here and
kept until support (or the shopper, explicitly) resolves the case. Nothing
in the core retries these on its own.
"""

from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Any

import structlog

from storefront.cart.snapshot import CartSnapshot
from storefront.storage import get_storage
from storefront.storage.port import KeyValueStore

logger = structlog.get_logger(__name__)

RECONCILIATION_STORAGE_KEY = "storefront.reconciliation"


@dataclass(frozen=True)
class ReconciliationCase:
    intent_id: str
    amount: float
    currency: str
    cart: CartSnapshot
    reason: str
    recorded_at: str
    attempts: int = 1
    resolved_order_id: str | None = None

    @property
    def resolved(self) -> bool:
        return self.resolved_order_id is not None

    def to_document(self) -> dict[str, Any]:
        return {
            "intentId": self.intent_id,
            "amount": self.amount,
            "currency": self.currency,
            "cart": self.cart.to_document(),
            "reason": self.reason,
            "recordedAt": self.recorded_at,
            "attempts": self.attempts,
            "resolvedOrderId": self.resolved_order_id,
        }

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "ReconciliationCase":
        return cls(
            intent_id=document["intentId"],
            amount=float(document["amount"]),
            currency=document.get("currency", "usd"),
            cart=CartSnapshot.from_document(document["cart"]),
            reason=document.get("reason", ""),
            recorded_at=document["recordedAt"],
            attempts=int(document.get("attempts", 1)),
            resolved_order_id=document.get("resolvedOrderId"),
        )


class ReconciliationLog:
    def __init__(self, storage: KeyValueStore | None = None) -> None:
        self._storage = storage or get_storage()

    def _all(self) -> dict[str, dict[str, Any]]:
        return self._storage.get(RECONCILIATION_STORAGE_KEY) or {}

    def record(self, intent_id: str, amount: float, currency: str, cart: CartSnapshot, reason: str) -> ReconciliationCase:
        cases = self._all()
        existing = cases.get(intent_id)
        if existing is not None:
            case = replace(
                ReconciliationCase.from_document(existing),
                reason=reason,
                attempts=int(existing.get("attempts", 1)) + 1,
            )
        else:
            case = ReconciliationCase(
                intent_id=intent_id,
                amount=amount,
                currency=currency,
                cart=cart,
                reason=reason,
                recorded_at=datetime.now(UTC).isoformat(),
            )
        cases[intent_id] = case.to_document()
        self._storage.set(RECONCILIATION_STORAGE_KEY, cases)
        logger.error(
            "Payment captured without an order, recorded for reconciliation",
            intent_id=intent_id,
            amount=amount,
            currency=currency,
            reason=reason,
            attempts=case.attempts,
        )
        return case

    def get(self, intent_id: str) -> ReconciliationCase | None:
        document = self._all().get(intent_id)
        return ReconciliationCase.from_document(document) if document else None

    def pending(self) -> list[ReconciliationCase]:
        cases = [ReconciliationCase.from_document(doc) for doc in self._all().values()]
        return [case for case in cases if not case.resolved]

    def resolve(self, intent_id: str, order_id: str) -> ReconciliationCase | None:
        cases = self._all()
        if intent_id not in cases:
            return None
        case = replace(ReconciliationCase.from_document(cases[intent_id]), resolved_order_id=order_id)
        cases[intent_id] = case.to_document()
        self._storage.set(RECONCILIATION_STORAGE_KEY, cases)
        logger.info("Reconciliation case resolved", intent_id=intent_id, order_id=order_id)
        return case
