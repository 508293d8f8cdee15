"""Tests for the persisted cart document and its legacy migration."""

import pytest
from storefront.cart.snapshot import CartDocumentError, CartLineSnapshot, CartSnapshot


def _snapshot():
    return CartSnapshot(
        lines=(
            CartLineSnapshot("1", "Crepa Nutella", 50.0, 2),
            CartLineSnapshot("2", "Crepa Jamon y Queso", 30.0, 1),
        )
    )


class TestDocument:
    def test_document_is_versioned(self):
        document = _snapshot().to_document()
        assert document["version"] == 1
        assert document["lines"][0] == {
            "productId": "1",
            "name": "Crepa Nutella",
            "unitPrice": 50.0,
            "quantity": 2,
            "available": True,
        }

    def test_document_reads_back_to_same_snapshot(self):
        snapshot = _snapshot()
        assert CartSnapshot.from_document(snapshot.to_document()) == snapshot

    def test_empty_document(self):
        snapshot = CartSnapshot.from_document({"version": 1, "lines": []})
        assert snapshot.is_empty
        assert snapshot.total == 0


class TestLegacyMigration:
    def test_bare_list_is_migrated(self):
        legacy = [
            {"id": 1, "nombre": "Crepa Nutella", "precio": "50.00", "cantidad": 2, "disponible": True},
            {"id": 2, "nombre": "Crepa Jamon y Queso", "precio": 30, "cantidad": 1},
        ]
        snapshot = CartSnapshot.from_document(legacy)
        assert snapshot.item_count == 3
        assert snapshot.total == 130.0
        assert snapshot.line("1").unit_price == 50.0
        assert snapshot.line("2").available is True

    def test_legacy_row_missing_fields_is_rejected(self):
        with pytest.raises(CartDocumentError):
            CartSnapshot.from_document([{"id": 1, "nombre": "Crepa"}])


class TestUnreadableDocuments:
    @pytest.mark.parametrize(
        "document",
        [
            {"version": 2, "lines": []},
            {"lines": []},
            "not a cart",
            {"version": 1, "lines": [{"productId": "1", "name": "Crepa", "unitPrice": "abc", "quantity": 1}]},
            {"version": 1, "lines": [{"productId": "1", "name": "Crepa", "unitPrice": 10, "quantity": 0}]},
        ],
    )
    def test_rejected(self, document):
        with pytest.raises(CartDocumentError):
            CartSnapshot.from_document(document)
