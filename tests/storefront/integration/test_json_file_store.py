"""Integration tests for the JSON file store."""

import json

import pytest
from storefront.cart.store import CART_STORAGE_KEY, CartStore
from storefront.storage.json_file_adapter import JsonFileStore
from storefront.storage.port import StorageError


class TestJsonFileStore:
    def test_missing_file_reads_as_empty(self, tmp_path):
        store = JsonFileStore(tmp_path / "state.json")
        assert store.get("anything") is None
        assert store.get("anything", {}) == {}

    def test_set_and_get(self, tmp_path):
        store = JsonFileStore(tmp_path / "nested" / "state.json")
        store.set("storefront.loyalty", {"confirmed": 10, "pending": 3})

        assert store.get("storefront.loyalty") == {"confirmed": 10, "pending": 3}
        on_disk = json.loads((tmp_path / "nested" / "state.json").read_text())
        assert on_disk["storefront.loyalty"]["pending"] == 3

    def test_keys_are_independent(self, tmp_path):
        store = JsonFileStore(tmp_path / "state.json")
        store.set("a", 1)
        store.set("b", 2)
        store.delete("a")
        assert store.get("a") is None
        assert store.get("b") == 2

    def test_no_temporary_files_left_behind(self, tmp_path):
        store = JsonFileStore(tmp_path / "state.json")
        store.set("a", 1)
        assert [p.name for p in tmp_path.iterdir()] == ["state.json"]

    def test_corrupt_file_raises_storage_error(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json")
        with pytest.raises(StorageError):
            JsonFileStore(path).get("a")

    def test_non_object_file_raises_storage_error(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("[1, 2, 3]")
        with pytest.raises(StorageError):
            JsonFileStore(path).get("a")


class TestCartOnDisk:
    def test_cart_survives_restart(self, tmp_path, products):
        path = tmp_path / "state.json"
        CartStore(JsonFileStore(path)).add_item(products[1])
        CartStore(JsonFileStore(path)).add_item(products[2])

        restored = CartStore(JsonFileStore(path)).snapshot()

        assert restored.item_count == 2
        assert restored.total == 80.0

    def test_corrupt_state_file_starts_empty(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("garbage")
        assert CartStore(JsonFileStore(path)).snapshot().is_empty

    def test_legacy_cart_on_disk(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(
            json.dumps({CART_STORAGE_KEY: [{"id": 1, "nombre": "Crepa Nutella", "precio": 50, "cantidad": 1}]})
        )
        assert CartStore(JsonFileStore(path)).snapshot().total == 50.0
