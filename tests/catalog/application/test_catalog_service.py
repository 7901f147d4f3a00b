"""Tests for the catalog snapshot and admin writes."""

from datetime import UTC, datetime

import pytest

from catalog.cache import CacheLineState
from catalog.models import Product, StaticPage
from catalog.service import SNAPSHOT_KEY
from shared.errors import NotFoundError, ValidationError


def _product(item, **overrides):
    values = {"item": item, "name": item.title(), "price": 10.0}
    values.update(overrides)
    return Product(**values)


class TestSnapshot:
    def test_empty_store_snapshot(self, container):
        snapshot = container.catalog.get_catalog_snapshot()
        assert snapshot.products == []
        assert [c.name for c in snapshot.categories] == ["General"]
        assert {p.slug for p in snapshot.static_pages} == {"/payment-modal", "/ref-code-modal"}

    def test_products_new_first_then_newest_then_item(self, container):
        catalog = container.catalog
        catalog.save_product(_product("old", created_at=datetime(2024, 1, 1, tzinfo=UTC)))
        catalog.save_product(_product("recent", created_at=datetime(2024, 6, 1, tzinfo=UTC)))
        catalog.save_product(_product("b-new", is_new=True, created_at=datetime(2024, 2, 1, tzinfo=UTC)))
        catalog.save_product(_product("a-new", is_new=True, created_at=datetime(2024, 2, 1, tzinfo=UTC)))

        items = [p.item for p in catalog.get_catalog_snapshot().products]
        assert items == ["a-new", "b-new", "recent", "old"]

    def test_stored_page_overrides_fallback(self, container):
        container.catalog.save_static_pages([StaticPage(slug="/payment-modal", title="Pay us")])
        pages = {p.slug: p for p in container.catalog.get_catalog_snapshot().static_pages}
        assert pages["/payment-modal"].title == "Pay us"
        assert "/ref-code-modal" in pages

    def test_snapshot_served_from_cache(self, container, store):
        container.catalog.get_catalog_snapshot()
        # Written behind the cache's back
        store.insert("categories", {"name": "Hidden"})
        names = [c.name for c in container.catalog.get_catalog_snapshot().categories]
        assert names == ["General"]


class TestAdminWrites:
    def test_save_product_refreshes_cache(self, container):
        container.catalog.get_catalog_snapshot()
        container.catalog.save_product(_product("scalper"))
        assert container.catalog.find_product("scalper") is not None
        assert container.cache.state(SNAPSHOT_KEY) == CacheLineState.FRESH

    def test_save_product_stamps_created_at_once(self, container, clock):
        first = container.catalog.save_product(_product("scalper"))
        clock.advance(3600)
        second = container.catalog.save_product(_product("scalper", price=12.0))
        assert first.created_at is not None
        assert second.created_at == first.created_at
        assert container.catalog.find_product("scalper").price == 12.0

    def test_delete_product(self, container, product):
        container.catalog.delete_product(product.item)
        assert container.catalog.find_product(product.item) is None

    def test_delete_unknown_product(self, container):
        with pytest.raises(NotFoundError):
            container.catalog.delete_product("ghost")

    def test_add_category(self, container):
        container.catalog.add_category("  Trading ")
        assert [c.name for c in container.catalog.get_catalog_snapshot().categories] == ["Trading"]

    def test_add_blank_category(self, container):
        with pytest.raises(ValidationError):
            container.catalog.add_category("   ")

    def test_save_settings(self, container):
        container.catalog.save_settings({"mpesa_till": "555111", "urgent_message": {"enabled": True, "text": "Sale"}})
        settings = container.catalog.get_catalog_snapshot().settings
        assert settings.mpesa_till == "555111"
        assert settings.urgent_message.enabled is True

    def test_bad_setting_writes_nothing(self, container, store):
        with pytest.raises(ValidationError):
            container.catalog.save_settings({"mpesa_till": "555111", "fallback_rate": "n/a"})
        assert store.count("settings") == 0


class TestPurchasable:
    def test_unknown_item(self, container):
        with pytest.raises(ValidationError) as exc:
            container.catalog.require_purchasable("ghost")
        assert exc.value.messages == {"item": ["unknown item"]}

    def test_archived_item(self, container):
        container.catalog.save_product(_product("retired", is_archived=True))
        with pytest.raises(ValidationError):
            container.catalog.require_purchasable("retired")

    def test_active_item(self, container, product):
        assert container.catalog.require_purchasable(product.item).price == 25.0
