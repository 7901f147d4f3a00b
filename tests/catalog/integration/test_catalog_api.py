"""Integration tests for the catalog endpoints."""

import pytest
from support import build_test_app, make_client

from catalog.api import admin_router, router


@pytest.fixture()
def app(container):
    return build_test_app(router, admin_router)


@pytest.fixture()
def client(app):
    return make_client(app)


@pytest.fixture()
def admin(app, admin_cookies):
    return make_client(app, admin_cookies)


class TestPublicCatalog:
    def test_get_catalog(self, client, product):
        response = client.get("/catalog")
        assert response.status_code == 200
        data = response.json()
        assert data["products"][0]["item"] == "grid-trader"
        assert data["settings"]["fallback_rate"] == 130.0

    def test_get_fallback_page(self, client):
        response = client.get("/catalog/pages/payment-modal")
        assert response.status_code == 200
        assert response.json()["title"] == "Payment Modal"

    def test_missing_page(self, client):
        assert client.get("/catalog/pages/nowhere").status_code == 404


class TestAdminCatalog:
    def test_writes_require_admin_session(self, client):
        response = client.put("/catalog/products", json={"item": "x", "name": "X", "price": 1})
        assert response.status_code == 401

    def test_wrong_session_token_rejected(self, app, settings):
        client = make_client(app, {settings.admin_session_cookie: "forged"})
        assert client.post("/catalog/categories", json={"name": "Bots"}).status_code == 401

    def test_save_and_delete_product(self, admin):
        response = admin.put("/catalog/products", json={"item": "scalper", "name": "Scalper", "price": 40})
        assert response.status_code == 200
        assert response.json()["category"] == "General"
        assert admin.get("/catalog").json()["products"][0]["item"] == "scalper"

        assert admin.delete("/catalog/products/scalper").json() == {"status": "deleted"}
        assert admin.delete("/catalog/products/scalper").status_code == 404

    def test_add_category(self, admin):
        assert admin.post("/catalog/categories", json={"name": "Bots"}).status_code == 201
        assert admin.post("/catalog/categories", json={"name": "Bots"}).status_code == 409

    def test_save_settings_validation_error(self, admin):
        response = admin.put("/catalog/settings", json={"values": {"theme": "dark"}})
        assert response.status_code == 400
        assert response.json() == {"error": "validation_error", "errors": {"theme": ["unknown setting"]}}

    def test_save_pages(self, admin):
        response = admin.put(
            "/catalog/pages",
            json={"pages": [{"slug": "/terms", "title": "Terms", "content": "Be nice"}]},
        )
        assert response.status_code == 200
        assert admin.get("/catalog/pages/terms").json()["content"] == "Be nice"
