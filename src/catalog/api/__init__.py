"""Catalog API package."""

from catalog.api.routes import admin_router, router

__all__ = ["router", "admin_router"]
