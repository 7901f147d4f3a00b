"""Ordering API package."""

from ordering.api.routes import admin_router, custom_order_router, order_router

__all__ = ["order_router", "custom_order_router", "admin_router"]
