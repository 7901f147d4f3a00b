"""Real-time API package."""

from realtime.api.routes import router

__all__ = ["router"]
