"""API routers exposed by the PawSquare backend."""
from .assistant import router as assistant_router
from .realtime import router as realtime_router

__all__ = ["assistant_router", "realtime_router"]
