"""API routers for the Clinical Coding Rules Engine."""

from coding_engine.api.coding import router as coding_router

__all__ = [
    "coding_router",
]
