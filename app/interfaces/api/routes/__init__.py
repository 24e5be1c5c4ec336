from fastapi import FastAPI

from .inbox import router as inbox_router
from .outbox import router as outbox_router


def register_routes(app: FastAPI) -> None:
    """Register every API router on the FastAPI application."""

    app.include_router(inbox_router)
    app.include_router(outbox_router)
