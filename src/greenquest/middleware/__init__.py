"""Middleware registration."""

from fastapi import FastAPI

from greenquest.config import Settings
from greenquest.middleware.error_handler import setup_error_handlers
from greenquest.middleware.logging import setup_logging
from greenquest.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure logging, register error handlers and request middleware."""
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
