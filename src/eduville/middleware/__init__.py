"""Middleware stack: logging, error rendering, request ids, CORS."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from eduville.config import Settings
from eduville.middleware.error_handler import setup_error_handlers
from eduville.middleware.logging import setup_logging
from eduville.middleware.request_id import RequestIdMiddleware

# Headers the game client sends besides the simple ones
CLIENT_HEADERS = ["Content-Type", "X-Character-Id", "X-Request-Id"]


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Install the stack. CORS goes last so it wraps error responses too."""
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=CLIENT_HEADERS,
        expose_headers=["X-Request-Id"],
    )
