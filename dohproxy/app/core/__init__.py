"""Core utilities for the proxy application."""

from dohproxy.app.core.config import settings
from dohproxy.app.core.http_client import create_http_client, init_http_client
from dohproxy.app.core.logging import get_logger, setup_logging

__all__ = [
    "settings",
    "create_http_client",
    "init_http_client",
    "get_logger",
    "setup_logging",
]
