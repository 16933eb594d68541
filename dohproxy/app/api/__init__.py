"""API endpoints package for the proxy."""

from dohproxy.app.api.dns_query import router as dns_query_router
from dohproxy.app.api.pages import router as pages_router

__all__ = [
    "dns_query_router",
    "pages_router",
]
