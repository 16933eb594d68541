"""Shared HTTP client management for connection pooling.

The client is created on application startup and shared by every
upstream attempt so connections to the DoH providers are reused.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx

from dohproxy.app.core.config import Settings, settings


def create_http_client(app_settings: Optional[Settings] = None, **kwargs) -> httpx.AsyncClient:
    """Create a new HTTP client with the configured pool and timeouts.

    Args:
        app_settings: Settings to read defaults from instead of the global ones
        **kwargs: Overrides for connect_timeout, read_timeout, write_timeout,
            pool_timeout, max_connections, max_keepalive_connections and
            keepalive_expiry.

    Returns:
        A new httpx.AsyncClient; the caller is responsible for closing it.
    """
    cfg = app_settings or settings
    timeout = httpx.Timeout(
        connect=kwargs.get("connect_timeout", cfg.httpx_connect_timeout),
        read=kwargs.get("read_timeout", cfg.httpx_read_timeout),
        write=kwargs.get("write_timeout", cfg.httpx_write_timeout),
        pool=kwargs.get("pool_timeout", cfg.httpx_pool_timeout),
    )
    limits = httpx.Limits(
        max_connections=kwargs.get("max_connections", cfg.httpx_max_connections),
        max_keepalive_connections=kwargs.get(
            "max_keepalive_connections", cfg.httpx_max_keepalive_connections
        ),
        keepalive_expiry=kwargs.get("keepalive_expiry", cfg.httpx_keepalive_expiry),
    )
    return httpx.AsyncClient(timeout=timeout, limits=limits)


@asynccontextmanager
async def init_http_client(
    app_settings: Optional[Settings] = None,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Create the pooled HTTP client and close it on exit.

    This context manager should be used in the FastAPI lifespan:

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            async with init_http_client(cfg) as client:
                app.state.resolver = UpstreamResolver.from_settings(client, cfg)
                yield
    """
    client = create_http_client(app_settings)
    try:
        yield client
    finally:
        await client.aclose()
