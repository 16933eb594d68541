from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from dohproxy.app.api.dns_query import router as dns_query_router
from dohproxy.app.api.pages import router as pages_router
from dohproxy.app.core.config import DNS_QUERY_PATH, Settings, settings
from dohproxy.app.core.http_client import init_http_client
from dohproxy.app.core.logging import get_log_context, get_logger, setup_logging
from dohproxy.app.exceptions import MethodNotAllowedError, ProxyException
from dohproxy.app.middleware.rate_limit import RateLimiter, RateLimitMiddleware
from dohproxy.app.middleware.request_id import RequestIdMiddleware, get_request_id
from dohproxy.app.providers.resolver import UpstreamResolver


def create_app(
    app_settings: Optional[Settings] = None,
    limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        app_settings: Settings to use instead of the global ones
        limiter: Rate limiter to use instead of one built from the settings

    Returns:
        Configured FastAPI application instance
    """
    cfg = app_settings or settings

    setup_logging(cfg)
    logger = get_logger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan context manager.

        Creates the pooled HTTP client and the upstream resolver on startup
        and closes the client on shutdown.
        """
        async with init_http_client(cfg) as http_client:
            app.state.http_client = http_client
            app.state.resolver = UpstreamResolver.from_settings(http_client, cfg)
            logger.info(
                "Application startup complete",
                extra={
                    "providers": cfg.upstream_providers,
                    "max_retries": cfg.upstream_max_retries,
                    "timeout": cfg.upstream_timeout,
                },
            )
            yield
            app.state.resolver = None
            app.state.http_client = None

        logger.info("Application shutdown complete")

    app = FastAPI(
        title="DoH Proxy",
        description="DNS over HTTPS forwarder with upstream failover and per-client rate limiting",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.settings = cfg

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(
        RateLimitMiddleware,
        limiter=limiter or RateLimiter(
            max_requests=cfg.rate_limit_max_requests,
            window_seconds=cfg.rate_limit_window_seconds,
            retry_after=cfg.rate_limit_retry_after,
            max_entries=cfg.rate_limit_max_entries,
            use_redis=cfg.redis_enabled,
            redis_url=cfg.redis_url,
        ),
    )

    # Request ID middleware (outermost - every log line can be correlated)
    app.add_middleware(RequestIdMiddleware)

    # The pages router ends with a catch-all route, so it goes last
    app.include_router(dns_query_router)
    app.include_router(pages_router)

    def proxy_error_response(request: Request, exc: ProxyException) -> PlainTextResponse:
        log_context = get_log_context(
            request_id=get_request_id(request),
            client_id=getattr(request.state, "client_id", None),
            path=request.url.path,
            method=request.method,
            status_code=exc.status_code,
        )
        if exc.status_code >= 500:
            logger.error(f"Request failed: {exc.message}", extra=log_context)
        else:
            logger.info(f"Request rejected: {exc.message}", extra=log_context)

        return PlainTextResponse(exc.message, status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(ProxyException)
    async def proxy_exception_handler(request: Request, exc: ProxyException) -> PlainTextResponse:
        """Turn known proxy errors into plain-text responses."""
        return proxy_error_response(request, exc)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> PlainTextResponse:
        """Render routing errors as plain text.

        A 405 from the router on the query path only knows the methods of
        the route it matched, so it is replaced by the full Allow list.
        """
        if exc.status_code == 405 and request.url.path == DNS_QUERY_PATH:
            return proxy_error_response(request, MethodNotAllowedError(request.method))
        return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> PlainTextResponse:
        """Global exception handler for unhandled exceptions.

        Never returns a traceback to the client; the exception message is
        only included in debug mode.
        """
        request_id = get_request_id(request)
        logger.exception(
            f"Unhandled exception [request_id={request_id}]",
            extra=get_log_context(
                request_id=request_id,
                exception_type=type(exc).__name__,
            ),
        )

        message = f"Internal server error: {exc}" if cfg.debug else "Internal server error"
        return PlainTextResponse(message, status_code=500)

    return app


# Create the application instance
app = create_app()
