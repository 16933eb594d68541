"""DoH query endpoint (RFC 8484).

Rate limiting runs in RateLimitMiddleware before any handler here. The
handlers validate the query, hand it to the upstream resolver and shape
the answer for the client.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response

from dohproxy.app.core.config import DNS_QUERY_PATH, Settings
from dohproxy.app.core.logging import get_log_context, get_logger
from dohproxy.app.exceptions import ValidationError
from dohproxy.app.middleware.request_id import get_request_id
from dohproxy.app.providers.base import ForwardedResponse
from dohproxy.app.providers.resolver import UpstreamResolver
from dohproxy.app.services.sanitizer import preflight_response, sanitize_response
from dohproxy.app.services.validation import validate_dns_param, validate_post_body

logger = get_logger(__name__)
router = APIRouter()


def get_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return request.app.state.settings


def get_resolver(request: Request) -> UpstreamResolver:
    """Resolver created in the application lifespan.

    Raises:
        RuntimeError: If the lifespan has not run
    """
    resolver = getattr(request.app.state, "resolver", None)
    if resolver is None:
        raise RuntimeError("Upstream resolver not initialized. Ensure lifespan context is active.")
    return resolver


SettingsDep = Annotated[Settings, Depends(get_settings)]
ResolverDep = Annotated[UpstreamResolver, Depends(get_resolver)]


def _log_answer(request: Request, forwarded: ForwardedResponse) -> None:
    logger.info(
        f"Resolved via {forwarded.provider} after {forwarded.attempts} attempt(s)",
        extra=get_log_context(
            request_id=get_request_id(request),
            client_id=getattr(request.state, "client_id", None),
            provider=forwarded.provider,
            method=request.method,
            status_code=forwarded.status_code,
        ),
    )


@router.options(DNS_QUERY_PATH)
async def dns_query_preflight() -> Response:
    """CORS preflight for browser clients."""
    return preflight_response()


@router.get(DNS_QUERY_PATH)
async def dns_query_get(
    request: Request, resolver: ResolverDep, app_settings: SettingsDep
) -> Response:
    """Forward a base64url encoded query given in the ``dns`` parameter.

    Every other query parameter is forwarded upstream verbatim.
    """
    dns = validate_dns_param(request.query_params.get("dns"))
    params = [
        (name, value)
        for name, value in request.query_params.multi_items()
        if name != "dns"
    ]
    forwarded = await resolver.resolve_get(dns, params)
    _log_answer(request, forwarded)
    return sanitize_response(forwarded, app_settings.cache_ttl)


@router.post(DNS_QUERY_PATH)
async def dns_query_post(
    request: Request, resolver: ResolverDep, app_settings: SettingsDep
) -> Response:
    """Forward a binary DNS message sent as the request body."""
    # Refuse oversized bodies before reading them when the client announces the size
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > app_settings.max_body_size:
        raise ValidationError(f"DNS message exceeds {app_settings.max_body_size} bytes")

    body = validate_post_body(
        request.headers.get("content-type"),
        await request.body(),
        app_settings.max_body_size,
    )
    forwarded = await resolver.resolve_post(body)
    _log_answer(request, forwarded)
    return sanitize_response(forwarded, app_settings.cache_ttl)
