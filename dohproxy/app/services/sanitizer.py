"""Turn upstream answers into client-safe responses."""

from fastapi import Response

from dohproxy.app.core.config import DNS_MESSAGE_TYPE
from dohproxy.app.providers.base import ForwardedResponse

# Meaningful only for a single connection (RFC 9110 section 7.6.1)
HOP_BY_HOP_HEADERS = frozenset((
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
))

# httpx hands back decoded content, so the upstream framing no longer applies
BODY_FRAMING_HEADERS = frozenset(("content-length", "content-encoding"))

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

PREFLIGHT_MAX_AGE = 86400


def sanitize_response(forwarded: ForwardedResponse, cache_ttl: int) -> Response:
    """Rewrite an upstream answer for the client.

    Copies the upstream headers minus the hop-by-hop ones, adds permissive
    CORS headers and a Cache-Control hint, and forces the DNS message
    content type. Status and body pass through unchanged.

    Args:
        forwarded: Answer of the upstream provider
        cache_ttl: max-age advertised to downstream caches, in seconds

    Returns:
        The response to send to the client
    """
    response = Response(content=forwarded.content, status_code=forwarded.status_code)

    dropped = HOP_BY_HOP_HEADERS | BODY_FRAMING_HEADERS | {"content-type"}
    for name, value in forwarded.headers.multi_items():
        if name.lower() not in dropped:
            response.headers.append(name, value)

    for name, value in CORS_HEADERS.items():
        response.headers[name] = value
    response.headers["Cache-Control"] = f"max-age={cache_ttl}"
    response.headers["Content-Type"] = DNS_MESSAGE_TYPE
    return response


def preflight_response() -> Response:
    """Answer a CORS preflight for the DoH endpoint."""
    headers = dict(CORS_HEADERS)
    headers["Access-Control-Max-Age"] = str(PREFLIGHT_MAX_AGE)
    return Response(status_code=204, headers=headers)
