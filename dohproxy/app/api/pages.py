"""Informational pages served next to the DoH endpoint."""

from fastapi import APIRouter, Request, Response
from fastapi.responses import HTMLResponse

from dohproxy.app.core.config import DNS_QUERY_PATH
from dohproxy.app.services.pages import (
    MOBILECONFIG_MEDIA_TYPE,
    render_homepage,
    render_mobileconfig,
)

router = APIRouter()

PROFILE_PATH = "/apple"


def _endpoint_url(request: Request) -> str:
    return str(request.base_url).rstrip("/") + DNS_QUERY_PATH


@router.get(PROFILE_PATH)
async def apple_profile(request: Request) -> Response:
    """Apple configuration profile pointing devices at this endpoint."""
    host = request.url.hostname or "localhost"
    content = render_mobileconfig(_endpoint_url(request), host)
    return Response(
        content=content,
        media_type=MOBILECONFIG_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{host}.mobileconfig"'},
    )


@router.get("/{full_path:path}", response_class=HTMLResponse)
async def homepage(request: Request) -> HTMLResponse:
    """Homepage, served for every path other than the endpoint and profile."""
    profile_url = str(request.base_url).rstrip("/") + PROFILE_PATH
    return HTMLResponse(render_homepage(_endpoint_url(request), profile_url))
