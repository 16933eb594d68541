from dataclasses import dataclass
from typing import Dict, Iterable, Tuple

import httpx

from dohproxy.app.core.config import DNS_MESSAGE_TYPE

DEFAULT_USER_AGENT = "dohproxy/1.0"


@dataclass
class ForwardedResponse:
    """Upstream answer returned by the first successful attempt.

    Attributes:
        status_code: Upstream HTTP status
        headers: Upstream response headers, untouched
        content: DNS wire message bytes
        provider: Name of the provider that answered
        attempts: Attempts made for this query, the successful one included
    """
    status_code: int
    headers: httpx.Headers
    content: bytes
    provider: str
    attempts: int = 1


class UpstreamProvider:
    """A public DoH endpoint queries can be forwarded to.

    The provider only builds requests; sending them, timing them out and
    failing over is the resolver's job so every provider shares one pooled
    HTTP client.
    """

    def __init__(self, url: str, user_agent: str = DEFAULT_USER_AGENT):
        """Initialize the provider.

        Args:
            url: Base DoH endpoint URL (e.g. https://dns.google/dns-query)
            user_agent: Identifying User-Agent sent upstream
        """
        self.url = url
        self.name = httpx.URL(url).host or url
        self.user_agent = user_agent

    def __repr__(self) -> str:
        return f"UpstreamProvider({self.url!r})"

    def _build_headers(self) -> Dict[str, str]:
        """Build the HTTP headers common to GET and POST queries."""
        return {
            "Accept": DNS_MESSAGE_TYPE,
            "User-Agent": self.user_agent,
        }

    def build_get_request(
        self,
        client: httpx.AsyncClient,
        dns: str,
        params: Iterable[Tuple[str, str]] = (),
    ) -> httpx.Request:
        """Build an RFC 8484 GET query.

        Args:
            client: Client the request will be sent with
            dns: base64url encoded DNS message
            params: Other query parameters of the client request, forwarded verbatim

        Returns:
            The prepared request
        """
        query = [("dns", dns), *params]
        return client.build_request(
            "GET", self.url, params=query, headers=self._build_headers()
        )

    def build_post_request(
        self, client: httpx.AsyncClient, body: bytes
    ) -> httpx.Request:
        """Build an RFC 8484 POST query carrying the raw DNS message."""
        headers = self._build_headers()
        headers["Content-Type"] = DNS_MESSAGE_TYPE
        return client.build_request("POST", self.url, content=body, headers=headers)
