"""Upstream resolver with failover across DoH providers.

Queries are sent to the providers in priority order. Each provider gets
``max_retries`` attempts, each bounded by its own deadline, before the next
provider is tried. The first 2xx answer wins.
"""

import asyncio
from typing import Callable, Iterable, Optional, Sequence, Tuple

import httpx

from dohproxy.app.core.config import Settings, settings
from dohproxy.app.core.logging import get_log_context, get_logger
from dohproxy.app.exceptions import UpstreamExhaustedError
from dohproxy.app.providers.base import ForwardedResponse, UpstreamProvider
from dohproxy.app.providers.retry import RetryPolicy

logger = get_logger(__name__)

RequestBuilder = Callable[[UpstreamProvider], httpx.Request]


class UpstreamResolver:
    """Forward DoH queries with bounded retries and provider failover.

    Usage:
        async with init_http_client() as client:
            resolver = UpstreamResolver.from_settings(client)
            answer = await resolver.resolve_get("AAABAAAB...", [("ct", "x")])
    """

    def __init__(
        self,
        providers: Sequence[UpstreamProvider],
        http_client: httpx.AsyncClient,
        policy: Optional[RetryPolicy] = None,
    ):
        """Initialize the resolver.

        Args:
            providers: Upstream providers in failover priority order
            http_client: Shared HTTP client used for every attempt
            policy: Retry policy; defaults to RetryPolicy()
        """
        if not providers:
            raise ValueError("at least one upstream provider is required")
        self.providers = list(providers)
        self.policy = policy or RetryPolicy()
        self._http_client = http_client

    @classmethod
    def from_settings(
        cls, http_client: httpx.AsyncClient, app_settings: Settings = settings
    ) -> "UpstreamResolver":
        """Build a resolver from the configured provider list and policy."""
        providers = [
            UpstreamProvider(url, user_agent=app_settings.upstream_user_agent)
            for url in app_settings.upstream_providers
        ]
        policy = RetryPolicy(
            max_retries=app_settings.upstream_max_retries,
            timeout=app_settings.upstream_timeout,
        )
        return cls(providers, http_client, policy)

    async def resolve_get(
        self, dns: str, params: Iterable[Tuple[str, str]] = ()
    ) -> ForwardedResponse:
        """Resolve a base64url encoded query through GET.

        Args:
            dns: Validated base64url DNS message
            params: Remaining query parameters of the client request

        Raises:
            UpstreamExhaustedError: If no provider answered successfully
        """
        params = list(params)
        return await self._resolve(
            lambda provider: provider.build_get_request(self._http_client, dns, params)
        )

    async def resolve_post(self, body: bytes) -> ForwardedResponse:
        """Resolve a binary DNS message through POST.

        Raises:
            UpstreamExhaustedError: If no provider answered successfully
        """
        return await self._resolve(
            lambda provider: provider.build_post_request(self._http_client, body)
        )

    async def _resolve(self, build_request: RequestBuilder) -> ForwardedResponse:
        last_error: Optional[BaseException] = None
        attempts = 0

        for _, provider, attempt_index in self.policy.iter_attempts(self.providers):
            attempts += 1
            log_context = get_log_context(
                provider=provider.name, attempt=attempt_index + 1
            )
            request = build_request(provider)

            try:
                # wait_for cancels the in-flight call once the deadline passes
                response = await asyncio.wait_for(
                    self._http_client.send(request), timeout=self.policy.timeout
                )
            except Exception as e:
                if not self.policy.is_retryable(e):
                    raise
                last_error = e
                logger.warning(
                    f"Upstream attempt failed: {type(e).__name__}: {e}",
                    extra=log_context,
                )
                continue

            if response.is_success:
                logger.debug(
                    f"Upstream answered with {response.status_code}",
                    extra=log_context,
                )
                return ForwardedResponse(
                    status_code=response.status_code,
                    headers=response.headers,
                    content=response.content,
                    provider=provider.name,
                    attempts=attempts,
                )

            # A non-success status is a failed attempt, exactly like an exception
            logger.warning(
                f"Upstream attempt returned status {response.status_code}",
                extra=log_context,
            )

        logger.error(
            f"All upstream providers failed after {attempts} attempts",
            extra=get_log_context(attempts=attempts),
        )
        raise UpstreamExhaustedError(attempts=attempts) from last_error
