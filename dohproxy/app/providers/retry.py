"""Retry and failover policy for upstream DoH providers.

This module describes how many attempts each provider gets, how long a
single attempt may take, and which errors count as a failed attempt.
"""

import asyncio
from dataclasses import dataclass
from typing import Iterator, Sequence, Tuple, Type, TypeVar

import httpx

P = TypeVar("P")


@dataclass
class RetryPolicy:
    """Configuration for retry and failover behavior.

    Every provider is tried ``max_retries`` times, in list order, before
    the next one is contacted. There is no delay between attempts.

    Attributes:
        max_retries: Attempts made against each provider (default: 2)
        timeout: Deadline of a single attempt in seconds (default: 5.0)
        retryable_exceptions: Exception types that count as a failed attempt

    Example:
        >>> policy = RetryPolicy(max_retries=3)
        >>> policy.total_attempts(provider_count=2)
        6
    """

    max_retries: int = 2
    timeout: float = 5.0
    retryable_exceptions: Tuple[Type[BaseException], ...] = (
        httpx.HTTPError,
        asyncio.TimeoutError,
    )

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")

    def total_attempts(self, provider_count: int) -> int:
        """Upper bound of attempts for one query."""
        return provider_count * self.max_retries

    def is_retryable(self, exception: BaseException) -> bool:
        """Check if an exception is a failed attempt rather than a bug."""
        return isinstance(exception, self.retryable_exceptions)

    def iter_attempts(self, providers: Sequence[P]) -> Iterator[Tuple[int, P, int]]:
        """Walk the (provider, attempt) state space in failover order.

        Yields:
            ``(provider_index, provider, attempt_index)`` tuples, both
            indices 0-based, all attempts of a provider before the next one
        """
        for provider_index, provider in enumerate(providers):
            for attempt_index in range(self.max_retries):
                yield provider_index, provider, attempt_index
