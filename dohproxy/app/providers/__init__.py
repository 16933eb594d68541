"""Upstream DoH providers package.

This package provides:
- Upstream provider description (UpstreamProvider, ForwardedResponse)
- Retry and failover policy (RetryPolicy)
- Failover resolver (UpstreamResolver)
"""

from dohproxy.app.providers.base import ForwardedResponse, UpstreamProvider
from dohproxy.app.providers.resolver import UpstreamResolver
from dohproxy.app.providers.retry import RetryPolicy

__all__ = [
    "ForwardedResponse",
    "UpstreamProvider",
    "UpstreamResolver",
    "RetryPolicy",
]
