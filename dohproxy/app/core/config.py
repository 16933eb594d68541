import json
import re
from typing import Annotated, Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


DEFAULT_UPSTREAM_PROVIDERS = [
    "https://cloudflare-dns.com/dns-query",
    "https://dns.google/dns-query",
    "https://dns.quad9.net/dns-query",
]


def _parse_url_list(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        items = [str(v).strip() for v in raw]
        return [v for v in items if v]

    raw = str(raw).strip()
    if not raw or raw == "[]":
        return []

    # Prefer JSON, but tolerate a plain comma or whitespace separated list.
    if raw.startswith("["):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            items = [str(v).strip() for v in parsed]
            return [v for v in items if v]

    urls: list[str] = []
    for part in re.split(r"[,\s]+", raw):
        part = part.strip("\"'")
        if part and part not in urls:
            urls.append(part)
    return urls


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Debug mode - exposes exception messages in 500 responses
    debug: bool = False

    # Upstream DoH providers, in failover priority order
    upstream_providers: Annotated[list[str], NoDecode] = list(DEFAULT_UPSTREAM_PROVIDERS)
    upstream_timeout: float = 5.0  # Per-attempt deadline in seconds
    upstream_max_retries: int = 2  # Attempts against each provider
    upstream_user_agent: str = "dohproxy/1.0"

    # Advertised to downstream caches only, nothing is stored here
    cache_ttl: int = 300

    # Largest accepted POST body (DNS wire message) in bytes
    max_body_size: int = 4096

    # HTTP Client connection pool settings
    httpx_connect_timeout: float = 3.0
    httpx_read_timeout: float = 10.0
    httpx_write_timeout: float = 5.0
    httpx_pool_timeout: float = 5.0
    httpx_keepalive_expiry: float = 30.0
    httpx_max_connections: int = 100
    httpx_max_keepalive_connections: int = 20

    # Rate limiting settings (fixed window per client identity)
    rate_limit_max_requests: int = 100
    rate_limit_window_seconds: float = 60.0
    rate_limit_retry_after: int = 60
    rate_limit_max_entries: int = 10000
    rate_limit_fail_closed: bool = (
        False  # If True, deny requests when Redis is unavailable
    )

    # Redis settings (optional distributed rate limiting)
    redis_enabled: bool = False
    redis_url: str = "redis://localhost:6379/0"

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    @field_validator("upstream_providers", mode="before")
    @classmethod
    def decode_upstream_providers(cls, v: Any) -> list[str]:
        return _parse_url_list(v)

    @field_validator("upstream_providers")
    @classmethod
    def validate_upstream_providers(cls, v: list[str]) -> list[str]:
        """Require at least one absolute http(s) provider URL."""
        if not v:
            raise ValueError("at least one upstream provider is required")
        for url in v:
            if not url.startswith(("https://", "http://")):
                raise ValueError(f"upstream provider must be an http(s) URL: {url}")
        return v

    @field_validator(
        "upstream_max_retries",
        "rate_limit_max_requests",
        "rate_limit_max_entries",
        "max_body_size",
    )
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        if v < 1:
            raise ValueError("value must be at least 1")
        return v

    @field_validator(
        "upstream_timeout",
        "rate_limit_window_seconds",
        "httpx_connect_timeout",
        "httpx_read_timeout",
    )
    @classmethod
    def validate_timeout_positive(cls, v: float) -> float:
        """Validate timeout values are positive."""
        if v <= 0:
            raise ValueError("Timeout values must be positive")
        return v

    @field_validator("cache_ttl", "rate_limit_retry_after")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("value must not be negative")
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()


# Path served by the DoH endpoint (RFC 8484 default)
DNS_QUERY_PATH = "/dns-query"

# Media type of DNS wire-format messages
DNS_MESSAGE_TYPE = "application/dns-message"
