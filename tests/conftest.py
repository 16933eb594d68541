"""Shared fixtures for the proxy test suite."""

import base64

import httpx
import pytest
import pytest_asyncio
import respx

from dohproxy.app.core.config import Settings

PROVIDER_URLS = [
    "https://doh-a.example/dns-query",
    "https://doh-b.example/dns-query",
    "https://doh-c.example/dns-query",
]

# DNS query for example.com A
EXAMPLE_QUERY_WIRE = bytes.fromhex(
    "000001000001000000000000076578616d706c6503636f6d0000010001"
)
EXAMPLE_ANSWER_WIRE = EXAMPLE_QUERY_WIRE + bytes.fromhex("c00c000100010000012c00045db8d822")


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        upstream_providers=PROVIDER_URLS[:2],
        upstream_max_retries=2,
        upstream_timeout=1.0,
        cache_ttl=300,
        max_body_size=512,
        rate_limit_max_requests=5,
        rate_limit_window_seconds=60.0,
        rate_limit_retry_after=60,
        redis_enabled=False,
    )


@pytest.fixture
def upstream():
    """Mock the upstream providers; unused routes are allowed."""
    with respx.mock(assert_all_called=False) as mock:
        yield mock


@pytest_asyncio.fixture
async def http_client():
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture
def provider_urls() -> list[str]:
    return list(PROVIDER_URLS)


@pytest.fixture
def query_wire() -> bytes:
    return EXAMPLE_QUERY_WIRE


@pytest.fixture
def query_b64() -> str:
    """The example query as a GET ``dns`` parameter (base64url, unpadded)."""
    return base64.urlsafe_b64encode(EXAMPLE_QUERY_WIRE).rstrip(b"=").decode()


@pytest.fixture
def answer_wire() -> bytes:
    return EXAMPLE_ANSWER_WIRE
