"""Tests for the shared upstream HTTP client."""

import pytest

from dohproxy.app.core.config import Settings
from dohproxy.app.core.http_client import create_http_client, init_http_client


def test_create_http_client_overrides():
    client = create_http_client(connect_timeout=1.5, read_timeout=2.5)

    assert client.timeout.connect == 1.5
    assert client.timeout.read == 2.5


def test_create_http_client_reads_given_settings():
    cfg = Settings(_env_file=None, httpx_connect_timeout=0.25, httpx_write_timeout=0.75)

    client = create_http_client(cfg)

    assert client.timeout.connect == 0.25
    assert client.timeout.write == 0.75


@pytest.mark.asyncio
async def test_init_http_client_lifecycle():
    cfg = Settings(_env_file=None, httpx_read_timeout=4.5)

    async with init_http_client(cfg) as client:
        assert not client.is_closed
        assert client.timeout.read == 4.5

    assert client.is_closed
