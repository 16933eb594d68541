"""Tests for the homepage and Apple configuration profile."""

import plistlib

import pytest
from fastapi.testclient import TestClient

from dohproxy.app.main import create_app
from dohproxy.app.middleware.rate_limit import RateLimiter
from dohproxy.app.services.pages import render_homepage, render_mobileconfig


@pytest.fixture
def client(test_settings):
    limiter = RateLimiter(max_requests=1, use_redis=False)
    with TestClient(create_app(test_settings, limiter)) as test_client:
        yield test_client


class TestMobileconfig:

    def test_profile_points_at_endpoint(self):
        profile = plistlib.loads(render_mobileconfig("https://doh.example.net/dns-query", "doh.example.net"))

        dns_payload = profile["PayloadContent"][0]
        assert profile["PayloadType"] == "Configuration"
        assert profile["PayloadIdentifier"] == "net.example.doh"
        assert dns_payload["PayloadType"] == "com.apple.dnsSettings.managed"
        assert dns_payload["DNSSettings"] == {
            "DNSProtocol": "HTTPS",
            "ServerURL": "https://doh.example.net/dns-query",
        }

    def test_uuids_are_stable(self):
        first = plistlib.loads(render_mobileconfig("https://doh.example.net/dns-query", "doh.example.net"))
        second = plistlib.loads(render_mobileconfig("https://doh.example.net/dns-query", "doh.example.net"))
        other = plistlib.loads(render_mobileconfig("https://other.example/dns-query", "other.example"))

        assert first["PayloadUUID"] == second["PayloadUUID"]
        assert first["PayloadUUID"] != first["PayloadContent"][0]["PayloadUUID"]
        assert first["PayloadUUID"] != other["PayloadUUID"]


class TestHomepage:

    def test_renders_endpoint_and_profile(self):
        page = render_homepage("https://doh.example.net/dns-query", "https://doh.example.net/apple")

        assert "<code>https://doh.example.net/dns-query</code>" in page
        assert 'href="https://doh.example.net/apple"' in page

    def test_escapes_urls(self):
        page = render_homepage("https://x.example/<script>", "https://x.example/apple")

        assert "<script>" not in page
        assert "&lt;script&gt;" in page


class TestPageRoutes:

    def test_apple_profile_download(self, client):
        resp = client.get("/apple")

        assert resp.status_code == 200
        assert resp.headers["content-type"] == "application/x-apple-aspen-config"
        assert resp.headers["content-disposition"] == 'attachment; filename="testserver.mobileconfig"'
        profile = plistlib.loads(resp.content)
        assert profile["PayloadContent"][0]["DNSSettings"]["ServerURL"] == "http://testserver/dns-query"

    @pytest.mark.parametrize("path", ["/", "/index.html", "/some/deep/path"])
    def test_homepage_on_any_path(self, client, path):
        resp = client.get(path)

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/html")
        assert "http://testserver/dns-query" in resp.text

    def test_pages_bypass_rate_limit(self, client):
        for _ in range(3):
            assert client.get("/").status_code == 200
