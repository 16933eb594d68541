"""Services package for the proxy.

This package provides:
- Request validation (validate_dns_param, validate_post_body)
- Response sanitization and CORS shaping (sanitize_response, preflight_response)
- Informational pages (render_homepage, render_mobileconfig)
"""

from dohproxy.app.services.pages import render_homepage, render_mobileconfig
from dohproxy.app.services.sanitizer import preflight_response, sanitize_response
from dohproxy.app.services.validation import validate_dns_param, validate_post_body

__all__ = [
    "preflight_response",
    "render_homepage",
    "render_mobileconfig",
    "sanitize_response",
    "validate_dns_param",
    "validate_post_body",
]
