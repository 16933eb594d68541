"""Validation of incoming DoH queries.

The DNS message itself is opaque to the proxy; only its transport
encoding and size are checked before it is forwarded.
"""

import re
from typing import Optional

from dohproxy.app.core.config import DNS_MESSAGE_TYPE
from dohproxy.app.exceptions import ValidationError

# base64url alphabet with at most two padding characters
DNS_PARAM_PATTERN = re.compile(r"[A-Za-z0-9_-]+={0,2}")


def validate_dns_param(value: Optional[str]) -> str:
    """Check the ``dns`` query parameter of a GET query.

    Args:
        value: Raw parameter value, None when absent

    Returns:
        The value, unchanged

    Raises:
        ValidationError: If the value is missing, empty or not base64url
    """
    if not value:
        raise ValidationError("Missing dns query parameter")
    if not DNS_PARAM_PATTERN.fullmatch(value):
        raise ValidationError("Invalid dns query parameter")
    return value


def validate_post_body(
    content_type: Optional[str], body: bytes, max_size: int
) -> bytes:
    """Check the content type and size of a POST query.

    Media type parameters (``; charset=...``) are ignored.

    Raises:
        ValidationError: If the content type is not application/dns-message
            or the body is empty or larger than ``max_size`` bytes
    """
    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    if media_type != DNS_MESSAGE_TYPE:
        raise ValidationError(f"Content-Type must be {DNS_MESSAGE_TYPE}")
    if not body:
        raise ValidationError("Empty DNS message")
    if len(body) > max_size:
        raise ValidationError(f"DNS message exceeds {max_size} bytes")
    return body
