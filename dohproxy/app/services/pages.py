"""Static informational content: homepage and Apple configuration profile.

Both are rendered from the public URL of the DoH endpoint only; they hold
no state.
"""

import html
import plistlib
import uuid

MOBILECONFIG_MEDIA_TYPE = "application/x-apple-aspen-config"

HOMEPAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>DNS over HTTPS proxy</title>
</head>
<body>
<h1>DNS over HTTPS proxy</h1>
<p>This service forwards DNS over HTTPS (RFC 8484) queries to public resolvers.</p>
<h2>Endpoint</h2>
<p><code>{endpoint}</code></p>
<p>Queries are accepted as <code>GET {endpoint}?dns=&lt;base64url&gt;</code> or as
<code>POST {endpoint}</code> with <code>Content-Type: application/dns-message</code>.</p>
<h2>Apple devices</h2>
<p>Install the <a href="{profile}">configuration profile</a> to use this resolver system-wide.</p>
</body>
</html>
"""


def render_homepage(endpoint_url: str, profile_url: str) -> str:
    """Render the HTML homepage describing how to use the endpoint."""
    return HOMEPAGE_TEMPLATE.format(
        endpoint=html.escape(endpoint_url),
        profile=html.escape(profile_url, quote=True),
    )


def render_mobileconfig(endpoint_url: str, host: str) -> bytes:
    """Render an Apple ``.mobileconfig`` profile enabling the DoH endpoint.

    UUIDs are derived from the endpoint URL so reinstalling the profile
    replaces the previous one instead of adding a duplicate.

    Args:
        endpoint_url: Public URL of the DoH endpoint
        host: Public host name, used in payload identifiers

    Returns:
        The XML property list
    """
    identifier = ".".join(reversed(host.split("."))) or "dohproxy"
    profile_uuid = uuid.uuid5(uuid.NAMESPACE_URL, endpoint_url)
    dns_uuid = uuid.uuid5(profile_uuid, "dns-settings")

    profile = {
        "PayloadContent": [
            {
                "DNSSettings": {
                    "DNSProtocol": "HTTPS",
                    "ServerURL": endpoint_url,
                },
                "PayloadDescription": "Configures the device to use DNS over HTTPS",
                "PayloadDisplayName": f"DNS over HTTPS ({host})",
                "PayloadIdentifier": f"{identifier}.dnssettings.managed",
                "PayloadType": "com.apple.dnsSettings.managed",
                "PayloadUUID": str(dns_uuid).upper(),
                "PayloadVersion": 1,
            }
        ],
        "PayloadDescription": f"Encrypted DNS through {host}",
        "PayloadDisplayName": f"DNS over HTTPS ({host})",
        "PayloadIdentifier": identifier,
        "PayloadRemovalDisallowed": False,
        "PayloadType": "Configuration",
        "PayloadUUID": str(profile_uuid).upper(),
        "PayloadVersion": 1,
    }
    return plistlib.dumps(profile, fmt=plistlib.FMT_XML)
