import ipaddress
from urllib.parse import urlsplit

from secprobe.core.errors import InputError

ALLOWED_SCHEMES = ("http", "https")
BLOCKED_HOSTNAMES = {"localhost", "127.0.0.1", "::1"}
BLOCKED_NETWORKS = [
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("169.254.0.0/16"),
]


def is_url_safe(url):
    try:
        ensure_safe_url(url)
    except InputError:
        return False
    return True


def ensure_safe_url(url: str) -> str:
    """
    Reject URLs the scanner must never touch: non-http(s) schemes, localhost,
    loopback and the RFC1918 / link-local ranges. Hostnames are matched
    literally; no DNS resolution happens here.
    """
    try:
        parts = urlsplit(url.strip())
        host = (parts.hostname or "").lower()
    except ValueError as e:
        raise InputError(f"Invalid URL: {e}", url=url) from e

    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        raise InputError(f"Unsupported URL scheme: {parts.scheme or '(none)'}", url=url)
    if not host:
        raise InputError("URL has no host", url=url)
    if host in BLOCKED_HOSTNAMES:
        raise InputError(f"Refusing to scan local address: {host}", url=url)

    try:
        addr = ipaddress.ip_address(host)
    except ValueError:
        return url.strip()

    if addr.is_loopback or any(addr in net for net in BLOCKED_NETWORKS):
        raise InputError(f"Refusing to scan private address: {host}", url=url)
    return url.strip()
