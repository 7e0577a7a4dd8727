from __future__ import annotations

import ipaddress
import re
import socket
from urllib.parse import urlsplit

from backend.repurposer.errors import BlockedHost, InvalidURL

ALLOWED_SCHEMES: frozenset[str] = frozenset({"http", "https"})

BLOCKED_HOST_PREFIXES: tuple[str, ...] = (
    "localhost",
    "127.0.0.1",
    "0.0.0.0",
    "[::]",
    "[::1]",
    "::",
    "::1",
    "10.",
    *(f"172.{octet}." for octet in range(16, 32)),
    "192.168.",
    "169.254.",
)
BLOCKED_HOST_SUFFIXES: tuple[str, ...] = (".local", ".internal")

_PRIVATE_RANGE_PATTERN = re.compile(r"^(10\.|172\.(1[6-9]|2\d|3[01])\.|192\.168\.|169\.254\.)")
_SCHEME_PATTERN = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)

INVALID_URL_MESSAGE = "Invalid URL format"
BLOCKED_HOST_MESSAGE = "Private or internal URLs are not allowed"


def normalize_url(raw: str) -> str:
    normalized = raw.strip()
    if not _SCHEME_PATTERN.match(normalized):
        normalized = f"https://{normalized}"
    return normalized


def validate_url(raw: str) -> str:
    """Return the normalized absolute URL, or raise before any network access.

    Every caller on the server side must go through this, even when a client has
    already checked the URL.
    """
    normalized = normalize_url(raw)
    try:
        parsed = urlsplit(normalized)
        hostname = parsed.hostname
        # Accessing the port validates it; urlsplit is lazy about malformed ports.
        _ = parsed.port
    except ValueError as exc:
        raise InvalidURL(INVALID_URL_MESSAGE) from exc
    if not hostname or any(character.isspace() for character in normalized):
        raise InvalidURL(INVALID_URL_MESSAGE)

    if is_blocked_host(hostname) or parsed.scheme.lower() not in ALLOWED_SCHEMES:
        raise BlockedHost(BLOCKED_HOST_MESSAGE)
    return normalized


def is_blocked_host(hostname: str) -> bool:
    host = hostname.strip().lower()
    if any(host == blocked or host.startswith(blocked) for blocked in BLOCKED_HOST_PREFIXES):
        return True
    if _PRIVATE_RANGE_PATTERN.match(host):
        return True
    if host.endswith(BLOCKED_HOST_SUFFIXES):
        return True

    address = _parse_ip_literal(host)
    if address is None:
        return False
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        address = address.ipv4_mapped
    return (
        address.is_loopback
        or address.is_unspecified
        or address.is_private
        or address.is_link_local
    )


def _parse_ip_literal(host: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    """Parse any spelling of an IP address the resolver would accept.

    Besides canonical IPv4/IPv6 this covers the legacy IPv4 forms that
    ``getaddrinfo`` still resolves, such as ``2130706433``, ``0177.0.0.1``,
    ``0x7f.1`` or ``127.1``.
    """
    literal = host.strip("[]")
    try:
        return ipaddress.ip_address(literal)
    except ValueError:
        pass
    try:
        return ipaddress.IPv4Address(socket.inet_aton(literal))
    except (OSError, ValueError):
        return None
