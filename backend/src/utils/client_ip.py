"""
Resolve the address a device request came from.

Used as the slowapi key function, so every device behind the same
address shares one rate-limit bucket, and recorded in access logs.
"""

from typing import Optional

from fastapi import Request


UNKNOWN_CLIENT = "unknown"


def _first_forwarded_hop(header_value: Optional[str]) -> Optional[str]:
    if not header_value:
        return None
    hop = header_value.split(",")[0].strip()
    return hop or None


def get_client_ip(request: Request) -> str:
    """
    Client address, preferring proxy headers over the socket peer.

    Order: leftmost X-Forwarded-For entry, then X-Real-IP, then the
    connection's host. Returns "unknown" when none is available.
    """
    forwarded = _first_forwarded_hop(request.headers.get("X-Forwarded-For"))
    if forwarded:
        return forwarded

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    client = request.client
    if client is not None and client.host:
        return client.host
    return UNKNOWN_CLIENT
