"""
Rate limiting and client identification for the Quscina auth API.

The client IP is used both as the slowapi rate-limit key and for the
login-attempt ledger. X-Forwarded-For is only honoured when the direct peer
is a trusted proxy (QUSCINA_TRUSTED_PROXIES, comma-separated IPs or CIDRs).
"""
import ipaddress
import os
from functools import lru_cache

from fastapi import Request
from slowapi import Limiter

from src.core.config import get_settings

IpNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network


@lru_cache
def trusted_networks() -> tuple[IpNetwork, ...]:
    """Parse QUSCINA_TRUSTED_PROXIES once. Malformed entries are ignored."""
    networks = []
    for entry in os.getenv("QUSCINA_TRUSTED_PROXIES", "").split(","):
        entry = entry.strip()
        if not entry:
            continue
        try:
            networks.append(ipaddress.ip_network(entry, strict=False))
        except ValueError:
            continue
    return tuple(networks)


def is_trusted_proxy(address: str) -> bool:
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        return False
    return any(ip in network for network in trusted_networks())


def get_real_client_ip(request: Request) -> str:
    """
    Client address for rate limiting and the attempts ledger.

    Behind trusted proxies the rightmost X-Forwarded-For hop that is not a
    proxy itself is the client.
    """
    peer = request.client.host if request.client else "unknown"
    if not is_trusted_proxy(peer):
        return peer

    forwarded = request.headers.get("X-Forwarded-For")
    if not forwarded:
        return peer

    hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
    for hop in reversed(hops):
        if not is_trusted_proxy(hop):
            return hop
    return hops[0] if hops else peer


def get_user_agent(request: Request) -> str:
    """User agent truncated to the login_attempts column size."""
    return (request.headers.get("user-agent") or "")[:255]


limiter = Limiter(
    key_func=get_real_client_ip,
    enabled=get_settings().rate_limit_enabled,
)
