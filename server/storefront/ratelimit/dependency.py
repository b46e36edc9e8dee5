# ─────────────────────────────────────────────────────────────────────────────
# RateLimit — per-route FastAPI dependency over the LimiterRegistry
# ─────────────────────────────────────────────────────────────────────────────
# Usage:
#     @router.post("/checkout", dependencies=[Depends(RateLimit(RL10))])
#
# Derives the client key from the transport peer (host, port dropped),
# asks the registry for a token and raises RateLimitedError on deny.
# A peer address that cannot be split is a 500, never a silent allow.
# Routes on GuardedRoute (storefront.routing) run this before body parsing.
# ─────────────────────────────────────────────────────────────────────────────

from fastapi import Request

from storefront.exceptions import MalformedClientAddressError, RateLimitedError
from storefront.ratelimit.registry import LimiterRegistry

# Route limit classes (requests per minute)
RL5 = 5
RL10 = 10
RL30 = 30
RL50 = 50
RL100 = 100


def remote_addr(request: Request) -> str:
    """Render the ASGI peer as host:port (IPv6 bracketed). Empty if unknown."""
    client = request.client
    if client is None:
        return ""
    host, port = client.host, client.port
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def client_key(addr: str) -> str:
    """Split host from a host:port address and return the host.

    Follows socket-address rules: IPv6 hosts must be bracketed, a port
    separator is required, and an unbracketed host may not contain ':'.
    """
    if addr.startswith("["):
        end = addr.find("]")
        if end < 0:
            raise MalformedClientAddressError(addr, "missing ']' in address")
        host, rest = addr[1:end], addr[end + 1 :]
        if not rest:
            raise MalformedClientAddressError(addr, "missing port in address")
        if not rest.startswith(":") or ":" in rest[1:]:
            raise MalformedClientAddressError(addr, "unexpected characters after host")
        return host

    sep = addr.rfind(":")
    if sep < 0:
        raise MalformedClientAddressError(addr, "missing port in address")
    host = addr[:sep]
    if ":" in host:
        raise MalformedClientAddressError(addr, "too many colons in address")
    if "[" in host or "]" in addr:
        raise MalformedClientAddressError(addr, "unexpected bracket in address")
    return host


class RateLimit:
    """Dependency enforcing `limit` requests/minute per client on one route."""

    def __init__(self, limit: int) -> None:
        if limit <= 0:
            raise ValueError(f"rate limit must be positive, got {limit}")
        self.limit = limit

    async def __call__(self, request: Request) -> None:
        # One token per request per limit, even when GuardedRoute ran us first
        charged: frozenset[int] = getattr(request.state, "rate_limits_charged", frozenset())
        if self.limit in charged:
            return

        key = client_key(remote_addr(request))
        registry: LimiterRegistry = request.app.state.limiter
        request.state.client_key = key

        if not registry.admit(key, self.limit):
            raise RateLimitedError(key, self.limit, registry.retry_after(key, self.limit))
        request.state.rate_limits_charged = charged | {self.limit}

    def __repr__(self) -> str:
        return f"RateLimit({self.limit}/minute)"
