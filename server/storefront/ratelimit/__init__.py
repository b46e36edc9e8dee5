"""Rate limiting — token buckets, the per-client registry, and the route dependency."""

from storefront.ratelimit.bucket import TokenBucket
from storefront.ratelimit.dependency import (
    RL5,
    RL10,
    RL30,
    RL50,
    RL100,
    RateLimit,
    client_key,
    remote_addr,
)
from storefront.ratelimit.registry import LimiterRegistry

__all__ = [
    "RL5",
    "RL10",
    "RL30",
    "RL50",
    "RL100",
    "LimiterRegistry",
    "RateLimit",
    "TokenBucket",
    "client_key",
    "remote_addr",
]
