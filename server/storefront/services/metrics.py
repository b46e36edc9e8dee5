# ─────────────────────────────────────────────────────────────────────────────
# Server Metrics — thread-safe storefront counters
# ─────────────────────────────────────────────────────────────────────────────
# Tracks request latency, checkout outcomes, and webhook inventory updates.
# Limiter admit/throttle counts live on the LimiterRegistry and are merged
# in by the /metrics endpoint. Exposed via GET /metrics.
#
# Thread-safe: sync route handlers run on the threadpool, so all mutations
# use a threading.Lock.
#
# Bounded: latency history uses deque(maxlen=1000), auto-evicts oldest.
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ServerMetrics:
    """Thread-safe storefront metrics."""

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    requests_total: int = 0
    errors_total: int = 0
    checkout_sessions: int = 0
    out_of_stock: int = 0
    webhook_events: int = 0
    inventory_updates: int = 0

    _latency_history: deque[float] = field(default_factory=lambda: deque(maxlen=1000), repr=False)
    _start_time: float = field(default_factory=time.time, repr=False)

    def record_request(self, latency_ms: float, status_code: int) -> None:
        with self._lock:
            self.requests_total += 1
            self._latency_history.append(latency_ms)
            if status_code >= 500:
                self.errors_total += 1

    def record_checkout(self, *, session_created: bool) -> None:
        """Count a checkout attempt: a Stripe session, or a short-stock reply."""
        with self._lock:
            if session_created:
                self.checkout_sessions += 1
            else:
                self.out_of_stock += 1

    def record_webhook(self, inventory_updates: int) -> None:
        with self._lock:
            self.webhook_events += 1
            self.inventory_updates += inventory_updates

    def to_dict(self) -> dict[str, Any]:
        """Serialize metrics for the /metrics endpoint."""
        with self._lock:
            latencies = sorted(self._latency_history)
            n = len(latencies)
            return {
                "requests_total": self.requests_total,
                "errors_total": self.errors_total,
                "checkout_sessions": self.checkout_sessions,
                "out_of_stock": self.out_of_stock,
                "webhook_events": self.webhook_events,
                "inventory_updates": self.inventory_updates,
                "latency_p50_ms": round(latencies[n // 2], 1) if n else 0,
                "latency_p95_ms": round(latencies[int(n * 0.95)], 1) if n else 0,
                "latency_mean_ms": round(sum(latencies) / n, 1) if n else 0,
                "uptime_seconds": int(time.time() - self._start_time),
            }
