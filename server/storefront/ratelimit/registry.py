# ─────────────────────────────────────────────────────────────────────────────
# Limiter Registry — per-client token buckets with idle eviction
# ─────────────────────────────────────────────────────────────────────────────
# One bucket per (client key, route limit). Buckets are created lazily on
# first sight and dropped by a background sweep once idle, so memory tracks
# recently active clients rather than every client ever seen.
#
# A single threading.Lock guards the map. Critical sections are O(1) for
# admit and O(n) for the sweep. Bucket token math runs outside the map lock
# under the bucket's own lock.
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import asyncio
import contextlib
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog

from storefront.ratelimit.bucket import TokenBucket

logger = structlog.get_logger(__name__)

BucketKey = tuple[str, int]


@dataclass
class _Entry:
    bucket: TokenBucket
    last_seen: float


class LimiterRegistry:
    """Concurrency-safe map of client key → token bucket.

    Stored in app.state during lifespan, consumed by the RateLimit
    dependency. Instantiate one per test with an injected clock to
    drive refill and eviction without sleeping.
    """

    def __init__(
        self,
        period: float = 60.0,
        idle_timeout: float = 60.0,
        sweep_interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._period = period
        self._idle_timeout = idle_timeout
        self._sweep_interval = sweep_interval
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[BucketKey, _Entry] = {}
        self._sweeper: asyncio.Task[None] | None = None

        self._admitted = 0
        self._throttled = 0
        self._evicted = 0

    # ── Admission ────────────────────────────────────────────────────────

    def admit(self, key: str, capacity: int) -> bool:
        """Return True if `key` may run one more request under `capacity`/period.

        Creation on first sight happens under the map lock, so concurrent
        first requests from one client share a single bucket. Every call
        refreshes last_seen, admitted or not.
        """
        bucket = self._touch(key, capacity)
        allowed = bucket.try_acquire()
        with self._lock:
            if allowed:
                self._admitted += 1
            else:
                self._throttled += 1
        return allowed

    def retry_after(self, key: str, capacity: int) -> float:
        """Seconds until `key` regains a token under `capacity` (0 if unknown)."""
        with self._lock:
            entry = self._entries.get((key, capacity))
        if entry is None:
            return 0.0
        return entry.bucket.retry_after()

    def _touch(self, key: str, capacity: int) -> TokenBucket:
        now = self._clock()
        with self._lock:
            entry = self._entries.get((key, capacity))
            if entry is None:
                entry = _Entry(
                    bucket=TokenBucket(capacity, period=self._period, clock=self._clock),
                    last_seen=now,
                )
                self._entries[(key, capacity)] = entry
                logger.debug("limiter_bucket_created", client=key, capacity=capacity)
            else:
                entry.last_seen = now
            return entry.bucket

    # ── Eviction ─────────────────────────────────────────────────────────

    def sweep(self) -> int:
        """Drop every bucket idle for longer than idle_timeout. Returns count."""
        now = self._clock()
        with self._lock:
            stale = [
                bucket_key
                for bucket_key, entry in self._entries.items()
                if now - entry.last_seen > self._idle_timeout
            ]
            for bucket_key in stale:
                del self._entries[bucket_key]
            self._evicted += len(stale)
            remaining = len(self._entries)

        if stale:
            logger.debug("limiter_sweep", evicted=len(stale), active=remaining)
        return len(stale)

    async def _run_sweeper(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            self.sweep()

    async def start(self) -> None:
        """Start the background sweep task (no-op if already running)."""
        if self._sweeper is not None and not self._sweeper.done():
            return
        self._sweeper = asyncio.create_task(self._run_sweeper(), name="limiter-sweep")
        self._sweeper.add_done_callback(_on_sweeper_done)
        logger.info(
            "limiter_sweeper_started",
            interval_s=self._sweep_interval,
            idle_timeout_s=self._idle_timeout,
        )

    async def stop(self) -> None:
        """Cancel the sweep task and wait for it. Safe to call twice."""
        task, self._sweeper = self._sweeper, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("limiter_sweeper_stopped")

    @property
    def running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    # ── Introspection ────────────────────────────────────────────────────

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, bucket_key: object) -> bool:
        with self._lock:
            return bucket_key in self._entries

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "active_buckets": len(self._entries),
                "admitted": self._admitted,
                "throttled": self._throttled,
                "evicted": self._evicted,
            }


def _on_sweeper_done(task: asyncio.Task[None]) -> None:
    """Surface sweep-loop crashes; cancellation is the normal exit."""
    if task.cancelled():
        return
    if exc := task.exception():
        logger.error("limiter_sweeper_failed", error=str(exc), error_type=type(exc).__name__)
