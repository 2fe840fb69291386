"""Response cache: normalised question -> reply text, with TTL expiry.

Keys always go through :func:`taxibot.nl.normalizer.normalize`, so callers
may pass raw user text. Expired entries are invisible to readers right away
and are physically evicted by a periodic sweep.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Callable

from loguru import logger

from taxibot.nl.normalizer import normalize

ExpiryHook = Callable[[str, str], None]


@dataclass(frozen=True, slots=True)
class CacheStats:
    count: int
    hits: int
    misses: int
    key_size_bytes: int
    value_size_bytes: int


class ResponseCache:
    """
    Process-local reply cache.

    Entries live ``ttl_seconds`` after their last ``set``. The background
    sweeper (``start()``) evicts expired entries every
    ``check_period_seconds`` and reports each eviction to ``on_expired``.
    """

    def __init__(
        self,
        ttl_seconds: float = 24 * 60 * 60,
        check_period_seconds: float = 60 * 60,
        on_expired: ExpiryHook | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.check_period_seconds = check_period_seconds
        self.on_expired = on_expired
        self._clock = clock
        # {normalized_key: (value, expire_at)}
        self._mem: dict[str, tuple[str, float]] = {}
        self._hits = 0
        self._misses = 0
        self._lock = asyncio.Lock()
        self._sweeper: asyncio.Task | None = None

    @staticmethod
    def normalize_key(key: str) -> str:
        return normalize(key)

    # ── read / write ────────────────────────────────────────────────

    async def set(self, key: str, value: str) -> str:
        """Store *value* under the normalised *key*; returns the key used."""
        normalized = self.normalize_key(key)
        async with self._lock:
            self._mem[normalized] = (value, self._clock() + self.ttl_seconds)
        logger.debug(f"Cache set: {normalized!r}")
        return normalized

    async def get(self, key: str) -> str | None:
        normalized = self.normalize_key(key)
        async with self._lock:
            entry = self._mem.get(normalized)
            if entry is not None and self._clock() < entry[1]:
                self._hits += 1
                logger.debug(f"Cache hit: {normalized!r}")
                return entry[0]
            self._misses += 1
        logger.debug(f"Cache miss: {normalized!r}")
        return None

    async def delete(self, key: str) -> bool:
        normalized = self.normalize_key(key)
        async with self._lock:
            removed = self._mem.pop(normalized, None) is not None
        logger.debug(f"Cache delete: {normalized!r} (removed={removed})")
        return removed

    async def clear(self) -> None:
        async with self._lock:
            self._mem.clear()
        logger.info("Cache cleared")

    def keys(self) -> list[str]:
        """Live (unexpired) keys, in insertion order."""
        now = self._clock()
        return [k for k, (_, expire_at) in self._mem.items() if now < expire_at]

    def stats(self) -> CacheStats:
        live = [(k, v) for k, (v, expire_at) in self._mem.items() if self._clock() < expire_at]
        return CacheStats(
            count=len(live),
            hits=self._hits,
            misses=self._misses,
            key_size_bytes=sum(len(k.encode("utf-8")) for k, _ in live),
            value_size_bytes=sum(len(v.encode("utf-8")) for _, v in live),
        )

    def __len__(self) -> int:
        return len(self.keys())

    # ── expiry ──────────────────────────────────────────────────────

    async def sweep(self) -> list[str]:
        """Evict every expired entry; returns the evicted keys."""
        now = self._clock()
        async with self._lock:
            expired = [(k, v) for k, (v, expire_at) in self._mem.items() if now >= expire_at]
            for key, _ in expired:
                del self._mem[key]
        for key, value in expired:
            logger.info(f"Cache entry expired: {key!r}")
            if self.on_expired is not None:
                try:
                    self.on_expired(key, value)
                except Exception as exc:
                    logger.warning(f"Cache expiry hook failed for {key!r}: {exc}")
        return [k for k, _ in expired]

    async def expire_now(self, key: str | None = None) -> None:
        """Mark one key (or every key) as expired; the next sweep evicts it."""
        async with self._lock:
            targets = [self.normalize_key(key)] if key is not None else list(self._mem)
            for k in targets:
                if k in self._mem:
                    self._mem[k] = (self._mem[k][0], float("-inf"))

    @property
    def running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    def start(self) -> None:
        """Launch the periodic sweeper on the running loop (idempotent)."""
        if self.running:
            return

        async def tick() -> None:
            while True:
                await asyncio.sleep(self.check_period_seconds)
                try:
                    await self.sweep()
                except Exception as exc:
                    logger.error(f"Cache sweep failed: {exc}")

        self._sweeper = asyncio.create_task(tick())
        logger.info(f"Cache sweeper started (every {self.check_period_seconds}s)")

    async def stop(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
