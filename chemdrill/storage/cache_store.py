"""Cache Store - Two-tier TTL cache for pools and aggregates.

Este modulo fornece:
- Memory tier (per-process dict of CacheEntry)
- Durable tier over any KV backend, stored as {"value", "storedAt"}
- Lazy expiry on read; no background sweep
"""

import copy
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .kv import KVBackend

logger = logging.getLogger(__name__)

POOL_TTL = 3600.0
AGGREGATE_TTL = 30.0


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class CacheEntry:
    """Valor em cache com instante de escrita (epoch seconds)."""

    value: Any
    stored_at: float

    def is_expired(self, ttl: float, now: float) -> bool:
        return now - self.stored_at >= ttl

    def to_durable(self) -> dict[str, Any]:
        return {"value": self.value, "storedAt": int(self.stored_at * 1000)}

    @classmethod
    def from_durable(cls, data: Any) -> "CacheEntry | None":
        if not isinstance(data, dict) or "value" not in data:
            return None
        stored = data.get("storedAt")
        if not isinstance(stored, (int, float)) or isinstance(stored, bool):
            return None
        return cls(value=data["value"], stored_at=stored / 1000)


@dataclass
class CacheStats:
    """Estatisticas do cache."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    durable_write_failures: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0


# =============================================================================
# Cache Store
# =============================================================================


class CacheStore:
    """TTL cache with a memory tier in front of an optional durable tier.

    Reads check memory first, then the durable tier (a durable hit is
    copied back into memory). An entry with ``now - stored_at >= ttl`` is a
    miss and is evicted from both tiers. Writes never raise: a durable
    failure is logged and counted, and the memory tier still holds the
    value for the rest of the process.

    Example:
        >>> cache = CacheStore(MemoryKV(), namespace="chemdrill")
        >>> key = cache.key_for("inorganic", "inorganic-new")
        >>> await cache.set(key, pool_dict)
        >>> await cache.get(key)
    """

    def __init__(
        self,
        kv: KVBackend | None = None,
        namespace: str = "chemdrill",
        ttl_seconds: float = POOL_TTL,
        clock: Callable[[], float] = time.time,
    ):
        self.kv = kv
        self.namespace = namespace
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._memory: dict[str, CacheEntry] = {}
        self._stats = CacheStats()

    def key_for(self, *parts: str) -> str:
        """Durable key ``<namespace>_<part>_<part>...``."""
        return "_".join([self.namespace, *(str(p) for p in parts)])

    async def get(self, key: str, ttl: float | None = None) -> Any | None:
        """Fresh value for key, or None.

        Args:
            key: Cache key
            ttl: Freshness window for this read, defaults to ttl_seconds
        """
        ttl = self.ttl_seconds if ttl is None else ttl
        now = self._clock()

        entry = self._memory.get(key)
        if entry is not None:
            if not entry.is_expired(ttl, now):
                self._stats.hits += 1
                logger.debug(f"Cache hit (memory): {key}")
                return copy.deepcopy(entry.value)
            await self._evict(key)
            self._stats.misses += 1
            return None

        if self.kv is None:
            self._stats.misses += 1
            logger.debug(f"Cache miss: {key}")
            return None

        try:
            raw = await self.kv.get(key)
        except Exception as e:
            logger.warning(f"Durable cache read failed for {key}: {e}")
            self._stats.misses += 1
            return None

        entry = CacheEntry.from_durable(raw)
        if entry is None:
            self._stats.misses += 1
            logger.debug(f"Cache miss: {key}")
            return None
        if entry.is_expired(ttl, now):
            await self._evict(key)
            self._stats.misses += 1
            return None

        self._memory[key] = entry
        self._stats.hits += 1
        logger.debug(f"Cache hit (durable): {key}")
        return copy.deepcopy(entry.value)

    async def set(self, key: str, value: Any) -> None:
        """Store value in both tiers. Never raises."""
        entry = CacheEntry(value=copy.deepcopy(value), stored_at=self._clock())
        self._memory[key] = entry
        if self.kv is None:
            return
        try:
            await self.kv.set(key, entry.to_durable())
        except Exception as e:
            self._stats.durable_write_failures += 1
            logger.warning(f"Durable cache write failed for {key}, keeping memory copy: {e}")

    async def delete(self, key: str) -> None:
        self._memory.pop(key, None)
        if self.kv is None:
            return
        try:
            await self.kv.delete(key)
        except Exception as e:
            logger.warning(f"Durable cache delete failed for {key}: {e}")

    async def _evict(self, key: str) -> None:
        self._stats.evictions += 1
        logger.debug(f"Cache entry expired: {key}")
        await self.delete(key)

    def clear(self) -> None:
        """Limpa o memory tier. Durable entries expire on their own."""
        self._memory.clear()

    def dispose(self) -> None:
        """Release the memory tier and reset statistics."""
        self._memory.clear()
        self._stats = CacheStats()

    def get_stats(self) -> dict:
        """Retorna estatisticas do cache."""
        return {
            "size": len(self._memory),
            "hits": self._stats.hits,
            "misses": self._stats.misses,
            "evictions": self._stats.evictions,
            "durable_write_failures": self._stats.durable_write_failures,
            "hit_rate": round(self._stats.hit_rate, 4),
        }
