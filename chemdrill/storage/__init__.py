"""Drill Storage - KV backends, cache, leaderboard and session log."""

from .cache_store import AGGREGATE_TTL, POOL_TTL, CacheEntry, CacheStats, CacheStore
from .history_store import HistoryStore
from .kv import JsonFileKV, KVBackend, MemoryKV, create_kv_backend, open_agentfs
from .session_log import SessionLogStore, compute_summary
from .session_store import SessionStore

__all__ = [
    "AGGREGATE_TTL",
    "POOL_TTL",
    "CacheEntry",
    "CacheStats",
    "CacheStore",
    "HistoryStore",
    "JsonFileKV",
    "KVBackend",
    "MemoryKV",
    "create_kv_backend",
    "open_agentfs",
    "SessionLogStore",
    "compute_summary",
    "SessionStore",
]
