"""History Store - Top-N score leaderboard per (mode, range) scope."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from ..models.schemas import HistoryScope, RecordOutcome, ScoreHistoryEntry
from .kv import KVBackend

logger = logging.getLogger(__name__)


class HistoryStore:
    """Leaderboard of the best scores per scope, persisted in a KV backend.

    Estrutura de chaves:
        - history:{mode}:{range_key} -> list of ScoreHistoryEntry dicts,
          sorted by score descending, at most ``cap`` long

    Ties keep insertion order (the earlier session ranks higher). A write
    failure is logged and the record becomes a no-op; reads of a missing
    or corrupt scope return an empty list.

    Example:
        >>> store = HistoryStore(MemoryKV())
        >>> scope = HistoryScope(mode="inorganic-products", range_key="10:1")
        >>> outcome = await store.record_session(scope, entry)
        >>> outcome.is_new_record
        True
    """

    KEY_PREFIX = "history"

    def __init__(self, kv: KVBackend, cap: int = 5):
        if cap < 1:
            raise ValueError("cap must be >= 1")
        self.kv = kv
        self.cap = cap

    def _scope_key(self, scope: HistoryScope) -> str:
        return f"{self.KEY_PREFIX}:{scope.key}"

    async def _load(self, scope: HistoryScope) -> list[ScoreHistoryEntry]:
        key = self._scope_key(scope)
        try:
            data = await self.kv.get(key)
        except Exception as e:
            logger.warning(f"History read failed for {key}: {e}")
            return []
        if not isinstance(data, list):
            return []

        entries = []
        for item in data:
            try:
                entries.append(ScoreHistoryEntry.model_validate(item))
            except ValidationError:
                logger.warning(f"Skipping malformed history entry in {key}: {item!r}")
        return entries

    async def record(self, scope: HistoryScope, entry: ScoreHistoryEntry) -> int | None:
        """Insert entry, keep the top ``cap`` by score.

        Returns:
            1-based rank of the new entry, None if it did not make the cut
        """
        entries = await self._load(scope)
        entries.append(entry)
        # sorted() is stable: earlier entries win ties
        ranked = sorted(entries, key=lambda e: e.score, reverse=True)[: self.cap]

        rank = None
        for position, kept in enumerate(ranked, start=1):
            if kept is entry:
                rank = position
                break

        key = self._scope_key(scope)
        try:
            await self.kv.set(key, [e.model_dump(mode="json") for e in ranked])
        except Exception as e:
            logger.warning(f"History write failed for {key}, record dropped: {e}")
            return None

        logger.debug(f"History recorded: {key} score={entry.score} rank={rank}")
        return rank

    async def top_n(self, scope: HistoryScope, n: int = 5) -> list[ScoreHistoryEntry]:
        """Best entries of a scope, at most min(n, cap)."""
        if n <= 0:
            return []
        entries = await self._load(scope)
        return entries[: min(n, self.cap)]

    async def best(self, scope: HistoryScope) -> int | None:
        entries = await self._load(scope)
        return entries[0].score if entries else None

    async def is_new_record(self, scope: HistoryScope, score: int) -> bool:
        """True if score beats the scope's best, or the scope is empty."""
        best = await self.best(scope)
        return best is None or score > best

    async def record_session(self, scope: HistoryScope, entry: ScoreHistoryEntry) -> RecordOutcome:
        """Evaluate new-record status against the prior best, then record."""
        previous_best = await self.best(scope)
        is_new = previous_best is None or entry.score > previous_best
        rank = await self.record(scope, entry)
        return RecordOutcome(is_new_record=is_new, rank=rank, previous_best=previous_best)

    async def clear(self, scope: HistoryScope) -> None:
        key = self._scope_key(scope)
        try:
            await self.kv.delete(key)
        except Exception as e:
            logger.warning(f"History delete failed for {key}: {e}")
        logger.info(f"History cleared: {key}")

    async def list_scopes(self, mode: str | None = None) -> list[HistoryScope]:
        """Scopes that have stored history, optionally for a single mode."""
        prefix = f"{self.KEY_PREFIX}:" if mode is None else f"{self.KEY_PREFIX}:{mode}:"
        entries = await self.kv.list(prefix=prefix)

        scopes = []
        for entry in entries:
            key = entry.get("key", "") if isinstance(entry, dict) else str(entry)
            parts = key.split(":", 2)
            if len(parts) == 3 and parts[1] and parts[2]:
                scopes.append(HistoryScope(mode=parts[1], range_key=parts[2]))
        return scopes
