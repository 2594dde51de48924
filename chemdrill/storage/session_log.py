"""Session Log Store - Finished sessions and learner statistics."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from ..models.schemas import LearnerSummary, SessionLog
from .cache_store import AGGREGATE_TTL, CacheStore
from .kv import KVBackend

logger = logging.getLogger(__name__)

RECENT_WINDOW = 10
EXP_PER_LEVEL = 100


def compute_summary(sessions: list[SessionLog]) -> LearnerSummary:
    """Aggregate a list of session logs.

    - exp: total correct answers over all sessions
    - level: exp // 100 + 1 (0 when there are no sessions)
    - all_average / recent_average: pooled accuracy over all / last 10
    - current_streak / max_streak: runs of consecutive 100% sessions

    Args:
        sessions: Logs in any order

    Returns:
        LearnerSummary
    """
    if not sessions:
        return LearnerSummary()

    newest_first = sorted(sessions, key=lambda s: s.recorded_at, reverse=True)

    total_correct = sum(s.correct_count for s in newest_first)
    total_questions = sum(s.total_count for s in newest_first)

    recent = newest_first[:RECENT_WINDOW]
    recent_correct = sum(s.correct_count for s in recent)
    recent_questions = sum(s.total_count for s in recent)

    current = 0
    longest = 0
    for s in reversed(newest_first):
        if s.total_count > 0 and s.correct_count == s.total_count:
            current += 1
            longest = max(longest, current)
        else:
            current = 0

    return LearnerSummary(
        exp=total_correct,
        level=total_correct // EXP_PER_LEVEL + 1,
        all_average=total_correct / total_questions if total_questions else 0.0,
        recent_average=recent_correct / recent_questions if recent_questions else 0.0,
        sessions=len(newest_first),
        last=newest_first[0].recorded_at,
        current_streak=current,
        max_streak=longest,
    )


class SessionLogStore:
    """Append-only log of finished sessions, capped at ``max_sessions``.

    Estrutura de chaves:
        - sessions:log -> list of SessionLog dicts, oldest first

    Summaries are cached for ``ttl`` seconds when a CacheStore is given and
    invalidated on every append.
    """

    LOG_KEY = "sessions:log"

    def __init__(
        self,
        kv: KVBackend,
        max_sessions: int = 1000,
        cache: CacheStore | None = None,
        ttl: float = AGGREGATE_TTL,
    ):
        self.kv = kv
        self.max_sessions = max_sessions
        self.cache = cache
        self.ttl = ttl
        self._summary_keys: set[str] = set()

    def _summary_key(self, mode_prefix: str | None) -> str:
        scope = mode_prefix or "all"
        if self.cache is not None:
            return self.cache.key_for("summary", scope)
        return f"summary_{scope}"

    async def _load(self) -> list[SessionLog]:
        try:
            data = await self.kv.get(self.LOG_KEY)
        except Exception as e:
            logger.warning(f"Session log read failed: {e}")
            return []
        if not isinstance(data, list):
            return []

        logs = []
        for item in data:
            try:
                logs.append(SessionLog.model_validate(item))
            except ValidationError:
                logger.warning(f"Skipping malformed session log: {item!r}")
        return logs

    async def append(self, log: SessionLog) -> bool:
        """Append a finished session. Returns False if the write failed."""
        logs = await self._load()
        logs.append(log)
        logs = logs[-self.max_sessions :]
        try:
            await self.kv.set(self.LOG_KEY, [entry.model_dump(mode="json") for entry in logs])
        except Exception as e:
            logger.warning(f"Session log write failed, session {log.session_id} not logged: {e}")
            return False

        if self.cache is not None:
            for key in self._summary_keys:
                await self.cache.delete(key)
            self._summary_keys.clear()
        return True

    async def list(self, mode_prefix: str | None = None) -> list[SessionLog]:
        """Logs newest first, optionally restricted to modes with a prefix."""
        logs = await self._load()
        if mode_prefix:
            logs = [entry for entry in logs if entry.mode.startswith(mode_prefix)]
        return sorted(logs, key=lambda entry: entry.recorded_at, reverse=True)

    async def summary(self, mode_prefix: str | None = None) -> LearnerSummary:
        key = self._summary_key(mode_prefix)
        if self.cache is not None:
            cached = await self.cache.get(key, ttl=self.ttl)
            if cached is not None:
                return LearnerSummary.model_validate(cached)

        result = compute_summary(await self.list(mode_prefix))
        if self.cache is not None:
            await self.cache.set(key, result.model_dump(mode="json"))
            self._summary_keys.add(key)
        return result
