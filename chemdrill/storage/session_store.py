"""Session Store - Persistencia de sessoes em andamento e encerradas."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from ..models.schemas import SessionResult
from ..models.state import DrillSession
from .kv import KVBackend

logger = logging.getLogger(__name__)

SESSION_TTL = 86400.0
MAX_RESULTS = 200


class SessionStore:
    """Drill session state over a KV backend.

    Estrutura de chaves:
        - drill:{session_id}:state  -> DrillSession.to_dict() + stored_at
        - drill:{session_id}:result -> SessionResult + stored_at

    A finished session keeps only its result; the state entry is removed.
    prune() drops states untouched for ``ttl`` seconds and keeps the
    ``max_results`` newest results.

    Example:
        >>> store = SessionStore(MemoryKV())
        >>> await store.save(session)
        >>> loaded = await store.load(session.session_id)
    """

    KEY_PREFIX = "drill"

    def __init__(
        self,
        kv: KVBackend,
        ttl: float = SESSION_TTL,
        max_results: int = MAX_RESULTS,
        clock: Callable[[], float] = time.time,
    ):
        self.kv = kv
        self.ttl = ttl
        self.max_results = max_results
        self.clock = clock

    def _state_key(self, session_id: str) -> str:
        return f"{self.KEY_PREFIX}:{session_id}:state"

    def _result_key(self, session_id: str) -> str:
        return f"{self.KEY_PREFIX}:{session_id}:result"

    async def save(self, session: DrillSession) -> bool:
        """Persist a session. Returns False if the write failed."""
        data = session.to_dict()
        data["stored_at"] = self.clock()
        try:
            await self.kv.set(self._state_key(session.session_id), data)
        except Exception as e:
            logger.warning(f"Session state not persisted: {session.session_id}: {e}")
            return False
        logger.debug(f"Session state saved: {session.session_id}")
        return True

    async def load(self, session_id: str) -> DrillSession | None:
        data = await self.kv.get(self._state_key(session_id))
        if not data:
            logger.debug(f"Session not found: {session_id}")
            return None
        try:
            return DrillSession.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Unreadable session state {session_id}: {e}")
            return None

    # =========================================================================
    # Results
    # =========================================================================

    async def save_result(self, result: SessionResult) -> bool:
        """Persist a finished session's result and drop its state."""
        data = {"result": result.model_dump(mode="json"), "stored_at": self.clock()}
        try:
            await self.kv.set(self._result_key(result.session_id), data)
            await self.kv.delete(self._state_key(result.session_id))
        except Exception as e:
            logger.warning(f"Session result not persisted: {result.session_id}: {e}")
            return False
        await self.prune()
        return True

    async def load_result(self, session_id: str) -> SessionResult | None:
        data = await self.kv.get(self._result_key(session_id))
        if not data:
            return None
        try:
            return SessionResult.model_validate(data["result"])
        except (KeyError, TypeError, ValidationError) as e:
            logger.warning(f"Unreadable session result {session_id}: {e}")
            return None

    async def delete(self, session_id: str) -> None:
        await self.kv.delete(self._state_key(session_id))
        await self.kv.delete(self._result_key(session_id))
        logger.debug(f"Session deleted: {session_id}")

    # =========================================================================
    # Listing & pruning
    # =========================================================================

    async def _ids(self, kind: str) -> list[str]:
        entries = await self.kv.list(prefix=f"{self.KEY_PREFIX}:")
        ids = set()
        for entry in entries:
            key = entry.get("key", "") if isinstance(entry, dict) else str(entry)
            parts = key.split(":")
            if len(parts) >= 3 and parts[2] == kind:
                ids.add(parts[1])
        return sorted(ids)

    async def list_ids(self) -> list[str]:
        """Ids of sessions still in progress."""
        return await self._ids("state")

    async def list_result_ids(self) -> list[str]:
        return await self._ids("result")

    @staticmethod
    def _stored_at(data: Any) -> float:
        if isinstance(data, dict):
            value = data.get("stored_at", 0)
            if isinstance(value, (int, float)):
                return float(value)
        return 0.0

    async def prune(self) -> int:
        """Drop stale states and results beyond the cap. Returns removed count."""
        now = self.clock()
        stale = []
        for session_id in await self.list_ids():
            data = await self.kv.get(self._state_key(session_id))
            if now - self._stored_at(data) >= self.ttl:
                stale.append(self._state_key(session_id))

        results = []
        for session_id in await self.list_result_ids():
            data = await self.kv.get(self._result_key(session_id))
            results.append((self._stored_at(data), session_id))
        results.sort(reverse=True)
        stale += [self._result_key(session_id) for _, session_id in results[self.max_results :]]

        removed = 0
        for key in stale:
            try:
                await self.kv.delete(key)
            except Exception as e:
                logger.warning(f"Failed to prune {key}: {e}")
                continue
            removed += 1
        if removed:
            logger.info(f"Pruned {removed} session entries")
        return removed
