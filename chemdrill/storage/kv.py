"""KV Backends - Durable tier for the cache and history stores.

Every backend exposes the async key-value surface of ``AgentFS.kv``
(get / set / delete / list(prefix)), so an opened AgentFS instance's
``kv`` attribute can be passed anywhere a backend is expected.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

from ..config import DrillConfig, StorageBackend
from ..exceptions import StorageWriteFailure

if TYPE_CHECKING:
    from agentfs_sdk import AgentFS

logger = logging.getLogger(__name__)


class KVBackend(Protocol):
    """Async key-value surface shared with AgentFS.kv."""

    async def get(self, key: str) -> Any: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def list(self, prefix: str = "") -> list[dict[str, str]]: ...


class MemoryKV:
    """In-process backend. Values are deep-copied on the way in and out."""

    def __init__(self):
        self._data: dict[str, Any] = {}

    async def get(self, key: str) -> Any:
        return copy.deepcopy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def list(self, prefix: str = "") -> list[dict[str, str]]:
        return [{"key": k} for k in sorted(self._data) if k.startswith(prefix)]

    def __len__(self) -> int:
        return len(self._data)


class JsonFileKV:
    """Single-file JSON backend, the local-storage analogue.

    The whole map is rewritten atomically (temp file + replace) on every
    mutation. A failed write, or one that would exceed ``quota_bytes``,
    raises StorageWriteFailure and leaves the previous contents intact.

    Example:
        >>> kv = JsonFileKV(Path(".chemdrill/storage.json"))
        >>> await kv.set("history:organic:10:1", [...])
    """

    def __init__(self, path: Path | str, quota_bytes: int | None = None):
        self.path = Path(path)
        self.quota_bytes = quota_bytes
        self._data: dict[str, Any] | None = None
        self._lock = asyncio.Lock()

    def _load(self) -> dict[str, Any]:
        if self._data is not None:
            return self._data
        try:
            raw = self.path.read_text(encoding="utf-8")
            loaded = json.loads(raw) if raw.strip() else {}
            self._data = loaded if isinstance(loaded, dict) else {}
        except FileNotFoundError:
            self._data = {}
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Unreadable storage file {self.path}, starting empty: {e}")
            self._data = {}
        return self._data

    def _flush(self, data: dict[str, Any]) -> None:
        payload = json.dumps(data, ensure_ascii=False)
        if self.quota_bytes is not None and len(payload.encode("utf-8")) > self.quota_bytes:
            raise StorageWriteFailure(
                "Storage quota exceeded",
                {"path": str(self.path), "quota_bytes": self.quota_bytes},
            )
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(payload, encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as e:
            raise StorageWriteFailure(f"Failed to write {self.path}: {e}", {"path": str(self.path)}) from e

    async def get(self, key: str) -> Any:
        async with self._lock:
            return copy.deepcopy(self._load().get(key))

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            data = dict(self._load())
            data[key] = copy.deepcopy(value)
            await asyncio.to_thread(self._flush, data)
            self._data = data

    async def delete(self, key: str) -> None:
        async with self._lock:
            current = self._load()
            if key not in current:
                return
            data = {k: v for k, v in current.items() if k != key}
            await asyncio.to_thread(self._flush, data)
            self._data = data

    async def list(self, prefix: str = "") -> list[dict[str, str]]:
        async with self._lock:
            return [{"key": k} for k in sorted(self._load()) if k.startswith(prefix)]


async def open_agentfs(session_id: str) -> AgentFS:
    """Open an AgentFS database; its ``kv`` is a drop-in backend."""
    from agentfs_sdk import AgentFS, AgentFSOptions

    return await AgentFS.open(AgentFSOptions(id=session_id))


async def create_kv_backend(config: DrillConfig) -> tuple[KVBackend, Any]:
    """Build the configured durable backend.

    Returns:
        Tuple of (backend, closeable) where closeable is the AgentFS handle
        to close on shutdown, or None.
    """
    if config.storage_backend is StorageBackend.MEMORY:
        return MemoryKV(), None
    if config.storage_backend is StorageBackend.AGENTFS:
        afs = await open_agentfs(config.cache_namespace)
        return afs.kv, afs
    return JsonFileKV(config.storage_path), None
