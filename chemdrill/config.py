# =============================================================================
# CONFIGURACAO - Drill engine settings
# =============================================================================
# Centralized configuration read from CHEMDRILL_* environment variables
# =============================================================================

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

logger = logging.getLogger(__name__)

ENV_PREFIX = "CHEMDRILL_"

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class StorageBackend(str, Enum):
    """Durable tier implementations."""

    JSON = "json"
    MEMORY = "memory"
    AGENTFS = "agentfs"


def _env(name: str, default: str) -> str:
    return os.environ.get(ENV_PREFIX + name, default)


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid value for {ENV_PREFIX}{name}={raw!r}, using {default}")
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid value for {ENV_PREFIX}{name}={raw!r}, using {default}")
        return default


@dataclass
class DrillConfig:
    """Runtime configuration of the quiz session engine.

    Attributes:
        pool_endpoint: Base URL of the remote question-pool service
        request_timeout: Per-request timeout in seconds
        retry_count: Extra attempts after the first failed fetch
        retry_delay: Fixed delay between attempts, in seconds
        pool_ttl: Freshness window of cached pools, in seconds
        aggregate_ttl: Freshness window of computed aggregates, in seconds
        cache_namespace: Prefix of durable cache keys
        storage_backend: Durable tier implementation
        storage_path: File used by the json backend
        history_cap: Entries retained per leaderboard scope
        session_ttl: Seconds an unfinished session is kept after its last change
        max_finished_sessions: Finished-session results retained
        choice_count: Options presented per multiple-choice question
        log_level: Root log level used by configure_logging
    """

    pool_endpoint: str = ""
    request_timeout: float = 15.0
    retry_count: int = 2
    retry_delay: float = 1.0
    pool_ttl: float = 3600.0
    aggregate_ttl: float = 30.0
    cache_namespace: str = "chemdrill"
    storage_backend: StorageBackend = StorageBackend.JSON
    storage_path: Path = Path(".chemdrill") / "storage.json"
    history_cap: int = 5
    session_ttl: float = 86400.0
    max_finished_sessions: int = 200
    choice_count: int = 4
    log_level: str = "INFO"

    @property
    def distractor_count(self) -> int:
        return max(0, self.choice_count - 1)

    @classmethod
    def from_env(cls) -> "DrillConfig":
        """Build a config from CHEMDRILL_* environment variables."""
        backend_raw = _env("STORAGE_BACKEND", StorageBackend.JSON.value).lower()
        try:
            backend = StorageBackend(backend_raw)
        except ValueError:
            logger.warning(f"Unknown storage backend {backend_raw!r}, using json")
            backend = StorageBackend.JSON

        return cls(
            pool_endpoint=_env("POOL_ENDPOINT", ""),
            request_timeout=_env_float("REQUEST_TIMEOUT", 15.0),
            retry_count=max(0, _env_int("RETRY_COUNT", 2)),
            retry_delay=max(0.0, _env_float("RETRY_DELAY", 1.0)),
            pool_ttl=_env_float("POOL_TTL", 3600.0),
            aggregate_ttl=_env_float("AGGREGATE_TTL", 30.0),
            cache_namespace=_env("CACHE_NAMESPACE", "chemdrill"),
            storage_backend=backend,
            storage_path=Path(_env("STORAGE_PATH", str(Path(".chemdrill") / "storage.json"))),
            history_cap=max(1, _env_int("HISTORY_CAP", 5)),
            session_ttl=_env_float("SESSION_TTL", 86400.0),
            max_finished_sessions=max(1, _env_int("MAX_FINISHED_SESSIONS", 200)),
            choice_count=max(2, _env_int("CHOICE_COUNT", 4)),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the server process."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
