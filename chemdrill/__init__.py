"""ChemDrill - Chemistry quiz session engine.

Loads question pools (cache, remote endpoint, bundled datasets), resolves
the questions of a session, builds distractors, scores answers with a
time penalty and streak bonus, and keeps per-range leaderboards.
"""

from .config import DrillConfig, StorageBackend, configure_logging
from .engine import DistractorEngine, DrillEngine, QuestionSetResolver, ScoringEngine
from .exceptions import (
    DataUnavailable,
    DrillError,
    NetworkFailure,
    NetworkTimeout,
    RecordValidationError,
    RemoteServiceError,
    SessionNotFound,
    StorageWriteFailure,
    ValidationFailure,
)
from .loader import FallbackDatasets, RemotePoolLoader
from .storage import CacheStore, HistoryStore, JsonFileKV, MemoryKV, SessionLogStore, SessionStore

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Config
    "DrillConfig",
    "StorageBackend",
    "configure_logging",
    # Engines
    "DistractorEngine",
    "DrillEngine",
    "QuestionSetResolver",
    "ScoringEngine",
    # Loading
    "FallbackDatasets",
    "RemotePoolLoader",
    # Storage
    "CacheStore",
    "HistoryStore",
    "JsonFileKV",
    "MemoryKV",
    "SessionLogStore",
    "SessionStore",
    # Errors
    "DrillError",
    "NetworkTimeout",
    "NetworkFailure",
    "RemoteServiceError",
    "ValidationFailure",
    "RecordValidationError",
    "DataUnavailable",
    "StorageWriteFailure",
    "SessionNotFound",
]
