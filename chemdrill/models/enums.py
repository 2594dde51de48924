"""Drill Enums - Pool types, count/order modes and result tiers."""

from enum import Enum


class Category(str, Enum):
    """Question bank categories."""

    ORGANIC = "organic"
    INORGANIC = "inorganic"


class PoolType(str, Enum):
    """Named pools served by the remote endpoint (?type=...)."""

    COMPOUNDS = "compounds"
    REACTIONS = "reactions"
    EXPERIMENT = "experiment"
    INORGANIC = "inorganic"  # header-mapped sheet with family/tags_norm
    INORGANIC_NEW = "inorganic-new"  # fixed-column sheet A..K


class CountMode(str, Enum):
    """How many questions a session draws from the pool."""

    ALL = "all"
    BATCH_10 = "batch-10"
    BATCH_20 = "batch-20"
    BATCH_40 = "batch-40"

    @property
    def batch_size(self) -> int | None:
        if self is CountMode.ALL:
            return None
        return int(self.value.split("-", 1)[1])

    @property
    def is_batch(self) -> bool:
        return self is not CountMode.ALL


class OrderMode(str, Enum):
    """Presentation order of the resolved questions."""

    SEQUENTIAL = "sequential"
    SHUFFLE = "shuffle"


class PoolSource(str, Enum):
    """Which tier produced a pool."""

    CACHE = "cache"
    REMOTE = "remote"
    FALLBACK = "fallback"


class SessionRank(str, Enum):
    """End-of-session tiers by accuracy."""

    PERFECT = "perfect"  # 100%
    GREAT = "great"  # >= 80%
    FAIR = "fair"  # >= 50%
    KEEP_GOING = "keep_going"  # < 50%
