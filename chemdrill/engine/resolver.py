"""Question Set Resolver - Slice, shuffle and paginate a pool."""

from __future__ import annotations

import random
from collections.abc import Sequence
from typing import TypeVar

from ..models.enums import CountMode
from ..models.schemas import QuestionPool, QuestionRecord, QuizSettings

T = TypeVar("T")

ALL_COUNT_CHOICES = (10, 20, 30, 40)


class QuestionSetResolver:
    """Turns (pool, settings) into the ordered questions of a session.

    Shuffle mode shuffles the whole pool first and then slices, so a
    shuffled batch draws from the entire pool. The input pool is never
    mutated. Inject ``rng`` for deterministic tests.

    Example:
        >>> resolver = QuestionSetResolver(random.Random(7))
        >>> settings = QuizSettings(count_mode="batch-10", start_index=21)
        >>> len(resolver.resolve(pool_of_25, settings))
        5
    """

    def __init__(self, rng: random.Random | None = None):
        self.rng = rng or random.Random()

    def shuffle(self, items: Sequence[T]) -> list[T]:
        """Fisher-Yates over a copy of items."""
        result = list(items)
        for i in range(len(result) - 1, 0, -1):
            j = self.rng.randint(0, i)
            result[i], result[j] = result[j], result[i]
        return result

    def resolve(self, pool: QuestionPool | Sequence[QuestionRecord], settings: QuizSettings) -> list[QuestionRecord]:
        """Questions for a session.

        - all, no count: the whole pool
        - all, count n: the first n
        - batch-B from s: items [s-1, s-1+B), clipped to the pool
        - start past the end: empty list (no more ranges)
        """
        records = list(pool.records if isinstance(pool, QuestionPool) else pool)
        if settings.is_shuffle:
            records = self.shuffle(records)

        size = settings.count_mode.batch_size
        if size is None:
            if settings.all_count is None:
                return records
            return records[: settings.all_count]

        start = settings.start_index - 1
        if start >= len(records):
            return []
        return records[start : start + size]

    @staticmethod
    def available_ranges(total: int, batch_size: int) -> list[tuple[int, int]]:
        """1-based inclusive (start, end) ranges covering a pool of ``total``.

        >>> QuestionSetResolver.available_ranges(25, 10)
        [(1, 10), (11, 20), (21, 25)]
        """
        if total <= 0 or batch_size <= 0:
            return []
        return [(start, min(start + batch_size - 1, total)) for start in range(1, total + 1, batch_size)]

    @staticmethod
    def all_count_options(total: int) -> list[int]:
        """Question counts offered in all mode for a pool of ``total``."""
        return [n for n in ALL_COUNT_CHOICES if n <= total]

    @staticmethod
    def next_settings(settings: QuizSettings, pool_size: int) -> QuizSettings | None:
        """Settings for the following batch, or None when exhausted or not batching."""
        size = settings.count_mode.batch_size
        if size is None:
            return None
        next_start = settings.start_index + size
        if next_start > pool_size:
            return None
        return settings.model_copy(update={"start_index": next_start})

    @staticmethod
    def batch_modes() -> list[CountMode]:
        return [mode for mode in CountMode if mode.is_batch]
