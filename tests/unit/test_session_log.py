# =============================================================================
# TESTES - Session Log
# =============================================================================
# Testes unitarios para log de sessoes e resumo do aprendiz
# =============================================================================

from datetime import datetime, timedelta, timezone

import pytest

BASE_TIME = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _log(correct: int, total: int = 10, offset: int = 0, mode: str = "inorganic-products-inorganic"):
    from chemdrill.models.schemas import SessionLog

    return SessionLog(
        session_id=f"s{offset}",
        mode=mode,
        category="inorganic",
        range_key="10:1",
        correct_count=correct,
        total_count=total,
        point_score=correct * 900,
        recorded_at=BASE_TIME + timedelta(minutes=offset),
    )


class TestComputeSummary:
    """Testes para compute_summary()."""

    def test_empty(self):
        from chemdrill.storage.session_log import compute_summary

        summary = compute_summary([])

        assert summary.level == 0
        assert summary.exp == 0
        assert summary.last is None

    def test_exp_and_level(self):
        """EXP = acertos totais, LV = EXP // 100 + 1."""
        from chemdrill.storage.session_log import compute_summary

        logs = [_log(10, offset=i) for i in range(25)]

        summary = compute_summary(logs)

        assert summary.exp == 250
        assert summary.level == 3
        assert summary.sessions == 25
        assert summary.last == BASE_TIME + timedelta(minutes=24)

    def test_averages(self):
        """Media geral e das ultimas 10 sessoes."""
        from chemdrill.storage.session_log import compute_summary

        logs = [_log(0, offset=i) for i in range(10)] + [_log(10, offset=10 + i) for i in range(10)]

        summary = compute_summary(logs)

        assert summary.all_average == pytest.approx(0.5)
        assert summary.recent_average == pytest.approx(1.0)

    def test_perfect_streaks(self):
        """Sequencias de sessoes 100% (atual e maxima)."""
        from chemdrill.storage.session_log import compute_summary

        pattern = [10, 10, 10, 5, 10, 10]
        logs = [_log(c, offset=i) for i, c in enumerate(pattern)]

        summary = compute_summary(list(reversed(logs)))

        assert summary.max_streak == 3
        assert summary.current_streak == 2


class TestSessionLogStore:
    """Testes para SessionLogStore."""

    @pytest.mark.asyncio
    async def test_append_and_list_newest_first(self, mock_kv_with_data):
        from chemdrill.storage.session_log import SessionLogStore

        store = SessionLogStore(mock_kv_with_data)
        await store.append(_log(3, offset=0))
        await store.append(_log(7, offset=5))

        logs = await store.list()

        assert [entry.correct_count for entry in logs] == [7, 3]

    @pytest.mark.asyncio
    async def test_cap(self, mock_kv_with_data):
        from chemdrill.storage.session_log import SessionLogStore

        store = SessionLogStore(mock_kv_with_data, max_sessions=3)
        for i in range(5):
            await store.append(_log(i, offset=i))

        logs = await store.list()

        assert [entry.correct_count for entry in logs] == [4, 3, 2]
        assert len(mock_kv_with_data._storage["sessions:log"]) == 3

    @pytest.mark.asyncio
    async def test_mode_prefix_filter(self, mock_kv_with_data):
        from chemdrill.storage.session_log import SessionLogStore

        store = SessionLogStore(mock_kv_with_data)
        await store.append(_log(5, offset=0, mode="inorganic-products-inorganic"))
        await store.append(_log(9, offset=1, mode="compound-name-organic"))

        organic = await store.list("compound")
        summary = await store.summary("inorganic")

        assert [entry.correct_count for entry in organic] == [9]
        assert summary.exp == 5

    @pytest.mark.asyncio
    async def test_append_failure_returns_false(self, failing_kv):
        from chemdrill.storage.session_log import SessionLogStore

        assert await SessionLogStore(failing_kv).append(_log(1)) is False

    @pytest.mark.asyncio
    async def test_summary_cache_invalidated_on_append(self, mock_kv_with_data):
        """Resumo em cache e recalculado apos novo append."""
        from chemdrill.storage.cache_store import CacheStore
        from chemdrill.storage.session_log import SessionLogStore

        cache = CacheStore(mock_kv_with_data)
        store = SessionLogStore(mock_kv_with_data, cache=cache)
        await store.append(_log(4, offset=0))

        first = await store.summary()
        cached = await store.summary()
        await store.append(_log(6, offset=1))
        after = await store.summary()

        assert first.exp == cached.exp == 4
        assert after.exp == 10
        assert cache.get_stats()["hits"] >= 1
