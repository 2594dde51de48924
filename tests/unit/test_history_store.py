# =============================================================================
# TESTES - History Store
# =============================================================================
# Testes unitarios para o ranking top-N por modo e faixa
# =============================================================================

from datetime import datetime, timedelta, timezone

import pytest


def _entry(score: int, correct: int = 5, total: int = 10, offset: int = 0):
    from chemdrill.models.schemas import ScoreHistoryEntry

    recorded = datetime(2026, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=offset)
    return ScoreHistoryEntry(score=score, correct_count=correct, total_count=total, recorded_at=recorded)


@pytest.fixture
def scope():
    from chemdrill.models.schemas import HistoryScope

    return HistoryScope(mode="inorganic-products-inorganic", range_key="10:1")


class TestHistoryStoreKeys:
    """Testes para geracao de chaves."""

    def test_scope_key_format(self, mock_kv, scope):
        from chemdrill.storage.history_store import HistoryStore

        store = HistoryStore(mock_kv)

        assert store._scope_key(scope) == "history:inorganic-products-inorganic:10:1"

    def test_invalid_cap(self, mock_kv):
        from chemdrill.storage.history_store import HistoryStore

        with pytest.raises(ValueError):
            HistoryStore(mock_kv, cap=0)


class TestHistoryStoreRecord:
    """Testes para record() e top_n()."""

    @pytest.mark.asyncio
    async def test_keeps_top_five_sorted(self, mock_kv_with_data, scope):
        """Sete sessoes: ficam as cinco melhores, em ordem decrescente."""
        from chemdrill.storage.history_store import HistoryStore

        store = HistoryStore(mock_kv_with_data)
        for i, score in enumerate([300, 900, 100, 700, 500, 800, 200]):
            await store.record(scope, _entry(score, offset=i))

        top = await store.top_n(scope, 10)

        assert [e.score for e in top] == [900, 800, 700, 500, 300]
        assert len(mock_kv_with_data._storage["history:inorganic-products-inorganic:10:1"]) == 5

    @pytest.mark.asyncio
    async def test_rank_of_new_entry(self, mock_kv_with_data, scope):
        from chemdrill.storage.history_store import HistoryStore

        store = HistoryStore(mock_kv_with_data, cap=3)
        await store.record(scope, _entry(500))
        await store.record(scope, _entry(300))

        assert await store.record(scope, _entry(400)) == 2
        assert await store.record(scope, _entry(100)) is None

    @pytest.mark.asyncio
    async def test_ties_keep_earlier_first(self, mock_kv_with_data, scope):
        from chemdrill.storage.history_store import HistoryStore

        store = HistoryStore(mock_kv_with_data)
        await store.record(scope, _entry(500, correct=1, offset=0))

        rank = await store.record(scope, _entry(500, correct=2, offset=1))

        top = await store.top_n(scope)
        assert rank == 2
        assert [e.correct_count for e in top] == [1, 2]

    @pytest.mark.asyncio
    async def test_top_n_bounds(self, mock_kv_with_data, scope):
        from chemdrill.storage.history_store import HistoryStore

        store = HistoryStore(mock_kv_with_data)
        for score in (100, 200, 300):
            await store.record(scope, _entry(score))

        assert [e.score for e in await store.top_n(scope, 2)] == [300, 200]
        assert await store.top_n(scope, 0) == []

    @pytest.mark.asyncio
    async def test_scopes_are_independent(self, mock_kv_with_data, scope):
        from chemdrill.models.schemas import HistoryScope
        from chemdrill.storage.history_store import HistoryStore

        store = HistoryStore(mock_kv_with_data)
        other = HistoryScope(mode=scope.mode, range_key="10:11")
        await store.record(scope, _entry(900))

        assert await store.top_n(other) == []

    @pytest.mark.asyncio
    async def test_write_failure_is_not_fatal(self, failing_kv, scope):
        """Falha de escrita: retorna None, nao levanta."""
        from chemdrill.storage.history_store import HistoryStore

        store = HistoryStore(failing_kv)

        assert await store.record(scope, _entry(900)) is None

    @pytest.mark.asyncio
    async def test_malformed_entries_skipped(self, mock_kv_with_data, scope):
        from chemdrill.storage.history_store import HistoryStore

        store = HistoryStore(mock_kv_with_data)
        mock_kv_with_data._storage[store._scope_key(scope)] = [
            {"score": 700, "correct_count": 7, "total_count": 10},
            {"score": "lots"},
            "garbage",
        ]

        assert [e.score for e in await store.top_n(scope)] == [700]

    @pytest.mark.asyncio
    async def test_non_list_scope_is_empty(self, mock_kv_with_data, scope):
        from chemdrill.storage.history_store import HistoryStore

        store = HistoryStore(mock_kv_with_data)
        mock_kv_with_data._storage[store._scope_key(scope)] = {"score": 1}

        assert await store.top_n(scope) == []


class TestHistoryStoreNewRecord:
    """Testes para deteccao de novo recorde."""

    @pytest.mark.asyncio
    async def test_first_session_is_new_record(self, mock_kv_with_data, scope):
        from chemdrill.storage.history_store import HistoryStore

        store = HistoryStore(mock_kv_with_data)

        outcome = await store.record_session(scope, _entry(100))

        assert outcome.is_new_record is True
        assert outcome.previous_best is None
        assert outcome.rank == 1

    @pytest.mark.asyncio
    async def test_equal_to_best_is_not_new_record(self, mock_kv_with_data, scope):
        """Comparado ao melhor anterior a insercao."""
        from chemdrill.storage.history_store import HistoryStore

        store = HistoryStore(mock_kv_with_data)
        await store.record_session(scope, _entry(800))

        tie = await store.record_session(scope, _entry(800))
        better = await store.record_session(scope, _entry(801))

        assert tie.is_new_record is False
        assert tie.previous_best == 800
        assert better.is_new_record is True
        assert better.rank == 1

    @pytest.mark.asyncio
    async def test_is_new_record_and_best(self, mock_kv_with_data, scope):
        from chemdrill.storage.history_store import HistoryStore

        store = HistoryStore(mock_kv_with_data)
        assert await store.is_new_record(scope, 0) is True

        await store.record(scope, _entry(500))

        assert await store.best(scope) == 500
        assert await store.is_new_record(scope, 500) is False
        assert await store.is_new_record(scope, 501) is True


class TestHistoryStoreScopes:
    """Testes para list_scopes() e clear()."""

    @pytest.mark.asyncio
    async def test_list_scopes(self, mock_kv_with_data, scope):
        from chemdrill.models.schemas import HistoryScope
        from chemdrill.storage.history_store import HistoryStore

        store = HistoryStore(mock_kv_with_data)
        await store.record(scope, _entry(1))
        await store.record(HistoryScope(mode="compound-name-organic", range_key="all:*"), _entry(1))

        scopes = await store.list_scopes()
        only = await store.list_scopes(mode="compound-name-organic")

        assert {s.key for s in scopes} == {scope.key, "compound-name-organic:all:*"}
        assert [s.range_key for s in only] == ["all:*"]

    @pytest.mark.asyncio
    async def test_clear(self, mock_kv_with_data, scope):
        from chemdrill.storage.history_store import HistoryStore

        store = HistoryStore(mock_kv_with_data)
        await store.record(scope, _entry(1))

        await store.clear(scope)

        assert await store.top_n(scope) == []
