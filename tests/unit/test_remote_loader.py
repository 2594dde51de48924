# =============================================================================
# TESTES - Remote Pool Loader
# =============================================================================
# Testes unitarios para cache -> remoto (com retry) -> dataset embutido
# =============================================================================

import asyncio
import json

import httpx
import pytest

CSV_BODY = json.dumps(
    {
        "csv": (
            "equation,reactants,products,conditions,observations,explanation,rs,ps\n"
            "Zn + 2HCl → ZnCl2 + H2,亜鉛と塩酸,水素,常温,無色の気体↑,,Zn,H2\n"
            "AgNO3 + NaCl → AgCl + NaNO3,硝酸銀と食塩水,塩化銀,常温,白色沈殿↓,,Ag,AgCl\n"
        )
    }
)


def _ok(body: str = CSV_BODY, status: int = 200) -> httpx.Response:
    return httpx.Response(status, content=body.encode("utf-8"))


@pytest.fixture
def make_loader(drill_config):
    """Factory de RemotePoolLoader sobre um MockTransport."""
    from chemdrill.loader.fallback import FallbackDatasets
    from chemdrill.loader.remote import RemotePoolLoader
    from chemdrill.storage.cache_store import CacheStore
    from chemdrill.storage.kv import MemoryKV

    def _make(transport, fallback=True, config=None, cache=None):
        return RemotePoolLoader(
            cache or CacheStore(MemoryKV()),
            config or drill_config,
            client=httpx.AsyncClient(transport=transport),
            fallback=FallbackDatasets() if fallback else None,
        )

    return _make


class TestRemoteSuccess:
    """Testes para carga remota bem-sucedida."""

    @pytest.mark.asyncio
    async def test_remote_then_cache(self, make_loader, make_transport):
        """Primeira carga remota, segunda vem do cache."""
        from chemdrill.models.enums import PoolSource

        transport = make_transport(_ok())
        loader = make_loader(transport)

        first = await loader.load("inorganic", "inorganic-new")
        second = await loader.load("inorganic", "inorganic-new")

        assert first.source == PoolSource.REMOTE
        assert second.source == PoolSource.CACHE
        assert first.ids() == second.ids() == ["inorganic-1", "inorganic-2"]
        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_request_params(self, make_loader, make_transport):
        transport = make_transport(_ok())
        loader = make_loader(transport)

        await loader.load("inorganic", "inorganic-new")

        params = transport.calls[0].url.params
        assert params["type"] == "inorganic-new"
        assert params["category"] == "inorganic"

    @pytest.mark.asyncio
    async def test_structured_records(self, make_loader, make_transport):
        body = json.dumps(
            {"reactions": [{"type": "synthesis", "from": "エチレン", "reagent": "水", "to": "エタノール"}]}
        )
        loader = make_loader(make_transport(_ok(body)))

        pool = await loader.load("organic", "reactions")

        assert pool.records[0].get("to") == "エタノール"

    @pytest.mark.asyncio
    async def test_concurrent_loads_share_fetch(self, make_loader, make_transport):
        """Cargas simultaneas do mesmo pool fazem uma unica requisicao."""
        transport = make_transport(_ok())
        loader = make_loader(transport)

        pools = await asyncio.gather(*(loader.load("inorganic", "inorganic-new") for _ in range(5)))

        assert len(transport.calls) == 1
        assert {p.size for p in pools} == {2}

    @pytest.mark.asyncio
    async def test_expired_cache_refetches(self, make_loader, make_transport):
        from chemdrill.storage.cache_store import CacheStore
        from chemdrill.storage.kv import MemoryKV

        now = [1_700_000_000.0]
        cache = CacheStore(MemoryKV(), clock=lambda: now[0])
        transport = make_transport(_ok())
        loader = make_loader(transport, cache=cache)

        await loader.load("inorganic", "inorganic-new")
        now[0] += 3600
        await loader.load("inorganic", "inorganic-new")

        assert len(transport.calls) == 2


class TestRemoteRetry:
    """Testes para retentativas."""

    @pytest.mark.asyncio
    async def test_network_errors_retried_then_fallback(self, make_loader, make_transport):
        """retry_count=2: tres tentativas, depois dataset embutido."""
        from chemdrill.models.enums import PoolSource

        transport = make_transport(httpx.ConnectError("connection refused"))
        loader = make_loader(transport)

        pool = await loader.load("inorganic", "inorganic-new")

        assert len(transport.calls) == 3
        assert pool.source == PoolSource.FALLBACK
        assert not pool.is_empty

    @pytest.mark.asyncio
    async def test_timeout_then_success(self, make_loader, make_transport):
        from chemdrill.models.enums import PoolSource

        transport = make_transport(httpx.ReadTimeout("timed out"), _ok())
        loader = make_loader(transport)

        pool = await loader.load("inorganic", "inorganic-new")

        assert len(transport.calls) == 2
        assert pool.source == PoolSource.REMOTE

    @pytest.mark.asyncio
    async def test_http_error_status_retried(self, make_loader, make_transport):
        transport = make_transport(_ok("oops", status=500), _ok())
        loader = make_loader(transport)

        pool = await loader.load("inorganic", "inorganic-new")

        assert len(transport.calls) == 2
        assert pool.size == 2

    @pytest.mark.asyncio
    async def test_error_envelope_retried(self, make_loader, make_transport):
        transport = make_transport(_ok(json.dumps({"error": "quota"})))
        loader = make_loader(transport)

        await loader.load("inorganic", "inorganic-new")

        assert len(transport.calls) == 3


class TestRemoteFallback:
    """Testes para o dataset embutido."""

    @pytest.mark.asyncio
    async def test_html_goes_to_fallback_without_retry(self, make_loader, make_transport):
        """Pagina HTML: falha de validacao, sem retry."""
        from chemdrill.models.enums import PoolSource

        transport = make_transport(_ok("<!DOCTYPE html><html>login</html>"))
        loader = make_loader(transport)

        pool = await loader.load("inorganic", "inorganic-new")

        assert len(transport.calls) == 1
        assert pool.source == PoolSource.FALLBACK

    @pytest.mark.asyncio
    async def test_empty_parse_goes_to_fallback(self, make_loader, make_transport):
        from chemdrill.models.enums import PoolSource

        transport = make_transport(_ok(json.dumps({"csv": "equation,reactants\n"})))
        loader = make_loader(transport)

        pool = await loader.load("inorganic", "inorganic-new")

        assert pool.source == PoolSource.FALLBACK
        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_fallback_is_not_cached(self, make_loader, make_transport):
        """Proxima carga tenta o remoto de novo."""
        from chemdrill.models.enums import PoolSource

        transport = make_transport(_ok("<html></html>"), _ok())
        loader = make_loader(transport)

        first = await loader.load("inorganic", "inorganic-new")
        second = await loader.load("inorganic", "inorganic-new")

        assert first.source == PoolSource.FALLBACK
        assert second.source == PoolSource.REMOTE

    @pytest.mark.asyncio
    async def test_no_endpoint_uses_fallback(self, make_loader, make_transport, drill_config):
        from dataclasses import replace

        from chemdrill.models.enums import PoolSource

        transport = make_transport(_ok())
        loader = make_loader(transport, config=replace(drill_config, pool_endpoint=""))

        pool = await loader.load("organic", "compounds")

        assert transport.calls == []
        assert pool.source == PoolSource.FALLBACK

    @pytest.mark.asyncio
    async def test_data_unavailable(self, make_loader, make_transport):
        """Todos os niveis falharam."""
        from chemdrill.exceptions import DataUnavailable

        loader = make_loader(make_transport(httpx.ConnectError("down")), fallback=False)

        with pytest.raises(DataUnavailable) as exc_info:
            await loader.load("organic", "reactions")

        assert exc_info.value.category == "organic"
        assert exc_info.value.pool_type == "reactions"
        assert "NetworkFailure" in exc_info.value.details["cause"]


class TestRemoteCacheMaintenance:
    """Testes para invalidate() e cache corrompido."""

    @pytest.mark.asyncio
    async def test_invalidate(self, make_loader, make_transport):
        transport = make_transport(_ok())
        loader = make_loader(transport)

        await loader.load("inorganic", "inorganic-new")
        await loader.invalidate("inorganic", "inorganic-new")
        await loader.load("inorganic", "inorganic-new")

        assert len(transport.calls) == 2

    @pytest.mark.asyncio
    async def test_unreadable_cached_pool_discarded(self, make_loader, make_transport):
        from chemdrill.models.enums import PoolSource

        transport = make_transport(_ok())
        loader = make_loader(transport)
        key = loader.cache.key_for("inorganic", "inorganic-new")
        await loader.cache.set(key, {"records": "not a list"})

        pool = await loader.load("inorganic", "inorganic-new")

        assert pool.source == PoolSource.REMOTE

    @pytest.mark.asyncio
    async def test_empty_cached_pool_is_a_miss(self, make_loader, make_transport):
        """Pool vazio no cache conta como ausente: busca remota."""
        from chemdrill.models.enums import PoolSource
        from chemdrill.models.schemas import QuestionPool

        transport = make_transport(_ok())
        loader = make_loader(transport)
        key = loader.cache.key_for("inorganic", "inorganic-new")
        empty = QuestionPool(category="inorganic", pool_type="inorganic-new", records=[])
        await loader.cache.set(key, empty.model_dump(mode="json"))

        pool = await loader.load("inorganic", "inorganic-new")

        assert pool.source == PoolSource.REMOTE
        assert pool.size == 2
        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_context_manager_closes_owned_client(self, drill_config):
        from chemdrill.loader.remote import RemotePoolLoader
        from chemdrill.storage.cache_store import CacheStore

        async with RemotePoolLoader(CacheStore(), drill_config) as loader:
            client = loader.client

        assert client.is_closed
