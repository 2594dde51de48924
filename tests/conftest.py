# =============================================================================
# CONFTEST - Fixtures compartilhadas para todos os testes
# =============================================================================
# Centraliza mocks, fixtures e configurações comuns
# =============================================================================

import os
import random
from unittest.mock import AsyncMock, MagicMock, patch

import pytest


# =============================================================================
# FIXTURES DE AMBIENTE
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """Configura ambiente de testes globalmente."""
    env_vars = {
        "CHEMDRILL_STORAGE_BACKEND": "memory",
        "CHEMDRILL_POOL_ENDPOINT": "",
        "CHEMDRILL_RETRY_DELAY": "0",
        "CHEMDRILL_LOG_LEVEL": "ERROR",  # Reduzir logs em testes
    }
    with patch.dict(os.environ, env_vars):
        yield


@pytest.fixture
def clean_env():
    """Limpa variáveis de ambiente para testes isolados."""
    with patch.dict(os.environ, {}, clear=True):
        yield


# =============================================================================
# FIXTURES DE CONFIG
# =============================================================================


@pytest.fixture
def drill_config():
    """Config em memória, sem espera entre tentativas."""
    from chemdrill.config import DrillConfig, StorageBackend

    return DrillConfig(
        pool_endpoint="https://pools.test/exec",
        request_timeout=1.0,
        retry_count=2,
        retry_delay=0,
        storage_backend=StorageBackend.MEMORY,
    )


# =============================================================================
# FIXTURES DE KV
# =============================================================================


@pytest.fixture
def mock_kv():
    """Mock do backend KV (superfície do AgentFS.kv)."""
    mock = MagicMock()
    mock.get = AsyncMock(return_value=None)
    mock.set = AsyncMock()
    mock.delete = AsyncMock()
    mock.list = AsyncMock(return_value=[])
    return mock


@pytest.fixture
def mock_kv_with_data():
    """Mock do backend KV com armazenamento em dict."""
    mock = MagicMock()
    _storage = {}

    async def mock_get(key):
        return _storage.get(key)

    async def mock_set(key, value):
        _storage[key] = value

    async def mock_delete(key):
        _storage.pop(key, None)

    async def mock_list(prefix=""):
        return [{"key": k} for k in _storage if k.startswith(prefix)]

    mock.get = mock_get
    mock.set = mock_set
    mock.delete = mock_delete
    mock.list = mock_list
    mock._storage = _storage

    return mock


@pytest.fixture
def failing_kv():
    """Backend KV cujas escritas sempre falham."""
    from chemdrill.exceptions import StorageWriteFailure

    mock = MagicMock()
    mock.get = AsyncMock(return_value=None)
    mock.set = AsyncMock(side_effect=StorageWriteFailure("Storage quota exceeded"))
    mock.delete = AsyncMock(side_effect=StorageWriteFailure("Storage quota exceeded"))
    mock.list = AsyncMock(return_value=[])
    return mock


# =============================================================================
# FIXTURES DE REGISTROS
# =============================================================================


@pytest.fixture
def make_record():
    """Factory para criar QuestionRecord."""

    def _make(record_id: str, pool_type="inorganic-new", family: str = "", tags=None, **fields):
        from chemdrill.models.schemas import QuestionRecord

        return QuestionRecord(
            id=record_id,
            pool_type=pool_type,
            fields={k: str(v) for k, v in fields.items()},
            family=family,
            tags=list(tags or []),
        )

    return _make


@pytest.fixture
def make_pool(make_record):
    """Factory para criar um pool inorganic-new de ``size`` registros."""

    def _make(size: int = 25, category="inorganic"):
        from chemdrill.models.schemas import QuestionPool

        records = [
            make_record(
                f"inorganic-{i}",
                equation=f"A{i} + B{i} → C{i}",
                reactants=f"reagent set {i % 5}",
                products=f"product {i}",
                conditions=f"condition {i % 3}",
                observations="白色沈殿↓" if i % 2 else "無色の気体↑",
            )
            for i in range(1, size + 1)
        ]
        return QuestionPool(category=category, pool_type="inorganic-new", records=records)

    return _make


@pytest.fixture
def sample_pool(make_pool):
    """Pool de 25 registros."""
    return make_pool(25)


@pytest.fixture
def seeded_rng():
    """RNG deterministico."""
    return random.Random(1234)


# =============================================================================
# FIXTURES DE CSV
# =============================================================================


@pytest.fixture
def inorganic_new_csv():
    """CSV posicional (A..H) do pool inorganic-new."""
    return (
        "equation,reactants,products,conditions,observations,explanation,reactants_summary,products_summary\n"
        "AgNO3 + NaCl → AgCl + NaNO3,硝酸銀と塩化ナトリウム,塩化銀,常温,白色沈殿↓,沈殿する,\"AgNO3, NaCl\",AgCl\n"
        "Zn + 2HCl → ZnCl2 + H2,亜鉛と塩酸,水素,常温,無色の気体↑,水素が発生する,\"Zn, HCl\",H2\n"
        "\n"
        "CuSO4 + 2NaOH → Cu(OH)2 + Na2SO4,硫酸銅と水酸化ナトリウム,水酸化銅,常温,青白色沈殿↓,沈殿する,\"CuSO4, NaOH\",Cu(OH)2\n"
    )


# =============================================================================
# FIXTURES DE HTTP
# =============================================================================


@pytest.fixture
def make_transport():
    """Factory de httpx.MockTransport que registra as chamadas."""
    import httpx

    def _make(*responses):
        calls = []
        queue = list(responses)

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            item = queue.pop(0) if len(queue) > 1 else queue[0]
            if isinstance(item, Exception):
                raise item
            # Nova resposta a cada chamada
            return httpx.Response(item.status_code, content=item.content, headers=item.headers)

        transport = httpx.MockTransport(handler)
        transport.calls = calls
        return transport

    return _make


# =============================================================================
# FIXTURES DE LOGGING
# =============================================================================


@pytest.fixture
def capture_logs(caplog):
    """Captura logs para verificação em testes."""
    import logging

    caplog.set_level(logging.DEBUG)
    return caplog
