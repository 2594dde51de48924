"""Drill Router - Endpoints FastAPI sobre o DrillEngine."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from .engine.drill_engine import DrillEngine, leaderboard_mode
from .engine.modes import MODES, get_mode
from .engine.resolver import QuestionSetResolver
from .engine.scoring_engine import ScoringEngine
from .exceptions import DataUnavailable, SessionNotFound
from .models.enums import Category, CountMode
from .models.schemas import (
    AnswerOutcome,
    AnswerRequest,
    HistoryScope,
    LearnerSummary,
    PoolInfoResponse,
    PresentedQuestion,
    ScoreEvent,
    ScoreHistoryEntry,
    SessionResult,
    StartSessionRequest,
    StartSessionResponse,
)
from .storage.cache_store import CacheStore
from .storage.history_store import HistoryStore
from .storage.session_log import SessionLogStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/drill", tags=["Drill"])


# =============================================================================
# DEPENDENCY INJECTION
# =============================================================================


def get_drill_engine(request: Request) -> DrillEngine:
    """Dependency para obter o DrillEngine criado no lifespan."""
    engine = getattr(request.app.state, "drill_engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Drill engine not initialized")
    return engine


def get_scoring_engine() -> ScoringEngine:
    return ScoringEngine()


def get_history_store(engine: DrillEngine = Depends(get_drill_engine)) -> HistoryStore:
    return engine.history


def get_session_logs(engine: DrillEngine = Depends(get_drill_engine)) -> SessionLogStore:
    if engine.session_logs is None:
        raise HTTPException(status_code=404, detail="Session log is disabled")
    return engine.session_logs


def _unavailable(e: DataUnavailable) -> HTTPException:
    logger.warning(f"Data unavailable: {e}")
    return HTTPException(
        status_code=503,
        detail={"message": e.message, "category": e.category, "pool_type": e.pool_type},
    )


def _not_found(e: SessionNotFound) -> HTTPException:
    return HTTPException(status_code=404, detail=e.message)


def _check_mode(mode: str) -> None:
    if mode not in MODES:
        raise HTTPException(status_code=404, detail=f"Unknown drill mode: {mode}")


# =============================================================================
# POOLS & RANGES
# =============================================================================


@router.get("/modes")
async def list_modes():
    """Lista os modos disponiveis."""
    return [
        {
            "name": mode.name,
            "title": mode.title,
            "category": mode.category.value,
            "pool_type": mode.pool_type.value,
        }
        for mode in MODES.values()
    ]


@router.get("/pools/{mode}", response_model=PoolInfoResponse)
async def pool_info(
    mode: str,
    category: Category | None = None,
    engine: DrillEngine = Depends(get_drill_engine),
):
    """Tamanho do pool, origem e faixas disponiveis para um modo."""
    _check_mode(mode)
    try:
        return await engine.pool_info(mode, category)
    except DataUnavailable as e:
        raise _unavailable(e) from e


@router.get("/ranges")
async def available_ranges(
    total: int = Query(..., ge=0),
    count_mode: CountMode = CountMode.BATCH_10,
):
    """Faixas 1-based (inicio, fim) para um pool de ``total`` itens."""
    if not count_mode.is_batch:
        return {
            "count_mode": count_mode.value,
            "ranges": [],
            "all_count_options": QuestionSetResolver.all_count_options(total),
        }
    return {
        "count_mode": count_mode.value,
        "ranges": QuestionSetResolver.available_ranges(total, count_mode.batch_size),
    }


# =============================================================================
# SESSIONS
# =============================================================================


@router.post("/sessions", response_model=StartSessionResponse)
async def start_session(
    request: StartSessionRequest,
    engine: DrillEngine = Depends(get_drill_engine),
):
    """Inicia uma sessao.

    - Carrega o pool (cache, remoto ou dataset embutido)
    - Resolve as perguntas conforme count/order mode
    - Uma faixa alem do fim do pool retorna exhausted=true
    """
    _check_mode(request.mode)
    try:
        session = await engine.start(request.category, request.mode, request.settings)
    except DataUnavailable as e:
        raise _unavailable(e) from e

    return StartSessionResponse(
        session_id=session.session_id,
        mode=session.mode,
        range_key=session.range_key,
        total_questions=session.total,
        exhausted=session.exhausted,
        pool_source=session.pool_source,
    )


@router.get("/sessions/{session_id}/questions/{index}", response_model=PresentedQuestion)
async def get_question(
    session_id: str,
    index: int,
    engine: DrillEngine = Depends(get_drill_engine),
):
    """Busca a pergunta ``index`` (0-based) com suas alternativas."""
    try:
        return await engine.question(session_id, index)
    except SessionNotFound as e:
        raise _not_found(e) from e
    except IndexError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except DataUnavailable as e:
        raise _unavailable(e) from e


@router.post("/sessions/{session_id}/answer", response_model=AnswerOutcome)
async def answer_question(
    session_id: str,
    request: AnswerRequest,
    engine: DrillEngine = Depends(get_drill_engine),
):
    """Avalia uma resposta e acumula a pontuacao."""
    try:
        return await engine.answer(session_id, request.index, request.selected_index, request.elapsed_ms)
    except SessionNotFound as e:
        raise _not_found(e) from e
    except IndexError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except DataUnavailable as e:
        raise _unavailable(e) from e


@router.post("/sessions/{session_id}/finish", response_model=SessionResult)
async def finish_session(
    session_id: str,
    engine: DrillEngine = Depends(get_drill_engine),
):
    """Encerra a sessao e registra no historico."""
    try:
        return await engine.finish(session_id)
    except SessionNotFound as e:
        raise _not_found(e) from e


@router.get("/sessions/{session_id}/next")
async def next_range(
    session_id: str,
    engine: DrillEngine = Depends(get_drill_engine),
):
    """Configuracao da proxima faixa, ou null quando nao ha mais."""
    try:
        settings = await engine.next_range(session_id)
    except SessionNotFound as e:
        raise _not_found(e) from e
    return {"next_settings": settings.model_dump(mode="json") if settings else None}


# =============================================================================
# HISTORY & STATS
# =============================================================================


@router.get("/history/{mode}", response_model=list[ScoreHistoryEntry])
async def get_history(
    mode: str,
    range_key: str = Query(..., min_length=1),
    category: Category | None = None,
    n: int = Query(5, ge=1, le=50),
    history: HistoryStore = Depends(get_history_store),
):
    """Melhores pontuacoes de um modo numa faixa."""
    _check_mode(mode)
    category = category or get_mode(mode).category
    scope = HistoryScope(mode=leaderboard_mode(mode, category), range_key=range_key)
    return await history.top_n(scope, n)


@router.post("/score")
async def score_answer(
    event: ScoreEvent,
    scoring: ScoringEngine = Depends(get_scoring_engine),
):
    """Pontuacao de uma resposta isolada (sem sessao)."""
    return {"points": scoring.score(event)}


@router.get("/summary", response_model=LearnerSummary)
async def learner_summary(
    mode_prefix: str | None = None,
    session_logs: SessionLogStore = Depends(get_session_logs),
):
    """Resumo do aprendiz (EXP, nivel, medias, sequencias)."""
    return await session_logs.summary(mode_prefix)


@router.get("/health")
async def health(engine: DrillEngine = Depends(get_drill_engine)):
    """Health check com estatisticas do cache."""
    cache: CacheStore = engine.loader.cache
    return {
        "status": "healthy",
        "endpoint_configured": bool(engine.loader.config.pool_endpoint),
        "cache": cache.get_stats(),
    }
