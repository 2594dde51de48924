"""Drill Engine - Orquestracao de uma sessao de quiz.

Ties the loader, resolver, distractor engine, scoring engine and the
history / session-log stores together:

    start -> question / answer (repeated) -> finish -> next_range
"""

from __future__ import annotations

import logging
import uuid
from collections import OrderedDict

from ..exceptions import SessionNotFound
from ..loader.remote import RemotePoolLoader
from ..models.enums import Category, CountMode
from ..models.schemas import (
    AnswerOutcome,
    ChoiceSet,
    HistoryScope,
    PoolInfoResponse,
    PresentedQuestion,
    QuestionPool,
    QuestionRecord,
    QuizSettings,
    ScoreEvent,
    ScoreHistoryEntry,
    SessionLog,
    SessionResult,
)
from ..models.state import DrillSession
from ..storage.history_store import HistoryStore
from ..storage.session_log import SessionLogStore
from ..storage.session_store import SessionStore
from .distractor_engine import DistractorEngine
from .modes import DrillMode, get_mode
from .resolver import QuestionSetResolver
from .scoring_engine import ScoringEngine

logger = logging.getLogger(__name__)


def leaderboard_mode(mode: str, category: Category | str) -> str:
    """Leaderboard mode id: the drill mode qualified by its question bank."""
    return f"{mode}-{Category(category).value}"


def eligible_records(pool: QuestionPool, mode: DrillMode) -> list[QuestionRecord]:
    """Records a mode can ask: non-empty prompt and an answer."""
    records = []
    for record in pool.records:
        if not record.get(mode.prompt_field):
            continue
        if mode.uses_fixed_choices:
            if not record.has_fixed_choices:
                continue
        elif not record.get(mode.answer_field):
            continue
        records.append(record)
    return records


class DrillEngine:
    """Runs drill sessions.

    Sessions live in a per-engine registry and, when a SessionStore is
    given, are persisted after every change so they can be resumed from
    another engine sharing the same backend. A finished session leaves the
    registry; its result is kept by the SessionStore, or without one in a
    map bounded by ``max_finished``.

    Example:
        >>> engine = DrillEngine(loader, HistoryStore(kv))
        >>> session = await engine.start("inorganic", "inorganic-products",
        ...                              QuizSettings(count_mode="batch-10", start_index=1))
        >>> q = await engine.question(session.session_id, 0)
        >>> outcome = await engine.answer(session.session_id, 0, selected=2, elapsed_ms=3400)
        >>> result = await engine.finish(session.session_id)
    """

    def __init__(
        self,
        loader: RemotePoolLoader,
        history: HistoryStore,
        session_logs: SessionLogStore | None = None,
        resolver: QuestionSetResolver | None = None,
        distractors: DistractorEngine | None = None,
        scoring: ScoringEngine | None = None,
        choice_count: int = 4,
        session_store: SessionStore | None = None,
        max_finished: int = 256,
    ):
        self.loader = loader
        self.history = history
        self.session_logs = session_logs
        self.resolver = resolver or QuestionSetResolver()
        self.distractors = distractors or DistractorEngine()
        self.scoring = scoring or ScoringEngine()
        self.choice_count = choice_count
        self.session_store = session_store
        self.max_finished = max_finished

        self._sessions: dict[str, DrillSession] = {}
        self._pools: dict[str, list[QuestionRecord]] = {}
        self._results: OrderedDict[str, SessionResult] = OrderedDict()

    # =========================================================================
    # Pools
    # =========================================================================

    async def _eligible_pool(self, mode: DrillMode, category: Category) -> tuple[QuestionPool, list[QuestionRecord]]:
        pool = await self.loader.load(category, mode.pool_type)
        return pool, eligible_records(pool, mode)

    async def pool_info(self, mode: str, category: Category | str | None = None) -> PoolInfoResponse:
        """Pool size, source and the ranges offered for a mode."""
        drill_mode = get_mode(mode)
        category = Category(category) if category else drill_mode.category
        pool, records = await self._eligible_pool(drill_mode, category)
        total = len(records)
        return PoolInfoResponse(
            category=category,
            pool_type=drill_mode.pool_type,
            mode=drill_mode.name,
            size=total,
            source=pool.source,
            ranges={
                count_mode.value: self.resolver.available_ranges(total, count_mode.batch_size)
                for count_mode in CountMode
                if count_mode.is_batch
            },
            all_count_options=self.resolver.all_count_options(total),
        )

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    async def start(
        self,
        category: Category | str | None,
        mode: str,
        settings: QuizSettings,
    ) -> DrillSession:
        """Load the pool, resolve the questions and open a session.

        A range past the end of the pool yields an exhausted session (no
        questions) rather than an error.

        Raises:
            KeyError: unknown mode
            DataUnavailable: the pool could not be loaded from any tier
        """
        drill_mode = get_mode(mode)
        category = Category(category) if category else drill_mode.category
        pool, records = await self._eligible_pool(drill_mode, category)
        questions = self.resolver.resolve(records, settings)

        session = DrillSession(
            session_id=uuid.uuid4().hex,
            category=category,
            mode=drill_mode.name,
            settings=settings,
            questions=questions,
            pool_source=pool.source,
            pool_size=len(records),
        )
        self._sessions[session.session_id] = session
        self._pools[session.session_id] = records
        await self._save(session)

        if session.exhausted:
            logger.info(f"[Drill {session.session_id}] {drill_mode.name} range {settings.range_key} is empty")
        else:
            logger.info(
                f"[Drill {session.session_id}] Started {drill_mode.name}/{category.value} "
                f"range {settings.range_key}: {session.total} questions ({pool.source.value})"
            )
        return session

    async def get_session(self, session_id: str) -> DrillSession:
        session = self._sessions.get(session_id)
        if session is not None:
            return session
        if self.session_store is not None:
            session = await self.session_store.load(session_id)
            if session is not None:
                self._sessions[session_id] = session
                return session
        raise SessionNotFound(session_id)

    async def _save(self, session: DrillSession) -> None:
        if self.session_store is not None:
            await self.session_store.save(session)

    async def _pool_records(self, session: DrillSession) -> list[QuestionRecord]:
        records = self._pools.get(session.session_id)
        if records is None:
            _, records = await self._eligible_pool(get_mode(session.mode), session.category)
            self._pools[session.session_id] = records
        return records

    async def _choice_set(self, session: DrillSession, index: int) -> ChoiceSet:
        """Options of a question, built once and then fixed for the session."""
        existing = session.choice_sets.get(index)
        if existing is not None:
            return existing

        record = session.questions[index]
        drill_mode = get_mode(session.mode)
        if drill_mode.uses_fixed_choices:
            choice_set = ChoiceSet(choices=list(record.choices), correct_index=record.answer_index)
        else:
            choice_set = self.distractors.choice_set(
                record,
                await self._pool_records(session),
                drill_mode.answer_field,
                k=max(0, self.choice_count - 1),
                family_field=drill_mode.family_field,
                element_fields=drill_mode.element_fields,
            )
        session.choice_sets[index] = choice_set
        return choice_set

    @staticmethod
    def _check_index(session: DrillSession, index: int) -> None:
        if index < 0 or index >= session.total:
            raise IndexError(f"Question {index} out of range (session has {session.total})")

    async def question(self, session_id: str, index: int) -> PresentedQuestion:
        """Question ``index`` with its options. The correct index is not exposed."""
        session = await self.get_session(session_id)
        self._check_index(session, index)

        record = session.questions[index]
        drill_mode = get_mode(session.mode)
        session.streak.advance(record.id)
        choice_set = await self._choice_set(session, index)
        await self._save(session)

        return PresentedQuestion(
            session_id=session_id,
            index=index,
            total=session.total,
            question_id=record.id,
            prompt=record.get(drill_mode.prompt_field),
            choices=list(choice_set.choices),
            context={name: record.get(name) for name in drill_mode.context_fields if record.get(name)},
        )

    async def answer(self, session_id: str, index: int, selected: int, elapsed_ms: float) -> AnswerOutcome:
        """Evaluate one answer and add its points to the session.

        Raises:
            SessionNotFound: unknown session
            IndexError: question index out of range
            ValueError: session finished, question already answered, or
                selected option out of range
        """
        if await self._finished_result(session_id) is not None:
            raise ValueError(f"Session {session_id} is already finished")
        session = await self.get_session(session_id)
        if session.finished:
            raise ValueError(f"Session {session_id} is already finished")
        self._check_index(session, index)
        if session.is_answered(index):
            raise ValueError(f"Question {index} was already answered")

        choice_set = await self._choice_set(session, index)
        if selected < 0 or selected >= len(choice_set.choices):
            raise ValueError(f"Option {selected} out of range ({len(choice_set.choices)} choices)")

        record = session.questions[index]
        is_correct = selected == choice_set.correct_index
        streak = session.streak.register(record.id, is_correct)
        points = self.scoring.score(
            ScoreEvent(
                is_correct=is_correct,
                elapsed_ms=elapsed_ms,
                streak=streak,
                shuffle_active=session.settings.is_shuffle,
            )
        )

        session.answers[index] = is_correct
        session.point_score += points
        await self._save(session)

        return AnswerOutcome(
            is_correct=is_correct,
            points_earned=points,
            streak=streak,
            correct_index=choice_set.correct_index,
            correct_answer=choice_set.correct_value,
            point_score=session.point_score,
            answered=session.answered,
            correct_count=session.correct_count,
        )

    async def _finished_result(self, session_id: str) -> SessionResult | None:
        result = self._results.get(session_id)
        if result is None and self.session_store is not None:
            result = await self.session_store.load_result(session_id)
        return result

    async def _remember(self, result: SessionResult) -> None:
        """Keep a finished session's result; the live session is dropped."""
        self._sessions.pop(result.session_id, None)
        self._pools.pop(result.session_id, None)
        if self.session_store is not None and await self.session_store.save_result(result):
            return
        self._results[result.session_id] = result
        while len(self._results) > self.max_finished:
            self._results.popitem(last=False)

    async def _build_result(
        self,
        session: DrillSession,
        scope: HistoryScope,
        is_new_record: bool = False,
        leaderboard_rank: int | None = None,
    ) -> SessionResult:
        summary = self.scoring.summarize(session.correct_count, session.answered, session.point_score)
        return SessionResult(
            session_id=session.session_id,
            mode=scope.mode,
            range_key=scope.range_key,
            point_score=session.point_score,
            correct_count=session.correct_count,
            total_count=session.answered,
            percentage=summary["percentage"],
            rank=summary["rank"],
            message=summary["message"],
            is_new_record=is_new_record,
            leaderboard_rank=leaderboard_rank,
            history=await self.history.top_n(scope),
            next_settings=self.resolver.next_settings(session.settings, session.pool_size),
        )

    async def finish(self, session_id: str) -> SessionResult:
        """Close the session and record it.

        New-record status is decided against the leaderboard as it was
        before this session is inserted. Sessions with no answers are not
        recorded. Calling finish again, from this engine or another one
        sharing the session store, returns the stored result without
        recording twice.
        """
        result = await self._finished_result(session_id)
        if result is not None:
            return result

        session = await self.get_session(session_id)
        scope = HistoryScope(mode=leaderboard_mode(session.mode, session.category), range_key=session.range_key)

        if session.finished:
            # Recorded by an earlier finish whose result was not kept.
            result = await self._build_result(session, scope)
            await self._remember(result)
            return result

        session.finished = True
        await self._save(session)

        is_new_record = False
        leaderboard_rank = None
        if session.answered > 0:
            entry = ScoreHistoryEntry(
                score=session.point_score,
                correct_count=session.correct_count,
                total_count=session.answered,
            )
            outcome = await self.history.record_session(scope, entry)
            is_new_record = outcome.is_new_record
            leaderboard_rank = outcome.rank

            if self.session_logs is not None:
                await self.session_logs.append(
                    SessionLog(
                        session_id=session.session_id,
                        mode=scope.mode,
                        category=session.category.value,
                        range_key=session.range_key,
                        correct_count=session.correct_count,
                        total_count=session.answered,
                        point_score=session.point_score,
                    )
                )

        result = await self._build_result(session, scope, is_new_record, leaderboard_rank)
        await self._remember(result)

        logger.info(
            f"[Drill {session_id}] Finished {scope.key}: {session.correct_count}/{session.answered} "
            f"score={session.point_score}" + (" (new record)" if is_new_record else "")
        )
        return result

    async def next_range(self, session_id: str) -> QuizSettings | None:
        """Settings for the following batch, or None when there is none."""
        result = await self._finished_result(session_id)
        if result is not None:
            return result.next_settings
        session = await self.get_session(session_id)
        return self.resolver.next_settings(session.settings, session.pool_size)

    async def discard(self, session_id: str) -> None:
        """Forget a session."""
        self._sessions.pop(session_id, None)
        self._pools.pop(session_id, None)
        self._results.pop(session_id, None)
        if self.session_store is not None:
            await self.session_store.delete(session_id)
