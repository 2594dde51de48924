"""Drill Models - Enums, Schemas e State."""

from .enums import Category, CountMode, OrderMode, PoolSource, PoolType, SessionRank
from .schemas import (
    AnswerOutcome,
    AnswerRequest,
    ChoiceSet,
    HistoryScope,
    LearnerSummary,
    PoolInfoResponse,
    PresentedQuestion,
    QuestionPool,
    QuestionRecord,
    QuizSettings,
    RecordOutcome,
    ScoreEvent,
    ScoreHistoryEntry,
    SessionLog,
    SessionResult,
    StartSessionRequest,
    StartSessionResponse,
)
from .state import DrillSession, StreakTracker

__all__ = [
    # Enums
    "Category",
    "CountMode",
    "OrderMode",
    "PoolSource",
    "PoolType",
    "SessionRank",
    # Schemas
    "QuestionRecord",
    "QuestionPool",
    "QuizSettings",
    "ScoreEvent",
    "ChoiceSet",
    "HistoryScope",
    "ScoreHistoryEntry",
    "RecordOutcome",
    "SessionLog",
    "LearnerSummary",
    "PresentedQuestion",
    "AnswerOutcome",
    "SessionResult",
    "StartSessionRequest",
    "StartSessionResponse",
    "AnswerRequest",
    "PoolInfoResponse",
    # State
    "DrillSession",
    "StreakTracker",
]
