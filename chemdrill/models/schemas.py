"""Drill Schemas - Modelos Pydantic for records, settings, scoring and history."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .enums import Category, CountMode, OrderMode, PoolSource, PoolType, SessionRank


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# QUESTION DATA
# =============================================================================


class QuestionRecord(BaseModel):
    """One quiz item, validated at the parse boundary and immutable after."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Stable id, unique within a pool")
    pool_type: PoolType = Field(..., description="Pool the record belongs to")
    fields: dict[str, str] = Field(default_factory=dict, description="Named string fields")
    family: str = Field(default="", description="Subcategory classifier used for distractors")
    tags: list[str] = Field(default_factory=list, description="Normalized tags")
    choices: list[str] | None = Field(
        default=None, description="Options shipped with the item (experiment sheet)"
    )
    answer_index: int | None = Field(
        default=None, ge=0, description="0-based index of the correct shipped option"
    )

    def get(self, field: str, default: str = "") -> str:
        """Field value, or default when absent."""
        return self.fields.get(field, default)

    @property
    def has_fixed_choices(self) -> bool:
        return bool(self.choices) and self.answer_index is not None


class QuestionPool(BaseModel):
    """Ordered records for one (category, pool_type). Replaced, never mutated."""

    model_config = ConfigDict(frozen=True)

    category: Category
    pool_type: PoolType
    records: list[QuestionRecord] = Field(default_factory=list)
    source: PoolSource = PoolSource.REMOTE
    loaded_at: datetime = Field(default_factory=utc_now)

    @property
    def size(self) -> int:
        return len(self.records)

    @property
    def is_empty(self) -> bool:
        return not self.records

    def ids(self) -> list[str]:
        return [r.id for r in self.records]


# =============================================================================
# SETTINGS
# =============================================================================


class QuizSettings(BaseModel):
    """Settings chosen for one session.

    start_index is present iff count_mode is a batch mode; all_count None
    means "the entire pool" in all mode.
    """

    model_config = ConfigDict(frozen=True)

    count_mode: CountMode = Field(default=CountMode.ALL)
    order_mode: OrderMode = Field(default=OrderMode.SEQUENTIAL)
    start_index: int | None = Field(default=None, ge=1, description="1-based batch start")
    all_count: int | None = Field(default=None, ge=1, description="First N of the pool in all mode")

    @model_validator(mode="after")
    def _check_mode_fields(self) -> "QuizSettings":
        if self.count_mode.is_batch:
            if self.start_index is None:
                raise ValueError(f"start_index is required for {self.count_mode.value}")
            if self.all_count is not None:
                raise ValueError("all_count is only valid with count_mode 'all'")
        elif self.start_index is not None:
            raise ValueError("start_index is only valid with a batch count_mode")
        return self

    @property
    def is_shuffle(self) -> bool:
        return self.order_mode is OrderMode.SHUFFLE

    @property
    def range_key(self) -> str:
        """Canonical key of the addressed slice; order mode does not participate."""
        size = self.count_mode.batch_size
        if size is not None:
            return f"{size}:{self.start_index}"
        return f"all:{self.all_count if self.all_count is not None else '*'}"


# =============================================================================
# SCORING
# =============================================================================


class ScoreEvent(BaseModel):
    """One answered question, consumed immediately by the scoring engine."""

    model_config = ConfigDict(frozen=True)

    is_correct: bool
    elapsed_ms: float = Field(default=0, ge=0)
    streak: int = Field(default=0, ge=0)
    shuffle_active: bool = False


class ChoiceSet(BaseModel):
    """Shuffled options plus the index of the correct one."""

    choices: list[str]
    correct_index: int = Field(..., ge=0)

    @property
    def correct_value(self) -> str:
        return self.choices[self.correct_index]


# =============================================================================
# HISTORY
# =============================================================================


class HistoryScope(BaseModel):
    """Leaderboard scope: mode x range."""

    model_config = ConfigDict(frozen=True)

    mode: str = Field(..., min_length=1)
    range_key: str = Field(..., min_length=1)

    @property
    def key(self) -> str:
        return f"{self.mode}:{self.range_key}"


class ScoreHistoryEntry(BaseModel):
    """A completed session's score. Never mutated after creation."""

    model_config = ConfigDict(frozen=True)

    score: int = Field(..., ge=0)
    correct_count: int = Field(..., ge=0)
    total_count: int = Field(..., ge=0)
    recorded_at: datetime = Field(default_factory=utc_now)


class RecordOutcome(BaseModel):
    """Result of recording a session into its leaderboard scope."""

    is_new_record: bool
    rank: int | None = Field(None, description="1-based rank after insert, None if displaced")
    previous_best: int | None = None


class SessionLog(BaseModel):
    """One finished session, kept for learner statistics."""

    session_id: str
    mode: str
    category: str
    range_key: str
    correct_count: int = Field(..., ge=0)
    total_count: int = Field(..., ge=0)
    point_score: int = Field(..., ge=0)
    recorded_at: datetime = Field(default_factory=utc_now)


class LearnerSummary(BaseModel):
    """Aggregates over the session log."""

    exp: int = 0
    level: int = 0
    all_average: float = 0.0
    recent_average: float = 0.0
    sessions: int = 0
    last: datetime | None = None
    current_streak: int = 0
    max_streak: int = 0


# =============================================================================
# SESSION I/O
# =============================================================================


class PresentedQuestion(BaseModel):
    """What the UI shell renders for one question."""

    session_id: str
    index: int = Field(..., ge=0)
    total: int = Field(..., ge=0)
    question_id: str
    prompt: str
    choices: list[str]
    context: dict[str, str] = Field(default_factory=dict)


class AnswerOutcome(BaseModel):
    """Evaluation of a single answer."""

    is_correct: bool
    points_earned: int
    streak: int
    correct_index: int
    correct_answer: str
    point_score: int
    answered: int
    correct_count: int


class SessionResult(BaseModel):
    """Final result of a session."""

    session_id: str
    mode: str
    range_key: str
    point_score: int
    correct_count: int
    total_count: int
    percentage: float
    rank: SessionRank
    message: str
    is_new_record: bool
    leaderboard_rank: int | None = None
    history: list[ScoreHistoryEntry] = Field(default_factory=list)
    next_settings: QuizSettings | None = None


# =============================================================================
# HTTP REQUESTS / RESPONSES
# =============================================================================


class StartSessionRequest(BaseModel):
    """Request para iniciar uma sessao."""

    category: Category | None = Field(None, description="Question bank, defaults to the mode's own")
    mode: str = Field(..., description="Drill mode name, e.g. 'inorganic-products'")
    settings: QuizSettings = Field(default_factory=QuizSettings)


class StartSessionResponse(BaseModel):
    """Response ao iniciar sessao."""

    session_id: str
    mode: str
    range_key: str
    total_questions: int
    exhausted: bool = Field(..., description="True when the range is past the end of the pool")
    pool_source: PoolSource


class AnswerRequest(BaseModel):
    """Request para avaliar uma resposta."""

    index: int = Field(..., ge=0, description="0-based question index in the session")
    selected_index: int = Field(..., ge=0)
    elapsed_ms: float = Field(..., ge=0)


class PoolInfoResponse(BaseModel):
    """Summary of a loaded pool, as seen by one drill mode."""

    category: Category
    pool_type: PoolType
    mode: str
    size: int = Field(..., description="Records eligible for the mode")
    source: PoolSource
    ranges: dict[str, list[tuple[int, int]]] = Field(default_factory=dict)
    all_count_options: list[int] = Field(default_factory=list)


def dump(model: BaseModel) -> dict[str, Any]:
    """JSON-compatible dict of a model (datetimes as ISO strings)."""
    return model.model_dump(mode="json")
