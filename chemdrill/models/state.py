"""Drill State - Estado de uma sessao em andamento."""

from dataclasses import dataclass, field
from typing import Any

from .enums import Category, PoolSource
from .schemas import ChoiceSet, QuestionRecord, QuizSettings


@dataclass
class StreakTracker:
    """Consecutive correct answers to the *same* question.

    Correct on the tracked question increments; correct on another question
    restarts at 1; any incorrect answer, or moving on to a different
    question, resets to 0.
    """

    question_id: str | None = None
    count: int = 0

    def register(self, question_id: str, is_correct: bool) -> int:
        """Record an answer and return the streak to score it with."""
        if not is_correct:
            self.reset()
            return 0
        if question_id == self.question_id:
            self.count += 1
        else:
            self.question_id = question_id
            self.count = 1
        return self.count

    def advance(self, next_question_id: str | None) -> None:
        """Called when the next question is shown."""
        if next_question_id != self.question_id:
            self.reset()

    def reset(self) -> None:
        self.question_id = None
        self.count = 0


@dataclass
class DrillSession:
    """Estado completo de uma sessao.

    Attributes:
        session_id: Unique id
        category: Question bank category
        mode: Drill mode name (also the leaderboard mode)
        settings: Settings the session was resolved with
        questions: Resolved questions, order fixed for the session
        pool_source: Tier the pool came from
        pool_size: Eligible records in the pool the session was resolved from
        choice_sets: Options per question index, built lazily and then fixed
        answers: Question index -> correctness
        point_score: Sum of per-answer scores
        streak: Same-question streak tracker
        finished: Whether finish() already ran
    """

    session_id: str
    category: Category
    mode: str
    settings: QuizSettings
    questions: list[QuestionRecord] = field(default_factory=list)
    pool_source: PoolSource = PoolSource.REMOTE
    pool_size: int = 0
    choice_sets: dict[int, ChoiceSet] = field(default_factory=dict)
    answers: dict[int, bool] = field(default_factory=dict)
    point_score: int = 0
    streak: StreakTracker = field(default_factory=StreakTracker)
    finished: bool = False

    @property
    def total(self) -> int:
        return len(self.questions)

    @property
    def exhausted(self) -> bool:
        """Empty range: the "no more ranges" state, not an error."""
        return not self.questions

    @property
    def answered(self) -> int:
        return len(self.answers)

    @property
    def correct_count(self) -> int:
        return sum(1 for ok in self.answers.values() if ok)

    @property
    def range_key(self) -> str:
        return self.settings.range_key

    def is_answered(self, index: int) -> bool:
        return index in self.answers

    def to_dict(self) -> dict[str, Any]:
        """Converte para dicionario (para persistencia)."""
        return {
            "session_id": self.session_id,
            "category": self.category.value,
            "mode": self.mode,
            "settings": self.settings.model_dump(mode="json"),
            "questions": [q.model_dump(mode="json") for q in self.questions],
            "pool_source": self.pool_source.value,
            "pool_size": self.pool_size,
            "choice_sets": {str(k): v.model_dump() for k, v in self.choice_sets.items()},
            "answers": {str(k): v for k, v in self.answers.items()},
            "point_score": self.point_score,
            "streak": {"question_id": self.streak.question_id, "count": self.streak.count},
            "finished": self.finished,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DrillSession":
        """Cria instancia a partir de dicionario."""
        streak = data.get("streak") or {}
        return cls(
            session_id=data["session_id"],
            category=Category(data["category"]),
            mode=data["mode"],
            settings=QuizSettings(**data["settings"]),
            questions=[QuestionRecord(**q) for q in data.get("questions", [])],
            pool_source=PoolSource(data.get("pool_source", PoolSource.REMOTE.value)),
            pool_size=data.get("pool_size", 0),
            choice_sets={int(k): ChoiceSet(**v) for k, v in data.get("choice_sets", {}).items()},
            answers={int(k): bool(v) for k, v in data.get("answers", {}).items()},
            point_score=data.get("point_score", 0),
            streak=StreakTracker(streak.get("question_id"), streak.get("count", 0)),
            finished=data.get("finished", False),
        )
