"""Scoring Engine - Motor de pontuacao por tempo, sequencia e embaralhamento."""

import math

from ..models.enums import SessionRank
from ..models.schemas import ScoreEvent


def round_half_up(value: float) -> int:
    """Round .5 toward +infinity (Python's round() is banker's rounding)."""
    return math.floor(value + 0.5)


class ScoringEngine:
    """Per-answer point score and end-of-session ranking.

    Pontuacao por resposta correta:
        - 1000 base, minus 50 per whole elapsed second, never below 100
        - streak > 1: multiplied by 1.1 ** (streak - 1), floored
        - shuffle mode: multiplied by 1.5, rounded half-up

    Incorrect answers score 0. The function is pure and never negative.

    Faixas de resultado (percentual de acerto):
        - 100%: perfect
        - 80-99%: great
        - 50-79%: fair
        - <50%: keep_going

    Example:
        >>> engine = ScoringEngine()
        >>> engine.score(ScoreEvent(is_correct=True, elapsed_ms=2000))
        900
        >>> engine.score(ScoreEvent(is_correct=True, elapsed_ms=2000, shuffle_active=True))
        1350
    """

    BASE_SCORE = 1000
    PENALTY_PER_SECOND = 50
    MIN_SCORE = 100
    STREAK_BONUS = 1.1
    SHUFFLE_MULTIPLIER = 1.5

    # (threshold, rank, message)
    RANK_THRESHOLDS = [
        (100, SessionRank.PERFECT, "全問正解！素晴らしい！"),
        (80, SessionRank.GREAT, "高得点です！その調子！"),
        (50, SessionRank.FAIR, "まずまずの成績です。"),
        (0, SessionRank.KEEP_GOING, "お疲れ様でした！"),
    ]

    def base_score(self, elapsed_ms: float) -> int:
        seconds = math.floor(elapsed_ms / 1000)
        return max(self.MIN_SCORE, self.BASE_SCORE - self.PENALTY_PER_SECOND * seconds)

    def score(self, event: ScoreEvent) -> int:
        """Points for one answer.

        Args:
            event: Correctness, elapsed time, same-question streak, shuffle flag

        Returns:
            Points earned (0 when incorrect)
        """
        if not event.is_correct:
            return 0

        points = self.base_score(event.elapsed_ms)
        if event.streak > 1:
            points = math.floor(points * self.STREAK_BONUS ** (event.streak - 1))
        if event.shuffle_active:
            points = round_half_up(points * self.SHUFFLE_MULTIPLIER)
        return points

    def percentage(self, correct: int, total: int) -> int:
        """Accuracy as a whole percentage (0 for an empty session)."""
        if total <= 0:
            return 0
        return round_half_up(correct / total * 100)

    def calculate_rank(self, percentage: float) -> tuple[SessionRank, str]:
        """Rank and message for an accuracy percentage."""
        for threshold, rank, message in self.RANK_THRESHOLDS:
            if percentage >= threshold:
                return rank, message
        return self.RANK_THRESHOLDS[-1][1:3]

    def summarize(self, correct: int, total: int, point_score: int) -> dict:
        """Resumo de fim de sessao.

        Returns:
            Dict com correct_count, total_count, percentage, point_score, rank, message
        """
        percentage = self.percentage(correct, total)
        rank, message = self.calculate_rank(percentage)
        return {
            "correct_count": correct,
            "total_count": total,
            "percentage": percentage,
            "point_score": point_score,
            "rank": rank,
            "message": message,
        }
