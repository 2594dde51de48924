"""Drill Engines - Logica de negocios."""

from .distractor_engine import CandidateStrategy, DistractorEngine, extract_elements
from .drill_engine import DrillEngine, eligible_records, leaderboard_mode
from .modes import MODES, DrillMode, get_mode
from .resolver import QuestionSetResolver
from .scoring_engine import ScoringEngine

__all__ = [
    "CandidateStrategy",
    "DistractorEngine",
    "extract_elements",
    "DrillEngine",
    "eligible_records",
    "leaderboard_mode",
    "MODES",
    "DrillMode",
    "get_mode",
    "QuestionSetResolver",
    "ScoringEngine",
]
