"""Distractor Engine - Plausible wrong options for multiple choice.

Candidates are drawn tier by tier from an ordered strategy list:

1. same_family    records of the same family / subcategory
2. shared_tag     records sharing at least one normalized tag
3. shared_element records whose formulas share a chemical element
4. random         any other record

Within a tier candidates are taken in random order. A value is never
the correct answer, never empty and never repeated.
"""

from __future__ import annotations

import random
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from ..models.schemas import ChoiceSet, QuestionPool, QuestionRecord

PERIODIC_TABLE = frozenset(
    """
    H He Li Be B C N O F Ne Na Mg Al Si P S Cl Ar K Ca Sc Ti V Cr Mn Fe Co Ni
    Cu Zn Ga Ge As Se Br Kr Rb Sr Y Zr Nb Mo Tc Ru Rh Pd Ag Cd In Sn Sb Te I
    Xe Cs Ba La Ce Pr Nd Pm Sm Eu Gd Tb Dy Ho Er Tm Yb Lu Hf Ta W Re Os Ir Pt
    Au Hg Tl Pb Bi Po At Rn Fr Ra Ac Th Pa U Np Pu Am Cm Bk Cf Es Fm Md No Lr
    """.split()
)

_SYMBOL = re.compile(r"[A-Z][a-z]?")

# Fields scanned for element symbols when a mode names none.
FORMULA_FIELDS = (
    "equation",
    "formula",
    "reactants_summary",
    "products_summary",
    "reactants_desc",
    "products_desc",
)


def extract_elements(text: str) -> set[str]:
    """Element symbols appearing in formula-ish text.

    >>> sorted(extract_elements("2KMnO4 + 16HCl"))
    ['Cl', 'H', 'K', 'Mn', 'O']
    """
    found = set()
    for match in _SYMBOL.finditer(text):
        symbol = match.group()
        if symbol in PERIODIC_TABLE:
            found.add(symbol)
        elif symbol[0] in PERIODIC_TABLE:
            found.add(symbol[0])
    return found


# =============================================================================
# Strategies
# =============================================================================


@dataclass
class DistractorContext:
    """Per-call settings shared by the strategies."""

    answer_field: str
    family_field: str | None = None
    element_fields: tuple[str, ...] | None = None
    _elements: dict[str, set[str]] = field(default_factory=dict)

    def family(self, record: QuestionRecord) -> str:
        if self.family_field:
            return record.get(self.family_field)
        return record.family

    def elements(self, record: QuestionRecord) -> set[str]:
        if record.id not in self._elements:
            names = FORMULA_FIELDS if self.element_fields is None else self.element_fields
            text = " ".join(record.get(name) for name in names)
            self._elements[record.id] = extract_elements(text)
        return self._elements[record.id]


@dataclass(frozen=True)
class CandidateStrategy:
    name: str
    matches: Callable[[QuestionRecord, QuestionRecord, DistractorContext], bool]


def _same_family(correct: QuestionRecord, other: QuestionRecord, ctx: DistractorContext) -> bool:
    family = ctx.family(correct)
    return bool(family) and ctx.family(other) == family


def _shared_tag(correct: QuestionRecord, other: QuestionRecord, ctx: DistractorContext) -> bool:
    return bool(set(correct.tags) & set(other.tags))


def _shared_element(correct: QuestionRecord, other: QuestionRecord, ctx: DistractorContext) -> bool:
    return bool(ctx.elements(correct) & ctx.elements(other))


DEFAULT_STRATEGIES: tuple[CandidateStrategy, ...] = (
    CandidateStrategy("same_family", _same_family),
    CandidateStrategy("shared_tag", _shared_tag),
    CandidateStrategy("shared_element", _shared_element),
    CandidateStrategy("random", lambda correct, other, ctx: True),
)


# =============================================================================
# Engine
# =============================================================================


class DistractorEngine:
    """Builds distractors and shuffled choice sets.

    Example:
        >>> engine = DistractorEngine(random.Random(1))
        >>> wrong = engine.generate(record, pool, "products", k=3)
        >>> choice_set = engine.shuffle_choices(record.get("products"), wrong)
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        strategies: Sequence[CandidateStrategy] | None = None,
    ):
        self.rng = rng or random.Random()
        self.strategies = tuple(strategies) if strategies is not None else DEFAULT_STRATEGIES

    def generate(
        self,
        correct: QuestionRecord,
        pool: QuestionPool | Sequence[QuestionRecord],
        field: str,
        k: int = 3,
        family_field: str | None = None,
        element_fields: tuple[str, ...] | None = None,
    ) -> list[str]:
        """Up to k distinct wrong values of ``field``.

        Fewer than k are returned when the pool has fewer eligible values;
        that is not an error.
        """
        if k <= 0:
            return []
        records = pool.records if isinstance(pool, QuestionPool) else pool
        correct_value = correct.get(field)
        ctx = DistractorContext(answer_field=field, family_field=family_field, element_fields=element_fields)

        candidates = [r for r in records if r.id != correct.id and r.get(field) and r.get(field) != correct_value]
        chosen: list[str] = []
        used = {correct_value}

        for strategy in self.strategies:
            tier = [r for r in candidates if strategy.matches(correct, r, ctx)]
            for record in self.rng.sample(tier, len(tier)):
                value = record.get(field)
                if value in used:
                    continue
                chosen.append(value)
                used.add(value)
                if len(chosen) >= k:
                    return chosen
        return chosen

    def shuffle_choices(self, correct: str, distractors: Sequence[str]) -> ChoiceSet:
        """Correct value plus distractors in random order.

        The correct index is located by value after shuffling.
        """
        choices = [correct, *distractors]
        for i in range(len(choices) - 1, 0, -1):
            j = self.rng.randint(0, i)
            choices[i], choices[j] = choices[j], choices[i]
        return ChoiceSet(choices=choices, correct_index=choices.index(correct))

    def choice_set(
        self,
        correct: QuestionRecord,
        pool: QuestionPool | Sequence[QuestionRecord],
        field: str,
        k: int = 3,
        family_field: str | None = None,
        element_fields: tuple[str, ...] | None = None,
    ) -> ChoiceSet:
        distractors = self.generate(
            correct, pool, field, k=k, family_field=family_field, element_fields=element_fields
        )
        return self.shuffle_choices(correct.get(field), distractors)
