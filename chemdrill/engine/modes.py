"""Drill Modes - Which field is asked and which is answered, per mode."""

from dataclasses import dataclass

from ..models.enums import Category, PoolType


@dataclass(frozen=True)
class DrillMode:
    """One quiz mode over a pool.

    Attributes:
        name: Mode id, also the leaderboard mode
        category: Question bank the pool is loaded from
        pool_type: Pool the questions come from
        prompt_field: Field shown as the question
        answer_field: Field holding the correct option (None: shipped choices)
        family_field: Field grouping near-miss distractors (None: record.family)
        element_fields: Formula fields for the shared-element tier (None: defaults)
        context_fields: Extra fields shown with the question
        title: Human label
    """

    name: str
    category: Category
    pool_type: PoolType
    prompt_field: str
    answer_field: str | None
    family_field: str | None = None
    element_fields: tuple[str, ...] | None = None
    context_fields: tuple[str, ...] = ()
    title: str = ""

    @property
    def uses_fixed_choices(self) -> bool:
        return self.answer_field is None


MODES: dict[str, DrillMode] = {
    mode.name: mode
    for mode in (
        DrillMode(
            name="compound-name",
            category=Category.ORGANIC,
            pool_type=PoolType.COMPOUNDS,
            prompt_field="formula",
            answer_field="name",
            family_field="type",
            element_fields=("formula",),
            title="構造式 → 名称",
        ),
        DrillMode(
            name="compound-type",
            category=Category.ORGANIC,
            pool_type=PoolType.COMPOUNDS,
            prompt_field="name",
            answer_field="type",
            element_fields=("formula",),
            title="化合物の分類",
        ),
        DrillMode(
            name="reaction-product",
            category=Category.ORGANIC,
            pool_type=PoolType.REACTIONS,
            prompt_field="from",
            answer_field="to",
            element_fields=(),
            context_fields=("reagent",),
            title="反応 → 生成物",
        ),
        DrillMode(
            name="reaction-reagent",
            category=Category.ORGANIC,
            pool_type=PoolType.REACTIONS,
            prompt_field="from",
            answer_field="reagent",
            element_fields=(),
            context_fields=("to",),
            title="反応 → 試薬",
        ),
        DrillMode(
            name="inorganic-products",
            category=Category.INORGANIC,
            pool_type=PoolType.INORGANIC_NEW,
            prompt_field="reactants",
            answer_field="products",
            family_field="reactants",
            element_fields=("equation",),
            context_fields=("conditions",),
            title="反応 → 生成物",
        ),
        DrillMode(
            name="inorganic-conditions",
            category=Category.INORGANIC,
            pool_type=PoolType.INORGANIC_NEW,
            prompt_field="equation",
            answer_field="conditions",
            family_field="equation",
            element_fields=("equation",),
            title="反応式 → 条件",
        ),
        DrillMode(
            name="inorganic-observations",
            category=Category.INORGANIC,
            pool_type=PoolType.INORGANIC_NEW,
            prompt_field="equation",
            answer_field="observations",
            family_field="equation",
            element_fields=("equation",),
            title="反応式 → 観察",
        ),
        DrillMode(
            name="inorganic-mode-a",
            category=Category.INORGANIC,
            pool_type=PoolType.INORGANIC,
            prompt_field="reactants_desc",
            answer_field="products_desc",
            element_fields=("reactants_desc", "products_desc"),
            context_fields=("conditions", "operation"),
            title="操作 → 生成物",
        ),
        DrillMode(
            name="experiment",
            category=Category.INORGANIC,
            pool_type=PoolType.EXPERIMENT,
            prompt_field="question",
            answer_field=None,
            title="実験",
        ),
    )
}


def get_mode(name: str) -> DrillMode:
    """Mode by name.

    Raises:
        KeyError: unknown mode
    """
    try:
        return MODES[name]
    except KeyError:
        raise KeyError(f"Unknown drill mode: {name}") from None
