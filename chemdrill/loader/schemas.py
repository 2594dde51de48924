"""Record Schemas - Explicit per-pool-type row layouts and parsing.

Each pool type declares its columns once in a RecordSchema. The same
schema parses CSV payloads (by column index, or by header name for the
header-mapped sheet) and pre-structured arrays (by field name). Rows that
fail the schema are reported as RowIssue values instead of being dropped
silently.
"""

from __future__ import annotations

import csv
import io
import json
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from ..exceptions import RecordValidationError
from ..models.enums import PoolType
from ..models.schemas import QuestionRecord

logger = logging.getLogger(__name__)

OBSERVATION_KEYWORDS = (
    # cores
    "白", "黒", "赤", "青", "緑", "黄", "茶", "灰", "紫", "ピンク", "褐色", "無色",
    # estados
    "沈殿", "気体", "溶液", "イオン", "↑", "↓",
)  # fmt: skip

_WHITESPACE = re.compile(r"[\s　]+")
_ROW_NUMBER = re.compile(r"^\d+\.?$")


# =============================================================================
# Field cleaners / checks
# =============================================================================


def strip_all_whitespace(value: str) -> str:
    """Remove every whitespace character, including the ideographic space."""
    return _WHITESPACE.sub("", value)


def not_row_number(value: str) -> bool:
    """False for bare row numbers such as "1" or "2." leaking into a column."""
    return not _ROW_NUMBER.match(value)


def answer_number(value: str) -> bool:
    return value.isdigit() and 1 <= int(value) <= 4


def parse_tag_list(value: str) -> list[str]:
    """Tags from a JSON list or a comma-separated string."""
    value = value.strip()
    if not value:
        return []
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        parsed = None
    if isinstance(parsed, list):
        return [str(t).strip() for t in parsed if str(t).strip()]
    return [t.strip() for t in value.split(",") if t.strip()]


def observation_keywords(text: str) -> list[str]:
    """Color / state keywords contained in an observation text."""
    return [kw for kw in OBSERVATION_KEYWORDS if kw in text]


# =============================================================================
# Schema types
# =============================================================================


@dataclass(frozen=True)
class FieldSpec:
    """One named field of a record.

    Attributes:
        name: Field name in QuestionRecord.fields
        column: 0-based column index for positional sheets
        required: Row is rejected when the value is empty
        default: Value used when the cell is empty
        clean: Normalizer applied after trimming
        check: Predicate a non-empty value must satisfy
        aliases: Alternative keys accepted in pre-structured arrays
    """

    name: str
    column: int | None = None
    required: bool = False
    default: str = ""
    clean: Callable[[str], str] | None = None
    check: Callable[[str], bool] | None = None
    aliases: tuple[str, ...] = ()


@dataclass(frozen=True)
class RecordSchema:
    """Row layout of one pool type."""

    pool_type: PoolType
    fields: tuple[FieldSpec, ...]
    id_prefix: str
    id_field: str | None = None
    id_required: bool = False
    header_mapped: bool = False
    min_columns: int = 1
    family_field: str | None = None
    tags: Callable[[dict[str, str]], list[str]] | None = None
    choice_fields: tuple[str, ...] = ()
    answer_field: str | None = None

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]


@dataclass(frozen=True)
class RowIssue:
    """A row rejected by its schema. ``row`` is 1-based over data rows."""

    row: int
    reason: str
    record_id: str | None = None

    def __str__(self) -> str:
        where = f"row {self.row}" + (f" ({self.record_id})" if self.record_id else "")
        return f"{where}: {self.reason}"


@dataclass
class ParseResult:
    records: list[QuestionRecord] = field(default_factory=list)
    issues: list[RowIssue] = field(default_factory=list)
    total_rows: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.records


# =============================================================================
# Schemas per pool type
# =============================================================================


SCHEMAS: dict[PoolType, RecordSchema] = {
    PoolType.COMPOUNDS: RecordSchema(
        pool_type=PoolType.COMPOUNDS,
        fields=(
            FieldSpec("id", column=0),
            FieldSpec("name", column=1, required=True, clean=strip_all_whitespace),
            FieldSpec("type", column=2, default="unknown"),
            FieldSpec("formula", column=3),
            FieldSpec("atoms", column=4),
            FieldSpec("bonds", column=5),
        ),
        id_prefix="compound_",
        id_field="id",
        min_columns=2,
        family_field="type",
    ),
    PoolType.REACTIONS: RecordSchema(
        pool_type=PoolType.REACTIONS,
        fields=(
            FieldSpec("type", column=0, default="substitution"),
            FieldSpec("from", column=1, required=True),
            FieldSpec("reagent", column=2, required=True, check=not_row_number),
            FieldSpec("to", column=3, required=True),
            FieldSpec("description", column=4),
        ),
        id_prefix="reaction-",
        min_columns=4,
        family_field="type",
    ),
    PoolType.EXPERIMENT: RecordSchema(
        pool_type=PoolType.EXPERIMENT,
        fields=(
            FieldSpec("question", column=0, required=True),
            FieldSpec("option1", column=1, required=True),
            FieldSpec("option2", column=2, required=True),
            FieldSpec("option3", column=3, required=True),
            FieldSpec("option4", column=4, required=True),
            FieldSpec("answer", column=5, required=True, check=answer_number, aliases=("correctAnswer",)),
            FieldSpec("explanation", column=6),
        ),
        id_prefix="experiment-",
        min_columns=7,
        choice_fields=("option1", "option2", "option3", "option4"),
        answer_field="answer",
    ),
    PoolType.INORGANIC: RecordSchema(
        pool_type=PoolType.INORGANIC,
        fields=tuple(
            FieldSpec(name)
            for name in (
                "id", "topic", "type", "equation_tex", "reactants_desc", "products_desc",
                "conditions", "operation", "observations", "notes", "family", "variant",
                "difficulty", "state_tags", "tags_norm", "answer_hint",
            )
        ),  # fmt: skip
        id_prefix="inorganic-",
        id_field="id",
        id_required=True,
        header_mapped=True,
        family_field="family",
        tags=lambda fields: parse_tag_list(fields.get("tags_norm", "")),
    ),
    PoolType.INORGANIC_NEW: RecordSchema(
        pool_type=PoolType.INORGANIC_NEW,
        fields=(
            FieldSpec("equation", column=0, required=True),
            FieldSpec("reactants", column=1, required=True),
            FieldSpec("products", column=2, required=True),
            FieldSpec("conditions", column=3),
            FieldSpec("observations", column=4),
            FieldSpec("explanation", column=5),
            FieldSpec("reactants_summary", column=6),
            FieldSpec("products_summary", column=7),
            FieldSpec("equation_tex", column=8),
            FieldSpec("reactants_tex", column=9),
            FieldSpec("products_tex", column=10),
        ),
        id_prefix="inorganic-",
        min_columns=8,
        tags=lambda fields: observation_keywords(fields.get("observations", "")),
    ),
}


def get_schema(pool_type: PoolType | str) -> RecordSchema:
    return SCHEMAS[PoolType(pool_type)]


# =============================================================================
# Parsing
# =============================================================================


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, dict)):
        return json.dumps(value, ensure_ascii=False)
    return str(value).strip()


def _build_record(
    schema: RecordSchema, row_number: int, raw: dict[str, str]
) -> tuple[QuestionRecord | None, RowIssue | None]:
    values: dict[str, str] = {}
    for spec in schema.fields:
        value = raw.get(spec.name, "")
        if value and spec.clean is not None:
            value = spec.clean(value)
        if not value:
            if spec.required:
                return None, RowIssue(row_number, f"missing required field '{spec.name}'")
            value = spec.default
        elif spec.check is not None and not spec.check(value):
            return None, RowIssue(row_number, f"invalid value for '{spec.name}': {value!r}")
        values[spec.name] = value

    record_id = values.get(schema.id_field, "") if schema.id_field else ""
    if not record_id:
        if schema.id_required:
            return None, RowIssue(row_number, "missing id")
        record_id = f"{schema.id_prefix}{row_number}"

    choices = None
    answer_index = None
    if schema.choice_fields and schema.answer_field:
        choices = [values[name] for name in schema.choice_fields]
        answer_index = int(values[schema.answer_field]) - 1

    try:
        record = QuestionRecord(
            id=record_id,
            pool_type=schema.pool_type,
            fields=values,
            family=values.get(schema.family_field, "") if schema.family_field else "",
            tags=schema.tags(values) if schema.tags else [],
            choices=choices,
            answer_index=answer_index,
        )
    except ValidationError as e:
        return None, RowIssue(row_number, f"invalid record: {e.errors()[0]['msg']}", record_id)
    return record, None


def _collect(
    schema: RecordSchema, rows: list[tuple[int, dict[str, str] | RowIssue]], strict: bool
) -> ParseResult:
    result = ParseResult(total_rows=len(rows))
    seen: set[str] = set()

    for row_number, raw in rows:
        if isinstance(raw, RowIssue):
            result.issues.append(raw)
            continue
        record, issue = _build_record(schema, row_number, raw)
        if issue is not None:
            result.issues.append(issue)
            continue
        if record.id in seen:
            result.issues.append(RowIssue(row_number, "duplicate id", record.id))
            continue
        seen.add(record.id)
        result.records.append(record)

    for issue in result.issues:
        logger.warning(f"[{schema.pool_type.value}] Rejected {issue}")

    if strict and result.issues:
        raise RecordValidationError(
            f"{len(result.issues)} row(s) failed the {schema.pool_type.value} schema",
            {"pool_type": schema.pool_type.value, "rejected": len(result.issues)},
            issues=result.issues,
        )
    return result


def parse_pool(text: str, pool_type: PoolType | str, strict: bool = False) -> ParseResult:
    """Parse a CSV payload with the pool type's schema.

    The first row is a header: skipped for positional sheets, used as the
    column map (case-insensitive) for header-mapped ones. Blank rows are
    ignored.

    Args:
        text: CSV text (quoted fields and doubled quotes supported)
        pool_type: Pool the payload belongs to
        strict: Raise RecordValidationError on any rejected row

    Returns:
        ParseResult with valid records in source order and the issues found
    """
    schema = get_schema(pool_type)
    table = [row for row in csv.reader(io.StringIO(text.strip())) if any(c.strip() for c in row)]
    if len(table) < 2:
        return ParseResult()

    header = [h.strip().lower() for h in table[0]]
    if schema.header_mapped:
        columns = {spec.name: header.index(spec.name) if spec.name in header else None for spec in schema.fields}
    else:
        columns = {spec.name: spec.column for spec in schema.fields}

    rows: list[tuple[int, dict[str, str] | RowIssue]] = []
    for row_number, cells in enumerate(table[1:], start=1):
        if len(cells) < schema.min_columns:
            issue = RowIssue(row_number, f"insufficient columns ({len(cells)} < {schema.min_columns})")
            rows.append((row_number, issue))
            continue
        rows.append((row_number, {name: _cell(cells, index) for name, index in columns.items()}))

    return _collect(schema, rows, strict)


def _cell(cells: list[str], index: int | None) -> str:
    if index is None or index >= len(cells):
        return ""
    return cells[index].strip()


def parse_records(items: list[Any], pool_type: PoolType | str, strict: bool = False) -> ParseResult:
    """Parse a pre-structured array (list of objects) by field name."""
    schema = get_schema(pool_type)
    rows: list[tuple[int, dict[str, str] | RowIssue]] = []

    for row_number, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            rows.append((row_number, RowIssue(row_number, f"expected an object, got {type(item).__name__}")))
            continue
        raw = {}
        for spec in schema.fields:
            value = item.get(spec.name)
            for alias in spec.aliases:
                if value is None:
                    value = item.get(alias)
            raw[spec.name] = _as_text(value)
        rows.append((row_number, raw))

    return _collect(schema, rows, strict)
