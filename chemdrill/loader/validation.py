"""Envelope Validation - Classify a remote response body before parsing.

Recognized envelopes:
    {"csv": "<text>"}                 -> CSV payload for the requested pool
    {"<entity-field>": [ {...}, ... ]} -> pre-structured records
    {"error": "<message>"}           -> RemoteServiceError

Anything else (HTML pages, bare arrays, other objects, non-JSON) is a
ValidationFailure, as is an array whose rows belong to another entity.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from ..exceptions import RemoteServiceError, ValidationFailure
from ..models.enums import PoolType

logger = logging.getLogger(__name__)

HTML_MARKERS = ("<!doctype", "<html")

ENTITY_FIELDS: dict[PoolType, str] = {
    PoolType.COMPOUNDS: "compounds",
    PoolType.REACTIONS: "reactions",
    PoolType.EXPERIMENT: "experiments",
    PoolType.INORGANIC: "inorganic",
    PoolType.INORGANIC_NEW: "inorganic",
}

# Keys that only rows of a given entity carry
ENTITY_SIGNATURES: dict[str, frozenset[str]] = {
    PoolType.COMPOUNDS.value: frozenset({"formula", "structure", "atoms", "bonds"}),
    PoolType.REACTIONS.value: frozenset({"reagent"}),
    PoolType.EXPERIMENT.value: frozenset({"option1", "correctAnswer"}),
    PoolType.INORGANIC.value: frozenset({"reactants_desc", "products_desc", "tags_norm"}),
    PoolType.INORGANIC_NEW.value: frozenset({"reactants_summary", "products_summary"}),
    "rec": frozenset({"userKey", "pointScore", "rangeKey"}),
    "userStats": frozenset({"userKey", "EXP", "LV", "tenAve"}),
}


@dataclass(frozen=True)
class Envelope:
    """A validated response: exactly one of csv / items is set."""

    pool_type: PoolType
    csv: str | None = None
    items: list[Any] | None = None

    @property
    def kind(self) -> str:
        return "csv" if self.csv is not None else "records"


def is_html(body: str) -> bool:
    head = body.lstrip()[:64].lower()
    return head.startswith(HTML_MARKERS)


def detect_entity(row: Any) -> str | None:
    """Entity sharing the most signature keys with a row, or None."""
    if not isinstance(row, dict):
        return None
    keys = set(row)
    best, best_hits = None, 0
    for entity, signature in ENTITY_SIGNATURES.items():
        hits = len(keys & signature)
        if hits > best_hits:
            best, best_hits = entity, hits
    return best


def check_cross_wiring(items: list[Any], pool_type: PoolType) -> None:
    """Reject arrays whose first row belongs to a different entity."""
    if not items:
        return
    entity = detect_entity(items[0])
    if entity is None or entity == pool_type.value:
        return
    raise ValidationFailure(
        f"Response rows look like '{entity}' data, expected '{pool_type.value}'",
        {"pool_type": pool_type.value, "detected": entity},
    )


def validate_envelope(body: str, pool_type: PoolType | str) -> Envelope:
    """Classify a raw response body for the requested pool.

    The HTML check runs on the raw text, before any JSON decode.

    Raises:
        RemoteServiceError: Explicit {"error": ...} envelope
        ValidationFailure: Any unrecognized or cross-wired shape
    """
    pool_type = PoolType(pool_type)
    details = {"pool_type": pool_type.value}

    if is_html(body):
        raise ValidationFailure("Received an HTML page instead of data", details)
    if not body.strip():
        raise ValidationFailure("Empty response body", details)

    try:
        data = json.loads(body)
    except json.JSONDecodeError as e:
        raise ValidationFailure(f"Response is not JSON: {e.msg}", details) from e

    if isinstance(data, list):
        entity = detect_entity(data[0]) if data else None
        if entity is not None:
            details["detected"] = entity
        raise ValidationFailure("Bare array response is not a recognized envelope", details)
    if not isinstance(data, dict):
        raise ValidationFailure(f"Unexpected JSON {type(data).__name__} response", details)

    if "error" in data:
        raise RemoteServiceError(f"Remote error: {data['error'] or '(empty)'}", details)

    if "csv" in data:
        if not isinstance(data["csv"], str):
            raise ValidationFailure("'csv' field is not a string", details)
        return Envelope(pool_type=pool_type, csv=data["csv"])

    entity_field = ENTITY_FIELDS[pool_type]
    items = data.get(entity_field)
    if isinstance(items, list):
        check_cross_wiring(items, pool_type)
        return Envelope(pool_type=pool_type, items=items)

    foreign = sorted(k for k, v in data.items() if isinstance(v, list))
    if foreign:
        details["fields"] = foreign
    raise ValidationFailure(
        f"Expected 'csv' or '{entity_field}' field in response",
        details,
    )
