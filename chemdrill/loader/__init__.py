"""Drill Loader - Record schemas, envelope validation and pool loading."""

from .fallback import FallbackDatasets
from .remote import RemotePoolLoader
from .schemas import (
    OBSERVATION_KEYWORDS,
    SCHEMAS,
    FieldSpec,
    ParseResult,
    RecordSchema,
    RowIssue,
    get_schema,
    observation_keywords,
    parse_pool,
    parse_records,
)
from .validation import Envelope, validate_envelope

__all__ = [
    "FallbackDatasets",
    "RemotePoolLoader",
    "OBSERVATION_KEYWORDS",
    "SCHEMAS",
    "FieldSpec",
    "ParseResult",
    "RecordSchema",
    "RowIssue",
    "get_schema",
    "observation_keywords",
    "parse_pool",
    "parse_records",
    "Envelope",
    "validate_envelope",
]
