"""
Segment validation for typed routes.

Provides:
- ParseResult / safe_parse: success-with-value or failure-with-errors,
  never raising for invalid input
- SegmentValidator: a pydantic TypeAdapter bound to one request segment
- collect_* helpers: read raw segment values off a Flask request
- check_files: required/max-count checks over uploaded files
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import TypeAdapter, ValidationError
from werkzeug.datastructures import MultiDict

from ..errors import build_files_error
from ..openapi.translate import SchemaTranslator, get_core_schema
from .registry import FileField


logger = logging.getLogger('typed_contracts.contracts.validate')


@dataclass
class ParseResult:
    """Outcome of one parse attempt."""
    success: bool
    data: Any = None
    error: Optional[ValidationError] = None


def safe_parse(adapter: TypeAdapter, value: Any) -> ParseResult:
    """
    Validate value, reporting failure instead of raising.

    Only pydantic ValidationError is caught; anything else a custom
    validator raises propagates to the caller.
    """
    try:
        return ParseResult(success=True, data=adapter.validate_python(value))
    except ValidationError as e:
        return ParseResult(success=False, error=e)


def declared_names(schema: Any) -> Dict[str, str]:
    """
    Lower-cased property name -> declared name (alias when set).

    Header names arrive in any case; this maps them back to the spelling
    the schema validates against.
    """
    fields = SchemaTranslator().object_fields(get_core_schema(schema)) or []
    return {field.name.lower(): field.name for field in fields}


def array_fields(schema: Any) -> FrozenSet[str]:
    """
    Names of object properties documented as arrays.

    Query strings and forms carry every value as a string; these are the keys
    that must be read as lists (?tag=a&tag=b -> ["a", "b"]).
    """
    translator = SchemaTranslator()
    fields = translator.object_fields(get_core_schema(schema))
    if not fields:
        return frozenset()
    names = set()
    for field in fields:
        fragment = translator.translate_field(field)
        if fragment.get('type') == 'array':
            names.add(field.name)
    return frozenset(names)


class SegmentValidator:
    """Schema bound to one request segment (body, query, params, headers)."""

    def __init__(self, segment: str, schema: Any):
        self.segment = segment
        self.schema = schema
        self.adapter = TypeAdapter(schema)
        # Only multi-value sources need list detection
        self.list_keys = array_fields(schema) if segment in ('query', 'body') else frozenset()
        self.header_names = declared_names(schema) if segment == 'headers' else {}

    def parse(self, value: Any) -> ParseResult:
        return safe_parse(self.adapter, value)


# =============================================================================
# RAW SEGMENT COLLECTION
# =============================================================================

def multidict_to_dict(values: MultiDict, list_keys: FrozenSet[str] = frozenset()) -> Dict[str, Any]:
    """Flatten a werkzeug MultiDict, keeping lists only for list_keys."""
    result = {}
    for key in values.keys():
        if key in list_keys:
            result[key] = values.getlist(key)
        else:
            result[key] = values.get(key)
    return result


def collect_body(request, list_keys: FrozenSet[str] = frozenset()) -> Any:
    """JSON body, else form fields, else None."""
    if request.is_json:
        return request.get_json(silent=True)
    if request.form:
        return multidict_to_dict(request.form, list_keys)
    return None


def collect_query(request, list_keys: FrozenSet[str] = frozenset()) -> Dict[str, Any]:
    return multidict_to_dict(request.args, list_keys)


def collect_headers(request, declared: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """
    Header names lower-cased ("X-Api-Key" -> "x-api-key").

    Names found in declared (see declared_names) take their declared
    spelling instead, so aliases match whatever case the client sends.
    """
    declared = declared or {}
    headers = {}
    for name, value in request.headers.items():
        key = name.lower()
        headers[declared.get(key, key)] = value
    return headers


# =============================================================================
# FILE UPLOADS
# =============================================================================

def check_files(uploaded: MultiDict, files: Dict[str, FileField]) -> Optional[ValidationError]:
    """
    Check uploaded files against declared file fields.

    All violations are collected and reported together.

    Returns:
        ValidationError listing every violation, or None when all pass
    """
    violations: List[Dict[str, Any]] = []

    for name, spec in files.items():
        # Empty file inputs arrive as FileStorage with no filename
        count = len([f for f in uploaded.getlist(name) if f])

        if spec.required and count == 0:
            violations.append({"field": name, "error": "missing_file"})
            continue

        if spec.max_count is not None and count > spec.max_count:
            violations.append({
                "field": name,
                "error": "too_many_files",
                "max_count": spec.max_count,
                "count": count,
            })

    if violations:
        return build_files_error(violations)
    return None
