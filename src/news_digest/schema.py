"""Helpers to load and validate the bundled JSON schemas."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable

from jsonschema import Draft202012Validator, FormatChecker
from jsonschema.exceptions import ValidationError

SUMMARY_PAYLOAD = "summary_payload.json"
TOPIC_VALIDATION = "topic_validation.json"


def schemas_dir() -> Path:
    return Path(__file__).resolve().parent / "schemas"


@lru_cache(maxsize=8)
def load_schema(name: str) -> Dict[str, Any]:
    """Load and cache a bundled schema as a dictionary."""
    return json.loads((schemas_dir() / name).read_text(encoding="utf-8"))


def _json_path(err: ValidationError) -> str:
    path = "$"
    for piece in err.absolute_path:
        path += f"[{piece}]" if isinstance(piece, int) else f".{piece}"
    return path


def format_errors(errors: Iterable[ValidationError]) -> str:
    """One ``$.blocks[0].url: message`` entry per error, joined with ``; ``."""
    return "; ".join(f"{_json_path(err)}: {err.message}" for err in errors)


def validate_payload(payload: Any, schema_name: str) -> Any:
    """
    Validate a payload against a bundled schema.

    Raises ValueError with a readable message if validation fails.
    """
    validator = Draft202012Validator(load_schema(schema_name), format_checker=FormatChecker())
    errors = list(validator.iter_errors(payload))
    if errors:
        raise ValueError(f"Schema validation failed: {format_errors(errors)}")
    return payload
