"""JSON loading and schema validation shared by job files and the rules pack."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Iterable, List, Type

from jsonschema import Draft7Validator

from ..utils.errors import JobFileNotFound, PlanError, SchemaFileNotFound, SchemaValidationError
from ..utils.logging import get_logger

LOG = get_logger()


def load_json_file(json_path: Path, *, missing: Type[PlanError] = JobFileNotFound) -> Dict:
    if not json_path.exists():
        raise missing(f"JSON not found: {json_path}")
    with json_path.open("r", encoding="utf-8") as f:
        payload = json.load(f)
    LOG.info("loaded JSON: %s", json_path)
    return payload


def load_schema_file(schema_path: Path) -> Dict:
    if not schema_path.exists():
        raise SchemaFileNotFound(f"Schema not found: {schema_path}")
    with schema_path.open("r", encoding="utf-8") as f:
        schema_json = json.load(f)
    LOG.info("loaded Schema: %s", schema_path)
    return schema_json


def format_json_path(path_iterable: Iterable) -> str:
    parts: List[str] = ["root"]
    for p in path_iterable:
        if isinstance(p, int):
            parts[-1] = parts[-1] + f"[{p}]"
        else:
            parts.append(str(p))
    return ".".join(parts)


def validate_json_schema(
    payload: Dict,
    schema_json: Dict,
    *,
    error: Type[PlanError] = SchemaValidationError,
) -> None:
    validator = Draft7Validator(schema_json)
    errors = sorted(validator.iter_errors(payload), key=lambda e: (list(map(str, e.path)), list(map(str, e.schema_path))))
    if not errors:
        LOG.info("schema validation: PASSED")
        return
    LOG.error("[SCH] schema validation: FAILED (count=%d)", len(errors))
    for i, err in enumerate(errors, start=1):
        LOG.error(
            "[SCH] #%d path=%s | msg=%s | validator=%s | schema_path=%s",
            i,
            format_json_path(err.path),
            err.message,
            err.validator,
            "/".join(map(str, err.schema_path)),
        )
    raise error(f"schema validation failed with {len(errors)} error(s)")
