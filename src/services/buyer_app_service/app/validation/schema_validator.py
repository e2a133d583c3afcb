from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from buyer_common.config import BUYER_APP_SCHEMAS_DIR
from buyer_common.exceptions import SchemaLoadError
from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError
from referencing import Registry
from referencing.jsonschema import DRAFT202012

from app.ack_response import JSON_SCHEMA_ERROR_CODE, JSON_SCHEMA_ERROR_TYPE
from app.actions import Action

logger = logging.getLogger(__name__)

DEFAULT_SCHEMAS_DIR = Path(__file__).parent / "schemas"
MAX_REPORTED_ERRORS = 10


@dataclass(frozen=True)
class ValidationOutcome:
    valid: bool
    error_type: Optional[str] = None
    error_code: Optional[str] = None
    # Diagnostics for logs only; never rendered to the caller.
    errors: Tuple[str, ...] = ()


VALID = ValidationOutcome(valid=True)


def _schema_error(*errors: str) -> ValidationOutcome:
    return ValidationOutcome(
        valid=False,
        error_type=JSON_SCHEMA_ERROR_TYPE,
        error_code=JSON_SCHEMA_ERROR_CODE,
        errors=tuple(errors),
    )


def resolve_schemas_dir(schemas_dir: Path | str | None = None) -> Path:
    """
    Resolve the directory holding the action schemas.
    Priority:
      1) explicit argument
      2) BUYER_APP_SCHEMAS_DIR
      3) schemas packaged next to this module
    """
    candidate = schemas_dir or BUYER_APP_SCHEMAS_DIR
    if candidate:
        return Path(candidate).expanduser().resolve()
    return DEFAULT_SCHEMAS_DIR


def _load_json(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError as exc:
        raise SchemaLoadError(f"schema not found: {path}") from exc
    except (OSError, ValueError) as exc:
        raise SchemaLoadError(f"schema unreadable: {path}: {exc}") from exc


class SchemaValidator:
    """
    Validates raw action payloads against per-action JSON Schemas.

    Every schema under the schemas directory is registered by its $id, so
    action schemas can $ref shared definitions (common.json) without any
    network access. One compiled validator per Action is built up front;
    validate() only reads them and is safe to call from concurrent requests.
    """

    def __init__(self, schemas_dir: Path | str | None = None):
        self.schemas_dir = resolve_schemas_dir(schemas_dir)
        if not self.schemas_dir.is_dir():
            raise SchemaLoadError(f"schemas directory not found: {self.schemas_dir}")

        registry = Registry()
        for path in sorted(self.schemas_dir.glob("*.json")):
            contents = _load_json(path)
            schema_id = contents.get("$id")
            if isinstance(schema_id, str) and schema_id:
                registry = registry.with_resource(schema_id, DRAFT202012.create_resource(contents))
        self._registry = registry.crawl()

        self._validators: Dict[Action, Draft202012Validator] = {}
        for action in Action:
            schema = _load_json(self.schemas_dir / f"{action.value}.json")
            try:
                Draft202012Validator.check_schema(schema)
            except SchemaError as exc:
                raise SchemaLoadError(f"invalid schema for action '{action.value}': {exc.message}") from exc
            self._validators[action] = Draft202012Validator(schema, registry=self._registry)

        logger.info(
            "Action schemas loaded.",
            extra={"schemas_dir": str(self.schemas_dir), "actions": [a.value for a in self._validators]},
        )

    def validate(self, action: Action, payload: bytes) -> ValidationOutcome:
        # Nesting deep enough to exhaust the interpreter stack is rejected like any other malformed document.
        try:
            document = json.loads(payload)
        except (ValueError, RecursionError) as exc:
            return _schema_error(f"payload is not a JSON document: {exc}")

        validator = self._validators[action]
        try:
            errors = sorted(validator.iter_errors(document), key=lambda e: e.json_path)
        except RecursionError:
            return _schema_error("payload is nested too deeply to validate")
        if not errors:
            return VALID
        return _schema_error(*(f"{e.json_path}: {e.message}" for e in errors[:MAX_REPORTED_ERRORS]))
