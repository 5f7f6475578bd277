"""JSON-Schema shape checker backed by `jsonschema`.

Only checks that a document is itself a valid schema against its declared
meta-schema (Draft 2020-12 when `$schema` is absent). Instances are never
validated against it.
"""

from __future__ import annotations

from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError
from jsonschema.validators import validator_for


def _json_path(parts: Any) -> str:
    out = "$"
    for part in parts or []:
        if isinstance(part, int):
            out += f"[{part}]"
        else:
            out += f".{part}"
    return out


class JsonSchemaShapeChecker:
    """`SchemaShapeChecker` implementation."""

    def check(self, document: Any) -> list[str]:
        if isinstance(document, bool):
            return []
        if not isinstance(document, dict):
            return [f"$: schema must be a JSON object, got {type(document).__name__}"]

        declared = document.get("$schema")
        if declared is not None and not isinstance(declared, str):
            return [f"$.$schema: must be a URI string, got {type(declared).__name__}"]
        try:
            validator_cls = validator_for(document, default=Draft202012Validator)
        except (TypeError, ValueError) as exc:
            return [f"$.$schema: unusable meta-schema reference ({exc})"]

        try:
            validator_cls.check_schema(document)
        except SchemaError as exc:
            return [f"{_json_path(getattr(exc, 'absolute_path', None))}: {exc.message}"]
        except RecursionError:
            return ["$: schema is nested too deeply to check"]
        return []
