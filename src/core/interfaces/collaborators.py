"""Contracts for the offline collaborators the pipeline consumes.

- `SchemaShapeChecker`: is a fetched document itself a syntactically valid
  JSON Schema?
- `KeyValidator`: structural rules for published JWK signing keys.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from core.domain.profile import JsonWebKey


@dataclass(frozen=True)
class KeyCheck:
    """Verdict for one signing key."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@runtime_checkable
class SchemaShapeChecker(Protocol):
    def check(self, document: Any) -> list[str]:
        """Return schema-shape errors; an empty list means the schema is usable."""

        ...


@runtime_checkable
class KeyValidator(Protocol):
    def validate(self, key: JsonWebKey) -> KeyCheck:
        ...
