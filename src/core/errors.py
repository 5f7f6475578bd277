"""Error taxonomy.

Only `ConfigError` leaves the pipeline. The other classes are raised and
caught inside adapters/services, where they are turned into failed or
skipped steps and validation issues.
"""

from __future__ import annotations

from typing import Any


class UcpReadinessError(Exception):
    """Base class for every error raised by this package."""

    kind = "ucp:error"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "details": self.details}


class ConfigError(UcpReadinessError):
    """The caller did not provide a usable input (domain, file).

    Examples:
    - empty domain
    - domain containing spaces or a non-HTTP scheme
    """

    kind = "ucp:config"


class NetworkError(UcpReadinessError):
    """DNS, TLS, connection or timeout failure while probing a URL."""

    kind = "ucp:network"


class ParseError(UcpReadinessError):
    """A fetched body is not valid JSON, or not a valid JSON Schema."""

    kind = "ucp:parse"


class ValidationError(UcpReadinessError):
    """A semantic rule of the profile was violated."""

    kind = "ucp:validation"
