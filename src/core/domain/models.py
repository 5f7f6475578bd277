"""Domain models (Pydantic v2).

Why Pydantic in the domain:
- Strict validation and self-documenting fields (Field) without coupling the
  core to I/O libraries.
- One serialization contract: `model_dump(by_alias=True)` produces the
  camelCase JSON shape consumed by reports and API callers.

Note:
- These models describe *what* a validation/simulation produced, not *how*
  it was obtained.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from pydantic.config import ConfigDict


class Severity(str, Enum):
    ERROR = "error"
    WARN = "warn"


class StepStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"
    SKIP = "skip"


class IssueCode(str, Enum):
    """Stable, machine-readable issue identifiers."""

    MISSING_ROOT = "UCP_MISSING_ROOT"
    INVALID_JSON = "UCP_INVALID_JSON"
    PROFILE_FETCH_FAILED = "UCP_PROFILE_FETCH_FAILED"
    MISSING_VERSION = "UCP_MISSING_VERSION"
    INVALID_VERSION_FORMAT = "UCP_INVALID_VERSION_FORMAT"
    UNKNOWN_VERSION = "UCP_UNKNOWN_VERSION"
    MISSING_SERVICES = "UCP_MISSING_SERVICES"
    INVALID_SERVICE = "UCP_INVALID_SERVICE"
    MISSING_CAPABILITIES = "UCP_MISSING_CAPABILITIES"
    INVALID_CAPABILITY = "UCP_INVALID_CAPABILITY"
    MISSING_CHECKOUT = "UCP_MISSING_CHECKOUT"
    UNKNOWN_CAPABILITY = "UCP_UNKNOWN_CAPABILITY"
    DUPLICATE_CAPABILITY = "UCP_DUPLICATE_CAPABILITY"
    NS_ORIGIN_MISMATCH = "UCP_NS_ORIGIN_MISMATCH"
    ORPHANED_EXTENSION = "UCP_ORPHANED_EXTENSION"
    ENDPOINT_NOT_HTTPS = "UCP_ENDPOINT_NOT_HTTPS"
    ENDPOINT_TRAILING_SLASH = "UCP_ENDPOINT_TRAILING_SLASH"
    PRIVATE_IP_ENDPOINT = "UCP_PRIVATE_IP_ENDPOINT"
    MISSING_SIGNING_KEYS = "UCP_MISSING_SIGNING_KEYS"
    INVALID_SIGNING_KEY = "UCP_INVALID_SIGNING_KEY"
    INVALID_PAYMENT = "UCP_INVALID_PAYMENT"
    INVALID_SCHEMA = "UCP_INVALID_SCHEMA"
    SCHEMA_FETCH_FAILED = "UCP_SCHEMA_FETCH_FAILED"
    SCHEMA_NAME_MISMATCH = "UCP_SCHEMA_NAME_MISMATCH"
    SCHEMA_VERSION_MISMATCH = "UCP_SCHEMA_VERSION_MISMATCH"
    INVALID_URL = "UCP_INVALID_URL"


class _Model(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ValidationIssue(_Model):
    """A single finding. Issues keep the order in which checks ran."""

    severity: Severity
    code: IssueCode
    path: str = Field(default="$", description="JSON path of the offending value.")
    message: str = Field(..., min_length=1)
    hint: str | None = None


class SimulationStep(_Model):
    """Terminal record of one simulated agent action."""

    name: str = Field(..., min_length=1)
    status: StepStatus
    message: str = ""
    detail: str | None = None
    duration_ms: int | None = Field(default=None, ge=0)


class StageResult(_Model):
    """Common shape of a pipeline stage.

    A stage whose prerequisite failed is still present, with every step
    `skip` and `success=False`. `disabled` marks a stage turned off by an
    option rather than by a failure.
    """

    stage: str
    success: bool = False
    disabled: bool = False
    steps: tuple[SimulationStep, ...] = ()

    def is_all_skipped(self) -> bool:
        return all(s.status is StepStatus.SKIP for s in self.steps)


class DiscoveryStage(StageResult):
    stage: Literal["discovery"] = "discovery"
    profile_url: str | None = None
    ucp_version: str | None = None
    services: tuple[str, ...] = ()
    capabilities: tuple[str, ...] = ()
    transports: tuple[str, ...] = ()


class CapabilityResolution(_Model):
    index: int
    name: str | None = None
    version: str | None = None
    namespace: Literal["official", "vendor", "extension"] = "extension"
    is_extension: bool = Field(default=False, description="Declares `extends`.")
    parent_capability: str | None = None
    parent_resolved: bool | None = None
    schema_accessible: bool = False
    spec_accessible: bool = False
    status: StepStatus = StepStatus.SKIP
    schema_document: Any = Field(default=None, exclude=True)


class CapabilityStage(StageResult):
    stage: Literal["capabilities"] = "capabilities"
    capabilities: tuple[CapabilityResolution, ...] = ()

    def resolution_for(self, name: str) -> CapabilityResolution | None:
        for resolution in self.capabilities:
            if resolution.name == name:
                return resolution
        return None


class TransportProbe(_Model):
    service: str
    kind: str
    schema_url: str | None = None
    endpoint: str | None = None
    schema_accessible: bool = False
    endpoint_reachable: bool | None = Field(
        default=None,
        description="None when the transport type has no live endpoint.",
    )
    usable: bool = False
    detail: str | None = None
    schema_document: Any = Field(default=None, exclude=True)


class TransportStage(StageResult):
    stage: Literal["restApi"] = "restApi"
    transports: tuple[TransportProbe, ...] = ()
    schema_loaded: bool = False
    endpoint_accessible: bool = False
    usable_transports: tuple[str, ...] = ()

    def rest_probes(self) -> list[TransportProbe]:
        return [p for p in self.transports if p.kind == "rest"]


class CheckoutStage(StageResult):
    stage: Literal["checkout"] = "checkout"
    can_create_checkout: bool = False
    checkout_schema_valid: bool = False
    order_flow_supported: bool = False
    fulfillment_supported: bool = False
    discount_supported: bool = False


class PaymentStage(StageResult):
    stage: Literal["payment"] = "payment"
    handlers_found: int = Field(default=0, ge=0)
    signing_keys_found: int = Field(default=0, ge=0)
    valid_signing_keys: int = Field(default=0, ge=0)
    signing_key_valid: bool = False
    webhook_verifiable: bool = False


class SimulationSummary(_Model):
    total_steps: int = 0
    passed_steps: int = 0
    failed_steps: int = 0
    warning_steps: int = 0
    skipped_steps: int = 0

    @classmethod
    def from_steps(cls, steps: list[SimulationStep]) -> "SimulationSummary":
        counts = {status: 0 for status in StepStatus}
        for step in steps:
            counts[step.status] += 1
        return cls(
            total_steps=len(steps),
            passed_steps=counts[StepStatus.PASS],
            failed_steps=counts[StepStatus.FAIL],
            warning_steps=counts[StepStatus.WARN],
            skipped_steps=counts[StepStatus.SKIP],
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SimulationResult(_Model):
    """Aggregate of one simulated agent interaction with a merchant."""

    ok: bool
    domain: str
    simulated_at: datetime = Field(default_factory=_utcnow)
    duration_ms: int = Field(default=0, ge=0)
    overall_score: int = Field(..., ge=0, le=100)
    grade: Literal["A", "B", "C", "D", "F"]
    discovery: DiscoveryStage
    capabilities: CapabilityStage
    rest_api: TransportStage
    checkout: CheckoutStage
    payment: PaymentStage
    summary: SimulationSummary
    recommendations: tuple[str, ...] = ()
    issues: tuple[ValidationIssue, ...] = ()

    def stages(self) -> list[StageResult]:
        return [self.discovery, self.capabilities, self.rest_api, self.checkout, self.payment]

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2)


class ValidationReport(_Model):
    """Result of a validation-only run (no agent simulation)."""

    ok: bool
    mode: Literal["offline", "network"] = "offline"
    domain: str | None = None
    profile_url: str | None = None
    ucp_version: str | None = None
    issues: tuple[ValidationIssue, ...] = ()
    errors: int = Field(default=0, ge=0)
    warnings: int = Field(default=0, ge=0)
    score: int = Field(..., ge=0, le=100)
    grade: Literal["A", "B", "C", "D", "F"]
    recommendations: tuple[str, ...] = ()
    validated_at: datetime = Field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2)
