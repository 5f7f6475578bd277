"""Checkout flow simulation.

The checklist is fixed and always reported in full:

1. `discover_profile`          the profile was fetched and parsed
2. `check_checkout_capability` the checkout capability resolved cleanly
3. `fetch_checkout_schema`     its schema is itself a valid JSON Schema
4. `mock_checkout`             the REST OpenAPI document describes a
                               checkout operation

No request is ever sent to the merchant's checkout endpoint; step 4 only
reads the OpenAPI body the transport prober already fetched.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from core.domain.models import (
    CapabilityStage,
    CheckoutStage,
    IssueCode,
    Severity,
    SimulationStep,
    StepStatus,
    TransportStage,
    ValidationIssue,
)
from core.domain.profile import CHECKOUT, DISCOUNT, FULFILLMENT, ORDER
from core.interfaces.collaborators import SchemaShapeChecker
from core.services.steps import PREREQUISITE_FAILED, skipped, step

CHECKOUT_STEPS: tuple[str, ...] = (
    "discover_profile",
    "check_checkout_capability",
    "fetch_checkout_schema",
    "mock_checkout",
)

CHECKOUT_SCHEMA_MARKERS: tuple[str, ...] = ("checkout_id", "items", "line_items", "CheckoutSession")
HTTP_METHODS: tuple[str, ...] = ("post", "put", "patch", "get")


@dataclass(frozen=True)
class CheckoutOutcome:
    stage: CheckoutStage
    issues: list[ValidationIssue]


def disabled_checkout_stage(detail: str) -> CheckoutStage:
    return CheckoutStage(success=False, disabled=True, steps=skipped(CHECKOUT_STEPS, detail))


def has_checkout_structure(schema: Any) -> bool:
    if not isinstance(schema, dict):
        return False
    for section in ("properties", "$defs", "definitions"):
        members = schema.get(section)
        if isinstance(members, dict) and any(marker in members for marker in CHECKOUT_SCHEMA_MARKERS):
            return True
    return False


def find_checkout_operation(openapi: Any) -> str | None:
    """First `METHOD /path` in an OpenAPI document whose path mentions checkout."""

    paths = openapi.get("paths") if isinstance(openapi, dict) else None
    if not isinstance(paths, dict):
        return None
    for path, operations in paths.items():
        if "checkout" not in str(path).lower() or not isinstance(operations, dict):
            continue
        for method in HTTP_METHODS:
            if method in operations:
                return f"{method.upper()} {path}"
    return None


def _capability_supported(capabilities: CapabilityStage, name: str) -> bool:
    resolution = capabilities.resolution_for(name)
    return resolution is not None and resolution.status is not StepStatus.FAIL


def _check_capability(capabilities: CapabilityStage) -> SimulationStep:
    name = "check_checkout_capability"
    resolution = capabilities.resolution_for(CHECKOUT)
    if resolution is None:
        return step(name, StepStatus.FAIL, f"Checkout capability {CHECKOUT} not declared")
    if resolution.status is StepStatus.FAIL:
        return step(name, StepStatus.FAIL, "Checkout capability did not resolve")
    if resolution.status is StepStatus.WARN:
        return step(name, StepStatus.WARN, "Checkout capability resolved with warnings")
    if resolution.status is StepStatus.SKIP:
        return step(name, StepStatus.SKIP, "Skipped", PREREQUISITE_FAILED)
    return step(name, StepStatus.PASS, f"Checkout capability {resolution.version or ''}".rstrip())


def _check_schema(
    capabilities: CapabilityStage,
    schema_checker: SchemaShapeChecker,
    issues: list[ValidationIssue],
) -> SimulationStep:
    name = "fetch_checkout_schema"
    resolution = capabilities.resolution_for(CHECKOUT)
    schema = resolution.schema_document if resolution is not None else None
    if schema is None:
        return step(name, StepStatus.FAIL, "Checkout schema could not be fetched")

    errors = schema_checker.check(schema)
    if errors:
        issues.append(
            ValidationIssue(
                severity=Severity.ERROR,
                code=IssueCode.INVALID_SCHEMA,
                path=f"$.ucp.capabilities[{resolution.index}].schema",
                message="Checkout schema is not a valid JSON Schema",
                hint=errors[0],
            )
        )
        return step(name, StepStatus.FAIL, "Checkout schema is not a valid JSON Schema", "; ".join(errors))
    if not has_checkout_structure(schema):
        return step(
            name,
            StepStatus.WARN,
            "Checkout schema parsed but lacks the expected checkout structure",
            f"none of {', '.join(CHECKOUT_SCHEMA_MARKERS)} found under properties or $defs",
        )
    return step(name, StepStatus.PASS, "Checkout schema is a valid JSON Schema")


def _mock_checkout(transports: TransportStage, *, skip_schema_validation: bool) -> SimulationStep:
    name = "mock_checkout"
    if skip_schema_validation:
        return step(name, StepStatus.SKIP, "Skipped", "Schema validation disabled by option")
    if transports.disabled:
        return step(name, StepStatus.SKIP, "Skipped", "REST API test disabled by option")
    rest = transports.rest_probes()
    if not rest:
        return step(name, StepStatus.SKIP, "Skipped", "No REST transport declared")
    documents = [p.schema_document for p in rest if p.schema_document is not None]
    if not documents:
        return step(name, StepStatus.SKIP, "Skipped", "REST schema not loaded")

    for document in documents:
        operation = find_checkout_operation(document)
        if operation is not None:
            return step(name, StepStatus.PASS, "Checkout operation described", operation)
    if not any(isinstance(d, dict) and isinstance(d.get("paths"), dict) for d in documents):
        return step(name, StepStatus.WARN, "REST schema has no OpenAPI paths to inspect")
    return step(name, StepStatus.FAIL, "No checkout operation found in REST schema")


def simulate_checkout(
    capabilities: CapabilityStage,
    transports: TransportStage,
    schema_checker: SchemaShapeChecker,
    *,
    skip_schema_validation: bool = False,
) -> CheckoutOutcome:
    """Run the checkout checklist; discovery is assumed to have succeeded."""

    issues: list[ValidationIssue] = []
    steps = [step("discover_profile", StepStatus.PASS, "Profile discovered")]

    capability_step = _check_capability(capabilities)
    steps.append(capability_step)

    if capability_step.status in (StepStatus.PASS, StepStatus.WARN):
        schema_step = _check_schema(capabilities, schema_checker, issues)
    else:
        schema_step = step("fetch_checkout_schema", StepStatus.SKIP, "Skipped", PREREQUISITE_FAILED)
    steps.append(schema_step)

    if schema_step.status in (StepStatus.PASS, StepStatus.WARN):
        mock_step = _mock_checkout(transports, skip_schema_validation=skip_schema_validation)
    else:
        mock_step = step("mock_checkout", StepStatus.SKIP, "Skipped", PREREQUISITE_FAILED)
    steps.append(mock_step)

    can_create = (
        capability_step.status in (StepStatus.PASS, StepStatus.WARN)
        and schema_step.status in (StepStatus.PASS, StepStatus.WARN)
        and mock_step.status is not StepStatus.FAIL
    )
    stage = CheckoutStage(
        success=can_create,
        steps=tuple(steps),
        can_create_checkout=can_create,
        checkout_schema_valid=schema_step.status in (StepStatus.PASS, StepStatus.WARN),
        order_flow_supported=_capability_supported(capabilities, ORDER),
        fulfillment_supported=_capability_supported(capabilities, FULFILLMENT),
        discount_supported=_capability_supported(capabilities, DISCOUNT),
    )
    return CheckoutOutcome(stage=stage, issues=issues)
