"""Readiness pipeline orchestration.

This module is the single entry point used by the CLI and by library
callers. It owns the order of the stages and the run budget; the stages
themselves live in sibling modules and never print or raise.

Flow of `simulate_agent`:
1. fetch the profile (sequential);
2. structural validation and the discovery stage;
3. capability resolution and transport probing (fan-out via asyncio.gather);
4. checkout simulation and payment check;
5. scoring and recommendations.

The run is bounded by `asyncio.wait_for`; stages that did not complete in
time are reported with every step skipped.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Literal

import httpx

from adapters.http_client import HttpProber, build_async_client
from adapters.key_validation import JwkKeyValidator
from adapters.profile_fetcher import FetchedProfile, fetch_profile, profile_url_for
from adapters.schema_checker import JsonSchemaShapeChecker
from core.config import AppSettings
from core.domain.models import (
    CapabilityStage,
    CheckoutStage,
    DiscoveryStage,
    IssueCode,
    PaymentStage,
    Severity,
    SimulationResult,
    SimulationSummary,
    TransportStage,
    ValidationIssue,
    ValidationReport,
)
from core.domain.profile import ProfileDocument
from core.errors import ConfigError
from core.interfaces.collaborators import KeyValidator, SchemaShapeChecker
from core.interfaces.prober import UrlProber
from core.services.capability_resolver import check_capabilities, resolve_capabilities, schema_identity_issues
from core.services.checkout_simulator import CHECKOUT_STEPS, disabled_checkout_stage, simulate_checkout
from core.services.discovery import DISCOVERY_STEPS, build_discovery, failed_discovery, fetch_issue
from core.services.payment_checker import PAYMENT_STEPS, check_payment
from core.services.scoring import grade_for, recommend, simulation_score, validation_score
from core.services.steps import PREREQUISITE_FAILED, skipped
from core.services.structural_validator import StructuralResult, validate_structure
from core.services.transport_prober import disabled_transport_stage, probe_transports, step_name

logger = logging.getLogger(__name__)

_DOMAIN_RE = re.compile(
    r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?(?:\.[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?)*(?::\d{1,5})?$"
)


@dataclass(frozen=True)
class SimulationOptions:
    """Options recognised by `simulate_agent`.

    `verbose` only changes how much detail steps carry, never an outcome.
    """

    timeout_ms: int | None = None
    skip_rest_api_test: bool = False
    skip_schema_validation: bool = False
    test_checkout_flow: bool = True
    verbose: bool = False


@dataclass
class _RunState:
    """Stage results filled in as the run progresses."""

    fetched: FetchedProfile | None = None
    structural: StructuralResult | None = None
    discovery: DiscoveryStage | None = None
    capabilities: CapabilityStage | None = None
    rest_api: TransportStage | None = None
    checkout: CheckoutStage | None = None
    payment: PaymentStage | None = None
    issues: list[ValidationIssue] = field(default_factory=list)


def normalize_domain(raw: Any) -> str:
    """Lower-case `raw`, strip scheme, path and trailing slash; validate the host."""

    if not isinstance(raw, str) or not raw.strip():
        raise ConfigError("Domain is required")

    value = raw.strip().lower()
    if "://" in value:
        scheme, value = value.split("://", 1)
        if scheme not in ("http", "https"):
            raise ConfigError(f"Unsupported scheme: {scheme}", {"domain": raw})
    value = value.split("/", 1)[0].split("?", 1)[0].split("#", 1)[0].rstrip(".")

    if not value or not _DOMAIN_RE.match(value):
        raise ConfigError(f"Invalid domain: {raw!r}", {"domain": raw})
    return value


def _budget(options: SimulationOptions, settings: AppSettings) -> tuple[float, float]:
    if options.timeout_ms is not None:
        if options.timeout_ms <= 0:
            raise ConfigError("timeout_ms must be positive", {"timeout_ms": options.timeout_ms})
        run_timeout = options.timeout_ms / 1000
    else:
        run_timeout = settings.run_timeout_seconds
    return run_timeout, min(run_timeout / 3, settings.http_timeout_seconds)


async def _run_stages(
    domain: str,
    client: httpx.AsyncClient,
    prober: UrlProber,
    options: SimulationOptions,
    state: _RunState,
    schema_checker: SchemaShapeChecker,
    key_validator: KeyValidator,
) -> None:
    fetched = await fetch_profile(client, domain)
    state.fetched = fetched

    problem = fetch_issue(fetched)
    if problem is not None:
        state.issues.append(problem)
        state.discovery = failed_discovery(fetched)
        return

    structural = validate_structure(fetched.data)
    state.structural = structural
    state.issues.extend(structural.issues)
    state.discovery = build_discovery(fetched, structural)
    if not state.discovery.success:
        return

    document = structural.document

    async def capabilities() -> CapabilityStage:
        stage, issues = await resolve_capabilities(document, prober, verbose=options.verbose)
        state.capabilities = stage
        state.issues.extend(issues)
        return stage

    async def transports() -> TransportStage:
        if options.skip_rest_api_test:
            stage = disabled_transport_stage(document, "REST API test disabled by option")
        else:
            stage = await probe_transports(document, prober, verbose=options.verbose)
        state.rest_api = stage
        return stage

    capability_stage, rest_api = await asyncio.gather(capabilities(), transports())

    if options.test_checkout_flow:
        outcome = simulate_checkout(
            capability_stage,
            rest_api,
            schema_checker,
            skip_schema_validation=options.skip_schema_validation,
        )
        state.checkout = outcome.stage
        state.issues.extend(outcome.issues)
    else:
        state.checkout = disabled_checkout_stage("Checkout flow test disabled by option")

    payment = check_payment(document, key_validator, verbose=options.verbose)
    state.payment = payment.stage
    state.issues.extend(payment.issues)


def _fill_missing(
    state: _RunState, options: SimulationOptions, detail: str, profile_url: str
) -> tuple[DiscoveryStage, CapabilityStage, TransportStage, CheckoutStage, PaymentStage]:
    """Stages of the run in order, all-skip for everything that did not run."""

    document = state.structural.document if state.structural else ProfileDocument()

    discovery = state.discovery
    if discovery is None:
        discovery = DiscoveryStage(profile_url=profile_url, steps=skipped(DISCOVERY_STEPS, detail))

    capabilities = state.capabilities
    if capabilities is None:
        names = [f"resolve_capability:{c.name or f'#{c.index}'}" for c in document.capabilities or ()]
        capabilities = CapabilityStage(steps=skipped(names or ["enumerate_capabilities"], detail))

    rest_api = state.rest_api
    if rest_api is None:
        if options.skip_rest_api_test:
            rest_api = disabled_transport_stage(document, "REST API test disabled by option")
        else:
            names = [step_name(ref) for ref in document.transports()]
            rest_api = TransportStage(steps=skipped(names or ["enumerate_transports"], detail))

    checkout = state.checkout
    if checkout is None:
        if options.test_checkout_flow:
            checkout = CheckoutStage(steps=skipped(CHECKOUT_STEPS, detail))
        else:
            checkout = disabled_checkout_stage("Checkout flow test disabled by option")

    payment = state.payment
    if payment is None:
        payment = PaymentStage(steps=skipped(PAYMENT_STEPS, detail))

    return discovery, capabilities, rest_api, checkout, payment


async def simulate_agent(
    domain: str,
    options: SimulationOptions | None = None,
    *,
    settings: AppSettings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    schema_checker: SchemaShapeChecker | None = None,
    key_validator: KeyValidator | None = None,
) -> SimulationResult:
    """Simulate an agent interacting with `domain` and score the outcome.

    Raises:
        ConfigError: `domain` (or the timeout option) is unusable. Every other
        failure is reported inside the returned result.
    """

    options = options or SimulationOptions()
    settings = settings or AppSettings()
    normalized = normalize_domain(domain)
    run_timeout, probe_timeout = _budget(options, settings)
    schema_checker = schema_checker or JsonSchemaShapeChecker()
    key_validator = key_validator or JwkKeyValidator()

    state = _RunState()
    started = time.perf_counter()
    timeout_detail: str | None = None

    async with build_async_client(settings, timeout_seconds=probe_timeout, transport=transport) as client:
        prober = HttpProber(client, max_concurrency=settings.probe_max_concurrency)
        try:
            await asyncio.wait_for(
                _run_stages(normalized, client, prober, options, state, schema_checker, key_validator),
                timeout=run_timeout,
            )
        except asyncio.TimeoutError:
            timeout_detail = f"Run timed out after {run_timeout:g}s"
            logger.warning("simulation of %s timed out after %.1fs", normalized, run_timeout)

    discovery, capabilities, rest_api, checkout, payment = _fill_missing(
        state, options, timeout_detail or PREREQUISITE_FAILED, profile_url_for(normalized)
    )

    stages = [discovery, capabilities, rest_api, checkout, payment]
    score = simulation_score(stages)
    all_steps = [s for stage in stages for s in stage.steps]
    has_errors = any(i.severity is Severity.ERROR for i in state.issues)

    return SimulationResult(
        ok=discovery.success and not has_errors and timeout_detail is None,
        domain=normalized,
        duration_ms=int((time.perf_counter() - started) * 1000),
        overall_score=score,
        grade=grade_for(score),
        discovery=discovery,
        capabilities=capabilities,
        rest_api=rest_api,
        checkout=checkout,
        payment=payment,
        summary=SimulationSummary.from_steps(all_steps),
        recommendations=tuple(recommend(state.issues, stages)),
        issues=tuple(state.issues),
    )


def _document_issues(data: Any) -> tuple[StructuralResult, list[ValidationIssue]]:
    structural = validate_structure(data)
    issues = list(structural.issues)
    by_index = check_capabilities(structural.document)
    for index in sorted(by_index):
        issues.extend(by_index[index])
    issues.extend(check_payment(structural.document, JwkKeyValidator()).issues)
    return structural, issues


def _report(
    issues: list[ValidationIssue],
    *,
    mode: Literal["offline", "network"],
    structural: StructuralResult | None,
    domain: str | None = None,
    profile_url: str | None = None,
) -> ValidationReport:
    errors = sum(1 for i in issues if i.severity is Severity.ERROR)
    warnings = sum(1 for i in issues if i.severity is Severity.WARN)
    # No document at all means nothing was validated.
    score = validation_score(issues) if structural is not None else 0
    return ValidationReport(
        ok=errors == 0 and structural is not None,
        mode=mode,
        domain=domain,
        profile_url=profile_url,
        ucp_version=structural.document.ucp_version if structural else None,
        issues=tuple(issues),
        errors=errors,
        warnings=warnings,
        score=score,
        grade=grade_for(score),
        recommendations=tuple(recommend(issues)),
    )


def validate_document(data: Any) -> ValidationReport:
    """Offline validation of an already-parsed profile document."""

    structural, issues = _document_issues(data)
    return _report(issues, mode="offline", structural=structural)


async def _schema_document_issues(document: ProfileDocument, prober: UrlProber) -> list[ValidationIssue]:
    capabilities = [c for c in document.capabilities or () if c.schema_url]
    results = await asyncio.gather(*(prober.fetch_json(c.schema_url) for c in capabilities if c.schema_url))
    issues: list[ValidationIssue] = []
    for cap, result in zip(capabilities, results):
        if result.ok:
            issues.extend(schema_identity_issues(cap, result.data))
            continue
        issues.append(
            ValidationIssue(
                severity=Severity.WARN,
                code=IssueCode.SCHEMA_FETCH_FAILED,
                path=f"{cap.path}.schema",
                message=f"Failed to fetch schema from {cap.schema_url}",
                hint=result.error or "Schema URL may be incorrect or temporarily unavailable",
            )
        )
    return issues


async def validate_domain(
    domain: str,
    *,
    offline: bool = False,
    settings: AppSettings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ValidationReport:
    """Fetch the profile of `domain` and validate it.

    With `offline=True` only the profile itself is requested; otherwise every
    capability schema URL is fetched as well.
    """

    settings = settings or AppSettings()
    normalized = normalize_domain(domain)
    mode: Literal["offline", "network"] = "offline" if offline else "network"

    async with build_async_client(settings, transport=transport) as client:
        fetched = await fetch_profile(client, normalized)
        problem = fetch_issue(fetched)
        if problem is not None:
            return _report([problem], mode=mode, structural=None, domain=normalized, profile_url=fetched.url)

        structural, issues = _document_issues(fetched.data)
        if not offline:
            prober = HttpProber(client, max_concurrency=settings.probe_max_concurrency)
            issues.extend(await _schema_document_issues(structural.document, prober))

    return _report(issues, mode=mode, structural=structural, domain=normalized, profile_url=fetched.url)
