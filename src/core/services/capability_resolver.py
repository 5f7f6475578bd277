"""Capability resolution.

Two halves:
- `check_capabilities` applies the offline rules (namespace, duplicates,
  origin binding, `extends` references) and returns issues keyed by the
  capability index.
- `resolve_capabilities` probes each declared `schema`/`spec` URL and turns
  both halves into one `SimulationStep` per capability.

Network failures only ever degrade `schema_accessible`/`spec_accessible` to
False.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any, Literal

from core.domain.models import (
    CapabilityResolution,
    CapabilityStage,
    IssueCode,
    Severity,
    SimulationStep,
    StepStatus,
    ValidationIssue,
)
from core.domain.profile import (
    KNOWN_CAPABILITIES,
    OFFICIAL_NAMESPACE,
    VENDOR_NAMESPACES,
    CapabilityDecl,
    ProfileDocument,
)
from core.interfaces.prober import ProbeResult, UrlProber
from core.services.steps import probe_detail, step
from core.services.structural_validator import parse_url

logger = logging.getLogger(__name__)

OFFICIAL_HOST = "ucp.dev"

Namespace = Literal["official", "vendor", "extension"]


def classify_namespace(name: str) -> Namespace:
    if name.startswith(OFFICIAL_NAMESPACE):
        return "official"
    if name.startswith(VENDOR_NAMESPACES):
        return "vendor"
    return "extension"


def vendor_domain(name: str) -> str | None:
    """`com.acme.loyalty` -> `acme.com` (reverse-DNS owner of the name)."""

    parts = name.split(".")
    if len(parts) < 2 or not parts[1]:
        return None
    return f"{parts[1]}.{parts[0]}"


def _host_matches(host: str, domain: str) -> bool:
    return host == domain or host.endswith(f".{domain}")


def _issue(severity: Severity, code: IssueCode, path: str, message: str, hint: str | None = None) -> ValidationIssue:
    return ValidationIssue(severity=severity, code=code, path=path, message=message, hint=hint)


def _origin_issues(cap: CapabilityDecl, namespace: Namespace) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    name = cap.name or ""
    owner = vendor_domain(name) if namespace == "vendor" and name.startswith("com.") else None

    for field, url in (("spec", cap.spec), ("schema", cap.schema_url)):
        if not url:
            continue
        parts = parse_url(url)
        if parts is None:
            issues.append(
                _issue(
                    Severity.ERROR,
                    IssueCode.INVALID_URL,
                    f"{cap.path}.{field}",
                    f'Capability "{name}" {field} URL cannot be parsed',
                    f'Fix the malformed URL "{url}"',
                )
            )
            continue
        host = (parts.hostname or "").lower()
        if namespace == "official" and not _host_matches(host, OFFICIAL_HOST):
            issues.append(
                _issue(
                    Severity.ERROR,
                    IssueCode.NS_ORIGIN_MISMATCH,
                    f"{cap.path}.{field}",
                    f'Official capability "{name}" must have its {field} hosted on {OFFICIAL_HOST}',
                    f"Use the canonical https://{OFFICIAL_HOST}/ URL for {field}",
                )
            )
        elif owner is not None and not _host_matches(host, owner):
            issues.append(
                _issue(
                    Severity.WARN,
                    IssueCode.NS_ORIGIN_MISMATCH,
                    f"{cap.path}.{field}",
                    f'Vendor capability "{name}" {field} should be hosted on {owner}',
                    f"Host the {field} document on {owner} or a subdomain",
                )
            )
    return issues


def schema_name_from_id(schema_id: str) -> str:
    """Last path segment of a `$id` URL without `.json`; non-URLs are returned as-is."""

    parts = parse_url(schema_id)
    if parts is None or not parts.scheme or not parts.netloc:
        return schema_id
    segments = [s for s in parts.path.split("/") if s]
    return (segments[-1] if segments else "").replace(".json", "")


def schema_identity_issues(cap: CapabilityDecl, schema: Any) -> list[ValidationIssue]:
    """Check that a fetched capability schema names and versions itself like its capability."""

    if not isinstance(schema, dict):
        return []
    issues: list[ValidationIssue] = []
    expected = cap.name or ""
    path = f"{cap.path}.schema"

    declared = schema.get("$id") or schema.get("name")
    if isinstance(declared, str) and declared:
        found = schema_name_from_id(declared)
        if found and found not in expected and expected.rsplit(".", 1)[-1] not in found:
            issues.append(
                _issue(
                    Severity.WARN,
                    IssueCode.SCHEMA_NAME_MISMATCH,
                    path,
                    f'Schema name "{found}" may not match capability "{expected}"',
                    "Point the capability at its own schema",
                )
            )

    version = schema.get("version")
    if isinstance(version, str) and version and cap.version and version != cap.version:
        issues.append(
            _issue(
                Severity.WARN,
                IssueCode.SCHEMA_VERSION_MISMATCH,
                path,
                f'Schema version "{version}" differs from capability version "{cap.version}"',
                "Ensure schema and capability versions are aligned",
            )
        )
    return issues


def check_capabilities(document: ProfileDocument) -> dict[int, list[ValidationIssue]]:
    """Offline capability rules, grouped by capability index (insertion order)."""

    found: dict[int, list[ValidationIssue]] = defaultdict(list)
    capabilities = document.capabilities or ()
    declared = set(document.capability_names())
    seen: set[str] = set()

    for cap in capabilities:
        if not cap.name:
            continue
        namespace = classify_namespace(cap.name)

        if namespace == "official" and cap.name not in KNOWN_CAPABILITIES:
            found[cap.index].append(
                _issue(
                    Severity.WARN,
                    IssueCode.UNKNOWN_CAPABILITY,
                    f"{cap.path}.name",
                    f'Unknown official capability: "{cap.name}"',
                    "Check the capability name against the published UCP capability list",
                )
            )

        if cap.name in seen:
            found[cap.index].append(
                _issue(
                    Severity.WARN,
                    IssueCode.DUPLICATE_CAPABILITY,
                    f"{cap.path}.name",
                    f'Capability "{cap.name}" is declared more than once',
                    "Remove the duplicate declaration",
                )
            )
        seen.add(cap.name)

        found[cap.index].extend(_origin_issues(cap, namespace))

        if cap.extends is not None and cap.extends not in declared:
            found[cap.index].append(
                _issue(
                    Severity.ERROR,
                    IssueCode.ORPHANED_EXTENSION,
                    f"{cap.path}.extends",
                    f'Capability "{cap.name}" extends "{cap.extends}", which is not declared in this profile',
                    f'Declare "{cap.extends}" or remove the extends reference',
                )
            )

    return {index: issues for index, issues in found.items() if issues}


async def _nothing() -> None:
    return None


async def _probe_pair(cap: CapabilityDecl, prober: UrlProber) -> tuple[ProbeResult | None, ProbeResult | None]:
    schema, spec = await asyncio.gather(
        prober.fetch_json(cap.schema_url) if cap.schema_url else _nothing(),
        prober.check_reachable(cap.spec) if cap.spec else _nothing(),
    )
    return schema, spec


def _step_for(
    cap: CapabilityDecl,
    issues: list[ValidationIssue],
    schema: ProbeResult | None,
    spec: ProbeResult | None,
    *,
    verbose: bool,
) -> SimulationStep:
    name = f"resolve_capability:{cap.name or f'#{cap.index}'}"
    if not cap.name:
        return step(name, StepStatus.FAIL, "Capability has no name", f"{cap.path} is missing a usable name")

    errors = [i for i in issues if i.severity is Severity.ERROR]
    warnings = [i for i in issues if i.severity is Severity.WARN]
    duration = (schema.duration_ms if schema else 0) + (spec.duration_ms if spec else 0)

    if errors:
        return step(name, StepStatus.FAIL, errors[0].message, "; ".join(i.message for i in errors[1:]) or None, duration)
    if schema is None:
        return step(name, StepStatus.FAIL, "No schema URL declared", None, duration)
    if not schema.ok:
        return step(name, StepStatus.FAIL, "Schema not accessible", probe_detail(schema, verbose=verbose), duration)
    if spec is None or not spec.ok:
        detail = probe_detail(spec, verbose=verbose) if spec else "No spec URL declared"
        return step(name, StepStatus.WARN, "Spec document not accessible", detail, duration)
    if warnings:
        return step(name, StepStatus.WARN, warnings[0].message, None, duration)
    message = "Resolved"
    if cap.extends:
        message = f"Resolved (extends {cap.extends})"
    return step(name, StepStatus.PASS, message, probe_detail(schema, verbose=True) if verbose else None, duration)


async def resolve_capabilities(
    document: ProfileDocument,
    prober: UrlProber,
    *,
    verbose: bool = False,
) -> tuple[CapabilityStage, list[ValidationIssue]]:
    """Resolve every declared capability; returns the stage and its issues."""

    capabilities = document.capabilities or ()
    if not capabilities:
        enumerate_step = step("enumerate_capabilities", StepStatus.FAIL, "No capabilities declared")
        return CapabilityStage(success=False, steps=(enumerate_step,)), []

    by_index = check_capabilities(document)
    declared = set(document.capability_names())
    probes = await asyncio.gather(*(_probe_pair(cap, prober) for cap in capabilities))

    steps: list[SimulationStep] = []
    resolutions: list[CapabilityResolution] = []
    for cap, (schema, spec) in zip(capabilities, probes):
        issues = by_index.get(cap.index, [])
        cap_step = _step_for(cap, issues, schema, spec, verbose=verbose)
        steps.append(cap_step)
        resolutions.append(
            CapabilityResolution(
                index=cap.index,
                name=cap.name,
                version=cap.version,
                namespace=classify_namespace(cap.name) if cap.name else "extension",
                is_extension=cap.extends is not None,
                parent_capability=cap.extends,
                parent_resolved=(cap.extends in declared) if cap.extends is not None else None,
                schema_accessible=bool(schema and schema.ok),
                spec_accessible=bool(spec and spec.ok),
                status=cap_step.status,
                schema_document=schema.data if schema and schema.ok else None,
            )
        )
        if cap_step.status is StepStatus.FAIL:
            logger.info("capability %s failed: %s", cap.name or cap.index, cap_step.message)

    issues = [issue for index in sorted(by_index) for issue in by_index[index]]
    stage = CapabilityStage(
        success=all(s.status is not StepStatus.FAIL for s in steps),
        steps=tuple(steps),
        capabilities=tuple(resolutions),
    )
    return stage, issues
