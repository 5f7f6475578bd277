"""Discovery stage: what an agent learns from the profile fetch alone."""

from __future__ import annotations

from adapters.profile_fetcher import FetchedProfile
from core.domain.models import DiscoveryStage, IssueCode, Severity, StepStatus, ValidationIssue
from core.services.steps import PREREQUISITE_FAILED, skipped, step
from core.services.structural_validator import StructuralResult

DISCOVERY_STEPS: tuple[str, ...] = (
    "discover_profile",
    "parse_version",
    "enumerate_services",
    "enumerate_capabilities",
)

_VERSION_CODES = frozenset(
    {IssueCode.MISSING_VERSION, IssueCode.INVALID_VERSION_FORMAT, IssueCode.UNKNOWN_VERSION}
)


def fetch_issue(fetched: FetchedProfile) -> ValidationIssue | None:
    """Issue describing why the profile could not be used, if any."""

    if fetched.json_error is not None:
        return ValidationIssue(
            severity=Severity.ERROR,
            code=IssueCode.INVALID_JSON,
            message=f"Profile is not valid JSON: {fetched.json_error}",
            hint="Serve the profile as a JSON document with Content-Type application/json",
        )
    if fetched.error is not None:
        return ValidationIssue(
            severity=Severity.ERROR,
            code=IssueCode.PROFILE_FETCH_FAILED,
            message=f"Could not fetch profile from {fetched.url}: {fetched.error}",
            hint="Ensure the profile is served at /.well-known/ucp over HTTPS with HTTP 200",
        )
    return None


def failed_discovery(fetched: FetchedProfile) -> DiscoveryStage:
    cause = fetched.json_error or fetched.error or "unknown error"
    message = "Profile is not valid JSON" if fetched.json_error else "Profile not reachable"
    first = step("discover_profile", StepStatus.FAIL, message, cause, fetched.duration_ms)
    return DiscoveryStage(
        success=False,
        profile_url=fetched.url,
        steps=(first, *skipped(DISCOVERY_STEPS[1:], PREREQUISITE_FAILED)),
    )


def build_discovery(fetched: FetchedProfile, structural: StructuralResult) -> DiscoveryStage:
    document = structural.document
    if not document.has_ucp_root:
        first = step(
            "discover_profile",
            StepStatus.FAIL,
            'Profile has no "ucp" object',
            None,
            fetched.duration_ms,
        )
        return DiscoveryStage(
            success=False,
            profile_url=fetched.url,
            steps=(first, *skipped(DISCOVERY_STEPS[1:], PREREQUISITE_FAILED)),
        )

    steps = [step("discover_profile", StepStatus.PASS, f"Profile found at {fetched.url}", None, fetched.duration_ms)]

    version_issues = [i for i in structural.issues if i.code in _VERSION_CODES]
    if any(i.severity is Severity.ERROR for i in version_issues):
        steps.append(step("parse_version", StepStatus.FAIL, version_issues[0].message))
    elif version_issues:
        steps.append(step("parse_version", StepStatus.WARN, version_issues[0].message))
    else:
        steps.append(step("parse_version", StepStatus.PASS, f"UCP version {document.ucp_version}"))

    if document.services is None:
        steps.append(step("enumerate_services", StepStatus.FAIL, "No services object"))
    elif not document.services:
        steps.append(step("enumerate_services", StepStatus.WARN, "Services object is empty"))
    else:
        steps.append(step("enumerate_services", StepStatus.PASS, f"{len(document.services)} service(s) declared"))

    names = document.capability_names()
    if names:
        steps.append(step("enumerate_capabilities", StepStatus.PASS, f"{len(names)} capability(ies) declared"))
    else:
        steps.append(step("enumerate_capabilities", StepStatus.FAIL, "No capabilities declared"))

    return DiscoveryStage(
        success=True,
        profile_url=fetched.url,
        ucp_version=document.ucp_version,
        services=tuple((document.services or {}).keys()),
        capabilities=tuple(names),
        transports=tuple(f"{ref.service}:{ref.kind}" for ref in document.transports()),
        steps=tuple(steps),
    )
