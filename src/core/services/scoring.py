"""Scoring and recommendations.

Two distinct scores share the same grade thresholds:
- `validation_score`: 100 minus a fixed weight per issue, floored at 0.
- `simulation_score`: weighted share of step credit across stages.

They are computed from different inputs and are not expected to agree.
Every weight, threshold and recommendation lives in a table below.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Literal, Sequence

from core.domain.models import IssueCode, Severity, StageResult, StepStatus, ValidationIssue

Grade = Literal["A", "B", "C", "D", "F"]

SEVERITY_WEIGHTS: dict[Severity, int] = {Severity.ERROR: 20, Severity.WARN: 5}

GRADE_THRESHOLDS: tuple[tuple[int, Grade], ...] = ((90, "A"), (80, "B"), (70, "C"), (60, "D"))
FAILING_GRADE: Grade = "F"

STAGE_WEIGHTS: dict[str, int] = {
    "discovery": 15,
    "capabilities": 15,
    "restApi": 15,
    "checkout": 30,
    "payment": 25,
}

STEP_CREDIT: dict[StepStatus, float] = {
    StepStatus.PASS: 1.0,
    StepStatus.WARN: 0.5,
    StepStatus.FAIL: 0.0,
}

BADGE_COLORS: tuple[tuple[int, str], ...] = (
    (90, "brightgreen"),
    (80, "green"),
    (70, "yellowgreen"),
    (60, "yellow"),
    (40, "orange"),
)
FALLBACK_BADGE_COLOR = "red"

READINESS_LABELS: dict[str, str] = {
    "A": "AI Commerce Ready",
    "B": "Mostly Ready",
    "C": "Partially Ready",
    "D": "Limited Readiness",
    "F": "Not Ready",
}

ISSUE_RECOMMENDATIONS: dict[IssueCode, str] = {
    IssueCode.PROFILE_FETCH_FAILED: "Ensure UCP profile is accessible at /.well-known/ucp",
    IssueCode.INVALID_JSON: "Serve the profile as valid JSON with Content-Type application/json",
    IssueCode.MISSING_ROOT: 'Wrap the profile in a top-level "ucp" object',
    IssueCode.MISSING_VERSION: 'Declare the protocol version in "ucp.version"',
    IssueCode.INVALID_VERSION_FORMAT: 'Use a date-stamped version such as "2026-01-11"',
    IssueCode.UNKNOWN_VERSION: "Target a published UCP version so agents understand the profile",
    IssueCode.MISSING_SERVICES: "Add at least one service (e.g., dev.ucp.shopping) to enable commerce",
    IssueCode.INVALID_SERVICE: "Complete every service declaration with version, spec and a transport",
    IssueCode.MISSING_CAPABILITIES: "Declare your capabilities in ucp.capabilities",
    IssueCode.MISSING_CHECKOUT: "Add checkout capability (dev.ucp.shopping.checkout) to enable purchases",
    IssueCode.NS_ORIGIN_MISMATCH: "Host capability spec and schema documents on the namespace owner's domain",
    IssueCode.ORPHANED_EXTENSION: "Declare the parent of every extension capability",
    IssueCode.ENDPOINT_NOT_HTTPS: "Serve every schema and endpoint over HTTPS",
    IssueCode.PRIVATE_IP_ENDPOINT: "Replace private or loopback endpoints with public hostnames",
    IssueCode.MISSING_SIGNING_KEYS: "Add signing_keys for Order capability",
    IssueCode.INVALID_SIGNING_KEY: "Add valid signing keys (EC or RSA JWK) for webhook verification",
    IssueCode.INVALID_PAYMENT: "Declare payment handlers as an array under payment.handlers",
    IssueCode.INVALID_SCHEMA: "Ensure checkout schema is accessible and valid",
    IssueCode.SCHEMA_FETCH_FAILED: "Fix inaccessible capability schemas",
    IssueCode.SCHEMA_NAME_MISMATCH: "Make each capability schema $id end with the capability name",
    IssueCode.SCHEMA_VERSION_MISMATCH: "Keep capability versions in step with the schemas they point to",
    IssueCode.INVALID_URL: "Fix malformed URLs in the profile",
}

# Matched against names of failed steps, by prefix.
STEP_RECOMMENDATIONS: tuple[tuple[str, str], ...] = (
    ("discover_profile", "Ensure UCP profile is accessible at /.well-known/ucp"),
    ("enumerate_transports", "Configure at least one transport binding (REST, MCP, or A2A)"),
    ("resolve_capability:", "Fix inaccessible capability schemas"),
    ("probe_transport:", "Ensure transport schemas are fetchable and endpoints are publicly accessible"),
    ("fetch_checkout_schema", "Ensure checkout schema is accessible and valid"),
    ("mock_checkout", "Describe the checkout operation in your REST OpenAPI schema"),
    ("check_handler:", "Complete payment handler declarations with id, name, version and spec"),
    ("check_signing_keys", "Add valid signing keys (EC or RSA JWK) for webhook verification"),
    ("check_webhook_verifiability", "Configure payment handlers and signing keys so webhooks can be verified"),
)

FIX_ERRORS = "Fix all errors before going live"
ADDRESS_WARNINGS = "Address warnings to improve agent compatibility"
ALL_GOOD = "Profile is well-configured for AI agent commerce!"


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def grade_for(score: int) -> Grade:
    for threshold, grade in GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return FAILING_GRADE


def validation_score(issues: Iterable[ValidationIssue]) -> int:
    penalty = sum(SEVERITY_WEIGHTS[issue.severity] for issue in issues)
    return max(0, 100 - penalty)


def stage_credit(stage: StageResult) -> float:
    """Fraction of credit earned by a stage; 0.0 when nothing ran."""

    counted = [s for s in stage.steps if s.status is not StepStatus.SKIP]
    if not counted:
        return 0.0
    return sum(STEP_CREDIT[s.status] for s in counted) / len(counted)


def simulation_score(stages: Sequence[StageResult]) -> int:
    """Weighted step credit across stages.

    - failed discovery scores 0 outright;
    - stages disabled by an option leave the denominator;
    - stages skipped because a prerequisite failed earn 0.
    """

    for stage in stages:
        if stage.stage == "discovery" and not stage.success:
            return 0

    earned = 0.0
    possible = 0
    for stage in stages:
        if stage.disabled:
            continue
        weight = STAGE_WEIGHTS.get(stage.stage, 0)
        possible += weight
        earned += weight * stage_credit(stage)
    if not possible:
        return 0
    return min(100, max(0, round_half_up(100 * earned / possible)))


def badge_for(score: int) -> dict[str, str]:
    """Text, colour and readiness label for a README badge."""

    grade = grade_for(score)
    color = next((c for threshold, c in BADGE_COLORS if score >= threshold), FALLBACK_BADGE_COLOR)
    return {
        "text": f"AI Agent Ready: {grade} ({score}/100)",
        "color": color,
        "label": READINESS_LABELS[grade],
    }


def recommend(
    issues: Sequence[ValidationIssue],
    stages: Sequence[StageResult] = (),
) -> list[str]:
    """Apply the rule tables; output is de-duplicated and ordered by first match."""

    out: list[str] = []

    def add(text: str) -> None:
        if text not in out:
            out.append(text)

    if any(issue.severity is Severity.ERROR for issue in issues):
        add(FIX_ERRORS)

    for issue in issues:
        text = ISSUE_RECOMMENDATIONS.get(issue.code)
        if text:
            add(text)

    for stage in stages:
        for s in stage.steps:
            if s.status is not StepStatus.FAIL:
                continue
            for prefix, text in STEP_RECOMMENDATIONS:
                if s.name.startswith(prefix):
                    add(text)
                    break

    if not out and any(issue.severity is Severity.WARN for issue in issues):
        add(ADDRESS_WARNINGS)
    if not out:
        add(ALL_GOOD)
    return out
