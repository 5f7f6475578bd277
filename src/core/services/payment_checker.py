"""Payment readiness (offline).

Inspects `payment.handlers` declarations and the published `signing_keys`.
Key material is judged by the `KeyValidator` collaborator; webhooks are
verifiable only when at least one key is valid and at least one handler is
declared.
"""

from __future__ import annotations

from dataclasses import dataclass

from core.domain.models import (
    IssueCode,
    PaymentStage,
    Severity,
    SimulationStep,
    StepStatus,
    ValidationIssue,
)
from core.domain.profile import ORDER, PaymentHandler, ProfileDocument
from core.errors import ValidationError
from core.interfaces.collaborators import KeyValidator
from core.services.structural_validator import is_valid_version

PAYMENT_STEPS: tuple[str, ...] = (
    "find_payment_handlers",
    "check_signing_keys",
    "check_webhook_verifiability",
)

REQUIRED_HANDLER_FIELDS: tuple[str, ...] = ("id", "name", "version", "spec")


@dataclass(frozen=True)
class PaymentOutcome:
    stage: PaymentStage
    issues: list[ValidationIssue]


def _handler_label(handler: PaymentHandler) -> str:
    return handler.id or f"#{handler.index}"


def require_complete_handler(handler: PaymentHandler) -> None:
    missing = [name for name in REQUIRED_HANDLER_FIELDS if not getattr(handler, name)]
    if missing:
        raise ValidationError(
            f"Handler missing {', '.join(missing)}",
            {"path": f"$.payment.handlers[{handler.index}]", "missing": missing},
        )


def _check_handler(handler: PaymentHandler) -> SimulationStep:
    name = f"check_handler:{_handler_label(handler)}"
    try:
        require_complete_handler(handler)
    except ValidationError as exc:
        return SimulationStep(name=name, status=StepStatus.FAIL, message=exc.message, detail=exc.details["path"])

    notes: list[str] = []
    if handler.version and not is_valid_version(handler.version):
        notes.append(f'version "{handler.version}" is not YYYY-MM-DD')
    if handler.spec and not handler.spec.startswith("https://"):
        notes.append("spec URL is not HTTPS")
    if handler.config_schema and not handler.config_schema.startswith("https://"):
        notes.append("config_schema URL is not HTTPS")
    if notes:
        return SimulationStep(name=name, status=StepStatus.WARN, message="Handler declared with warnings", detail="; ".join(notes))
    return SimulationStep(name=name, status=StepStatus.PASS, message=f"Handler {handler.name} declared")


def check_payment(
    document: ProfileDocument,
    key_validator: KeyValidator,
    *,
    verbose: bool = False,
) -> PaymentOutcome:
    issues: list[ValidationIssue] = []
    steps: list[SimulationStep] = []
    order_capable = document.has_capability(ORDER)

    handlers = document.payment_handlers or ()
    if handlers:
        steps.append(
            SimulationStep(
                name="find_payment_handlers",
                status=StepStatus.PASS,
                message=f"{len(handlers)} payment handler(s) declared",
            )
        )
    else:
        steps.append(
            SimulationStep(
                name="find_payment_handlers",
                status=StepStatus.WARN,
                message="No payment handlers declared",
            )
        )
    steps.extend(_check_handler(handler) for handler in handlers)

    keys = document.signing_keys or ()
    valid_keys = 0
    if not keys:
        if order_capable:
            steps.append(
                SimulationStep(name="check_signing_keys", status=StepStatus.FAIL, message="No signing keys published")
            )
        else:
            steps.append(
                SimulationStep(
                    name="check_signing_keys",
                    status=StepStatus.SKIP,
                    message="Skipped",
                    detail="Signing keys are only required with the order capability",
                )
            )
    else:
        problems: list[str] = []
        for key in keys:
            verdict = key_validator.validate(key)
            label = key.kid or f"#{key.index}"
            if verdict.valid:
                valid_keys += 1
                if verbose and verdict.warnings:
                    problems.append(f"{label}: {'; '.join(verdict.warnings)}")
                continue
            problems.append(f"{label}: {'; '.join(verdict.errors)}")
            issues.append(
                ValidationIssue(
                    severity=Severity.ERROR,
                    code=IssueCode.INVALID_SIGNING_KEY,
                    path=f"$.signing_keys[{key.index}]",
                    message=f"Invalid signing key {label}: {verdict.errors[0]}",
                    hint="Publish EC (P-256/P-384/P-521) or RSA public keys in JWK format",
                )
            )
        if valid_keys == len(keys):
            status = StepStatus.PASS
        elif valid_keys:
            status = StepStatus.WARN
        else:
            status = StepStatus.FAIL
        steps.append(
            SimulationStep(
                name="check_signing_keys",
                status=status,
                message=f"{valid_keys}/{len(keys)} signing key(s) valid",
                detail="; ".join(problems) or None,
            )
        )

    webhook_verifiable = valid_keys > 0 and len(handlers) > 0
    if webhook_verifiable:
        steps.append(
            SimulationStep(
                name="check_webhook_verifiability",
                status=StepStatus.PASS,
                message="Webhooks can be verified",
            )
        )
    else:
        missing = []
        if not valid_keys:
            missing.append("a valid signing key")
        if not handlers:
            missing.append("a payment handler")
        steps.append(
            SimulationStep(
                name="check_webhook_verifiability",
                status=StepStatus.FAIL if order_capable else StepStatus.WARN,
                message="Webhooks cannot be verified",
                detail=f"missing {' and '.join(missing)}",
            )
        )

    stage = PaymentStage(
        success=len(handlers) > 0 or webhook_verifiable,
        steps=tuple(steps),
        handlers_found=len(handlers),
        signing_keys_found=len(keys),
        valid_signing_keys=valid_keys,
        signing_key_valid=valid_keys > 0,
        webhook_verifiable=webhook_verifiable,
    )
    return PaymentOutcome(stage=stage, issues=issues)
