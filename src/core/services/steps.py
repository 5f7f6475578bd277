"""Small helpers shared by the stage builders."""

from __future__ import annotations

from typing import Iterable

from core.domain.models import SimulationStep, StepStatus
from core.interfaces.prober import ProbeResult

PREREQUISITE_FAILED = "Prerequisite step failed"


def step(
    name: str,
    status: StepStatus,
    message: str = "",
    detail: str | None = None,
    duration_ms: int | None = None,
) -> SimulationStep:
    return SimulationStep(name=name, status=status, message=message, detail=detail, duration_ms=duration_ms)


def skipped(names: Iterable[str], detail: str) -> tuple[SimulationStep, ...]:
    """Placeholder steps for a checklist that could not run."""

    return tuple(step(name, StepStatus.SKIP, "Skipped", detail) for name in names)


def probe_detail(result: ProbeResult, *, verbose: bool) -> str | None:
    """Failure cause of a probe; verbose adds URL, status and timing."""

    if not verbose:
        return result.error
    parts = [result.url]
    if result.status_code is not None:
        parts.append(f"HTTP {result.status_code}")
    parts.append(f"{result.duration_ms} ms")
    if result.error:
        parts.append(result.error)
    return " | ".join(parts)
