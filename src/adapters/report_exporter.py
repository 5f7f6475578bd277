"""HTML/PDF readiness reports.

Why this lives in adapters:
- HTML and PDF are infrastructure details (Jinja2/WeasyPrint).
- The core only knows `SimulationResult` and `ValidationReport`.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from core.domain.models import SimulationResult, StepStatus, ValidationReport
from core.services.scoring import badge_for

_TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

_STATUS_CLASSES: dict[str, str] = {
    StepStatus.PASS.value: "pass",
    StepStatus.WARN.value: "warn",
    StepStatus.FAIL.value: "fail",
    StepStatus.SKIP.value: "skip",
}


def _get_env() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        autoescape=select_autoescape(["html", "xml"]),
    )


def render_report_html(*, result: SimulationResult | ValidationReport) -> str:
    """Render a self-contained HTML report for a simulation or validation run."""

    generated_at = datetime.now(timezone.utc).isoformat(timespec="seconds")
    if isinstance(result, SimulationResult):
        kind = "simulation"
        score = result.overall_score
        stages = result.stages()
        target = result.domain
    else:
        kind = "validation"
        score = result.score
        stages = []
        target = result.domain or result.profile_url or "local file"

    template = _get_env().get_template("report.html")
    return template.render(
        kind=kind,
        result=result,
        target=target,
        score=score,
        grade=result.grade,
        badge=badge_for(score),
        stages=stages,
        issues=result.issues,
        recommendations=result.recommendations,
        status_classes=_STATUS_CLASSES,
        generated_at=generated_at,
    )


def export_report_html(*, result: SimulationResult | ValidationReport, output_path: Path) -> Path:
    """Write the HTML report.

    Also used as the fallback when PDF rendering is not supported by the
    environment.
    """

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(render_report_html(result=result), encoding="utf-8")
    return output_path


def export_report_pdf(*, result: SimulationResult | ValidationReport, output_path: Path) -> Path:
    """Write the report as PDF.

    Design:
    - Synchronous: WeasyPrint is local CPU/IO work.
    - WeasyPrint needs system libraries (Pango); it is imported here so HTML
      and JSON exports keep working where those are missing.
    """

    from weasyprint import HTML  # noqa: PLC0415

    output_path.parent.mkdir(parents=True, exist_ok=True)
    html = render_report_html(result=result)
    HTML(string=html, base_url=str(_TEMPLATES_DIR)).write_pdf(str(output_path))
    return output_path
