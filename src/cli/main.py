"""CLI entry point (Typer).

Why Typer + Rich:
- Typer derives options and help from type hints.
- Rich renders step tables and the score panel; `--json` bypasses it for
  pipelines.

The commands only parse arguments, call `core.services.pipeline` and render
the result. `ConfigError` is the only exception they expect.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from adapters.json_exporter import export_result_json
from adapters.report_exporter import export_report_html, export_report_pdf
from cli import doctor
from cli.ui_components import print_banner, render_simulation, render_validation
from core.config import AppSettings
from core.domain.models import SimulationResult, ValidationReport
from core.errors import ConfigError
from core.services.pipeline import SimulationOptions, simulate_agent, validate_document, validate_domain

app = typer.Typer(
    no_args_is_help=True,
    help="Check that a merchant's UCP profile is well-formed and usable by shopping agents.",
)
app.add_typer(doctor.app, name="doctor")

_console = Console()
_err_console = Console(stderr=True)

logger = logging.getLogger(__name__)

EXIT_FAILED = 1
EXIT_CONFIG = 2


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=_err_console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def sanitize_target_for_filename(value: str) -> str:
    """Generate a filesystem-friendly slug for reports."""

    out: list[str] = []
    for ch in value.strip():
        if ch.isalnum() or ch in ("-", "_", "."):
            out.append(ch)
        else:
            out.append("-")
    cleaned = "".join(out).strip("-_")
    return cleaned or "target"


def _exports(
    result: SimulationResult | ValidationReport,
    *,
    target: str,
    output: Path | None,
    export_html: bool,
    export_pdf: bool,
    reports_dir: Path,
    quiet: bool,
) -> None:
    written: list[Path] = []
    if output is not None:
        written.append(export_result_json(result=result, output_path=output))

    slug = sanitize_target_for_filename(target)
    if export_html:
        written.append(export_report_html(result=result, output_path=reports_dir / f"{slug}.html"))
    if export_pdf:
        pdf_path = reports_dir / f"{slug}.pdf"
        try:
            written.append(export_report_pdf(result=result, output_path=pdf_path))
        except (ImportError, OSError) as exc:
            logger.warning("PDF export failed (%s); writing HTML instead", exc)
            written.append(export_report_html(result=result, output_path=pdf_path.with_suffix(".html")))

    if not quiet:
        for path in written:
            _console.print(f"[dim]Report saved to:[/dim] {path}")


def _fail_config(exc: ConfigError) -> None:
    _err_console.print(f"[red]Error:[/red] {exc.message}")
    raise typer.Exit(code=EXIT_CONFIG)


@app.command()
def simulate(
    domain: str = typer.Argument(..., help="Merchant domain, e.g. shop.example.com"),
    timeout_ms: Optional[int] = typer.Option(None, "--timeout-ms", help="Budget for the whole run."),
    skip_rest_api_test: bool = typer.Option(False, "--skip-rest-api-test", help="Do not probe transports."),
    skip_schema_validation: bool = typer.Option(
        False, "--skip-schema-validation", help="Skip the mock checkout against the REST schema."
    ),
    test_checkout_flow: bool = typer.Option(
        True, "--checkout-flow/--no-checkout-flow", help="Run the checkout flow simulation."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Add URLs and timings to step details."),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the JSON result to this file."),
    export_html: bool = typer.Option(False, "--export-html", help="Write an HTML report."),
    export_pdf: bool = typer.Option(False, "--export-pdf", help="Write a PDF report (falls back to HTML)."),
    reports_dir: Path = typer.Option(Path("reports"), "--reports-dir", help="Directory for HTML/PDF reports."),
    fail_under: Optional[int] = typer.Option(
        None, "--fail-under", min=0, max=100, help="Exit non-zero when the score is below this value."
    ),
) -> None:
    """Simulate an AI shopping agent against DOMAIN and score its readiness."""

    settings = AppSettings()
    _configure_logging(settings.log_level)
    options = SimulationOptions(
        timeout_ms=timeout_ms,
        skip_rest_api_test=skip_rest_api_test,
        skip_schema_validation=skip_schema_validation,
        test_checkout_flow=test_checkout_flow,
        verbose=verbose,
    )

    try:
        if not as_json:
            print_banner(_console)
            with _console.status(f"Simulating agent against {domain}..."):
                result = asyncio.run(simulate_agent(domain, options, settings=settings))
        else:
            result = asyncio.run(simulate_agent(domain, options, settings=settings))
    except ConfigError as exc:
        _fail_config(exc)
        return

    if as_json:
        typer.echo(result.to_json())
    else:
        render_simulation(_console, result)

    _exports(
        result,
        target=result.domain,
        output=output,
        export_html=export_html,
        export_pdf=export_pdf,
        reports_dir=reports_dir,
        quiet=as_json,
    )

    if fail_under is not None and result.overall_score < fail_under:
        raise typer.Exit(code=EXIT_FAILED)


def _load_profile_file(path: Path) -> object:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read {path}: {exc.strerror or exc}", {"path": str(path)}) from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"{path} is not valid JSON: {exc.msg} (line {exc.lineno})", {"path": str(path)}) from exc


@app.command()
def validate(
    domain: Optional[str] = typer.Argument(None, help="Merchant domain to fetch the profile from."),
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="Validate a local profile JSON file."),
    offline: bool = typer.Option(False, "--offline", help="Do not fetch capability schemas."),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the JSON report to this file."),
    export_html: bool = typer.Option(False, "--export-html", help="Write an HTML report."),
    export_pdf: bool = typer.Option(False, "--export-pdf", help="Write a PDF report (falls back to HTML)."),
    reports_dir: Path = typer.Option(Path("reports"), "--reports-dir", help="Directory for HTML/PDF reports."),
) -> None:
    """Validate a UCP profile from DOMAIN or from --file. Exits 1 when errors are found."""

    settings = AppSettings()
    _configure_logging(settings.log_level)

    try:
        if (domain is None) == (file is None):
            raise ConfigError("Specify either a DOMAIN or --file")
        if file is not None:
            report = validate_document(_load_profile_file(file))
            target = file.stem
        else:
            report = asyncio.run(validate_domain(domain or "", offline=offline, settings=settings))
            target = report.domain or "profile"
    except ConfigError as exc:
        _fail_config(exc)
        return

    if as_json:
        typer.echo(report.to_json())
    else:
        render_validation(_console, report)

    _exports(
        report,
        target=target,
        output=output,
        export_html=export_html,
        export_pdf=export_pdf,
        reports_dir=reports_dir,
        quiet=as_json,
    )

    if not report.ok:
        raise typer.Exit(code=EXIT_FAILED)


def run() -> None:
    app()


if __name__ == "__main__":
    run()
