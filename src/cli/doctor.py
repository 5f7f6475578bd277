"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio
import logging
import tempfile
from pathlib import Path

import httpx
import typer
from rich.console import Console
from rich.table import Table

from adapters.http_client import build_async_client, describe_network_error
from adapters.report_exporter import export_report_pdf
from core.config import AppSettings, get_user_env_file, write_user_env_vars
from core.services.pipeline import validate_document

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()
logger = logging.getLogger(__name__)

CONNECTIVITY_URL = "https://ucp.dev/"


async def _check_http(url: str, settings: AppSettings) -> tuple[bool, str]:
    try:
        async with build_async_client(settings) as client:
            response = await client.get(url)
        return True, f"HTTP {response.status_code}"
    except httpx.HTTPError as exc:
        return False, describe_network_error(exc)


def _check_pdf() -> tuple[bool, str]:
    """Attempt to generate a minimal PDF to detect WeasyPrint issues."""

    report = validate_document({"ucp": {}})
    with tempfile.TemporaryDirectory() as tmp:
        try:
            export_report_pdf(result=report, output_path=Path(tmp) / "doctor.pdf")
        except (ImportError, OSError) as exc:
            logger.debug("PDF check failed", exc_info=True)
            return False, str(exc)
    return True, "OK"


@app.command()
def run() -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = AppSettings()

    table = Table(title="UCP Readiness Doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    # Config
    table.add_row("User config", "OK" if get_user_env_file().exists() else "DEFAULT", str(get_user_env_file()))
    table.add_row("HTTP timeout", "OK", f"{settings.http_timeout_seconds:g}s per probe")
    table.add_row("Run timeout", "OK", f"{settings.run_timeout_seconds:g}s per run")
    table.add_row("User-Agent", "OK", settings.user_agent)

    # Connectivity (best-effort)
    ok_http, detail_http = asyncio.run(_check_http(CONNECTIVITY_URL, settings))
    table.add_row("HTTPS connectivity", "OK" if ok_http else "FAIL", detail_http)

    # PDF
    ok_pdf, detail_pdf = _check_pdf()
    table.add_row("WeasyPrint PDF", "OK" if ok_pdf else "FAIL", detail_pdf)

    _console.print(table)

    if not ok_pdf:
        _console.print(
            "\n[yellow]Note:[/yellow] When PDF export fails, `--export-pdf` automatically falls back to HTML."
        )


@app.command()
def configure() -> None:
    """Interactive setup (stores config in the user config .env)."""

    current = AppSettings()
    http_timeout = typer.prompt("Per-probe HTTP timeout (seconds)", default=current.http_timeout_seconds, type=float)
    run_timeout = typer.prompt("Whole-run timeout (seconds)", default=current.run_timeout_seconds, type=float)
    user_agent = typer.prompt("User-Agent", default=current.user_agent).strip()
    log_level = typer.prompt("Log level", default=current.log_level).strip().upper()

    if http_timeout <= 0 or run_timeout <= 0:
        raise typer.BadParameter("timeouts must be positive")
    if log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        raise typer.BadParameter("log level must be DEBUG, INFO, WARNING, ERROR or CRITICAL")

    env_path = write_user_env_vars(
        {
            "UCP_READINESS_HTTP_TIMEOUT_SECONDS": f"{http_timeout:g}",
            "UCP_READINESS_RUN_TIMEOUT_SECONDS": f"{run_timeout:g}",
            "UCP_READINESS_USER_AGENT": user_agent,
            "UCP_READINESS_LOG_LEVEL": log_level,
        }
    )

    _console.print(f"[green]Saved config to:[/green] {env_path}")
