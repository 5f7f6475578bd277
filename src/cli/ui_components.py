"""CLI UI components (Rich).

Why separate components:
- Keeps command logic apart from visual details.
- Tables and panels are reused by `simulate`, `validate` and `doctor`.
"""

from __future__ import annotations

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.models import (
    Severity,
    SimulationResult,
    StageResult,
    StepStatus,
    ValidationIssue,
    ValidationReport,
)
from core.services.scoring import badge_for

STATUS_STYLES: dict[StepStatus, str] = {
    StepStatus.PASS: "green",
    StepStatus.WARN: "yellow",
    StepStatus.FAIL: "red",
    StepStatus.SKIP: "dim",
}

GRADE_STYLES: dict[str, str] = {"A": "green", "B": "blue", "C": "yellow", "D": "dark_orange", "F": "red"}


def print_banner(console: Console) -> None:
    """Print the welcome banner.

    Skipped in non-interactive modes (`--json`).
    """

    title = Text("UCP Readiness", style="bold cyan")
    subtitle = Text("Profile validation • Agent simulation • Scoring", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def build_stage_table(stage: StageResult) -> Table:
    title = stage.stage
    if stage.disabled:
        title += " (disabled)"
    table = Table(title=title, title_justify="left", expand=True)
    table.add_column("Step", style="cyan", no_wrap=True)
    table.add_column("Status", no_wrap=True)
    table.add_column("Message", style="white")
    table.add_column("Detail", style="dim")
    for step in stage.steps:
        style = STATUS_STYLES[step.status]
        table.add_row(step.name, Text(step.status.value.upper(), style=style), step.message, step.detail or "")
    return table


def build_issues_table(issues: tuple[ValidationIssue, ...] | list[ValidationIssue]) -> Table:
    table = Table(title="Issues", title_justify="left", expand=True)
    table.add_column("Severity", no_wrap=True)
    table.add_column("Code", style="magenta", no_wrap=True)
    table.add_column("Path", style="cyan")
    table.add_column("Message", style="white")
    table.add_column("Hint", style="dim")
    for issue in issues:
        style = "red" if issue.severity is Severity.ERROR else "yellow"
        table.add_row(
            Text(issue.severity.value.upper(), style=style),
            issue.code.value,
            issue.path,
            issue.message,
            issue.hint or "",
        )
    return table


def build_score_panel(*, score: int, grade: str, subtitle: str) -> Panel:
    badge = badge_for(score)
    style = GRADE_STYLES.get(grade, "white")
    body = Text()
    body.append(f"{grade}  ", style=f"bold {style}")
    body.append(f"{score}/100\n", style="bold")
    body.append(badge["label"], style=style)
    return Panel(body, title="Score", subtitle=subtitle, border_style=style)


def build_recommendations_panel(recommendations: tuple[str, ...]) -> Panel:
    body = Text()
    for item in recommendations:
        body.append(f"- {item}\n")
    return Panel(body, title=Text("Recommendations", style="bold yellow"), border_style="yellow")


def render_simulation(console: Console, result: SimulationResult) -> None:
    for stage in result.stages():
        console.print(build_stage_table(stage))
    if result.issues:
        console.print(build_issues_table(result.issues))
    summary = result.summary
    console.print(
        build_score_panel(
            score=result.overall_score,
            grade=result.grade,
            subtitle=(
                f"{summary.passed_steps} passed · {summary.warning_steps} warn · "
                f"{summary.failed_steps} failed · {summary.skipped_steps} skipped"
            ),
        )
    )
    console.print(build_recommendations_panel(result.recommendations))


def render_validation(console: Console, report: ValidationReport) -> None:
    if report.profile_url:
        console.print(f"[dim]Profile:[/dim] {report.profile_url}")
    if report.ucp_version:
        console.print(f"[dim]UCP version:[/dim] {report.ucp_version}")
    console.print(f"[dim]Mode:[/dim] {report.mode}")
    if report.ok:
        console.print("[green]✓ Validation PASSED[/green]")
    else:
        console.print("[red]✗ Validation FAILED[/red]")
    if report.issues:
        console.print(build_issues_table(report.issues))
    else:
        console.print("[green]No issues found![/green]")
    console.print(
        build_score_panel(
            score=report.score,
            grade=report.grade,
            subtitle=f"{report.errors} errors · {report.warnings} warnings",
        )
    )
    console.print(build_recommendations_panel(report.recommendations))
