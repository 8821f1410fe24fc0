"""
Terminal frontend for the HB report pipeline.

Runs the pipeline stages behind rich status spinners, prints any data
quality warnings raised along the way, and renders the two summary tables
(average importances and average zero-centered diffs).

This module is the **only** place that depends on terminal I/O; the
``hbreport`` package itself never prints.
"""

from __future__ import annotations

import warnings
from pathlib import Path
from typing import Callable

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from hbreport.exceptions import HBReportError
from hbreport.models import StudyConfig
from hbreport.pipeline import (
    RunContext,
    assemble_report,
    estimate,
    load_design,
    load_estimates,
    write_report,
)
from hbreport.report import HBReport

console = Console()

# =====================================================================
# Summary rendering
# =====================================================================

def _display_importances(report: HBReport) -> None:
    """Attribute importances as an ASCII bar chart (mean ± SD)."""
    console.print()
    console.print("[bold underline]Average Importances (mean ± SD)[/bold underline]")
    console.print()

    rows = report.average_importances
    max_bar = 40
    max_imp = max(rows["Average Importances"].max(), 1e-12)
    max_name = max((len(v) for v in rows["Variable"]), default=10)

    ordered = rows.sort_values("Average Importances", ascending=False)
    for name, mean, sd in ordered.itertuples(index=False):
        bar = "█" * int((mean / max_imp) * max_bar)
        console.print(f"  {name.ljust(max_name)}  [cyan]{bar}[/cyan] {mean:5.1f}% ± {sd:4.1f}")


def _display_zcd(report: HBReport, config: StudyConfig) -> None:
    """One table per attribute with mean and SD zero-centered diffs."""
    console.print()
    console.print("[bold underline]Average Utilities, Zero-Centered Diffs (mean ± SD)[/bold underline]")
    console.print()

    summary = report.average_zcd_utilities.set_index("Attribute_Level")
    for attr in config.attributes:
        table = Table(
            title=attr.name, box=box.SIMPLE, show_header=True,
            header_style="bold", padding=(0, 1),
        )
        table.add_column("Level", min_width=16)
        table.add_column("Mean Utility", justify="right", min_width=12)
        table.add_column("SD", justify="right", min_width=8)

        for level, col in zip(attr.levels, attr.level_columns()):
            mean, sd = summary.loc[f"{col}_zcdiffs", ["Average Utilities", "Standard Deviation"]]
            style = "green" if mean > 0 else ("red" if mean < 0 else "")
            table.add_row(level, f"{mean:+.2f}", f"{sd:.2f}", style=style)
        console.print(table)


def display_report(report: HBReport, config: StudyConfig) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold]HB Report[/bold] — {config.name}\n"
            f"N = {report.n_respondents} respondents"
            + (
                f" ([yellow]{len(report.excluded_respondents)} excluded[/yellow])"
                if report.excluded_respondents else ""
            ),
            border_style="bright_blue",
        )
    )
    _display_importances(report)
    _display_zcd(report, config)


# =====================================================================
# Stage runner
# =====================================================================

def _run_stage(message: str, stage: Callable[[], object]) -> None:
    """Run one stage under a spinner and echo the warnings it raised."""
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        with console.status(f"[bold cyan]{message}[/bold cyan]"):
            stage()
    for w in caught:
        console.print(f"  [yellow]Warning: {w.message}[/yellow]")


def run_command(
    config: StudyConfig,
    command: str,
    *,
    data_path: Path | None = None,
    output_path: Path | None = None,
) -> RunContext | None:
    """
    Execute ``run``, ``estimate`` or ``report`` and print the outcome.

    Returns the run context, or ``None`` when the run was aborted.
    """
    ctx = RunContext(config=config)
    mcmc = config.mcmc

    console.print(
        Panel(
            f"[bold]{config.name}[/bold]\n{config.description}".rstrip(),
            border_style="bright_blue",
        )
    )

    try:
        if command in ("run", "estimate") or data_path is not None or config.input.path is not None:
            _run_stage("Reading choice data...", lambda: load_design(ctx, data_path))
            console.print(
                f"  [dim]{len(ctx.design.respondents)} respondents, "
                f"{ctx.design.n_predictors} predictors[/dim]"
            )

        if command in ("run", "estimate"):
            _run_stage(
                f"Running HB estimation ({mcmc.total_iterations} iterations, "
                f"{mcmc.retained_iterations} retained)...",
                lambda: estimate(ctx),
            )
            betas_path, rlh_path = ctx.estimation_files
            console.print(f"[green]Estimates saved → {betas_path}, {rlh_path}[/green]")
            if command == "estimate":
                return ctx
        else:
            _run_stage("Loading estimates...", lambda: load_estimates(ctx))

        _run_stage("Building report...", lambda: assemble_report(ctx))
        _run_stage("Writing workbook...", lambda: write_report(ctx, output_path))
    except (HBReportError, FileNotFoundError) as exc:
        console.print(f"[red]{type(exc).__name__}: {exc}[/red]")
        return None

    display_report(ctx.report, config)
    console.print(f"\n[bold green]Report saved → {ctx.report_path}[/bold green]\n")
    return ctx
