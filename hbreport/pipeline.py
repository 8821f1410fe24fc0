"""
End-to-end HB report run.

Each run works on its own :class:`RunContext`; nothing is carried over
between runs.  The stages are:

    choice CSV -> design matrix -> estimator -> RBetas.csv / RLH.csv
               -> raw utilities (reference levels restored) -> report -> .xlsx

``run_pipeline`` runs every stage; ``run_estimation`` stops after the
estimator files are written and ``run_report`` starts from them.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import pandas as pd

from hbreport.analysis import reconstruct_utilities
from hbreport.design import DesignMatrix, build_design_matrix
from hbreport.estimation import (
    EstimationResult,
    Estimator,
    GibbsHBEstimator,
    PrecomputedEstimator,
)
from hbreport.exceptions import MalformedInputError
from hbreport.io import (
    load_estimation_output,
    read_choice_csv,
    save_estimation_output,
    write_report_workbook,
)
from hbreport.models import StudyConfig
from hbreport.report import HBReport, build_report


@dataclass
class RunContext:
    """Everything produced during one run."""

    config: StudyConfig
    design: DesignMatrix | None = None
    estimation: EstimationResult | None = None
    estimation_files: tuple[Path, Path] | None = None
    raw_utilities: pd.DataFrame | None = None
    report: HBReport | None = None
    report_path: Path | None = None


# ------------------------------------------------------------------
# Stages
# ------------------------------------------------------------------

def _resolve_input(config: StudyConfig, data_path: str | Path | None) -> Path:
    path = data_path if data_path is not None else config.input.path
    if path is None:
        raise MalformedInputError(
            "No choice data given: set input.path in the study config or pass a CSV path"
        )
    return Path(path)


def load_design(ctx: RunContext, data_path: str | Path | None = None) -> DesignMatrix:
    """Read and encode the choice CSV into ``ctx.design``."""
    path = _resolve_input(ctx.config, data_path)
    data = read_choice_csv(path, delimiter=ctx.config.input.delimiter)
    ctx.design = build_design_matrix(data, ctx.config)
    return ctx.design


def estimate(ctx: RunContext, estimator: Estimator | None = None) -> EstimationResult:
    """Run *estimator* (Gibbs HB by default) and save its output files."""
    if ctx.design is None:
        raise RuntimeError("load_design() must run before estimate()")
    estimator = estimator if estimator is not None else GibbsHBEstimator()
    ctx.estimation = estimator.estimate(ctx.design, ctx.config.mcmc)
    ctx.estimation_files = save_estimation_output(
        ctx.estimation, ctx.config.report.estimations_dir,
    )
    return ctx.estimation


def load_estimates(ctx: RunContext) -> EstimationResult:
    """
    Read existing estimator output from the estimations directory.

    When a design is loaded, respondents without estimates are skipped
    with a warning.
    """
    directory = ctx.config.report.estimations_dir
    if ctx.design is not None:
        ctx.estimation = PrecomputedEstimator(directory).estimate(
            ctx.design, ctx.config.mcmc,
        )
    else:
        ctx.estimation = load_estimation_output(directory, ctx.config.predictor_names())
    return ctx.estimation


def assemble_report(ctx: RunContext) -> HBReport:
    """Restore reference levels and build the five report tables."""
    if ctx.estimation is None:
        raise RuntimeError("estimates must be available before building the report")
    ctx.raw_utilities = reconstruct_utilities(ctx.estimation.coefficients, ctx.config)
    ctx.report = build_report(ctx.raw_utilities, ctx.estimation.rlh, ctx.config)
    return ctx.report


def write_report(ctx: RunContext, output_path: str | Path | None = None) -> Path:
    if ctx.report is None:
        raise RuntimeError("assemble_report() must run before write_report()")
    path = output_path if output_path is not None else ctx.config.report.output_path
    ctx.report_path = write_report_workbook(
        ctx.report.sheets(), path, overwrite=ctx.config.report.overwrite,
    )
    return ctx.report_path


# ------------------------------------------------------------------
# Entry points
# ------------------------------------------------------------------

def run_estimation(
    config: StudyConfig,
    *,
    data_path: str | Path | None = None,
    estimator: Estimator | None = None,
) -> RunContext:
    """Encode the choice data and estimate; stops after writing RBetas/RLH."""
    ctx = RunContext(config=config)
    load_design(ctx, data_path)
    estimate(ctx, estimator)
    return ctx


def run_report(
    config: StudyConfig,
    *,
    data_path: str | Path | None = None,
    output_path: str | Path | None = None,
) -> RunContext:
    """
    Build the workbook from estimator output already on disk.

    The choice CSV is optional here; when given (or configured) it is
    validated and used to check respondent coverage.
    """
    ctx = RunContext(config=config)
    if data_path is not None or config.input.path is not None:
        load_design(ctx, data_path)
    load_estimates(ctx)
    assemble_report(ctx)
    write_report(ctx, output_path)
    return ctx


def run_pipeline(
    config: StudyConfig,
    *,
    data_path: str | Path | None = None,
    output_path: str | Path | None = None,
    estimator: Estimator | None = None,
) -> RunContext:
    """Full run: choice CSV in, report workbook out."""
    ctx = RunContext(config=config)
    load_design(ctx, data_path)
    estimate(ctx, estimator)
    assemble_report(ctx)
    write_report(ctx, output_path)
    return ctx
