"""
hbreport - Hierarchical Bayes utilities report for choice-based conjoint data

Estimates individual part-worth utilities from CBC choices and turns them
into the standard analyst workbook: raw utilities, zero-centered diffs,
attribute importances, and their averages.
"""

from hbreport.models import (
    AttributeSchema,
    CodingScheme,
    DegeneratePolicy,
    McmcSettings,
    StudyConfig,
)
from hbreport.exceptions import (
    DegenerateRespondentError,
    DegenerateRespondentWarning,
    EstimationError,
    HBReportError,
    MalformedInputError,
    MissingEstimatorOutputError,
    MissingRespondentWarning,
    SchemaMismatchError,
)
from hbreport.design import DesignMatrix, build_design_matrix
from hbreport.estimation import (
    EstimationResult,
    Estimator,
    GibbsHBEstimator,
    PrecomputedEstimator,
)
from hbreport.analysis import (
    compute_importances,
    reconstruct_utilities,
    summarize,
    zero_centered_diffs,
)
from hbreport.report import HBReport, build_report
from hbreport.pipeline import RunContext, run_estimation, run_pipeline, run_report

__all__ = [
    "AttributeSchema",
    "CodingScheme",
    "DegeneratePolicy",
    "McmcSettings",
    "StudyConfig",
    "HBReportError",
    "MalformedInputError",
    "DegenerateRespondentError",
    "MissingEstimatorOutputError",
    "SchemaMismatchError",
    "EstimationError",
    "DegenerateRespondentWarning",
    "MissingRespondentWarning",
    "DesignMatrix",
    "build_design_matrix",
    "EstimationResult",
    "Estimator",
    "GibbsHBEstimator",
    "PrecomputedEstimator",
    "reconstruct_utilities",
    "compute_importances",
    "zero_centered_diffs",
    "summarize",
    "HBReport",
    "build_report",
    "RunContext",
    "run_pipeline",
    "run_estimation",
    "run_report",
]
