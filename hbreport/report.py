"""
Assembly of the five-sheet HB report.

The layout mirrors the workbook analysts get from commercial HB software:

- ``Summ - Average Importances``   — mean / SD importance per attribute
- ``Summ - Avg. Util. (ZC Diffs)`` — mean / SD zero-centered diff per level
- ``Individual Utilities (Raw)``   — raw utilities with RLH per respondent
- ``Individual Util.s (ZC Diffs)`` — zero-centered diffs per respondent
- ``Individual Importances``       — importances per respondent

Column order and naming are fixed; downstream review sheets depend on them.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd

from hbreport.analysis import (
    compute_importances,
    degenerate_mask,
    summarize,
    zero_centered_diffs,
)
from hbreport.exceptions import (
    DegenerateRespondentError,
    DegenerateRespondentWarning,
    SchemaMismatchError,
)
from hbreport.models import DegeneratePolicy, StudyConfig

SHEET_AVERAGE_IMPORTANCES = "Summ - Average Importances"
SHEET_AVERAGE_ZCD = "Summ - Avg. Util. (ZC Diffs)"
SHEET_RAW_UTILITIES = "Individual Utilities (Raw)"
SHEET_ZCD_UTILITIES = "Individual Util.s (ZC Diffs)"
SHEET_IMPORTANCES = "Individual Importances"

ZCD_SUFFIX = "_zcdiffs"
IMPORTANCE_SUFFIX = "_importance"


@dataclass
class HBReport:
    """The five report tables plus the respondents left out of them."""

    average_importances: pd.DataFrame
    average_zcd_utilities: pd.DataFrame
    raw_utilities: pd.DataFrame
    zcd_utilities: pd.DataFrame
    importances: pd.DataFrame
    excluded_respondents: list[Any] = field(default_factory=list)

    def sheets(self) -> dict[str, pd.DataFrame]:
        """Sheet name -> table, in workbook order."""
        return {
            SHEET_AVERAGE_IMPORTANCES: self.average_importances,
            SHEET_AVERAGE_ZCD: self.average_zcd_utilities,
            SHEET_RAW_UTILITIES: self.raw_utilities,
            SHEET_ZCD_UTILITIES: self.zcd_utilities,
            SHEET_IMPORTANCES: self.importances,
        }

    @property
    def n_respondents(self) -> int:
        """Respondents contributing to the summaries."""
        return len(self.importances)


def _with_respondent(values: np.ndarray, columns: list[str], respondents: list[Any]) -> pd.DataFrame:
    table = pd.DataFrame(values, columns=columns)
    table.insert(0, "Respondent", respondents)
    return table


def build_report(
    raw_utilities: pd.DataFrame,
    rlh: pd.Series,
    config: StudyConfig,
) -> HBReport:
    """
    Compute importances and zero-centered diffs and lay out every sheet.

    Parameters
    ----------
    raw_utilities : one row per respondent (index = respondent id), one
        column per attribute level, reference levels already reconstructed
    rlh : root likelihood per respondent id
    config : study configuration (schema and degenerate-respondent policy)
    """
    level_cols = config.level_columns()
    if list(raw_utilities.columns) != level_cols:
        raise SchemaMismatchError(
            f"Raw utility columns {list(raw_utilities.columns)} do not match "
            f"the study levels {level_cols}"
        )
    missing_fit = raw_utilities.index.difference(rlh.index)
    if len(missing_fit):
        raise SchemaMismatchError(
            f"No RLH for respondent(s) {list(missing_fit)[:10]}"
        )

    attributes = config.attributes
    respondents = list(raw_utilities.index)
    fit = rlh.reindex(raw_utilities.index).to_numpy(dtype=float)

    # ── Individual Utilities (Raw) ──────────────────────────────────
    raw_sheet = raw_utilities.reset_index(drop=True)
    raw_sheet.insert(0, "Num_Parameters", config.n_parameters)
    raw_sheet.insert(0, "RLH", fit)
    raw_sheet.insert(0, "Respondent", respondents)

    # ── Degenerate respondents ──────────────────────────────────────
    values = raw_utilities.to_numpy(dtype=float)
    degenerate = degenerate_mask(values, attributes)
    excluded = [rid for rid, bad in zip(respondents, degenerate) if bad]
    if excluded:
        message = (
            f"{len(excluded)} respondent(s) have zero total attribute range: "
            f"{excluded[:10]}"
        )
        if config.report.degenerate_policy == DegeneratePolicy.ERROR:
            raise DegenerateRespondentError(message, respondents=excluded)
        warnings.warn(
            message + "; they are excluded from importances, zero-centered "
            "diffs, and averages",
            DegenerateRespondentWarning,
            stacklevel=2,
        )
    kept = ~degenerate
    if not kept.any():
        raise DegenerateRespondentError(
            "Every respondent has zero total attribute range; nothing to report",
            respondents=excluded,
        )
    kept_ids = [rid for rid, ok in zip(respondents, kept) if ok]
    kept_values = values[kept]

    # ── Individual Importances ──────────────────────────────────────
    importance_cols = [f"{a.name}{IMPORTANCE_SUFFIX}" for a in attributes]
    importances = compute_importances(kept_values, attributes, respondents=kept_ids)
    importance_sheet = _with_respondent(importances, importance_cols, kept_ids)

    # ── Individual Util.s (ZC Diffs) ────────────────────────────────
    zcd_cols = [f"{col}{ZCD_SUFFIX}" for col in level_cols]
    zcd, _ = zero_centered_diffs(kept_values, attributes, respondents=kept_ids)
    zcd_sheet = _with_respondent(zcd, zcd_cols, kept_ids)
    zcd_sheet.insert(1, "RLH", fit[kept])

    # ── Summaries ───────────────────────────────────────────────────
    imp_summary = summarize(importance_sheet[importance_cols])
    average_importances = pd.DataFrame({
        "Variable": [a.name for a in attributes],
        "Average Importances": imp_summary["mean"].to_numpy(),
        "Standard Deviation": imp_summary["sd"].to_numpy(),
    })

    zcd_summary = summarize(zcd_sheet[zcd_cols])
    average_zcd = pd.DataFrame({
        "Attribute_Level": zcd_cols,
        "Average Utilities": zcd_summary["mean"].to_numpy(),
        "Standard Deviation": zcd_summary["sd"].to_numpy(),
    })

    return HBReport(
        average_importances=average_importances,
        average_zcd_utilities=average_zcd,
        raw_utilities=raw_sheet,
        zcd_utilities=zcd_sheet,
        importances=importance_sheet,
        excluded_respondents=excluded,
    )
