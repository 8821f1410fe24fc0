"""
Design-matrix construction for HB estimation.

Responsibilities:
- Validate the long-format choice data (one row per alternative shown) so
  that malformed input aborts the run before any estimation happens.
- Turn each attribute's level codes into dummy- or effects-coded predictors,
  leaving out the configured reference level.
- Lay the result out the way the estimator expects: respondent, task,
  alternative, predictors, and a choice column that holds the chosen
  alternative number on the first row of every task and 0 elsewhere.
"""

# Import modules
from __future__ import annotations
from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd

from hbreport.exceptions import MalformedInputError
from hbreport.models import CodingScheme, StudyConfig

RESPONDENT = "respondent"
TASK = "task"
ALTERNATIVE = "alt"
CHOICE = "choice"

# ------------------------------------------------------------------
# Result container
# ------------------------------------------------------------------

@dataclass
class DesignMatrix:
    """Long-format numeric design consumed by an estimator."""

    frame: pd.DataFrame
    predictor_names: list[str]

    @property
    def respondents(self) -> list[Any]:
        """Respondent ids in design order."""
        return list(pd.unique(self.frame[RESPONDENT]))

    @property
    def n_predictors(self) -> int:
        return len(self.predictor_names)

    def predictors(self) -> pd.DataFrame:
        return self.frame[self.predictor_names]


# ------------------------------------------------------------------
# Validation
# ------------------------------------------------------------------

def _describe_rows(index: pd.Index, limit: int = 5) -> str:
    rows = [str(i) for i in list(index)[:limit]]
    more = f" (+{len(index) - limit} more)" if len(index) > limit else ""
    return ", ".join(rows) + more


def _as_integer_column(df: pd.DataFrame, col: str) -> pd.Series:
    values = pd.to_numeric(df[col], errors="coerce")
    bad = values.isna() | (values != np.floor(values))
    if bad.any():
        raise MalformedInputError(
            f"Column '{col}' must hold whole numbers; bad values in rows "
            f"{_describe_rows(df.index[bad])}"
        )
    return values.astype(np.int64)


def validate_choices(data: pd.DataFrame, config: StudyConfig) -> pd.DataFrame:
    """
    Check the raw choice rows against the study schema.

    Returns a copy restricted to the required columns with integer codes.
    Raises :class:`MalformedInputError` on the first problem found.
    """
    cols = config.input.columns
    attr_names = [a.name for a in config.attributes]
    required = [cols.respondent, cols.task, cols.alternative, *attr_names, cols.chosen]

    missing = [c for c in required if c not in data.columns]
    if missing:
        raise MalformedInputError(
            f"Input is missing required column(s) {missing}; found {list(data.columns)}"
        )
    if data.empty:
        raise MalformedInputError("Input contains no choice rows")

    df = data[required].copy()
    na_rows = df.isna().any(axis=1)
    if na_rows.any():
        raise MalformedInputError(
            f"Missing values in rows {_describe_rows(df.index[na_rows])}"
        )

    for col in [cols.task, cols.alternative, *attr_names, cols.chosen]:
        df[col] = _as_integer_column(df, col)

    not_binary = ~df[cols.chosen].isin([0, 1])
    if not_binary.any():
        raise MalformedInputError(
            f"Column '{cols.chosen}' must be 0 or 1; bad values in rows "
            f"{_describe_rows(df.index[not_binary])}"
        )

    for attr in config.attributes:
        codes = df[attr.name]
        out_of_range = (codes < 1) | (codes > attr.n_levels)
        if out_of_range.any():
            raise MalformedInputError(
                f"Level codes of '{attr.name}' must lie in 1..{attr.n_levels}; "
                f"bad values in rows {_describe_rows(df.index[out_of_range])}"
            )

    # Task numbers restart at 1 for every respondent and run without gaps
    for resp_id, tasks in df.groupby(cols.respondent, sort=False)[cols.task]:
        if tasks.iloc[0] != 1:
            raise MalformedInputError(
                f"Respondent {resp_id}: task numbering must reset to 1, "
                f"starts at {tasks.iloc[0]}"
            )
        seen = sorted(set(tasks))
        if seen != list(range(1, len(seen) + 1)):
            raise MalformedInputError(
                f"Respondent {resp_id}: task numbers {seen} are not contiguous from 1"
            )

    for (resp_id, task), group in df.groupby([cols.respondent, cols.task], sort=False):
        alts = sorted(group[cols.alternative])
        if alts != list(range(1, len(alts) + 1)):
            raise MalformedInputError(
                f"Respondent {resp_id}, task {task}: alternatives {alts} "
                f"must be numbered 1..{len(alts)} without repeats"
            )
        n_chosen = int(group[cols.chosen].sum())
        if n_chosen != 1:
            raise MalformedInputError(
                f"Respondent {resp_id}, task {task}: expected exactly one chosen "
                f"alternative, found {n_chosen}"
            )

    return df


# ------------------------------------------------------------------
# Encoding
# ------------------------------------------------------------------

def encode_levels(codes: pd.DataFrame, config: StudyConfig) -> pd.DataFrame:
    """
    One predictor column per non-reference level.

    Dummy coding marks the row's level with 1.  Effects coding additionally
    marks rows at the reference level with -1 in every predictor of that
    attribute, so the omitted coefficient is minus the sum of the others.
    """
    columns: dict[str, np.ndarray] = {}
    for attr in config.attributes:
        level_idx = codes[attr.name].to_numpy(dtype=np.int64) - 1
        is_reference = (
            level_idx == attr.reference_level
            if attr.reference_level is not None
            else np.zeros(len(level_idx), dtype=bool)
        )
        for i in attr.estimated_levels():
            col = (level_idx == i).astype(np.float64)
            if config.coding == CodingScheme.EFFECTS:
                col[is_reference] = -1.0
            columns[f"{attr.name}_{attr.levels[i]}"] = col
    return pd.DataFrame(columns, index=codes.index)


def _choice_column(df: pd.DataFrame, config: StudyConfig) -> np.ndarray:
    """Chosen alternative number on each task's alternative-1 row, else 0."""
    cols = config.input.columns
    chosen_alt = (
        df[df[cols.chosen] == 1]
        .set_index([cols.respondent, cols.task])[cols.alternative]
    )
    keys = pd.MultiIndex.from_frame(df[[cols.respondent, cols.task]])
    per_row = chosen_alt.reindex(keys).to_numpy()
    return np.where(df[cols.alternative].to_numpy() == 1, per_row, 0).astype(np.int64)


def build_design_matrix(data: pd.DataFrame, config: StudyConfig) -> DesignMatrix:
    """
    Validate *data* and build the estimator's long-format design matrix.

    Rows are ordered by respondent (first appearance), task, alternative.
    """
    cols = config.input.columns
    df = validate_choices(data, config)

    order = {rid: i for i, rid in enumerate(pd.unique(df[cols.respondent]))}
    df = (
        df.assign(_order=df[cols.respondent].map(order))
        .sort_values(["_order", cols.task, cols.alternative], kind="stable")
        .drop(columns="_order")
        .reset_index(drop=True)
    )

    predictors = encode_levels(df, config)
    frame = pd.concat(
        [
            pd.DataFrame({
                RESPONDENT: df[cols.respondent].to_numpy(),
                TASK: df[cols.task].to_numpy(),
                ALTERNATIVE: df[cols.alternative].to_numpy(),
            }),
            predictors,
        ],
        axis=1,
    )
    frame[CHOICE] = _choice_column(df, config)
    return DesignMatrix(frame=frame, predictor_names=list(predictors.columns))
