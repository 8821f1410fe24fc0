"""
Post-processing of individual HB utilities.

Everything here is a pure function of the raw per-respondent utilities:

1. **Reference-level reconstruction** — put back the level left out of the
   design matrix (0 under dummy coding, minus the sum of the other levels
   under effects coding), giving one utility per attribute level.
2. **Importances** — the range (max - min) of each attribute's level
   utilities, normalised so a respondent's importances sum to 100.
3. **Zero-centered diffs** — utilities mean-centred within each attribute
   and scaled so that the average attribute range is 100 utility points:

       adjusted   = raw - mean(attribute levels)
       multiplier = 100 * n_attributes / sum(attribute ranges of adjusted)
       zcd        = adjusted * multiplier

Respondents whose attribute ranges sum to 0 have no defined importances or
zero-centered diffs; both computations raise
:class:`DegenerateRespondentError` naming them instead of producing NaN.
"""

# Import modules
from __future__ import annotations
from typing import Any, Sequence

import numpy as np
import pandas as pd
from numpy.typing import ArrayLike, NDArray

from hbreport.exceptions import DegenerateRespondentError, SchemaMismatchError
from hbreport.models import AttributeSchema, CodingScheme, StudyConfig

# =====================================================================
# Schema helpers
# =====================================================================

def attribute_blocks(attributes: Sequence[AttributeSchema]) -> list[slice]:
    """Column slice of each attribute inside a full level-utility row."""
    blocks: list[slice] = []
    col = 0
    for attr in attributes:
        blocks.append(slice(col, col + attr.n_levels))
        col += attr.n_levels
    return blocks


def _as_matrix(
    utilities: ArrayLike,
    attributes: Sequence[AttributeSchema],
) -> tuple[NDArray[np.float64], bool]:
    values = np.asarray(utilities, dtype=float)
    single = values.ndim == 1
    values = np.atleast_2d(values)
    expected = sum(a.n_levels for a in attributes)
    if values.shape[1] != expected:
        raise SchemaMismatchError(
            f"Utility rows have {values.shape[1]} values but the schema "
            f"defines {expected} attribute levels"
        )
    return values, single


# =====================================================================
# Reference-level reconstruction
# =====================================================================

def reconstruct_utilities(
    coefficients: pd.DataFrame,
    config: StudyConfig,
) -> pd.DataFrame:
    """
    Expand estimated coefficients to one column per attribute level.

    *coefficients* has one column per design predictor, in design order.
    The result has ``config.level_columns()`` as columns and the same index.
    """
    predictors = config.predictor_names()
    if list(coefficients.columns) != predictors:
        raise SchemaMismatchError(
            f"Estimated coefficients {list(coefficients.columns)} do not match "
            f"the design predictors {predictors}"
        )

    columns: dict[str, NDArray[np.float64]] = {}
    for attr in config.attributes:
        estimated = {
            i: coefficients[f"{attr.name}_{attr.levels[i]}"].to_numpy(dtype=float)
            for i in attr.estimated_levels()
        }
        for i, col in enumerate(attr.level_columns()):
            if i in estimated:
                columns[col] = estimated[i]
            elif config.coding == CodingScheme.EFFECTS:
                columns[col] = -np.sum(list(estimated.values()), axis=0)
            else:
                columns[col] = np.zeros(len(coefficients))
    return pd.DataFrame(columns, index=coefficients.index)


# =====================================================================
# Ranges and degenerate respondents
# =====================================================================

def attribute_ranges(
    utilities: ArrayLike,
    attributes: Sequence[AttributeSchema],
) -> NDArray[np.float64]:
    """max - min of each attribute's level utilities, one column per attribute."""
    values, single = _as_matrix(utilities, attributes)
    ranges = np.column_stack([
        values[:, block].max(axis=1) - values[:, block].min(axis=1)
        for block in attribute_blocks(attributes)
    ])
    return ranges[0] if single else ranges


def degenerate_mask(
    utilities: ArrayLike,
    attributes: Sequence[AttributeSchema],
) -> NDArray[np.bool_]:
    """True for respondents whose attribute ranges sum to zero (or are not finite)."""
    ranges = np.atleast_2d(attribute_ranges(utilities, attributes))
    total = ranges.sum(axis=1)
    return ~(np.isfinite(total) & (total > 0))


def _raise_if_degenerate(
    total: NDArray[np.float64],
    respondents: Sequence[Any] | None,
    what: str,
) -> None:
    bad = ~(np.isfinite(total) & (total > 0))
    if not bad.any():
        return
    positions = np.flatnonzero(bad)
    ids = [respondents[i] for i in positions] if respondents is not None else list(positions)
    raise DegenerateRespondentError(
        f"Cannot compute {what}: total attribute range is zero for "
        f"respondent(s) {ids[:10]}" + (" ..." if len(ids) > 10 else ""),
        respondents=ids,
    )


# =====================================================================
# Importances
# =====================================================================

def compute_importances(
    utilities: ArrayLike,
    attributes: Sequence[AttributeSchema],
    *,
    respondents: Sequence[Any] | None = None,
) -> NDArray[np.float64]:
    """
    Relative attribute importance per respondent, in percent.

    Importance of an attribute = range of its level utilities divided by
    the sum of all attribute ranges, times 100.  An attribute whose levels
    are all equal gets importance 0.
    """
    ranges = attribute_ranges(utilities, attributes)
    single = ranges.ndim == 1
    ranges = np.atleast_2d(ranges)
    total = ranges.sum(axis=1)
    _raise_if_degenerate(total, respondents, "importances")

    importances = 100.0 * ranges / total[:, np.newaxis]
    return importances[0] if single else importances


# =====================================================================
# Zero-centered diffs
# =====================================================================

def zero_centered_diffs(
    utilities: ArrayLike,
    attributes: Sequence[AttributeSchema],
    *,
    respondents: Sequence[Any] | None = None,
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """
    Rescale utilities to zero-centered diffs.

    Returns ``(zcd, multipliers)``.  Within each attribute the zcd values
    average 0, and per respondent the attribute ranges average 100.
    """
    values, single = _as_matrix(utilities, attributes)
    adjusted = values.copy()

    # Step 1: mean-centre within each attribute
    for block in attribute_blocks(attributes):
        adjusted[:, block] -= adjusted[:, block].mean(axis=1, keepdims=True)

    # Step 2: sum the best-worst differences across attributes
    total_range = attribute_ranges(adjusted, attributes).sum(axis=1)
    _raise_if_degenerate(total_range, respondents, "zero-centered diffs")

    # Step 3: one multiplier per respondent
    multipliers = 100.0 * len(attributes) / total_range

    # Step 4: rescale
    zcd = adjusted * multipliers[:, np.newaxis]
    if single:
        return zcd[0], multipliers
    return zcd, multipliers


# =====================================================================
# Summaries
# =====================================================================

def summarize(table: pd.DataFrame) -> pd.DataFrame:
    """
    Column-wise mean and sample standard deviation (N-1 denominator).

    Every row counts equally.  With a single row the SD is 0.0.
    Returns a frame indexed by the input's column names with columns
    ``mean`` and ``sd``.
    """
    n = len(table)
    means = table.mean(axis=0)
    sds = table.std(axis=0, ddof=1) if n > 1 else pd.Series(0.0, index=table.columns)
    return pd.DataFrame({"mean": means, "sd": sds})
