"""
File input/output for the HB report pipeline.

Handles:
- **Choice data** — the semicolon-delimited CSV exported by the survey tool.
- **Estimator output** — ``RBetas.csv`` (one coefficient column per design
  predictor, named ``A1B1, A2B1, ...``) and ``RLH.csv``, both keyed by
  ``ID``.  This is the format HB tools write when every predictor is coded
  as given, so estimates produced elsewhere can be reported too.
- **Report workbook** — one ``.xlsx`` file with a sheet per report table.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pandas as pd

from hbreport.estimation import EstimationResult
from hbreport.exceptions import (
    MalformedInputError,
    MissingEstimatorOutputError,
    SchemaMismatchError,
)

BETAS_FILE = "RBetas.csv"
RLH_FILE = "RLH.csv"

# ------------------------------------------------------------------
# Timestamp helper
# ------------------------------------------------------------------

def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


# ------------------------------------------------------------------
# Choice data
# ------------------------------------------------------------------

def read_choice_csv(path: str | Path, *, delimiter: str = ";") -> pd.DataFrame:
    """
    Load the raw choice rows.

    Rows with more fields than the header are rejected rather than
    silently shifted.
    """
    path = Path(path)
    try:
        return pd.read_csv(path, sep=delimiter)
    except pd.errors.ParserError as exc:
        raise MalformedInputError(f"Cannot parse {path}: {exc}") from exc
    except pd.errors.EmptyDataError as exc:
        raise MalformedInputError(f"{path} is empty") from exc


# ------------------------------------------------------------------
# Estimator output
# ------------------------------------------------------------------

def save_estimation_output(
    result: EstimationResult,
    directory: str | Path,
) -> tuple[Path, Path]:
    """
    Write ``RBetas.csv`` and ``RLH.csv`` to *directory* (created if needed).

    Returns the two paths written.
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    betas = result.coefficients.rename_axis("ID")
    betas.columns = [f"A{k}B1" for k in range(1, betas.shape[1] + 1)]
    betas_path = directory / BETAS_FILE
    betas.reset_index().to_csv(betas_path, index=False)

    rlh = result.rlh.rename("RLH").rename_axis("ID")
    rlh_path = directory / RLH_FILE
    rlh.reset_index().to_csv(rlh_path, index=False)

    return betas_path, rlh_path


def load_estimation_output(
    directory: str | Path,
    predictor_names: list[str],
) -> EstimationResult:
    """
    Read estimator output back and name its coefficients after the design.

    Coefficient columns are the ones starting with ``A``, matched to
    *predictor_names* by position.
    """
    directory = Path(directory)
    betas_path = directory / BETAS_FILE
    rlh_path = directory / RLH_FILE
    missing = [p.name for p in (betas_path, rlh_path) if not p.is_file()]
    if missing:
        raise MissingEstimatorOutputError(
            f"Estimator output {missing} not found in {directory}"
        )

    betas = pd.read_csv(betas_path)
    rlh = pd.read_csv(rlh_path)
    for name, frame, needed in (
        (BETAS_FILE, betas, "ID"),
        (RLH_FILE, rlh, "ID"),
        (RLH_FILE, rlh, "RLH"),
    ):
        if needed not in frame.columns:
            raise SchemaMismatchError(f"{name} has no '{needed}' column")

    coef_cols = [c for c in betas.columns if c.startswith("A")]
    if len(coef_cols) != len(predictor_names):
        raise SchemaMismatchError(
            f"{BETAS_FILE} holds {len(coef_cols)} coefficients per respondent "
            f"but the study schema has {len(predictor_names)} predictors"
        )

    coefficients = betas.set_index("ID")[coef_cols].set_axis(list(predictor_names), axis=1)
    fit = rlh.set_index("ID")["RLH"]

    unmatched = coefficients.index.symmetric_difference(fit.index)
    if len(unmatched):
        raise SchemaMismatchError(
            f"Respondent ids differ between {BETAS_FILE} and {RLH_FILE}: "
            f"{list(unmatched)[:10]}"
        )

    return EstimationResult(coefficients=coefficients, rlh=fit.reindex(coefficients.index))


# ------------------------------------------------------------------
# Report workbook
# ------------------------------------------------------------------

def write_report_workbook(
    sheets: dict[str, pd.DataFrame],
    path: str | Path,
    *,
    overwrite: bool = True,
) -> Path:
    """
    Write every table to its own sheet of an ``.xlsx`` workbook.

    An existing file is replaced when *overwrite* is true; otherwise the
    report goes to a timestamped sibling (``<stem>_<timestamp>.xlsx``).
    Returns the path actually written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.exists():
        if overwrite:
            path.unlink()
        else:
            path = path.with_name(f"{path.stem}_{_timestamp()}{path.suffix}")

    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for name, table in sheets.items():
            table.to_excel(writer, sheet_name=name, index=False)
    return path
