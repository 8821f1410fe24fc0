"""Exceptions and warnings raised by the HB report pipeline.

Exception Hierarchy:
    HBReportError (ValueError)
    ├── MalformedInputError
    ├── DegenerateRespondentError
    ├── MissingEstimatorOutputError
    ├── SchemaMismatchError
    └── EstimationError

Warning Classes:
    DegenerateRespondentWarning (UserWarning)
    MissingRespondentWarning (UserWarning)
"""

from __future__ import annotations

from typing import Any, Sequence


class HBReportError(ValueError):
    """Base exception for all pipeline errors.

    Inherits from ValueError so callers that already catch ValueError
    keep working.
    """

    pass


class MalformedInputError(HBReportError):
    """Raised when the choice CSV cannot be turned into a valid design.

    Common causes:
        - Wrong column count or a missing required column
        - Task numbering that does not reset to 1 for each respondent
        - A task with zero or several chosen alternatives
        - A level code outside 1..L for its attribute
    """

    pass


class DegenerateRespondentError(HBReportError):
    """Raised when respondents have zero total attribute range.

    Importances and zero-centered diffs both divide by the summed
    attribute ranges, so these respondents have no defined result.
    """

    def __init__(self, message: str, respondents: Sequence[Any] = ()) -> None:
        super().__init__(message)
        self.respondents = list(respondents)


class MissingEstimatorOutputError(HBReportError):
    """Raised when RBetas.csv or RLH.csv is not in the estimations directory."""

    pass


class SchemaMismatchError(HBReportError):
    """Raised when estimator output does not line up with the study schema.

    Common causes:
        - Coefficient count differs from the number of design predictors
        - Respondent ids in the coefficient and fit files disagree
        - Per-predictor coding list has the wrong length
    """

    pass


class EstimationError(HBReportError):
    """Raised when the estimation backend cannot run on the given design."""

    pass


class DegenerateRespondentWarning(UserWarning):
    """Respondents with zero total attribute range were left out of the report."""

    pass


class MissingRespondentWarning(UserWarning):
    """Respondents in the choice data have no estimator output and were skipped."""

    pass
