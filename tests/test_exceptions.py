"""Tests for the exception hierarchy."""

import pytest

from hbreport import (
    DegenerateRespondentError,
    DegenerateRespondentWarning,
    EstimationError,
    HBReportError,
    MalformedInputError,
    MissingEstimatorOutputError,
    MissingRespondentWarning,
    SchemaMismatchError,
)


class TestExceptionHierarchy:

    def test_base_is_value_error(self):
        assert issubclass(HBReportError, ValueError)

    @pytest.mark.parametrize("exc", [
        MalformedInputError,
        DegenerateRespondentError,
        MissingEstimatorOutputError,
        SchemaMismatchError,
        EstimationError,
    ])
    def test_errors_share_base(self, exc):
        assert issubclass(exc, HBReportError)

    def test_warnings_are_user_warnings(self):
        assert issubclass(DegenerateRespondentWarning, UserWarning)
        assert issubclass(MissingRespondentWarning, UserWarning)

    def test_degenerate_error_carries_ids(self):
        exc = DegenerateRespondentError("flat", respondents=("a", "b"))
        assert exc.respondents == ["a", "b"]
        assert str(exc) == "flat"
