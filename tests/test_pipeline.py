"""End-to-end tests: choice CSV in, workbook out."""

import pandas as pd
import pytest

from cli.report import run_command
from hbreport import (
    MalformedInputError,
    MissingEstimatorOutputError,
    run_estimation,
    run_pipeline,
    run_report,
)
from hbreport.report import SHEET_AVERAGE_IMPORTANCES, SHEET_ZCD_UTILITIES


class TestRunPipeline:

    def test_full_run(self, study_config, choices_csv):
        ctx = run_pipeline(study_config, data_path=choices_csv)

        assert ctx.report_path == study_config.report.output_path
        assert (study_config.report.estimations_dir / "RBetas.csv").is_file()
        assert (study_config.report.estimations_dir / "RLH.csv").is_file()

        book = pd.read_excel(ctx.report_path, sheet_name=None)
        assert len(book) == 5
        assert book[SHEET_AVERAGE_IMPORTANCES]["Average Importances"].sum() == pytest.approx(100.0)
        assert len(book[SHEET_ZCD_UTILITIES]) == 20

    def test_output_override(self, study_config, choices_csv, tmp_path):
        ctx = run_pipeline(study_config, data_path=choices_csv, output_path=tmp_path / "x.xlsx")
        assert ctx.report_path == tmp_path / "x.xlsx"

    def test_malformed_input_writes_nothing(self, study_config, choices, tmp_path):
        choices.loc[0, "Task"] = 5
        path = tmp_path / "bad.csv"
        choices.to_csv(path, sep=";", index=False)
        with pytest.raises(MalformedInputError):
            run_pipeline(study_config, data_path=path)
        assert not study_config.report.estimations_dir.exists()
        assert not study_config.report.output_path.exists()

    def test_no_input_configured(self, study_config):
        with pytest.raises(MalformedInputError, match="No choice data"):
            run_pipeline(study_config)


class TestSplitRuns:

    def test_report_from_saved_estimates(self, study_config, choices_csv):
        est = run_estimation(study_config, data_path=choices_csv)
        assert est.report is None

        ctx = run_report(study_config)
        assert ctx.design is None
        assert ctx.report.n_respondents == 20
        pd.testing.assert_frame_equal(
            ctx.estimation.coefficients.reset_index(drop=True),
            est.estimation.coefficients.reset_index(drop=True),
            check_exact=False,
        )

    def test_report_without_estimates(self, study_config):
        with pytest.raises(MissingEstimatorOutputError):
            run_report(study_config)


class TestCli:

    def test_run_command(self, study_config, choices_csv):
        ctx = run_command(study_config, "run", data_path=choices_csv)
        assert ctx is not None
        assert ctx.report_path.is_file()

    def test_estimate_command_stops_early(self, study_config, choices_csv):
        ctx = run_command(study_config, "estimate", data_path=choices_csv)
        assert ctx.report is None
        assert ctx.estimation_files is not None

    def test_errors_are_reported_not_raised(self, study_config, tmp_path):
        ctx = run_command(study_config, "run", data_path=tmp_path / "missing.csv")
        assert ctx is None
