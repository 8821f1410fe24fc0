"""Tests for reference-level reconstruction, importances and zero-centered diffs."""

import numpy as np
import pandas as pd
import pytest

from hbreport import (
    CodingScheme,
    DegenerateRespondentError,
    SchemaMismatchError,
    compute_importances,
    reconstruct_utilities,
    summarize,
    zero_centered_diffs,
)
from hbreport.analysis import attribute_blocks, attribute_ranges, degenerate_mask


class TestImportances:
    """Range-normalised attribute importances."""

    def test_worked_example(self, study_config):
        imp = compute_importances([-1, 0, 1, -2, 0, 2], study_config.attributes)
        np.testing.assert_allclose(imp, [100 * 2 / 6, 100 * 4 / 6])

    def test_rows_sum_to_100(self, study_config, raw_utilities):
        imp = compute_importances(raw_utilities.to_numpy(), study_config.attributes)
        assert imp.shape == (3, 2)
        np.testing.assert_allclose(imp.sum(axis=1), 100.0, atol=1e-6)
        assert np.all(imp >= 0)

    def test_flat_attribute_gets_zero(self, study_config, raw_utilities):
        imp = compute_importances(raw_utilities.to_numpy(), study_config.attributes)
        assert imp[2, 1] == 0.0
        assert imp[2, 0] == pytest.approx(100.0)

    def test_degenerate_respondent_is_named(self, study_config):
        utilities = np.array([
            [-1.0, 0.0, 1.0, 0.0, 0.0, 0.0],
            [0.0, 0.0, 0.0, 0.0, 0.0, 0.0],
        ])
        with pytest.raises(DegenerateRespondentError) as excinfo:
            compute_importances(utilities, study_config.attributes, respondents=["r1", "r2"])
        assert excinfo.value.respondents == ["r2"]

    def test_wrong_width_rejected(self, study_config):
        with pytest.raises(SchemaMismatchError):
            compute_importances([1.0, 2.0, 3.0], study_config.attributes)


class TestZeroCenteredDiffs:
    """Four-step zero-centered diffs rescaling."""

    def test_worked_example(self, study_config):
        zcd, multipliers = zero_centered_diffs([-1, 0, 1, -2, 0, 2], study_config.attributes)
        assert multipliers[0] == pytest.approx(200 / 6)
        np.testing.assert_allclose(
            zcd, [-100 / 3, 0, 100 / 3, -200 / 3, 0, 200 / 3], atol=1e-9,
        )

    def test_attribute_means_are_zero(self, study_config, raw_utilities):
        zcd, _ = zero_centered_diffs(raw_utilities.to_numpy(), study_config.attributes)
        for block in attribute_blocks(study_config.attributes):
            np.testing.assert_allclose(zcd[:, block].mean(axis=1), 0.0, atol=1e-6)

    def test_average_range_is_100(self, study_config, raw_utilities):
        zcd, _ = zero_centered_diffs(raw_utilities.to_numpy(), study_config.attributes)
        ranges = attribute_ranges(zcd, study_config.attributes)
        np.testing.assert_allclose(ranges.mean(axis=1), 100.0, atol=1e-6)

    def test_mean_centering_is_applied(self, study_config):
        # Dummy-coded utilities are not centred: low=0 reference, others positive
        zcd, multipliers = zero_centered_diffs([0, 1, 2, 0, 3, 6], study_config.attributes)
        assert multipliers[0] == pytest.approx(25.0)
        np.testing.assert_allclose(zcd, [-25, 0, 25, -75, 0, 75], atol=1e-9)

    def test_invariant_to_scale_and_shift(self, study_config, raw_utilities):
        values = raw_utilities.to_numpy()
        zcd, _ = zero_centered_diffs(values, study_config.attributes)
        shifted, _ = zero_centered_diffs(3.0 * values + 5.0, study_config.attributes)
        np.testing.assert_allclose(shifted, zcd, atol=1e-9)

    def test_centred_input_only_scaled(self, study_config):
        centred = np.array([-1.0, 0.0, 1.0, -2.0, 0.0, 2.0])
        zcd, multipliers = zero_centered_diffs(centred, study_config.attributes)
        np.testing.assert_allclose(zcd, centred * multipliers[0])

    def test_all_flat_respondent_raises(self, study_config):
        with pytest.raises(DegenerateRespondentError) as excinfo:
            zero_centered_diffs(np.full(6, 0.7), study_config.attributes, respondents=[42])
        assert excinfo.value.respondents == [42]

    def test_degenerate_mask(self, study_config):
        mask = degenerate_mask(
            [[1, 1, 1, 2, 2, 2], [0, 0, 1, 0, 0, 0]], study_config.attributes,
        )
        assert mask.tolist() == [True, False]


class TestReconstruction:
    """Restoring reference levels left out of the design."""

    def _coefficients(self, study_config):
        return pd.DataFrame(
            [[-1.0, 1.0, 0.5, -0.25]],
            index=pd.Index([7], name="ID"),
            columns=study_config.predictor_names(),
        )

    def test_dummy_reference_is_zero(self, study_config):
        raw = reconstruct_utilities(self._coefficients(study_config), study_config)
        assert list(raw.columns) == study_config.level_columns()
        assert raw.loc[7].tolist() == [-1.0, 0.0, 1.0, 0.5, 0.0, -0.25]

    def test_effects_reference_is_minus_sum(self, study_config):
        config = study_config.model_copy(update={"coding": CodingScheme.EFFECTS})
        raw = reconstruct_utilities(self._coefficients(study_config), config)
        assert raw.loc[7].tolist() == [-1.0, 0.0, 1.0, 0.5, -0.25, -0.25]

    def test_column_mismatch(self, study_config):
        coefficients = self._coefficients(study_config).iloc[:, :3]
        with pytest.raises(SchemaMismatchError):
            reconstruct_utilities(coefficients, study_config)


class TestSummarize:

    def test_sample_standard_deviation(self):
        table = pd.DataFrame({"a": [1.0, 2.0, 3.0], "b": [10.0, 10.0, 10.0]})
        summary = summarize(table)
        assert summary.loc["a", "mean"] == pytest.approx(2.0)
        assert summary.loc["a", "sd"] == pytest.approx(1.0)
        assert summary.loc["b", "sd"] == pytest.approx(0.0)

    def test_single_row_has_zero_sd(self):
        summary = summarize(pd.DataFrame({"a": [4.0]}))
        assert summary.loc["a", "sd"] == 0.0
