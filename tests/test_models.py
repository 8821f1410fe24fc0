"""Tests for study configuration models."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from hbreport import AttributeSchema, CodingScheme, McmcSettings, StudyConfig
from hbreport.models import DegeneratePolicy

CONFIG_DIR = Path(__file__).resolve().parent.parent / "configs"


class TestStudyConfig:

    def test_shipped_config_loads(self):
        config = StudyConfig.from_yaml(CONFIG_DIR / "lighthouse.yaml")
        assert [a.name for a in config.attributes] == [
            "Attribute1", "Attribute2", "Attribute3", "Attribute4",
        ]
        assert config.n_parameters == 12
        assert len(config.predictor_names()) == 8
        assert "Attribute3_medium" not in config.predictor_names()
        assert config.mcmc.total_iterations == 20000
        assert config.mcmc.retained_iterations == 10000
        assert config.input.delimiter == ";"
        assert config.report.degenerate_policy == DegeneratePolicy.EXCLUDE

    def test_level_columns(self, study_config):
        assert study_config.level_columns()[:3] == [
            "Attribute1_low", "Attribute1_medium", "Attribute1_high",
        ]

    def test_duplicate_attribute_names(self):
        attr = AttributeSchema(name="Price", levels=["a", "b"])
        with pytest.raises(ValidationError, match="unique"):
            StudyConfig(name="x", attributes=[attr, attr])

    def test_effects_needs_reference(self):
        with pytest.raises(ValidationError, match="reference level"):
            StudyConfig(
                name="x",
                coding=CodingScheme.EFFECTS,
                attributes=[AttributeSchema(name="Price", levels=["a", "b"])],
            )

    def test_yaml_roundtrip_of_overrides(self, tmp_path):
        path = tmp_path / "study.yaml"
        path.write_text(
            "name: small\n"
            "coding: effects\n"
            "attributes:\n"
            "  - name: Brand\n"
            "    levels: [A, B, C, D]\n"
            "    reference_level: 3\n"
            "mcmc:\n"
            "  total_iterations: 500\n"
            "  retained_iterations: 200\n"
            "report:\n"
            "  degenerate_policy: error\n"
        )
        config = StudyConfig.from_yaml(path)
        assert config.coding == CodingScheme.EFFECTS
        assert config.predictor_names() == ["Brand_A", "Brand_B", "Brand_C"]
        assert config.report.degenerate_policy == DegeneratePolicy.ERROR


class TestAttributeSchema:

    def test_reference_out_of_range(self):
        with pytest.raises(ValidationError, match="out of range"):
            AttributeSchema(name="Price", levels=["a", "b"], reference_level=2)

    def test_duplicate_levels(self):
        with pytest.raises(ValidationError, match="unique"):
            AttributeSchema(name="Price", levels=["a", "a"])

    def test_needs_two_levels(self):
        with pytest.raises(ValidationError):
            AttributeSchema(name="Price", levels=["a"])


class TestMcmcSettings:

    def test_retained_cannot_exceed_total(self):
        with pytest.raises(ValidationError, match="retained_iterations"):
            McmcSettings(total_iterations=100, retained_iterations=200)

    def test_default_coding(self):
        assert McmcSettings().coding_for(3) == [1, 1, 1]
