"""
Configuration models for the HB report pipeline.

These Pydantic models define the study schema (attributes and their levels),
how the input CSV is laid out, the MCMC budget handed to the estimator, and
where the report is written.  A study is normally loaded from a YAML file.
"""

# Import modules
from __future__ import annotations
import enum
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

# ------------------------------------------------------------------
# Study schema
# ------------------------------------------------------------------

class AttributeSchema(BaseModel):
    """A single attribute, the CSV column holding its level codes, and its levels."""

    name: str
    levels: list[str] = Field(min_length=2, description="Labels for level codes 1..L")
    # 0-based index of the level left out of the design matrix
    reference_level: int | None = None

    @model_validator(mode="after")
    def _validate_levels(self) -> "AttributeSchema":
        if len(self.levels) != len(set(self.levels)):
            raise ValueError(f"Level labels of '{self.name}' must be unique")
        if self.reference_level is not None and not (
            0 <= self.reference_level < len(self.levels)
        ):
            raise ValueError(
                f"reference_level {self.reference_level} is out of range for "
                f"'{self.name}' with {len(self.levels)} levels"
            )
        return self

    @property
    def n_levels(self) -> int:
        return len(self.levels)

    def level_columns(self) -> list[str]:
        """Report column names, one per level: ``<name>_<label>``."""
        return [f"{self.name}_{lv}" for lv in self.levels]

    def estimated_levels(self) -> list[int]:
        """Indices of the levels that get a predictor in the design matrix."""
        return [i for i in range(self.n_levels) if i != self.reference_level]


class CodingScheme(str, enum.Enum):
    """How categorical levels become predictors."""

    DUMMY = "dummy"
    EFFECTS = "effects"


class DegeneratePolicy(str, enum.Enum):
    """What to do with respondents whose utilities have zero total range."""

    EXCLUDE = "exclude"
    ERROR = "error"


# ------------------------------------------------------------------
# Input layout
# ------------------------------------------------------------------

class ColumnMapping(BaseModel):
    """Names of the bookkeeping columns in the input CSV."""

    respondent: str = "sys_RespNum"
    task: str = "Task"
    alternative: str = "Concept"
    chosen: str = "Response"


class InputSettings(BaseModel):
    path: Path | None = None
    delimiter: str = ";"
    columns: ColumnMapping = Field(default_factory=ColumnMapping)


# ------------------------------------------------------------------
# Estimation and report settings
# ------------------------------------------------------------------

class McmcSettings(BaseModel):
    """MCMC budget and per-predictor coding handed to the estimator."""

    total_iterations: int = Field(default=20000, ge=1)
    retained_iterations: int = Field(default=10000, ge=1)
    keep: int = Field(default=1, ge=1, description="Thinning interval for retained draws")
    # One code per predictor; 1 = use the predictor value as given
    xcoding: list[int] | None = None
    seed: int | None = None

    @model_validator(mode="after")
    def _validate_budget(self) -> "McmcSettings":
        if self.retained_iterations > self.total_iterations:
            raise ValueError(
                "retained_iterations cannot exceed total_iterations "
                f"({self.retained_iterations} > {self.total_iterations})"
            )
        return self

    def coding_for(self, n_predictors: int) -> list[int]:
        return list(self.xcoding) if self.xcoding is not None else [1] * n_predictors


class ReportSettings(BaseModel):
    estimations_dir: Path = Path("estimations")
    output_path: Path = Path("report") / "HB_report.xlsx"
    overwrite: bool = True
    degenerate_policy: DegeneratePolicy = DegeneratePolicy.EXCLUDE


class StudyConfig(BaseModel):
    """Top-level study configuration, typically loaded from a YAML file."""

    name: str
    description: str = ""
    input: InputSettings = Field(default_factory=InputSettings)
    attributes: list[AttributeSchema] = Field(min_length=1)
    coding: CodingScheme = CodingScheme.DUMMY
    mcmc: McmcSettings = Field(default_factory=McmcSettings)
    report: ReportSettings = Field(default_factory=ReportSettings)

    @field_validator("attributes")
    @classmethod
    def _validate_unique_attribute_names(
        cls, attributes: list[AttributeSchema]
    ) -> list[AttributeSchema]:
        names = [a.name for a in attributes]
        if len(names) != len(set(names)):
            raise ValueError("Attribute names must be unique")
        return attributes

    @model_validator(mode="after")
    def _validate_effects_reference(self) -> "StudyConfig":
        if self.coding == CodingScheme.EFFECTS:
            missing = [a.name for a in self.attributes if a.reference_level is None]
            if missing:
                raise ValueError(
                    "Effects coding needs a reference level for every attribute; "
                    f"missing for {missing}"
                )
        return self

    # ------------------------------------------------------------------
    # Derived schema helpers
    # ------------------------------------------------------------------

    @property
    def n_parameters(self) -> int:
        """Total level count, reference levels included."""
        return sum(a.n_levels for a in self.attributes)

    def level_columns(self) -> list[str]:
        return [col for a in self.attributes for col in a.level_columns()]

    def predictor_names(self) -> list[str]:
        """Design-matrix predictor names in design order."""
        return [
            f"{a.name}_{a.levels[i]}"
            for a in self.attributes
            for i in a.estimated_levels()
        ]

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @classmethod
    def from_yaml(cls, path: str | Path) -> "StudyConfig":
        """Load a study configuration from a YAML file."""
        path = Path(path)
        with path.open() as f:
            data = yaml.safe_load(f)
        return cls.model_validate(data)
