"""Pytest fixtures for hbreport tests."""

import numpy as np
import pandas as pd
import pytest

from hbreport import AttributeSchema, McmcSettings, StudyConfig
from hbreport.models import ReportSettings

LEVELS = ["low", "medium", "high"]

# Population part-worths used to simulate respondents: Attribute1 matters a
# lot (high >> low), Attribute2 a little.
PART_WORTHS = {
    "Attribute1": np.array([-1.5, 0.0, 1.5]),
    "Attribute2": np.array([0.4, 0.0, -0.4]),
}


def simulate_choices(
    n_respondents: int = 20,
    n_tasks: int = 8,
    n_alts: int = 3,
    seed: int = 0,
) -> pd.DataFrame:
    """Long-format CBC rows in the survey tool's column layout."""
    rng = np.random.default_rng(seed)
    rows = []
    for resp in range(1, n_respondents + 1):
        worths = {k: v + rng.normal(0, 0.3, size=v.shape) for k, v in PART_WORTHS.items()}
        for task in range(1, n_tasks + 1):
            codes = rng.integers(1, 4, size=(n_alts, len(worths)))
            utility = sum(
                worths[name][codes[:, a] - 1] for a, name in enumerate(worths)
            ) + rng.gumbel(size=n_alts)
            chosen = int(np.argmax(utility))
            for alt in range(n_alts):
                rows.append({
                    "sys_RespNum": 1000 + resp,
                    "Task": task,
                    "Concept": alt + 1,
                    "Attribute1": int(codes[alt, 0]),
                    "Attribute2": int(codes[alt, 1]),
                    "Response": int(alt == chosen),
                })
    return pd.DataFrame(rows)


@pytest.fixture
def study_config(tmp_path) -> StudyConfig:
    """Two three-level attributes, medium as reference, small MCMC budget."""
    return StudyConfig(
        name="test study",
        attributes=[
            AttributeSchema(name="Attribute1", levels=LEVELS, reference_level=1),
            AttributeSchema(name="Attribute2", levels=LEVELS, reference_level=1),
        ],
        mcmc=McmcSettings(total_iterations=300, retained_iterations=150, seed=7),
        report=ReportSettings(
            estimations_dir=tmp_path / "estimations",
            output_path=tmp_path / "report" / "HB_report.xlsx",
        ),
    )


@pytest.fixture
def simulate():
    """The choice simulator, for tests that need custom panel sizes."""
    return simulate_choices


@pytest.fixture
def choices() -> pd.DataFrame:
    return simulate_choices()


@pytest.fixture
def choices_csv(tmp_path, choices) -> str:
    path = tmp_path / "CBC_Choices.csv"
    choices.to_csv(path, sep=";", index=False)
    return str(path)


@pytest.fixture
def raw_utilities(study_config) -> pd.DataFrame:
    """
    Three respondents' level utilities (reference levels at 0).

    Respondent 1 is the worked example: ranges 2 and 4.
    Respondent 3 has a flat Attribute2.
    """
    return pd.DataFrame(
        [
            [-1.0, 0.0, 1.0, -2.0, 0.0, 2.0],
            [0.5, 0.0, 1.5, 1.0, 0.0, -1.0],
            [-0.8, 0.0, 0.2, 0.0, 0.0, 0.0],
        ],
        index=pd.Index([1, 2, 3], name="ID"),
        columns=study_config.level_columns(),
    )
