"""
Shared fixtures: synthetic participant tables shaped like the study export.
"""

import numpy as np
import pandas as pd
import pytest

from vaxreanalysis.catalogue import prepare_datasets
from vaxreanalysis.preprocessing import (
    ITEMS,
    REVERSE_CODED_ITEMS,
    filter_analysis_set,
    prepare_participants,
)


def make_raw_participants(n=60, seed=7, n_dropouts=6):
    """Raw export: integer items 1-6 (reverse-worded items flipped), composite scores, flags."""
    rng = np.random.default_rng(seed)
    condition = np.where(np.arange(n) % 2 == 0, "Control", "Treatment")
    attitude = rng.normal(3.5, 0.9, size=n)
    effect = np.where(condition == "Treatment", 0.6, 0.1)

    data = {
        "ParticipantID": [f"P{i:03d}" for i in range(n)],
        "Condition": condition,
        "EligibleToReturn": np.ones(n, dtype=int),
        "Returned": np.ones(n, dtype=int),
        "Excluded": np.zeros(n, dtype=int),
    }
    aligned = {"pre": [], "post": []}
    for item in ITEMS:
        for phase, shift in (("pre", 0.0), ("post", effect)):
            score = np.clip(np.round(attitude + shift + rng.normal(0, 0.8, size=n)), 1, 6)
            aligned[phase].append(score)
            data[f"{item}_{phase}"] = (7 - score) if item in REVERSE_CODED_ITEMS else score
    data["pretest"] = np.mean(aligned["pre"], axis=0)
    data["posttest"] = np.mean(aligned["post"], axis=0)

    raw = pd.DataFrame(data)
    # Attrition: some not returned, one excluded
    raw.loc[: n_dropouts - 2, "Returned"] = 0
    raw.loc[n_dropouts - 1, "Excluded"] = 1
    return raw


@pytest.fixture
def raw_participants():
    return make_raw_participants()


@pytest.fixture
def participants(raw_participants):
    return prepare_participants(raw_participants)


@pytest.fixture
def analysis(participants):
    return filter_analysis_set(participants)


@pytest.fixture
def prepared(analysis):
    return prepare_datasets(analysis)


@pytest.fixture
def datasets(prepared):
    return prepared[0]


@pytest.fixture
def three_participants():
    """The three-participant worked example."""
    return pd.DataFrame({
        "participant_id": ["a", "b", "c"],
        "Condition": pd.Categorical(["Control", "Treatment", "Control"], categories=["Control", "Treatment"]),
        "pretest": [3.0, 4.0, 2.0],
        "posttest": [4.0, 5.0, 2.0],
    })
