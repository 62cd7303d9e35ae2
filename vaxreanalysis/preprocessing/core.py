"""
Core helpers for preprocessing.
"""

from __future__ import annotations

from typing import Sequence
import warnings

import numpy as np
import pandas as pd
from scipy import stats

from ..errors import MissingColumnError, OutOfRangeError
from .constants import PARTICIPANT_ID, PARTICIPANT_ID_ALIASES


def ensure_participant_id(df: pd.DataFrame, warn_threshold: float = 1.0) -> pd.DataFrame:
    """
    Return a frame whose participant identifier is the single column ``participant_id``.

    An existing ``participant_id`` wins; otherwise the leftmost export alias
    (``ParticipantID``, ``pid``, ...) is renamed. Other alias columns are
    dropped. Blank ids count as missing, and a warning is issued when more
    than ``warn_threshold`` percent of rows lack one.
    """
    aliases = [col for col in df.columns if col in PARTICIPANT_ID_ALIASES and col != PARTICIPANT_ID]
    if PARTICIPANT_ID in df.columns:
        source = PARTICIPANT_ID
    elif aliases:
        source = aliases.pop(0)
    else:
        raise MissingColumnError(
            f"no participant id column; expected one of {sorted(PARTICIPANT_ID_ALIASES)}", stage="load"
        )

    result = df.drop(columns=aliases).rename(columns={source: PARTICIPANT_ID})
    ids = result[PARTICIPANT_ID]
    blank = ids.isna() | (ids.astype(str).str.strip() == "")
    result[PARTICIPANT_ID] = ids.where(~blank)

    n_blank = int(blank.sum())
    if len(result) and n_blank / len(result) * 100 > warn_threshold:
        warnings.warn(
            f"{n_blank} of {len(result)} rows have no participant id; they cannot be reshaped",
            UserWarning,
        )
    return result


def require_columns(df: pd.DataFrame, columns: Sequence[str], stage: str = "load") -> None:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise MissingColumnError(f"missing required column(s): {missing}", stage=stage)


def check_score_range(
    df: pd.DataFrame,
    columns: Sequence[str],
    lower: float,
    upper: float,
    stage: str = "load",
) -> None:
    """Raise OutOfRangeError if any non-missing score lies outside [lower, upper]."""
    problems = []
    for col in columns:
        values = pd.to_numeric(df[col], errors="coerce")
        bad = values.notna() & ((values < lower) | (values > upper))
        if bad.any():
            problems.append(f"{col}: {int(bad.sum())} value(s), e.g. {values[bad].iloc[0]:g}")
    if problems:
        raise OutOfRangeError(
            f"scores outside [{lower}, {upper}] -> " + "; ".join(problems), stage=stage
        )


def describe_scores(df: pd.DataFrame, columns: Sequence[str]) -> pd.DataFrame:
    """Mean / SD / skew / min / max / N for each score column."""
    rows = []
    for col in columns:
        values = pd.to_numeric(df[col], errors="coerce").dropna()
        rows.append({
            "variable": col,
            "n": int(len(values)),
            "mean": float(values.mean()) if len(values) else np.nan,
            "sd": float(values.std(ddof=1)) if len(values) > 1 else np.nan,
            "skew": float(stats.skew(values, bias=False)) if len(values) > 2 else np.nan,
            "min": float(values.min()) if len(values) else np.nan,
            "max": float(values.max()) if len(values) else np.nan,
        })
    return pd.DataFrame(rows)
