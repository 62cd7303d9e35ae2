"""
Loading and ingestion of the participant table.

Reads the CSV, normalizes the participant id, validates required columns
and score ranges, reverse-codes the negatively worded items and fixes the
condition reference level. The input frame is never modified in place.
"""

from pathlib import Path
from typing import Optional, Sequence

import pandas as pd

from ..errors import DataError
from .constants import (
    CONDITION,
    DEFAULT_DATA_FILE,
    FLAG_COLUMNS,
    PARTICIPANT_ID,
    REFERENCE_CONDITION,
    REQUIRED_COLUMNS,
    REVERSE_CODED_ITEMS,
    SCORE_COLUMNS,
    SCORE_LOWER,
    SCORE_UPPER,
    item_columns,
)
from .core import check_score_range, ensure_participant_id, require_columns
from .rescaling import reverse_code


def set_reference_condition(df: pd.DataFrame, reference: str = REFERENCE_CONDITION) -> pd.DataFrame:
    """Make the condition column categorical with ``reference`` as first level; missing labels stay missing."""
    result = df.copy()
    raw = result[CONDITION]
    labels = raw.astype(str).str.strip().where(raw.notna())
    levels = sorted(labels.dropna().unique())
    if reference not in levels:
        raise DataError(
            f"reference condition '{reference}' not found; levels are {levels}", stage="load"
        )
    ordered = [reference] + [lvl for lvl in levels if lvl != reference]
    result[CONDITION] = pd.Categorical(labels, categories=ordered)
    return result


def prepare_participants(
    raw: pd.DataFrame,
    reverse_items: Sequence[str] = REVERSE_CODED_ITEMS,
    lower: float = SCORE_LOWER,
    upper: float = SCORE_UPPER,
) -> pd.DataFrame:
    """
    Validate and ingest a raw participant table.

    Parameters
    ----------
    raw : pd.DataFrame
        One row per participant with the columns in ``REQUIRED_COLUMNS``.
    reverse_items : sequence of str
        Item stems whose pre and post columns are flipped within [lower, upper].
    lower, upper : float
        Closed measurement interval of every score.

    Returns
    -------
    pd.DataFrame
        New, validated frame.
    """
    df = ensure_participant_id(raw.copy())
    require_columns(df, REQUIRED_COLUMNS, stage="load")

    score_cols = SCORE_COLUMNS + item_columns()
    for col in score_cols + FLAG_COLUMNS:
        df[col] = pd.to_numeric(df[col], errors="coerce")

    check_score_range(df, score_cols, lower, upper, stage="load")

    flipped = item_columns(reverse_items) if reverse_items else []
    if flipped:
        df = reverse_code(df, flipped, lower, upper)

    ids = df[PARTICIPANT_ID]
    df[PARTICIPANT_ID] = ids.astype(str).where(ids.notna())
    return set_reference_condition(df)


def load_participants(
    path: Optional[Path] = None,
    reverse_items: Sequence[str] = REVERSE_CODED_ITEMS,
    verbose: bool = False,
) -> pd.DataFrame:
    """Load the participant CSV and run ``prepare_participants`` on it."""
    path = Path(path) if path is not None else DEFAULT_DATA_FILE
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {path}")

    raw = pd.read_csv(path, encoding="utf-8-sig")
    df = prepare_participants(raw, reverse_items=reverse_items)
    if verbose:
        levels = list(df[CONDITION].cat.categories)
        print(f"[INFO] loaded {len(df)} participants from {path.name}; conditions: {levels}")
    return df
