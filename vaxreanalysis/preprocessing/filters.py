"""
Analysis-set filtering.

Only participants who were eligible to return, did return, and were not
excluded enter any model.
"""

from dataclasses import dataclass
from typing import Dict

import pandas as pd

from ..errors import DataError
from .constants import CHANGE_COL, ELIGIBLE_COL, EXCLUDED_COL, POSTTEST_COL, PRETEST_COL, RETURNED_COL
from .core import require_columns


@dataclass(frozen=True)
class AnalysisSetCriteria:
    """Flag values a participant must have to enter the analysis set."""
    eligible_value: int = 1
    returned_value: int = 1
    excluded_value: int = 0


def analysis_set_mask(df: pd.DataFrame, criteria: AnalysisSetCriteria = None) -> pd.Series:
    criteria = criteria or AnalysisSetCriteria()
    require_columns(df, [ELIGIBLE_COL, RETURNED_COL, EXCLUDED_COL], stage="filter")
    eligible = pd.to_numeric(df[ELIGIBLE_COL], errors="coerce") == criteria.eligible_value
    returned = pd.to_numeric(df[RETURNED_COL], errors="coerce") == criteria.returned_value
    kept = pd.to_numeric(df[EXCLUDED_COL], errors="coerce") == criteria.excluded_value
    return eligible & returned & kept


def filter_counts(df: pd.DataFrame, criteria: AnalysisSetCriteria = None) -> Dict[str, int]:
    """Sequential attrition counts for reporting."""
    criteria = criteria or AnalysisSetCriteria()
    eligible = pd.to_numeric(df[ELIGIBLE_COL], errors="coerce") == criteria.eligible_value
    returned = eligible & (pd.to_numeric(df[RETURNED_COL], errors="coerce") == criteria.returned_value)
    kept = returned & (pd.to_numeric(df[EXCLUDED_COL], errors="coerce") == criteria.excluded_value)
    return {
        "n_total": int(len(df)),
        "n_eligible": int(eligible.sum()),
        "n_returned": int(returned.sum()),
        "n_analysis": int(kept.sum()),
    }


def filter_analysis_set(
    df: pd.DataFrame,
    criteria: AnalysisSetCriteria = None,
    verbose: bool = False,
) -> pd.DataFrame:
    """Return a new frame holding only the analysis set."""
    mask = analysis_set_mask(df, criteria)
    result = df.loc[mask].copy().reset_index(drop=True)
    if result.empty:
        raise DataError("analysis set is empty after eligibility/return/exclusion filter", stage="filter")

    if verbose:
        counts = filter_counts(df, criteria)
        print(
            f"[INFO] analysis set: {counts['n_analysis']} of {counts['n_total']} "
            f"(eligible={counts['n_eligible']}, returned={counts['n_returned']})"
        )
    return result


def add_change_score(df: pd.DataFrame) -> pd.DataFrame:
    """Add ``change = posttest - pretest``."""
    require_columns(df, [PRETEST_COL, POSTTEST_COL], stage="change_score")
    result = df.copy()
    result[CHANGE_COL] = (
        pd.to_numeric(result[POSTTEST_COL], errors="coerce")
        - pd.to_numeric(result[PRETEST_COL], errors="coerce")
    )
    return result
