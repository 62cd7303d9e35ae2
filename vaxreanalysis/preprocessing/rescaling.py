"""
Rescaling Utilities
===================

Maps bounded scores onto the open unit interval for beta-family models:

    y = ((x - lower) / (upper - lower) * (N - 1) + 0.5) / N

N is the number of values being rescaled. The transform is pure: the
same (x, lower, upper, N) always gives the same y, and no random state is
touched. Because N depends on which subset is transformed, the basis used
(pooled across columns or per column) is reported back in ``RescaleInfo``.

Usage:
    from vaxreanalysis.preprocessing import rescale, rescale_columns

    y = rescale([3, 4, 2], lower=1, upper=6)
    wide, info = rescale_columns(wide, ["pretest", "posttest"], 1, 6, basis="pooled")
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..errors import DataError, MissingColumnError, OutOfRangeError

RESCALE_SUFFIX = "_01"
VALID_BASES = ("pooled", "per_column")


@dataclass(frozen=True)
class RescaleInfo:
    """Parameters that produced a rescaled column (needed to compare fits)."""
    lower: float
    upper: float
    n: int
    basis: str = "single"

    @property
    def label(self) -> str:
        return f"rescaled-{self.basis}[{self.lower:g},{self.upper:g}] N={self.n}"


def _check_bounds(arr: np.ndarray, lower: float, upper: float) -> None:
    if not lower < upper:
        raise DataError(f"lower bound ({lower}) must be below upper bound ({upper})", stage="rescale")
    if np.isnan(arr).any():
        raise OutOfRangeError("missing values cannot be rescaled", stage="rescale")
    bad = (arr < lower) | (arr > upper)
    if bad.any():
        shown = ", ".join(f"{v:g}" for v in arr[bad][:5])
        raise OutOfRangeError(
            f"{int(bad.sum())} value(s) out of range [{lower}, {upper}]: {shown}",
            stage="rescale",
        )


def rescale(values: Sequence[float], lower: float, upper: float, n: Optional[int] = None) -> np.ndarray:
    """
    Rescale bounded values into (0, 1).

    Parameters
    ----------
    values : sequence of float
        Scores in the closed interval [lower, upper].
    lower, upper : float
        Measurement bounds, lower < upper.
    n : int, optional
        Sample size used in the shrinkage step. Defaults to ``len(values)``.

    Returns
    -------
    np.ndarray
        Rescaled values, strictly inside (0, 1).
    """
    arr = np.asarray(values, dtype=float).ravel()
    if arr.size == 0:
        raise DataError("cannot rescale an empty sequence", stage="rescale")
    _check_bounds(arr, lower, upper)

    n_eff = arr.size if n is None else int(n)
    if n_eff < 1:
        raise DataError(f"N must be >= 1, got {n_eff}", stage="rescale")

    unit = (arr - lower) / (upper - lower)
    return (unit * (n_eff - 1) + 0.5) / n_eff


def reverse_code(df: pd.DataFrame, columns: Sequence[str], lower: float, upper: float) -> pd.DataFrame:
    """Return a copy with ``columns`` flipped within [lower, upper]."""
    result = df.copy()
    for col in columns:
        if col not in result.columns:
            raise MissingColumnError(f"cannot reverse-code missing column '{col}'", stage="reverse_code")
        result[col] = lower + upper - pd.to_numeric(result[col], errors="coerce")
    return result


def rescale_columns(
    df: pd.DataFrame,
    columns: Sequence[str],
    lower: float,
    upper: float,
    basis: str = "pooled",
    suffix: str = RESCALE_SUFFIX,
) -> Tuple[pd.DataFrame, Dict[str, RescaleInfo]]:
    """
    Add rescaled copies of ``columns`` (named ``<col><suffix>``).

    basis="pooled" uses one N: the count of non-missing values across all
    columns together (pretest and posttest pooled). basis="per_column"
    uses each column's own non-missing count. The two give different
    outputs for the same raw score, so callers must pick one explicitly.

    Returns
    -------
    (pd.DataFrame, dict)
        New frame and a mapping of new column name -> RescaleInfo.
    """
    if basis not in VALID_BASES:
        raise ValueError(f"Unknown rescale basis: {basis}. Valid: {VALID_BASES}")
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise MissingColumnError(f"cannot rescale missing column(s): {missing}", stage="rescale")

    result = df.copy()
    numeric = {col: pd.to_numeric(result[col], errors="coerce") for col in columns}
    pooled_n = int(sum(s.notna().sum() for s in numeric.values()))

    infos: Dict[str, RescaleInfo] = {}
    for col, series in numeric.items():
        mask = series.notna()
        n = pooled_n if basis == "pooled" else int(mask.sum())
        out = pd.Series(np.nan, index=series.index, dtype=float)
        if mask.any():
            out[mask] = rescale(series[mask].to_numpy(), lower, upper, n=n)
        new_col = f"{col}{suffix}"
        result[new_col] = out
        infos[new_col] = RescaleInfo(lower=lower, upper=upper, n=n, basis=basis)
    return result, infos
