"""
Wide <-> long reshaping for pretest/posttest measurements.

Wide: one row per participant, value columns named ``<item>_pre`` /
``<item>_post``. Long: one row per (participant, item, phase).
The suffix decides the phase and is stripped to give the item label.
Reverse coding is an ingestion concern and is not handled here.
"""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

import pandas as pd

from ..errors import DataError, IncompleteRecordError, MissingColumnError
from .constants import (
    AGGREGATE_ITEM,
    ITEM_COL,
    PARTICIPANT_ID,
    PHASE_COL,
    PHASES,
    POST_SUFFIX,
    POSTTEST_COL,
    PRE_SUFFIX,
    PRETEST_COL,
    RESPONSE_COL,
    TIME_COL,
)


def split_phase(column: str) -> Tuple[str, str, int]:
    """Split ``<item><suffix>`` into (item, phase label, phase code)."""
    for suffix, (phase, code) in PHASES.items():
        if column.endswith(suffix) and len(column) > len(suffix):
            return column[: -len(suffix)], phase, code
    raise DataError(
        f"column '{column}' has no phase suffix ({PRE_SUFFIX} / {POST_SUFFIX})",
        stage="lengthen",
    )


def _phase_suffix(phase: str) -> str:
    for suffix, (label, _code) in PHASES.items():
        if label == phase:
            return suffix
    raise DataError(f"unknown phase label '{phase}'", stage="widen")


def _require(df: pd.DataFrame, columns: Sequence[str], stage: str) -> None:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise MissingColumnError(f"missing required column(s): {missing}", stage=stage)


def _participant_key(id_columns: Sequence[str]) -> str:
    return PARTICIPANT_ID if PARTICIPANT_ID in id_columns else id_columns[0]


def aggregate_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Expose the composite pretest/posttest scores as ``aggregate_pre/_post``."""
    _require(df, [PRETEST_COL, POSTTEST_COL], stage="aggregate")
    result = df.copy()
    result[f"{AGGREGATE_ITEM}{PRE_SUFFIX}"] = result[PRETEST_COL]
    result[f"{AGGREGATE_ITEM}{POST_SUFFIX}"] = result[POSTTEST_COL]
    return result


def lengthen(
    wide: pd.DataFrame,
    value_columns: Sequence[str],
    id_columns: Sequence[str] = (PARTICIPANT_ID,),
) -> pd.DataFrame:
    """
    Convert a wide table to one row per (participant, item, phase).

    Parameters
    ----------
    wide : pd.DataFrame
        One row per participant.
    value_columns : sequence of str
        Columns to stack; each must end in ``_pre`` or ``_post``.
    id_columns : sequence of str
        Columns carried onto every long row (participant id first).

    Returns
    -------
    pd.DataFrame
        Columns ``id_columns + [item, phase, time, response]``.

    Raises
    ------
    IncompleteRecordError
        If a participant is duplicated or lacks a value for any item x phase.
    """
    id_columns = list(id_columns)
    value_columns = list(value_columns)
    if not value_columns:
        raise DataError("no value columns to lengthen", stage="lengthen")
    _require(wide, id_columns + value_columns, stage="lengthen")

    layout: Dict[str, Tuple[str, str, int]] = {col: split_phase(col) for col in value_columns}
    key = _participant_key(id_columns)

    dupes = wide[key][wide[key].duplicated()]
    if not dupes.empty:
        raise IncompleteRecordError(
            f"participant(s) appear more than once: {sorted(map(str, dupes.unique()))[:5]}",
            stage="lengthen",
        )

    gaps = wide[value_columns].isna()
    if gaps.any().any():
        bad_rows = wide.loc[gaps.any(axis=1), key].astype(str).tolist()
        bad_cols = [c for c in value_columns if gaps[c].any()]
        raise IncompleteRecordError(
            f"{len(bad_rows)} participant(s) missing item x phase values "
            f"(columns {bad_cols}; e.g. {bad_rows[:5]})",
            stage="lengthen",
        )

    long = wide[id_columns + value_columns].melt(
        id_vars=id_columns,
        value_vars=value_columns,
        var_name="_column",
        value_name=RESPONSE_COL,
    )
    long[ITEM_COL] = long["_column"].map(lambda c: layout[c][0])
    long[PHASE_COL] = long["_column"].map(lambda c: layout[c][1])
    long[TIME_COL] = long["_column"].map(lambda c: layout[c][2]).astype(int)

    long = long.drop(columns="_column")
    long = long.sort_values([key, ITEM_COL, TIME_COL], kind="mergesort").reset_index(drop=True)
    return long[id_columns + [ITEM_COL, PHASE_COL, TIME_COL, RESPONSE_COL]]


def widen(long: pd.DataFrame, id_columns: Sequence[str] = (PARTICIPANT_ID,)) -> pd.DataFrame:
    """
    Convert a long table back to one row per participant.

    Value columns are named ``<item>_pre`` / ``<item>_post``. Raises
    ``IncompleteRecordError`` for duplicated, absent or missing-valued
    item x phase cells.
    """
    id_columns = list(id_columns)
    _require(long, id_columns + [ITEM_COL, PHASE_COL, RESPONSE_COL], stage="widen")
    key = _participant_key(id_columns)

    cell = [key, ITEM_COL, PHASE_COL]
    dupes = long[long.duplicated(subset=cell, keep=False)]
    if not dupes.empty:
        first = dupes.iloc[0]
        raise IncompleteRecordError(
            f"duplicate observation for participant {first[key]!r}, "
            f"item {first[ITEM_COL]!r}, phase {first[PHASE_COL]!r}",
            stage="widen",
        )

    gaps = long[RESPONSE_COL].isna()
    if gaps.any():
        bad = sorted(map(str, long.loc[gaps, key].unique()))
        raise IncompleteRecordError(
            f"{int(gaps.sum())} missing response(s) for participant(s) {bad[:5]}",
            stage="widen",
        )

    frame = long.copy()
    frame["_column"] = frame[ITEM_COL].astype(str) + frame[PHASE_COL].map(_phase_suffix)

    # Every participant needs every (item, phase) cell present anywhere in the table.
    expected = set(frame["_column"].unique())
    per_participant = frame.groupby(key, observed=True)["_column"].agg(set)
    incomplete: List[str] = [str(pid) for pid, cols in per_participant.items() if cols != expected]
    if incomplete:
        raise IncompleteRecordError(
            f"{len(incomplete)} participant(s) lack some item x phase cells: {incomplete[:5]}",
            stage="widen",
        )

    ids = frame[id_columns].drop_duplicates()
    if ids[key].duplicated().any():
        raise IncompleteRecordError(
            "identifier columns are not constant within participant", stage="widen"
        )

    values = frame.pivot(index=key, columns="_column", values=RESPONSE_COL)
    values.columns.name = None

    pre = sorted(c for c in values.columns if c.endswith(PRE_SUFFIX))
    post = sorted(c for c in values.columns if c.endswith(POST_SUFFIX))
    wide = ids.merge(values[pre + post].reset_index(), on=key, how="left")
    return wide.sort_values(key, kind="mergesort").reset_index(drop=True)
