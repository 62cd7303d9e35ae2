"""
Preprocessing Module
====================

Loading, analysis-set filtering, rescaling and reshaping of the
vaccination-attitude data.

    from vaxreanalysis.preprocessing import load_participants, filter_analysis_set
    df = filter_analysis_set(load_participants("data/vaccination_attitudes.csv"))

CLI:
    python -m vaxreanalysis.preprocessing --info data/vaccination_attitudes.csv
"""

from .constants import (
    AGGREGATE_ITEM,
    CHANGE_COL,
    CONDITION,
    ITEMS,
    ITEM_COL,
    PARTICIPANT_ID,
    PHASE_COL,
    POSTTEST_COL,
    PRETEST_COL,
    REFERENCE_CONDITION,
    REQUIRED_COLUMNS,
    RESPONSE_COL,
    REVERSE_CODED_ITEMS,
    SCORE_LOWER,
    SCORE_UPPER,
    TIME_COL,
    item_columns,
)
from .core import check_score_range, describe_scores, ensure_participant_id, require_columns
from .filters import AnalysisSetCriteria, add_change_score, filter_analysis_set, filter_counts
from .loaders import load_participants, prepare_participants, set_reference_condition
from .rescaling import RescaleInfo, rescale, rescale_columns, reverse_code
from .reshaping import aggregate_columns, lengthen, split_phase, widen

__all__ = [
    "AGGREGATE_ITEM",
    "CHANGE_COL",
    "CONDITION",
    "ITEMS",
    "ITEM_COL",
    "PARTICIPANT_ID",
    "PHASE_COL",
    "POSTTEST_COL",
    "PRETEST_COL",
    "REFERENCE_CONDITION",
    "REQUIRED_COLUMNS",
    "RESPONSE_COL",
    "REVERSE_CODED_ITEMS",
    "SCORE_LOWER",
    "SCORE_UPPER",
    "TIME_COL",
    "item_columns",
    "check_score_range",
    "describe_scores",
    "ensure_participant_id",
    "require_columns",
    "AnalysisSetCriteria",
    "add_change_score",
    "filter_analysis_set",
    "filter_counts",
    "load_participants",
    "prepare_participants",
    "set_reference_condition",
    "RescaleInfo",
    "rescale",
    "rescale_columns",
    "reverse_code",
    "aggregate_columns",
    "lengthen",
    "split_phase",
    "widen",
]
