"""
Shared constants for loading and reshaping the vaccination-attitude data.
"""

from pathlib import Path

# Directory paths
BASE_DIR = Path(__file__).resolve().parents[1]
REPO_DIR = Path(__file__).resolve().parents[2]
DATA_DIR = REPO_DIR / "data"
DEFAULT_DATA_FILE = DATA_DIR / "vaccination_attitudes.csv"

OUTPUTS_DIR = REPO_DIR / "outputs"
OUTPUT_TABLES_DIR = OUTPUTS_DIR / "tables"

# Column names
PARTICIPANT_ID = "participant_id"
CONDITION = "Condition"
REFERENCE_CONDITION = "Control"
ELIGIBLE_COL = "EligibleToReturn"
RETURNED_COL = "Returned"
EXCLUDED_COL = "Excluded"
PRETEST_COL = "pretest"
POSTTEST_COL = "posttest"
CHANGE_COL = "change"

# Participant ID aliases
PARTICIPANT_ID_ALIASES = {"participant_id", "ParticipantID", "participantId", "pid", "ID", "id"}

# Sub-items (five attitude sub-scales, each measured at both phases)
ITEMS = ("item1", "item2", "item3", "item4", "item5")
# Items worded against vaccination; flipped on ingestion so higher = more favourable
REVERSE_CODED_ITEMS = ("item2", "item4")
AGGREGATE_ITEM = "aggregate"

# Phase suffixes (wide column name -> phase label, phase code)
PRE_SUFFIX = "_pre"
POST_SUFFIX = "_post"
PHASES = {
    PRE_SUFFIX: ("pretest", 0),
    POST_SUFFIX: ("posttest", 1),
}

# Long-format column names
ITEM_COL = "item"
PHASE_COL = "phase"
TIME_COL = "time"
RESPONSE_COL = "response"

# Measurement bounds (closed interval shared by composite and items)
SCORE_LOWER = 1
SCORE_UPPER = 6

FLAG_COLUMNS = [ELIGIBLE_COL, RETURNED_COL, EXCLUDED_COL]
SCORE_COLUMNS = [PRETEST_COL, POSTTEST_COL]


def item_columns(items=ITEMS) -> list:
    """Wide-format sub-item columns in pretest-then-posttest order."""
    return [f"{item}{PRE_SUFFIX}" for item in items] + [f"{item}{POST_SUFFIX}" for item in items]


REQUIRED_COLUMNS = [PARTICIPANT_ID, CONDITION] + FLAG_COLUMNS + SCORE_COLUMNS + item_columns()


def get_output_dir(base_dir: Path = None) -> Path:
    """Return the table output directory, creating it when needed."""
    out = OUTPUT_TABLES_DIR if base_dir is None else Path(base_dir)
    out.mkdir(parents=True, exist_ok=True)
    return out
