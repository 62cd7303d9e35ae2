"""
Preprocessing CLI for inspecting the analysis set.

Usage:
    python -m vaxreanalysis.preprocessing --info data/vaccination_attitudes.csv
    python -m vaxreanalysis.preprocessing --info data/vaccination_attitudes.csv --long out.csv
"""

import argparse
import sys
from pathlib import Path

from .constants import CONDITION, DEFAULT_DATA_FILE, PARTICIPANT_ID, SCORE_COLUMNS, item_columns
from .core import describe_scores
from .filters import filter_analysis_set, filter_counts
from .loaders import load_participants
from .reshaping import lengthen


if sys.platform.startswith("win") and hasattr(sys.stdout, "reconfigure"):
    sys.stdout.reconfigure(encoding="utf-8")


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Inspect the vaccination-attitude analysis set",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m vaxreanalysis.preprocessing --info data/vaccination_attitudes.csv
    python -m vaxreanalysis.preprocessing --info data.csv --long items_long.csv
        """,
    )
    parser.add_argument(
        "--info",
        type=Path,
        nargs="?",
        const=DEFAULT_DATA_FILE,
        help="Print attrition counts and score descriptives for a data file",
    )
    parser.add_argument(
        "--long",
        type=Path,
        help="Also write the item-level long table of the analysis set to this CSV",
    )
    args = parser.parse_args(argv)

    if args.info is None:
        parser.print_help()
        return

    raw = load_participants(args.info, verbose=True)
    counts = filter_counts(raw)
    for key, value in counts.items():
        print(f"  {key:<12} {value}")

    analysis = filter_analysis_set(raw)
    print(f"\n  by condition: {analysis[CONDITION].value_counts(sort=False).to_dict()}")
    print(describe_scores(analysis, SCORE_COLUMNS + item_columns()).to_string(index=False))

    if args.long is not None:
        long = lengthen(analysis, item_columns(), id_columns=[PARTICIPANT_ID, CONDITION])
        long.to_csv(args.long, index=False, encoding="utf-8-sig")
        print(f"[INFO] wrote {len(long)} rows to {args.long}")


if __name__ == "__main__":
    main()
