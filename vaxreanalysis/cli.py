"""
Command-line entry point for the full re-analysis.

Usage:
    python -m vaxreanalysis --data data/vaccination_attitudes.csv
    python -m vaxreanalysis --data data.csv --ml-only --out outputs/tables
    python -m vaxreanalysis --list
"""

import argparse
import sys
import warnings
from pathlib import Path

from .catalogue import build_model_catalogue, catalogue_table
from .errors import ReanalysisError
from .modeling.constants import CHAINS, DRAWS, ESS_MIN, RANDOM_SEED, RHAT_MAX, TARGET_ACCEPT, TUNE
from .modeling.spec import SamplerControls
from .pipeline import run_pipeline
from .preprocessing.constants import DEFAULT_DATA_FILE


if sys.platform.startswith("win") and hasattr(sys.stdout, "reconfigure"):
    sys.stdout.reconfigure(encoding="utf-8")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Re-analyse the vaccination-attitude intervention with competing models",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m vaxreanalysis --data data/vaccination_attitudes.csv
    python -m vaxreanalysis --data data.csv --models ols_ancova ols_ancova_null beta_ancova
    python -m vaxreanalysis --data data.csv --draws 500 --tune 500 --chains 2
    python -m vaxreanalysis --list
        """,
    )
    parser.add_argument("--data", type=Path, default=DEFAULT_DATA_FILE, help="Participant CSV")
    parser.add_argument("--out", type=Path, default=None, help="Output directory for tables")
    parser.add_argument("--models", nargs="+", default=None, help="Fit only these catalogue models")
    parser.add_argument("--draws", type=int, default=DRAWS, help=f"Posterior draws per chain (default: {DRAWS})")
    parser.add_argument("--tune", type=int, default=TUNE, help=f"Tuning steps per chain (default: {TUNE})")
    parser.add_argument("--chains", type=int, default=CHAINS, help=f"Number of chains (default: {CHAINS})")
    parser.add_argument("--seed", type=int, default=RANDOM_SEED, help=f"Sampler seed (default: {RANDOM_SEED})")
    parser.add_argument("--rhat-max", type=float, default=RHAT_MAX, help=f"Largest acceptable R-hat (default: {RHAT_MAX})")
    parser.add_argument("--ess-min", type=float, default=ESS_MIN, help=f"Smallest acceptable bulk ESS (default: {ESS_MIN})")
    parser.add_argument("--ml-only", action="store_true", help="Skip the Bayesian models")
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output")
    parser.add_argument("--list", action="store_true", help="List the model catalogue and exit")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        sampler = SamplerControls(
            draws=args.draws,
            tune=args.tune,
            chains=args.chains,
            target_accept=TARGET_ACCEPT,
            random_seed=args.seed,
            rhat_max=args.rhat_max,
            ess_min=args.ess_min,
        )
    except ValueError as exc:
        print(f"[ERROR] {exc}")
        return 2

    if args.list:
        print(catalogue_table(build_model_catalogue({}, sampler=sampler)).to_string(index=False))
        return 0

    # Convergence problems are reported through the failures table
    warnings.filterwarnings("ignore", category=FutureWarning)
    warnings.filterwarnings("ignore", module="statsmodels")
    warnings.filterwarnings("ignore", module="pymc")

    try:
        result = run_pipeline(
            data_path=args.data,
            models=args.models,
            sampler=sampler,
            ml_only=args.ml_only,
            out_dir=args.out,
            verbose=not args.quiet,
        )
    except (FileNotFoundError, ReanalysisError, ValueError) as exc:
        print(f"[ERROR] {exc}")
        return 1

    return 0 if result.fits else 1


if __name__ == "__main__":
    sys.exit(main())
