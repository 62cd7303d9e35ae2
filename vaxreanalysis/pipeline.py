"""
Re-analysis pipeline
====================

raw CSV -> analysis set -> derived datasets -> every catalogue model
-> AIC / LOO rankings within each outcome representation -> PPC summaries.

Each derived dataset is built, and each model fit, independently. A
dataset that cannot be built fails only the models declared on it. Data
and specification errors are recorded for that model only; non-converged
fits are recorded with their diagnostics, kept for inspection, and left
out of the rankings.

Output (outputs/tables/ by default):
    model_catalogue.csv, model_summary.csv, coefficients.csv,
    aic_comparison_<response>.csv, loo_comparison_<response>.csv,
    ppc_summary.csv, failures.csv
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from .catalogue import build_datasets, build_model_catalogue, catalogue_table
from .errors import ComparisonError, ConvergenceError, ReanalysisError
from .modeling import compare, fit, ppc_summary
from .modeling.results import FittedModel
from .modeling.spec import Estimation, SamplerControls
from .preprocessing import filter_analysis_set, load_participants
from .preprocessing.constants import get_output_dir


@dataclass
class PipelineResult:
    fits: Dict[str, FittedModel]
    unconverged: Dict[str, FittedModel]
    failures: pd.DataFrame
    comparisons: Dict[str, pd.DataFrame]
    ppc: pd.DataFrame
    datasets: Dict[str, pd.DataFrame] = field(repr=False, default_factory=dict)

    def summary(self) -> pd.DataFrame:
        rows = [m.summary_row() for m in list(self.fits.values()) + list(self.unconverged.values())]
        return pd.DataFrame(rows)

    def coefficients(self) -> pd.DataFrame:
        frames = [m.coefficients.assign(model=name) for name, m in self.fits.items()]
        if not frames:
            return pd.DataFrame(columns=["model", "term", "estimate", "se", "lower", "upper"])
        table = pd.concat(frames, ignore_index=True)
        return table[["model"] + [c for c in table.columns if c != "model"]]


def print_section_header(title: str, width: int = 70) -> None:
    """Print formatted section header."""
    print("\n" + "=" * width)
    print(title)
    print("=" * width)


def _slug(text: str) -> str:
    return re.sub(r"[^A-Za-z0-9]+", "_", text).strip("_").lower()


def _failure_row(name: str, exc: ReanalysisError) -> Dict[str, Any]:
    row = {
        "model": exc.model or name,
        "kind": exc.kind,
        "error": type(exc).__name__,
        "stage": exc.stage,
        "message": exc.message,
    }
    if isinstance(exc, ConvergenceError):
        for key, value in exc.diagnostics.items():
            row[f"diag_{key}"] = value
    return row


def group_by_representation(fits: Dict[str, FittedModel], estimation: Estimation) -> Dict[str, List[FittedModel]]:
    groups: Dict[str, List[FittedModel]] = {}
    for model in fits.values():
        if model.estimation is estimation:
            groups.setdefault(model.representation.label, []).append(model)
    return groups


def run_comparisons(fits: Dict[str, FittedModel], verbose: bool = False):
    """AIC within ML representation groups, LOO within Bayesian ones (groups of 2+)."""
    comparisons: Dict[str, pd.DataFrame] = {}
    failures: List[Dict[str, Any]] = []
    for estimation, criterion in ((Estimation.ML, "aic"), (Estimation.BAYES, "loo")):
        for label, models in group_by_representation(fits, estimation).items():
            if len(models) < 2:
                continue
            key = f"{criterion}_comparison_{_slug(models[0].representation.response)}"
            if key in comparisons:
                key = f"{key}_{_slug(models[0].representation.scale)}"
            try:
                comparisons[key] = compare(models, criterion=criterion)
            except ComparisonError as exc:
                failures.append(_failure_row(key, exc))
                continue
            if verbose:
                print(f"\n  [{criterion.upper()}] {label}")
                print(comparisons[key].to_string(index=False))
    return comparisons, failures


def run_pipeline(
    data_path: Optional[Path] = None,
    raw: Optional[pd.DataFrame] = None,
    models: Optional[Sequence[str]] = None,
    sampler: Optional[SamplerControls] = None,
    ml_only: bool = False,
    out_dir: Optional[Path] = None,
    save: bool = True,
    verbose: bool = True,
) -> PipelineResult:
    """
    Run the full re-analysis.

    Parameters
    ----------
    data_path : Path, optional
        Participant CSV (ignored when ``raw`` is given).
    raw : pd.DataFrame, optional
        Already-ingested participant table (output of ``prepare_participants``).
    models : sequence of str, optional
        Restrict to these catalogue model names.
    sampler : SamplerControls, optional
        NUTS settings for every Bayesian model.
    ml_only : bool
        Skip Bayesian models.
    out_dir : Path, optional
        Where tables are written when ``save`` is True.
    """
    if verbose:
        print_section_header("VACCINATION ATTITUDES: MODEL RE-ANALYSIS")

    participants = raw if raw is not None else load_participants(data_path, verbose=verbose)
    analysis = filter_analysis_set(participants, verbose=verbose)
    datasets, infos, dataset_errors = build_datasets(analysis)
    if verbose:
        for column, info in infos.items():
            print(f"[INFO] {column}: {info.label}")
        for key, exc in dataset_errors.items():
            print(f"[WARN] dataset '{key}' unavailable: {exc}")

    catalogue = build_model_catalogue(infos, sampler=sampler)
    if models:
        unknown = sorted(set(models) - {e.spec.name for e in catalogue})
        if unknown:
            raise ValueError(f"Unknown model(s): {unknown}")
        catalogue = [e for e in catalogue if e.spec.name in set(models)]
    if ml_only:
        catalogue = [e for e in catalogue if e.spec.estimation is Estimation.ML]

    if verbose:
        print_section_header("FITTING")

    fits: Dict[str, FittedModel] = {}
    unconverged: Dict[str, FittedModel] = {}
    failure_rows: List[Dict[str, Any]] = []
    for entry in catalogue:
        spec = entry.spec
        if entry.dataset in dataset_errors:
            failure_rows.append(_failure_row(spec.name, dataset_errors[entry.dataset]))
            if verbose:
                print(f"  [SKIP] {spec.name}: dataset '{entry.dataset}' unavailable")
            continue
        try:
            fits[spec.name] = fit(spec, datasets[entry.dataset], verbose=verbose)
        except ConvergenceError as exc:
            if exc.fitted is not None:
                unconverged[spec.name] = exc.fitted
            failure_rows.append(_failure_row(spec.name, exc))
            if verbose:
                print(f"  [WARN] {exc}")
        except ReanalysisError as exc:
            failure_rows.append(_failure_row(spec.name, exc.with_context(model=spec.name)))
            if verbose:
                print(f"  [ERROR] {exc}")

    if verbose:
        print_section_header("MODEL COMPARISON")
    comparisons, comparison_failures = run_comparisons(fits, verbose=verbose)
    failure_rows.extend(comparison_failures)

    # Unconverged posteriors are still checked, flagged by the converged column
    ppc_frames = [
        ppc_summary(m).assign(converged=m.converged)
        for m in list(fits.values()) + list(unconverged.values())
        if m.posterior_predictive is not None
    ]
    ppc = pd.concat(ppc_frames, ignore_index=True) if ppc_frames else pd.DataFrame()

    result = PipelineResult(
        fits=fits,
        unconverged=unconverged,
        failures=pd.DataFrame(failure_rows),
        comparisons=comparisons,
        ppc=ppc,
        datasets=datasets,
    )

    if save:
        out = get_output_dir(out_dir)
        catalogue_table(catalogue).to_csv(out / "model_catalogue.csv", index=False, encoding="utf-8-sig")
        result.summary().to_csv(out / "model_summary.csv", index=False, encoding="utf-8-sig")
        result.coefficients().to_csv(out / "coefficients.csv", index=False, encoding="utf-8-sig")
        for key, table in comparisons.items():
            table.to_csv(out / f"{key}.csv", index=False, encoding="utf-8-sig")
        if not ppc.empty:
            ppc.to_csv(out / "ppc_summary.csv", index=False, encoding="utf-8-sig")
        result.failures.to_csv(out / "failures.csv", index=False, encoding="utf-8-sig")
        if verbose:
            print(f"\n[INFO] tables written to {out}")

    if verbose:
        print(f"\n[INFO] fitted {len(fits)} model(s); {len(failure_rows)} failure(s) recorded")
    return result
