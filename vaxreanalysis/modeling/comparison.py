"""
Model comparison: AIC for ML fits, PSIS-LOO for Bayesian fits, and
posterior predictive summaries.

AIC is only computed across ML fits of the same outcome representation.
LOO differences are paired over observations, so they also require the
same representation; a difference within ``se_threshold`` standard errors
is reported as not clearly distinguishable rather than as a winner.
"""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import stats

from ..errors import ComparisonError, IncommensurableComparisonError, MissingPosteriorError
from .constants import LOO_SE_THRESHOLD, PPC_QUANTILES
from .results import FittedModel

VALID_CRITERIA = ("aic", "loo")


def _check_commensurable(models: Sequence[FittedModel], criterion: str) -> None:
    reference = models[0].representation
    for model in models[1:]:
        if model.representation != reference:
            raise IncommensurableComparisonError(
                f"{criterion.upper()} comparison across different outcome representations: "
                f"'{models[0].name}' ({reference.label}) vs '{model.name}' ({model.representation.label})",
                stage=f"compare_{criterion}",
            )


def _check_converged(models: Sequence[FittedModel], criterion: str) -> None:
    bad = [m.name for m in models if not m.converged]
    if bad:
        raise ComparisonError(f"non-converged model(s) cannot be ranked: {bad}", stage=f"compare_{criterion}")


def compare_aic(models: Sequence[FittedModel]) -> pd.DataFrame:
    """Rank ML fits by AIC (lower is better) with delta-AIC and Akaike weights."""
    for model in models:
        if model.is_bayesian or model.aic is None:
            raise IncommensurableComparisonError(
                f"'{model.name}' was not fit by maximum likelihood; AIC is undefined",
                model=model.name,
                stage="compare_aic",
            )
    _check_commensurable(models, "aic")
    _check_converged(models, "aic")

    aic = np.array([m.aic for m in models], dtype=float)
    delta = aic - np.min(aic)
    rel = np.exp(-0.5 * delta)
    weights = rel / rel.sum()

    table = pd.DataFrame({
        "model": [m.name for m in models],
        "aic": aic,
        "delta_aic": delta,
        "akaike_weight": weights,
        "log_likelihood": [m.log_likelihood for m in models],
        "n_params": [m.n_params for m in models],
        "n_obs": [m.n_obs for m in models],
    })
    table = table.sort_values(["aic", "n_params"], kind="mergesort").reset_index(drop=True)
    table.insert(0, "rank", np.arange(1, len(table) + 1))
    return table


def _require_loo(model: FittedModel) -> None:
    if model.loo is None or not model.is_bayesian:
        raise MissingPosteriorError(
            f"'{model.name}' has no posterior draws; LOO needs a Bayesian fit",
            model=model.name,
            stage="compare_loo",
        )


def loo_difference(a: FittedModel, b: FittedModel) -> Tuple[float, float]:
    """
    ELPD difference ``elpd(a) - elpd(b)`` and its standard error.

    The SE comes from the pointwise paired differences, so
    ``loo_difference(b, a)`` is the negated difference with the same SE.
    """
    _require_loo(a)
    _require_loo(b)
    _check_commensurable([a, b], "loo")
    if a.loo.n_obs != b.loo.n_obs:
        raise IncommensurableComparisonError(
            f"pointwise ELPD lengths differ ({a.loo.n_obs} vs {b.loo.n_obs})", stage="compare_loo"
        )
    diff_i = np.asarray(a.loo.pointwise) - np.asarray(b.loo.pointwise)
    diff = float(np.sum(diff_i))
    se = float(np.sqrt(diff_i.size * np.var(diff_i)))
    return diff, se


def is_distinguishable(diff: float, se: float, se_threshold: float = LOO_SE_THRESHOLD) -> bool:
    return bool(abs(diff) > se_threshold * se)


def compare_loo(models: Sequence[FittedModel], se_threshold: float = LOO_SE_THRESHOLD) -> pd.DataFrame:
    """Rank Bayesian fits by ELPD-LOO (higher is better)."""
    for model in models:
        _require_loo(model)
    _check_commensurable(models, "loo")
    _check_converged(models, "loo")

    order = sorted(models, key=lambda m: m.loo.elpd, reverse=True)
    best = order[0]
    rows: List[Dict] = []
    for rank, model in enumerate(order, start=1):
        if model is best:
            diff, se, verdict = 0.0, 0.0, "best"
        else:
            diff, se = loo_difference(model, best)
            verdict = "worse" if is_distinguishable(diff, se, se_threshold) else "not clearly distinguishable"
        rows.append({
            "rank": rank,
            "model": model.name,
            "elpd_loo": model.loo.elpd,
            "se": model.loo.se,
            "p_loo": model.loo.p_loo,
            "elpd_diff": diff,
            "diff_se": se,
            "distinguishable": verdict == "worse",
            "verdict": verdict,
            "max_pareto_k": model.loo.max_pareto_k,
        })
    return pd.DataFrame(rows)


def compare(
    models: Sequence[FittedModel],
    criterion: str = "aic",
    se_threshold: float = LOO_SE_THRESHOLD,
) -> pd.DataFrame:
    """
    Rank fitted models.

    Parameters
    ----------
    models : sequence of FittedModel
        Fits to rank; order only matters for error messages.
    criterion : {"aic", "loo"}
    se_threshold : float
        LOO only: differences within this many SEs are not a clear winner.

    Raises
    ------
    IncommensurableComparisonError
        Different outcome representations, or AIC on a Bayesian fit.
    MissingPosteriorError
        LOO on a fit without posterior draws.
    """
    criterion = str(criterion).lower()
    if criterion not in VALID_CRITERIA:
        raise ValueError(f"Unknown criterion: {criterion}. Valid: {VALID_CRITERIA}")
    models = list(models)
    if not models:
        raise ComparisonError("nothing to compare", stage=f"compare_{criterion}")
    if criterion == "aic":
        return compare_aic(models)
    return compare_loo(models, se_threshold=se_threshold)


# =============================================================================
# POSTERIOR PREDICTIVE CHECKS
# =============================================================================

def replicate_draws(model: FittedModel) -> np.ndarray:
    """Posterior predictive replicates, shape (n_draws, n_obs)."""
    if model.posterior_predictive is None:
        raise MissingPosteriorError(
            f"'{model.name}' has no posterior predictive draws", model=model.name, stage="ppc"
        )
    return model.posterior_predictive


def _marginal_statistics(values: np.ndarray, quantiles: Sequence[float]) -> Dict[str, np.ndarray]:
    """Statistics along the last axis (works for one dataset or a stack of replicates)."""
    summary = {
        "mean": np.mean(values, axis=-1),
        "sd": np.std(values, axis=-1, ddof=1),
        "skew": stats.skew(values, axis=-1, bias=False),
        "min": np.min(values, axis=-1),
        "max": np.max(values, axis=-1),
    }
    for q in quantiles:
        summary[f"q{int(round(q * 100)):02d}"] = np.quantile(values, q, axis=-1)
    return summary


def ppc_summary(model: FittedModel, quantiles: Sequence[float] = PPC_QUANTILES, interval: float = 0.9) -> pd.DataFrame:
    """
    Compare the observed marginal distribution with the replicated ones.

    For each statistic: observed value, mean and central interval over
    replicated datasets, and the posterior predictive p-value
    P(T(y_rep) >= T(y)).
    """
    reps = replicate_draws(model)
    observed = np.asarray(model.observed, dtype=float)
    obs_stats = _marginal_statistics(observed, quantiles)
    rep_stats = _marginal_statistics(reps, quantiles)

    tail = (1.0 - interval) / 2.0
    rows = []
    for name, obs_value in obs_stats.items():
        rep = np.asarray(rep_stats[name], dtype=float)
        rows.append({
            "model": model.name,
            "statistic": name,
            "observed": float(obs_value),
            "replicated_mean": float(np.mean(rep)),
            "replicated_lower": float(np.quantile(rep, tail)),
            "replicated_upper": float(np.quantile(rep, 1.0 - tail)),
            "ppp_value": float(np.mean(rep >= obs_value)),
        })
    return pd.DataFrame(rows)
