"""
Maximum-likelihood backends (statsmodels).

gaussian   -> OLS, or MixedLM (ML, not REML) when random groupings are given
beta       -> BetaModel, logit link on the mean
ordinal    -> OrderedModel, cumulative logit (proportional odds)

Each backend returns ``(result, fitted_values, diagnostics)``; the Fitter
turns that into a FittedModel and decides on convergence.
"""

from __future__ import annotations

from typing import Any, Dict, Tuple

import numpy as np
import pandas as pd
import statsmodels.formula.api as smf
from statsmodels.miscmodels.ordinal_model import OrderedModel
from statsmodels.othermod.betareg import BetaModel

from .constants import CI_ALPHA, ML_MAXITER
from .results import coefficient_table
from .spec import ModelSpec


def _fit_ols(spec: ModelSpec, df: pd.DataFrame):
    result = smf.ols(spec.formula(), data=df).fit()
    diagnostics = {"method": "ols", "converged": bool(np.all(np.isfinite(result.params)))}
    return result, result.fittedvalues, diagnostics


def _fit_mixedlm(spec: ModelSpec, df: pd.DataFrame):
    groupings = list(spec.random_groupings)
    if len(groupings) == 1:
        model = smf.mixedlm(spec.formula(), data=df, groups=df[groupings[0]])
    else:
        # Crossed random intercepts: one all-encompassing group plus a variance component per grouping
        data = df.assign(_all_=1)
        vc = {g: f"0 + C({g})" for g in groupings}
        model = smf.mixedlm(spec.formula(), data=data, groups=data["_all_"], re_formula="0", vc_formula=vc)
    result = model.fit(reml=False, maxiter=ML_MAXITER)
    diagnostics = {
        "method": "mixedlm",
        "converged": bool(result.converged),
        "random_effect_variance": float(np.ravel(result.cov_re)[0]) if np.size(result.cov_re) else np.nan,
    }
    return result, result.fittedvalues, diagnostics


def fit_gaussian(spec: ModelSpec, df: pd.DataFrame):
    if spec.random_groupings:
        return _fit_mixedlm(spec, df)
    return _fit_ols(spec, df)


def fit_beta(spec: ModelSpec, df: pd.DataFrame):
    model = BetaModel.from_formula(spec.formula(), data=df)
    result = model.fit(maxiter=ML_MAXITER, disp=0)
    fitted = pd.Series(np.asarray(result.predict()), index=df.index)
    retvals = getattr(result, "mle_retvals", None) or {}
    diagnostics = {
        "method": "betareg",
        "converged": bool(retvals.get("converged", True)),
        "iterations": retvals.get("iterations"),
    }
    return result, fitted, diagnostics


def fit_ordinal(spec: ModelSpec, df: pd.DataFrame):
    model = OrderedModel.from_formula(spec.formula(), data=df, distr="logit")
    result = model.fit(method="bfgs", maxiter=ML_MAXITER, disp=False)

    probs = np.asarray(result.predict())
    levels = list(df[spec.response].cat.categories)
    try:
        scores = np.asarray(levels, dtype=float)
    except (TypeError, ValueError):
        scores = np.arange(len(levels), dtype=float)
    fitted = pd.Series(probs @ scores, index=df.index)

    retvals = getattr(result, "mle_retvals", None) or {}
    diagnostics = {
        "method": "ordered_logit",
        "converged": bool(retvals.get("converged", True)),
        "iterations": retvals.get("iterations"),
        "n_thresholds": len(levels) - 1,
    }
    return result, fitted, diagnostics


def standard_errors_finite(result: Any) -> bool:
    """Hessian check: every standard error must be a finite number."""
    try:
        bse = np.asarray(result.bse, dtype=float)
    except (ValueError, np.linalg.LinAlgError):
        return False
    return bool(np.all(np.isfinite(bse)))


def ml_coefficients(result: Any, alpha: float = CI_ALPHA) -> pd.DataFrame:
    params = pd.Series(result.params)
    bse = pd.Series(np.asarray(result.bse, dtype=float), index=params.index)
    ci = pd.DataFrame(np.asarray(result.conf_int(alpha=alpha)), index=params.index)
    return coefficient_table(params, bse, ci.iloc[:, 0], ci.iloc[:, 1])


def ml_fit_statistics(result: Any) -> Tuple[float, float, int]:
    """(log-likelihood, AIC, number of estimated parameters)."""
    llf = float(result.llf)
    aic = float(result.aic)
    n_params = int(round((aic + 2 * llf) / 2)) if np.isfinite(aic) and np.isfinite(llf) else len(result.params)
    return llf, aic, n_params


def ml_diagnostics(result: Any, extra: Dict[str, Any]) -> Dict[str, Any]:
    diagnostics = dict(extra)
    diagnostics["finite_se"] = standard_errors_finite(result)
    return diagnostics
