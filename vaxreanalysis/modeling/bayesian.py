"""
Bayesian GLM / hierarchical backends (PyMC + NUTS).

Linear predictor: patsy design matrix of the fixed terms plus a
non-centred random intercept for every grouping (crossed when several).

gaussian : y ~ Normal(eta, sigma)
beta     : y ~ Beta(mu * phi, (1 - mu) * phi),  mu = invlogit(eta)
ordinal  : y ~ OrderedLogistic(eta, cutpoints),  cutpoints ordered

Sampling stores the pointwise log-likelihood (for LOO) and draws
posterior predictive replicates once all chains have finished.
"""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

import arviz as az
import numpy as np
import pandas as pd
import patsy
import pymc as pm

from .constants import (
    CUTPOINT_PRIOR_SD,
    HDI_PROB,
    PRECISION_PRIOR,
    PRIOR_SD,
    RANDOM_SD_PRIOR,
)
from .results import LooResult, coefficient_table, freeze_array
from .spec import Family, ModelSpec

OBS_VAR = "y"


def design_matrix(spec: ModelSpec, df: pd.DataFrame) -> pd.DataFrame:
    """Fixed-effects design matrix; ordinal models drop the intercept (absorbed by cutpoints)."""
    X = patsy.dmatrix(spec.rhs(), df, return_type="dataframe")
    if spec.family is Family.ORDINAL and "Intercept" in X.columns:
        X = X.drop(columns="Intercept")
    return X


def _response(spec: ModelSpec, df: pd.DataFrame) -> Tuple[np.ndarray, np.ndarray]:
    """Observed values for the likelihood and their values on the response scale."""
    y = df[spec.response]
    if spec.family is Family.ORDINAL:
        codes = y.cat.codes.to_numpy(dtype="int64")
        return codes, level_scores(y)[codes]
    values = y.to_numpy(dtype=float)
    return values, values


def level_scores(y: pd.Series) -> np.ndarray:
    """Numeric value of each ordinal level (level index when labels are not numeric)."""
    levels = list(y.cat.categories)
    try:
        return np.asarray(levels, dtype=float)
    except (TypeError, ValueError):
        return np.arange(len(levels), dtype=float)


def build_model(spec: ModelSpec, df: pd.DataFrame) -> pm.Model:
    X = design_matrix(spec, df)
    observed, _ = _response(spec, df)

    coords: Dict[str, Any] = {"obs": np.arange(len(df)), "coef": list(X.columns)}
    group_index: Dict[str, np.ndarray] = {}
    for grouping in spec.random_groupings:
        codes, uniques = pd.factorize(df[grouping], sort=True)
        group_index[grouping] = codes
        coords[grouping] = [str(u) for u in uniques]
    if spec.family is Family.ORDINAL:
        n_levels = len(df[spec.response].cat.categories)
        coords["threshold"] = [f"{k}|{k + 1}" for k in range(1, n_levels)]

    with pm.Model(coords=coords) as model:
        beta = pm.Normal("beta", 0.0, PRIOR_SD[spec.family.value], dims="coef")
        eta = pm.math.dot(X.to_numpy(dtype=float), beta)

        for grouping, codes in group_index.items():
            sd = pm.HalfNormal(f"sd_{grouping}", RANDOM_SD_PRIOR)
            z = pm.Normal(f"z_{grouping}", 0.0, 1.0, dims=grouping)
            eta = eta + sd * z[codes]

        if spec.family is Family.GAUSSIAN:
            sigma = pm.HalfNormal("sigma", max(float(np.std(observed)), 1.0) * 2.0)
            pm.Normal(OBS_VAR, mu=eta, sigma=sigma, observed=observed, dims="obs")
        elif spec.family is Family.BETA:
            mu = pm.math.invlogit(eta)
            phi = pm.Gamma("phi", alpha=PRECISION_PRIOR[0], beta=PRECISION_PRIOR[1])
            pm.Beta(OBS_VAR, alpha=mu * phi, beta=(1.0 - mu) * phi, observed=observed, dims="obs")
        else:
            k = len(coords["threshold"])
            cutpoints = pm.Normal(
                "cutpoints",
                mu=0.0,
                sigma=CUTPOINT_PRIOR_SD,
                dims="threshold",
                transform=pm.distributions.transforms.ordered,
                initval=np.linspace(-2.0, 2.0, k),
            )
            pm.OrderedLogistic(OBS_VAR, eta=eta, cutpoints=cutpoints, observed=observed, dims="obs")
    return model


def sample(spec: ModelSpec, df: pd.DataFrame) -> az.InferenceData:
    controls = spec.sampler
    model = build_model(spec, df)
    with model:
        idata = pm.sample(
            draws=controls.draws,
            tune=controls.tune,
            chains=controls.chains,
            cores=controls.cores,
            target_accept=controls.target_accept,
            random_seed=controls.random_seed,
            progressbar=False,
            return_inferencedata=True,
            idata_kwargs={"log_likelihood": True},
        )
        pm.sample_posterior_predictive(
            idata,
            random_seed=controls.random_seed,
            extend_inferencedata=True,
            progressbar=False,
        )
    return idata


def _parameter_names(spec: ModelSpec) -> List[str]:
    names = ["beta"] + [f"sd_{g}" for g in spec.random_groupings]
    if spec.family is Family.GAUSSIAN:
        names.append("sigma")
    elif spec.family is Family.BETA:
        names.append("phi")
    else:
        names.append("cutpoints")
    return names


def extract_draws(spec: ModelSpec, idata: az.InferenceData) -> Dict[str, np.ndarray]:
    """One pooled (chain-major) draw sequence per scalar parameter."""
    draws: Dict[str, np.ndarray] = {}
    posterior = idata.posterior
    for var in _parameter_names(spec):
        da = posterior[var]
        extra_dims = [d for d in da.dims if d not in ("chain", "draw")]
        if not extra_dims:
            draws[var] = da.values.reshape(-1)
            continue
        dim = extra_dims[0]
        for label in da.coords[dim].values:
            name = str(label) if var == "beta" else f"{var}[{label}]"
            draws[name] = da.sel({dim: label}).values.reshape(-1)
    return draws


def posterior_coefficients(draws: Dict[str, np.ndarray], hdi_prob: float = HDI_PROB) -> pd.DataFrame:
    names = list(draws)
    mean = pd.Series({n: float(np.mean(draws[n])) for n in names})
    sd = pd.Series({n: float(np.std(draws[n], ddof=1)) for n in names})
    bounds = {n: az.hdi(np.asarray(draws[n]), hdi_prob=hdi_prob) for n in names}
    lower = pd.Series({n: float(b[0]) for n, b in bounds.items()})
    upper = pd.Series({n: float(b[1]) for n, b in bounds.items()})
    return coefficient_table(mean, sd, lower, upper)


def replicates(spec: ModelSpec, df: pd.DataFrame, idata: az.InferenceData) -> np.ndarray:
    """Posterior predictive draws, shape (n_draws, n_obs), on the response scale."""
    pp = idata.posterior_predictive[OBS_VAR].stack(sample=("chain", "draw")).transpose("sample", "obs")
    values = np.asarray(pp.values)
    if spec.family is Family.ORDINAL:
        values = level_scores(df[spec.response])[values.astype(int)]
    return values.astype(float)


def loo_result(idata: az.InferenceData) -> LooResult:
    loo = az.loo(idata, var_name=OBS_VAR, pointwise=True)
    pareto_k = np.asarray(loo.pareto_k)
    return LooResult(
        elpd=float(loo.elpd_loo),
        se=float(loo.se),
        p_loo=float(loo.p_loo),
        pointwise=freeze_array(np.asarray(loo.loo_i)),
        max_pareto_k=float(np.nanmax(pareto_k)),
        n_high_pareto_k=int(np.sum(pareto_k > 0.7)),
    )


def convergence_diagnostics(spec: ModelSpec, idata: az.InferenceData) -> Dict[str, Any]:
    """R-hat, bulk ESS and divergences over the model parameters."""
    summary = az.summary(idata, var_names=_parameter_names(spec), kind="diagnostics")
    rhat = summary["r_hat"].to_numpy(dtype=float)
    ess = summary["ess_bulk"].to_numpy(dtype=float)
    max_rhat = float(np.nanmax(rhat)) if np.isfinite(rhat).any() else np.nan
    min_ess = float(np.nanmin(ess)) if np.isfinite(ess).any() else np.nan
    divergences = int(idata.sample_stats["diverging"].sum()) if "diverging" in idata.sample_stats else 0

    # R-hat is undefined for a single chain
    rhat_ok = bool(np.isnan(max_rhat) or max_rhat <= spec.sampler.rhat_max)
    ess_ok = bool(np.isnan(min_ess) or min_ess >= spec.sampler.ess_min)
    return {
        "method": "nuts",
        "max_rhat": max_rhat,
        "min_ess_bulk": min_ess,
        "divergences": divergences,
        "rhat_ok": rhat_ok,
        "ess_ok": ess_ok,
        "converged": rhat_ok and ess_ok,
    }


def pointwise_log_likelihood(idata: az.InferenceData) -> float:
    """Posterior mean of the total log-likelihood."""
    ll = idata.log_likelihood[OBS_VAR]
    return float(ll.sum(dim="obs").mean().values)
