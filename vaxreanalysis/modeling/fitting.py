"""
Fitter: ModelSpec + dataset -> FittedModel.

Dispatch is a table keyed by (family, estimation); there is no class per
model type. Validation runs first so data and specification problems
surface before any optimizer or sampler starts.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Callable, Dict, Tuple

import numpy as np
import pandas as pd
from patsy import PatsyError
from pymc.exceptions import SamplingError
from statsmodels.tools.sm_exceptions import PerfectSeparationError

from ..errors import ConvergenceError, ReanalysisError, SpecificationError
from . import bayesian, frequentist
from .results import FittedModel, OutcomeRepresentation, freeze_array, freeze_draws
from .spec import Estimation, Family, ModelSpec
from .validation import validate

_ML_BACKENDS: Dict[Family, Callable] = {
    Family.GAUSSIAN: frequentist.fit_gaussian,
    Family.BETA: frequentist.fit_beta,
    Family.ORDINAL: frequentist.fit_ordinal,
}


def representation_for(spec: ModelSpec, n_obs: int) -> OutcomeRepresentation:
    """Ordinal likelihoods are probability masses, so they get their own scale label."""
    scale = spec.representation
    if spec.family is Family.ORDINAL and not scale.startswith("ordinal"):
        scale = f"ordinal:{scale}"
    return OutcomeRepresentation(response=spec.response, scale=scale, n_obs=int(n_obs))


def _observed(spec: ModelSpec, df: pd.DataFrame) -> pd.Series:
    y = df[spec.response]
    if spec.family is Family.ORDINAL:
        scores = bayesian.level_scores(y)
        return pd.Series(scores[y.cat.codes.to_numpy()], index=df.index, name=spec.response)
    return y.astype(float)


def _fit_ml(spec: ModelSpec, df: pd.DataFrame) -> FittedModel:
    backend = _ML_BACKENDS[spec.family]
    try:
        result, fitted_values, extra = backend(spec, df)
    except ReanalysisError:
        raise
    except (PerfectSeparationError, FloatingPointError, ValueError) as exc:
        raise ConvergenceError(
            f"optimizer failed: {type(exc).__name__}: {exc}", model=spec.name, stage="fit"
        ) from exc

    diagnostics = frequentist.ml_diagnostics(result, extra)
    llf, aic, n_params = frequentist.ml_fit_statistics(result)
    # OLS is closed-form; only iterative fits need invertible Hessians
    needs_hessian = diagnostics.get("method") != "ols"
    converged = bool(diagnostics["converged"]) and (diagnostics["finite_se"] or not needs_hessian)
    diagnostics["converged"] = converged

    fitted = FittedModel(
        spec=spec,
        representation=representation_for(spec, len(df)),
        coefficients=frequentist.ml_coefficients(result),
        fitted_values=pd.Series(fitted_values, index=df.index, name="fitted"),
        observed=_observed(spec, df),
        log_likelihood=llf,
        n_params=n_params,
        converged=converged,
        aic=aic,
        diagnostics=MappingProxyType(diagnostics),
        backend_result=result,
    )
    if not converged:
        raise ConvergenceError(
            "optimizer did not converge" if not extra.get("converged", True) else "Hessian not invertible",
            fitted=fitted,
            diagnostics=diagnostics,
            model=spec.name,
            stage="fit",
        )
    return fitted


def _fit_bayes(spec: ModelSpec, df: pd.DataFrame) -> FittedModel:
    try:
        idata = bayesian.sample(spec, df)
    except SamplingError as exc:
        raise ConvergenceError(f"sampler failed: {exc}", model=spec.name, stage="sample") from exc

    draws = bayesian.extract_draws(spec, idata)
    replicated = bayesian.replicates(spec, df, idata)
    diagnostics = bayesian.convergence_diagnostics(spec, idata)

    fitted = FittedModel(
        spec=spec,
        representation=representation_for(spec, len(df)),
        coefficients=bayesian.posterior_coefficients(draws),
        fitted_values=pd.Series(replicated.mean(axis=0), index=df.index, name="fitted"),
        observed=_observed(spec, df),
        log_likelihood=bayesian.pointwise_log_likelihood(idata),
        n_params=len(draws),
        converged=diagnostics["converged"],
        loo=bayesian.loo_result(idata),
        draws=freeze_draws(draws),
        posterior_predictive=freeze_array(replicated),
        diagnostics=MappingProxyType(diagnostics),
        backend_result=idata,
    )
    if not diagnostics["converged"]:
        raise ConvergenceError(
            f"sampler did not converge (max R-hat={diagnostics['max_rhat']:.3f}, "
            f"min bulk ESS={diagnostics['min_ess_bulk']:.0f})",
            fitted=fitted,
            diagnostics=diagnostics,
            model=spec.name,
            stage="sample",
        )
    return fitted


def fit(spec: ModelSpec, data: pd.DataFrame, verbose: bool = False) -> FittedModel:
    """
    Fit ``spec`` to ``data``.

    Raises
    ------
    DataError, SpecificationError
        Before any computation, for missing columns, responses outside the
        family's support, or unidentifiable random effects.
    ConvergenceError
        After fitting, with the partial FittedModel attached; or, with no
        fit attached, when the optimizer or sampler fails outright.
    """
    df = validate(spec, data)
    if verbose:
        print(f"  [FIT] {spec.describe()} (n={len(df)})")

    try:
        if spec.estimation is Estimation.ML:
            return _fit_ml(spec, df)
        if spec.estimation is Estimation.BAYES:
            return _fit_bayes(spec, df)
    except ReanalysisError as exc:
        raise exc.with_context(model=spec.name)
    except np.linalg.LinAlgError as exc:
        raise ConvergenceError(f"singular system during fitting: {exc}", model=spec.name, stage="fit") from exc
    except PatsyError as exc:
        raise SpecificationError(f"cannot build design matrix: {exc}", model=spec.name, stage="fit") from exc
    raise SpecificationError(f"unknown estimation mode {spec.estimation!r}", model=spec.name, stage="fit")


def fit_all(specs_and_data, verbose: bool = False) -> Tuple[Dict[str, FittedModel], Dict[str, ReanalysisError]]:
    """
    Fit each (spec, data) pair independently.

    Returns successful fits and failures keyed by model name; a failure in
    one model never stops the others.
    """
    fits: Dict[str, FittedModel] = {}
    failures: Dict[str, ReanalysisError] = {}
    for spec, data in specs_and_data:
        try:
            fits[spec.name] = fit(spec, data, verbose=verbose)
        except ReanalysisError as exc:
            failures[spec.name] = exc.with_context(model=spec.name)
            if verbose:
                print(f"  [{exc.kind.upper()}] {exc}")
    return fits, failures
