"""
Fitted-model containers.

Everything here is read-only once built: arrays are flagged non-writeable
and draw collections are exposed through read-only mappings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

import numpy as np
import pandas as pd

from .spec import Estimation, Family, ModelSpec

COEFFICIENT_COLUMNS = ["term", "estimate", "se", "lower", "upper"]


def freeze_array(values) -> np.ndarray:
    """Return a materialized, non-writeable copy of ``values``."""
    arr = np.array(values, dtype=float, copy=True)
    arr.setflags(write=False)
    return arr


def freeze_draws(draws: Mapping[str, Any]) -> Mapping[str, np.ndarray]:
    return MappingProxyType({name: freeze_array(np.ravel(v)) for name, v in draws.items()})


@dataclass(frozen=True)
class OutcomeRepresentation:
    """
    How the outcome was represented when a model was fit.

    Two fits are commensurable only if response column, scale label and
    number of observations all agree.
    """
    response: str
    scale: str
    n_obs: int

    @property
    def label(self) -> str:
        return f"{self.response} | {self.scale} | n={self.n_obs}"


@dataclass(frozen=True, eq=False)
class LooResult:
    """PSIS-LOO estimate with the pointwise values needed for paired differences."""
    elpd: float
    se: float
    p_loo: float
    pointwise: np.ndarray
    max_pareto_k: float
    n_high_pareto_k: int = 0

    @property
    def n_obs(self) -> int:
        return int(self.pointwise.size)


@dataclass(frozen=True, eq=False)
class FittedModel:
    """
    Result of fitting one ModelSpec to one dataset.

    ML fits carry ``log_likelihood`` and ``aic``; Bayesian fits carry
    ``draws`` (one materialized array per parameter, chains pooled),
    ``posterior_predictive`` (draws x observations) and ``loo``.
    """
    spec: ModelSpec
    representation: OutcomeRepresentation
    coefficients: pd.DataFrame
    fitted_values: pd.Series
    observed: pd.Series
    log_likelihood: float
    n_params: int
    converged: bool = True
    aic: Optional[float] = None
    loo: Optional[LooResult] = None
    draws: Mapping[str, np.ndarray] = field(default_factory=lambda: MappingProxyType({}))
    posterior_predictive: Optional[np.ndarray] = None
    diagnostics: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    backend_result: Any = field(default=None, repr=False, compare=False)

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def family(self) -> Family:
        return self.spec.family

    @property
    def estimation(self) -> Estimation:
        return self.spec.estimation

    @property
    def is_bayesian(self) -> bool:
        return self.spec.is_bayesian

    @property
    def n_obs(self) -> int:
        return self.representation.n_obs

    def coefficient(self, term: str) -> float:
        row = self.coefficients.loc[self.coefficients["term"] == term, "estimate"]
        if row.empty:
            raise KeyError(f"{self.name}: no coefficient named '{term}'")
        return float(row.iloc[0])

    def summary_row(self) -> Dict[str, Any]:
        return {
            "model": self.name,
            "family": self.family.value,
            "estimation": self.estimation.value,
            "response": self.representation.response,
            "scale": self.representation.scale,
            "n_obs": self.n_obs,
            "n_params": self.n_params,
            "converged": self.converged,
            "log_likelihood": self.log_likelihood,
            "aic": self.aic if self.aic is not None else np.nan,
            "elpd_loo": self.loo.elpd if self.loo is not None else np.nan,
            "elpd_loo_se": self.loo.se if self.loo is not None else np.nan,
            "formula": self.spec.describe(),
        }


def coefficient_table(estimate: pd.Series, se: pd.Series, lower: pd.Series, upper: pd.Series) -> pd.DataFrame:
    table = pd.DataFrame({
        "term": [str(i) for i in estimate.index],
        "estimate": estimate.to_numpy(dtype=float),
        "se": se.reindex(estimate.index).to_numpy(dtype=float),
        "lower": lower.reindex(estimate.index).to_numpy(dtype=float),
        "upper": upper.reindex(estimate.index).to_numpy(dtype=float),
    })
    return table[COEFFICIENT_COLUMNS]
