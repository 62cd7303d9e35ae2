"""
Structured model declarations.

A ``ModelSpec`` replaces a formula string: response, fixed-effect terms,
random-intercept groupings, error family, estimation mode and sampler
controls are explicit fields. The backend formula is generated from them.

Usage:
    spec = ModelSpec(
        name="ols_ancova",
        response="posttest",
        fixed_terms=(Term("pretest"), Term("Condition")),
        categorical=("Condition",),
    )
    spec.formula()  # 'posttest ~ pretest + C(Condition)'
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional, Tuple

from ..errors import SpecificationError
from .constants import CHAINS, DRAWS, ESS_MIN, RANDOM_SEED, RHAT_MAX, TARGET_ACCEPT, TUNE


class Family(str, Enum):
    GAUSSIAN = "gaussian"
    BETA = "beta"
    ORDINAL = "ordinal"


class Estimation(str, Enum):
    ML = "ml"
    BAYES = "bayes"


@dataclass(frozen=True)
class Term:
    """A fixed-effect term; more than one variable makes an interaction."""
    variables: Tuple[str, ...]

    def __init__(self, *variables: str):
        if not variables:
            raise SpecificationError("a term needs at least one variable")
        object.__setattr__(self, "variables", tuple(variables))

    @property
    def is_interaction(self) -> bool:
        return len(self.variables) > 1

    def formula(self, categorical: Tuple[str, ...] = ()) -> str:
        return ":".join(f"C({v})" if v in categorical else v for v in self.variables)

    def __str__(self) -> str:
        return ":".join(self.variables)


@dataclass(frozen=True)
class SamplerControls:
    """NUTS settings and the R-hat / bulk-ESS thresholds a run must meet."""
    draws: int = DRAWS
    tune: int = TUNE
    chains: int = CHAINS
    target_accept: float = TARGET_ACCEPT
    random_seed: Optional[int] = RANDOM_SEED
    cores: Optional[int] = None
    rhat_max: float = RHAT_MAX
    ess_min: float = ESS_MIN

    def __post_init__(self):
        if self.draws < 1 or self.chains < 1 or self.tune < 0:
            raise SpecificationError(
                f"invalid sampler controls: draws={self.draws}, tune={self.tune}, chains={self.chains}"
            )
        if not 0 < self.target_accept < 1:
            raise SpecificationError(f"target_accept must be in (0, 1), got {self.target_accept}")
        if self.rhat_max < 1 or self.ess_min < 0:
            raise SpecificationError(
                f"invalid convergence thresholds: rhat_max={self.rhat_max}, ess_min={self.ess_min}"
            )


@dataclass(frozen=True)
class ModelSpec:
    """
    Declarative description of one model.

    Attributes
    ----------
    name : str
        Identifier used in tables and error messages.
    response : str
        Outcome column.
    fixed_terms : tuple of Term
        Population-level predictors; an intercept is always included
        (ordinal models absorb it into the thresholds).
    random_groupings : tuple of str
        Columns given random intercepts (crossed when more than one).
    family : Family
        gaussian, beta (logit link, response in (0, 1)) or ordinal
        (cumulative logit, proportional odds).
    estimation : Estimation
        Maximum likelihood or Bayesian sampling.
    categorical : tuple of str
        Predictors coded as treatment contrasts against their first level.
    representation : str
        Label of the outcome scale (raw, change, rescaled ... ); models are
        only compared when their representations agree.
    sampler : SamplerControls
        Used when ``estimation`` is BAYES.
    """
    name: str
    response: str
    fixed_terms: Tuple[Term, ...] = ()
    random_groupings: Tuple[str, ...] = ()
    family: Family = Family.GAUSSIAN
    estimation: Estimation = Estimation.ML
    categorical: Tuple[str, ...] = ()
    representation: str = "raw"
    sampler: SamplerControls = field(default_factory=SamplerControls)
    description: str = ""

    def __post_init__(self):
        if not self.name or not self.response:
            raise SpecificationError("model needs a name and a response", model=self.name or None)
        object.__setattr__(self, "family", Family(self.family))
        object.__setattr__(self, "estimation", Estimation(self.estimation))
        object.__setattr__(self, "fixed_terms", tuple(self.fixed_terms))
        object.__setattr__(self, "random_groupings", tuple(self.random_groupings))
        object.__setattr__(self, "categorical", tuple(self.categorical))
        for term in self.fixed_terms:
            if not isinstance(term, Term):
                raise SpecificationError(f"fixed terms must be Term instances, got {term!r}", model=self.name)
            if self.response in term.variables:
                raise SpecificationError(f"response '{self.response}' used as a predictor", model=self.name)
        if self.response in self.random_groupings:
            raise SpecificationError(f"response '{self.response}' used as a grouping", model=self.name)

    @property
    def is_bayesian(self) -> bool:
        return self.estimation is Estimation.BAYES

    @property
    def is_hierarchical(self) -> bool:
        return bool(self.random_groupings)

    def predictors(self) -> List[str]:
        seen: List[str] = []
        for term in self.fixed_terms:
            for var in term.variables:
                if var not in seen:
                    seen.append(var)
        return seen

    def variables(self) -> List[str]:
        """All columns the model reads."""
        return [self.response] + self.predictors() + [g for g in self.random_groupings]

    def rhs(self) -> str:
        parts = [term.formula(self.categorical) for term in self.fixed_terms]
        return " + ".join(parts) if parts else "1"

    def formula(self) -> str:
        """Fixed-effects formula in statsmodels / patsy syntax."""
        return f"{self.response} ~ {self.rhs()}"

    def with_sampler(self, sampler: SamplerControls) -> "ModelSpec":
        return replace(self, sampler=sampler)

    def describe(self) -> str:
        groups = " + ".join(f"(1|{g})" for g in self.random_groupings)
        formula = self.formula() + (f" + {groups}" if groups else "")
        return f"{self.name}: {formula} [{self.family.value}, {self.estimation.value}]"
