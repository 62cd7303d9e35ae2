"""
Modeling Module
===============

Model declarations, fitting (statsmodels ML / PyMC sampling) and
comparison (AIC, PSIS-LOO, posterior predictive summaries).

    from vaxreanalysis.modeling import ModelSpec, Term, Family, Estimation, fit, compare

    spec = ModelSpec("ols_ancova", "posttest", (Term("pretest"), Term("Condition")),
                     categorical=("Condition",))
    ranking = compare([fit(spec, wide), fit(null_spec, wide)], criterion="aic")
"""

from .comparison import (
    compare,
    compare_aic,
    compare_loo,
    is_distinguishable,
    loo_difference,
    ppc_summary,
    replicate_draws,
)
from .fitting import fit, fit_all, representation_for
from .results import FittedModel, LooResult, OutcomeRepresentation
from .spec import Estimation, Family, ModelSpec, SamplerControls, Term
from .validation import validate

__all__ = [
    "compare",
    "compare_aic",
    "compare_loo",
    "is_distinguishable",
    "loo_difference",
    "ppc_summary",
    "replicate_draws",
    "fit",
    "fit_all",
    "representation_for",
    "FittedModel",
    "LooResult",
    "OutcomeRepresentation",
    "Estimation",
    "Family",
    "ModelSpec",
    "SamplerControls",
    "Term",
    "validate",
]
