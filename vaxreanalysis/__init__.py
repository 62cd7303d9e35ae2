"""
vaxreanalysis
=============

Re-analysis of a pre/post vaccination-attitude intervention with competing
statistical models: OLS on change scores and ANCOVA, beta regression on
rescaled scores, linear mixed and cumulative-logit models on the long
format, and their Bayesian counterparts compared by PSIS-LOO.

    from vaxreanalysis import run_pipeline
    result = run_pipeline("data/vaccination_attitudes.csv", ml_only=True)
    result.comparisons["aic_comparison_posttest"]

Subpackages:
    preprocessing   loading, filtering, rescaling, reshaping
    modeling        ModelSpec, fitting backends, comparison
"""

from .catalogue import CatalogueEntry, build_datasets, build_model_catalogue, prepare_datasets
from .errors import (
    ComparisonError,
    ConvergenceError,
    DataError,
    ReanalysisError,
    SpecificationError,
)
from .pipeline import PipelineResult, run_pipeline

__version__ = "0.1.0"

__all__ = [
    "CatalogueEntry",
    "build_datasets",
    "build_model_catalogue",
    "prepare_datasets",
    "ComparisonError",
    "ConvergenceError",
    "DataError",
    "ReanalysisError",
    "SpecificationError",
    "PipelineResult",
    "run_pipeline",
]
