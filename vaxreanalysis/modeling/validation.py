"""
Pre-fit checks.

Everything that can be decided from the ModelSpec and the data is checked here,
before any optimizer or sampler runs: required columns, the response's
support under the chosen family, and identifiability of random effects.
"""

from __future__ import annotations

import warnings

import numpy as np
import pandas as pd
from pandas.api.types import is_bool_dtype, is_numeric_dtype

from ..errors import (
    IllPosedModelError,
    MissingColumnError,
    SpecificationError,
    UnidentifiableRandomEffectError,
)
from .spec import Estimation, Family, ModelSpec


def _check_columns(spec: ModelSpec, data: pd.DataFrame) -> None:
    missing = [c for c in spec.variables() if c not in data.columns]
    if missing:
        raise MissingColumnError(f"missing column(s) {missing}", model=spec.name, stage="validate")


def _complete_cases(spec: ModelSpec, data: pd.DataFrame) -> pd.DataFrame:
    cols = spec.variables()
    df = data[cols].copy()
    n_before = len(df)
    df = df.dropna(subset=cols)
    dropped = n_before - len(df)
    if dropped:
        warnings.warn(f"{spec.name}: dropped {dropped} row(s) with missing values", UserWarning)
    if df.empty:
        raise IllPosedModelError("no complete observations", model=spec.name, stage="validate")
    return df


def _numeric_response(spec: ModelSpec, y: pd.Series) -> pd.Series:
    if isinstance(y.dtype, pd.CategoricalDtype) or is_bool_dtype(y) or not is_numeric_dtype(y):
        raise IllPosedModelError(
            f"{spec.family.value} family needs a numeric response, '{spec.response}' is {y.dtype}",
            model=spec.name,
            stage="validate",
        )
    return y.astype(float)


def _check_beta_support(spec: ModelSpec, y: pd.Series) -> pd.Series:
    y = _numeric_response(spec, y)
    outside = (y <= 0) | (y >= 1)
    if outside.any():
        raise IllPosedModelError(
            f"beta family needs responses strictly inside (0, 1); {int(outside.sum())} value(s) "
            f"fall outside (min={y.min():g}, max={y.max():g}). Rescale the outcome first.",
            model=spec.name,
            stage="validate",
        )
    return y


def _as_ordinal(spec: ModelSpec, y: pd.Series) -> pd.Series:
    """Return the response as an ordered categorical with only observed levels."""
    if isinstance(y.dtype, pd.CategoricalDtype):
        if not y.cat.ordered:
            raise IllPosedModelError(
                f"ordinal family needs an ordered categorical; '{spec.response}' is unordered",
                model=spec.name,
                stage="validate",
            )
        levels = list(y.cat.categories)
        if all(isinstance(v, (int, float, np.integer, np.floating)) for v in levels):
            if any(b <= a for a, b in zip(levels, levels[1:])):
                raise IllPosedModelError(
                    f"category codes are not monotonic: {levels}", model=spec.name, stage="validate"
                )
        ordinal = y.cat.remove_unused_categories()
    else:
        values = _numeric_response(spec, y)
        if not np.allclose(values, np.round(values)):
            raise IllPosedModelError(
                f"ordinal family needs integer category codes; '{spec.response}' is continuous",
                model=spec.name,
                stage="validate",
            )
        codes = np.round(values).astype(int)
        ordinal = pd.Series(
            pd.Categorical(codes, categories=sorted(codes.unique()), ordered=True),
            index=y.index,
            name=y.name,
        )

    if len(ordinal.cat.categories) < 2:
        raise IllPosedModelError(
            "ordinal family needs at least two observed categories", model=spec.name, stage="validate"
        )
    return ordinal


def _check_groupings(spec: ModelSpec, df: pd.DataFrame) -> None:
    if spec.random_groupings and spec.estimation is Estimation.ML and spec.family is not Family.GAUSSIAN:
        raise SpecificationError(
            f"random effects with {spec.family.value} family need Bayesian estimation",
            model=spec.name,
            stage="validate",
        )

    for grouping in spec.random_groupings:
        counts = df.groupby(grouping, observed=True).size()
        if len(counts) < 2:
            raise UnidentifiableRandomEffectError(
                f"grouping '{grouping}' has {len(counts)} group(s); no variance is estimable",
                model=spec.name,
                stage="validate",
            )
        singletons = counts[counts == 1]
        if not singletons.empty:
            raise UnidentifiableRandomEffectError(
                f"grouping '{grouping}': {len(singletons)} of {len(counts)} group(s) have a single "
                f"observation (e.g. {list(map(str, singletons.index[:3]))})",
                model=spec.name,
                stage="validate",
            )


def validate(spec: ModelSpec, data: pd.DataFrame) -> pd.DataFrame:
    """
    Check ``data`` against ``spec`` and return the frame to fit.

    The returned frame holds only the model's columns and complete rows
    (original index kept); the response is float for gaussian/beta and an
    ordered categorical for the ordinal family.
    """
    _check_columns(spec, data)
    df = _complete_cases(spec, data)

    y = df[spec.response]
    if spec.family is Family.GAUSSIAN:
        df[spec.response] = _numeric_response(spec, y)
    elif spec.family is Family.BETA:
        df[spec.response] = _check_beta_support(spec, y)
    elif spec.family is Family.ORDINAL:
        df[spec.response] = _as_ordinal(spec, y)
    else:
        raise SpecificationError(f"unknown family {spec.family!r}", model=spec.name, stage="validate")

    _check_groupings(spec, df)
    return df
