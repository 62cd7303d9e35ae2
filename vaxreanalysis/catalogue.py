"""
Model Catalogue
===============

The competing models of the re-analysis and the datasets they are fit to.

Datasets (built by ``build_datasets`` / ``prepare_datasets``):
    wide            one row per participant; change score, pooled-N rescaled
                    pretest_01 / posttest_01
    long_aggregate  composite score, one row per participant x phase,
                    rescaled response_01
    long_items      five sub-items, one row per participant x item x phase

Models:
    OLS       change ~ Condition                        (+ null)
    OLS       posttest ~ pretest + Condition            (+ null)
    Beta ML   posttest_01 ~ pretest_01 + Condition      (+ null)
    LMM       response ~ time * Condition + (1|participant)
    Ordinal   item response ~ time * Condition          (ML)
    Bayes     gaussian ANCOVA, beta ANCOVA (+ null), hierarchical beta on
              the long composite, cumulative-logit on items with crossed
              participant and item intercepts
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import pandas as pd

from .errors import DataError
from .modeling.spec import Estimation, Family, ModelSpec, SamplerControls, Term
from .preprocessing import (
    AGGREGATE_ITEM,
    CHANGE_COL,
    CONDITION,
    ITEM_COL,
    PARTICIPANT_ID,
    POSTTEST_COL,
    PRETEST_COL,
    RESPONSE_COL,
    SCORE_LOWER,
    SCORE_UPPER,
    TIME_COL,
    RescaleInfo,
    add_change_score,
    aggregate_columns,
    item_columns,
    lengthen,
    rescale_columns,
)

WIDE = "wide"
LONG_AGGREGATE = "long_aggregate"
LONG_ITEMS = "long_items"

PRE_01 = f"{PRETEST_COL}_01"
POST_01 = f"{POSTTEST_COL}_01"
RESPONSE_01 = f"{RESPONSE_COL}_01"

ID_COLUMNS = [PARTICIPANT_ID, CONDITION]


@dataclass(frozen=True)
class CatalogueEntry:
    spec: ModelSpec
    dataset: str


def _build_wide(analysis: pd.DataFrame, lower: float, upper: float):
    wide = add_change_score(analysis)
    # Pretest and posttest share one N (pooled), as in the ANCOVA beta models
    return rescale_columns(wide, [PRETEST_COL, POSTTEST_COL], lower, upper, basis="pooled")


def _build_long_aggregate(wide: pd.DataFrame, lower: float, upper: float):
    long_agg = lengthen(
        aggregate_columns(wide),
        [f"{AGGREGATE_ITEM}_pre", f"{AGGREGATE_ITEM}_post"],
        id_columns=ID_COLUMNS,
    )
    return rescale_columns(long_agg, [RESPONSE_COL], lower, upper, basis="pooled")


def _build_long_items(wide: pd.DataFrame, lower: float, upper: float):
    return lengthen(wide, item_columns(), id_columns=ID_COLUMNS), {}


def build_datasets(
    analysis: pd.DataFrame,
    lower: float = SCORE_LOWER,
    upper: float = SCORE_UPPER,
) -> Tuple[Dict[str, pd.DataFrame], Dict[str, RescaleInfo], Dict[str, DataError]]:
    """
    Derive each catalogue dataset independently.

    Returns ``(datasets, rescale_infos, errors)``. A dataset that cannot be
    built (e.g. a participant lacks one sub-item) is absent from
    ``datasets`` and its DataError is in ``errors``; the other datasets are
    still returned. Both long tables derive from the wide one, so a wide
    failure takes all three down.
    """
    datasets: Dict[str, pd.DataFrame] = {}
    infos: Dict[str, RescaleInfo] = {}
    errors: Dict[str, DataError] = {}

    try:
        datasets[WIDE], wide_info = _build_wide(analysis, lower, upper)
    except DataError as exc:
        return datasets, infos, {key: exc for key in (WIDE, LONG_AGGREGATE, LONG_ITEMS)}
    infos.update(wide_info)

    for key, builder in ((LONG_AGGREGATE, _build_long_aggregate), (LONG_ITEMS, _build_long_items)):
        try:
            datasets[key], info = builder(datasets[WIDE], lower, upper)
        except DataError as exc:
            errors[key] = exc
            continue
        infos.update(info)
    return datasets, infos, errors


def prepare_datasets(
    analysis: pd.DataFrame,
    lower: float = SCORE_LOWER,
    upper: float = SCORE_UPPER,
) -> Tuple[Dict[str, pd.DataFrame], Dict[str, RescaleInfo]]:
    """
    Derive every dataset the catalogue needs from the analysis set.

    Returns the datasets by key and the RescaleInfo of each rescaled
    column; raises the first DataError if any dataset cannot be built.
    The analysis set itself is left untouched.
    """
    datasets, infos, errors = build_datasets(analysis, lower, upper)
    if errors:
        raise next(iter(errors.values()))
    return datasets, infos


def _scale(infos: Dict[str, RescaleInfo], column: str) -> str:
    info = infos.get(column)
    return info.label if info is not None else "rescaled"


def build_model_catalogue(
    rescale_infos: Dict[str, RescaleInfo],
    sampler: Optional[SamplerControls] = None,
) -> List[CatalogueEntry]:
    sampler = sampler or SamplerControls()
    cond = Term(CONDITION)
    cat = (CONDITION,)
    time_by_cond = (Term(TIME_COL), cond, Term(TIME_COL, CONDITION))
    post_scale = _scale(rescale_infos, POST_01)
    long_scale = _scale(rescale_infos, RESPONSE_01)

    ml = [
        CatalogueEntry(ModelSpec(
            "ols_change", CHANGE_COL, (cond,), categorical=cat, representation="change",
            description="OLS on change scores",
        ), WIDE),
        CatalogueEntry(ModelSpec(
            "ols_change_null", CHANGE_COL, (), representation="change",
            description="Intercept-only change model",
        ), WIDE),
        CatalogueEntry(ModelSpec(
            "ols_ancova", POSTTEST_COL, (Term(PRETEST_COL), cond), categorical=cat,
            description="OLS on raw posttest adjusted for pretest",
        ), WIDE),
        CatalogueEntry(ModelSpec(
            "ols_ancova_null", POSTTEST_COL, (Term(PRETEST_COL),),
            description="OLS ANCOVA without condition",
        ), WIDE),
        CatalogueEntry(ModelSpec(
            "beta_ancova", POST_01, (Term(PRE_01), cond), family=Family.BETA, categorical=cat,
            representation=post_scale, description="ML beta regression on rescaled scores",
        ), WIDE),
        CatalogueEntry(ModelSpec(
            "beta_ancova_null", POST_01, (Term(PRE_01),), family=Family.BETA,
            representation=post_scale, description="ML beta regression without condition",
        ), WIDE),
        CatalogueEntry(ModelSpec(
            "lmm_long", RESPONSE_COL, time_by_cond, random_groupings=(PARTICIPANT_ID,),
            categorical=cat, description="Linear mixed model on the long composite",
        ), LONG_AGGREGATE),
        CatalogueEntry(ModelSpec(
            "ordinal_items_ml", RESPONSE_COL, time_by_cond, family=Family.ORDINAL, categorical=cat,
            representation="items", description="Cumulative-logit model on sub-items",
        ), LONG_ITEMS),
    ]

    bayes = dict(estimation=Estimation.BAYES, sampler=sampler)
    bayesian = [
        CatalogueEntry(ModelSpec(
            "bayes_gaussian_ancova", POSTTEST_COL, (Term(PRETEST_COL), cond), categorical=cat,
            description="Bayesian gaussian ANCOVA", **bayes,
        ), WIDE),
        CatalogueEntry(ModelSpec(
            "bayes_beta_ancova", POST_01, (Term(PRE_01), cond), family=Family.BETA, categorical=cat,
            representation=post_scale, description="Bayesian beta ANCOVA", **bayes,
        ), WIDE),
        CatalogueEntry(ModelSpec(
            "bayes_beta_ancova_null", POST_01, (Term(PRE_01),), family=Family.BETA,
            representation=post_scale, description="Bayesian beta ANCOVA without condition", **bayes,
        ), WIDE),
        CatalogueEntry(ModelSpec(
            "bayes_beta_long", RESPONSE_01, time_by_cond, random_groupings=(PARTICIPANT_ID,),
            family=Family.BETA, categorical=cat, representation=long_scale,
            description="Hierarchical beta model on the long composite", **bayes,
        ), LONG_AGGREGATE),
        CatalogueEntry(ModelSpec(
            "bayes_ordinal_items", RESPONSE_COL, time_by_cond,
            random_groupings=(PARTICIPANT_ID, ITEM_COL), family=Family.ORDINAL, categorical=cat,
            representation="items",
            description="Cumulative-logit model with crossed participant and item intercepts", **bayes,
        ), LONG_ITEMS),
    ]
    return ml + bayesian


def catalogue_table(entries: List[CatalogueEntry]) -> pd.DataFrame:
    return pd.DataFrame([
        {
            "model": e.spec.name,
            "dataset": e.dataset,
            "family": e.spec.family.value,
            "estimation": e.spec.estimation.value,
            "specification": e.spec.describe(),
            "description": e.spec.description,
        }
        for e in entries
    ])
