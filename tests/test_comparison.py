"""
Tests for AIC / LOO comparison and posterior predictive summaries.

Bayesian fits are assembled from synthetic ArviZ InferenceData so no
sampling is needed.
"""

from types import MappingProxyType

import arviz as az
import numpy as np
import pandas as pd
import pytest

from vaxreanalysis.errors import (
    ComparisonError,
    ConvergenceError,
    IncommensurableComparisonError,
    MissingPosteriorError,
)
from vaxreanalysis.modeling import (
    Estimation,
    Family,
    FittedModel,
    ModelSpec,
    OutcomeRepresentation,
    Term,
    compare,
    compare_aic,
    compare_loo,
    fit,
    loo_difference,
    ppc_summary,
    replicate_draws,
)
from vaxreanalysis.modeling.bayesian import loo_result, pointwise_log_likelihood
from vaxreanalysis.modeling.results import COEFFICIENT_COLUMNS, freeze_array

N_OBS = 30
RESCALED = OutcomeRepresentation("posttest_01", "rescaled-pooled[1,6] N=60", N_OBS)
RAW = OutcomeRepresentation("posttest", "raw", N_OBS)
ITEMS = OutcomeRepresentation("response", "ordinal:items", N_OBS)


def _series(values):
    return pd.Series(np.asarray(values, dtype=float), name="y")


def ml_fit(name, aic, representation=RESCALED, n_params=3, converged=True):
    return FittedModel(
        spec=ModelSpec(name, representation.response),
        representation=representation,
        coefficients=pd.DataFrame(columns=COEFFICIENT_COLUMNS),
        fitted_values=_series(np.zeros(representation.n_obs)),
        observed=_series(np.zeros(representation.n_obs)),
        log_likelihood=(2 * n_params - aic) / 2,
        n_params=n_params,
        converged=converged,
        aic=aic,
    )


def synthetic_idata(log_lik):
    """InferenceData with a posterior and a pointwise log-likelihood of shape (chain, draw, obs)."""
    chains, draws, _ = log_lik.shape
    return az.from_dict(
        posterior={"beta": np.zeros((chains, draws))},
        log_likelihood={"y": log_lik},
        dims={"y": ["obs"]},
    )


def bayes_fit(name, log_lik, representation=RESCALED, replicates=None):
    idata = synthetic_idata(log_lik)
    observed = np.linspace(0.2, 0.8, representation.n_obs)
    return FittedModel(
        spec=ModelSpec(name, representation.response, family=Family.BETA, estimation=Estimation.BAYES),
        representation=representation,
        coefficients=pd.DataFrame(columns=COEFFICIENT_COLUMNS),
        fitted_values=_series(observed),
        observed=_series(observed),
        log_likelihood=pointwise_log_likelihood(idata),
        n_params=1,
        loo=loo_result(idata),
        draws=MappingProxyType({"beta": freeze_array(np.zeros(log_lik.shape[0] * log_lik.shape[1]))}),
        posterior_predictive=None if replicates is None else freeze_array(replicates),
        backend_result=idata,
    )


@pytest.fixture
def rng():
    return np.random.default_rng(11)


@pytest.fixture
def log_lik(rng):
    return rng.normal(-1.0, 0.3, size=(2, 200, N_OBS))


class TestAIC:
    """Test AIC ranking and its commensurability checks."""

    def test_ranking_and_weights(self):
        table = compare_aic([ml_fit("a", 110.0), ml_fit("b", 100.0), ml_fit("c", 104.0)])
        assert list(table["model"]) == ["b", "c", "a"]
        assert list(table["rank"]) == [1, 2, 3]
        assert table["delta_aic"].iloc[0] == 0
        assert table["akaike_weight"].sum() == pytest.approx(1.0)
        assert table["akaike_weight"].is_monotonic_decreasing

    def test_incommensurable_representations(self):
        """Raw ordinal items versus rescaled continuous outcome."""
        with pytest.raises(IncommensurableComparisonError):
            compare([ml_fit("ordinal", 100.0, ITEMS), ml_fit("beta", 90.0, RESCALED)], criterion="aic")

    def test_different_n_incommensurable(self):
        smaller = OutcomeRepresentation(RESCALED.response, RESCALED.scale, N_OBS - 1)
        with pytest.raises(IncommensurableComparisonError):
            compare_aic([ml_fit("a", 100.0), ml_fit("b", 90.0, smaller)])

    def test_bayesian_fit_rejected(self, log_lik):
        with pytest.raises(IncommensurableComparisonError):
            compare_aic([ml_fit("a", 100.0), bayes_fit("b", log_lik)])

    def test_non_converged_rejected(self):
        with pytest.raises(ComparisonError):
            compare_aic([ml_fit("a", 100.0), ml_fit("b", 90.0, converged=False)])

    def test_real_fits_incommensurable(self, datasets):
        """An ordinal fit to raw items and a beta fit to rescaled scores cannot share an AIC table."""
        ordinal = ModelSpec("ord", "response", (Term("time"),), family=Family.ORDINAL)
        beta = ModelSpec("beta", "posttest_01", (Term("pretest_01"),), family=Family.BETA, representation="rescaled")
        fits = []
        for spec, key in ((ordinal, "long_items"), (beta, "wide")):
            try:
                fits.append(fit(spec, datasets[key]))
            except ConvergenceError as exc:
                fits.append(exc.fitted)
        with pytest.raises(IncommensurableComparisonError):
            compare(fits, criterion="aic")


class TestLOO:
    """Test paired ELPD differences and LOO ranking."""

    def test_loo_result_shape(self, log_lik):
        fitted = bayes_fit("a", log_lik)
        assert fitted.loo.n_obs == N_OBS
        assert fitted.loo.pointwise.sum() == pytest.approx(fitted.loo.elpd)
        assert not fitted.loo.pointwise.flags.writeable

    def test_difference_antisymmetric(self, rng, log_lik):
        a = bayes_fit("a", log_lik)
        b = bayes_fit("b", log_lik + rng.normal(0, 0.2, size=log_lik.shape))
        diff_ab, se_ab = loo_difference(a, b)
        diff_ba, se_ba = loo_difference(b, a)
        assert diff_ab == pytest.approx(-diff_ba)
        assert se_ab == pytest.approx(se_ba)
        assert se_ab > 0

    def test_clear_winner(self, log_lik):
        good = bayes_fit("good", log_lik)
        bad = bayes_fit("bad", log_lik - 1.0)
        table = compare_loo([bad, good])
        assert list(table["model"]) == ["good", "bad"]
        assert table["verdict"].tolist() == ["best", "worse"]
        assert table["elpd_diff"].iloc[1] == pytest.approx(-N_OBS, rel=1e-6)

    def test_tie_not_distinguishable(self, log_lik):
        table = compare([bayes_fit("a", log_lik), bayes_fit("b", log_lik.copy())], criterion="loo")
        assert table["verdict"].iloc[1] == "not clearly distinguishable"
        assert not table["distinguishable"].iloc[1]

    def test_ml_fit_has_no_posterior(self, log_lik):
        with pytest.raises(MissingPosteriorError):
            compare([bayes_fit("a", log_lik), ml_fit("b", 90.0)], criterion="loo")

    def test_incommensurable(self, log_lik):
        with pytest.raises(IncommensurableComparisonError):
            loo_difference(bayes_fit("a", log_lik), bayes_fit("b", log_lik, RAW))


class TestCompare:
    def test_unknown_criterion(self):
        with pytest.raises(ValueError):
            compare([ml_fit("a", 1.0)], criterion="bic")

    def test_empty(self):
        with pytest.raises(ComparisonError):
            compare([], criterion="loo")


class TestPPC:
    """Test posterior predictive summaries."""

    def test_summary(self, rng, log_lik):
        reps = rng.beta(2, 2, size=(400, N_OBS))
        fitted = bayes_fit("a", log_lik, replicates=reps)
        table = ppc_summary(fitted)
        assert {"mean", "sd", "skew", "min", "max", "q05", "q50", "q95"} <= set(table["statistic"])
        assert table["ppp_value"].between(0, 1).all()
        assert (table["replicated_lower"] <= table["replicated_upper"]).all()
        assert (table["model"] == "a").all()

    def test_replicates_read_only(self, rng, log_lik):
        fitted = bayes_fit("a", log_lik, replicates=rng.beta(2, 2, size=(50, N_OBS)))
        draws = replicate_draws(fitted)
        assert draws.shape == (50, N_OBS)
        with pytest.raises(ValueError):
            draws[0, 0] = 1.0

    def test_missing_replicates(self):
        with pytest.raises(MissingPosteriorError):
            ppc_summary(ml_fit("a", 1.0))
