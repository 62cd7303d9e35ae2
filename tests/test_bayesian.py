"""
Tests for the PyMC backends.

Sampling uses a handful of draws on one chain, so these fits are expected
to fall short of the ESS threshold; the partial fit attached to the
ConvergenceError is inspected instead.
"""

import numpy as np
import pytest
from pymc.exceptions import SamplingError

from vaxreanalysis import run_pipeline
from vaxreanalysis.errors import ConvergenceError
from vaxreanalysis.modeling import Estimation, Family, ModelSpec, SamplerControls, Term, fit, loo_difference
from vaxreanalysis.modeling import bayesian
from vaxreanalysis.modeling.bayesian import build_model, design_matrix

FAST = SamplerControls(draws=60, tune=60, chains=1, random_seed=3)


def bayes(name, response, terms, family, groupings=(), representation="raw"):
    return ModelSpec(
        name, response, terms, random_groupings=groupings, family=family,
        estimation=Estimation.BAYES, categorical=("Condition",),
        representation=representation, sampler=FAST,
    )


def sample_or_partial(spec, data):
    try:
        return fit(spec, data)
    except ConvergenceError as exc:
        assert exc.fitted is not None
        assert "max_rhat" in exc.diagnostics
        return exc.fitted


class TestModelGraph:
    """Model construction only; no sampling."""

    def test_ordinal_design_drops_intercept(self, datasets):
        spec = bayes("ord", "response", (Term("time"),), Family.ORDINAL)
        X = design_matrix(spec, datasets["long_items"])
        assert list(X.columns) == ["time"]

    def test_crossed_intercepts(self, datasets):
        from vaxreanalysis.modeling import validate

        spec = bayes("ord", "response", (Term("time"),), Family.ORDINAL, groupings=("participant_id", "item"))
        df = validate(spec, datasets["long_items"])
        model = build_model(spec, df)
        names = {rv.name for rv in model.free_RVs}
        assert {"beta", "cutpoints", "sd_participant_id", "z_participant_id", "sd_item", "z_item"} <= names
        assert len(model.coords["item"]) == 5


@pytest.mark.slow
class TestSampling:
    """Test short NUTS runs end to end."""

    def test_beta_ancova(self, datasets):
        spec = bayes(
            "bayes_beta", "posttest_01", (Term("pretest_01"), Term("Condition")), Family.BETA,
            representation="rescaled",
        )
        wide = datasets["wide"]
        fitted = sample_or_partial(spec, wide)

        assert fitted.is_bayesian
        assert fitted.aic is None
        assert fitted.posterior_predictive.shape == (60, len(wide))
        assert not fitted.posterior_predictive.flags.writeable
        assert fitted.loo.n_obs == len(wide)
        assert "phi" in fitted.draws
        assert all(len(d) == 60 for d in fitted.draws.values())
        assert np.all((fitted.posterior_predictive > 0) & (fitted.posterior_predictive < 1))

    def test_gaussian_and_loo_difference(self, datasets):
        wide = datasets["wide"]
        full = sample_or_partial(bayes("full", "posttest", (Term("pretest"), Term("Condition")), Family.GAUSSIAN), wide)
        null = sample_or_partial(bayes("null", "posttest", (Term("pretest"),), Family.GAUSSIAN), wide)
        diff, se = loo_difference(full, null)
        back, back_se = loo_difference(null, full)
        assert diff == pytest.approx(-back)
        assert se == pytest.approx(back_se)

    def test_hierarchical_ordinal(self, datasets):
        items = datasets["long_items"]
        spec = bayes(
            "ord", "response", (Term("time"), Term("Condition")), Family.ORDINAL,
            groupings=("participant_id", "item"), representation="items",
        )
        fitted = sample_or_partial(spec, items)
        reps = fitted.posterior_predictive
        assert reps.shape == (60, len(items))
        assert set(np.unique(reps)) <= set(np.unique(items["response"]).astype(float))
        assert any(name.startswith("cutpoints[") for name in fitted.draws)
        assert fitted.representation.scale == "ordinal:items"


class TestSamplerFailure:
    """A sampler that cannot start is reported as a convergence failure."""

    def test_sampling_error_mapped(self, monkeypatch, datasets):
        def bad_energy(spec, df):
            raise SamplingError("Initial evaluation of model at starting point failed!")

        monkeypatch.setattr(bayesian, "sample", bad_energy)
        spec = bayes("bayes_gaussian", "posttest", (Term("pretest"), Term("Condition")), Family.GAUSSIAN)
        with pytest.raises(ConvergenceError) as info:
            fit(spec, datasets["wide"])
        assert info.value.stage == "sample"
        assert info.value.model == "bayes_gaussian"
        assert info.value.fitted is None

    def test_pipeline_continues(self, monkeypatch, participants):
        def bad_energy(spec, df):
            raise SamplingError("Bad initial energy")

        monkeypatch.setattr(bayesian, "sample", bad_energy)
        result = run_pipeline(
            raw=participants, models=["ols_ancova", "bayes_gaussian_ancova"], save=False, verbose=False,
        )
        assert "ols_ancova" in result.fits
        assert "bayes_gaussian_ancova" not in result.unconverged
        row = result.failures.set_index("model").loc["bayes_gaussian_ancova"]
        assert row["kind"] == "convergence"
        assert row["stage"] == "sample"
