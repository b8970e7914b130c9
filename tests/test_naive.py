import numpy as np
import pytest
import statsmodels.api as sm

from src.examples import eucalypt_ppm_spec, heart_gam_spec, heart_glm_spec
from src.models.design import DesignSpec, Linear
from src.models.families import resolve_family
from src.models.naive import fit_naive


def test_naive_glm_matches_statsmodels(heart_data):
    fit = fit_naive(heart_glm_spec(), heart_data, "binomial")
    exog = sm.add_constant(heart_data[["w1", "z1", "z2", "z3"]])
    ref = sm.GLM(heart_data["Y"], exog, family=sm.families.Binomial()).fit()

    assert fit.names == ["(Intercept)", "SBP", "chol. level", "age", "smoke"]
    assert np.allclose(fit.params.to_numpy(), ref.params.to_numpy(), rtol=1e-6)
    assert np.allclose(fit.bse.to_numpy(), ref.bse.to_numpy(), rtol=1e-6)
    assert fit.method == "naive"
    assert fit.converged
    assert fit.elapsed_seconds >= 0.0
    assert fit.fitted.shape == (len(heart_data),)


def test_naive_ppm_uses_quadrature_weights(eucalypt_data):
    fit = fit_naive(eucalypt_ppm_spec(), eucalypt_data, "poisson")
    assert fit.names[:3] == ["(Intercept)", "MNT", "MNT^2"]
    intensity = fit.predict(eucalypt_data)
    assert (intensity > 0).all()
    # The Berman-Turner score equation with an intercept equates the expected and observed counts.
    expected_count = float(np.sum(eucalypt_data["p.wt"] * intensity))
    assert expected_count == pytest.approx(eucalypt_data["Y.obs"].sum(), rel=1e-4)


def test_naive_fit_does_not_touch_data(heart_data):
    before = heart_data.copy()
    fit_naive(heart_glm_spec(), heart_data, "binomial")
    assert before.equals(heart_data)


def test_refitting_a_spec_leaves_earlier_fits_unchanged(heart_data):
    spec = heart_gam_spec()
    first = fit_naive(spec, heart_data, "binomial")
    before = first.predict(heart_data)
    effect_before = first.partial_effect("SBP")

    fit_naive(spec, heart_data.iloc[:400], "binomial")

    np.testing.assert_allclose(first.predict(heart_data), before, rtol=0, atol=0)
    np.testing.assert_allclose(first.partial_effect("SBP").to_numpy(), effect_before.to_numpy(), rtol=0, atol=0)
    assert first.spec is not spec


def test_summary_frame_has_wald_columns(heart_data):
    frame = fit_naive(heart_glm_spec(), heart_data, "binomial").summary_frame()
    assert frame.columns.tolist() == ["estimate", "se", "z", "p_value"]
    assert ((frame["p_value"] >= 0) & (frame["p_value"] <= 1)).all()


def test_families():
    for name in ["gaussian", "binomial", "poisson", "gamma"]:
        assert resolve_family(name) is not None
    with pytest.raises(ValueError, match="Unknown family"):
        resolve_family("tweedie")


def test_gaussian_naive_is_attenuated(linear_me_data):
    fit = fit_naive(DesignSpec(response="y", terms=[Linear("w"), Linear("z")]), linear_me_data, "gaussian")
    # Reliability ~ 1 / 1.49, so the slope shrinks from 3 towards 2.
    assert 1.7 < fit.params["w"] < 2.4
    assert fit.scale > 1.0
