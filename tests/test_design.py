import numpy as np
import pandas as pd
import pytest

from src.examples import eucalypt_ppm_spec, heart_gam_spec, heart_glm_spec
from src.models.design import INTERCEPT, DesignSpec, Linear, Poly, Smooth


def test_linear_terms_use_labels_in_order(heart_data):
    spec = heart_glm_spec().fit(heart_data)
    X = spec.build(heart_data)
    assert X.columns.tolist() == ["(Intercept)", "SBP", "chol. level", "age", "smoke"]
    assert np.allclose(X["(Intercept)"], 1.0)
    assert np.allclose(X["SBP"], heart_data["w1"])
    assert spec.source_columns == ["w1", "z1", "z2", "z3"]


def test_poly_columns_are_raw_powers(eucalypt_data):
    spec = eucalypt_ppm_spec().fit(eucalypt_data)
    X = spec.build(eucalypt_data)
    assert X.columns.tolist() == [
        INTERCEPT, "MNT", "MNT^2", "FC", "FC^2", "Rain", "Rain^2", "D.Main", "D.Main^2",
    ]
    assert np.allclose(X["MNT^2"], eucalypt_data["MNT"] ** 2)


def test_point_process_response_is_scaled_by_weights(eucalypt_data):
    spec = eucalypt_ppm_spec()
    y = spec.endog(eucalypt_data)
    expected = eucalypt_data["Y.obs"].to_numpy() / eucalypt_data["p.wt"].to_numpy()
    assert np.allclose(y, expected)
    assert np.allclose(spec.prior_weights(eucalypt_data), eucalypt_data["p.wt"])


def test_smooth_basis_is_frozen_after_fit(heart_data):
    spec = heart_gam_spec().fit(heart_data)
    X = spec.build(heart_data)
    assert [c for c in X.columns if c.startswith("s(SBP)")] == [f"s(SBP).{j}" for j in range(1, 7)]

    shifted = heart_data.copy()
    shifted["w1"] = shifted["w1"] + 0.05
    X_shifted = spec.build(shifted)
    # Same column space and same basis for the untouched covariates.
    assert X_shifted.columns.tolist() == X.columns.tolist()
    assert np.allclose(X_shifted.filter(like="s(age)"), X.filter(like="s(age)"))
    assert not np.allclose(X_shifted.filter(like="s(SBP)"), X.filter(like="s(SBP)"))


def test_smooth_extrapolates_outside_knot_range(heart_data):
    spec = heart_gam_spec().fit(heart_data)
    wide = heart_data.copy()
    wide.loc[wide.index[0], "w1"] = heart_data["w1"].max() + 1.0
    assert np.isfinite(spec.build(wide).to_numpy()).all()


def test_build_before_fit_rejects_smooth(heart_data):
    with pytest.raises(ValueError, match="call DesignSpec.fit"):
        heart_gam_spec().build(heart_data)


def test_missing_column_is_rejected():
    spec = DesignSpec(response="y", terms=[Linear("x")])
    with pytest.raises(ValueError, match="Missing required columns"):
        spec.build(pd.DataFrame({"y": [1.0, 2.0]}))


def test_invalid_specs_are_rejected():
    with pytest.raises(ValueError):
        DesignSpec(response="y", terms=[])
    with pytest.raises(ValueError, match="quadrature weight"):
        DesignSpec(response="y", terms=[Linear("x")], point_process=True)
    with pytest.raises(ValueError, match="Duplicate"):
        DesignSpec(response="y", terms=[Linear("x"), Linear("z", label="x")])
    with pytest.raises(ValueError):
        Poly("x", degree=0)


def test_term_lookup_by_column_or_label():
    spec = DesignSpec(response="y", terms=[Linear("w1", label="SBP"), Smooth("z2", label="age")])
    assert spec.term_for("w1") is spec.term_for("SBP")
    assert spec.term_for("age").column == "z2"
    with pytest.raises(ValueError):
        spec.term_for("nope")
