import matplotlib.pyplot as plt
import numpy as np
import pytest

from src.config import FRAMINGHAM_SIGMA_SQ_U
from src.correction.mcem import refit_mcem
from src.correction.simex import simex
from src.examples import eucalypt_ppm_spec, heart_gam_spec, heart_glm_spec
from src.models.naive import fit_naive
from src.reporting.figures import (
    plot_coefficients,
    plot_ppm_intensity,
    plot_simex_extrapolation,
    plot_smooth_terms,
    save_figure,
)
from src.reporting.tables import coefficient_table, format_table, relative_change_table, timing_table


@pytest.fixture(scope="module")
def heart_models(heart_data):
    naive = fit_naive(heart_glm_spec(), heart_data, "binomial")
    mcem = refit_mcem(naive, FRAMINGHAM_SIGMA_SQ_U, heart_data[["w1"]], B=5, seed=1, max_iter=10)
    sim = simex(naive, "w1", np.sqrt(FRAMINGHAM_SIGMA_SQ_U), B=3, seed=1)
    return {"naive": naive, "mcem": mcem, "simex": sim}


def test_coefficient_table_layout(heart_models):
    table = coefficient_table(heart_models)
    assert table.index.tolist() == ["(Intercept)", "SBP", "chol. level", "age", "smoke"]
    assert table.columns.tolist() == [
        "naive_estimate", "naive_se", "mcem_estimate", "mcem_se", "simex_estimate", "simex_se",
    ]
    assert np.allclose(table["naive_estimate"], heart_models["naive"].params)
    assert "SBP" in format_table(table)


def test_timing_and_relative_change(heart_models):
    timing = timing_table(heart_models)
    assert timing["method"].tolist() == ["naive", "mcem", "simex"]
    assert (timing["seconds"] >= 0).all()
    assert np.isnan(timing.loc[0, "B"])
    assert timing.loc[1, "B"] == 5

    change = relative_change_table(heart_models)
    assert change.columns.tolist() == ["mcem_pct_change", "simex_pct_change"]


def test_mismatched_models_are_rejected(heart_models, heart_data):
    gam = fit_naive(heart_gam_spec(), heart_data, "binomial")
    with pytest.raises(ValueError, match="differ"):
        coefficient_table({"naive": heart_models["naive"], "gam": gam})
    with pytest.raises(ValueError, match="No fitted models"):
        coefficient_table({})


def test_figures_render(tmp_path, heart_models, heart_data, eucalypt_data):
    fig = plot_coefficients(heart_models, title="heart")
    save_figure(fig, tmp_path / "coef.png")
    plt.close(fig)

    fig = plot_simex_extrapolation(heart_models["simex"], terms=["SBP"])
    save_figure(fig, tmp_path / "simex.png")
    plt.close(fig)

    gam = fit_naive(heart_gam_spec(), heart_data, "binomial")
    fig = plot_smooth_terms({"naive": gam})
    save_figure(fig, tmp_path / "smooth.png")
    plt.close(fig)

    ppm = fit_naive(eucalypt_ppm_spec(), eucalypt_data, "poisson")
    fig = plot_ppm_intensity({"naive": ppm})
    save_figure(fig, tmp_path / "ppm.png")
    plt.close(fig)

    for name in ["coef.png", "simex.png", "smooth.png", "ppm.png"]:
        assert (tmp_path / name).exists()

    with pytest.raises(ValueError, match="no smooth terms"):
        plot_smooth_terms(heart_models)
    with pytest.raises(ValueError, match="SIMEX"):
        plot_simex_extrapolation(heart_models["naive"])


def test_partial_effect_is_centred(heart_data):
    gam = fit_naive(heart_gam_spec(), heart_data, "binomial")
    curve = gam.partial_effect("SBP")
    assert curve.columns.tolist() == ["x", "estimate", "se", "lower", "upper"]
    assert curve["estimate"].mean() == pytest.approx(0.0, abs=1e-10)
    assert (curve["se"] >= 0).all()
