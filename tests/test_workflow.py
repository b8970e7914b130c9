import numpy as np
import pandas as pd
import pytest

from src.examples import EXAMPLES, get_example
from src.workflow import b_scaling_study, run_example


@pytest.mark.parametrize("name", ["glm", "gam", "ppm"])
def test_run_example_keeps_naive_layout(name, heart_data, eucalypt_data):
    data = eucalypt_data if name == "ppm" else heart_data
    result = run_example(name, B=3, seed=11, data=data, max_iter=10)

    assert list(result.models) == ["naive", "mcem", "simex"]
    naive_names = result.models["naive"].names
    for method, fit in result.models.items():
        assert fit.names == naive_names, method
        assert fit.elapsed_seconds >= 0.0
        assert np.all(np.isfinite(fit.params.to_numpy()))

    coef = result.coefficient_table()
    assert coef.index.tolist() == naive_names
    assert {"naive_estimate", "naive_se", "mcem_estimate", "mcem_se", "simex_estimate", "simex_se"} <= set(coef.columns)

    timing = result.timing_table()
    assert set(timing["method"]) == {"naive", "mcem", "simex"}
    assert (timing["seconds"] >= 0).all()


def test_naive_fit_does_not_depend_on_B(heart_data):
    small = run_example("glm", B=2, seed=5, methods=["naive", "mcem"], data=heart_data)
    large = run_example("glm", B=6, seed=5, methods=["naive", "mcem"], data=heart_data)
    pd.testing.assert_series_equal(small.models["naive"].params, large.models["naive"].params)


def test_same_seed_and_B_reproduce_corrections(heart_data):
    a = run_example("glm", B=4, seed=99, data=heart_data)
    b = run_example("glm", B=4, seed=99, data=heart_data)
    for method in ("mcem", "simex"):
        np.testing.assert_allclose(a.models[method].params.to_numpy(), b.models[method].params.to_numpy(), rtol=1e-12)


def test_naive_only_run(heart_data):
    result = run_example("glm", methods=["naive"], data=heart_data)
    assert list(result.models) == ["naive"]


def test_unknown_method_and_example_raise(heart_data):
    with pytest.raises(ValueError, match="Unknown methods"):
        run_example("glm", methods=["naive", "bootstrap"], data=heart_data)
    with pytest.raises(ValueError, match="Unknown example"):
        get_example("lasso")


def test_examples_registry():
    assert set(EXAMPLES) == {"glm", "gam", "ppm"}
    assert get_example("ppm").family == "poisson"
    assert get_example("glm").simex_variable == "w1"


def test_b_scaling_study_rows(heart_data):
    study = b_scaling_study("glm", [2, 4], seed=3, methods=["naive", "mcem"], data=heart_data)
    assert study.columns.tolist() == ["example", "method", "B", "seconds", "n_iter", "converged"]
    assert study["B"].tolist() == [2, 4]
    assert (study["method"] == "mcem").all()
    assert (study["seconds"] >= 0).all()
