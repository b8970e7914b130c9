from __future__ import annotations

import copy
import time
from typing import Optional

import numpy as np
import pandas as pd
import statsmodels.api as sm

from src.models.design import DesignSpec
from src.models.families import resolve_family
from src.models.results import FittedModel


def fit_glm(
    exog: pd.DataFrame,
    endog: np.ndarray,
    family: str,
    var_weights: Optional[np.ndarray] = None,
    start_params: Optional[np.ndarray] = None,
):
    """IRLS fit of a statsmodels GLM; estimation errors propagate to the caller."""
    model = sm.GLM(endog, exog, family=resolve_family(family), var_weights=var_weights)
    return model.fit(start_params=start_params)


def fit_naive(spec: DesignSpec, data: pd.DataFrame, family: str) -> FittedModel:
    """Fit the model treating every covariate as exactly measured.

    Freezes the data-dependent bases of a copy of ``spec`` on ``data``; later
    corrected fits reuse them and ``spec`` itself is left untouched.
    """

    start = time.perf_counter()
    spec = copy.deepcopy(spec).fit(data)
    exog = spec.build(data)
    endog = spec.endog(data)
    weights = spec.prior_weights(data)
    res = fit_glm(exog, endog, family, var_weights=weights)
    elapsed = time.perf_counter() - start

    return FittedModel(
        method="naive",
        family=family,
        params=pd.Series(np.asarray(res.params, dtype=float), index=exog.columns),
        cov=pd.DataFrame(np.asarray(res.cov_params(), dtype=float), index=exog.columns, columns=exog.columns),
        scale=float(res.scale),
        fitted=np.asarray(res.mu, dtype=float),
        elapsed_seconds=elapsed,
        spec=spec,
        data=data,
        n_obs=len(data),
        converged=bool(res.converged),
        n_iter=int(res.fit_history["iteration"]),
    )
