"""Simulation-extrapolation (SIMEX) correction for one error-contaminated covariate.

For each lambda in the grid the contaminated covariate receives extra noise with
variance ``lambda * sd**2`` B times; the mean refitted coefficients trace the
estimate as a function of total error variance ``(1 + lambda) * sd**2``, and an
extrapolant evaluated at lambda = -1 gives the error-free estimate. Variances
use the jackknife estimator of Stefanski & Cook (1995).
"""

from __future__ import annotations

import logging
import time
from typing import Sequence

import numpy as np
import pandas as pd
from scipy.optimize import curve_fit

from src.config import SIMEX_FITTING_METHOD, SIMEX_LAMBDAS
from src.models.families import resolve_family
from src.models.naive import fit_glm
from src.models.results import FittedModel


logger = logging.getLogger(__name__)

EXTRAPOLANTS = ("linear", "quadratic", "loglinear", "nonlinear")
_MIN_POINTS = {"linear": 2, "quadratic": 3, "loglinear": 2, "nonlinear": 4}


def _polynomial_at_minus_one(lambdas: np.ndarray, values: np.ndarray, degree: int) -> float:
    coef = np.polyfit(lambdas, values, degree)
    return float(np.polyval(coef, -1.0))


def _rational(lam, a, b, c):
    return a + b / (c + lam)


def _rational_start(lambdas: np.ndarray, values: np.ndarray) -> list:
    # Three-point start for a + b / (c + lambda); degenerate paths fall back to a flat start.
    x1, x2, x3 = lambdas[0], np.median(lambdas), lambdas[-1]
    y1, y2, y3 = values[0], np.median(values), values[-1]
    with np.errstate(divide="ignore", invalid="ignore"):
        ratio = (y1 - y2) / (y2 - y3)
        c = ((x2 - x1) * x3 - ratio * (x3 - x2) * x1) / (ratio * (x3 - x2) - (x2 - x1))
        b = (y1 - y2) * (c + x1) * (c + x2) / (x2 - x1)
        a = y1 - b / (c + x1)
    start = [a, b, c]
    if not np.all(np.isfinite(start)):
        return [float(values[-1]), float(values[0] - values[-1]), 1.0]
    return [float(v) for v in start]


def extrapolate(lambdas: np.ndarray, values: np.ndarray, method: str = SIMEX_FITTING_METHOD) -> float:
    """Fit ``values`` against ``lambdas`` and evaluate the extrapolant at lambda = -1."""
    lambdas = np.asarray(lambdas, dtype=float)
    values = np.asarray(values, dtype=float)
    if method not in EXTRAPOLANTS:
        raise ValueError(f"Unknown extrapolation method: {method}. Choices: {list(EXTRAPOLANTS)}")
    if lambdas.size < _MIN_POINTS[method]:
        raise ValueError(f"{method} extrapolation needs at least {_MIN_POINTS[method]} lambda points.")

    if method == "linear":
        return _polynomial_at_minus_one(lambdas, values, 1)
    if method == "quadratic":
        return _polynomial_at_minus_one(lambdas, values, 2)
    if method == "loglinear":
        sign = np.sign(values[0])
        if sign == 0 or not np.all(np.sign(values) == sign):
            logger.warning("Log-linear extrapolation needs estimates of one sign; using quadratic.")
            return _polynomial_at_minus_one(lambdas, values, 2)
        slope, intercept = np.polyfit(lambdas, np.log(sign * values), 1)
        return float(sign * np.exp(intercept - slope))

    try:
        popt, _ = curve_fit(_rational, lambdas, values, p0=_rational_start(lambdas, values), maxfev=20000)
    except RuntimeError:
        logger.warning("Nonlinear extrapolant did not converge; using quadratic.")
        return _polynomial_at_minus_one(lambdas, values, 2)
    estimate = float(_rational(-1.0, *popt))
    if not np.isfinite(estimate):
        logger.warning("Nonlinear extrapolant is singular at lambda=-1; using quadratic.")
        return _polynomial_at_minus_one(lambdas, values, 2)
    return estimate


def simex(
    naive: FittedModel,
    variable: str,
    measurement_error: float,
    B: int = 100,
    lambdas: Sequence[float] = SIMEX_LAMBDAS,
    fitting_method: str = SIMEX_FITTING_METHOD,
    seed=None,
) -> FittedModel:
    """SIMEX-corrected refit of ``naive``.

    ``variable`` is the data column measured with error and ``measurement_error``
    its error standard deviation (not the variance).
    """

    spec = naive.spec
    if variable not in spec.source_columns:
        raise ValueError(f"{variable!r} is not a covariate of the naive model; covariates: {spec.source_columns}")
    if int(B) < 1:
        raise ValueError(f"B must be a positive integer; got {B}.")
    if np.ndim(measurement_error) != 0 or float(measurement_error) <= 0:
        raise ValueError("measurement_error must be a positive scalar standard deviation.")
    grid = np.asarray(list(lambdas), dtype=float)
    if grid.size == 0 or (grid <= 0).any():
        raise ValueError(f"lambdas must be strictly positive; got {list(lambdas)}.")
    if fitting_method not in EXTRAPOLANTS:
        raise ValueError(f"Unknown extrapolation method: {fitting_method}. Choices: {list(EXTRAPOLANTS)}")
    B = int(B)
    sd = float(measurement_error)

    start = time.perf_counter()
    rng = np.random.default_rng(seed)
    data = naive.data
    endog = spec.endog(data)
    weights = spec.prior_weights(data)
    names = naive.params.index
    p = len(names)
    start_params = naive.params.to_numpy()

    mean_params = [naive.params.to_numpy()]
    jackknife_var = [naive.cov.to_numpy()]
    for lam in grid:
        draws = np.empty((B, p))
        model_cov = np.zeros((p, p))
        for b in range(B):
            perturbed = data.copy()
            perturbed[variable] = data[variable].to_numpy(dtype=float) + np.sqrt(lam) * sd * rng.standard_normal(len(data))
            res = fit_glm(spec.build(perturbed), endog, naive.family, var_weights=weights, start_params=start_params)
            draws[b] = np.asarray(res.params, dtype=float)
            model_cov += np.asarray(res.cov_params(), dtype=float)
        mean_params.append(draws.mean(axis=0))
        between = np.atleast_2d(np.cov(draws, rowvar=False)) if B > 1 else np.zeros((p, p))
        jackknife_var.append(model_cov / B - between)
        logger.debug("SIMEX lambda=%.2f done (B=%d).", lam, B)

    all_lambdas = np.concatenate([[0.0], grid])
    path = np.vstack(mean_params)
    params = np.array([extrapolate(all_lambdas, path[:, j], fitting_method) for j in range(p)])

    var_path = np.stack(jackknife_var)
    cov = np.empty((p, p))
    for i in range(p):
        for j in range(i, p):
            cov[i, j] = cov[j, i] = _polynomial_at_minus_one(all_lambdas, var_path[:, i, j], 2)

    family = resolve_family(naive.family)
    fitted = family.link.inverse(spec.build(data).to_numpy() @ params)
    elapsed = time.perf_counter() - start
    logger.info("SIMEX (%s) on %s with B=%d done in %.2fs.", fitting_method, variable, B, elapsed)

    return FittedModel(
        method="simex",
        family=naive.family,
        params=pd.Series(params, index=names),
        cov=pd.DataFrame(cov, index=names, columns=names),
        scale=naive.scale,
        fitted=np.asarray(fitted, dtype=float),
        elapsed_seconds=elapsed,
        spec=spec,
        data=data,
        n_obs=naive.n_obs,
        converged=True,
        n_iter=int(grid.size * B),
        B=B,
        extra={
            "variable": variable,
            "measurement_error": sd,
            "fitting_method": fitting_method,
            "lambdas": all_lambdas,
            "coef_path": pd.DataFrame(path, index=pd.Index(all_lambdas, name="lambda"), columns=names),
        },
    )
