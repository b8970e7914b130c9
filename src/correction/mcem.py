"""Monte Carlo EM refit of a naive GLM whose covariates carry additive normal error.

Model: W = X + U with U ~ N(0, Sigma_u) known and X ~ N(mu_x, Sigma_x). For each
observation B candidate true values are drawn once from N(W_i, Sigma_u). Because
that proposal equals the measurement density viewed as a function of X, the
importance weight of a draw is proportional to f(Y | X, Z; theta) * phi(X; mu_x,
Sigma_x). Each EM iteration re-weights the fixed draws (E-step) and refits the
GLM on the stacked n*B rows with those weights (M-step).

Standard errors use Louis' identity: observed information = weighted
complete-data information minus the conditional covariance of the scores.
"""

from __future__ import annotations

import logging
import time
from typing import Optional, Sequence

import numpy as np
import pandas as pd
from scipy import stats

from src.config import MCEM_EPSILON, MCEM_MAX_ITER
from src.models.families import FIXED_SCALE, resolve_family
from src.models.naive import fit_glm
from src.models.results import FittedModel


logger = logging.getLogger(__name__)


def error_covariance(sigma_sq_u, k: int) -> np.ndarray:
    """Return the k x k measurement-error covariance from a scalar, vector or matrix."""
    s = np.asarray(sigma_sq_u, dtype=float)
    if s.ndim == 0:
        if k != 1:
            raise ValueError(f"A scalar error variance needs exactly one contaminated column; got {k}.")
        s = s.reshape(1, 1)
    elif s.ndim == 1:
        if s.size != k:
            raise ValueError(f"Error variance vector has length {s.size}; expected {k}.")
        s = np.diag(s)
    elif s.shape != (k, k):
        raise ValueError(f"Error covariance has shape {s.shape}; expected {(k, k)}.")

    if not np.allclose(s, s.T):
        raise ValueError("Error covariance must be symmetric.")
    if np.linalg.eigvalsh(s).min() <= 0:
        raise ValueError("Error covariance must be positive definite (variances > 0).")
    return s


def contaminated_frame(naive: FittedModel, W, columns: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """Align the contaminated covariate matrix with the naive fit's source columns.

    Without names, the first k source columns of the design are assumed to be
    the contaminated ones.
    """

    if isinstance(W, pd.DataFrame):
        names = list(W.columns)
        arr = W.to_numpy(dtype=float)
    elif isinstance(W, pd.Series):
        names = [W.name]
        arr = W.to_numpy(dtype=float).reshape(-1, 1)
    else:
        arr = np.asarray(W, dtype=float)
        if arr.ndim == 1:
            arr = arr.reshape(-1, 1)
        names = list(columns) if columns is not None else naive.spec.source_columns[: arr.shape[1]]

    if arr.ndim != 2 or arr.shape[1] != len(names):
        raise ValueError(f"Contaminated covariates have shape {arr.shape}; expected {len(names)} named columns.")
    if arr.shape[0] != naive.n_obs:
        raise ValueError(f"Contaminated covariates have {arr.shape[0]} rows; the naive fit used {naive.n_obs}.")
    unknown = [c for c in names if c not in naive.spec.source_columns]
    if unknown:
        raise ValueError(f"Contaminated columns {unknown} are not covariates of the naive model.")
    if not np.isfinite(arr).all():
        raise ValueError("Contaminated covariates contain missing or non-finite values.")
    return pd.DataFrame(arr, columns=names, index=naive.data.index)


def _normalise_log_weights(log_w: np.ndarray) -> np.ndarray:
    # log_w has shape (B, n); each column is normalised to sum to one.
    shifted = np.exp(log_w - log_w.max(axis=0, keepdims=True))
    return shifted / shifted.sum(axis=0, keepdims=True)


def _pearson_scale(y, mu, weights, variance, n: int, p: int) -> float:
    return float(np.sum(weights * (y - mu) ** 2 / variance) / max(n - p, 1))


def louis_covariance(X, y, mu, prior_weights, draw_weights, family, scale: float) -> np.ndarray:
    """Inverse of Louis' observed information for importance-weighted stacked data.

    ``draw_weights`` has shape (B, n); rows of ``X``/``y``/``mu`` are stacked draw-major.
    """

    B, n = draw_weights.shape
    p = X.shape[1]
    deriv = family.link.deriv(mu)
    variance = family.variance(mu)

    scores = X * (prior_weights * (y - mu) / (deriv * variance * scale))[:, None]
    info_row = prior_weights / (deriv**2 * variance * scale)
    wv = draw_weights.ravel()
    complete = (X * (wv * info_row)[:, None]).T @ X

    S = scores.reshape(B, n, p)
    mean_score = np.einsum("bi,bip->ip", draw_weights, S)
    second = np.einsum("bi,bip,biq->pq", draw_weights, S, S)
    missing = second - mean_score.T @ mean_score
    return np.linalg.inv(complete - missing)


def refit_mcem(
    naive: FittedModel,
    sigma_sq_u,
    W,
    B: int = 50,
    epsilon: float = MCEM_EPSILON,
    max_iter: int = MCEM_MAX_ITER,
    seed: Optional[int] = None,
    columns: Optional[Sequence[str]] = None,
) -> FittedModel:
    """Correct a naive fit for covariate measurement error by Monte Carlo EM.

    Parameters
    ----------
    naive : FittedModel
        Output of ``fit_naive``; its design bases and data are reused.
    sigma_sq_u : float, array-like
        Measurement-error variance (scalar), variances (vector) or covariance matrix.
    W : DataFrame, Series or array-like
        Observed contaminated covariate values, one column per contaminated covariate.
    B : int
        Monte Carlo draws per observation. Runtime grows roughly linearly in B.
    epsilon : float
        Convergence tolerance on the largest relative parameter change.
    max_iter : int
        EM iteration cap. Hitting it returns the current fit with ``converged=False``.
    seed : int, optional
        Seed for the Monte Carlo draws; a fixed seed reproduces the fit exactly.
    """

    if int(B) < 1:
        raise ValueError(f"B must be a positive integer; got {B}.")
    if epsilon <= 0:
        raise ValueError("epsilon must be > 0.")
    if int(max_iter) < 1:
        raise ValueError("max_iter must be >= 1.")
    B = int(B)

    start = time.perf_counter()
    w_frame = contaminated_frame(naive, W, columns=columns)
    cols = list(w_frame.columns)
    k = len(cols)
    sigma_u = error_covariance(sigma_sq_u, k)
    w = w_frame.to_numpy()
    n = w.shape[0]

    mu_x = w.mean(axis=0)
    sigma_w = np.atleast_2d(np.cov(w, rowvar=False))
    sigma_x = sigma_w - sigma_u
    if np.linalg.eigvalsh(sigma_x).min() <= 0:
        raise ValueError(
            "Measurement-error variance is not smaller than the observed covariate variance; "
            f"var(W)={np.diag(sigma_w).tolist()}, sigma_sq_u={np.diag(sigma_u).tolist()}."
        )

    rng = np.random.default_rng(seed)
    chol_u = np.linalg.cholesky(sigma_u)
    x_draws = w[None, :, :] + rng.standard_normal((B, n, k)) @ chol_u.T

    spec = naive.spec
    stacked = pd.concat([naive.data] * B, ignore_index=True)
    for j, c in enumerate(cols):
        stacked[c] = x_draws[:, :, j].ravel()
    exog = spec.build(stacked)
    X = exog.to_numpy()
    y = np.tile(spec.endog(naive.data), B)
    prior = np.tile(spec.prior_weights(naive.data), B)

    family = resolve_family(naive.family)
    params = naive.params.to_numpy().copy()
    scale = naive.scale
    trace = [params.copy()]
    converged = False
    n_iter = 0
    draw_weights = np.full((B, n), 1.0 / B)

    for n_iter in range(1, int(max_iter) + 1):
        mu = family.link.inverse(X @ params)
        log_lik = family.loglike_obs(y, mu, var_weights=prior, scale=scale)
        log_prior = stats.multivariate_normal.logpdf(x_draws.reshape(-1, k), mean=mu_x, cov=sigma_x)
        draw_weights = _normalise_log_weights((np.asarray(log_lik) + np.asarray(log_prior)).reshape(B, n))

        res = fit_glm(exog, y, naive.family, var_weights=prior * draw_weights.ravel(), start_params=params)
        new_params = np.asarray(res.params, dtype=float)

        mu_x = np.einsum("bi,bij->j", draw_weights, x_draws) / n
        dev = x_draws - mu_x
        sigma_x = np.einsum("bi,bij,bik->jk", draw_weights, dev, dev) / n

        if naive.family not in FIXED_SCALE:
            mu_new = family.link.inverse(X @ new_params)
            scale = _pearson_scale(
                y, mu_new, prior * draw_weights.ravel(), family.variance(mu_new), n, len(new_params)
            )

        delta = float(np.max(np.abs(new_params - params) / (1.0 + np.abs(params))))
        params = new_params
        trace.append(params.copy())
        logger.debug("MCEM iteration %d: max relative change %.3g", n_iter, delta)
        if delta <= epsilon:
            converged = True
            break

    if not converged:
        logger.warning("MCEM did not converge within %d iterations (B=%d).", max_iter, B)

    mu = family.link.inverse(X @ params)
    cov = louis_covariance(X, y, mu, prior, draw_weights, family, scale)
    fitted = np.sum(draw_weights * mu.reshape(B, n), axis=0)
    ess = 1.0 / np.sum(draw_weights**2, axis=0)
    elapsed = time.perf_counter() - start
    logger.info(
        "MCEM %s after %d iterations (B=%d, %.2fs).", "converged" if converged else "stopped", n_iter, B, elapsed
    )

    names = exog.columns
    return FittedModel(
        method="mcem",
        family=naive.family,
        params=pd.Series(params, index=names),
        cov=pd.DataFrame(cov, index=names, columns=names),
        scale=float(scale),
        fitted=fitted,
        elapsed_seconds=elapsed,
        spec=spec,
        data=naive.data,
        n_obs=n,
        converged=converged,
        n_iter=n_iter,
        B=B,
        extra={
            "contaminated_columns": cols,
            "stacked_rows": int(len(stacked)),
            "sigma_sq_u": sigma_u,
            "mu_x": mu_x,
            "sigma_x": sigma_x,
            "reliability": np.diag(sigma_x) / np.diag(sigma_w),
            "ess": ess,
            "trace": pd.DataFrame(trace, columns=names),
        },
    )
