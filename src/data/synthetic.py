"""Deterministic stand-ins for the pre-packaged example datasets.

The heart-study table mimics the Framingham extract analysed in Carroll et al.
(2006): a binary coronary-heart-disease outcome, log(SBP - 50) observed with
additive normal error, and three exactly measured covariates.

The eucalypt table mimics presence-only records of a tree species on a regular
study region, augmented with one quadrature point per grid cell. Quadrature
weights follow the Berman-Turner counting scheme: every point in a cell gets
``cell_area / (points in cell)``.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np
import pandas as pd
from scipy.special import expit

from src.config import (
    DEFAULT_SEED,
    EUCALYPT_GRID_SHAPE,
    EUCALYPT_SIGMA_SQ_U,
    FRAMINGHAM_N,
    FRAMINGHAM_SIGMA_SQ_U,
)


# True coefficients of the simulated heart-study outcome model.
FRAMINGHAM_TRUE_COEF = {"(Intercept)": -15.4, "w1": 1.95, "z1": 0.6, "z2": 0.055, "z3": 0.6}

# True log-intensity coefficients of the simulated eucalypt point process.
EUCALYPT_TRUE_COEF = {
    "(Intercept)": -6.4,
    "MNT": 1.2,
    "MNT^2": -0.12,
    "FC": 1.0,
    "Rain": 0.2,
    "D.Main": -0.8,
}


def simulate_framingham(
    n: int = FRAMINGHAM_N,
    seed: int = DEFAULT_SEED,
    sigma_sq_u: float = FRAMINGHAM_SIGMA_SQ_U,
) -> pd.DataFrame:
    if n <= 0:
        raise ValueError("n must be a positive integer.")
    rng = np.random.default_rng(seed)

    x = rng.normal(4.37, np.sqrt(0.036), size=n)
    z1 = rng.normal(2.36, 0.45, size=n)
    z2 = rng.integers(31, 66, size=n).astype(float)
    z3 = rng.binomial(1, 0.66, size=n)

    c = FRAMINGHAM_TRUE_COEF
    eta = c["(Intercept)"] + c["w1"] * x + c["z1"] * z1 + c["z2"] * z2 + c["z3"] * z3
    y = rng.binomial(1, expit(eta))
    w1 = x + rng.normal(0.0, np.sqrt(sigma_sq_u), size=n)

    return pd.DataFrame({"Y": y, "w1": w1, "z1": z1, "z2": z2, "z3": z3})


def _eucalypt_fields(x: np.ndarray, y: np.ndarray, rng: np.random.Generator) -> dict:
    mnt = 2.0 + 0.12 * x - 0.08 * y + np.sin(x / 6.0) * np.cos(y / 5.0)
    fc = np.clip(0.5 + 0.3 * np.sin(x / 7.0 + y / 9.0) + rng.normal(0.0, 0.1, size=x.size), 0.0, 1.0)
    rain = 8.0 + 0.1 * y + 0.5 * np.cos(x / 8.0)
    d_main = np.abs(y - 15.0) / 10.0
    return {"MNT": mnt, "FC": fc, "Rain": rain, "D.Main": d_main}


def _log_intensity(fields: dict) -> np.ndarray:
    c = EUCALYPT_TRUE_COEF
    mnt = fields["MNT"]
    return (
        c["(Intercept)"]
        + c["MNT"] * mnt
        + c["MNT^2"] * mnt**2
        + c["FC"] * fields["FC"]
        + c["Rain"] * fields["Rain"]
        + c["D.Main"] * fields["D.Main"]
    )


def simulate_eucalypt_ppm(
    grid_shape: Tuple[int, int] = EUCALYPT_GRID_SHAPE,
    seed: int = DEFAULT_SEED,
    sigma_sq_u: float = EUCALYPT_SIGMA_SQ_U,
    cell_size: float = 1.0,
) -> pd.DataFrame:
    nx, ny = int(grid_shape[0]), int(grid_shape[1])
    if nx <= 0 or ny <= 0:
        raise ValueError(f"grid_shape must be positive; got {grid_shape}.")
    rng = np.random.default_rng(seed)

    ix, iy = np.meshgrid(np.arange(nx), np.arange(ny), indexing="ij")
    ix = ix.ravel()
    iy = iy.ravel()
    cx = (ix + 0.5) * cell_size
    cy = (iy + 0.5) * cell_size
    fields = _eucalypt_fields(cx, cy, rng)

    area = cell_size * cell_size
    counts = rng.poisson(np.exp(_log_intensity(fields)) * area)

    # Presence points sit uniformly inside their cell and inherit the cell's covariates.
    cell_of_pres = np.repeat(np.arange(ix.size), counts)
    px = (ix[cell_of_pres] + rng.uniform(size=cell_of_pres.size)) * cell_size
    py = (iy[cell_of_pres] + rng.uniform(size=cell_of_pres.size)) * cell_size

    cells = np.concatenate([cell_of_pres, np.arange(ix.size)])
    points_in_cell = counts + 1
    table = pd.DataFrame(
        {
            "X": np.concatenate([px, cx]),
            "Y": np.concatenate([py, cy]),
            "Y.obs": np.concatenate([np.ones(cell_of_pres.size, dtype=int), np.zeros(ix.size, dtype=int)]),
            "p.wt": area / points_in_cell[cells],
        }
    )
    for name, values in fields.items():
        table[name] = values[cells]

    table["MNT"] = table["MNT"] + rng.normal(0.0, np.sqrt(sigma_sq_u), size=len(table))
    return table
