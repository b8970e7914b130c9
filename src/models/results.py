from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import numpy as np
import pandas as pd
from scipy import stats

from src.config import SMOOTH_GRID_POINTS
from src.models.design import DesignSpec
from src.models.families import resolve_family


@dataclass(frozen=True)
class FittedModel:
    """Coefficients, covariance and fit diagnostics of one naive or corrected fit."""

    method: str
    family: str
    params: pd.Series
    cov: pd.DataFrame
    scale: float
    fitted: np.ndarray
    elapsed_seconds: float
    spec: DesignSpec
    data: pd.DataFrame
    n_obs: int
    converged: bool = True
    n_iter: int = 1
    B: Optional[int] = None
    extra: dict = field(default_factory=dict)

    @property
    def names(self) -> list:
        return self.params.index.tolist()

    @property
    def bse(self) -> pd.Series:
        return pd.Series(np.sqrt(np.clip(np.diag(self.cov.to_numpy()), 0.0, None)), index=self.params.index)

    def linear_predictor(self, data: Optional[pd.DataFrame] = None) -> np.ndarray:
        X = self.spec.build(self.data if data is None else data)
        return X.to_numpy() @ self.params.to_numpy()

    def predict(self, data: Optional[pd.DataFrame] = None) -> np.ndarray:
        """Mean response (intensity for point-process fits) on the link's inverse scale."""
        family = resolve_family(self.family)
        return family.link.inverse(self.linear_predictor(data))

    def partial_effect(self, term: str, grid: Optional[np.ndarray] = None, center: bool = True) -> pd.DataFrame:
        """Contribution of one term to the linear predictor over a grid of covariate values.

        Curves are centred on their grid mean so that fits with different
        intercepts can be overlaid.
        """

        t = self.spec.term_for(term)
        if grid is None:
            observed = self.data[t.column].to_numpy(dtype=float)
            grid = np.linspace(observed.min(), observed.max(), SMOOTH_GRID_POINTS)
        grid = np.asarray(grid, dtype=float)

        cols = t.columns()
        basis = t.transform(grid)
        if center:
            basis = basis - basis.mean(axis=0, keepdims=True)
        beta = self.params.loc[cols].to_numpy()
        cov = self.cov.loc[cols, cols].to_numpy()

        estimate = basis @ beta
        se = np.sqrt(np.clip(np.einsum("ij,jk,ik->i", basis, cov, basis), 0.0, None))
        return pd.DataFrame(
            {
                "x": grid,
                "estimate": estimate,
                "se": se,
                "lower": estimate - 1.96 * se,
                "upper": estimate + 1.96 * se,
            }
        )

    def summary_frame(self) -> pd.DataFrame:
        se = self.bse
        with np.errstate(divide="ignore", invalid="ignore"):
            z = self.params / se
        return pd.DataFrame(
            {
                "estimate": self.params,
                "se": se,
                "z": z,
                "p_value": 2.0 * stats.norm.sf(np.abs(z)),
            }
        )
