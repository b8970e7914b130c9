"""Explicit design matrices for the naive and corrected fits.

A ``DesignSpec`` lists the model terms in order. Data-dependent bases (spline
knots) are frozen by ``fit`` so that a design rebuilt from imputed covariate
values lives in the same column space as the naive fit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
import pandas as pd
from sklearn.preprocessing import SplineTransformer

from src.config import SMOOTH_DEGREE, SMOOTH_N_KNOTS
from src.data.validate import assert_required_columns


INTERCEPT = "(Intercept)"


@dataclass
class Linear:
    column: str
    label: Optional[str] = None

    @property
    def name(self) -> str:
        return self.label or self.column

    def fit(self, values: np.ndarray) -> None:
        return None

    def columns(self) -> List[str]:
        return [self.name]

    def transform(self, values: np.ndarray) -> np.ndarray:
        return np.asarray(values, dtype=float).reshape(-1, 1)


@dataclass
class Poly:
    """Raw (non-orthogonal) polynomial of a single covariate."""

    column: str
    degree: int = 2
    label: Optional[str] = None

    def __post_init__(self) -> None:
        if self.degree < 1:
            raise ValueError(f"Polynomial degree must be >= 1; got {self.degree}.")

    @property
    def name(self) -> str:
        return self.label or self.column

    def fit(self, values: np.ndarray) -> None:
        return None

    def columns(self) -> List[str]:
        return [self.name] + [f"{self.name}^{d}" for d in range(2, self.degree + 1)]

    def transform(self, values: np.ndarray) -> np.ndarray:
        x = np.asarray(values, dtype=float)
        return np.column_stack([x**d for d in range(1, self.degree + 1)])


@dataclass
class Smooth:
    """Regression-spline smooth of a single covariate.

    Knots are placed at quantiles of the data passed to ``fit``; values outside
    the knot range are extrapolated linearly.
    """

    column: str
    n_knots: int = SMOOTH_N_KNOTS
    degree: int = SMOOTH_DEGREE
    label: Optional[str] = None
    _basis: Optional[SplineTransformer] = field(default=None, init=False, repr=False)

    @property
    def name(self) -> str:
        return self.label or self.column

    @property
    def is_fitted(self) -> bool:
        return self._basis is not None

    def fit(self, values: np.ndarray) -> None:
        basis = SplineTransformer(
            n_knots=self.n_knots,
            degree=self.degree,
            knots="quantile",
            extrapolation="linear",
            include_bias=False,
        )
        basis.fit(np.asarray(values, dtype=float).reshape(-1, 1))
        self._basis = basis

    def columns(self) -> List[str]:
        # include_bias=False drops one of the n_knots + degree - 1 B-splines.
        k = self.n_knots + self.degree - 2
        return [f"s({self.name}).{j}" for j in range(1, k + 1)]

    def transform(self, values: np.ndarray) -> np.ndarray:
        if self._basis is None:
            raise ValueError(f"Smooth term s({self.name}) has no basis; call DesignSpec.fit first.")
        return self._basis.transform(np.asarray(values, dtype=float).reshape(-1, 1))


@dataclass
class DesignSpec:
    """Response, ordered terms and optional prior weights of a GLM.

    With ``point_process=True`` the response is ``response / weights`` and the
    weights enter as variance weights (Berman-Turner quadrature device).
    """

    response: str
    terms: list
    intercept: bool = True
    weights: Optional[str] = None
    point_process: bool = False

    def __post_init__(self) -> None:
        if not self.terms:
            raise ValueError("DesignSpec needs at least one term.")
        if self.point_process and self.weights is None:
            raise ValueError("Point-process designs need a quadrature weight column.")
        names = self.column_names
        dupes = sorted({c for c in names if names.count(c) > 1})
        if dupes:
            raise ValueError(f"Duplicate design column names: {dupes}")

    @property
    def column_names(self) -> List[str]:
        names = [INTERCEPT] if self.intercept else []
        for term in self.terms:
            names.extend(term.columns())
        return names

    @property
    def source_columns(self) -> List[str]:
        out: List[str] = []
        for term in self.terms:
            if term.column not in out:
                out.append(term.column)
        return out

    @property
    def smooth_terms(self) -> list:
        return [t for t in self.terms if isinstance(t, Smooth)]

    def term_for(self, column_or_label: str):
        for term in self.terms:
            if column_or_label in (term.column, term.name):
                return term
        raise ValueError(f"No term for {column_or_label!r}; terms: {[t.name for t in self.terms]}")

    def fit(self, data: pd.DataFrame) -> "DesignSpec":
        assert_required_columns(data, self.source_columns)
        for term in self.terms:
            term.fit(data[term.column].to_numpy(dtype=float))
        return self

    def build(self, data: pd.DataFrame) -> pd.DataFrame:
        assert_required_columns(data, self.source_columns)
        blocks = []
        if self.intercept:
            blocks.append(np.ones((len(data), 1)))
        for term in self.terms:
            blocks.append(term.transform(data[term.column].to_numpy(dtype=float)))
        return pd.DataFrame(np.hstack(blocks), columns=self.column_names, index=data.index)

    def prior_weights(self, data: pd.DataFrame) -> np.ndarray:
        if self.weights is None:
            return np.ones(len(data))
        assert_required_columns(data, [self.weights])
        w = data[self.weights].to_numpy(dtype=float)
        if (w <= 0).any():
            raise ValueError(f"Weight column {self.weights} must be strictly positive.")
        return w

    def endog(self, data: pd.DataFrame) -> np.ndarray:
        assert_required_columns(data, [self.response])
        y = data[self.response].to_numpy(dtype=float)
        if self.point_process:
            return y / self.prior_weights(data)
        return y
