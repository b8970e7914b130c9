"""Dataset -> naive fit -> correction(s) -> tables, run once per example."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Sequence, Union

import pandas as pd

from src.config import (
    DEFAULT_B,
    DEFAULT_SEED,
    MCEM_EPSILON,
    MCEM_MAX_ITER,
    METHODS,
    SIMEX_FITTING_METHOD,
)
from src.correction.mcem import refit_mcem
from src.correction.simex import simex
from src.data.datasets import load_dataset
from src.examples import ExampleSpec, get_example
from src.models.naive import fit_naive
from src.models.results import FittedModel
from src.reporting.tables import coefficient_table, timing_table


@dataclass
class WorkflowResult:
    example: ExampleSpec
    data: pd.DataFrame
    models: Dict[str, FittedModel]
    B: int
    seed: int

    def coefficient_table(self) -> pd.DataFrame:
        return coefficient_table(self.models)

    def timing_table(self) -> pd.DataFrame:
        return timing_table(self.models)


def _resolve_example(example: Union[str, ExampleSpec]) -> ExampleSpec:
    return get_example(example) if isinstance(example, str) else example


def _check_methods(methods: Iterable[str]) -> list:
    methods = list(methods)
    unknown = [m for m in methods if m not in METHODS]
    if unknown:
        raise ValueError(f"Unknown methods: {unknown}. Choices: {list(METHODS)}")
    return methods


def correct(
    example: ExampleSpec,
    naive: FittedModel,
    method: str,
    B: int,
    seed: Optional[int],
    epsilon: float = MCEM_EPSILON,
    max_iter: int = MCEM_MAX_ITER,
    fitting_method: str = SIMEX_FITTING_METHOD,
) -> FittedModel:
    if method == "mcem":
        W = naive.data[example.error_columns]
        return refit_mcem(naive, example.sigma_sq_u, W, B=B, epsilon=epsilon, max_iter=max_iter, seed=seed)
    if method == "simex":
        return simex(
            naive,
            example.simex_variable,
            example.measurement_error_sd,
            B=B,
            fitting_method=fitting_method,
            seed=seed,
        )
    raise ValueError(f"Unknown correction method: {method}")


def run_example(
    example: Union[str, ExampleSpec],
    B: int = DEFAULT_B,
    seed: Optional[int] = DEFAULT_SEED,
    methods: Sequence[str] = METHODS,
    nrows: Optional[int] = None,
    data: Optional[pd.DataFrame] = None,
    epsilon: float = MCEM_EPSILON,
    max_iter: int = MCEM_MAX_ITER,
    fitting_method: str = SIMEX_FITTING_METHOD,
) -> WorkflowResult:
    """Run one example end to end.

    The naive model is always fitted first; ``seed`` drives the Monte Carlo
    draws of the corrections, not the dataset.
    """

    ex = _resolve_example(example)
    methods = _check_methods(methods)
    if data is None:
        data = load_dataset(ex.dataset, nrows=nrows)

    naive = fit_naive(ex.spec_factory(), data, ex.family)
    models: Dict[str, FittedModel] = {"naive": naive}
    for method in methods:
        if method == "naive":
            continue
        models[method] = correct(
            ex, naive, method, B, seed, epsilon=epsilon, max_iter=max_iter, fitting_method=fitting_method
        )
    return WorkflowResult(example=ex, data=data, models=models, B=int(B), seed=seed)


def b_scaling_study(
    example: Union[str, ExampleSpec],
    Bs: Iterable[int],
    seed: Optional[int] = DEFAULT_SEED,
    methods: Sequence[str] = ("mcem",),
    nrows: Optional[int] = None,
    data: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    """Wall-clock time of each correction for every B, with the naive fit shared."""
    ex = _resolve_example(example)
    methods = [m for m in _check_methods(methods) if m != "naive"]
    if data is None:
        data = load_dataset(ex.dataset, nrows=nrows)

    naive = fit_naive(ex.spec_factory(), data, ex.family)
    rows = []
    for B in Bs:
        for method in methods:
            fit = correct(ex, naive, method, int(B), seed)
            rows.append(
                {
                    "example": ex.name,
                    "method": method,
                    "B": int(B),
                    "seconds": fit.elapsed_seconds,
                    "n_iter": fit.n_iter,
                    "converged": fit.converged,
                }
            )
    return pd.DataFrame(rows, columns=["example", "method", "B", "seconds", "n_iter", "converged"])
