from __future__ import annotations

from typing import Dict, Mapping

import numpy as np
import pandas as pd

from src.models.results import FittedModel


def _check_same_coefficients(models: Mapping[str, FittedModel]) -> list:
    if not models:
        raise ValueError("No fitted models to tabulate.")
    reference_method, reference = next(iter(models.items()))
    names = reference.names
    for method, model in models.items():
        if model.names != names:
            raise ValueError(
                f"Coefficient names of {method!r} {model.names} differ from {reference_method!r} {names}."
            )
    return names


def coefficient_table(models: Mapping[str, FittedModel]) -> pd.DataFrame:
    """Estimates and standard errors side by side, one row per coefficient."""
    names = _check_same_coefficients(models)
    out = pd.DataFrame(index=pd.Index(names, name="term"))
    for method, model in models.items():
        out[f"{method}_estimate"] = model.params.to_numpy()
        out[f"{method}_se"] = model.bse.to_numpy()
    return out


def timing_table(models: Mapping[str, FittedModel]) -> pd.DataFrame:
    rows = []
    for method, model in models.items():
        rows.append(
            {
                "method": method,
                "B": model.B if model.B is not None else np.nan,
                "seconds": round(float(model.elapsed_seconds), 6),
                "n_iter": model.n_iter,
                "converged": model.converged,
            }
        )
    return pd.DataFrame(rows)


def relative_change_table(models: Dict[str, FittedModel], baseline: str = "naive") -> pd.DataFrame:
    """Percent change of each corrected estimate relative to the baseline fit."""
    _check_same_coefficients(models)
    if baseline not in models:
        raise ValueError(f"Baseline {baseline!r} not among fitted models {list(models)}.")
    base = models[baseline].params
    out = pd.DataFrame(index=pd.Index(base.index, name="term"))
    for method, model in models.items():
        if method == baseline:
            continue
        with np.errstate(divide="ignore", invalid="ignore"):
            out[f"{method}_pct_change"] = 100.0 * (model.params - base) / base.abs()
    return out


def format_table(df: pd.DataFrame, digits: int = 4) -> str:
    return df.to_string(float_format=lambda v: f"{v:.{digits}f}")
