from __future__ import annotations

from pathlib import Path
from typing import Mapping, Optional

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from src.models.results import FittedModel


METHOD_COLORS = {"naive": "tab:gray", "mcem": "tab:blue", "simex": "tab:orange"}


def save_figure(fig, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, dpi=300, bbox_inches="tight")


def plot_coefficients(models: Mapping[str, FittedModel], title: str = "", skip_intercept: bool = True):
    """Point estimates with 95% Wald intervals, one row per coefficient."""
    names = next(iter(models.values())).names
    if skip_intercept:
        names = [n for n in names if n != "(Intercept)"]
    y = np.arange(len(names))
    offsets = np.linspace(-0.25, 0.25, num=len(models)) if len(models) > 1 else [0.0]

    fig, ax = plt.subplots(figsize=(7, 0.45 * len(names) + 1.5))
    for off, (method, model) in zip(offsets, models.items()):
        est = model.params.loc[names].to_numpy()
        se = model.bse.loc[names].to_numpy()
        ax.errorbar(
            est,
            y + off,
            xerr=1.96 * se,
            fmt="o",
            capsize=3,
            color=METHOD_COLORS.get(method),
            label=method,
        )
    ax.axvline(0.0, color="black", linewidth=0.8)
    ax.set_yticks(y)
    ax.set_yticklabels(names)
    ax.invert_yaxis()
    ax.set_xlabel("Estimate (95% CI)")
    ax.set_title(title)
    ax.legend(loc="best")
    fig.tight_layout()
    return fig


def plot_smooth_terms(models: Mapping[str, FittedModel], title: str = ""):
    """Centred partial-effect curves of every smooth term, one panel per term."""
    reference = next(iter(models.values()))
    smooths = reference.spec.smooth_terms
    if not smooths:
        raise ValueError("The fitted design has no smooth terms to plot.")

    fig, axes = plt.subplots(1, len(smooths), figsize=(4.2 * len(smooths), 3.6), squeeze=False)
    for ax, term in zip(axes[0], smooths):
        observed = reference.data[term.column].to_numpy(dtype=float)
        grid = np.linspace(observed.min(), observed.max(), 100)
        for method, model in models.items():
            curve = model.partial_effect(term.name, grid=grid)
            color = METHOD_COLORS.get(method)
            ax.plot(curve["x"], curve["estimate"], color=color, label=method)
            ax.fill_between(curve["x"], curve["lower"], curve["upper"], color=color, alpha=0.15)
        ax.plot(observed, np.full_like(observed, ax.get_ylim()[0]), "|", color="black", alpha=0.2)
        ax.set_xlabel(term.name)
        ax.set_ylabel(f"s({term.name})")
    axes[0][0].legend(loc="best")
    if title:
        fig.suptitle(title)
    fig.tight_layout()
    return fig


def plot_ppm_intensity(
    models: Mapping[str, FittedModel],
    coords=("X", "Y"),
    presence_col: str = "Y.obs",
    title: str = "",
):
    """Fitted log-intensity at the quadrature points, one map per method, shared colour scale."""
    reference = next(iter(models.values()))
    data = reference.data
    quad = data.loc[data[presence_col] == 0]
    pres = data.loc[data[presence_col] == 1]

    surfaces = {m: np.log(model.predict(quad)) for m, model in models.items()}
    vmin = min(float(np.min(s)) for s in surfaces.values())
    vmax = max(float(np.max(s)) for s in surfaces.values())

    fig, axes = plt.subplots(1, len(models), figsize=(4.6 * len(models), 4.0), squeeze=False)
    mappable = None
    for ax, (method, surface) in zip(axes[0], surfaces.items()):
        mappable = ax.scatter(
            quad[coords[0]], quad[coords[1]], c=surface, s=12, marker="s", vmin=vmin, vmax=vmax, cmap="viridis"
        )
        ax.scatter(pres[coords[0]], pres[coords[1]], s=3, color="white", alpha=0.6)
        ax.set_title(method)
        ax.set_xlabel(coords[0])
        ax.set_ylabel(coords[1])
        ax.set_aspect("equal")
    fig.colorbar(mappable, ax=axes[0].tolist(), label="log intensity")
    if title:
        fig.suptitle(title)
    return fig


def plot_simex_extrapolation(model: FittedModel, terms: Optional[list] = None):
    """Mean coefficient at each lambda and the extrapolated value at lambda = -1."""
    if model.method != "simex":
        raise ValueError(f"Expected a SIMEX fit; got method={model.method!r}.")
    path: pd.DataFrame = model.extra["coef_path"]
    terms = terms or [c for c in path.columns if c != "(Intercept)"]

    fig, axes = plt.subplots(1, len(terms), figsize=(3.6 * len(terms), 3.2), squeeze=False)
    for ax, term in zip(axes[0], terms):
        ax.plot(path.index, path[term], "o", color=METHOD_COLORS["simex"])
        ax.plot([-1.0], [model.params[term]], "s", color="black")
        ax.axvline(-1.0, color="black", linewidth=0.6, linestyle=":")
        ax.set_xlabel("lambda")
        ax.set_title(term)
    fig.tight_layout()
    return fig
