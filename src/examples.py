"""The three worked examples: heart-study GLM and GAM, eucalypt point-process model."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List

from src.config import (
    EUCALYPT_ERROR_COLS,
    EUCALYPT_RESPONSE,
    EUCALYPT_SIGMA_SQ_U,
    EUCALYPT_WEIGHT_COL,
    FRAMINGHAM_ERROR_COLS,
    FRAMINGHAM_LABELS,
    FRAMINGHAM_RESPONSE,
    FRAMINGHAM_SIGMA_SQ_U,
)
from src.models.design import DesignSpec, Linear, Poly, Smooth


@dataclass(frozen=True)
class ExampleSpec:
    name: str
    dataset: str
    spec_factory: Callable[[], DesignSpec]
    family: str
    sigma_sq_u: float
    error_columns: List[str]
    description: str = ""

    @property
    def simex_variable(self) -> str:
        return self.error_columns[0]

    @property
    def measurement_error_sd(self) -> float:
        return float(self.sigma_sq_u) ** 0.5


def heart_glm_spec() -> DesignSpec:
    labels = FRAMINGHAM_LABELS
    return DesignSpec(
        response=FRAMINGHAM_RESPONSE,
        terms=[Linear(col, label=labels[col]) for col in ["w1", "z1", "z2", "z3"]],
    )


def heart_gam_spec() -> DesignSpec:
    labels = FRAMINGHAM_LABELS
    return DesignSpec(
        response=FRAMINGHAM_RESPONSE,
        terms=[
            Smooth("w1", label=labels["w1"]),
            Smooth("z1", label=labels["z1"]),
            Smooth("z2", label=labels["z2"]),
            Linear("z3", label=labels["z3"]),
        ],
    )


def eucalypt_ppm_spec() -> DesignSpec:
    return DesignSpec(
        response=EUCALYPT_RESPONSE,
        terms=[Poly(col, degree=2) for col in ["MNT", "FC", "Rain", "D.Main"]],
        weights=EUCALYPT_WEIGHT_COL,
        point_process=True,
    )


EXAMPLES: Dict[str, ExampleSpec] = {
    "glm": ExampleSpec(
        name="glm",
        dataset="framingham",
        spec_factory=heart_glm_spec,
        family="binomial",
        sigma_sq_u=FRAMINGHAM_SIGMA_SQ_U,
        error_columns=list(FRAMINGHAM_ERROR_COLS),
        description="Logistic GLM of CHD on SBP (error-prone), cholesterol, age and smoking.",
    ),
    "gam": ExampleSpec(
        name="gam",
        dataset="framingham",
        spec_factory=heart_gam_spec,
        family="binomial",
        sigma_sq_u=FRAMINGHAM_SIGMA_SQ_U,
        error_columns=list(FRAMINGHAM_ERROR_COLS),
        description="Logistic GAM with smooth terms for SBP (error-prone), cholesterol and age.",
    ),
    "ppm": ExampleSpec(
        name="ppm",
        dataset="eucalypt",
        spec_factory=eucalypt_ppm_spec,
        family="poisson",
        sigma_sq_u=EUCALYPT_SIGMA_SQ_U,
        error_columns=list(EUCALYPT_ERROR_COLS),
        description="Poisson point-process model of eucalypt presences; minimum temperature is error-prone.",
    ),
}


def get_example(name: str) -> ExampleSpec:
    try:
        return EXAMPLES[name]
    except KeyError:
        raise ValueError(f"Unknown example: {name}. Available: {sorted(EXAMPLES)}") from None
