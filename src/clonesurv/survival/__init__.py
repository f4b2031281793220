"""Survival analysis layer exports."""

from clonesurv.survival.base import TIDY_COLUMNS, ModelFit
from clonesurv.survival.design import (
    build_treatment_design,
    expand_person_period,
    resolve_breakpoints,
)
from clonesurv.survival.km import kaplan_meier_table, logrank_test, median_survival_table
from clonesurv.survival.models import MODEL_REGISTRY, fit_model, fit_models

__all__ = [
    "MODEL_REGISTRY",
    "ModelFit",
    "TIDY_COLUMNS",
    "build_treatment_design",
    "expand_person_period",
    "fit_model",
    "fit_models",
    "kaplan_meier_table",
    "logrank_test",
    "median_survival_table",
    "resolve_breakpoints",
]
