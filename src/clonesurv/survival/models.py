"""Model registry: dispatch configured model types to their fitters."""

from __future__ import annotations

from collections.abc import Callable

import pandas as pd

from clonesurv.api.exceptions import ClonesurvNotImplementedError
from clonesurv.config.models import ModelConfig, RunConfig
from clonesurv.survival.base import ModelFit
from clonesurv.survival.cox import fit_phreg
from clonesurv.survival.intervals import fit_discrete_cloglog, fit_pwe_gee, fit_pwe_poisson
from clonesurv.survival.mixed import fit_bayes_logit, fit_mixed_logit
from clonesurv.survival.parametric import fit_weibull

Fitter = Callable[[pd.DataFrame, ModelConfig, RunConfig], ModelFit]

MODEL_REGISTRY: dict[str, Fitter] = {
    "cox": fit_phreg,
    "cox_cluster": fit_phreg,
    "cox_strata": fit_phreg,
    "weibull": fit_weibull,
    "pwe_poisson": fit_pwe_poisson,
    "pwe_gee": fit_pwe_gee,
    "discrete_cloglog": fit_discrete_cloglog,
    "mixed_logit": fit_mixed_logit,
    "bayes_logit": fit_bayes_logit,
}


def fit_model(frame: pd.DataFrame, model_config: ModelConfig, run_config: RunConfig) -> ModelFit:
    """Fit one configured model on a prepared survival frame."""
    fitter = MODEL_REGISTRY.get(model_config.type)
    if fitter is None:
        raise ClonesurvNotImplementedError(
            f"Model type '{model_config.type}' is not implemented."
        )
    return fitter(frame, model_config, run_config)


def fit_models(frame: pd.DataFrame, run_config: RunConfig) -> list[ModelFit]:
    """Fit every configured model, in configuration order."""
    return [fit_model(frame, model_config, run_config) for model_config in run_config.models]
