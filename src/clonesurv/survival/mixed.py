"""Clone random-intercept hazard models.

Both fitters use the discrete-time logistic hazard on person-period rows
with one Gaussian random intercept per clone. ``mixed_logit`` takes the
posterior mode with a Laplace approximation; ``bayes_logit`` runs mean-field
variational Bayes. For short intervals the log odds ratio approximates the
log hazard ratio.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd
from scipy import sparse
from statsmodels.genmod.bayes_mixed_glm import BinomialBayesMixedGLM

from clonesurv.config.models import ModelConfig, RunConfig
from clonesurv.survival.base import ModelFit, group_codes, run_captured
from clonesurv.survival.design import EVENT_COL
from clonesurv.survival.intervals import (
    PersonPeriodDesign,
    person_period_design,
    summarize_fit,
)

_VB_START_SD = float(np.exp(-0.5))
# Seed for the MAP optimizer's random starting values.
_MAP_START_SEED = 20240601


@dataclass(slots=True)
class _CloneDesign:
    pp: PersonPeriodDesign
    exog_vc: sparse.csr_matrix
    clone_names: list[str]


def _clone_design(
    frame: pd.DataFrame, model_config: ModelConfig, run_config: RunConfig
) -> _CloneDesign:
    data = run_config.data
    pp = person_period_design(frame, model_config, run_config)
    codes = group_codes(pp.rows, data, model_config.resolved_label)
    used = pp.rows[data.group_col].cat.remove_unused_categories()
    clone_names = [str(v) for v in used.cat.categories]
    n_rows = len(pp.rows)
    exog_vc = sparse.csr_matrix(
        (np.ones(n_rows), (np.arange(n_rows), codes)),
        shape=(n_rows, len(clone_names)),
    )
    return _CloneDesign(pp=pp, exog_vc=exog_vc, clone_names=clone_names)


def _build_model(design: _CloneDesign, model_config: ModelConfig) -> BinomialBayesMixedGLM:
    pp = design.pp
    return BinomialBayesMixedGLM(
        pp.rows[EVENT_COL].to_numpy(dtype=float),
        pp.exog.to_numpy(dtype=float),
        design.exog_vc,
        np.zeros(len(design.clone_names), dtype=int),
        vcp_p=model_config.vc_prior_sd,
        fe_p=model_config.prior_sd,
        fep_names=list(pp.exog.columns),
        vcp_names=["clone_sd"],
        vc_names=design.clone_names,
    )


def _random_effect_extras(result: Any, clone_names: list[str]) -> dict[str, Any]:
    vcp_mean = np.asarray(result.vcp_mean, dtype=float)
    vc_mean = np.asarray(result.vc_mean, dtype=float)
    # Variance parameters are log standard deviations.
    return {
        "clone_sd": float(np.exp(vcp_mean[0])),
        "clone_effects": {name: float(v) for name, v in zip(clone_names, vc_mean)},
    }


def fit_mixed_logit(
    frame: pd.DataFrame, model_config: ModelConfig, run_config: RunConfig
) -> ModelFit:
    design = _clone_design(frame, model_config, run_config)

    def _fit() -> Any:
        model = _build_model(design, model_config)
        return model.fit_map(rng=np.random.default_rng(_MAP_START_SEED))

    result, converged, messages = run_captured(model_config.resolved_label, _fit)
    return summarize_fit(
        frame,
        model_config,
        run_config,
        design.pp,
        result.fe_mean,
        result.fe_sd,
        converged,
        messages,
        {"method": "laplace", **_random_effect_extras(result, design.clone_names)},
        scale="log_or",
    )


def fit_bayes_logit(
    frame: pd.DataFrame, model_config: ModelConfig, run_config: RunConfig
) -> ModelFit:
    """Variational Bayes fit; intervals are Gaussian posterior credible intervals."""
    design = _clone_design(frame, model_config, run_config)

    def _fit() -> Any:
        model = _build_model(design, model_config)
        n_params = model.k_fep + model.k_vcp + model.k_vc
        # Explicit starting values keep the fit independent of global random state.
        return model.fit_vb(mean=np.zeros(n_params), sd=np.full(n_params, _VB_START_SD))

    result, converged, messages = run_captured(model_config.resolved_label, _fit)
    return summarize_fit(
        frame,
        model_config,
        run_config,
        design.pp,
        result.fe_mean,
        result.fe_sd,
        converged,
        messages,
        {"method": "variational_bayes", **_random_effect_extras(result, design.clone_names)},
        scale="log_or",
        with_p_value=False,
    )
