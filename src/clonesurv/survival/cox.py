"""Cox proportional hazards fitters (statsmodels PHReg)."""

from __future__ import annotations

import numpy as np
import pandas as pd
from statsmodels.duration.hazard_regression import PHReg

from clonesurv.api.exceptions import ClonesurvValidationError
from clonesurv.config.models import ModelConfig, RunConfig
from clonesurv.survival.base import (
    ModelFit,
    count_groups,
    group_codes,
    run_captured,
    tidy_coefficients,
)
from clonesurv.survival.design import build_treatment_design
from clonesurv.survival.km import treatment_varies_within_groups


def fit_phreg(frame: pd.DataFrame, model_config: ModelConfig, run_config: RunConfig) -> ModelFit:
    """Fit ``cox``, ``cox_cluster`` or ``cox_strata``.

    ``cox`` treats hosts as independent. ``cox_cluster`` keeps the same
    point estimates and replaces the covariance with the clone-clustered
    sandwich estimator. ``cox_strata`` gives every clone its own baseline
    hazard, so only within-clone treatment contrasts inform the estimate.
    """
    data = run_config.data
    label = model_config.resolved_label
    design = build_treatment_design(frame, data)
    time = frame[data.time_col].to_numpy(dtype=float)
    status = frame[data.event_col].to_numpy(dtype=int)

    strata = None
    fit_kwargs: dict[str, np.ndarray] = {}
    if model_config.type == "cox_cluster":
        fit_kwargs["groups"] = group_codes(frame, data, label)
    elif model_config.type == "cox_strata":
        strata = group_codes(frame, data, label)
        if not treatment_varies_within_groups(frame, data):
            raise ClonesurvValidationError(
                f"Model '{label}' stratifies by clone but treatment never varies "
                "within a clone, so no treatment effect is identifiable."
            )

    def _fit() -> tuple[np.ndarray, np.ndarray]:
        model = PHReg(
            time,
            design.to_numpy(dtype=float),
            status=status,
            strata=strata,
            ties=model_config.ties,
        )
        result = model.fit(**fit_kwargs)
        return np.asarray(result.params, dtype=float), np.asarray(result.bse, dtype=float)

    (estimate, std_error), converged, messages = run_captured(label, _fit)
    converged = converged and bool(np.all(np.isfinite(std_error)))
    n_groups = count_groups(frame, data)
    coefficients = tidy_coefficients(
        model_config,
        list(design.columns),
        estimate,
        std_error,
        run_config.survival.alpha,
        scale="log_hr",
        converged=converged,
        n_obs=len(frame),
        n_events=int(status.sum()),
        n_groups=n_groups,
    )
    extras: dict[str, float | str] = {"ties": model_config.ties}
    if model_config.type == "cox_cluster":
        extras["covariance"] = "robust"
    return ModelFit(
        model=label,
        model_type=model_config.type,
        coefficients=coefficients,
        n_obs=len(frame),
        n_events=int(status.sum()),
        n_groups=n_groups,
        converged=converged,
        extras=extras,
        warnings=messages,
    )
