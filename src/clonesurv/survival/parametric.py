"""Weibull parametric survival model (lifelines)."""

from __future__ import annotations

import numpy as np
import pandas as pd
from lifelines import WeibullAFTFitter

from clonesurv.config.models import ModelConfig, RunConfig
from clonesurv.survival.base import ModelFit, count_groups, run_captured, tidy_coefficients
from clonesurv.survival.design import build_treatment_design

_DURATION = "duration"
_EVENT = "event"


def aft_to_log_hr(
    beta: np.ndarray, log_shape: float, cov: np.ndarray
) -> tuple[np.ndarray, np.ndarray]:
    """Convert Weibull AFT coefficients to log hazard ratios.

    With ``S(t | x) = exp(-(t / exp(x'beta))^rho)`` the log hazard ratio of
    a covariate is ``-rho * beta``. ``cov`` holds, per coefficient, the
    ``(var(beta), var(log rho), cov(beta, log rho))`` triple; standard errors
    use the delta method.
    """
    beta = np.asarray(beta, dtype=float)
    cov = np.asarray(cov, dtype=float).reshape(-1, 3)
    rho = float(np.exp(log_shape))
    var_beta, var_log_rho, cov_beta_log_rho = cov[:, 0], cov[:, 1], cov[:, 2]
    variance = rho**2 * (var_beta + beta**2 * var_log_rho + 2.0 * beta * cov_beta_log_rho)
    with np.errstate(invalid="ignore"):
        std_error = np.sqrt(variance)
    return -rho * beta, std_error


def fit_weibull(frame: pd.DataFrame, model_config: ModelConfig, run_config: RunConfig) -> ModelFit:
    """Weibull proportional hazards fit through the AFT parameterisation.

    Hosts are treated as independent. Estimates are reported as log hazard
    ratios so they line up with the Cox rows.
    """
    data = run_config.data
    label = model_config.resolved_label
    design = build_treatment_design(frame, data)
    terms = list(design.columns)
    # Plain covariate names keep lifelines away from the bracketed term names.
    covariates = [f"x{idx}" for idx in range(len(terms))]
    table = pd.DataFrame(design.to_numpy(dtype=float), columns=covariates)
    table[_DURATION] = frame[data.time_col].to_numpy(dtype=float)
    table[_EVENT] = frame[data.event_col].to_numpy(dtype=int)

    def _fit() -> tuple[np.ndarray, float, np.ndarray]:
        fitter = WeibullAFTFitter(alpha=run_config.survival.alpha)
        fitter.fit(table, duration_col=_DURATION, event_col=_EVENT)
        index = fitter.params_.index
        params = fitter.params_.to_numpy(dtype=float)
        cov = np.asarray(fitter.variance_matrix_, dtype=float)
        shape_pos = index.get_loc(("rho_", "Intercept"))
        beta = np.empty(len(covariates))
        moments = np.empty((len(covariates), 3))
        for row, name in enumerate(covariates):
            pos = index.get_loc(("lambda_", name))
            beta[row] = params[pos]
            moments[row] = (cov[pos, pos], cov[shape_pos, shape_pos], cov[pos, shape_pos])
        return beta, float(params[shape_pos]), moments

    (beta, log_shape, moments), converged, messages = run_captured(label, _fit)
    estimate, std_error = aft_to_log_hr(beta, log_shape, moments)
    n_events = int(table[_EVENT].sum())
    n_groups = count_groups(frame, data)
    coefficients = tidy_coefficients(
        model_config,
        terms,
        estimate,
        std_error,
        run_config.survival.alpha,
        scale="log_hr",
        converged=converged,
        n_obs=len(frame),
        n_events=n_events,
        n_groups=n_groups,
    )
    return ModelFit(
        model=label,
        model_type=model_config.type,
        coefficients=coefficients,
        n_obs=len(frame),
        n_events=n_events,
        n_groups=n_groups,
        converged=bool(coefficients["converged"].all()),
        extras={
            "shape": float(np.exp(log_shape)),
            "aft_coefficients": {term: float(b) for term, b in zip(terms, beta)},
        },
        warnings=messages,
    )
