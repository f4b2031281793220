"""Interval-based hazard models on person-period data."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

import numpy as np
import pandas as pd
import statsmodels.api as sm

from clonesurv.config.models import ModelConfig, RunConfig
from clonesurv.survival.base import (
    ModelFit,
    count_groups,
    group_codes,
    run_captured,
    tidy_coefficients,
)
from clonesurv.survival.design import (
    EVENT_COL,
    EXPOSURE_COL,
    INTERVAL_COL,
    SUBJECT_COL,
    build_treatment_design,
    expand_person_period,
    interval_indicators,
    resolve_breakpoints,
)


@dataclass(slots=True)
class PersonPeriodDesign:
    rows: pd.DataFrame
    exog: pd.DataFrame
    treatment_terms: list[str]
    cuts: list[float]


def person_period_design(
    frame: pd.DataFrame, model_config: ModelConfig, run_config: RunConfig
) -> PersonPeriodDesign:
    """Expand ``frame`` and build baseline indicators plus treatment terms."""
    data = run_config.data
    n_intervals = model_config.n_intervals or run_config.survival.n_intervals
    breakpoints = model_config.breakpoints
    if breakpoints is None:
        breakpoints = run_config.survival.breakpoints
    cuts = resolve_breakpoints(
        frame[data.time_col].to_numpy(dtype=float),
        frame[data.event_col].to_numpy(dtype=int),
        n_intervals,
        breakpoints,
    )
    rows = expand_person_period(frame, data, cuts)
    baseline = interval_indicators(rows[INTERVAL_COL], len(cuts) + 1)
    treatment = build_treatment_design(rows, data).reset_index(drop=True)
    exog = pd.concat([baseline, treatment], axis=1)
    return PersonPeriodDesign(
        rows=rows,
        exog=exog,
        treatment_terms=list(treatment.columns),
        cuts=cuts,
    )


def _cluster_codes(pp: PersonPeriodDesign, run_config: RunConfig, label: str) -> np.ndarray:
    # Without clones, rows of the same host are the clusters.
    if run_config.data.group_col is None:
        return pp.rows[SUBJECT_COL].to_numpy(dtype=int)
    return group_codes(pp.rows, run_config.data, label)


def summarize_fit(
    frame: pd.DataFrame,
    model_config: ModelConfig,
    run_config: RunConfig,
    pp: PersonPeriodDesign,
    params: np.ndarray,
    bse: np.ndarray,
    converged: bool,
    messages: list[str],
    extras: dict[str, object],
    *,
    scale: str = "log_hr",
    with_p_value: bool = True,
) -> ModelFit:
    data = run_config.data
    n_treat = len(pp.treatment_terms)
    estimate = np.asarray(params, dtype=float)[-n_treat:]
    std_error = np.asarray(bse, dtype=float)[-n_treat:]
    converged = converged and bool(np.all(np.isfinite(std_error)))
    n_events = int(frame[data.event_col].sum())
    n_groups = count_groups(frame, data)
    coefficients = tidy_coefficients(
        model_config,
        pp.treatment_terms,
        estimate,
        std_error,
        run_config.survival.alpha,
        scale=scale,
        converged=converged,
        with_p_value=with_p_value,
        n_obs=len(frame),
        n_events=n_events,
        n_groups=n_groups,
    )
    extras = {"n_rows": int(len(pp.rows)), "breakpoints": list(pp.cuts), **extras}
    return ModelFit(
        model=model_config.resolved_label,
        model_type=model_config.type,
        coefficients=coefficients,
        n_obs=len(frame),
        n_events=n_events,
        n_groups=n_groups,
        converged=converged,
        extras=extras,
        warnings=messages,
    )


def _fit_glm(
    label: str,
    build: Callable[[], sm.GLM],
    clusters: np.ndarray | None,
) -> tuple[tuple[np.ndarray, np.ndarray], bool, list[str]]:
    def _fit() -> tuple[tuple[np.ndarray, np.ndarray], bool]:
        model = build()
        if clusters is None:
            result = model.fit()
        else:
            result = model.fit(cov_type="cluster", cov_kwds={"groups": clusters})
        estimates = (
            np.asarray(result.params, dtype=float),
            np.asarray(result.bse, dtype=float),
        )
        return estimates, bool(getattr(result, "converged", True))

    (estimates, glm_converged), converged, messages = run_captured(label, _fit)
    return estimates, converged and glm_converged, messages


def fit_pwe_poisson(
    frame: pd.DataFrame, model_config: ModelConfig, run_config: RunConfig
) -> ModelFit:
    """Piecewise-exponential model as a Poisson GLM with log-exposure offset."""
    label = model_config.resolved_label
    pp = person_period_design(frame, model_config, run_config)
    clusters = _cluster_codes(pp, run_config, label) if model_config.robust else None
    (params, bse), converged, messages = _fit_glm(
        label,
        lambda: sm.GLM(
            pp.rows[EVENT_COL].to_numpy(dtype=float),
            pp.exog.to_numpy(dtype=float),
            family=sm.families.Poisson(),
            offset=np.log(pp.rows[EXPOSURE_COL].to_numpy(dtype=float)),
        ),
        clusters,
    )
    return summarize_fit(
        frame,
        model_config,
        run_config,
        pp,
        params,
        bse,
        converged,
        messages,
        {"covariance": "cluster" if model_config.robust else "model"},
    )


def fit_pwe_gee(frame: pd.DataFrame, model_config: ModelConfig, run_config: RunConfig) -> ModelFit:
    """Piecewise-exponential Poisson GEE with exchangeable correlation within clone."""
    label = model_config.resolved_label
    pp = person_period_design(frame, model_config, run_config)
    clusters = group_codes(pp.rows, run_config.data, label)

    def _fit() -> tuple[np.ndarray, np.ndarray, float]:
        model = sm.GEE(
            pp.rows[EVENT_COL].to_numpy(dtype=float),
            pp.exog.to_numpy(dtype=float),
            groups=clusters,
            family=sm.families.Poisson(),
            offset=np.log(pp.rows[EXPOSURE_COL].to_numpy(dtype=float)),
            cov_struct=sm.cov_struct.Exchangeable(),
        )
        result = model.fit()
        dep = float(np.asarray(model.cov_struct.dep_params, dtype=float).ravel()[0])
        return np.asarray(result.params, dtype=float), np.asarray(result.bse, dtype=float), dep

    (params, bse, dep), converged, messages = run_captured(label, _fit)
    return summarize_fit(
        frame,
        model_config,
        run_config,
        pp,
        params,
        bse,
        converged,
        messages,
        {"covariance": "robust", "exchangeable_correlation": dep},
    )


def fit_discrete_cloglog(
    frame: pd.DataFrame, model_config: ModelConfig, run_config: RunConfig
) -> ModelFit:
    """Grouped-time proportional hazards: binomial GLM with complementary log-log link."""
    label = model_config.resolved_label
    pp = person_period_design(frame, model_config, run_config)
    clusters = _cluster_codes(pp, run_config, label) if model_config.robust else None
    (params, bse), converged, messages = _fit_glm(
        label,
        lambda: sm.GLM(
            pp.rows[EVENT_COL].to_numpy(dtype=float),
            pp.exog.to_numpy(dtype=float),
            family=sm.families.Binomial(link=sm.families.links.CLogLog()),
        ),
        clusters,
    )
    return summarize_fit(
        frame,
        model_config,
        run_config,
        pp,
        params,
        bse,
        converged,
        messages,
        {"covariance": "cluster" if model_config.robust else "model"},
    )
