"""Kaplan-Meier curves, median survival and log-rank tests."""

from __future__ import annotations

from typing import Any

import numpy as np
import pandas as pd
from scipy.stats import norm
from statsmodels.duration.survfunc import SurvfuncRight, survdiff

from clonesurv.api.exceptions import ClonesurvValidationError
from clonesurv.config.models import DataConfig
from clonesurv.data.loader import treatment_cells


def group_labels(
    frame: pd.DataFrame,
    data_config: DataConfig,
    by: list[str] | None = None,
) -> pd.Series:
    """Row labels for the curves: treatment cells by default, else ``by`` columns."""
    if by is None:
        return treatment_cells(frame, data_config)
    if len(by) == 1:
        return frame[by[0]].astype(str).rename("group")
    parts = [col + "=" + frame[col].astype(str) for col in by]
    label = parts[0]
    for part in parts[1:]:
        label = label + " / " + part
    return label.rename("group")


def _loglog_interval(
    surv: np.ndarray, se: np.ndarray, z: float
) -> tuple[np.ndarray, np.ndarray]:
    inner = (surv > 0.0) & (surv < 1.0) & np.isfinite(se)
    lower = surv.copy()
    upper = surv.copy()
    with np.errstate(divide="ignore", invalid="ignore"):
        se_theta = np.where(inner, se / (surv * np.abs(np.log(surv))), 0.0)
    lower[inner] = surv[inner] ** np.exp(z * se_theta[inner])
    upper[inner] = surv[inner] ** np.exp(-z * se_theta[inner])
    return lower, upper


def kaplan_meier_table(
    frame: pd.DataFrame,
    data_config: DataConfig,
    by: list[str] | None = None,
    alpha: float = 0.05,
) -> pd.DataFrame:
    """Long table of Kaplan-Meier estimates, one block of rows per group.

    Each block starts at ``time=0, survival=1``. Pointwise intervals use the
    log(-log) transform of the Greenwood standard error.
    """
    labels = group_labels(frame, data_config, by).to_numpy()
    time = frame[data_config.time_col].to_numpy(dtype=float)
    status = frame[data_config.event_col].to_numpy(dtype=int)
    z = float(norm.ppf(1.0 - alpha / 2.0))

    blocks: list[pd.DataFrame] = []
    for group in sorted(pd.unique(labels).tolist()):
        mask = labels == group
        sf = SurvfuncRight(time[mask], status[mask], title=str(group))
        surv = np.asarray(sf.surv_prob, dtype=float)
        se = np.asarray(sf.surv_prob_se, dtype=float)
        lower, upper = _loglog_interval(surv, se, z)
        block = pd.DataFrame(
            {
                "group": group,
                "time": np.concatenate(([0.0], np.asarray(sf.surv_times, dtype=float))),
                "survival": np.concatenate(([1.0], surv)),
                "std_error": np.concatenate(([0.0], se)),
                "conf_low": np.concatenate(([1.0], lower)),
                "conf_high": np.concatenate(([1.0], upper)),
                "n_risk": np.concatenate(([float(mask.sum())], sf.n_risk)),
                "n_events": np.concatenate(([0.0], sf.n_events)),
            }
        )
        blocks.append(block)
    return pd.concat(blocks, ignore_index=True)


def median_survival_table(
    frame: pd.DataFrame,
    data_config: DataConfig,
    by: list[str] | None = None,
    alpha: float = 0.05,
) -> pd.DataFrame:
    labels = group_labels(frame, data_config, by).to_numpy()
    time = frame[data_config.time_col].to_numpy(dtype=float)
    status = frame[data_config.event_col].to_numpy(dtype=int)

    records: list[dict[str, Any]] = []
    for group in sorted(pd.unique(labels).tolist()):
        mask = labels == group
        sf = SurvfuncRight(time[mask], status[mask], title=str(group))
        median = float(sf.quantile(0.5))
        if np.isnan(median):
            low, high = np.nan, np.nan
        else:
            low, high = sf.quantile_ci(0.5, alpha=alpha)
        records.append(
            {
                "group": group,
                "n": int(mask.sum()),
                "n_events": int(status[mask].sum()),
                "median": median,
                "conf_low": float(low),
                "conf_high": float(high),
            }
        )
    return pd.DataFrame.from_records(records)


def treatment_varies_within_groups(frame: pd.DataFrame, data_config: DataConfig) -> bool:
    """True when at least one clone was observed under two or more treatment cells."""
    if data_config.group_col is None:
        return False
    cells = treatment_cells(frame, data_config)
    per_group = cells.groupby(frame[data_config.group_col].astype(str).to_numpy()).nunique()
    return bool((per_group >= 2).any())


def logrank_test(
    frame: pd.DataFrame,
    data_config: DataConfig,
    stratify_by_group: bool = False,
) -> dict[str, Any]:
    """k-sample log-rank test across treatment cells, optionally stratified by clone."""
    cells = treatment_cells(frame, data_config).to_numpy()
    n_groups = int(len(pd.unique(cells)))
    if n_groups < 2:
        raise ClonesurvValidationError("Log-rank test requires at least two treatment groups.")

    strata = None
    if stratify_by_group:
        if not treatment_varies_within_groups(frame, data_config):
            raise ClonesurvValidationError(
                "Stratified log-rank test requires treatment variation within at least one clone."
            )
        strata = frame[data_config.group_col].astype(str).to_numpy()

    chisq, pvalue = survdiff(
        frame[data_config.time_col].to_numpy(dtype=float),
        frame[data_config.event_col].to_numpy(dtype=int),
        cells,
        strata=strata,
    )
    return {
        "chisq": float(chisq),
        "df": n_groups - 1,
        "p_value": float(pvalue),
        "stratified": bool(stratify_by_group),
        "n_groups": n_groups,
    }
