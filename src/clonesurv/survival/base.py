"""Shared result type and helpers for survival model fitters."""

from __future__ import annotations

import warnings
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

import numpy as np
import pandas as pd
from lifelines.exceptions import ConvergenceWarning as LifelinesConvergenceWarning
from scipy.stats import norm
from statsmodels.tools.sm_exceptions import ConvergenceWarning

from clonesurv.api.exceptions import (
    ClonesurvError,
    ClonesurvModelError,
    ClonesurvValidationError,
)
from clonesurv.config.models import DataConfig, ModelConfig

TIDY_COLUMNS = [
    "model",
    "model_type",
    "term",
    "scale",
    "estimate",
    "std_error",
    "conf_low",
    "conf_high",
    "p_value",
    "hazard_ratio",
    "hr_low",
    "hr_high",
    "converged",
    "n_obs",
    "n_events",
    "n_groups",
]

T = TypeVar("T")


@dataclass(slots=True)
class ModelFit:
    """Fitted model summary restricted to the treatment terms.

    Attributes
    ----------
    model
        Model label (``models[].label`` or the model type).
    model_type
        Configured model type.
    coefficients
        Tidy table with :data:`TIDY_COLUMNS`.
    n_obs
        Number of subjects used.
    n_events
        Number of observed deaths.
    n_groups
        Number of clones, or ``None`` when the data has no clone column.
    converged
        ``False`` when the library reported a convergence problem or
        returned non-finite standard errors.
    extras
        Model-specific values such as the clone random-effect SD.
    warnings
        Warning messages raised by the library during fitting.
    """

    model: str
    model_type: str
    coefficients: pd.DataFrame
    n_obs: int
    n_events: int
    n_groups: int | None
    converged: bool
    extras: dict[str, Any] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)


def _is_convergence_warning(item: warnings.WarningMessage) -> bool:
    if issubclass(item.category, (ConvergenceWarning, LifelinesConvergenceWarning)):
        return True
    return "converge" in str(item.message).lower()


def run_captured(label: str, fit_fn: Callable[[], T]) -> tuple[T, bool, list[str]]:
    """Run a library fit, turning warnings into a convergence flag.

    ``fit_fn`` builds the library model, fits it and reads every lazily
    computed result the caller needs. Library exceptions are re-raised as
    :class:`ClonesurvModelError`; clonesurv errors pass through unchanged.
    """
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        try:
            result = fit_fn()
        except ClonesurvError:
            raise
        except Exception as exc:
            raise ClonesurvModelError(f"Model '{label}' failed to fit: {exc}") from exc
    converged = not any(_is_convergence_warning(item) for item in caught)
    messages = [str(item.message) for item in caught]
    return result, converged, messages


def group_codes(frame: pd.DataFrame, data_config: DataConfig, model_label: str) -> np.ndarray:
    """Integer clone codes; clone-dependent models need at least two clones."""
    if data_config.group_col is None:
        raise ClonesurvValidationError(
            f"Model '{model_label}' requires data.group_col to be set."
        )
    groups = frame[data_config.group_col]
    if isinstance(groups.dtype, pd.CategoricalDtype):
        codes = groups.cat.remove_unused_categories().cat.codes.to_numpy()
    else:
        codes = pd.factorize(groups.astype(str), sort=True)[0]
    if len(np.unique(codes)) < 2:
        raise ClonesurvValidationError(
            f"Model '{model_label}' requires at least two clones in column "
            f"'{data_config.group_col}'."
        )
    return np.asarray(codes, dtype=int)


def count_groups(frame: pd.DataFrame, data_config: DataConfig) -> int | None:
    if data_config.group_col is None:
        return None
    return int(frame[data_config.group_col].astype(str).nunique())


def tidy_coefficients(
    model_config: ModelConfig,
    terms: list[str],
    estimate: np.ndarray,
    std_error: np.ndarray,
    alpha: float,
    *,
    scale: str = "log_hr",
    converged: bool = True,
    with_p_value: bool = True,
    n_obs: int = 0,
    n_events: int = 0,
    n_groups: int | None = None,
) -> pd.DataFrame:
    """Wald-type tidy table; interval bounds are ``estimate +/- z * std_error``."""
    est = np.asarray(estimate, dtype=float)
    se = np.asarray(std_error, dtype=float)
    z = float(norm.ppf(1.0 - alpha / 2.0))
    conf_low = est - z * se
    conf_high = est + z * se
    if with_p_value:
        with np.errstate(divide="ignore", invalid="ignore"):
            p_value = 2.0 * norm.sf(np.abs(est / se))
    else:
        p_value = np.full(est.shape, np.nan)

    table = pd.DataFrame(
        {
            "model": model_config.resolved_label,
            "model_type": model_config.type,
            "term": list(terms),
            "scale": scale,
            "estimate": est,
            "std_error": se,
            "conf_low": conf_low,
            "conf_high": conf_high,
            "p_value": p_value,
            "hazard_ratio": np.exp(est),
            "hr_low": np.exp(conf_low),
            "hr_high": np.exp(conf_high),
            "converged": bool(converged and np.all(np.isfinite(se))),
            "n_obs": int(n_obs),
            "n_events": int(n_events),
            "n_groups": n_groups if n_groups is not None else np.nan,
        }
    )
    return table[TIDY_COLUMNS]


def failed_coefficients(
    model_config: ModelConfig,
    terms: list[str],
    *,
    scale: str = "log_hr",
) -> pd.DataFrame:
    """NaN rows for a model that could not be fitted."""
    nan = np.full(len(terms), np.nan)
    table = pd.DataFrame(
        {
            "model": model_config.resolved_label,
            "model_type": model_config.type,
            "term": list(terms),
            "scale": scale,
            "estimate": nan,
            "std_error": nan,
            "conf_low": nan,
            "conf_high": nan,
            "p_value": nan,
            "hazard_ratio": nan,
            "hr_low": nan,
            "hr_high": nan,
            "converged": False,
            "n_obs": 0,
            "n_events": 0,
            "n_groups": np.nan,
        }
    )
    return table[TIDY_COLUMNS]
