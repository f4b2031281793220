"""Operating characteristics of estimators across simulation replicates."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import numpy as np
import pandas as pd

from clonesurv.api.exceptions import ClonesurvValidationError

SUMMARY_COLUMNS = [
    "model",
    "model_type",
    "term",
    "scale",
    "truth",
    "n_reps",
    "n_failed",
    "n_nonconverged",
    "mean_estimate",
    "bias",
    "mcse_bias",
    "relative_bias",
    "empirical_se",
    "mean_model_se",
    "se_ratio",
    "rmse",
    "coverage",
    "mcse_coverage",
    "nominal_coverage",
    "rejection_rate",
]

_REQUIRED = ["model", "term", "estimate", "std_error", "conf_low", "conf_high"]


def _truth_for(truth: float | Mapping[str, float], term: str) -> float:
    if isinstance(truth, Mapping):
        return float(truth.get(term, np.nan))
    return float(truth)


def _usable_rows(part: pd.DataFrame) -> np.ndarray:
    values = part[["estimate", "std_error", "conf_low", "conf_high"]].to_numpy(dtype=float)
    ok = np.all(np.isfinite(values), axis=1)
    if "error" in part.columns:
        ok &= (part["error"].fillna("").astype(str) == "").to_numpy()
    return ok


def _summarize_block(part: pd.DataFrame, true_value: float) -> dict[str, Any]:
    ok = _usable_rows(part)
    n = int(ok.sum())
    est = part["estimate"].to_numpy(dtype=float)[ok]
    se = part["std_error"].to_numpy(dtype=float)[ok]
    low = part["conf_low"].to_numpy(dtype=float)[ok]
    high = part["conf_high"].to_numpy(dtype=float)[ok]
    if "converged" in part.columns:
        n_nonconverged = int((~part["converged"].to_numpy(dtype=bool)[ok]).sum())
    else:
        n_nonconverged = 0

    stats: dict[str, Any] = {
        "n_reps": int(len(part)),
        "n_failed": int(len(part) - n),
        "n_nonconverged": n_nonconverged,
    }
    if n == 0:
        for key in SUMMARY_COLUMNS:
            if key not in stats and key not in {"model", "model_type", "term", "scale", "truth"}:
                stats[key] = np.nan
        return stats

    mean_estimate = float(est.mean())
    bias = mean_estimate - true_value
    empirical_se = float(est.std(ddof=1)) if n > 1 else np.nan
    mean_model_se = float(se.mean())
    coverage = float(np.mean((low <= true_value) & (true_value <= high)))
    stats.update(
        {
            "mean_estimate": mean_estimate,
            "bias": bias,
            "mcse_bias": empirical_se / np.sqrt(n) if n > 1 else np.nan,
            "relative_bias": bias / true_value if true_value != 0 else np.nan,
            "empirical_se": empirical_se,
            "mean_model_se": mean_model_se,
            "se_ratio": mean_model_se / empirical_se if n > 1 and empirical_se > 0 else np.nan,
            "rmse": float(np.sqrt(np.mean((est - true_value) ** 2))),
            "coverage": coverage,
            "mcse_coverage": float(np.sqrt(coverage * (1.0 - coverage) / n)),
            "rejection_rate": float(np.mean((low > 0.0) | (high < 0.0))),
        }
    )
    return stats


def summarize_simulation(
    replicates: pd.DataFrame,
    truth: float | Mapping[str, float],
    alpha: float = 0.05,
) -> pd.DataFrame:
    """Summarize replicate estimates per (model, term).

    Coverage is the share of intervals containing ``truth``; rejection rate
    is the share of intervals excluding zero, i.e. power for a non-zero truth
    and type-I error for a null truth. Failed or non-finite rows are left out
    of every statistic and counted in ``n_failed``.
    """
    missing = [col for col in _REQUIRED if col not in replicates.columns]
    if missing:
        raise ClonesurvValidationError(f"Replicate table is missing columns: {missing}")
    if replicates.empty:
        raise ClonesurvValidationError("Replicate table is empty.")

    records: list[dict[str, Any]] = []
    for (model, term), part in replicates.groupby(["model", "term"], sort=False):
        true_value = _truth_for(truth, str(term))
        record: dict[str, Any] = {
            "model": model,
            "model_type": part["model_type"].iloc[0] if "model_type" in part else model,
            "term": term,
            "scale": part["scale"].iloc[0] if "scale" in part else "log_hr",
            "truth": true_value,
            "nominal_coverage": 1.0 - alpha,
        }
        record.update(_summarize_block(part, true_value))
        records.append(record)
    return pd.DataFrame.from_records(records)[SUMMARY_COLUMNS]
