"""Presentation tables for model estimates and simulation summaries."""

from __future__ import annotations

import numpy as np
import pandas as pd

from clonesurv.survival.base import TIDY_COLUMNS, ModelFit


def build_estimates_table(fits: list[ModelFit]) -> pd.DataFrame:
    if not fits:
        return pd.DataFrame(columns=TIDY_COLUMNS)
    return pd.concat([fit.coefficients for fit in fits], ignore_index=True)[TIDY_COLUMNS]


def _format_ratio(hr: float, low: float, high: float) -> str:
    if not np.isfinite(hr):
        return "NA"
    return f"{hr:.2f} ({low:.2f}, {high:.2f})"


def build_model_comparison_table(estimates: pd.DataFrame) -> pd.DataFrame:
    """Wide table: one row per term, one column group per model.

    Each model contributes ``<model>.estimate``, ``<model>.std_error``,
    ``<model>.p_value`` and a formatted ``<model>.ratio_ci`` column.
    """
    terms = pd.unique(estimates["term"].to_numpy()).tolist()
    out = pd.DataFrame({"term": terms})
    for model in pd.unique(estimates["model"].to_numpy()).tolist():
        part = estimates.loc[estimates["model"] == model].set_index("term")
        part = part.reindex(terms)
        for column in ("estimate", "std_error", "p_value"):
            out[f"{model}.{column}"] = part[column].to_numpy(dtype=float)
        out[f"{model}.ratio_ci"] = [
            _format_ratio(float(hr), float(low), float(high))
            for hr, low, high in zip(part["hazard_ratio"], part["hr_low"], part["hr_high"])
        ]
    return out


def build_simulation_table(summary: pd.DataFrame, digits: int = 3) -> pd.DataFrame:
    columns = [
        "model",
        "term",
        "truth",
        "n_reps",
        "n_failed",
        "mean_estimate",
        "bias",
        "mcse_bias",
        "empirical_se",
        "mean_model_se",
        "se_ratio",
        "rmse",
        "coverage",
        "mcse_coverage",
        "rejection_rate",
    ]
    table = summary.loc[:, columns].copy()
    numeric = [col for col in columns if col not in {"model", "term", "n_reps", "n_failed"}]
    table[numeric] = table[numeric].astype(float).round(digits)
    return table.reset_index(drop=True)
