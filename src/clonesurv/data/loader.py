"""Tabular data loading and survival-frame validation."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pandas as pd

from clonesurv.api.exceptions import ClonesurvValidationError
from clonesurv.config.models import DataConfig


def load_tabular_data(path: str | Path) -> pd.DataFrame:
    """Load CSV/Parquet into a DataFrame based on file extension."""
    source = Path(path)
    suffix = source.suffix.lower()

    if suffix == ".csv":
        return pd.read_csv(source)
    if suffix == ".parquet":
        return pd.read_parquet(source)

    raise ClonesurvValidationError(
        f"Unsupported data format: '{suffix}'. Supported formats are .csv and .parquet."
    )


def required_columns(data_config: DataConfig) -> list[str]:
    cols = [data_config.time_col, data_config.event_col, *data_config.treatment_cols]
    if data_config.group_col is not None:
        cols.append(data_config.group_col)
    return cols


def _ordered_levels(values: pd.Series, column: str, reference: str | None) -> list[str]:
    levels = sorted(pd.unique(values).tolist())
    if len(levels) < 2:
        raise ClonesurvValidationError(
            f"Treatment column '{column}' must have at least two levels, got {levels}."
        )
    if reference is None:
        return levels
    if reference not in levels:
        raise ClonesurvValidationError(
            f"Reference level '{reference}' was not found in treatment column '{column}'. "
            f"Available levels: {levels}"
        )
    return [reference, *[level for level in levels if level != reference]]


def prepare_survival_frame(frame: pd.DataFrame, data_config: DataConfig) -> pd.DataFrame:
    """Validate survival input and return a normalized copy.

    Notes
    -----
    - ``time_col`` becomes float and must be strictly positive.
    - ``event_col`` becomes int with values in {0, 1}; 1 means death observed.
    - Treatment columns become categoricals whose first category is the
      reference level; the group column becomes a string categorical.
    - Columns not referenced by the config are kept unchanged.
    """
    if not isinstance(frame, pd.DataFrame):
        raise ClonesurvValidationError("Survival input must be a pandas.DataFrame.")
    if frame.empty:
        raise ClonesurvValidationError("Survival input data is empty.")

    cols = required_columns(data_config)
    missing = [col for col in cols if col not in frame.columns]
    if missing:
        raise ClonesurvValidationError(f"Input data is missing required columns: {missing}")
    null_cols = [col for col in cols if frame[col].isna().any()]
    if null_cols:
        raise ClonesurvValidationError(f"Columns must not contain null values: {null_cols}")

    out = frame.copy()

    time = pd.to_numeric(out[data_config.time_col], errors="coerce")
    if time.isna().any():
        raise ClonesurvValidationError(f"Time column '{data_config.time_col}' must be numeric.")
    time = time.astype(float)
    if not np.all(np.isfinite(time.to_numpy())) or (time <= 0).any():
        raise ClonesurvValidationError(
            f"Time column '{data_config.time_col}' must contain finite values > 0."
        )
    out[data_config.time_col] = time

    event = pd.to_numeric(out[data_config.event_col], errors="coerce")
    if event.isna().any() or not event.isin([0, 1]).all():
        raise ClonesurvValidationError(
            f"Event column '{data_config.event_col}' must be binary "
            "(1 = death observed, 0 = censored)."
        )
    out[data_config.event_col] = event.astype(int)

    for column in data_config.treatment_cols:
        values = out[column].astype(str)
        levels = _ordered_levels(values, column, data_config.reference_levels.get(column))
        out[column] = pd.Categorical(values, categories=levels)

    if data_config.group_col is not None:
        groups = out[data_config.group_col].astype(str)
        out[data_config.group_col] = pd.Categorical(
            groups, categories=sorted(pd.unique(groups).tolist())
        )

    return out


def treatment_cells(frame: pd.DataFrame, data_config: DataConfig) -> pd.Series:
    """Label each row by its treatment cell, e.g. ``"wt"`` or ``"wt / host=A"``."""
    cols = data_config.treatment_cols
    if len(cols) == 1:
        return frame[cols[0]].astype(str).rename("group")
    first, second = cols
    return (
        frame[first].astype(str) + " / " + second + "=" + frame[second].astype(str)
    ).rename("group")


def describe_survival_frame(frame: pd.DataFrame, data_config: DataConfig) -> pd.DataFrame:
    """Per-treatment-cell counts used in reports."""
    work = pd.DataFrame(
        {
            "group": treatment_cells(frame, data_config).to_numpy(),
            "time": frame[data_config.time_col].to_numpy(dtype=float),
            "event": frame[data_config.event_col].to_numpy(dtype=int),
        }
    )
    if data_config.group_col is not None:
        work["clone"] = frame[data_config.group_col].astype(str).to_numpy()
    else:
        work["clone"] = "all"

    records = []
    for group, part in work.groupby("group", sort=True):
        n = int(len(part))
        n_events = int(part["event"].sum())
        records.append(
            {
                "group": group,
                "n_subjects": n,
                "n_clones": int(part["clone"].nunique()),
                "n_events": n_events,
                "censored_fraction": float(1.0 - n_events / n),
                "median_time": float(part["time"].median()),
            }
        )
    return pd.DataFrame.from_records(records)
