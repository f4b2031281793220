"""Design matrices and person-period expansion for survival models."""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np
import pandas as pd

from clonesurv.api.exceptions import ClonesurvValidationError
from clonesurv.config.models import DataConfig

LOGGER = logging.getLogger("clonesurv.survival")

SUBJECT_COL = "subject_id"
INTERVAL_COL = "interval"
INTERVAL_START_COL = "interval_start"
EXPOSURE_COL = "exposure"
EVENT_COL = "event"


def term_name(factor: str, level: str) -> str:
    return f"{factor}[{level}]"


def build_treatment_design(frame: pd.DataFrame, data_config: DataConfig) -> pd.DataFrame:
    """Reference-coded treatment design without intercept.

    Treatment columns must already be categoricals with the reference level
    first (see :func:`clonesurv.data.prepare_survival_frame`).
    """
    blocks: dict[str, list[str]] = {}
    design = pd.DataFrame(index=frame.index)
    for factor in data_config.treatment_cols:
        column = frame[factor]
        if not isinstance(column.dtype, pd.CategoricalDtype):
            raise ClonesurvValidationError(
                f"Treatment column '{factor}' must be categorical; "
                "call prepare_survival_frame first."
            )
        names: list[str] = []
        for level in list(column.cat.categories)[1:]:
            name = term_name(factor, str(level))
            design[name] = (column == level).to_numpy(dtype=float)
            names.append(name)
        blocks[factor] = names

    if data_config.interaction and len(data_config.treatment_cols) == 2:
        first, second = data_config.treatment_cols
        for left in blocks[first]:
            for right in blocks[second]:
                design[f"{left}:{right}"] = design[left] * design[right]

    empty = [name for name in design.columns if design[name].sum() == 0]
    if empty:
        raise ClonesurvValidationError(
            f"Design columns have no observations: {empty}. "
            "Drop unused levels or disable data.interaction."
        )
    return design


def resolve_breakpoints(
    times: Sequence[float] | np.ndarray,
    events: Sequence[int] | np.ndarray,
    n_intervals: int,
    breakpoints: Sequence[float] | None = None,
) -> list[float]:
    """Return interior cut points for piecewise baseline hazards.

    Explicit ``breakpoints`` win, except cuts at or after the last follow-up
    time, which are dropped with a warning. Otherwise the cuts are the unique
    quantiles of observed event times at ``k / n_intervals`` for ``k = 1..n_intervals-1``,
    dropping any cut at or beyond the last event time.
    """
    time_arr = np.asarray(times, dtype=float)
    if breakpoints is not None:
        last = float(np.max(time_arr))
        kept = [float(v) for v in breakpoints if float(v) < last]
        dropped = [float(v) for v in breakpoints if float(v) >= last]
        if dropped:
            # Such cuts would open intervals that hold no person-period rows.
            LOGGER.warning(
                "Dropping breakpoints %s at or after the last follow-up time %g.", dropped, last
            )
        return kept
    if n_intervals < 1:
        raise ClonesurvValidationError("n_intervals must be >= 1.")

    event_arr = np.asarray(events, dtype=int)
    event_times = time_arr[event_arr == 1]
    if n_intervals == 1 or event_times.size == 0:
        return []

    # "lower" keeps cuts on observed event times so every interval holds an event.
    probs = np.arange(1, n_intervals) / float(n_intervals)
    cuts = np.unique(np.quantile(event_times, probs, method="lower"))
    cuts = cuts[(cuts > 0) & (cuts < float(np.max(event_times)))]
    return [float(v) for v in cuts]


def expand_person_period(
    frame: pd.DataFrame,
    data_config: DataConfig,
    cuts: Sequence[float],
) -> pd.DataFrame:
    """Split follow-up into intervals ``(a_k, b_k]`` with ``a_0 = 0`` and ``b_K = inf``.

    A subject contributes a row to interval ``k`` when its time exceeds
    ``a_k``. The row's exposure is the time spent at risk within the interval
    and its event flag is set only in the interval that contains the
    subject's event time.
    """
    edges = np.concatenate(([0.0], np.asarray(cuts, dtype=float), [np.inf]))
    if np.any(np.diff(edges) <= 0):
        raise ClonesurvValidationError("Interval cut points must be strictly increasing and > 0.")

    time = frame[data_config.time_col].to_numpy(dtype=float)
    status = frame[data_config.event_col].to_numpy(dtype=int)
    n_subjects = len(frame)
    starts = edges[:-1]
    ends = edges[1:]

    at_risk = time[:, None] > starts[None, :]
    subject_idx, interval_idx = np.nonzero(at_risk)

    t = time[subject_idx]
    start = starts[interval_idx]
    end = ends[interval_idx]
    exposure = np.minimum(t, end) - start
    event = np.where(t <= end, status[subject_idx], 0)

    keep_cols = [*data_config.treatment_cols]
    if data_config.group_col is not None:
        keep_cols.append(data_config.group_col)
    out = frame.iloc[subject_idx][keep_cols].reset_index(drop=True)
    out.insert(0, SUBJECT_COL, np.arange(n_subjects)[subject_idx])
    out[INTERVAL_COL] = interval_idx.astype(int)
    out[INTERVAL_START_COL] = start
    out[EXPOSURE_COL] = exposure
    out[EVENT_COL] = event.astype(int)
    return out


def interval_indicators(intervals: pd.Series | np.ndarray, n_intervals: int) -> pd.DataFrame:
    """One indicator column per interval (baseline hazard terms, no intercept)."""
    values = np.asarray(intervals, dtype=int)
    data = {
        f"interval[{k}]": (values == k).astype(float) for k in range(n_intervals)
    }
    return pd.DataFrame(data)
