from __future__ import annotations

import logging

import numpy as np
import pandas as pd
import pytest

from clonesurv.api import ClonesurvValidationError
from clonesurv.config import DataConfig
from clonesurv.data import prepare_survival_frame
from clonesurv.survival import build_treatment_design, expand_person_period, resolve_breakpoints
from clonesurv.survival.design import interval_indicators, term_name


def _frame() -> tuple[pd.DataFrame, DataConfig]:
    config = DataConfig(reference_levels={"treatment": "control"})
    raw = pd.DataFrame(
        {
            "clone": ["C1", "C1", "C2", "C2", "C3"],
            "treatment": ["control", "treated", "control", "treated", "treated"],
            "time": [0.5, 2.0, 3.0, 4.5, 1.0],
            "status": [1, 0, 1, 1, 0],
        }
    )
    return prepare_survival_frame(raw, config), config


def test_build_treatment_design_uses_reference_coding() -> None:
    frame, config = _frame()
    design = build_treatment_design(frame, config)

    assert list(design.columns) == [term_name("treatment", "treated")]
    assert design.iloc[:, 0].tolist() == [0.0, 1.0, 0.0, 1.0, 1.0]


def test_build_treatment_design_adds_interaction_terms() -> None:
    config = DataConfig(treatment_cols=["treatment", "host"], interaction=True)
    raw = pd.DataFrame(
        {
            "clone": ["a", "a", "b", "b"],
            "treatment": ["ko", "wt", "ko", "wt"],
            "host": ["x", "x", "y", "y"],
            "time": [1.0, 2.0, 3.0, 4.0],
            "status": [1, 1, 1, 0],
        }
    )
    design = build_treatment_design(prepare_survival_frame(raw, config), config)

    assert list(design.columns) == ["treatment[wt]", "host[y]", "treatment[wt]:host[y]"]
    assert design["treatment[wt]:host[y]"].tolist() == [0.0, 0.0, 0.0, 1.0]


def test_build_treatment_design_requires_prepared_frame() -> None:
    frame = pd.DataFrame({"treatment": ["a", "b"]})
    with pytest.raises(ClonesurvValidationError, match="must be categorical"):
        build_treatment_design(frame, DataConfig())


def test_build_treatment_design_rejects_empty_levels() -> None:
    frame, config = _frame()
    frame["treatment"] = frame["treatment"].cat.add_categories(["unused"])
    with pytest.raises(ClonesurvValidationError, match="no observations"):
        build_treatment_design(frame, config)


def test_resolve_breakpoints_from_event_quantiles() -> None:
    times = np.array([1.0, 2.0, 3.0, 4.0, 5.0, 6.0])
    events = np.array([1, 1, 1, 1, 1, 0])

    cuts = resolve_breakpoints(times, events, n_intervals=2)

    assert cuts == [3.0]
    assert resolve_breakpoints(times, events, n_intervals=1) == []
    assert resolve_breakpoints(times, np.zeros(6, dtype=int), n_intervals=4) == []


def test_resolve_breakpoints_keeps_cuts_below_last_event() -> None:
    times = np.array([1.0, 1.0, 1.0, 2.0])
    events = np.array([1, 1, 1, 1])

    cuts = resolve_breakpoints(times, events, n_intervals=4)

    assert cuts == [1.0]
    assert all(cut < 2.0 for cut in cuts)


def test_resolve_breakpoints_explicit_values_are_trimmed_to_follow_up(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="clonesurv.survival"):
        cuts = resolve_breakpoints(
            [1.0, 5.0], [1, 1], n_intervals=3, breakpoints=[2.0, 5.0, 8.0]
        )
    assert cuts == [2.0]
    assert "Dropping breakpoints [5.0, 8.0]" in caplog.text


def test_resolve_breakpoints_explicit_values_inside_follow_up_are_silent(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="clonesurv.survival"):
        cuts = resolve_breakpoints([1.0, 5.0], [1, 1], n_intervals=3, breakpoints=[1.5, 3.0])
    assert cuts == [1.5, 3.0]
    assert caplog.records == []


def test_resolve_breakpoints_rejects_non_positive_interval_count() -> None:
    with pytest.raises(ClonesurvValidationError, match="n_intervals"):
        resolve_breakpoints([1.0], [1], n_intervals=0)


def test_expand_person_period_preserves_exposure_and_events() -> None:
    frame, config = _frame()
    cuts = [1.0, 3.0]

    rows = expand_person_period(frame, config, cuts)

    exposure = rows.groupby("subject_id")["exposure"].sum()
    events = rows.groupby("subject_id")["event"].sum()
    np.testing.assert_allclose(exposure.to_numpy(), frame["time"].to_numpy())
    assert events.tolist() == frame["status"].tolist()
    assert (rows["exposure"] > 0).all()
    # Subject 0 dies at 0.5, inside the first interval only.
    first = rows[rows["subject_id"] == 0]
    assert first["interval"].tolist() == [0]
    # Subject 3 (time 4.5) spans all three intervals and dies in the last.
    last = rows[rows["subject_id"] == 3]
    assert last["interval"].tolist() == [0, 1, 2]
    assert last["event"].tolist() == [0, 0, 1]
    assert last["interval_start"].tolist() == [0.0, 1.0, 3.0]


def test_expand_person_period_event_on_cut_belongs_to_earlier_interval() -> None:
    frame, config = _frame()
    rows = expand_person_period(frame, config, [3.0])

    subject = rows[rows["subject_id"] == 2]
    assert subject["interval"].tolist() == [0]
    assert subject["event"].tolist() == [1]


def test_expand_person_period_rejects_unsorted_cuts() -> None:
    frame, config = _frame()
    with pytest.raises(ClonesurvValidationError, match="strictly increasing"):
        expand_person_period(frame, config, [2.0, 1.0])


def test_interval_indicators_one_column_per_interval() -> None:
    table = interval_indicators(pd.Series([0, 2, 1, 2]), 3)
    assert list(table.columns) == ["interval[0]", "interval[1]", "interval[2]"]
    np.testing.assert_array_equal(table.sum(axis=1).to_numpy(), np.ones(4))
