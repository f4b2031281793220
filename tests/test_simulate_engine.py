from __future__ import annotations

import numpy as np
import pandas as pd

from clonesurv.config import DataConfig, SimulationConfig
from clonesurv.simulate import (
    assign_levels,
    clone_labels,
    generate_clustered_survival,
    true_effects,
)


def test_clone_labels_are_zero_padded() -> None:
    assert clone_labels(3) == ["C01", "C02", "C03"]
    assert clone_labels(120)[0] == "C001"


def test_assign_levels_within_and_between() -> None:
    within = assign_levels(SimulationConfig(n_clones=3, levels=["a", "b"]))
    assert within == [
        ("C01", "a"),
        ("C01", "b"),
        ("C02", "a"),
        ("C02", "b"),
        ("C03", "a"),
        ("C03", "b"),
    ]

    between = assign_levels(
        SimulationConfig(n_clones=5, levels=["a", "b", "c"], assignment="between")
    )
    assert between == [("C01", "a"), ("C02", "b"), ("C03", "c"), ("C04", "a"), ("C05", "b")]


def test_true_effects_cover_non_reference_levels() -> None:
    params = SimulationConfig(levels=["wt", "ko1", "ko2"], log_hr=-0.3)
    assert true_effects(params) == {"treatment[ko1]": -0.3, "treatment[ko2]": -0.3}

    data_config = DataConfig(treatment_cols=["strain"])
    assert true_effects(params, data_config) == {"strain[ko1]": -0.3, "strain[ko2]": -0.3}


def test_generator_is_deterministic_for_a_seed() -> None:
    params = SimulationConfig(n_clones=4, n_per_cell=5, censor_rate=0.1)
    first = generate_clustered_survival(params, np.random.default_rng(11))
    second = generate_clustered_survival(params, np.random.default_rng(11))
    third = generate_clustered_survival(params, np.random.default_rng(12))

    pd.testing.assert_frame_equal(first, second)
    assert not first["time"].equals(third["time"])


def test_generator_shape_and_follow_up_censoring() -> None:
    params = SimulationConfig(n_clones=6, n_per_cell=7, follow_up=2.0, weibull_scale=5.0)
    frame = generate_clustered_survival(params, np.random.default_rng(0))

    assert list(frame.columns) == ["clone", "treatment", "time", "status"]
    assert len(frame) == 6 * 2 * 7
    assert frame.groupby(["clone", "treatment"]).size().eq(7).all()
    assert (frame["time"] > 0).all()
    assert (frame["time"] <= 2.0).all()
    censored = frame[frame["status"] == 0]
    assert not censored.empty
    assert np.allclose(censored["time"], 2.0)


def test_generator_between_assignment_keeps_clone_in_one_level() -> None:
    params = SimulationConfig(n_clones=6, n_per_cell=4, assignment="between")
    frame = generate_clustered_survival(params, np.random.default_rng(1))

    assert frame.groupby("clone")["treatment"].nunique().eq(1).all()
    assert sorted(frame["treatment"].unique()) == ["control", "treated"]
    assert len(frame) == 6 * 4


def test_generator_rounds_deaths_to_inspection_grid() -> None:
    params = SimulationConfig(
        n_clones=5, n_per_cell=10, follow_up=7.5, observation_interval=2.0
    )
    frame = generate_clustered_survival(params, np.random.default_rng(4))

    deaths = frame.loc[frame["status"] == 1, "time"].to_numpy()
    assert deaths.size > 0
    assert set(np.unique(deaths)) <= {2.0, 4.0, 6.0, 7.5}


def test_generator_random_censoring_happens_before_follow_up() -> None:
    params = SimulationConfig(
        n_clones=4, n_per_cell=25, censor_rate=2.0, weibull_scale=50.0, follow_up=7.0
    )
    frame = generate_clustered_survival(params, np.random.default_rng(2))
    censored = frame[frame["status"] == 0]
    assert (censored["time"] < 7.0).any()


def test_generator_respects_custom_column_names() -> None:
    data_config = DataConfig(
        time_col="days", event_col="dead", group_col="strain", treatment_cols=["dose"]
    )
    frame = generate_clustered_survival(
        SimulationConfig(n_clones=2, n_per_cell=2), np.random.default_rng(0), data_config
    )
    assert list(frame.columns) == ["strain", "dose", "days", "dead"]


def test_larger_log_hr_shortens_survival() -> None:
    params = SimulationConfig(n_clones=20, n_per_cell=30, log_hr=1.5, frailty_sd=0.0)
    frame = generate_clustered_survival(params, np.random.default_rng(8))
    means = frame.groupby("treatment")["time"].mean()
    assert means["treated"] < means["control"]
