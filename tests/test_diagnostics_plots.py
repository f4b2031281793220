from __future__ import annotations

from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import plotly.graph_objects as go

from clonesurv.config import DataConfig
from clonesurv.data import prepare_survival_frame
from clonesurv.diagnostics import (
    plot_clone_curves,
    plot_coverage,
    plot_hazard_ratios,
    plot_simulation_estimates,
    plot_survival_curves,
)
from clonesurv.survival import kaplan_meier_table

CONFIG = DataConfig(reference_levels={"treatment": "control"})


def _estimates() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "model": ["cox", "cox_cluster", "mixed_logit"],
            "term": ["treatment[treated]"] * 3,
            "hazard_ratio": [2.0, 2.0, np.nan],
            "hr_low": [1.5, 1.2, np.nan],
            "hr_high": [2.6, 3.3, np.nan],
        }
    )


def test_plot_survival_curves_writes_png(tmp_path: Path, survival_frame) -> None:
    frame = prepare_survival_frame(survival_frame(n_clones=3), CONFIG)
    out = tmp_path / "nested" / "km.png"

    plot_survival_curves(kaplan_meier_table(frame, CONFIG), out, title="Assay")

    assert out.exists()
    assert out.read_bytes()[:8] == b"\x89PNG\r\n\x1a\n"


def test_plot_clone_curves_one_trace_per_clone_cell(tmp_path: Path, survival_frame) -> None:
    frame = prepare_survival_frame(survival_frame(n_clones=3), CONFIG)
    out = tmp_path / "clones.png"

    fig = plot_clone_curves(frame, CONFIG, out)

    assert isinstance(fig, go.Figure)
    assert len(fig.data) == 6
    assert sum(bool(trace.showlegend) for trace in fig.data) == 2
    assert out.exists()


def test_plot_hazard_ratios_skips_non_finite_rows(tmp_path: Path) -> None:
    fig = plot_hazard_ratios(_estimates(), tmp_path / "forest.png")

    points = fig.data[0]
    assert list(points.y) == ["cox", "cox_cluster"]
    assert list(points.x) == [2.0, 2.0]
    assert fig.layout.xaxis.type == "log"
    assert fig.data[1].name == "no effect"
    assert (tmp_path / "forest.png").exists()


def test_plot_hazard_ratios_labels_terms_when_several(tmp_path: Path) -> None:
    table = pd.DataFrame(
        {
            "model": ["cox", "cox"],
            "term": ["a[x]", "b[y]"],
            "hazard_ratio": [1.0, 1.5],
            "hr_low": [0.8, 1.1],
            "hr_high": [1.3, 2.0],
        }
    )
    fig = plot_hazard_ratios(table, tmp_path / "forest.png")
    assert list(fig.data[0].y) == ["cox | a[x]", "cox | b[y]"]


def test_plot_simulation_estimates_box_per_model(tmp_path: Path) -> None:
    replicates = pd.DataFrame(
        {
            "model": ["cox", "cox", "cox_cluster", "cox_cluster"],
            "term": ["treatment[treated]"] * 4,
            "estimate": [0.4, 0.6, 0.4, np.nan],
        }
    )

    fig = plot_simulation_estimates(
        replicates, {"treatment[treated]": 0.5}, tmp_path / "estimates.png"
    )

    assert [trace.name for trace in fig.data] == ["cox", "cox_cluster"]
    assert len(fig.data[1].y) == 1
    assert fig.layout.shapes[0].y0 == 0.5
    assert (tmp_path / "estimates.png").exists()


def test_plot_coverage_draws_nominal_line(tmp_path: Path) -> None:
    summary = pd.DataFrame(
        {
            "model": ["cox", "cox_cluster"],
            "term": ["treatment[treated]"] * 2,
            "coverage": [0.8, 0.94],
            "mcse_coverage": [0.02, 0.01],
        }
    )

    fig = plot_coverage(summary, 0.95, tmp_path / "coverage.png")

    assert list(fig.data[0].x) == ["cox", "cox_cluster"]
    assert fig.layout.shapes[0].y0 == 0.95
    assert (tmp_path / "coverage.png").exists()
