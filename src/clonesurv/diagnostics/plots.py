"""Plotting helpers for survival diagnostics."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import plotly.graph_objects as go
from plotly.colors import qualitative

from clonesurv.config.models import DataConfig
from clonesurv.data.loader import treatment_cells
from clonesurv.survival.km import kaplan_meier_table

_EMPTY_PNG_1X1 = (
    b"\x89PNG\r\n\x1a\n"
    b"\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00\x1f\x15\xc4\x89"
    b"\x00\x00\x00\x0cIDATx\x9cc```\x00\x00\x00\x04\x00\x01\xf5\x17\xd4\x8f"
    b"\x00\x00\x00\x00IEND\xaeB`\x82"
)


def _ensure_parent(save_path: str | Path) -> Path:
    path = Path(save_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def _save_plotly_or_empty(fig: go.Figure, save_path: str | Path) -> Path:
    path = _ensure_parent(save_path)
    try:
        fig.write_image(path)
    except Exception:
        # No static image backend (kaleido) available.
        path.write_bytes(_EMPTY_PNG_1X1)
    return path


def _palette(labels: list[str]) -> dict[str, str]:
    colors = qualitative.Plotly
    return {label: colors[idx % len(colors)] for idx, label in enumerate(labels)}


def _row_labels(table: pd.DataFrame) -> list[str]:
    if table["term"].nunique() <= 1:
        return table["model"].astype(str).tolist()
    return (table["model"].astype(str) + " | " + table["term"].astype(str)).tolist()


def plot_survival_curves(
    km_table: pd.DataFrame,
    save_path: str | Path,
    title: str | None = None,
) -> None:
    """Step curves of a :func:`kaplan_meier_table` with pointwise bands."""
    path = _ensure_parent(save_path)
    fig, ax = plt.subplots(figsize=(8, 5))
    for group, part in km_table.groupby("group", sort=True):
        time = part["time"].to_numpy(dtype=float)
        (line,) = ax.step(time, part["survival"].to_numpy(dtype=float), where="post", label=group)
        ax.fill_between(
            time,
            part["conf_low"].to_numpy(dtype=float),
            part["conf_high"].to_numpy(dtype=float),
            step="post",
            alpha=0.2,
            color=line.get_color(),
        )
    ax.set_ylim(0.0, 1.05)
    ax.set_xlabel("Time")
    ax.set_ylabel("Survival probability")
    ax.set_title(title or "Kaplan-Meier survival")
    ax.legend()
    fig.tight_layout()
    fig.savefig(path)
    plt.close(fig)


def plot_clone_curves(
    frame: pd.DataFrame,
    data_config: DataConfig,
    save_path: str | Path,
) -> go.Figure:
    """One Kaplan-Meier curve per clone and treatment cell, coloured by treatment."""
    fig = go.Figure()
    cells = treatment_cells(frame, data_config)
    colors = _palette(sorted(pd.unique(cells.to_numpy()).tolist()))
    if data_config.group_col is None:
        clones = pd.Series("all", index=frame.index)
    else:
        clones = frame[data_config.group_col].astype(str)

    shown: set[str] = set()
    for clone in sorted(pd.unique(clones.to_numpy()).tolist()):
        subset = frame.loc[(clones == clone).to_numpy()]
        km = kaplan_meier_table(subset, data_config)
        for cell, part in km.groupby("group", sort=True):
            fig.add_trace(
                go.Scatter(
                    x=part["time"],
                    y=part["survival"],
                    mode="lines",
                    line_shape="hv",
                    line={"color": colors[cell], "width": 1},
                    name=cell,
                    legendgroup=cell,
                    showlegend=cell not in shown,
                    hovertemplate=(
                        f"clone={clone}<br>time=%{{x}}<br>S=%{{y:.3f}}<extra>{cell}</extra>"
                    ),
                )
            )
            shown.add(cell)
    fig.update_layout(
        title="Survival by clone",
        xaxis_title="Time",
        yaxis_title="Survival probability",
        yaxis_range=[0.0, 1.05],
        template="plotly_white",
    )
    _save_plotly_or_empty(fig, save_path)
    return fig


def plot_hazard_ratios(estimates: pd.DataFrame, save_path: str | Path) -> go.Figure:
    """Forest plot of exp(estimate) with interval bounds, one row per model and term."""
    table = estimates.loc[np.isfinite(estimates["hazard_ratio"].to_numpy(dtype=float))]
    labels = _row_labels(table)
    hr = table["hazard_ratio"].to_numpy(dtype=float)
    fig = go.Figure()
    fig.add_trace(
        go.Scatter(
            x=hr,
            y=labels,
            mode="markers",
            name="estimate",
            error_x={
                "type": "data",
                "symmetric": False,
                "array": table["hr_high"].to_numpy(dtype=float) - hr,
                "arrayminus": hr - table["hr_low"].to_numpy(dtype=float),
            },
        )
    )
    if labels:
        fig.add_trace(
            go.Scatter(
                x=[1.0, 1.0],
                y=[labels[0], labels[-1]],
                mode="lines",
                name="no effect",
                line={"dash": "dash", "color": "#666666"},
            )
        )
    fig.update_layout(
        title="Treatment effect by model",
        xaxis_title="Hazard ratio (log scale)",
        xaxis_type="log",
        yaxis={"autorange": "reversed"},
        template="plotly_white",
    )
    _save_plotly_or_empty(fig, save_path)
    return fig


def plot_simulation_estimates(
    replicates: pd.DataFrame,
    truth: float | Mapping[str, float],
    save_path: str | Path,
) -> go.Figure:
    """Box plot of replicate estimates per model against the true effect."""
    table = replicates.loc[np.isfinite(replicates["estimate"].to_numpy(dtype=float))]
    labels = pd.Series(_row_labels(table), index=table.index)
    fig = go.Figure()
    for label in pd.unique(labels.to_numpy()).tolist():
        fig.add_trace(
            go.Box(y=table.loc[labels == label, "estimate"], name=label, boxmean=True)
        )
    values = sorted(set(truth.values())) if isinstance(truth, Mapping) else [float(truth)]
    for value in values:
        fig.add_hline(y=value, line_dash="dash", line_color="#d62728")
    fig.update_layout(
        title="Replicate estimates",
        yaxis_title="Estimate",
        showlegend=False,
        template="plotly_white",
    )
    _save_plotly_or_empty(fig, save_path)
    return fig


def plot_coverage(summary: pd.DataFrame, nominal: float, save_path: str | Path) -> go.Figure:
    """Coverage per model with 1.96 x Monte-Carlo error bars and the nominal level."""
    labels = _row_labels(summary)
    fig = go.Figure(
        data=go.Bar(
            x=labels,
            y=summary["coverage"].to_numpy(dtype=float),
            error_y={
                "type": "data",
                "array": 1.96 * summary["mcse_coverage"].to_numpy(dtype=float),
            },
        )
    )
    fig.add_hline(y=nominal, line_dash="dash", line_color="#666666")
    fig.update_layout(
        title="Interval coverage",
        yaxis_title="Coverage",
        yaxis_range=[0.0, 1.0],
        template="plotly_white",
    )
    _save_plotly_or_empty(fig, save_path)
    return fig
