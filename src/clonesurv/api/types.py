"""Public result types used by stable API functions."""

from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from clonesurv.survival.base import ModelFit


@dataclass(slots=True)
class AnalysisResult:
    """Result payload returned by :func:`clonesurv.api.analyze`.

    Attributes
    ----------
    run_id
        Unique identifier for the run.
    task_type
        Always ``"analysis"``.
    artifact_path
        Saved run directory path.
    estimates
        Tidy treatment-effect table across all fitted models.
    comparison
        Wide table with one row per term and one column group per model.
    kaplan_meier
        Long Kaplan-Meier table.
    median_survival
        Median survival with interval per group.
    logrank
        One row per log-rank test (pooled and, when possible, clone-stratified).
    descriptives
        Per-treatment-cell counts.
    fits
        Full model fit objects.
    metrics
        JSON-friendly summary written to ``metrics.json``.
    metadata
        Additional contextual fields.
    """

    run_id: str
    task_type: str
    artifact_path: str | None = None
    estimates: pd.DataFrame = field(default_factory=pd.DataFrame)
    comparison: pd.DataFrame = field(default_factory=pd.DataFrame)
    kaplan_meier: pd.DataFrame = field(default_factory=pd.DataFrame)
    median_survival: pd.DataFrame = field(default_factory=pd.DataFrame)
    logrank: pd.DataFrame = field(default_factory=pd.DataFrame)
    descriptives: pd.DataFrame = field(default_factory=pd.DataFrame)
    fits: list[ModelFit] = field(default_factory=list)
    metrics: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class SimulationStudyResult:
    """Result payload returned by :func:`clonesurv.api.simulate_study`.

    Attributes
    ----------
    run_id
        Unique identifier for the run.
    task_type
        Always ``"simulation"``.
    artifact_path
        Saved run directory path.
    replicates
        Tidy rows of every replicate and model.
    summary
        Operating characteristics per model and term.
    truth
        True effect per treatment term.
    metrics
        JSON-friendly summary written to ``metrics.json``.
    metadata
        Additional contextual fields.
    """

    run_id: str
    task_type: str
    artifact_path: str | None = None
    replicates: pd.DataFrame = field(default_factory=pd.DataFrame)
    summary: pd.DataFrame = field(default_factory=pd.DataFrame)
    truth: dict[str, float] = field(default_factory=dict)
    metrics: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
