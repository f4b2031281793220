"""Simulation layer exports."""

from clonesurv.simulate.engine import (
    assign_levels,
    clone_labels,
    generate_clustered_survival,
    true_effects,
)
from clonesurv.simulate.study import run_replicate, run_simulation_study, simulate_dataset
from clonesurv.simulate.summary import SUMMARY_COLUMNS, summarize_simulation

__all__ = [
    "SUMMARY_COLUMNS",
    "assign_levels",
    "clone_labels",
    "generate_clustered_survival",
    "run_replicate",
    "run_simulation_study",
    "simulate_dataset",
    "summarize_simulation",
    "true_effects",
]
