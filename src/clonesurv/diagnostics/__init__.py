"""Diagnostics layer exports."""

from clonesurv.diagnostics.plots import (
    plot_clone_curves,
    plot_coverage,
    plot_hazard_ratios,
    plot_simulation_estimates,
    plot_survival_curves,
)
from clonesurv.diagnostics.tables import (
    build_estimates_table,
    build_model_comparison_table,
    build_simulation_table,
)

__all__ = [
    "build_estimates_table",
    "build_model_comparison_table",
    "build_simulation_table",
    "plot_clone_curves",
    "plot_coverage",
    "plot_hazard_ratios",
    "plot_simulation_estimates",
    "plot_survival_curves",
]
