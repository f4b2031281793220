"""Data loading exports."""

from clonesurv.data.loader import (
    describe_survival_frame,
    load_tabular_data,
    prepare_survival_frame,
    required_columns,
    treatment_cells,
)

__all__ = [
    "describe_survival_frame",
    "load_tabular_data",
    "prepare_survival_frame",
    "required_columns",
    "treatment_cells",
]
