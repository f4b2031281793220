"""Replicate loop for simulation studies."""

from __future__ import annotations

from collections.abc import Callable

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from clonesurv.api.exceptions import ClonesurvError, ClonesurvValidationError
from clonesurv.config.models import DataConfig, RunConfig
from clonesurv.data.loader import prepare_survival_frame
from clonesurv.simulate.engine import generate_clustered_survival, true_effects
from clonesurv.survival.base import failed_coefficients
from clonesurv.survival.models import fit_model

BatchCallback = Callable[[int, int], None]


def simulation_data_config(run_config: RunConfig) -> DataConfig:
    """Data config with the first simulated level pinned as the reference."""
    data = run_config.data
    reference = run_config.simulation.levels[0]
    return data.model_copy(update={"reference_levels": {data.treatment_cols[0]: reference}})


def simulate_dataset(
    run_config: RunConfig, seed_seq: np.random.SeedSequence
) -> pd.DataFrame:
    rng = np.random.default_rng(seed_seq)
    data_config = simulation_data_config(run_config)
    raw = generate_clustered_survival(run_config.simulation, rng, data_config)
    return prepare_survival_frame(raw, data_config)


def run_replicate(
    replicate: int,
    seed_seq: np.random.SeedSequence,
    run_config: RunConfig,
) -> pd.DataFrame:
    """Generate one dataset and fit every configured model.

    With ``simulation.on_error="record"`` a model that fails contributes NaN
    rows with ``converged=False`` and the error text in ``error``.
    """
    data_config = simulation_data_config(run_config)
    config = run_config.model_copy(update={"data": data_config})
    frame = simulate_dataset(run_config, seed_seq)
    terms = sorted(true_effects(run_config.simulation, data_config))

    tables: list[pd.DataFrame] = []
    for model_config in config.models:
        try:
            fit = fit_model(frame, model_config, config)
        except ClonesurvError as exc:
            if run_config.simulation.on_error == "raise":
                raise
            scale = "log_or" if model_config.type in {"mixed_logit", "bayes_logit"} else "log_hr"
            table = failed_coefficients(model_config, terms, scale=scale)
            table["error"] = str(exc)
        else:
            table = fit.coefficients.copy()
            table["error"] = ""
        tables.append(table)

    out = pd.concat(tables, ignore_index=True)
    out.insert(0, "replicate", int(replicate))
    return out


def run_simulation_study(
    run_config: RunConfig,
    *,
    n_jobs: int | None = None,
    batch_size: int | None = None,
    on_batch: BatchCallback | None = None,
) -> pd.DataFrame:
    """Run ``simulation.n_reps`` replicates and stack their tidy rows.

    Each replicate draws from its own child of ``SeedSequence(simulation.seed)``,
    so results do not depend on ``n_jobs``. Rows are ordered by replicate,
    then model (configuration order), then term. ``on_batch`` receives
    ``(completed, total)`` after each batch of replicates.
    """
    sim = run_config.simulation
    workers = sim.n_jobs if n_jobs is None else n_jobs
    children = np.random.SeedSequence(sim.seed).spawn(sim.n_reps)
    size = sim.n_reps if batch_size is None else batch_size
    if size < 1:
        raise ClonesurvValidationError("batch_size must be >= 1.")

    tables: list[pd.DataFrame] = []
    with Parallel(n_jobs=workers) as parallel:
        for start in range(0, sim.n_reps, size):
            stop = min(start + size, sim.n_reps)
            tables.extend(
                parallel(
                    delayed(run_replicate)(idx + 1, children[idx], run_config)
                    for idx in range(start, stop)
                )
            )
            if on_batch is not None:
                on_batch(stop, sim.n_reps)
    return pd.concat(tables, ignore_index=True)
