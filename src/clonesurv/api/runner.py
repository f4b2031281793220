"""Stable runner API entrypoints."""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Any
from uuid import uuid4

import numpy as np
import pandas as pd
import yaml
from pydantic import ValidationError

from clonesurv import __version__
from clonesurv.api.exceptions import ClonesurvValidationError
from clonesurv.api.logging import RunLog
from clonesurv.api.types import AnalysisResult, SimulationStudyResult
from clonesurv.artifact.manifest import build_manifest
from clonesurv.artifact.store import save_artifact
from clonesurv.config.models import RunConfig
from clonesurv.data import describe_survival_frame, load_tabular_data, prepare_survival_frame
from clonesurv.diagnostics import (
    build_estimates_table,
    build_model_comparison_table,
    build_simulation_table,
    plot_clone_curves,
    plot_coverage,
    plot_hazard_ratios,
    plot_simulation_estimates,
    plot_survival_curves,
)
from clonesurv.report import Section, write_report
from clonesurv.simulate import run_simulation_study, summarize_simulation, true_effects
from clonesurv.simulate.study import simulate_dataset, simulation_data_config
from clonesurv.survival import (
    ModelFit,
    fit_model,
    kaplan_meier_table,
    logrank_test,
    median_survival_table,
)
from clonesurv.survival.km import treatment_varies_within_groups

LOGGER = logging.getLogger("clonesurv")

_MODEL_NOTES = {
    "cox": "Cox model treating every host as independent; ignores clones (pseudoreplication).",
    "cox_cluster": "Cox model with clone-clustered sandwich standard errors.",
    "cox_strata": "Cox model with a separate baseline hazard per clone.",
    "weibull": "Weibull proportional hazards model treating every host as independent.",
    "pwe_poisson": "Piecewise-exponential Poisson model on person-period data.",
    "pwe_gee": "Piecewise-exponential GEE with exchangeable correlation within clone.",
    "discrete_cloglog": "Grouped-time proportional hazards model (complementary log-log).",
    "mixed_logit": "Discrete-time logistic model with a clone random intercept (Laplace).",
    "bayes_logit": "Bayesian discrete-time logistic model with a clone random intercept "
    "(variational Bayes).",
}


def _ensure_config(config: RunConfig | dict[str, Any]) -> RunConfig:
    if isinstance(config, RunConfig):
        return config
    try:
        return RunConfig.model_validate(config)
    except ValidationError as exc:
        raise ClonesurvValidationError(f"Invalid RunConfig: {exc}") from exc


def _json_float(value: Any) -> float | None:
    value = float(value)
    return value if math.isfinite(value) else None


def _config_text(config: RunConfig) -> str:
    return yaml.safe_dump(config.model_dump(mode="json", exclude_none=True), sort_keys=False)


def _logrank_rows(frame: pd.DataFrame, parsed: RunConfig) -> tuple[pd.DataFrame, list[str]]:
    rows = [{"test": "pooled", **logrank_test(frame, parsed.data)}]
    notes: list[str] = []
    if parsed.survival.stratified_logrank:
        if treatment_varies_within_groups(frame, parsed.data):
            rows.append(
                {"test": "stratified_by_clone", **logrank_test(frame, parsed.data, True)}
            )
        else:
            notes.append(
                "Clone-stratified log-rank test skipped: treatment never varies within a clone."
            )
    return pd.DataFrame.from_records(rows), notes


def _fit_all(frame: pd.DataFrame, parsed: RunConfig, run_log: RunLog) -> list[ModelFit]:
    fits: list[ModelFit] = []
    for model_config in parsed.models:
        fit = fit_model(frame, model_config, parsed)
        run_log.event(
            logging.DEBUG,
            "model fitted",
            model=fit.model,
            model_type=fit.model_type,
            converged=fit.converged,
            n_warnings=len(fit.warnings),
        )
        fits.append(fit)
    return fits


def _analysis_metrics(
    frame: pd.DataFrame,
    parsed: RunConfig,
    fits: list[ModelFit],
    logrank: pd.DataFrame,
) -> dict[str, Any]:
    data = parsed.data
    models: dict[str, Any] = {}
    for fit in fits:
        terms = {}
        for row in fit.coefficients.itertuples(index=False):
            terms[row.term] = {
                "estimate": _json_float(row.estimate),
                "std_error": _json_float(row.std_error),
                "hazard_ratio": _json_float(row.hazard_ratio),
                "p_value": _json_float(row.p_value),
            }
        models[fit.model] = {
            "model_type": fit.model_type,
            "converged": fit.converged,
            "terms": terms,
        }
    return {
        "n_subjects": int(len(frame)),
        "n_events": int(frame[data.event_col].sum()),
        "n_clones": (
            int(frame[data.group_col].astype(str).nunique()) if data.group_col else None
        ),
        "logrank": {
            str(row.test): _json_float(row.p_value) for row in logrank.itertuples(index=False)
        },
        "models": models,
    }


def _analysis_sections(
    parsed: RunConfig,
    result: AnalysisResult,
    figure_paths: dict[str, Path],
    figures: dict[str, Any],
    notes: list[str],
) -> list[Section]:
    model_lines = [
        f"{fit.model}: {_MODEL_NOTES.get(fit.model_type, fit.model_type)}"
        + ("" if fit.converged else " The fit reported convergence problems.")
        for fit in result.fits
    ]
    sections = [
        Section(
            title="Data",
            paragraphs=[
                f"{result.metrics['n_subjects']} hosts, {result.metrics['n_events']} deaths"
                + (
                    f", {result.metrics['n_clones']} clones."
                    if result.metrics["n_clones"] is not None
                    else "."
                ),
                "Hosts infected with the same clone share the clone's virulence, so they are "
                "not independent observations. Models that ignore the clone treat them as "
                "independent replicates (pseudoreplication) and understate uncertainty.",
            ],
            tables=[result.descriptives],
        ),
        Section(
            title="Survival curves",
            paragraphs=[
                "Kaplan-Meier estimates with pointwise log(-log) intervals.",
                *notes,
            ],
            tables=[result.median_survival, result.logrank],
            figures=[figures["clone_curves"]] if "clone_curves" in figures else [],
            images=[figure_paths["survival_curves"]] if "survival_curves" in figure_paths else [],
        ),
        Section(
            title="Treatment effects",
            paragraphs=[
                "Estimates are on the log hazard scale (log odds for the random-intercept "
                "logistic models, which approximates the log hazard for short intervals). "
                f"Intervals are {100 * (1 - parsed.survival.alpha):.0f}% Wald or posterior "
                "intervals.",
                *model_lines,
            ],
            tables=[result.comparison, result.estimates],
            figures=[figures["hazard_ratios"]] if "hazard_ratios" in figures else [],
        ),
        Section(title="Configuration", preformatted=_config_text(parsed)),
    ]
    return sections


def analyze(
    config: RunConfig | dict[str, Any],
    data: pd.DataFrame | None = None,
) -> AnalysisResult:
    """Describe survival, fit every configured model and persist a run directory.

    ``data`` overrides ``data.path`` when given.
    """
    parsed = _ensure_config(config)
    if parsed.task.type != "analysis":
        raise ClonesurvValidationError(
            f"analyze requires task.type='analysis', got '{parsed.task.type}'."
        )
    if data is None:
        if not parsed.data.path:
            raise ClonesurvValidationError("data.path is required for analyze.")
        data = load_tabular_data(parsed.data.path)

    frame = prepare_survival_frame(data, parsed.data)
    run_id = uuid4().hex
    artifact_path = Path(parsed.export.artifact_dir) / run_id
    run_log = RunLog(LOGGER, run_id, str(artifact_path), parsed.task.type)
    alpha = parsed.survival.alpha

    descriptives = describe_survival_frame(frame, parsed.data)
    km = kaplan_meier_table(frame, parsed.data, by=parsed.survival.km_by, alpha=alpha)
    medians = median_survival_table(frame, parsed.data, by=parsed.survival.km_by, alpha=alpha)
    logrank, notes = _logrank_rows(frame, parsed)
    fits = _fit_all(frame, parsed, run_log)
    estimates = build_estimates_table(fits)
    comparison = build_model_comparison_table(estimates)
    metrics = _analysis_metrics(frame, parsed, fits, logrank)
    # Created only once every model has fitted.
    artifact_path.mkdir(parents=True, exist_ok=True)

    result = AnalysisResult(
        run_id=run_id,
        task_type=parsed.task.type,
        artifact_path=str(artifact_path),
        estimates=estimates,
        comparison=comparison,
        kaplan_meier=km,
        median_survival=medians,
        logrank=logrank,
        descriptives=descriptives,
        fits=fits,
        metrics=metrics,
        metadata={"notes": notes, "n_models": len(fits)},
    )

    figure_paths: dict[str, Path] = {}
    figures: dict[str, Any] = {}
    if parsed.export.save_figures:
        figure_paths["survival_curves"] = artifact_path / "survival_curves.png"
        plot_survival_curves(km, figure_paths["survival_curves"])
        if parsed.data.group_col is not None:
            figure_paths["clone_curves"] = artifact_path / "clone_curves.png"
            figures["clone_curves"] = plot_clone_curves(
                frame, parsed.data, figure_paths["clone_curves"]
            )
        figure_paths["hazard_ratios"] = artifact_path / "hazard_ratios.png"
        figures["hazard_ratios"] = plot_hazard_ratios(estimates, figure_paths["hazard_ratios"])
    if parsed.report.enabled:
        report_path = write_report(
            artifact_path / "report.html",
            parsed.report.title or "Survival analysis",
            _analysis_sections(parsed, result, figure_paths, figures, notes),
        )
        result.metadata["report_path"] = str(report_path)

    save_artifact(
        artifact_path,
        run_config=parsed,
        manifest=build_manifest(
            parsed, run_id=run_id, project_version=__version__, frame=frame
        ),
        metrics=metrics,
        tables={
            "descriptives": descriptives,
            "kaplan_meier": km,
            "median_survival": medians,
            "logrank": logrank,
            "estimates": estimates,
            "model_comparison": comparison,
        },
        fits=fits,
    )
    run_log.event(
        logging.INFO,
        "analysis completed",
        n_subjects=metrics["n_subjects"],
        n_models=len(fits),
        converged={fit.model: fit.converged for fit in fits},
    )
    return result


def _simulation_metrics(
    replicates: pd.DataFrame, summary: pd.DataFrame, parsed: RunConfig
) -> dict[str, Any]:
    models: dict[str, Any] = {}
    for row in summary.itertuples(index=False):
        models.setdefault(str(row.model), {})[str(row.term)] = {
            "bias": _json_float(row.bias),
            "empirical_se": _json_float(row.empirical_se),
            "se_ratio": _json_float(row.se_ratio),
            "rmse": _json_float(row.rmse),
            "coverage": _json_float(row.coverage),
            "rejection_rate": _json_float(row.rejection_rate),
            "n_failed": int(row.n_failed),
        }
    return {
        "n_reps": int(parsed.simulation.n_reps),
        "n_rows": int(len(replicates)),
        "n_failed_rows": int(np.sum(summary["n_failed"].to_numpy())),
        "models": models,
    }


def _simulation_sections(
    parsed: RunConfig,
    result: SimulationStudyResult,
    table: pd.DataFrame,
    figure_paths: dict[str, Path],
    figures: dict[str, Any],
) -> list[Section]:
    sim = parsed.simulation
    design = (
        f"{sim.n_clones} clones, {sim.n_per_cell} hosts per clone and treatment level, "
        f"levels {sim.levels} assigned {sim.assignment} clones. True log hazard ratio "
        f"{sim.log_hr:g}, clone frailty SD {sim.frailty_sd:g}, Weibull shape "
        f"{sim.weibull_shape:g} and scale {sim.weibull_scale:g}, follow-up {sim.follow_up:g}."
    )
    return [
        Section(
            title="Simulation design",
            paragraphs=[
                design,
                f"{sim.n_reps} replicates, seed {sim.seed}.",
            ],
            figures=[figures["clone_curves"]] if "clone_curves" in figures else [],
            images=(
                [figure_paths["example_survival"]] if "example_survival" in figure_paths else []
            ),
        ),
        Section(
            title="Operating characteristics",
            paragraphs=[
                "Bias, empirical and model-based standard errors, coverage of the "
                f"{100 * (1 - parsed.survival.alpha):.0f}% intervals and the rate at which the "
                "interval excludes zero (power, or type-I error when the true effect is zero). "
                "Monte-Carlo standard errors quantify simulation noise.",
                "Models that ignore clones typically show standard error ratios below one and "
                "coverage under the nominal level when clone frailty is present.",
            ],
            tables=[table],
            figures=[figures[name] for name in ("estimates", "coverage") if name in figures],
        ),
        Section(title="Configuration", preformatted=_config_text(parsed)),
    ]


def simulate_study(
    config: RunConfig | dict[str, Any],
    n_jobs: int | None = None,
) -> SimulationStudyResult:
    """Run a simulation study and persist replicate rows and summaries."""
    parsed = _ensure_config(config)
    if parsed.task.type != "simulation":
        raise ClonesurvValidationError(
            f"simulate_study requires task.type='simulation', got '{parsed.task.type}'."
        )

    sim = parsed.simulation
    run_id = uuid4().hex
    artifact_path = Path(parsed.export.artifact_dir) / run_id
    run_log = RunLog(LOGGER, run_id, str(artifact_path), parsed.task.type)
    data_config = simulation_data_config(parsed)
    truth = true_effects(sim, data_config)

    def _batch_progress(completed: int, total: int) -> None:
        run_log.event(
            logging.INFO, "simulation batch completed", completed=completed, total=total
        )

    replicates = run_simulation_study(
        parsed,
        n_jobs=n_jobs,
        batch_size=max(1, math.ceil(sim.n_reps / 10)),
        on_batch=_batch_progress,
    )
    summary = summarize_simulation(replicates, truth, alpha=parsed.survival.alpha)
    table = build_simulation_table(summary)
    metrics = _simulation_metrics(replicates, summary, parsed)
    artifact_path.mkdir(parents=True, exist_ok=True)
    result = SimulationStudyResult(
        run_id=run_id,
        task_type=parsed.task.type,
        artifact_path=str(artifact_path),
        replicates=replicates,
        summary=summary,
        truth=truth,
        metrics=metrics,
        metadata={"n_jobs": sim.n_jobs if n_jobs is None else n_jobs},
    )

    figure_paths: dict[str, Path] = {}
    figures: dict[str, Any] = {}
    if parsed.export.save_figures:
        example = simulate_dataset(parsed, np.random.SeedSequence(sim.seed).spawn(1)[0])
        figure_paths["example_survival"] = artifact_path / "example_survival.png"
        plot_survival_curves(
            kaplan_meier_table(example, data_config, alpha=parsed.survival.alpha),
            figure_paths["example_survival"],
            title="Kaplan-Meier survival, replicate 1",
        )
        figure_paths["clone_curves"] = artifact_path / "clone_curves.png"
        figures["clone_curves"] = plot_clone_curves(
            example, data_config, figure_paths["clone_curves"]
        )
        figure_paths["estimates"] = artifact_path / "simulation_estimates.png"
        figures["estimates"] = plot_simulation_estimates(
            replicates, truth, figure_paths["estimates"]
        )
        figure_paths["coverage"] = artifact_path / "coverage.png"
        figures["coverage"] = plot_coverage(
            summary, 1.0 - parsed.survival.alpha, figure_paths["coverage"]
        )
    if parsed.report.enabled:
        report_path = write_report(
            artifact_path / "report.html",
            parsed.report.title or "Simulation study",
            _simulation_sections(parsed, result, table, figure_paths, figures),
        )
        result.metadata["report_path"] = str(report_path)

    save_artifact(
        artifact_path,
        run_config=parsed,
        manifest=build_manifest(parsed, run_id=run_id, project_version=__version__),
        metrics=metrics,
        tables={"simulation_summary": summary, "simulation_table": table},
        replicates=replicates,
    )
    run_log.event(
        logging.INFO,
        "simulation completed",
        n_reps=sim.n_reps,
        n_failed_rows=metrics["n_failed_rows"],
    )
    return result
