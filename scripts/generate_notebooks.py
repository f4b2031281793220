"""Generate the teaching notebooks under ``notebooks/``."""

from __future__ import annotations

# ruff: noqa: E501
import argparse
import textwrap
from pathlib import Path

import nbformat

ROOT = Path(__file__).resolve().parents[1]
NB_DIR = ROOT / "notebooks"

NOTEBOOK_METADATA = {
    "kernelspec": {
        "display_name": "Python 3",
        "language": "python",
        "name": "python3",
    },
    "language_info": {
        "name": "python",
        "version": "3.11",
    },
}

SETUP_CELL = textwrap.dedent(
    """
    from __future__ import annotations

    from pathlib import Path

    import matplotlib
    matplotlib.use("Agg")
    import numpy as np
    import pandas as pd
    from IPython.display import Image, display

    from clonesurv.api import analyze, simulate_study
    from clonesurv.config import DataConfig, SimulationConfig
    from clonesurv.data import describe_survival_frame, prepare_survival_frame
    from clonesurv.diagnostics import (
        plot_clone_curves,
        plot_coverage,
        plot_hazard_ratios,
        plot_simulation_estimates,
        plot_survival_curves,
    )
    from clonesurv.simulate import generate_clustered_survival
    from clonesurv.survival import kaplan_meier_table, logrank_test, median_survival_table

    OUT_DIR = Path("examples/out/notebooks/{slug}")
    OUT_DIR.mkdir(parents=True, exist_ok=True)
    """
).strip()

DEMO_DATA_CELL = textwrap.dedent(
    """
    # Simulated assay: 12 clones, every clone under both treatment levels,
    # hosts inspected once per day.
    params = SimulationConfig(
        n_clones=12,
        n_per_cell=12,
        levels=["control", "treated"],
        log_hr=0.6,
        frailty_sd=0.7,
        follow_up=10.0,
        observation_interval=1.0,
    )
    data_config = DataConfig(reference_levels={"treatment": "control"})
    raw = generate_clustered_survival(params, np.random.default_rng(7), data_config)
    frame = prepare_survival_frame(raw, data_config)
    raw.to_csv(OUT_DIR / "assay.csv", index=False)
    frame.head()
    """
).strip()


def _notebook(cells: list[tuple[str, str]]) -> nbformat.NotebookNode:
    nb = nbformat.v4.new_notebook()
    nb.metadata = NOTEBOOK_METADATA
    for kind, source in cells:
        text = textwrap.dedent(source).strip() + "\n"
        if kind == "md":
            nb.cells.append(nbformat.v4.new_markdown_cell(text))
        else:
            nb.cells.append(nbformat.v4.new_code_cell(text))
    return nb


def survival_basics() -> nbformat.NotebookNode:
    return _notebook(
        [
            (
                "md",
                """
                # 001 Survival basics

                Hosts are infected with one bacterial clone and followed until death or
                the end of the assay. Hosts still alive at the end are right-censored:
                we know they survived at least that long. This notebook describes the
                data with Kaplan-Meier curves and a log-rank test, then fits a Cox model.
                """,
            ),
            ("code", SETUP_CELL.replace("{slug}", "001-survival-basics")),
            ("md", "## Data"),
            ("code", DEMO_DATA_CELL),
            ("code", "describe_survival_frame(frame, data_config)"),
            ("md", "## Kaplan-Meier curves"),
            (
                "code",
                """
                km = kaplan_meier_table(frame, data_config)
                plot_survival_curves(km, OUT_DIR / "survival_curves.png")
                display(Image(filename=str(OUT_DIR / "survival_curves.png")))
                median_survival_table(frame, data_config)
                """,
            ),
            (
                "md",
                """
                Curves for single clones show how much clones differ in virulence.
                Hosts of the same clone are not independent replicates.
                """,
            ),
            ("code", 'plot_clone_curves(frame, data_config, OUT_DIR / "clone_curves.png")'),
            ("md", "## Log-rank tests"),
            (
                "code",
                """
                pd.DataFrame(
                    [
                        logrank_test(frame, data_config),
                        logrank_test(frame, data_config, stratify_by_group=True),
                    ]
                )
                """,
            ),
            ("md", "## Cox proportional hazards model"),
            (
                "code",
                """
                config = {
                    "config_version": 1,
                    "task": {"type": "analysis"},
                    "data": data_config.model_dump(),
                    "models": [{"type": "cox"}, {"type": "cox_cluster"}],
                    "export": {"artifact_dir": str(OUT_DIR / "artifacts")},
                }
                result = analyze(config, data=raw)
                result.estimates[["model", "term", "hazard_ratio", "hr_low", "hr_high", "p_value"]]
                """,
            ),
            (
                "md",
                """
                Both rows share the hazard ratio. The clustered model widens the interval
                because hosts infected with the same clone are correlated.
                """,
            ),
        ]
    )


def model_comparison() -> nbformat.NotebookNode:
    return _notebook(
        [
            (
                "md",
                """
                # 002 Model comparison

                The same assay is analysed with nine strategies that differ in how
                they treat clones: ignore them (semi-parametric Cox or parametric
                Weibull), correct the standard errors, stratify the baseline hazard,
                model working correlation, or add a clone random effect (frequentist
                or Bayesian).
                """,
            ),
            ("code", SETUP_CELL.replace("{slug}", "002-model-comparison")),
            ("code", DEMO_DATA_CELL),
            (
                "code",
                """
                models = [
                    "cox",
                    "cox_cluster",
                    "cox_strata",
                    "weibull",
                    "pwe_poisson",
                    "pwe_gee",
                    "discrete_cloglog",
                    "mixed_logit",
                    "bayes_logit",
                ]
                config = {
                    "config_version": 1,
                    "task": {"type": "analysis"},
                    "data": data_config.model_dump(),
                    "models": [{"type": name} for name in models],
                    "survival": {"n_intervals": 6},
                    "report": {"title": "Model comparison"},
                    "export": {"artifact_dir": str(OUT_DIR / "artifacts")},
                }
                result = analyze(config, data=raw)
                result.comparison
                """,
            ),
            ("code", 'plot_hazard_ratios(result.estimates, OUT_DIR / "hazard_ratios.png")'),
            (
                "md",
                """
                ## Clone variability

                The random-intercept models estimate the standard deviation of clone
                effects on the log-odds scale.
                """,
            ),
            (
                "code",
                """
                {
                    fit.model: fit.extras["clone_sd"]
                    for fit in result.fits
                    if "clone_sd" in fit.extras
                }
                """,
            ),
            ("md", "The full HTML report is written next to the run artifacts."),
            ("code", 'result.metadata["report_path"]'),
        ]
    )


def basic_sims() -> nbformat.NotebookNode:
    return _notebook(
        [
            (
                "md",
                """
                # 010 Basic simulations

                With a known true hazard ratio we can check each model's bias,
                interval coverage and power. Two designs are compared: every clone
                tested under both treatments (within) and each clone tested under one
                treatment only (between).
                """,
            ),
            ("code", SETUP_CELL.replace("{slug}", "010-basic-sims")),
            (
                "code",
                """
                def study(assignment: str, n_reps: int = 50):
                    models = [{"type": "cox"}, {"type": "cox_cluster"}, {"type": "mixed_logit"}]
                    if assignment == "within":
                        models.insert(2, {"type": "cox_strata"})
                    config = {
                        "config_version": 1,
                        "task": {"type": "simulation"},
                        "models": models,
                        "survival": {"n_intervals": 5},
                        "simulation": {
                            "n_reps": n_reps,
                            "seed": 2024,
                            "assignment": assignment,
                            "log_hr": 0.5,
                            "frailty_sd": 0.7,
                            "on_error": "record",
                        },
                        "report": {"title": f"Simulation ({assignment})"},
                        "export": {"artifact_dir": str(OUT_DIR / "artifacts")},
                    }
                    return simulate_study(config)

                within = study("within")
                within.summary
                """,
            ),
            (
                "code",
                """
                plot_simulation_estimates(
                    within.replicates, within.truth, OUT_DIR / "within_estimates.png"
                )
                """,
            ),
            ("code", "between = study('between')\nbetween.summary"),
            (
                "code",
                """
                plot_coverage(between.summary, 0.95, OUT_DIR / "between_coverage.png")
                """,
            ),
            (
                "md",
                """
                When treatment varies only between clones, clone frailty adds variance
                that the naive Cox model ignores, so its intervals cover the truth
                less often than the nominal 95%.
                """,
            ),
        ]
    )


NOTEBOOKS = {
    "001-survival-basics.ipynb": survival_basics,
    "002-model-comparison.ipynb": model_comparison,
    "010-basic-sims.ipynb": basic_sims,
}


def _execute_notebook(path: Path) -> None:
    from nbconvert.preprocessors import ExecutePreprocessor

    with path.open("r", encoding="utf-8") as f:
        nb = nbformat.read(f, as_version=4)
    ep = ExecutePreprocessor(timeout=3600, kernel_name="python3")
    ep.preprocess(nb, {"metadata": {"path": str(ROOT)}})
    with path.open("w", encoding="utf-8") as f:
        nbformat.write(nb, f)


def generate_notebooks(out_dir: Path | None = None, execute: bool = False) -> list[Path]:
    target = out_dir or NB_DIR
    target.mkdir(parents=True, exist_ok=True)
    paths: list[Path] = []
    for name, builder in NOTEBOOKS.items():
        path = target / name
        path.write_text(nbformat.writes(builder()), encoding="utf-8")
        paths.append(path)
    if execute:
        for path in paths:
            _execute_notebook(path)
    return paths


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--out-dir", default=str(NB_DIR), help="Notebook output directory.")
    parser.add_argument("--execute", action="store_true", help="Execute notebooks in place.")
    args = parser.parse_args(argv)
    for path in generate_notebooks(Path(args.out_dir), execute=args.execute):
        print(path)


if __name__ == "__main__":
    main()
