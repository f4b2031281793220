from __future__ import annotations

import nbformat

from scripts import generate_notebooks


def test_generate_notebooks_writes_valid_files(tmp_path) -> None:
    paths = generate_notebooks.generate_notebooks(tmp_path)

    assert [p.name for p in paths] == [
        "001-survival-basics.ipynb",
        "002-model-comparison.ipynb",
        "010-basic-sims.ipynb",
    ]
    for path in paths:
        nb = nbformat.read(path, as_version=4)
        nbformat.validate(nb)
        assert nb.metadata["kernelspec"]["name"] == "python3"
        assert nb.cells[0].cell_type == "markdown"


def test_notebooks_use_public_api_and_own_output_dirs(tmp_path) -> None:
    for name, builder in generate_notebooks.NOTEBOOKS.items():
        source = "\n".join(cell.source for cell in builder().cells)
        slug = name.removesuffix(".ipynb")
        assert f'examples/out/notebooks/{slug}' in source
        assert "{slug}" not in source
        assert "from clonesurv.api import analyze, simulate_study" in source


def test_model_comparison_notebook_fits_every_model() -> None:
    source = "\n".join(cell.source for cell in generate_notebooks.model_comparison().cells)
    for model_type in ["cox_strata", "pwe_gee", "discrete_cloglog", "bayes_logit"]:
        assert f'"{model_type}"' in source


def test_main_prints_generated_paths(tmp_path, capsys) -> None:
    generate_notebooks.main(["--out-dir", str(tmp_path)])
    lines = capsys.readouterr().out.strip().splitlines()
    assert len(lines) == 3
    assert all(line.endswith(".ipynb") for line in lines)
