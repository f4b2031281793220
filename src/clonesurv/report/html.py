"""Self-contained HTML reports with tables and charts."""

from __future__ import annotations

import base64
import html
from dataclasses import dataclass, field
from pathlib import Path

import pandas as pd
import plotly.graph_objects as go

_STYLE = (
    "body{font-family:sans-serif;max-width:1100px;margin:2em auto;line-height:1.45}"
    "table{border-collapse:collapse;margin:1em 0;font-size:0.9em}"
    "th,td{border:1px solid #ccc;padding:4px 8px;text-align:right}"
    "th{background:#f3f3f3}pre{background:#f7f7f7;padding:1em;overflow-x:auto}"
    "img{max-width:100%}"
)


@dataclass(slots=True)
class Section:
    """One report section; content renders in field order."""

    title: str
    paragraphs: list[str] = field(default_factory=list)
    tables: list[pd.DataFrame] = field(default_factory=list)
    figures: list[go.Figure] = field(default_factory=list)
    images: list[str | Path] = field(default_factory=list)
    preformatted: str | None = None


def _table_html(table: pd.DataFrame, max_rows: int) -> str:
    shown = table.head(max_rows)
    body = shown.to_html(index=False, border=0, na_rep="NA", float_format=lambda v: f"{v:.4g}")
    if len(table) > max_rows:
        body += f"<p><em>Showing {max_rows} of {len(table)} rows.</em></p>"
    return body


def _image_html(path: str | Path) -> str:
    source = Path(path)
    if not source.exists():
        return f"<p><em>Missing figure: {html.escape(source.name)}</em></p>"
    encoded = base64.b64encode(source.read_bytes()).decode("ascii")
    return f"<img alt='{html.escape(source.stem)}' src='data:image/png;base64,{encoded}'/>"


def render_report(title: str, sections: list[Section], max_rows: int = 50) -> str:
    """Render sections into one HTML document.

    Plotly figures are inlined; the plotly.js bundle is embedded once with the
    first figure. PNG files are base64-embedded.
    """
    parts = [
        "<!DOCTYPE html><html><head><meta charset='utf-8'>",
        f"<title>{html.escape(title)}</title><style>{_STYLE}</style></head><body>",
        f"<h1>{html.escape(title)}</h1>",
    ]
    plotlyjs_included = False
    for section in sections:
        parts.append(f"<h2>{html.escape(section.title)}</h2>")
        parts.extend(f"<p>{html.escape(text)}</p>" for text in section.paragraphs)
        parts.extend(_table_html(table, max_rows) for table in section.tables)
        for fig in section.figures:
            parts.append(
                fig.to_html(
                    full_html=False,
                    include_plotlyjs=not plotlyjs_included,
                )
            )
            plotlyjs_included = True
        parts.extend(_image_html(path) for path in section.images)
        if section.preformatted is not None:
            parts.append(f"<pre>{html.escape(section.preformatted)}</pre>")
    parts.append("</body></html>")
    return "".join(parts)


def write_report(
    path: str | Path,
    title: str,
    sections: list[Section],
    max_rows: int = 50,
) -> Path:
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(render_report(title, sections, max_rows=max_rows), encoding="utf-8")
    return output
