"""HTML report exports."""

from clonesurv.report.html import Section, render_report, write_report

__all__ = ["Section", "render_report", "write_report"]
