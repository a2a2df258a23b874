"""Export utilities — JSON lines, YAML documents and a markdown report."""

from __future__ import annotations

import json
from datetime import date
from typing import Any, Iterable, Iterator, Optional

import yaml

from mrh.crawler import Report
from mrh.summary import summarize


def report_to_dict(report: Report, root: str, absolute: bool = False) -> dict[str, Any]:
    """Plain-data view of a report; empty label lists become None."""
    return {
        "path": report.display_path(root, absolute),
        "pending": report.flags.pending() or None,
        "unknown": report.flags.unknown() or None,
        "error": report.error,
    }


def render_json_lines(reports: Iterable[Report], root: str, absolute: bool = False) -> Iterator[str]:
    """One compact JSON object per report, suitable for streaming."""
    for report in reports:
        yield json.dumps(report_to_dict(report, root, absolute))


def render_yaml(reports: Iterable[Report], root: str, absolute: bool = False) -> Iterator[str]:
    """One YAML document per report, each starting with '---'."""
    for report in reports:
        yield yaml.safe_dump(
            report_to_dict(report, root, absolute),
            default_flow_style=False,
            sort_keys=False,
            explicit_start=True,
            allow_unicode=True,
        )


# ── Markdown Report ───────────────────────────────────────────────────

def _cell(text: Optional[str]) -> str:
    return (text or "").replace("|", "\\|").replace("\n", " ")


def generate_report_md(reports: list[Report], root: str, absolute: bool = False) -> str:
    """Generate a markdown report: overview, per-flag counts, per-repo table."""
    summary = summarize(reports)

    lines = [
        f"# mrh Report — {date.today().isoformat()}",
        "",
        f"Scanned `{root}`",
        "",
        "## Overview",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Repositories | {summary.total} |",
        f"| Pending | {summary.pending} |",
        f"| Clean | {summary.clean} |",
        f"| No commits | {summary.empty} |",
        f"| Errors | {summary.errors} |",
        f"| Unknown remote state | {summary.unknown} |",
        "",
    ]

    if summary.flags:
        lines.append("## Pending Actions")
        lines.append("")
        lines.append("| Action | Repositories |")
        lines.append("|--------|--------------|")
        for label, count in summary.flags.items():
            lines.append(f"| {label} | {count} |")
        lines.append("")

    if reports:
        lines.append("## Repositories")
        lines.append("")
        lines.append("| Repository | Pending | Unknown | Error |")
        lines.append("|------------|---------|---------|-------|")
        for report in reports:
            lines.append(
                f"| {_cell(report.display_path(root, absolute))} "
                f"| {_cell(', '.join(report.flags.pending()))} "
                f"| {_cell(', '.join(report.flags.unknown()))} "
                f"| {_cell(report.error)} |"
            )
        lines.append("")

    return "\n".join(lines)
