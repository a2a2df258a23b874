"""Shared visual constants and helpers for mrh."""

from __future__ import annotations

from rich.style import Style
from rich.text import Text

from mrh.crawler import Report

# ── Color Palette ───────────────────────────────────────────────────────

BORDER = "#30363d"
SURFACE = "#161b22"
MUTED = "#8b949e"

CYAN = "#58a6ff"
GREEN = "#39d353"
YELLOW = "#e3b341"
RED = "#f85149"

TAGLINE = "pending actions across your repositories"

# Bar colors for the per-flag counts, cycled
FLAG_COLORS = [CYAN, GREEN, YELLOW, RED]


def report_line(report: Report, root: str, absolute: bool = False) -> Text:
    """One human-readable line: path (pending) (unknown: ...) (error: ...)."""
    text = Text(report.display_path(root, absolute))
    pending = report.flags.pending()
    if pending:
        text.append(" (")
        text.append(", ".join(pending), style=Style(color=CYAN))
        text.append(")")
    unknown = report.flags.unknown()
    if unknown:
        text.append(" (", style=Style(color=MUTED))
        text.append(f"unknown: {', '.join(unknown)}", style=Style(color=MUTED, italic=True))
        text.append(")", style=Style(color=MUTED))
    if report.empty:
        text.append(" (no commits)", style=Style(color=MUTED))
    if report.error:
        text.append(" (")
        text.append("error", style=Style(color=RED, bold=True))
        text.append(": ")
        text.append(report.error, style=Style(color=MUTED))
        text.append(")")
    return text


def count_bar(
    value: int,
    max_val: int,
    width: int = 20,
    color: str = CYAN,
) -> Text:
    """Render a count as a proportional bar."""
    filled = int((value / max(max_val, 1)) * width)
    text = Text()
    text.append("█" * filled, style=Style(color=color))
    text.append("░" * (width - filled), style=Style(color=BORDER))
    return text
