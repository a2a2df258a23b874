"""Textual TUI dashboard — browse the pending state of every repo under a path."""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Optional

from rich.text import Text
from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import DataTable, Footer, Header, Static
from textual_plotext import PlotextPlot

from mrh.config import CrawlConfig
from mrh.crawler import CrawlRootError, Report, crawl
from mrh.summary import Summary, summarize
from mrh.theme import TAGLINE


class OverviewPanel(Static):
    """Counts across the crawl so far."""

    def update_data(self, summary: Summary, *, done: bool, pending_only: bool) -> None:
        text = Text()
        text.append("  Repos: ", style="dim")
        text.append(f"{summary.total}", style="bold cyan")
        text.append("    Pending: ", style="dim")
        text.append(f"{summary.pending}", style="bold yellow")
        text.append("    Clean: ", style="dim")
        text.append(f"{summary.clean}", style="bold green")
        if summary.errors:
            text.append("    Errors: ", style="dim")
            text.append(f"{summary.errors}", style="bold red")
        if summary.unknown:
            text.append("    Unknown: ", style="dim")
            text.append(f"{summary.unknown}", style="dim italic")
        text.append("\n")
        text.append("  Most common: ", style="dim")
        text.append(summary.top_flag, style="bold magenta")
        text.append("    Showing: ", style="dim")
        text.append("pending only" if pending_only else "all repos", style="bold")
        if not done:
            text.append("    crawling...", style="dim italic")
        self.update(text)


class FlagChart(PlotextPlot):
    """How many repos have each pending action."""

    def update_data(self, summary: Summary) -> None:
        plt = self.plt
        plt.clear_figure()
        plt.theme("dark")

        if not summary.flags:
            plt.title("Nothing pending")
            self.refresh()
            return

        items = list(summary.flags.items())
        names = [n for n, _ in reversed(items)]
        values = [v for _, v in reversed(items)]
        plt.bar(names, values, orientation="horizontal", color="cyan")
        plt.title("Repos per Pending Action")
        plt.xlabel("")
        self.refresh()


class RepoTable(DataTable):
    """One row per repo, in crawl order."""

    def update_data(self, reports: list[Report], root: str, absolute: bool) -> None:
        self.clear(columns=True)
        self.add_columns("Repo", "Pending", "Unknown")
        for report in reports:
            self.add_row(*_row(report, root, absolute))


def _row(report: Report, root: str, absolute: bool) -> tuple[str, Text, Text]:
    pending = Text(", ".join(report.flags.pending()), style="cyan")
    if report.error:
        pending = Text(f"error: {report.error}", style="red")
    elif report.empty:
        pending = Text("no commits", style="dim")
    unknown = Text(", ".join(report.flags.unknown()), style="dim italic")
    return report.display_path(root, absolute), pending, unknown


class MrhApp(App):
    """mrh — pending actions across your repositories."""

    CSS = """
    Screen {
        layout: grid;
        grid-size: 2 2;
        grid-gutter: 1;
        grid-rows: auto 1fr;
        grid-columns: 3fr 2fr;
    }

    #overview {
        column-span: 2;
        height: auto;
        min-height: 4;
        border: solid $accent;
        padding: 0 1;
    }

    #repos {
        border: solid $secondary;
        min-height: 10;
    }

    #flags {
        border: solid $secondary;
        min-height: 10;
    }
    """

    TITLE = "mrh"
    SUB_TITLE = TAGLINE

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("r", "rescan", "Rescan"),
        Binding("p", "toggle_pending", "Pending only"),
        Binding("tab", "focus_next", "Next Panel"),
    ]

    def __init__(self, scan_path: str, config: Optional[CrawlConfig] = None,
                 absolute: bool = False) -> None:
        super().__init__()
        self.scan_path = scan_path
        config = config or CrawlConfig()
        self.pending_only = config.pending_only
        # Filtering happens on display so the toggle does not need a rescan
        self.config = replace(config, pending_only=False)
        self.absolute = absolute
        self.reports: list[Report] = []
        self.done = False
        self.cancel = threading.Event()

    def compose(self) -> ComposeResult:
        yield Header()
        yield OverviewPanel(id="overview")
        yield RepoTable(id="repos")
        yield FlagChart(id="flags")
        yield Footer()

    def on_mount(self) -> None:
        self._refresh_panels()
        self.run_crawl()

    def _visible(self) -> list[Report]:
        if not self.pending_only:
            return self.reports
        return [r for r in self.reports if r.is_pending or r.error]

    def _refresh_panels(self) -> None:
        summary = summarize(self.reports)
        self.query_one(OverviewPanel).update_data(
            summary, done=self.done, pending_only=self.pending_only,
        )
        self.query_one(FlagChart).update_data(summary)
        self.query_one(RepoTable).update_data(self._visible(), self.scan_path, self.absolute)

    def _add_report(self, report: Report) -> None:
        self.reports.append(report)
        if not self.pending_only or report.is_pending or report.error:
            self.query_one(RepoTable).add_row(*_row(report, self.scan_path, self.absolute))
        summary = summarize(self.reports)
        self.query_one(OverviewPanel).update_data(
            summary, done=False, pending_only=self.pending_only,
        )

    def _finish(self) -> None:
        self.done = True
        self._refresh_panels()

    def _fail(self, message: str) -> None:
        self.done = True
        self.query_one(OverviewPanel).update(Text(f"  {message}", style="bold red"))

    @work(thread=True, exclusive=True)
    def run_crawl(self) -> None:
        """Crawl in a background thread, streaming rows into the table."""
        cancel = self.cancel
        try:
            reports = crawl(self.scan_path, self.config, cancel=cancel)
            for report in reports:
                if cancel.is_set():
                    return
                self.call_from_thread(self._add_report, report)
        except CrawlRootError as exc:
            self.call_from_thread(self._fail, str(exc))
            return
        if not cancel.is_set():
            self.call_from_thread(self._finish)

    def action_rescan(self) -> None:
        self.cancel.set()
        self.cancel = threading.Event()
        self.reports = []
        self.done = False
        self._refresh_panels()
        self.run_crawl()

    def action_toggle_pending(self) -> None:
        self.pending_only = not self.pending_only
        self._refresh_panels()

    async def action_quit(self) -> None:
        self.cancel.set()
        self.exit()


def run_tui(scan_path: str, config: Optional[CrawlConfig] = None, absolute: bool = False) -> None:
    """Launch the mrh TUI dashboard."""
    app = MrhApp(scan_path, config, absolute)
    app.run()
