"""CLI entry point for mrh."""

from __future__ import annotations

import argparse
import logging
import os
import sys
import threading
from typing import Iterable, Optional

from mrh import __version__
from mrh.config import AUTH_METHODS, DEFAULT_REMOTE_TIMEOUT, CrawlConfig, load_config
from mrh.crawler import CrawlRootError, Report, check_root, crawl
from mrh.export import generate_report_md, render_json_lines, render_yaml
from mrh.summary import summarize

logger = logging.getLogger("mrh")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def _setup_logging(verbose: bool) -> None:
    from rich.console import Console
    from rich.logging import RichHandler

    handler = RichHandler(console=Console(stderr=True), show_time=False, show_path=False)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[handler],
    )


def print_human(
    reports: Iterable[Report],
    root: str,
    *,
    absolute: bool = False,
    summary: bool = False,
) -> None:
    """Print one line per repository, then an optional summary table."""
    from rich.console import Console
    from rich.table import Table

    from mrh.theme import FLAG_COLORS, GREEN, MUTED, SURFACE, count_bar, report_line

    console = Console(highlight=False)
    seen: list[Report] = []
    for report in reports:
        seen.append(report)
        console.print(report_line(report, root, absolute), soft_wrap=True)

    if not summary:
        return

    s = summarize(seen)
    console.print()
    console.print(
        f"[bold]{s.total}[/bold] [{MUTED}]repos[/{MUTED}]    "
        f"[bold]{s.pending}[/bold] [{MUTED}]pending[/{MUTED}]    "
        f"[bold {GREEN}]{s.clean}[/bold {GREEN}] [{MUTED}]clean[/{MUTED}]"
        + (f"    [bold]{s.unknown}[/bold] [{MUTED}]unknown[/{MUTED}]" if s.unknown else "")
    )
    if s.flags:
        table = Table(border_style=SURFACE, show_edge=True, pad_edge=True)
        table.add_column("Action")
        table.add_column("Repos", justify="right")
        table.add_column("", min_width=20, no_wrap=True)
        top = max(s.flags.values())
        for idx, (label, count) in enumerate(s.flags.items()):
            table.add_row(label, str(count), count_bar(count, top, color=FLAG_COLORS[idx % len(FLAG_COLORS)]))
        console.print(table)


def _write_lines(lines: Iterable[str], end: str = "\n") -> None:
    for line in lines:
        sys.stdout.write(line + end)
        sys.stdout.flush()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mrh",
        description="Crawl a directory and show the pending status of every git repo found.",
    )
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Directory to crawl for git repos (default: current directory)",
    )
    parser.add_argument(
        "--pending",
        action="store_true",
        help="Only show repos with pending action",
    )
    parser.add_argument(
        "--ignore-untracked",
        action="store_true",
        help="Do not include untracked files in output",
    )
    parser.add_argument(
        "--ignore-uncommitted-repos",
        action="store_true",
        help="Do not include repos that have no commits",
    )
    parser.add_argument(
        "--absolute-paths",
        action="store_true",
        help="Display absolute paths for repos",
    )
    parser.add_argument(
        "--untagged-heads",
        action="store_true",
        help="Check if HEAD is untagged",
    )
    parser.add_argument(
        "--check-tags",
        action="store_true",
        help="Compare local tags with the remote's (lists remote refs)",
    )
    parser.add_argument(
        "--access-remote",
        "--ssh-auth-method",
        choices=AUTH_METHODS,
        metavar="METHOD",
        help="Compare against remote repo, most likely over the network "
             f"({' or '.join(AUTH_METHODS)})",
    )
    parser.add_argument(
        "--ssh-key",
        metavar="PATH",
        help="Private key for --access-remote ssh-key (default: ~/.ssh/id_rsa)",
    )
    parser.add_argument(
        "--remote",
        metavar="NAME",
        help="Remote to use when a branch has no upstream and several remotes exist",
    )
    parser.add_argument(
        "--remote-timeout",
        type=float,
        default=DEFAULT_REMOTE_TIMEOUT,
        metavar="SECONDS",
        help=f"Give up on a remote after this long (default: {DEFAULT_REMOTE_TIMEOUT:g})",
    )
    parser.add_argument(
        "-j", "--jobs",
        type=int,
        default=1,
        metavar="N",
        help="Inspect N repos in parallel (output order is unchanged)",
    )
    output = parser.add_mutually_exclusive_group()
    output.add_argument(
        "--output-json",
        action="store_true",
        help="Display output in JSON format, one object per line",
    )
    output.add_argument(
        "--output-yaml",
        action="store_true",
        help="Display output in YAML format",
    )
    output.add_argument(
        "--markdown",
        action="store_true",
        help="Print a markdown report",
    )
    output.add_argument(
        "--tui",
        action="store_true",
        help="Open the interactive dashboard",
    )
    parser.add_argument(
        "--summary",
        action="store_true",
        help="Print per-action counts after the list",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log skipped directories and failed git commands",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"mrh {__version__}",
    )
    return parser


def _render(args: argparse.Namespace, config: CrawlConfig, cancel: threading.Event) -> None:
    root = args.path
    if args.tui:
        from mrh.tui import run_tui
        check_root(root)
        run_tui(root, config, args.absolute_paths)
        return

    logger.debug("crawling %s with %s", root, config)
    reports = crawl(root, config, cancel=cancel)
    absolute = args.absolute_paths
    if args.output_json:
        _write_lines(render_json_lines(reports, root, absolute))
    elif args.output_yaml:
        _write_lines(render_yaml(reports, root, absolute), end="")
    elif args.markdown:
        sys.stdout.write(generate_report_md(list(reports), root, absolute) + "\n")
    else:
        print_human(reports, root, absolute=absolute, summary=args.summary)


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for the mrh CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    if args.ssh_key and args.access_remote != "ssh-key":
        parser.error("--ssh-key requires --access-remote ssh-key")
    config = load_config(args)
    cancel = threading.Event()

    try:
        _render(args, config, cancel)
    except CrawlRootError as exc:
        from rich.console import Console
        from rich.text import Text

        from mrh.theme import RED

        message = Text()
        message.append("error", style=f"bold {RED}")
        message.append(f": {exc}")
        Console(stderr=True, highlight=False).print(message, soft_wrap=True)
        return EXIT_ERROR
    except KeyboardInterrupt:
        cancel.set()
        return EXIT_INTERRUPTED
    except BrokenPipeError:
        # Reader went away; point stdout at devnull so the final flush is quiet
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
        return EXIT_ERROR
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
