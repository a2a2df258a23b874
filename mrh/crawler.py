"""Crawl a tree and produce one status Report per repository found."""

from __future__ import annotations

import logging
import os
import threading
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterator, Optional

from mrh.config import CrawlConfig
from mrh.repository import RepositoryHandle
from mrh.scanner import iter_repositories
from mrh.status import StatusFlags, inspect

logger = logging.getLogger(__name__)


class CrawlRootError(ValueError):
    """The starting directory cannot be crawled at all."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


@dataclass(frozen=True)
class Report:
    path: str
    flags: StatusFlags = field(default_factory=StatusFlags)
    empty: bool = False
    error: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.flags.is_pending

    def display_path(self, root: str, absolute: bool = False) -> str:
        """Path relative to root ('.' for root itself) unless absolute is set."""
        if absolute:
            return self.path
        root = os.path.abspath(os.path.expanduser(root))
        if self.path == root:
            return "."
        if self.path.startswith(root.rstrip(os.sep) + os.sep):
            return os.path.relpath(self.path, root)
        return self.path


def check_root(root: str) -> str:
    """Return root as an absolute path, or raise CrawlRootError."""
    path = os.path.abspath(os.path.expanduser(root))
    if not os.path.exists(path):
        raise CrawlRootError(path, "no such directory")
    if not os.path.isdir(path):
        raise CrawlRootError(path, "not a directory")
    if not os.access(path, os.R_OK | os.X_OK):
        raise CrawlRootError(path, "permission denied")
    return path


def inspect_repository(
    handle: RepositoryHandle,
    config: CrawlConfig,
    cancel: Optional[threading.Event] = None,
) -> Report:
    result = inspect(handle, config, cancel=cancel)
    return Report(path=handle.path, flags=result.flags, empty=result.empty, error=result.error)


def _keep(report: Report, config: CrawlConfig) -> bool:
    if config.ignore_uncommitted_repos and report.empty:
        return False
    if config.pending_only and not (report.is_pending or report.error):
        return False
    return True


def crawl(
    root: str = ".",
    config: Optional[CrawlConfig] = None,
    cancel: Optional[threading.Event] = None,
) -> Iterator[Report]:
    """Find every repository under root and report its pending actions.

    The root is validated immediately; the returned iterator is lazy and
    yields reports in discovery order. Setting `cancel` stops new
    inspections and kills any remote command in flight.
    """
    path = check_root(root)
    config = config or CrawlConfig()
    cancel = cancel or threading.Event()
    if config.jobs > 1:
        return _crawl_parallel(path, config, cancel)
    return _crawl_sequential(path, config, cancel)


def _crawl_sequential(root: str, config: CrawlConfig, cancel: threading.Event) -> Iterator[Report]:
    for handle in iter_repositories(root):
        if cancel.is_set():
            logger.debug("crawl cancelled before %s", handle.path)
            return
        report = inspect_repository(handle, config, cancel)
        if _keep(report, config):
            yield report


class _LinkedEvent(threading.Event):
    """An event that also reads as set once its parent is set."""

    def __init__(self, parent: threading.Event) -> None:
        super().__init__()
        self.parent = parent

    def is_set(self) -> bool:
        return super().is_set() or self.parent.is_set()


def _crawl_parallel(root: str, config: CrawlConfig, parent: threading.Event) -> Iterator[Report]:
    # Workers watch a crawl-local event so an interrupted or abandoned crawl
    # stops them before the executor waits on its threads
    cancel = _LinkedEvent(parent)
    # Futures are kept in submission order so results come out in crawl order
    window: deque[Future[Report]] = deque()
    limit = config.jobs * 2

    def drain(until: int) -> Iterator[Report]:
        while len(window) > until:
            future = window.popleft()
            if cancel.is_set() and future.cancel():
                continue
            report = future.result()
            if _keep(report, config):
                yield report

    with ThreadPoolExecutor(max_workers=config.jobs) as executor:
        try:
            for handle in iter_repositories(root):
                if cancel.is_set():
                    logger.debug("crawl cancelled before %s", handle.path)
                    break
                window.append(executor.submit(inspect_repository, handle, config, cancel))
                yield from drain(limit - 1)
            yield from drain(0)
        finally:
            cancel.set()
            for future in window:
                future.cancel()
