"""mrh — crawl a directory tree and report the pending state of every git repo."""

from mrh.config import CrawlConfig, CredentialSource, RemoteSelector
from mrh.crawler import CrawlRootError, Report, crawl
from mrh.repository import (
    BareRepositoryError,
    NotARepositoryError,
    RepositoryHandle,
    RepositoryOpenError,
    UnreadableRepositoryError,
    open_repository,
)
from mrh.scanner import find_repos, iter_repositories
from mrh.status import ChangeKind, StatusFlags, Tristate, inspect

__version__ = "0.13.2"

__all__ = [
    "BareRepositoryError",
    "ChangeKind",
    "CrawlConfig",
    "CrawlRootError",
    "CredentialSource",
    "NotARepositoryError",
    "RemoteSelector",
    "Report",
    "RepositoryHandle",
    "RepositoryOpenError",
    "StatusFlags",
    "Tristate",
    "UnreadableRepositoryError",
    "crawl",
    "find_repos",
    "inspect",
    "iter_repositories",
    "open_repository",
]
