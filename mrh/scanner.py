"""Repo discovery — walk a directory tree and find all non-bare git repositories."""

from __future__ import annotations

import logging
import os
from typing import Iterator

from mrh.repository import (
    BareRepositoryError,
    NotARepositoryError,
    RepositoryHandle,
    UnreadableRepositoryError,
    looks_like_repository,
    open_repository,
)

logger = logging.getLogger(__name__)


def iter_repositories(root: str) -> Iterator[RepositoryHandle]:
    """Lazily yield an open handle for every repository under root.

    Depth-first, children in directory listing order. A repository is never
    descended into, so nested checkouts and the metadata directory are not
    reported on their own. Symlinks are not followed and each physical
    directory is visited at most once per call.
    """
    root = os.path.abspath(os.path.expanduser(root))
    seen: set[tuple[int, int]] = set()
    stack = [root]

    while stack:
        path = stack.pop()
        try:
            st = os.stat(path)
            entries = list(os.scandir(path))
        except OSError as exc:
            logger.debug("skipping %s: %s", path, exc)
            continue

        identity = (st.st_dev, st.st_ino)
        if identity in seen:
            continue
        seen.add(identity)

        if looks_like_repository(entry.name for entry in entries):
            try:
                handle = open_repository(path)
            except NotARepositoryError:
                pass
            except (BareRepositoryError, UnreadableRepositoryError) as exc:
                logger.debug("skipping %s: %s", path, exc)
                continue
            else:
                yield handle
                continue

        subdirs: list[str] = []
        for entry in entries:
            if entry.name == ".git":
                continue
            try:
                if entry.is_dir(follow_symlinks=False):
                    subdirs.append(entry.path)
            except OSError:
                continue

        # Reversed so the first listed child is popped first
        stack.extend(reversed(subdirs))


def find_repos(root: str) -> Iterator[str]:
    """Yield the absolute path of every repository under root, in crawl order."""
    for handle in iter_repositories(root):
        yield handle.path
