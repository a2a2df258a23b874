"""Status inspection — compute the pending-action flags of one repository.

Checks run cheapest first: one `git status` for the index and working tree,
a commit-graph walk against the upstream, then tag lookups, and finally the
optional calls that talk to a remote. Nothing here writes to the repository.
"""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass, field, fields
from typing import Optional

from mrh.config import CrawlConfig
from mrh.repository import RepositoryHandle

logger = logging.getLogger(__name__)


class ChangeKind(enum.Enum):
    ADDED = "added"
    DELETED = "deleted"
    MODIFIED = "modified"
    RENAMED = "renamed"


# Porcelain XY letters. "C" (copied) is a new path; "T" (type change) and
# "U" (unmerged) both mean the tracked content differs.
_KIND_BY_CODE = {
    "A": ChangeKind.ADDED,
    "C": ChangeKind.ADDED,
    "D": ChangeKind.DELETED,
    "M": ChangeKind.MODIFIED,
    "T": ChangeKind.MODIFIED,
    "U": ChangeKind.MODIFIED,
    "R": ChangeKind.RENAMED,
}


def classify(code: str) -> Optional[ChangeKind]:
    """Map one porcelain status letter to a ChangeKind ('.' means unchanged)."""
    return _KIND_BY_CODE.get(code)


class Tristate(enum.Enum):
    """Result of a check that may not be answerable (remote unreachable)."""

    TRUE = "true"
    FALSE = "false"
    UNKNOWN = "unknown"

    def __bool__(self) -> bool:
        return self is Tristate.TRUE

    @classmethod
    def of(cls, value: bool) -> "Tristate":
        return cls.TRUE if value else cls.FALSE


@dataclass
class StatusFlags:
    uncommitted_changes: bool = False
    untracked_files: bool = False
    added_files: bool = False
    deleted_files: bool = False
    renamed_files: bool = False
    unpushed_commits: bool = False
    unpulled_commits: bool = False
    untagged_head: bool = False
    unpushed_tags: Tristate = Tristate.FALSE
    unpulled_tags: Tristate = Tristate.FALSE
    unfetched_commits: Tristate = Tristate.FALSE

    @property
    def outdated_branch(self) -> bool:
        return self.unpulled_commits

    def items(self) -> list[tuple[str, object]]:
        return [(f.name, getattr(self, f.name)) for f in fields(self)]

    def pending(self) -> list[str]:
        """Labels of every flag that is set, in a fixed order."""
        return [FLAG_LABELS[name] for name, value in self.items() if value]

    def unknown(self) -> list[str]:
        """Labels of the remote checks that could not be answered."""
        return [FLAG_LABELS[name] for name, value in self.items() if value is Tristate.UNKNOWN]

    @property
    def is_pending(self) -> bool:
        return bool(self.pending())


FLAG_LABELS = {
    "uncommitted_changes": "uncommitted changes",
    "untracked_files": "untracked files",
    "added_files": "added files",
    "deleted_files": "deleted files",
    "renamed_files": "renamed files",
    "unpushed_commits": "unpushed commits",
    "unpulled_commits": "unpulled commits",
    "untagged_head": "untagged HEAD",
    "unpushed_tags": "unpushed tags",
    "unpulled_tags": "unpulled tags",
    "unfetched_commits": "unfetched commits",
}

_FLAG_BY_KIND = {
    ChangeKind.ADDED: "added_files",
    ChangeKind.DELETED: "deleted_files",
    ChangeKind.MODIFIED: "uncommitted_changes",
    ChangeKind.RENAMED: "renamed_files",
}


@dataclass
class BranchInfo:
    oid: Optional[str] = None       # None before the first commit
    head: Optional[str] = None      # None when detached
    upstream: Optional[str] = None
    ahead: Optional[int] = None     # None when unknown
    behind: Optional[int] = None


@dataclass
class StatusEntry:
    index: Optional[ChangeKind]
    worktree: Optional[ChangeKind]


@dataclass
class WorkingTreeStatus:
    branch: BranchInfo = field(default_factory=BranchInfo)
    entries: list[StatusEntry] = field(default_factory=list)
    untracked: bool = False


@dataclass
class Inspection:
    flags: StatusFlags = field(default_factory=StatusFlags)
    empty: bool = False
    error: Optional[str] = None


def _parse_ab(value: str) -> tuple[Optional[int], Optional[int]]:
    try:
        ahead, behind = value.split()
        return int(ahead.lstrip("+")), int(behind.lstrip("-"))
    except ValueError:
        return None, None


def parse_porcelain(output: str) -> WorkingTreeStatus:
    """Parse `git status --porcelain=v2 -z --branch` output."""
    status = WorkingTreeStatus()
    branch = status.branch
    records = output.split("\0")
    i = 0
    while i < len(records):
        record = records[i]
        i += 1
        if not record:
            continue

        if record.startswith("# "):
            key, _, value = record[2:].partition(" ")
            if key == "branch.oid":
                branch.oid = None if value == "(initial)" else value
            elif key == "branch.head":
                branch.head = None if value == "(detached)" else value
            elif key == "branch.upstream":
                branch.upstream = value
            elif key == "branch.ab":
                branch.ahead, branch.behind = _parse_ab(value)
            continue

        kind = record[0]
        if kind == "?":
            status.untracked = True
        elif kind in "12u" and len(record) > 3:
            xy = record[2:4]
            status.entries.append(StatusEntry(classify(xy[0]), classify(xy[1])))
            if kind == "2":
                # Renames and copies are followed by the original path
                i += 1

    return status


def _apply_changes(flags: StatusFlags, status: WorkingTreeStatus) -> None:
    for entry in status.entries:
        for kind in (entry.index, entry.worktree):
            if kind is not None:
                setattr(flags, _FLAG_BY_KIND[kind], True)
    flags.untracked_files = status.untracked


def _ahead_behind(handle: RepositoryHandle) -> Optional[tuple[int, int]]:
    """Commits HEAD has that upstream lacks, and the reverse, from their merge-base."""
    result = handle.run("rev-list", "--left-right", "--count", "HEAD...@{upstream}")
    if not result.ok:
        logger.debug("%s: ahead/behind failed: %s", handle.path, result.stderr.strip())
        return None
    try:
        ahead, behind = result.stdout.split()
        return int(ahead), int(behind)
    except ValueError:
        return None


def _check_upstream(handle: RepositoryHandle, branch: BranchInfo, flags: StatusFlags) -> None:
    if branch.head is None or branch.upstream is None:
        return
    # Same tip on both sides
    if branch.ahead == 0 and branch.behind == 0:
        return
    counts = _ahead_behind(handle)
    if counts is None:
        return
    ahead, behind = counts
    flags.unpushed_commits = ahead > 0
    flags.unpulled_commits = behind > 0


def _check_untagged_head(handle: RepositoryHandle, flags: StatusFlags) -> None:
    result = handle.run("tag", "--points-at", "HEAD")
    if result.ok:
        flags.untagged_head = not result.stdout.strip()
    else:
        logger.debug("%s: tag lookup failed: %s", handle.path, result.stderr.strip())


def _config_value(handle: RepositoryHandle, key: str) -> Optional[str]:
    result = handle.run("config", "--get", key)
    value = result.stdout.strip()
    return value if result.ok and value else None


def _remotes(handle: RepositoryHandle) -> list[str]:
    result = handle.run("remote")
    if not result.ok:
        return []
    return [line.strip() for line in result.stdout.splitlines() if line.strip()]


def _ls_remote(
    handle: RepositoryHandle,
    remote: str,
    config: CrawlConfig,
    cancel: Optional[threading.Event],
    options: tuple[str, ...] = (),
    patterns: tuple[str, ...] = (),
) -> Optional[dict[str, str]]:
    """Map of ref name to object id advertised by remote, or None on failure.

    Only lists refs; no objects are downloaded.
    """
    result = handle.run(
        "ls-remote", *options, remote, *patterns,
        timeout=config.remote_timeout,
        env=config.remote_env(),
        cancel=cancel,
    )
    if not result.ok:
        logger.debug("%s: ls-remote %s failed: %s", handle.path, remote, result.stderr.strip())
        return None
    refs: dict[str, str] = {}
    for line in result.stdout.splitlines():
        oid, _, ref = line.partition("\t")
        if ref:
            refs[ref.strip()] = oid.strip()
    return refs


def _check_tags(
    handle: RepositoryHandle,
    remote: Optional[str],
    config: CrawlConfig,
    cancel: Optional[threading.Event],
    flags: StatusFlags,
) -> None:
    flags.unpushed_tags = flags.unpulled_tags = Tristate.UNKNOWN
    if remote is None:
        logger.debug("%s: no unambiguous remote for tag check", handle.path)
        return
    local = handle.run("tag", "--list")
    if not local.ok:
        return
    advertised = _ls_remote(handle, remote, config, cancel, options=("--tags", "--refs"))
    if advertised is None:
        return
    local_tags = {line.strip() for line in local.stdout.splitlines() if line.strip()}
    remote_tags = {ref[len("refs/tags/"):] for ref in advertised if ref.startswith("refs/tags/")}
    flags.unpushed_tags = Tristate.of(bool(local_tags - remote_tags))
    flags.unpulled_tags = Tristate.of(bool(remote_tags - local_tags))


def _check_unfetched(
    handle: RepositoryHandle,
    branch: BranchInfo,
    remote: Optional[str],
    merge_ref: Optional[str],
    config: CrawlConfig,
    cancel: Optional[threading.Event],
    flags: StatusFlags,
) -> None:
    if branch.head is None or branch.upstream is None or merge_ref is None:
        return
    flags.unfetched_commits = Tristate.UNKNOWN
    if remote is None:
        return
    tracking = handle.run("rev-parse", "--verify", "--quiet", "@{upstream}")
    if not tracking.ok:
        return
    advertised = _ls_remote(handle, remote, config, cancel, patterns=(merge_ref,))
    if advertised is None or merge_ref not in advertised:
        return
    flags.unfetched_commits = Tristate.of(advertised[merge_ref] != tracking.stdout.strip())


def inspect(
    handle: RepositoryHandle,
    config: CrawlConfig,
    cancel: Optional[threading.Event] = None,
) -> Inspection:
    """Compute the status flags of an open repository.

    Failures stay inside the returned Inspection: a broken repository gets
    an error message, an unreachable remote gets UNKNOWN flags.
    """
    untracked = "no" if config.ignore_untracked else "normal"
    result = handle.run(
        "status", "--porcelain=v2", "-z", "--branch", "--find-renames",
        "--no-ahead-behind", f"--untracked-files={untracked}",
    )
    if not result.ok:
        error = result.stderr.strip() or f"git status exited with {result.returncode}"
        logger.debug("%s: %s", handle.path, error)
        return Inspection(error=error)

    status = parse_porcelain(result.stdout)
    branch = status.branch
    if branch.oid is None:
        return Inspection(empty=True)

    inspection = Inspection()
    flags = inspection.flags
    _apply_changes(flags, status)
    _check_upstream(handle, branch, flags)

    if config.check_untagged_head:
        _check_untagged_head(handle, flags)

    if not (config.check_tags or config.access_remote is not None):
        return inspection

    branch_remote = merge_ref = None
    if branch.head is not None:
        branch_remote = _config_value(handle, f"branch.{branch.head}.remote")
        merge_ref = _config_value(handle, f"branch.{branch.head}.merge")
    remote = config.remote_selector.select(branch_remote, _remotes(handle))

    if config.check_tags:
        _check_tags(handle, remote, config, cancel, flags)
    if config.access_remote is not None:
        _check_unfetched(handle, branch, remote, merge_ref, config, cancel, flags)

    return inspection
