"""Repository handles — open a directory as a git repository and run git in it."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

logger = logging.getLogger(__name__)

LOCAL_TIMEOUT = 60
OPEN_TIMEOUT = 10

# How often a running command checks its cancel event
POLL_INTERVAL = 0.05

# Variables that would redirect git away from the directory we point it at
_REPO_ENV_VARS = (
    "GIT_DIR", "GIT_WORK_TREE", "GIT_INDEX_FILE",
    "GIT_OBJECT_DIRECTORY", "GIT_COMMON_DIR", "GIT_NAMESPACE",
)

_UNREADABLE_MARKERS = ("permission denied", "dubious ownership", "input/output error")


class RepositoryOpenError(Exception):
    """A directory could not be opened as a non-bare repository."""

    def __init__(self, path: str, reason: str = "") -> None:
        super().__init__(f"{path}: {reason}" if reason else path)
        self.path = path
        self.reason = reason


class NotARepositoryError(RepositoryOpenError):
    pass


class BareRepositoryError(RepositoryOpenError):
    pass


class UnreadableRepositoryError(RepositoryOpenError):
    pass


@dataclass(frozen=True)
class GitResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def _git_env(extra: Optional[Mapping[str, str]] = None) -> dict[str, str]:
    env = {k: v for k, v in os.environ.items() if k not in _REPO_ENV_VARS}
    # Keep `git status` from refreshing the index on disk
    env["GIT_OPTIONAL_LOCKS"] = "0"
    env["LC_ALL"] = "C"
    if extra:
        env.update(extra)
    return env


def _kill(proc: subprocess.Popen) -> None:
    try:
        if os.name == "posix":
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except OSError:
        pass


def _run_git(
    cwd: str,
    args: Iterable[str],
    timeout: float = LOCAL_TIMEOUT,
    env: Optional[Mapping[str, str]] = None,
    cancel: Optional[threading.Event] = None,
) -> GitResult:
    """Run a git command in cwd and capture its output.

    Never raises: a missing git binary, a timeout or a cancellation all come
    back as a failed GitResult with the reason in stderr.
    """
    cmd = ["git", "-C", cwd] + list(args)
    if cancel is not None and cancel.is_set():
        return GitResult(-1, "", "cancelled")
    try:
        proc = subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
            env=_git_env(env),
            # Own process group so ssh and other helpers die with git
            start_new_session=True,
        )
    except OSError as exc:
        logger.debug("could not start %s: %s", cmd, exc)
        return GitResult(-1, "", str(exc))

    waited = 0.0
    try:
        while True:
            step = timeout - waited
            if cancel is not None:
                step = min(step, POLL_INTERVAL)
            try:
                stdout, stderr = proc.communicate(timeout=max(step, 0.001))
                return GitResult(proc.returncode, stdout, stderr)
            except subprocess.TimeoutExpired:
                waited += step
                if cancel is not None and cancel.is_set():
                    reason = "cancelled"
                elif waited >= timeout:
                    reason = f"timed out after {timeout}s"
                else:
                    continue
                _kill(proc)
                proc.communicate()
                logger.debug("%s: %s", " ".join(cmd), reason)
                return GitResult(-1, "", reason)
    except BaseException:
        # KeyboardInterrupt and friends: the group is in its own session and
        # would outlive us
        _kill(proc)
        proc.communicate()
        raise


def _is_unreadable(stderr: str) -> bool:
    text = stderr.lower()
    return any(marker in text for marker in _UNREADABLE_MARKERS)


@dataclass(frozen=True)
class RepositoryHandle:
    """An opened, non-bare repository rooted at `path`."""

    path: str
    git_dir: str

    def run(
        self,
        *args: str,
        timeout: float = LOCAL_TIMEOUT,
        env: Optional[Mapping[str, str]] = None,
        cancel: Optional[threading.Event] = None,
    ) -> GitResult:
        return _run_git(self.path, args, timeout=timeout, env=env, cancel=cancel)


def looks_like_repository(names: Iterable[str]) -> bool:
    """Cheap check on a directory listing before asking git.

    A working tree has a `.git` entry (a directory, or a file for worktrees
    and submodules); a bare repository has HEAD, objects and refs at its top.
    """
    names = set(names)
    return ".git" in names or {"HEAD", "objects", "refs"} <= names


def open_repository(path: str) -> RepositoryHandle:
    """Open path as the root of a non-bare repository.

    Only the directory itself is considered: a directory nested somewhere
    inside a working tree is not a repository root.
    """
    path = os.path.abspath(path)
    if not os.path.isdir(path):
        raise NotARepositoryError(path, "not a directory")
    if not os.access(path, os.R_OK | os.X_OK):
        raise UnreadableRepositoryError(path, "permission denied")

    result = _run_git(
        path, ["rev-parse", "--is-bare-repository", "--absolute-git-dir"],
        timeout=OPEN_TIMEOUT,
    )
    if not result.ok:
        if _is_unreadable(result.stderr):
            raise UnreadableRepositoryError(path, result.stderr.strip())
        raise NotARepositoryError(path, result.stderr.strip())

    lines = result.stdout.splitlines()
    if len(lines) < 2:
        raise NotARepositoryError(path, "unexpected rev-parse output")
    is_bare = lines[0].strip() == "true"
    git_dir = lines[1].strip()
    real = os.path.realpath(path)

    if is_bare:
        if os.path.realpath(git_dir) == real:
            raise BareRepositoryError(path)
        raise NotARepositoryError(path, "inside a bare repository")

    top = _run_git(path, ["rev-parse", "--show-toplevel"], timeout=OPEN_TIMEOUT)
    if not top.ok:
        raise NotARepositoryError(path, top.stderr.strip())
    if os.path.realpath(top.stdout.strip()) != real:
        raise NotARepositoryError(path, "not the top of a working tree")

    return RepositoryHandle(path=path, git_dir=git_dir)
