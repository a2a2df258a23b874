"""Crawl configuration — what to check, how to reach remotes, which remote to ask."""

from __future__ import annotations

import argparse
import os
import shlex
from dataclasses import dataclass, field
from typing import Optional, Sequence

SSH_KEY = "ssh-key"
SSH_AGENT = "ssh-agent"
AUTH_METHODS = (SSH_KEY, SSH_AGENT)

DEFAULT_SSH_KEY = "~/.ssh/id_rsa"
DEFAULT_REMOTE_TIMEOUT = 10.0


@dataclass(frozen=True)
class CredentialSource:
    """How remote git commands authenticate over ssh."""

    method: str = SSH_AGENT
    key_path: Optional[str] = None

    def __post_init__(self) -> None:
        if self.method not in AUTH_METHODS:
            raise ValueError(
                f"unknown auth method {self.method!r} (expected one of {', '.join(AUTH_METHODS)})"
            )

    @classmethod
    def parse(cls, method: str, key_path: Optional[str] = None) -> "CredentialSource":
        return cls(method=method, key_path=key_path)

    def environment(self) -> dict[str, str]:
        """Environment overlay for a remote git command.

        Prompts are disabled so an unanswerable password or passphrase
        request fails fast instead of hanging the crawl.
        """
        ssh = ["ssh", "-o", "BatchMode=yes"]
        if self.method == SSH_KEY:
            key = os.path.expanduser(self.key_path or DEFAULT_SSH_KEY)
            ssh += ["-i", key, "-o", "IdentitiesOnly=yes"]
        return {
            "GIT_TERMINAL_PROMPT": "0",
            "GIT_SSH_COMMAND": shlex.join(ssh),
        }


@dataclass(frozen=True)
class RemoteSelector:
    """Decides which remote answers the remote-dependent checks.

    The branch's configured remote always wins. Without one, a repository
    with a single remote uses it, and `fallback` is used only when it names
    an existing remote. Anything else is ambiguous and yields None.
    """

    fallback: Optional[str] = None

    def select(self, branch_remote: Optional[str], remotes: Sequence[str]) -> Optional[str]:
        if branch_remote:
            return branch_remote
        if len(remotes) == 1:
            return remotes[0]
        if self.fallback and self.fallback in remotes:
            return self.fallback
        return None


@dataclass(frozen=True)
class CrawlConfig:
    ignore_untracked: bool = False
    check_untagged_head: bool = False
    check_tags: bool = False
    access_remote: Optional[CredentialSource] = None
    pending_only: bool = False
    ignore_uncommitted_repos: bool = False
    remote_timeout: float = DEFAULT_REMOTE_TIMEOUT
    remote_selector: RemoteSelector = field(default_factory=RemoteSelector)
    jobs: int = 1

    def remote_env(self) -> dict[str, str]:
        if self.access_remote is not None:
            return self.access_remote.environment()
        return {"GIT_TERMINAL_PROMPT": "0"}


def load_config(args: argparse.Namespace) -> CrawlConfig:
    """Build a CrawlConfig from parsed command-line arguments."""
    access_remote = None
    if args.access_remote:
        access_remote = CredentialSource.parse(args.access_remote, args.ssh_key)
    return CrawlConfig(
        ignore_untracked=args.ignore_untracked,
        check_untagged_head=args.untagged_heads,
        check_tags=args.check_tags,
        access_remote=access_remote,
        pending_only=args.pending,
        ignore_uncommitted_repos=args.ignore_uncommitted_repos,
        remote_timeout=args.remote_timeout,
        remote_selector=RemoteSelector(fallback=args.remote),
        jobs=max(1, args.jobs),
    )
