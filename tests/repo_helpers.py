"""Helpers that build real git repositories for the tests."""

import os
import subprocess

GIT_CONFIG = [
    "-c", "user.name=Test User",
    "-c", "user.email=test@test.com",
    "-c", "commit.gpgsign=false",
    "-c", "tag.gpgsign=false",
    "-c", "init.defaultBranch=main",
    "-c", "advice.detachedHead=false",
]


def git(path: str, *args: str) -> str:
    """Run git in path and return stdout, failing the test on error."""
    result = subprocess.run(
        ["git"] + GIT_CONFIG + ["-C", path] + list(args),
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout


def init_repo(path: str, bare: bool = False) -> str:
    os.makedirs(path, exist_ok=True)
    git(path, "init", *(["--bare"] if bare else []))
    return path


def write(repo: str, name: str, content: str = "hello\n") -> str:
    file_path = os.path.join(repo, name)
    os.makedirs(os.path.dirname(file_path), exist_ok=True)
    with open(file_path, "w") as f:
        f.write(content)
    return file_path


def commit_file(repo: str, name: str, content: str = "hello\n", message: str = "") -> None:
    write(repo, name, content)
    git(repo, "add", name)
    git(repo, "commit", "-m", message or f"Update {name}")


def clean_repo(path: str) -> str:
    """A repo with two committed files and no upstream."""
    init_repo(path)
    commit_file(path, "README.md", "# Test\n", "Initial commit")
    commit_file(path, "main.py", "print('hello')\n", "Add main")
    return path


def make_origin(path: str) -> str:
    """A bare repo seeded with one commit on main, usable as a remote."""
    init_repo(path, bare=True)
    seed = path + "-seed"
    clean_repo(seed)
    git(seed, "remote", "add", "origin", path)
    git(seed, "push", "-u", "origin", "HEAD")
    return path


def clone(origin: str, path: str) -> str:
    git(os.path.dirname(path) or ".", "clone", origin, path)
    return path


def slow_remote(repo: str, seconds: float) -> str:
    """Point origin at an ssh remote whose transport just sleeps."""
    git(repo, "remote", "add", "origin", "ssh://example.invalid/slow.git")
    git(repo, "config", "core.sshCommand", f"sh -c 'sleep {seconds}'")
    return repo
