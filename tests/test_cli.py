"""Tests for the command line front end."""

import json
import os
import signal
import tempfile
import threading
import time

import pytest
import yaml

from mrh.cli import EXIT_ERROR, EXIT_INTERRUPTED, EXIT_OK, build_parser, main
from mrh.config import load_config

from repo_helpers import clean_repo, init_repo, slow_remote, write


def _tree(tmp: str) -> None:
    dirty = clean_repo(os.path.join(tmp, "dirty"))
    write(dirty, "main.py", "print('changed')\n")
    write(dirty, "notes.txt")
    clean_repo(os.path.join(tmp, "clean"))
    init_repo(os.path.join(tmp, "fresh"))
    init_repo(os.path.join(tmp, "qux"), bare=True)


def _lines(capsys) -> list[str]:
    return [line for line in capsys.readouterr().out.splitlines() if line.strip()]


def test_human_output(capsys):
    with tempfile.TemporaryDirectory() as tmp:
        _tree(tmp)
        assert main([tmp]) == EXIT_OK
        lines = sorted(_lines(capsys))
        assert lines == [
            "clean",
            "dirty (uncommitted changes, untracked files)",
            "fresh (no commits)",
        ]


def test_human_output_pending_only(capsys):
    with tempfile.TemporaryDirectory() as tmp:
        _tree(tmp)
        assert main([tmp, "--pending", "--ignore-untracked"]) == EXIT_OK
        assert _lines(capsys) == ["dirty (uncommitted changes)"]


def test_absolute_paths(capsys):
    with tempfile.TemporaryDirectory() as tmp:
        _tree(tmp)
        main([tmp, "--pending", "--absolute-paths"])
        assert _lines(capsys) == [
            f"{os.path.join(tmp, 'dirty')} (uncommitted changes, untracked files)",
        ]


def test_ignore_uncommitted_repos(capsys):
    with tempfile.TemporaryDirectory() as tmp:
        _tree(tmp)
        main([tmp, "--ignore-uncommitted-repos"])
        assert not any(line.startswith("fresh") for line in _lines(capsys))


def test_summary(capsys):
    with tempfile.TemporaryDirectory() as tmp:
        _tree(tmp)
        main([tmp, "--summary"])
        out = capsys.readouterr().out
        assert "3 repos" in out
        assert "1 pending" in out
        assert "uncommitted changes" in out


def test_json_output(capsys):
    with tempfile.TemporaryDirectory() as tmp:
        _tree(tmp)
        assert main([tmp, "--output-json", "--pending"]) == EXIT_OK
        records = [json.loads(line) for line in _lines(capsys)]
        assert records == [{
            "path": "dirty",
            "pending": ["uncommitted changes", "untracked files"],
            "unknown": None,
            "error": None,
        }]


def test_yaml_output(capsys):
    with tempfile.TemporaryDirectory() as tmp:
        _tree(tmp)
        assert main([tmp, "--output-yaml"]) == EXIT_OK
        docs = list(yaml.safe_load_all(capsys.readouterr().out))
        assert sorted(d["path"] for d in docs) == ["clean", "dirty", "fresh"]


def test_markdown_output(capsys):
    with tempfile.TemporaryDirectory() as tmp:
        _tree(tmp)
        assert main([tmp, "--markdown"]) == EXIT_OK
        out = capsys.readouterr().out
        assert "| Repositories | 3 |" in out
        assert "| dirty | uncommitted changes, untracked files |" in out


def test_json_and_yaml_are_exclusive():
    with pytest.raises(SystemExit):
        main([".", "--output-json", "--output-yaml"])


def test_ssh_key_requires_ssh_key_method():
    with pytest.raises(SystemExit):
        main([".", "--ssh-key", "/keys/id"])


def test_missing_root(capsys):
    assert main(["/nonexistent/path"]) == EXIT_ERROR
    err = capsys.readouterr().err
    assert "error" in err
    assert "/nonexistent/path" in err


def test_version(capsys):
    with pytest.raises(SystemExit):
        main(["--version"])
    assert capsys.readouterr().out.startswith("mrh ")


def test_ssh_auth_method_spelling():
    args = build_parser().parse_args([".", "--ssh-auth-method", "ssh-key", "--ssh-key", "/keys/id"])
    config = load_config(args)
    assert config.access_remote.method == "ssh-key"
    assert config.access_remote.key_path == "/keys/id"


def test_summary_counts_unknown(capsys):
    with tempfile.TemporaryDirectory() as tmp:
        clean_repo(os.path.join(tmp, "lonely"))
        assert main([tmp, "--check-tags", "--summary"]) == EXIT_OK
        out = capsys.readouterr().out
        assert "1 unknown" in out


def test_interrupt_exits_quickly():
    with tempfile.TemporaryDirectory() as tmp:
        for name in ("one", "two"):
            slow_remote(clean_repo(os.path.join(tmp, name)), 5)
        timer = threading.Timer(0.5, os.kill, (os.getpid(), signal.SIGINT))
        started = time.monotonic()
        timer.start()
        try:
            rc = main([tmp, "--check-tags", "-j", "2", "--remote-timeout", "30"])
        finally:
            timer.cancel()
        assert rc == EXIT_INTERRUPTED
        assert time.monotonic() - started < 3
