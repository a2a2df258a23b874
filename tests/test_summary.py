"""Tests for summary counts."""

from mrh.crawler import Report
from mrh.status import StatusFlags, Tristate
from mrh.summary import summarize


def _reports() -> list[Report]:
    return [
        Report("/r/foo", StatusFlags(uncommitted_changes=True, untracked_files=True, unpushed_commits=True)),
        Report("/r/bar", StatusFlags()),
        Report("/r/baz", StatusFlags(unpushed_commits=True, unfetched_commits=Tristate.UNKNOWN)),
        Report("/r/new", StatusFlags(), empty=True),
        Report("/r/broken", StatusFlags(), error="fatal: index file corrupt"),
    ]


def test_summarize_counts():
    s = summarize(_reports())
    assert s.total == 5
    assert s.pending == 2
    assert s.clean == 2
    assert s.empty == 1
    assert s.errors == 1
    assert s.unknown == 1


def test_summarize_flag_counts_in_flag_order():
    s = summarize(_reports())
    assert list(s.flags.items()) == [
        ("uncommitted changes", 1),
        ("untracked files", 1),
        ("unpushed commits", 2),
    ]
    assert s.top_flag == "unpushed commits"


def test_summarize_empty():
    s = summarize([])
    assert s.total == 0
    assert s.flags == {}
    assert s.top_flag == "—"
