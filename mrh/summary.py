"""Summary counts across a crawl — how many repos need what."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable

from mrh.crawler import Report
from mrh.status import FLAG_LABELS


@dataclass
class Summary:
    total: int = 0
    pending: int = 0
    clean: int = 0
    empty: int = 0
    errors: int = 0
    unknown: int = 0
    flags: dict[str, int] = field(default_factory=dict)  # label -> repo count

    @property
    def top_flag(self) -> str:
        if not self.flags:
            return "—"
        return max(self.flags.items(), key=lambda kv: kv[1])[0]


def summarize(reports: Iterable[Report]) -> Summary:
    """Count repositories per state and per pending flag.

    Flag counts keep the fixed flag order and only include flags seen at
    least once.
    """
    summary = Summary()
    counts: Counter[str] = Counter()

    for report in reports:
        summary.total += 1
        labels = report.flags.pending()
        counts.update(labels)
        if report.error:
            summary.errors += 1
        if report.empty:
            summary.empty += 1
        if report.flags.unknown():
            summary.unknown += 1
        if labels:
            summary.pending += 1
        elif not report.error:
            summary.clean += 1

    summary.flags = {label: counts[label] for label in FLAG_LABELS.values() if counts[label]}
    return summary
