"""Scrape analyzer: interval parsing and per-job scrape summaries.

Detects:
- Jobs scraping faster than every 15s
- Per-job target health and average scrape duration

Interval strings are parsed strictly: <number>(ms|s|m|h), e.g. "500ms",
"15s", "1.5m", "1h". Anything else, including compound durations such as
"1m30s", parses to None and never counts as fast.
"""

import re
from collections.abc import Iterable

from schemas.report import JobSummary
from schemas.snapshot import TargetRecord, TargetSet
from signals.thresholds import FAST_SCRAPE_SECONDS

_INTERVAL = re.compile(r"^(\d+(?:\.\d+)?)(ms|s|m|h)$")

_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_interval(text: str | None) -> float | None:
    """Convert a Prometheus interval string to seconds.

    Returns:
        Seconds as a float, or None when the string is not understood.
    """
    if not text:
        return None
    match = _INTERVAL.match(text.strip())
    if not match:
        return None
    return float(match.group(1)) * _UNIT_SECONDS[match.group(2)]


def is_fast(seconds: float | None) -> bool:
    return seconds is not None and seconds < FAST_SCRAPE_SECONDS


class ScrapeAnalyzer:
    """Group targets by job and flag wasteful intervals."""

    def summarize_jobs(self, targets: TargetSet | None) -> list[JobSummary]:
        """Build one JobSummary per job.

        The interval shown for a job is the first target's. Average
        duration ignores targets that report 0 (never scraped).

        Returns:
            Summaries sorted by target count descending, ties in
            first-seen job order.
        """
        if targets is None:
            return []

        by_job: dict[str, list[TargetRecord]] = {}
        for target in targets.targets:
            by_job.setdefault(target.job, []).append(target)

        summaries = [self._summarize(job, members) for job, members in by_job.items()]
        summaries.sort(key=lambda s: s.target_count, reverse=True)
        return summaries

    def fast_targets(self, targets: TargetSet | None) -> Iterable[tuple[TargetRecord, float]]:
        """Yield (target, seconds) for every target faster than 15s, in order."""
        if targets is None:
            return
        for target in targets.targets:
            seconds = target.scrape_interval_seconds
            if is_fast(seconds):
                yield target, seconds

    # ── Private ───────────────────────────────────────────────────────────────

    def _summarize(self, job: str, members: list[TargetRecord]) -> JobSummary:
        interval = members[0].scrape_interval
        seconds = members[0].scrape_interval_seconds
        durations = [t.last_scrape_duration_seconds for t in members if t.last_scrape_duration_seconds]

        return JobSummary(
            job=job,
            target_count=len(members),
            healthy_count=sum(1 for t in members if t.health == "up"),
            interval=interval,
            interval_seconds=seconds,
            avg_scrape_duration_seconds=sum(durations) / len(durations) if durations else 0.0,
            is_fast=is_fast(seconds),
        )
