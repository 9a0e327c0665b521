"""Snapshot schema.

A Snapshot is one fetched, immutable copy of the Prometheus TSDB status
report. Every analyzer reads from it; none writes to it. When the next fetch
succeeds the whole object is replaced, never patched in place.

The target list is modelled the same way: a TargetSet is read-only and is
swapped wholesale on every successful /api/v1/targets fetch.
"""

from collections.abc import Mapping
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

# One concrete series as returned by /api/v1/series: label name → value.
RawSeries = Mapping[str, str]

Health = Literal["up", "down", "unknown"]


class HeadStats(BaseModel):
    """Head block statistics from the TSDB status endpoint.

    Attributes:
        num_series: Total series currently in the head block. This is the
            denominator for every percentage the simulator reports.
        num_label_pairs: Distinct label name/value pairs in the head.
        chunk_count: Number of in-memory chunks.
        min_time: Oldest sample timestamp in the head (ms since epoch).
        max_time: Newest sample timestamp in the head (ms since epoch).
    """

    model_config = ConfigDict(frozen=True)

    num_series: int = Field(default=0, ge=0)
    num_label_pairs: int = Field(default=0, ge=0)
    chunk_count: int = Field(default=0, ge=0)
    min_time: int = 0
    max_time: int = 0


class NamedCount(BaseModel):
    """One (name, count) entry of a TSDB status ranking."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: int = Field(ge=0)


class Snapshot(BaseModel):
    """Immutable point-in-time view of the TSDB status report.

    Attributes:
        head_stats: Head block totals.
        series_by_metric: Series count per metric name, in the order
            Prometheus ranked them (largest first in practice).
        values_by_label: Unique value count per label name.
        series_by_label_value_pair: Series count per "label=value" pair.
        memory_by_label: Bytes used per label name. Informational only.
    """

    model_config = ConfigDict(frozen=True)

    head_stats: HeadStats = Field(default_factory=HeadStats)
    series_by_metric: tuple[NamedCount, ...] = ()
    values_by_label: tuple[NamedCount, ...] = ()
    series_by_label_value_pair: tuple[NamedCount, ...] = ()
    memory_by_label: tuple[NamedCount, ...] = ()

    @model_validator(mode="after")
    def _names_are_unique(self) -> "Snapshot":
        for field_name in ("series_by_metric", "values_by_label"):
            names = [entry.name for entry in getattr(self, field_name)]
            if len(names) != len(set(names)):
                raise ValueError(f"{field_name} contains duplicate names")
        return self

    @property
    def total_series(self) -> int:
        return self.head_stats.num_series

    def metric_series(self, name: str) -> int:
        """Series count for a metric name, 0 when the metric is absent."""
        return _lookup(self.series_by_metric, name)

    def label_values(self, name: str) -> int:
        """Unique value count for a label name, 0 when the label is absent."""
        return _lookup(self.values_by_label, name)

    def has_metric(self, name: str) -> bool:
        return any(entry.name == name for entry in self.series_by_metric)


class TargetRecord(BaseModel):
    """One active scrape target.

    Attributes:
        job: The target's job label, falling back to its scrape pool.
        instance: The target's instance label, falling back to its URL.
        health: Last scrape outcome as reported by Prometheus.
        scrape_interval: Interval string exactly as configured (e.g. "15s").
        scrape_interval_seconds: The interval in seconds, or None when the
            string is not in <number>(ms|s|m|h) form.
        last_scrape_duration_seconds: Duration of the most recent scrape.
        last_error: Error text of the last failed scrape, empty when healthy.
    """

    model_config = ConfigDict(frozen=True)

    job: str
    instance: str = ""
    health: Health = "unknown"
    scrape_interval: str = ""
    scrape_interval_seconds: float | None = None
    last_scrape_duration_seconds: float = 0.0
    last_error: str = ""


class TargetSet(BaseModel):
    """Read-only collection of active targets from one fetch."""

    model_config = ConfigDict(frozen=True)

    targets: tuple[TargetRecord, ...] = ()
    dropped_count: int = 0

    def __len__(self) -> int:
        return len(self.targets)

    @property
    def healthy_count(self) -> int:
        return sum(1 for t in self.targets if t.health == "up")


def _lookup(entries: tuple[NamedCount, ...], name: str) -> int:
    for entry in entries:
        if entry.name == name:
            return entry.value
    return 0
