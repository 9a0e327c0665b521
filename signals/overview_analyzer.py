"""Overview analyzer: headline numbers for the connected server.

Missing inputs degrade to zeros: an overview can be built from a snapshot
without targets, targets without a snapshot, or neither.
"""

from schemas.report import Health, Overview
from schemas.snapshot import Snapshot, TargetSet
from signals.thresholds import (
    TOP_LABEL_VALUE_PAIRS,
    TOP_LABELS,
    TOP_METRICS,
    TOTAL_SERIES_CRITICAL,
    TOTAL_SERIES_MODERATE,
)


def series_severity(total_series: int) -> Health:
    if total_series > TOTAL_SERIES_CRITICAL:
        return "critical"
    if total_series > TOTAL_SERIES_MODERATE:
        return "moderate"
    return "healthy"


class OverviewAnalyzer:
    """Summarize a snapshot and target set into the overview cards."""

    def summarize(self, snapshot: Snapshot | None, targets: TargetSet | None) -> Overview:
        snapshot = snapshot or Snapshot()
        targets = targets or TargetSet()

        # Distinct intervals in first-seen order
        intervals = dict.fromkeys(t.scrape_interval for t in targets.targets if t.scrape_interval)

        return Overview(
            total_series=snapshot.total_series,
            series_severity=series_severity(snapshot.total_series),
            label_pairs=snapshot.head_stats.num_label_pairs,
            chunk_count=snapshot.head_stats.chunk_count,
            targets_up=targets.healthy_count,
            targets_total=len(targets),
            scrape_intervals=tuple(intervals),
            top_metrics=snapshot.series_by_metric[:TOP_METRICS],
            top_labels=snapshot.values_by_label[:TOP_LABELS],
            top_label_value_pairs=snapshot.series_by_label_value_pair[:TOP_LABEL_VALUE_PAIRS],
        )
