"""Churn analyzer: series churn and head memory pressure.

Works on the scalar results of the churn queries the Prometheus client runs
(see integrations/prometheus.py CHURN_QUERIES). Any of them may be None
when a query failed; the analyzer never raises on missing values.
"""

from schemas.report import ChurnStats, Health, ScrapeSample
from signals.thresholds import (
    HEAD_CHUNKS_CRITICAL,
    HEAD_CHUNKS_MODERATE,
    HEAD_SERIES_CRITICAL,
    HEAD_SERIES_MODERATE,
    NET_CHURN_CRITICAL,
    NET_CHURN_MODERATE,
)


def _band(value: float | None, critical: float, moderate: float) -> Health | None:
    if value is None:
        return None
    if value > critical:
        return "critical"
    if value > moderate:
        return "moderate"
    return "healthy"


class ChurnAnalyzer:
    """Derive net churn and severities from raw query results."""

    def analyze(
        self,
        scalars: dict[str, float | None],
        top_series_added: list[ScrapeSample] | None = None,
        top_post_relabel: list[ScrapeSample] | None = None,
    ) -> ChurnStats:
        """Build ChurnStats from query results.

        Args:
            scalars: Values keyed by "head_series", "head_chunks",
                "chunks_created_rate", "series_created_rate" and
                "series_removed_rate". Missing keys read as None.
            top_series_added: topk(10, scrape_series_added) samples.
            top_post_relabel: topk(10, scrape_samples_post_metric_relabeling).

        Returns:
            ChurnStats. net_churn_rate is created minus removed, None
            unless both rates are known.
        """
        head_series = scalars.get("head_series")
        head_chunks = scalars.get("head_chunks")
        created = scalars.get("series_created_rate")
        removed = scalars.get("series_removed_rate")

        net = created - removed if created is not None and removed is not None else None

        return ChurnStats(
            head_series=head_series,
            head_chunks=head_chunks,
            chunks_created_rate=scalars.get("chunks_created_rate"),
            series_created_rate=created,
            series_removed_rate=removed,
            net_churn_rate=net,
            series_severity=_band(head_series, HEAD_SERIES_CRITICAL, HEAD_SERIES_MODERATE),
            chunk_severity=_band(head_chunks, HEAD_CHUNKS_CRITICAL, HEAD_CHUNKS_MODERATE),
            net_churn_severity=_band(net, NET_CHURN_CRITICAL, NET_CHURN_MODERATE),
            top_series_added=tuple(top_series_added or ()),
            top_post_relabel=tuple(top_post_relabel or ()),
        )
