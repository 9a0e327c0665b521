"""Histogram risk scorer: deterministic cost scoring of bucket metrics.

Detects:
- Every classic histogram family, by the `_bucket` suffix
- How many buckets each label combination carries (estimated)
- What share of the family's series dropping the buckets would save

Risk score:
    min(100, round((bucket_series / 1000) * (buckets_per_series / 10) * 5))

The first factor grows with the family's absolute footprint, the second with
bucket granularity. Both are linear so ordering between families is what
matters; the constant only sets where 100 saturates (20k series of a
10-bucket histogram).

No network, no randomness. Same snapshot always produces the same list.
"""

import logging

from schemas.analysis import HistogramCandidate, Severity
from schemas.snapshot import Snapshot
from signals.thresholds import (
    BUCKET_SUFFIX,
    COUNT_SUFFIX,
    HISTOGRAM_RISK_BUCKET_UNIT,
    HISTOGRAM_RISK_CAP,
    HISTOGRAM_RISK_CRITICAL,
    HISTOGRAM_RISK_MODERATE,
    HISTOGRAM_RISK_SERIES_UNIT,
    HISTOGRAM_RISK_WEIGHT,
    SUM_SUFFIX,
)
from utils.numbers import round_half_up
from utils.relabel import drop_metric_snippet

logger = logging.getLogger(__name__)


class HistogramRiskScorer:
    """Score every `_bucket` metric in a snapshot."""

    def score(self, snapshot: Snapshot) -> list[HistogramCandidate]:
        """Return one candidate per bucket metric, riskiest first.

        Missing `_sum` / `_count` partners count as 0 series. That is not
        an error: native histograms and some exporters omit them.

        Args:
            snapshot: The current TSDB snapshot.

        Returns:
            Candidates sorted by risk_score descending. Equal scores keep
            snapshot order.
        """
        candidates = [
            self._score_one(snapshot, entry.name, entry.value)
            for entry in snapshot.series_by_metric
            if entry.name.endswith(BUCKET_SUFFIX)
        ]
        candidates.sort(key=lambda c: c.risk_score, reverse=True)

        logger.debug("HistogramRiskScorer found %d bucket metrics.", len(candidates))
        return candidates

    # ── Private ───────────────────────────────────────────────────────────────

    def _score_one(self, snapshot: Snapshot, name: str, bucket: int) -> HistogramCandidate:
        base_name = name[: -len(BUCKET_SUFFIX)]
        sum_series = snapshot.metric_series(base_name + SUM_SUFFIX)
        count_series = snapshot.metric_series(base_name + COUNT_SUFFIX)

        buckets_per_series = round_half_up(bucket / sum_series) if sum_series > 0 else 0

        family = bucket + sum_series + count_series
        savings = (
            round_half_up((bucket - sum_series - count_series) / family * 100)
            if family
            else 0
        )

        risk = risk_score(bucket, buckets_per_series)

        return HistogramCandidate(
            name=name,
            base_name=base_name,
            bucket_series_count=bucket,
            sum_series_count=sum_series,
            count_series_count=count_series,
            estimated_buckets_per_series=buckets_per_series,
            savings_percent=savings,
            risk_score=risk,
            severity=severity_band(risk),
            remediation_snippet=drop_metric_snippet(name),
        )


def risk_score(bucket_series: int, buckets_per_series: int) -> int:
    """Capped risk heuristic; non-decreasing in both arguments."""
    raw = (
        (bucket_series / HISTOGRAM_RISK_SERIES_UNIT)
        * (buckets_per_series / HISTOGRAM_RISK_BUCKET_UNIT)
        * HISTOGRAM_RISK_WEIGHT
    )
    return min(HISTOGRAM_RISK_CAP, round_half_up(raw))


def severity_band(score: int) -> Severity:
    """Map a risk score to a band. Exactly 70 is moderate, exactly 40 is low."""
    if score > HISTOGRAM_RISK_CRITICAL:
        return "critical"
    if score > HISTOGRAM_RISK_MODERATE:
        return "moderate"
    return "low"
