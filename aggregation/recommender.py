"""Recommendation engine: one prioritized findings list.

The RecommendationEngine runs four rule families against a Snapshot and a
TargetSet and merges their output:

1. Cardinality: metrics above 10k series
2. Histograms: `_bucket` metrics above 5k series
3. Labels: dynamic-pattern labels above 100 unique values
4. Scrapes: jobs scraping faster than every 15s

Rules 1 and 2 overlap: a large bucket metric gets both a
Cardinality and a Histograms finding. Their ids differ by prefix.

Two concerns the rules themselves do not handle:

- Deduplication: every finding id is stable ("<prefix>-<subject>"). The
  first finding with a given id wins, later ones are dropped. This is what
  collapses many fast targets of one job into a single finding.

- Ordering: findings are sorted by severity (critical, high, moderate,
  low). sort() is stable, so within a severity the emission order above
  is preserved.
"""

import logging
from collections.abc import Callable

from schemas.finding import Finding
from schemas.snapshot import Snapshot, TargetSet
from signals.label_classifier import is_dynamic_label
from signals.scrape_analyzer import ScrapeAnalyzer
from signals.thresholds import (
    BUCKET_SERIES_CRITICAL,
    BUCKET_SERIES_HIGH,
    BUCKET_SUFFIX,
    DYNAMIC_LABEL_CRITICAL,
    DYNAMIC_LABEL_HIGH,
    DYNAMIC_LABEL_MODERATE,
    METRIC_SERIES_CRITICAL,
    METRIC_SERIES_HIGH,
    VERY_FAST_SCRAPE_SECONDS,
)
from utils.relabel import drop_metric_snippet, labeldrop_snippet

logger = logging.getLogger(__name__)


class RecommendationEngine:
    """Produce a deduplicated, severity-ordered list of findings."""

    def __init__(self) -> None:
        self._scrapes = ScrapeAnalyzer()

    def recommend(self, snapshot: Snapshot | None, targets: TargetSet | None) -> list[Finding]:
        """Run every rule and return the merged findings.

        Each rule runs independently. If one raises, the error is logged
        and the others still contribute.

        Args:
            snapshot: Current TSDB snapshot. None is treated as empty.
            targets: Current target set. None is treated as empty.

        Returns:
            Findings ordered by severity, unique by id.
        """
        snapshot = snapshot or Snapshot()

        raw: list[Finding] = []
        raw.extend(self._run(self._check_cardinality, snapshot, "cardinality"))
        raw.extend(self._run(self._check_histograms, snapshot, "histograms"))
        raw.extend(self._run(self._check_labels, snapshot, "labels"))
        raw.extend(self._run(self._check_scrapes, targets, "scrapes"))

        findings = self._dedupe(raw)
        findings.sort(key=lambda f: f.rank)

        logger.debug("RecommendationEngine produced %d findings.", len(findings))
        return findings

    # ── Rules ─────────────────────────────────────────────────────────────────

    def _check_cardinality(self, snapshot: Snapshot) -> list[Finding]:
        findings = []
        for m in snapshot.series_by_metric:
            if m.value <= METRIC_SERIES_HIGH:
                continue
            findings.append(Finding(
                id=f"card-{m.name}",
                severity="critical" if m.value > METRIC_SERIES_CRITICAL else "high",
                category="Cardinality",
                title=f"High cardinality: {m.name}",
                description=(
                    f"This metric has {m.value:,} series, contributing "
                    f"significantly to TSDB size and memory usage."
                ),
                impact_description=f"{m.value:,} series",
                suggested_fix="Consider dropping high-cardinality labels or the metric entirely.",
                remediation_snippet=drop_metric_snippet(m.name),
            ))
        return findings

    def _check_histograms(self, snapshot: Snapshot) -> list[Finding]:
        findings = []
        for m in snapshot.series_by_metric:
            if not m.name.endswith(BUCKET_SUFFIX) or m.value <= BUCKET_SERIES_HIGH:
                continue
            findings.append(Finding(
                id=f"hist-{m.name}",
                severity="critical" if m.value > BUCKET_SERIES_CRITICAL else "high",
                category="Histograms",
                title=f"Expensive histogram: {m.name}",
                description=(
                    f"Bucket metric with {m.value:,} series. "
                    f"Consider keeping only _sum and _count."
                ),
                impact_description=f"{m.value:,} series from buckets alone",
                suggested_fix="Drop _bucket and retain _sum/_count for rate calculations.",
                remediation_snippet=drop_metric_snippet(m.name),
            ))
        return findings

    def _check_labels(self, snapshot: Snapshot) -> list[Finding]:
        findings = []
        for label in snapshot.values_by_label:
            if label.value <= DYNAMIC_LABEL_MODERATE or not is_dynamic_label(label.name):
                continue

            if label.value > DYNAMIC_LABEL_CRITICAL:
                severity = "critical"
            elif label.value > DYNAMIC_LABEL_HIGH:
                severity = "high"
            else:
                severity = "moderate"

            findings.append(Finding(
                id=f"label-{label.name}",
                severity=severity,
                category="Labels",
                title=f"Dynamic label: {label.name}",
                description=(
                    f'Label "{label.name}" has {label.value:,} unique values '
                    f"and matches a known dynamic pattern."
                ),
                impact_description=f"{label.value:,} unique values causing series multiplication",
                suggested_fix="Drop this label via metric_relabel_configs.",
                remediation_snippet=labeldrop_snippet(label.name),
            ))
        return findings

    def _check_scrapes(self, targets: TargetSet | None) -> list[Finding]:
        findings = []
        for target, seconds in self._scrapes.fast_targets(targets):
            interval = target.scrape_interval
            findings.append(Finding(
                id=f"scrape-{target.job}",
                severity="high" if seconds < VERY_FAST_SCRAPE_SECONDS else "moderate",
                category="Scrapes",
                title=f"Fast scrape interval: {target.job} ({interval})",
                description=(
                    f'Job "{target.job}" is scraping at {interval}, '
                    f"which may cause unnecessary load."
                ),
                impact_description="Increased CPU, memory, and TSDB write pressure",
                suggested_fix="Consider increasing scrape interval to 30s or 60s.",
            ))
        return findings

    # ── Private ───────────────────────────────────────────────────────────────

    def _dedupe(self, findings: list[Finding]) -> list[Finding]:
        """Keep the first finding for each id, preserving order."""
        seen: set[str] = set()
        unique = []
        for finding in findings:
            if finding.id in seen:
                continue
            seen.add(finding.id)
            unique.append(finding)
        return unique

    def _run(self, fn: Callable, arg, name: str) -> list[Finding]:
        """Call a rule, catching and logging any exception."""
        try:
            return fn(arg)
        except Exception as exc:
            logger.error("Recommendation rule %s failed, skipping. Error: %s", name, exc)
            return []
