"""Multiplier tree builder: how each label multiplies a metric's series.

Input is the raw series list for one metric, fetched on demand from
/api/v1/series. Output is one LabelBreakdown per label, ranked by how many
distinct values the label takes. The product of those counts is the series
count the metric would reach if every label were independent.

No I/O here. If the series fetch fails the builder is never called; the
caller (core/expansion.py) records that as a failed expansion, which is a
different outcome from an empty tree.
"""

import logging
from collections.abc import Iterable
from math import prod

from schemas.analysis import LabelBreakdown, MetricTree, MultiplierLevel
from schemas.snapshot import RawSeries
from signals.thresholds import (
    MAX_SAFE_INTEGER,
    MAX_SAMPLE_VALUES,
    MULTIPLIER_EXPLOSION,
    MULTIPLIER_HIGH,
)
from utils.numbers import round_half_up

logger = logging.getLogger(__name__)

METRIC_NAME_LABEL = "__name__"


class MultiplierTreeBuilder:
    """Turn a metric's raw series into a ranked label breakdown."""

    def build(self, raw_series: Iterable[RawSeries]) -> list[LabelBreakdown]:
        """Count distinct values per label across every series.

        Args:
            raw_series: Label sets, one per series. `__name__` is skipped.

        Returns:
            Breakdowns sorted by unique_value_count descending. Ties keep
            the order in which the label key was first seen. Empty when
            raw_series is empty.
        """
        # dict-as-ordered-set keeps first-seen order for keys and values
        values_by_label: dict[str, dict[str, None]] = {}

        for series in raw_series:
            for key, value in series.items():
                if key == METRIC_NAME_LABEL:
                    continue
                values_by_label.setdefault(key, {})[value] = None

        breakdowns = [
            LabelBreakdown(
                label=label,
                unique_value_count=len(values),
                sample_values=tuple(list(values)[:MAX_SAMPLE_VALUES]),
                multiplier_level=_multiplier_level(len(values)),
            )
            for label, values in values_by_label.items()
        ]
        breakdowns.sort(key=lambda b: b.unique_value_count, reverse=True)
        return breakdowns

    def build_tree(
        self,
        metric: str,
        total_series: int,
        raw_series: Iterable[RawSeries],
    ) -> MetricTree:
        """Build the full tree for one expanded metric.

        Args:
            metric: Metric name being expanded.
            total_series: The metric's series count from the Snapshot.
            raw_series: Result of the on-demand series fetch.

        Returns:
            MetricTree whose product is the exact integer fold of every
            label's unique count (1 for no labels).
        """
        labels = self.build(raw_series)
        product = prod(b.unique_value_count for b in labels)

        logger.debug(
            "Multiplier tree for %s: %d labels, product %d.",
            metric, len(labels), product,
        )

        return MetricTree(
            metric=metric,
            total_series=total_series,
            labels=tuple(labels),
            product=product,
            overflow_risk=product > MAX_SAFE_INTEGER,
            density_percent=round_half_up(total_series / product * 100),
        )


def _multiplier_level(count: int) -> MultiplierLevel:
    if count > MULTIPLIER_EXPLOSION:
        return "explosion"
    if count > MULTIPLIER_HIGH:
        return "high"
    return "normal"
