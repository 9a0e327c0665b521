"""Analysis result schemas.

Derived, ephemeral outputs of the analyzers in signals/. Each one is a pure
function of a Snapshot (or of a raw-series fetch for MetricTree) and is
recomputed whenever its input changes. None of them has a lifecycle of its
own.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Severity = Literal["critical", "high", "moderate", "low"]
RiskTier = Literal["critical", "high", "moderate", "low"]
MultiplierLevel = Literal["explosion", "high", "normal"]


class LabelBreakdown(BaseModel):
    """How much one label multiplies a metric's series count.

    Attributes:
        label: Label name.
        unique_value_count: Exact number of distinct values seen for the
            label across the metric's series.
        sample_values: Up to five of those values, in first-seen order.
            A display sample only, never used for accounting.
        multiplier_level: Coarse badge for the UI ("explosion" > 100,
            "high" > 20, otherwise "normal").
    """

    model_config = ConfigDict(frozen=True)

    label: str
    unique_value_count: int = Field(ge=0)
    sample_values: tuple[str, ...] = Field(default=(), max_length=5)
    multiplier_level: MultiplierLevel = "normal"


class MetricTree(BaseModel):
    """Label breakdown for one expanded metric.

    Attributes:
        metric: The metric name that was expanded.
        total_series: Series count for the metric from the Snapshot.
        labels: Breakdowns sorted by unique_value_count descending.
        product: Product of every label's unique_value_count, seeded at 1.
            This is the theoretical maximum series count if labels were
            independent. It is often far above total_series.
        overflow_risk: True when product exceeds 2**53 - 1. Python holds the
            exact value, but float-based consumers (JSON clients) cannot.
        density_percent: round(100 * total_series / product).
    """

    model_config = ConfigDict(frozen=True)

    metric: str
    total_series: int = Field(ge=0)
    labels: tuple[LabelBreakdown, ...] = ()
    product: int = Field(default=1, ge=1)
    overflow_risk: bool = False
    density_percent: int = 0


class HistogramCandidate(BaseModel):
    """Cost estimate for one classic bucketed histogram family.

    estimated_buckets_per_series is an estimate: it assumes every label
    combination has the same number of bucket boundaries.

    Attributes:
        name: The `_bucket` metric name.
        base_name: The family name with `_bucket` stripped.
        bucket_series_count: Series count of the `_bucket` metric.
        sum_series_count: Series count of `<base>_sum`, 0 when absent.
        count_series_count: Series count of `<base>_count`, 0 when absent.
        estimated_buckets_per_series: round(bucket / sum), 0 without a sum.
        savings_percent: Share of the family's series that dropping the
            buckets would remove.
        risk_score: 0-100 heuristic, higher is worse.
        severity: "critical" above 70, "moderate" above 40, else "low".
        remediation_snippet: Relabel rule that drops the bucket metric.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    base_name: str
    bucket_series_count: int
    sum_series_count: int = 0
    count_series_count: int = 0
    estimated_buckets_per_series: int = 0
    savings_percent: int = 0
    risk_score: int = 0
    severity: Severity = "low"
    remediation_snippet: str = ""


class LabelRisk(BaseModel):
    """Churn/cardinality risk classification for one label name."""

    model_config = ConfigDict(frozen=True)

    label: str
    unique_value_count: int
    is_dynamic_pattern: bool
    is_high_cardinality: bool
    risk_tier: RiskTier
    remediation_snippet: str = ""
