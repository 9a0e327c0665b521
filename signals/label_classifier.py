"""Label risk classifier: churn and cardinality risk per label name.

Two independent tests, combined into a tier:

    dynamic pattern  high cardinality  tier
    yes              yes               critical
    yes              no                high
    no               yes               moderate
    no               no                low

The dynamic test is substring containment against DYNAMIC_LABEL_PATTERNS,
so "rapid" matches "id". That is a known limitation of the heuristic.
"""

from schemas.analysis import LabelRisk, RiskTier
from schemas.finding import SEVERITY_RANK
from schemas.snapshot import Snapshot
from signals.thresholds import DYNAMIC_LABEL_PATTERNS, LABEL_HIGH_CARDINALITY
from utils.relabel import labeldrop_snippet


def is_dynamic_label(name: str) -> bool:
    """True if the label name looks like it carries ephemeral identifiers."""
    lowered = name.lower()
    return any(pattern in lowered for pattern in DYNAMIC_LABEL_PATTERNS)


class LabelRiskClassifier:
    """Classify every label in a snapshot."""

    def classify(self, snapshot: Snapshot) -> list[LabelRisk]:
        """Return one LabelRisk per label, most dangerous tier first.

        Within a tier labels keep snapshot order (sorted() is stable).
        """
        risks = [
            self._classify_one(entry.name, entry.value)
            for entry in snapshot.values_by_label
        ]
        return sorted(risks, key=lambda r: SEVERITY_RANK[r.risk_tier])

    def _classify_one(self, name: str, unique_values: int) -> LabelRisk:
        dynamic = is_dynamic_label(name)
        high = unique_values > LABEL_HIGH_CARDINALITY

        tier: RiskTier
        if dynamic:
            tier = "critical" if high else "high"
        else:
            tier = "moderate" if high else "low"

        return LabelRisk(
            label=name,
            unique_value_count=unique_values,
            is_dynamic_pattern=dynamic,
            is_high_cardinality=high,
            risk_tier=tier,
            remediation_snippet=labeldrop_snippet(name),
        )
