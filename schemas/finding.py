"""Finding schema.

Findings are the prioritized, human-readable output of the recommendation
engine. Like the analyzer outputs they are derived facts: the engine produces
them from a Snapshot and a TargetSet and nothing downstream modifies them.
"""

from pydantic import BaseModel, ConfigDict

from schemas.analysis import Severity

SEVERITY_RANK: dict[str, int] = {"critical": 0, "high": 1, "moderate": 2, "low": 3}


class Finding(BaseModel):
    """A single prioritized recommendation.

    Attributes:
        id: Stable identifier built from the rule prefix and the subject
            name (e.g. "card-http_requests_total", "scrape-node"). The same
            snapshot always yields the same ids, so UI state keyed on them
            survives a re-run. Also the deduplication key.
        severity: "critical", "high", "moderate" or "low".
        category: Rule family: "Cardinality", "Histograms", "Labels" or
            "Scrapes". Used by the UI to filter.
        title: One-line summary naming the subject.
        description: What was observed, with the measured value.
        impact_description: What it costs.
        suggested_fix: What to change.
        remediation_snippet: Copy-pasteable relabel config, or None when the
            fix is not a relabel rule (scrape intervals).
    """

    model_config = ConfigDict(frozen=True)

    id: str
    severity: Severity
    category: str
    title: str
    description: str
    impact_description: str
    suggested_fix: str
    remediation_snippet: str | None = None

    @property
    def rank(self) -> int:
        return SEVERITY_RANK[self.severity]
