"""Report schemas.

Aggregate views the runtime assembles for the display and API layers: the
overview cards, per-job scrape summaries, churn statistics, the connection
state after a fetch round, and the full AnalysisReport.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from schemas.analysis import HistogramCandidate, LabelRisk
from schemas.finding import Finding
from schemas.snapshot import NamedCount, Snapshot, TargetSet

Health = Literal["critical", "moderate", "healthy"]


class PrometheusConfig(BaseModel):
    """Connection details for one Prometheus server.

    Attributes:
        base_url: Server root, e.g. "http://localhost:9090". Trailing
            slashes are stripped before requests are built.
        username: Basic-auth user. Auth is only sent when both username
            and password are set.
        password: Basic-auth password.
    """

    model_config = ConfigDict(frozen=True)

    base_url: str
    username: str | None = None
    password: str | None = None


class JobSummary(BaseModel):
    """Scrape efficiency summary for one job."""

    model_config = ConfigDict(frozen=True)

    job: str
    target_count: int
    healthy_count: int
    interval: str
    interval_seconds: float | None = None
    avg_scrape_duration_seconds: float = 0.0
    is_fast: bool = False


class Overview(BaseModel):
    """Headline numbers for the connected server."""

    model_config = ConfigDict(frozen=True)

    total_series: int = 0
    series_severity: Health = "healthy"
    label_pairs: int = 0
    chunk_count: int = 0
    targets_up: int = 0
    targets_total: int = 0
    scrape_intervals: tuple[str, ...] = ()
    top_metrics: tuple[NamedCount, ...] = ()
    top_labels: tuple[NamedCount, ...] = ()
    top_label_value_pairs: tuple[NamedCount, ...] = ()


class ScrapeSample(BaseModel):
    """One labelled value from an instant vector query."""

    model_config = ConfigDict(frozen=True)

    labels: dict[str, str] = Field(default_factory=dict)
    value: float = 0.0


class ChurnStats(BaseModel):
    """Series churn and head memory pressure.

    Every rate is per second over a 5m window. A value is None when its
    query failed or returned nothing.
    """

    model_config = ConfigDict(frozen=True)

    head_series: float | None = None
    head_chunks: float | None = None
    chunks_created_rate: float | None = None
    series_created_rate: float | None = None
    series_removed_rate: float | None = None
    net_churn_rate: float | None = None
    series_severity: Health | None = None
    chunk_severity: Health | None = None
    net_churn_severity: Health | None = None
    top_series_added: tuple[ScrapeSample, ...] = ()
    top_post_relabel: tuple[ScrapeSample, ...] = ()


class ConnectionState(BaseModel):
    """Result of one fetch round against a server.

    Each endpoint is fetched independently. A failed endpoint leaves its
    field as None and records its message in errors under the endpoint
    name ("tsdb", "targets" or "config").
    """

    model_config = ConfigDict(frozen=True)

    config: PrometheusConfig
    snapshot: Snapshot | None = None
    targets: TargetSet | None = None
    prometheus_config: str | None = None
    errors: dict[str, str] = Field(default_factory=dict)

    @property
    def is_connected(self) -> bool:
        return self.snapshot is not None or self.targets is not None


class AnalysisReport(BaseModel):
    """Everything the display layer renders for one connection state."""

    model_config = ConfigDict(frozen=True)

    overview: Overview
    histograms: tuple[HistogramCandidate, ...] = ()
    labels: tuple[LabelRisk, ...] = ()
    findings: tuple[Finding, ...] = ()
    jobs: tuple[JobSummary, ...] = ()
    errors: dict[str, str] = Field(default_factory=dict)
