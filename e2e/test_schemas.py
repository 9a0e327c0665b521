"""Schema validation tests.

These tests verify that the Pydantic models accept valid data, reject invalid
data, enforce field constraints and stay immutable. No server required.
"""

import pytest
from pydantic import ValidationError

from schemas.analysis import LabelBreakdown, MetricTree
from schemas.finding import Finding
from schemas.report import ConnectionState, PrometheusConfig
from schemas.simulation import ActionKind, SimulationAction, SimulationImpact
from schemas.snapshot import HeadStats, NamedCount, Snapshot, TargetRecord, TargetSet


# ── Helpers ──────────────────────────────────────────────────────────────────

def make_snapshot(**overrides) -> Snapshot:
    defaults = dict(
        head_stats=HeadStats(num_series=20800, num_label_pairs=3100),
        series_by_metric=(
            NamedCount(name="http_requests_total", value=12000),
            NamedCount(name="http_requests_total_bucket", value=8000),
        ),
        values_by_label=(
            NamedCount(name="status", value=5),
            NamedCount(name="path", value=3000),
        ),
    )
    return Snapshot(**{**defaults, **overrides})


def make_finding(**overrides) -> Finding:
    defaults = dict(
        id="card-http_requests_total",
        severity="high",
        category="Cardinality",
        title="High cardinality: http_requests_total",
        description="This metric has 12,000 series.",
        impact_description="12,000 series",
        suggested_fix="Drop it.",
    )
    return Finding(**{**defaults, **overrides})


# ── Snapshot ──────────────────────────────────────────────────────────────────

class TestSnapshot:
    def test_total_series_reads_head_stats(self):
        assert make_snapshot().total_series == 20800

    def test_metric_lookup(self):
        snap = make_snapshot()
        assert snap.metric_series("http_requests_total") == 12000
        assert snap.has_metric("http_requests_total_bucket")

    def test_missing_names_read_as_zero(self):
        snap = make_snapshot()
        assert snap.metric_series("nope") == 0
        assert snap.label_values("nope") == 0
        assert not snap.has_metric("nope")

    def test_duplicate_metric_names_rejected(self):
        with pytest.raises(ValidationError):
            make_snapshot(series_by_metric=(
                NamedCount(name="up", value=1),
                NamedCount(name="up", value=2),
            ))

    def test_duplicate_label_names_rejected(self):
        with pytest.raises(ValidationError):
            make_snapshot(values_by_label=(
                NamedCount(name="job", value=1),
                NamedCount(name="job", value=2),
            ))

    def test_negative_counts_rejected(self):
        with pytest.raises(ValidationError):
            NamedCount(name="up", value=-1)
        with pytest.raises(ValidationError):
            HeadStats(num_series=-5)

    def test_empty_snapshot_defaults(self):
        snap = Snapshot()
        assert snap.total_series == 0
        assert snap.series_by_metric == ()

    def test_snapshot_is_frozen(self):
        snap = make_snapshot()
        with pytest.raises(ValidationError):
            snap.head_stats = HeadStats()


# ── Targets ───────────────────────────────────────────────────────────────────

class TestTargetSet:
    def test_len_and_healthy_count(self):
        targets = TargetSet(targets=(
            TargetRecord(job="node", health="up"),
            TargetRecord(job="node", health="down"),
            TargetRecord(job="api", health="up"),
        ))
        assert len(targets) == 3
        assert targets.healthy_count == 2

    def test_invalid_health_rejected(self):
        with pytest.raises(ValidationError):
            TargetRecord(job="node", health="sideways")


# ── Analysis outputs ──────────────────────────────────────────────────────────

class TestAnalysisSchemas:
    def test_sample_values_capped_at_five(self):
        with pytest.raises(ValidationError):
            LabelBreakdown(
                label="path",
                unique_value_count=6,
                sample_values=("a", "b", "c", "d", "e", "f"),
                multiplier_level="normal",
            )

    def test_product_must_be_positive(self):
        with pytest.raises(ValidationError):
            MetricTree(metric="up", total_series=1, product=0)

    def test_finding_rank_follows_severity(self):
        assert make_finding(severity="critical").rank < make_finding(severity="low").rank

    def test_finding_rejects_unknown_severity(self):
        with pytest.raises(ValidationError):
            make_finding(severity="healthy")

    def test_scrape_finding_has_no_snippet_by_default(self):
        assert make_finding(id="scrape-api").remediation_snippet is None


# ── Simulation ────────────────────────────────────────────────────────────────

class TestSimulationSchemas:
    def test_action_kind_serializes_as_plain_string(self):
        action = SimulationAction(kind=ActionKind.DROP_LABEL, target="pod")
        assert action.model_dump(mode="json")["kind"] == "drop_label"

    def test_action_kind_parses_from_string(self):
        action = SimulationAction.model_validate({"kind": "drop_bucket", "target": "http_duration"})
        assert action.kind is ActionKind.DROP_BUCKET

    def test_unknown_action_kind_rejected(self):
        with pytest.raises(ValidationError):
            SimulationAction(kind="delete_everything", target="x")

    def test_percent_reduction_capped_at_99(self):
        with pytest.raises(ValidationError):
            SimulationImpact(percent_reduction=100)


# ── Connection state ──────────────────────────────────────────────────────────

class TestConnectionState:
    def test_connected_with_snapshot_only(self):
        state = ConnectionState(
            config=PrometheusConfig(base_url="http://prom:9090"),
            snapshot=make_snapshot(),
            errors={"targets": "boom"},
        )
        assert state.is_connected

    def test_not_connected_without_snapshot_or_targets(self):
        state = ConnectionState(config=PrometheusConfig(base_url="http://prom:9090"))
        assert not state.is_connected
