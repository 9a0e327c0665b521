"""Tests for the Prometheus integration layer.

Covers response parsing, error mapping, basic auth and the fixture client.
HTTP goes through httpx.MockTransport: no network calls.
"""

import base64
import json

import httpx
import pytest

from integrations.prometheus import (
    FetchError,
    FixtureClient,
    PrometheusClient,
    client_from_env,
    config_from_env,
    parse_targets,
    parse_tsdb_status,
    parse_vector,
    series_selector,
    timeout_from_env,
)
from schemas.report import PrometheusConfig


# ── Helpers ───────────────────────────────────────────────────────────────────

TSDB_DATA = {
    "headStats": {"numSeries": 20800, "numLabelPairs": 3100, "chunkCount": 41000,
                  "minTime": 1, "maxTime": 2},
    "seriesCountByMetricName": [
        {"name": "http_requests_total", "value": 12000},
        {"name": "http_requests_total_bucket", "value": 8000},
    ],
    "labelValueCountByLabelName": [{"name": "path", "value": 3000}],
    "seriesCountByLabelValuePair": [{"name": "job=api", "value": 20000}],
    "memoryInBytesByLabelName": [{"name": "path", "value": 123456}],
}

TARGETS_DATA = {
    "activeTargets": [
        {
            "labels": {"job": "api", "instance": "api-0:8080"},
            "scrapePool": "api",
            "scrapeUrl": "http://api-0:8080/metrics",
            "health": "up",
            "lastError": "",
            "lastScrapeDuration": 0.25,
            "scrapeInterval": "5s",
        },
    ],
    "droppedTargets": [{}, {}],
}


def ok(data) -> httpx.Response:
    return httpx.Response(200, json={"status": "success", "data": data})


def make_client(handler, **config) -> PrometheusClient:
    config = {"base_url": "http://prom:9090/", **config}
    return PrometheusClient(PrometheusConfig(**config), transport=httpx.MockTransport(handler))


def route(responses: dict[str, httpx.Response]):
    """Handler that answers by request path and records each request."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return responses.get(request.url.path, httpx.Response(404))

    handler.seen = seen
    return handler


# ── Parsing ───────────────────────────────────────────────────────────────────

class TestParseTsdbStatus:
    def test_full_payload(self):
        snap = parse_tsdb_status(TSDB_DATA)
        assert snap.total_series == 20800
        assert snap.head_stats.chunk_count == 41000
        assert snap.metric_series("http_requests_total_bucket") == 8000
        assert snap.label_values("path") == 3000
        assert snap.series_by_label_value_pair[0].name == "job=api"

    def test_garbage_degrades_to_empty(self):
        assert parse_tsdb_status(None).total_series == 0
        assert parse_tsdb_status({"headStats": "nope"}).total_series == 0

    def test_bad_entries_skipped_and_clamped(self):
        snap = parse_tsdb_status({
            "seriesCountByMetricName": [
                {"name": "a", "value": -3},
                {"value": 10},
                "junk",
                {"name": "b", "value": "not a number"},
                {"name": "a", "value": 99},
            ],
        })
        assert [(m.name, m.value) for m in snap.series_by_metric] == [("a", 0), ("b", 0)]


class TestParseTargets:
    def test_active_targets(self):
        targets = parse_targets(TARGETS_DATA)
        (t,) = targets.targets
        assert t.job == "api"
        assert t.health == "up"
        assert t.scrape_interval_seconds == 5.0
        assert t.last_scrape_duration_seconds == 0.25
        assert targets.dropped_count == 2

    def test_missing_labels_fall_back_to_pool_and_url(self):
        targets = parse_targets({"activeTargets": [
            {"scrapePool": "node", "scrapeUrl": "http://n:9100/metrics", "health": "weird"},
        ]})
        (t,) = targets.targets
        assert t.job == "node"
        assert t.instance == "http://n:9100/metrics"
        assert t.health == "unknown"
        assert t.scrape_interval_seconds is None

    def test_garbage_degrades_to_empty(self):
        assert len(parse_targets([])) == 0


class TestParseVector:
    def test_samples(self):
        samples = parse_vector({"resultType": "vector", "result": [
            {"metric": {"job": "api"}, "value": [1700000000, "42.5"]},
            {"metric": {}, "value": [1700000000, "NaN"]},
            {"metric": {}, "value": "bad"},
        ]})
        assert [(s.labels, s.value) for s in samples] == [({"job": "api"}, 42.5)]

    def test_non_vector_is_empty(self):
        assert parse_vector({"resultType": "scalar", "result": [1, "2"]}) == []


# ── Client ────────────────────────────────────────────────────────────────────

class TestPrometheusClient:
    async def test_fetch_snapshot(self):
        handler = route({"/api/v1/status/tsdb": ok(TSDB_DATA)})
        snap = await make_client(handler).fetch_snapshot()
        assert snap.total_series == 20800
        assert str(handler.seen[0].url) == "http://prom:9090/api/v1/status/tsdb"

    async def test_fetch_targets(self):
        handler = route({"/api/v1/targets": ok(TARGETS_DATA)})
        targets = await make_client(handler).fetch_targets()
        assert len(targets) == 1

    async def test_fetch_config(self):
        handler = route({"/api/v1/status/config": ok({"yaml": "global: {}\n"})})
        assert await make_client(handler).fetch_config() == "global: {}\n"

    async def test_fetch_raw_series_sends_selector(self):
        handler = route({"/api/v1/series": ok([
            {"__name__": "up", "job": "api"},
            {"__name__": "up", "job": 7},
        ])})
        series = await make_client(handler).fetch_raw_series(series_selector("up"))
        assert series == [{"__name__": "up", "job": "api"}, {"__name__": "up"}]
        assert handler.seen[0].url.params["match[]"] == '{__name__="up"}'

    async def test_basic_auth_sent_when_both_set(self):
        handler = route({"/api/v1/status/config": ok({"yaml": ""})})
        await make_client(handler, username="admin", password="s3cret").fetch_config()
        expected = "Basic " + base64.b64encode(b"admin:s3cret").decode()
        assert handler.seen[0].headers["authorization"] == expected

    async def test_no_auth_with_username_only(self):
        handler = route({"/api/v1/status/config": ok({"yaml": ""})})
        await make_client(handler, username="admin").fetch_config()
        assert "authorization" not in handler.seen[0].headers

    async def test_http_error_becomes_fetch_error(self):
        handler = route({"/api/v1/status/tsdb": httpx.Response(503)})
        with pytest.raises(FetchError, match="Prometheus API error: 503") as exc:
            await make_client(handler).fetch_snapshot()
        assert exc.value.endpoint == "/api/v1/status/tsdb"

    async def test_network_error_becomes_fetch_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(FetchError, match="Network error contacting"):
            await make_client(handler).fetch_targets()

    async def test_non_json_body_becomes_fetch_error(self):
        handler = route({"/api/v1/targets": httpx.Response(200, text="<html>login</html>")})
        with pytest.raises(FetchError, match="non-JSON"):
            await make_client(handler).fetch_targets()

    async def test_error_envelope_becomes_fetch_error(self):
        handler = route({"/api/v1/query": httpx.Response(
            200, json={"status": "error", "errorType": "bad_data", "error": "parse error"},
        )})
        with pytest.raises(FetchError, match="parse error"):
            await make_client(handler).query_instant("up{")

    async def test_fetch_churn_tolerates_failed_queries(self):
        def handler(request: httpx.Request) -> httpx.Response:
            query = request.url.params["query"]
            if query == "prometheus_tsdb_head_series":
                return ok({"resultType": "vector", "result": [{"metric": {}, "value": [0, "2500000"]}]})
            if query.startswith("topk(10, scrape_series_added"):
                return ok({"resultType": "vector", "result": [
                    {"metric": {"job": "api", "instance": "api-0"}, "value": [0, "900"]},
                ]})
            return httpx.Response(500)

        churn = await make_client(handler).fetch_churn()
        assert churn.head_series == 2_500_000
        assert churn.series_severity == "critical"
        assert churn.head_chunks is None
        assert churn.net_churn_rate is None
        assert churn.top_series_added[0].labels["job"] == "api"
        assert churn.top_post_relabel == ()

    async def test_health_check(self):
        handler = route({
            "/api/v1/status/tsdb": ok(TSDB_DATA),
            "/api/v1/targets": httpx.Response(500),
            "/api/v1/status/config": ok({"yaml": ""}),
        })
        assert await make_client(handler).health_check() == {
            "tsdb": True, "targets": False, "config": True,
        }


# ── Fixture client ────────────────────────────────────────────────────────────

class TestFixtureClient:
    async def test_bundled_fixtures_parse(self):
        client = FixtureClient()
        snap = await client.fetch_snapshot()
        targets = await client.fetch_targets()
        assert snap.total_series > 0
        assert len(targets) > 0
        assert "scrape_configs" in await client.fetch_config()

    async def test_series_by_metric(self):
        series = await FixtureClient().fetch_raw_series(series_selector("http_requests_total"))
        assert series and all(s["__name__"] == "http_requests_total" for s in series)

    async def test_unknown_metric_has_no_series(self):
        assert await FixtureClient().fetch_raw_series(series_selector("nope")) == []

    async def test_queries_are_empty(self):
        churn = await FixtureClient().fetch_churn()
        assert churn.head_series is None

    async def test_missing_fixture_raises_fetch_error(self, tmp_path):
        with pytest.raises(FetchError):
            await FixtureClient(tmp_path).fetch_snapshot()

    async def test_error_envelope_in_fixture(self, tmp_path):
        (tmp_path / "targets.json").write_text(json.dumps({"status": "error", "error": "nope"}))
        with pytest.raises(FetchError, match="nope"):
            await FixtureClient(tmp_path).fetch_targets()

    async def test_series_fixture_must_be_a_mapping(self, tmp_path):
        (tmp_path / "series.json").write_text(json.dumps([{"__name__": "up"}]))
        with pytest.raises(FetchError, match="series.json"):
            await FixtureClient(tmp_path).fetch_raw_series(series_selector("up"))


# ── Configuration ─────────────────────────────────────────────────────────────

class TestConfigFromEnv:
    def test_unset_url_uses_fixtures(self, monkeypatch):
        monkeypatch.delenv("PROMETHEUS_URL", raising=False)
        assert config_from_env() is None
        assert isinstance(client_from_env(), FixtureClient)

    def test_live_client_from_env(self, monkeypatch):
        monkeypatch.setenv("PROMETHEUS_URL", "http://prom:9090")
        monkeypatch.setenv("PROMETHEUS_USERNAME", "admin")
        monkeypatch.setenv("PROMETHEUS_PASSWORD", "pw")
        monkeypatch.setenv("PROMETHEUS_TIMEOUT", "3")
        client = client_from_env()
        assert not isinstance(client, FixtureClient)
        assert client.config.username == "admin"
        assert client.timeout == 3.0

    def test_bad_timeout_falls_back(self, monkeypatch):
        monkeypatch.setenv("PROMETHEUS_TIMEOUT", "soon")
        assert timeout_from_env() == 15.0
