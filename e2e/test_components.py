"""Component-level tests for the collaborators around the engine.

Covers ExpansionCache (stale-response suppression), BlacklightRuntime
(independent endpoint fetches, report assembly) and the persistence helpers.
"""

import asyncio
import json

import pytest

from core.expansion import ExpansionCache, ExpansionStatus
from core.runtime import BlacklightRuntime
from integrations.prometheus import FetchError, FixtureClient, PrometheusClient
from schemas.report import PrometheusConfig
from schemas.simulation import ActionKind, SimulationAction
from schemas.snapshot import HeadStats, NamedCount, Snapshot, TargetRecord, TargetSet
from storage.history import (
    CONNECTIONS_KEY,
    ConnectionHistory,
    JsonFileStore,
    SimulationPlanStore,
)


# ── Fixtures & helpers ────────────────────────────────────────────────────────

@pytest.fixture
def snapshot():
    return Snapshot(
        head_stats=HeadStats(num_series=20800),
        series_by_metric=(
            NamedCount(name="a", value=3),
            NamedCount(name="b", value=2),
        ),
        values_by_label=(NamedCount(name="path", value=3000),),
    )


@pytest.fixture
def store(tmp_path):
    return JsonFileStore(tmp_path / "state.json")


class GatedFetcher:
    """Series fetcher whose responses are released by the test, in any order."""

    def __init__(self):
        self.gates: dict[str, asyncio.Event] = {}
        self.responses: dict[str, list] = {}
        self.failures: dict[str, Exception] = {}
        self.calls: list[str] = []

    def release(self, metric: str) -> None:
        self.gates[metric].set()

    async def __call__(self, metric: str):
        self.calls.append(metric)
        gate = self.gates.setdefault(metric, asyncio.Event())
        await gate.wait()
        gate.clear()
        if metric in self.failures:
            raise self.failures[metric]
        return self.responses.get(metric, [])


async def instant(metric: str):
    return [{"__name__": metric, "job": "api", "instance": "x"}]


class StubClient(PrometheusClient):
    """Client whose endpoints return canned results or raise FetchError."""

    def __init__(self, snapshot=None, targets=None, config="", fail=()):
        super().__init__(PrometheusConfig(base_url="http://stub:9090"))
        self._results = {"tsdb": snapshot, "targets": targets, "config": config}
        self._fail = set(fail)

    async def _result(self, name):
        if name in self._fail:
            raise FetchError(f"{name} is down", endpoint=name)
        return self._results[name]

    async def fetch_snapshot(self):
        return await self._result("tsdb")

    async def fetch_targets(self):
        return await self._result("targets")

    async def fetch_config(self):
        return await self._result("config")


# ── ExpansionCache ────────────────────────────────────────────────────────────

class TestExpansionCache:
    async def test_expand_builds_tree(self, snapshot):
        cache = ExpansionCache(snapshot)
        entry = await cache.expand("a", instant)
        assert entry.status is ExpansionStatus.READY
        assert entry.tree.metric == "a"
        assert entry.tree.total_series == 3
        assert cache.get("a") is entry

    async def test_ready_entry_not_refetched(self, snapshot):
        calls = []

        async def fetch(metric):
            calls.append(metric)
            return await instant(metric)

        cache = ExpansionCache(snapshot)
        await cache.expand("a", fetch)
        await cache.expand("a", fetch)
        assert calls == ["a"]

    async def test_late_response_does_not_cross_metrics(self, snapshot):
        fetcher = GatedFetcher()
        fetcher.responses = {
            "a": [{"__name__": "a", "pod": "p1"}],
            "b": [{"__name__": "b", "le": "1"}, {"__name__": "b", "le": "2"}],
        }
        cache = ExpansionCache(snapshot)

        task_a = asyncio.create_task(cache.expand("a", fetcher))
        task_b = asyncio.create_task(cache.expand("b", fetcher))
        await asyncio.sleep(0)

        # B resolves first, A afterwards
        fetcher.release("b")
        await task_b
        fetcher.release("a")
        await task_a

        assert [l.label for l in cache.get("a").tree.labels] == ["pod"]
        assert [l.label for l in cache.get("b").tree.labels] == ["le"]

    async def test_superseded_request_is_discarded(self, snapshot):
        fetcher = GatedFetcher()
        cache = ExpansionCache(snapshot)

        first = asyncio.create_task(cache.expand("a", fetcher))
        await asyncio.sleep(0)
        cache.collapse("a")

        fetcher.release("a")
        await first
        assert cache.get("a") is None

    async def test_collapsed_then_reexpanded_keeps_newest(self, snapshot):
        fetcher = GatedFetcher()
        fetcher.responses = {"a": [{"__name__": "a", "job": "old"}]}
        cache = ExpansionCache(snapshot)

        stale = asyncio.create_task(cache.expand("a", fetcher))
        await asyncio.sleep(0)
        cache.collapse("a")
        fresh = asyncio.create_task(cache.expand("a", instant))
        await fresh

        fetcher.release("a")
        await stale
        assert cache.get("a").tree.labels[0].sample_values == ("api",)

    async def test_fetch_failure_marks_failed(self, snapshot):
        async def fetch(metric):
            raise FetchError("series endpoint down")

        cache = ExpansionCache(snapshot)
        entry = await cache.expand("a", fetch)
        assert entry.status is ExpansionStatus.FAILED
        assert entry.tree is None
        assert "series endpoint down" in entry.error

    async def test_failed_entry_is_retried(self, snapshot):
        async def fail(metric):
            raise FetchError("boom")

        cache = ExpansionCache(snapshot)
        await cache.expand("a", fail)
        entry = await cache.expand("a", instant)
        assert entry.status is ExpansionStatus.READY

    async def test_empty_series_is_ready_not_failed(self, snapshot):
        async def empty(metric):
            return []

        entry = await ExpansionCache(snapshot).expand("a", empty)
        assert entry.status is ExpansionStatus.READY
        assert entry.tree.labels == ()

    async def test_new_snapshot_clears_entries(self, snapshot):
        cache = ExpansionCache(snapshot)
        await cache.expand("a", instant)
        cache.replace_snapshot(snapshot.model_copy())
        assert cache.expanded() == []

    async def test_same_snapshot_keeps_entries(self, snapshot):
        cache = ExpansionCache(snapshot)
        await cache.expand("a", instant)
        cache.replace_snapshot(snapshot)
        assert cache.expanded() == ["a"]

    async def test_response_for_old_snapshot_discarded(self, snapshot):
        fetcher = GatedFetcher()
        cache = ExpansionCache(snapshot)

        task = asyncio.create_task(cache.expand("a", fetcher))
        await asyncio.sleep(0)
        cache.replace_snapshot(snapshot.model_copy())

        fetcher.release("a")
        await task
        assert cache.get("a") is None

    async def test_toggle(self, snapshot):
        cache = ExpansionCache(snapshot)
        assert (await cache.toggle("a", instant)).status is ExpansionStatus.READY
        assert await cache.toggle("a", instant) is None
        assert cache.get("a") is None


# ── BlacklightRuntime ─────────────────────────────────────────────────────────

class TestBlacklightRuntime:
    async def test_connect_all_endpoints(self, snapshot):
        targets = TargetSet(targets=(TargetRecord(job="api", health="up", scrape_interval="5s"),))
        runtime = BlacklightRuntime(StubClient(snapshot, targets, "global: {}"))
        state = await runtime.connect()
        assert state.snapshot is snapshot
        assert state.targets is targets
        assert state.prometheus_config == "global: {}"
        assert state.errors == {}

    async def test_one_failure_does_not_block_others(self, snapshot):
        runtime = BlacklightRuntime(StubClient(snapshot, None, "", fail={"targets"}))
        state = await runtime.connect()
        assert state.snapshot is snapshot
        assert state.targets is None
        assert state.errors == {"targets": "targets is down"}
        assert state.is_connected

    async def test_all_failures_raise(self):
        runtime = BlacklightRuntime(StubClient(fail={"tsdb", "targets", "config"}))
        with pytest.raises(FetchError, match="tsdb is down"):
            await runtime.connect()

    async def test_report_without_targets(self, snapshot):
        runtime = BlacklightRuntime(StubClient(snapshot, fail={"targets"}))
        report = await runtime.report()
        assert report.overview.total_series == 20800
        assert report.jobs == ()
        assert [f.id for f in report.findings] == ["label-path"]
        assert "targets" in report.errors

    async def test_report_from_fixtures(self):
        report = await BlacklightRuntime(FixtureClient()).report()
        ids = {f.id for f in report.findings}
        assert "card-http_request_duration_seconds_bucket" in ids
        assert "hist-http_request_duration_seconds_bucket" in ids
        assert "label-request_id" in ids
        assert "scrape-api-gateway" in ids
        assert report.histograms[0].name == "http_request_duration_seconds_bucket"
        assert report.errors == {}


# ── Persistence ───────────────────────────────────────────────────────────────

class TestJsonFileStore:
    def test_roundtrip_and_remove(self, store):
        store.set("k", {"v": 1})
        assert store.get("k") == {"v": 1}
        store.remove("k")
        assert store.get("k") is None

    def test_missing_file_reads_empty(self, store):
        assert store.get("anything") is None

    def test_corrupt_file_reads_empty(self, store):
        store.path.write_text("{not json")
        assert store.get("k") is None

    def test_non_utf8_file_reads_empty(self, store):
        store.path.write_bytes(b'{"prometheus-blacklight-connections": ["\xff\xfe"]}')
        assert store.get(CONNECTIONS_KEY) is None
        assert ConnectionHistory(store).saved() == []
        assert SimulationPlanStore(store).load() == []

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("BLACKLIGHT_STATE_FILE", str(tmp_path / "s.json"))
        assert JsonFileStore.from_env().path == tmp_path / "s.json"


class TestConnectionHistory:
    def test_newest_first_and_unique(self, store):
        history = ConnectionHistory(store)
        history.save(PrometheusConfig(base_url="http://a:9090"))
        history.save(PrometheusConfig(base_url="http://b:9090"))
        history.save(PrometheusConfig(base_url="http://a:9090", username="admin"))
        saved = history.saved()
        assert [c.base_url for c in saved] == ["http://a:9090", "http://b:9090"]
        assert saved[0].username == "admin"

    def test_capped_at_ten(self, store):
        history = ConnectionHistory(store)
        for i in range(12):
            history.save(PrometheusConfig(base_url=f"http://prom-{i}:9090"))
        saved = history.saved()
        assert len(saved) == 10
        assert saved[0].base_url == "http://prom-11:9090"

    def test_remove(self, store):
        history = ConnectionHistory(store)
        history.save(PrometheusConfig(base_url="http://a:9090"))
        history.remove("http://a:9090")
        assert history.saved() == []

    def test_malformed_entries_read_as_empty(self, store):
        store.set(CONNECTIONS_KEY, [{"nope": True}])
        assert ConnectionHistory(store).saved() == []

    def test_persisted_as_json(self, store):
        ConnectionHistory(store).save(PrometheusConfig(base_url="http://a:9090"))
        data = json.loads(store.path.read_text())
        assert data[CONNECTIONS_KEY][0]["base_url"] == "http://a:9090"


class TestSimulationPlanStore:
    def test_save_load_in_insertion_order(self, store):
        plans = SimulationPlanStore(store)
        plans.save([
            SimulationAction(kind=ActionKind.DROP_LABEL, target="pod", insertion_order=1),
            SimulationAction(kind=ActionKind.DROP_METRIC, target="up", insertion_order=0),
        ])
        loaded = plans.load()
        assert [(a.kind, a.target) for a in loaded] == [
            (ActionKind.DROP_METRIC, "up"),
            (ActionKind.DROP_LABEL, "pod"),
        ]

    def test_clear(self, store):
        plans = SimulationPlanStore(store)
        plans.save([SimulationAction(kind=ActionKind.DROP_METRIC, target="up")])
        plans.clear()
        assert plans.load() == []
