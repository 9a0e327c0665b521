"""Prometheus HTTP API client.

Responsible for two things:
1. Fetching the TSDB status, target list, config, raw series and instant
   queries from a Prometheus server
2. Mapping the JSON responses onto the immutable schemas the analyzers read

Live mode:    set PROMETHEUS_URL in your .env and client_from_env() returns a
              client for that server.
Fixture mode: leave PROMETHEUS_URL unset and client_from_env() returns a
              FixtureClient that serves the JSON files in fixtures/.

Every endpoint failure (HTTP status, transport error, non-JSON body or a
`"status": "error"` envelope) surfaces as a single FetchError. Python has no
CORS layer, but a proxy that blocks the request looks the same as any other
network failure and is reported the same way. No retries happen here.

Parsing is lenient: malformed or missing fields degrade to zero or empty,
never to an exception.

Prometheus API reference: https://prometheus.io/docs/prometheus/latest/querying/api/
"""

import asyncio
import json
import logging
import os
import pathlib
import re
from typing import Any

import httpx

from schemas.report import ChurnStats, PrometheusConfig, ScrapeSample
from schemas.snapshot import HeadStats, NamedCount, Snapshot, TargetRecord, TargetSet
from signals.churn_analyzer import ChurnAnalyzer
from signals.scrape_analyzer import parse_interval

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15.0

FIXTURES_DIR = pathlib.Path(__file__).parents[1] / "fixtures"

# Scalar churn queries, keyed by the ChurnStats field they feed.
CHURN_QUERIES: dict[str, str] = {
    "head_series": "prometheus_tsdb_head_series",
    "head_chunks": "prometheus_tsdb_head_chunks",
    "chunks_created_rate": "rate(prometheus_tsdb_head_chunks_created_total[5m])",
    "series_created_rate": "rate(prometheus_tsdb_head_series_created_total[5m])",
    "series_removed_rate": "rate(prometheus_tsdb_head_series_removed_total[5m])",
}
TOP_SERIES_ADDED_QUERY = "topk(10, scrape_series_added)"
TOP_POST_RELABEL_QUERY = "topk(10, scrape_samples_post_metric_relabeling)"


class FetchError(Exception):
    """Raised when a Prometheus endpoint cannot be read.

    The message is what the user sees. The endpoint attribute names the
    API path that failed so callers can report failures per endpoint.
    """

    def __init__(self, message: str, endpoint: str = ""):
        super().__init__(message)
        self.endpoint = endpoint


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

def config_from_env() -> PrometheusConfig | None:
    """Build a PrometheusConfig from PROMETHEUS_* env vars, None if unset."""
    base_url = os.environ.get("PROMETHEUS_URL")
    if not base_url:
        return None
    return PrometheusConfig(
        base_url=base_url,
        username=os.environ.get("PROMETHEUS_USERNAME") or None,
        password=os.environ.get("PROMETHEUS_PASSWORD") or None,
    )


def timeout_from_env() -> float:
    raw = os.environ.get("PROMETHEUS_TIMEOUT")
    try:
        return float(raw) if raw else DEFAULT_TIMEOUT_SECONDS
    except ValueError:
        logger.warning("PROMETHEUS_TIMEOUT=%r is not a number, using %ss.", raw, DEFAULT_TIMEOUT_SECONDS)
        return DEFAULT_TIMEOUT_SECONDS


def client_from_env() -> "PrometheusClient":
    """Return a live client when PROMETHEUS_URL is set, else a FixtureClient."""
    config = config_from_env()
    if config is None:
        logger.info("PROMETHEUS_URL not set, using fixture data.")
        return FixtureClient()
    return PrometheusClient(config, timeout=timeout_from_env())


def series_selector(metric: str) -> str:
    """Series selector matching every series of one metric name."""
    return f'{{__name__="{metric}"}}'


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class PrometheusClient:
    """Async client for the read-only Prometheus endpoints the engine needs.

    A fresh httpx.AsyncClient is opened per request, so one PrometheusClient
    can serve concurrent fetches without lifecycle management.

    Attributes:
        config: Server URL and optional basic-auth credentials.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        config: PrometheusConfig,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Which server to talk to.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport. Tests pass an
                httpx.MockTransport here.
        """
        self.config = config
        self.timeout = timeout
        self._transport = transport

    async def fetch_snapshot(self) -> Snapshot:
        """GET /api/v1/status/tsdb and map it to a Snapshot."""
        data = await self._get("/api/v1/status/tsdb")
        snapshot = parse_tsdb_status(data)
        logger.info(
            "TSDB status fetched: %d series, %d metrics, %d labels.",
            snapshot.total_series,
            len(snapshot.series_by_metric),
            len(snapshot.values_by_label),
        )
        return snapshot

    async def fetch_targets(self) -> TargetSet:
        """GET /api/v1/targets and map the active targets to a TargetSet."""
        data = await self._get("/api/v1/targets")
        targets = parse_targets(data)
        logger.info("Targets fetched: %d active, %d dropped.", len(targets), targets.dropped_count)
        return targets

    async def fetch_config(self) -> str:
        """GET /api/v1/status/config and return the loaded YAML."""
        data = await self._get("/api/v1/status/config")
        return data.get("yaml", "") if isinstance(data, dict) else ""

    async def fetch_raw_series(self, selector: str) -> list[dict[str, str]]:
        """GET /api/v1/series for one selector.

        Args:
            selector: A series selector, usually series_selector(metric).

        Returns:
            One label mapping per matching series.
        """
        data = await self._get("/api/v1/series", params={"match[]": selector})
        return parse_series(data)

    async def query_instant(self, query: str) -> list[ScrapeSample]:
        """GET /api/v1/query and return the instant vector's samples."""
        data = await self._get("/api/v1/query", params={"query": query})
        return parse_vector(data)

    async def fetch_churn(self) -> ChurnStats:
        """Run the churn queries concurrently and analyze the results.

        A failed query contributes None (scalars) or an empty list (topk)
        instead of failing the whole fetch.
        """
        scalar_keys = list(CHURN_QUERIES)
        results = await asyncio.gather(
            *(self._safe_query(CHURN_QUERIES[key]) for key in scalar_keys),
            self._safe_query(TOP_SERIES_ADDED_QUERY),
            self._safe_query(TOP_POST_RELABEL_QUERY),
        )
        scalars = {
            key: (samples[0].value if samples else None)
            for key, samples in zip(scalar_keys, results)
        }
        return ChurnAnalyzer().analyze(
            scalars,
            top_series_added=results[-2],
            top_post_relabel=results[-1],
        )

    async def health_check(self) -> dict[str, bool]:
        """Probe the three status endpoints; True for each that answered."""
        results = await asyncio.gather(
            self.fetch_snapshot(),
            self.fetch_targets(),
            self.fetch_config(),
            return_exceptions=True,
        )
        return {
            name: not isinstance(result, Exception)
            for name, result in zip(("tsdb", "targets", "config"), results)
        }

    # ── Private ───────────────────────────────────────────────────────────────

    def _client(self) -> httpx.AsyncClient:
        auth = None
        if self.config.username and self.config.password:
            auth = httpx.BasicAuth(self.config.username, self.config.password)
        return httpx.AsyncClient(
            base_url=self.config.base_url.rstrip("/"),
            auth=auth,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def _get(self, path: str, params: dict | None = None) -> Any:
        """GET an API path and unwrap the {"status", "data"} envelope.

        Raises:
            FetchError: For any transport, HTTP or API-level failure.
        """
        try:
            async with self._client() as client:
                resp = await client.get(path, params=params)
                resp.raise_for_status()
                body = resp.json()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            reason = exc.response.reason_phrase
            logger.warning("Prometheus %s returned %d.", path, status)
            raise FetchError(f"Prometheus API error: {status} {reason}", endpoint=path) from exc
        except httpx.RequestError as exc:
            logger.warning("Prometheus %s unreachable: %s", path, exc)
            raise FetchError(
                f"Network error contacting {self.config.base_url}: {exc}", endpoint=path
            ) from exc
        except ValueError as exc:
            raise FetchError(f"Prometheus {path} returned a non-JSON response", endpoint=path) from exc

        return _unwrap(body, path)

    async def _safe_query(self, query: str) -> list[ScrapeSample]:
        try:
            return await self.query_instant(query)
        except FetchError as exc:
            logger.warning("Query %r failed: %s", query, exc)
            return []


class FixtureClient(PrometheusClient):
    """PrometheusClient that serves responses from fixtures/ instead of HTTP.

    Used for demos and for the live report when no server is configured.
    Fixture files hold the same {"status", "data"} envelopes the real API
    returns, so parsing runs exactly as in live mode.
    """

    _FILES = {
        "/api/v1/status/tsdb": "tsdb_status.json",
        "/api/v1/targets": "targets.json",
        "/api/v1/status/config": "config.json",
    }

    def __init__(self, fixtures_dir: pathlib.Path = FIXTURES_DIR) -> None:
        super().__init__(PrometheusConfig(base_url="fixture://local"))
        self._dir = fixtures_dir

    async def _get(self, path: str, params: dict | None = None) -> Any:
        if path == "/api/v1/series":
            metric = _selector_metric((params or {}).get("match[]", ""))
            by_metric = self._load("series.json", path)
            if not isinstance(by_metric, dict):
                raise FetchError("series.json must map metric names to series", endpoint=path)
            return by_metric.get(metric, [])
        if path == "/api/v1/query":
            return {"resultType": "vector", "result": []}
        if path not in self._FILES:
            raise FetchError(f"No fixture for {path}", endpoint=path)
        return _unwrap(self._load(self._FILES[path], path), path)

    def _load(self, filename: str, path: str) -> Any:
        fixture = self._dir / filename
        if not fixture.exists():
            raise FetchError(f"Fixture {fixture} not found", endpoint=path)
        with open(fixture) as f:
            return json.load(f)


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

def parse_tsdb_status(data: Any) -> Snapshot:
    """Map the /api/v1/status/tsdb payload onto a Snapshot.

    Unknown shapes degrade to an empty Snapshot. Duplicate names keep their
    first occurrence; negative or non-numeric counts read as 0.
    """
    if not isinstance(data, dict):
        return Snapshot()

    head = data.get("headStats")
    head = head if isinstance(head, dict) else {}

    return Snapshot(
        head_stats=HeadStats(
            num_series=_count(head.get("numSeries")),
            num_label_pairs=_count(head.get("numLabelPairs")),
            chunk_count=_count(head.get("chunkCount")),
            min_time=_int(head.get("minTime")),
            max_time=_int(head.get("maxTime")),
        ),
        series_by_metric=_named_counts(data.get("seriesCountByMetricName")),
        values_by_label=_named_counts(data.get("labelValueCountByLabelName")),
        series_by_label_value_pair=_named_counts(data.get("seriesCountByLabelValuePair")),
        memory_by_label=_named_counts(data.get("memoryInBytesByLabelName")),
    )


def parse_targets(data: Any) -> TargetSet:
    """Map the /api/v1/targets payload onto a TargetSet of active targets."""
    if not isinstance(data, dict):
        return TargetSet()

    active = data.get("activeTargets")
    dropped = data.get("droppedTargets")

    records = []
    for raw in active if isinstance(active, list) else []:
        if not isinstance(raw, dict):
            continue
        labels = raw.get("labels") if isinstance(raw.get("labels"), dict) else {}
        interval = str(raw.get("scrapeInterval") or "")
        health = raw.get("health")

        records.append(TargetRecord(
            job=str(labels.get("job") or raw.get("scrapePool") or "unknown"),
            instance=str(labels.get("instance") or raw.get("scrapeUrl") or ""),
            health=health if health in ("up", "down") else "unknown",
            scrape_interval=interval,
            scrape_interval_seconds=parse_interval(interval),
            last_scrape_duration_seconds=_float(raw.get("lastScrapeDuration")),
            last_error=str(raw.get("lastError") or ""),
        ))

    return TargetSet(
        targets=tuple(records),
        dropped_count=len(dropped) if isinstance(dropped, list) else 0,
    )


def parse_series(data: Any) -> list[dict[str, str]]:
    """Keep only well-formed label mappings from a /api/v1/series payload."""
    if not isinstance(data, list):
        return []
    return [
        {k: v for k, v in item.items() if isinstance(k, str) and isinstance(v, str)}
        for item in data
        if isinstance(item, dict)
    ]


def parse_vector(data: Any) -> list[ScrapeSample]:
    """Map an instant-query result to samples. Non-vector results are empty."""
    if not isinstance(data, dict) or not isinstance(data.get("result"), list):
        return []

    samples = []
    for item in data["result"]:
        if not isinstance(item, dict):
            continue
        value = item.get("value")
        if not isinstance(value, list) or len(value) != 2:
            continue
        try:
            number = float(value[1])
        except (TypeError, ValueError):
            continue
        if number != number:  # NaN
            continue
        metric = item.get("metric") if isinstance(item.get("metric"), dict) else {}
        samples.append(ScrapeSample(labels={str(k): str(v) for k, v in metric.items()}, value=number))
    return samples


def _unwrap(body: Any, path: str) -> Any:
    if not isinstance(body, dict):
        raise FetchError(f"Prometheus {path} returned an unexpected payload", endpoint=path)
    if body.get("status") == "error":
        raise FetchError(body.get("error") or "Unknown Prometheus error", endpoint=path)
    return body.get("data")


def _named_counts(raw: Any) -> tuple[NamedCount, ...]:
    if not isinstance(raw, list):
        return ()
    entries: dict[str, NamedCount] = {}
    for item in raw:
        if not isinstance(item, dict) or not isinstance(item.get("name"), str):
            continue
        name = item["name"]
        if name not in entries:
            entries[name] = NamedCount(name=name, value=_count(item.get("value")))
    return tuple(entries.values())


def _int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return 0


def _count(value: Any) -> int:
    return max(0, _int(value))


def _float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _selector_metric(selector: str) -> str:
    match = re.search(r'__name__="([^"]*)"', selector)
    return match.group(1) if match else ""
