"""Blacklight runtime: fetch orchestration and report assembly.

BlacklightRuntime is the single entry point the front ends use. It has two
halves with very different properties:

    connect()    async. Fetches the TSDB status, the target list and the
                 loaded config concurrently. Each endpoint succeeds or fails
                 on its own; failures are recorded per endpoint and never
                 block the others.
    analyze()    sync and pure. Runs every analyzer over the fetched state
                 and returns one AnalysisReport.

The runtime holds no state between calls. Every connect() returns a fresh
ConnectionState that supersedes the previous one wholesale.
"""

import asyncio
import logging

from aggregation.recommender import RecommendationEngine
from integrations.prometheus import FetchError, PrometheusClient
from schemas.report import AnalysisReport, ConnectionState
from signals.histogram_scorer import HistogramRiskScorer
from signals.label_classifier import LabelRiskClassifier
from signals.overview_analyzer import OverviewAnalyzer
from signals.scrape_analyzer import ScrapeAnalyzer

logger = logging.getLogger(__name__)


class BlacklightRuntime:
    """Fetches server state and turns it into an AnalysisReport.

    Attributes:
        _client: Source of snapshots, targets and config.
        _histograms, _labels, _recommender, _scrapes, _overview: The
            analyzers, created once and reused. All are stateless.
    """

    def __init__(self, client: PrometheusClient) -> None:
        self._client = client
        self._histograms = HistogramRiskScorer()
        self._labels = LabelRiskClassifier()
        self._recommender = RecommendationEngine()
        self._scrapes = ScrapeAnalyzer()
        self._overview = OverviewAnalyzer()

    @property
    def client(self) -> PrometheusClient:
        return self._client

    async def connect(self) -> ConnectionState:
        """Fetch every endpoint once and collect the results.

        Returns:
            ConnectionState. A failed endpoint leaves its field None and
            its message under errors["tsdb" | "targets" | "config"].

        Raises:
            FetchError: Only if every endpoint failed, with the TSDB
                endpoint's message. Nothing useful can be shown then.
        """
        snapshot, targets, config = await asyncio.gather(
            self._client.fetch_snapshot(),
            self._client.fetch_targets(),
            self._client.fetch_config(),
            return_exceptions=True,
        )

        errors: dict[str, str] = {}
        for name, result in (("tsdb", snapshot), ("targets", targets), ("config", config)):
            if isinstance(result, FetchError):
                logger.warning("Endpoint %s failed: %s", name, result)
                errors[name] = str(result)
            elif isinstance(result, BaseException):
                raise result

        if len(errors) == 3:
            raise FetchError(errors["tsdb"], endpoint="/api/v1/status/tsdb")

        state = ConnectionState(
            config=self._client.config,
            snapshot=None if "tsdb" in errors else snapshot,
            targets=None if "targets" in errors else targets,
            prometheus_config=None if "config" in errors else config,
            errors=errors,
        )

        logger.info(
            "Connected to %s (%d endpoint failures).",
            self._client.config.base_url,
            len(errors),
        )
        return state

    def analyze(self, state: ConnectionState) -> AnalysisReport:
        """Run every analyzer over a connection state.

        Missing snapshot or targets produce empty sections, not errors.
        """
        snapshot = state.snapshot
        targets = state.targets

        return AnalysisReport(
            overview=self._overview.summarize(snapshot, targets),
            histograms=tuple(self._histograms.score(snapshot)) if snapshot else (),
            labels=tuple(self._labels.classify(snapshot)) if snapshot else (),
            findings=tuple(self._recommender.recommend(snapshot, targets)),
            jobs=tuple(self._scrapes.summarize_jobs(targets)),
            errors=dict(state.errors),
        )

    async def report(self) -> AnalysisReport:
        """connect() then analyze()."""
        return self.analyze(await self.connect())
