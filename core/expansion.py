"""Expansion cache for multiplier trees.

The multiplier tree for a metric needs an on-demand /api/v1/series fetch.
The user can expand metric A, then metric B, before A's fetch resolves, and
responses can arrive in any order. ExpansionCache keeps the result of every
fetch attached to the metric it was requested for:

    1. expand(metric) records a LOADING entry carrying a fresh request token
    2. the fetch runs (the only suspension point)
    3. on completion the result is applied only if the entry for that
       metric still carries the same token

A late response for A therefore never touches B's entry, and a response for
a metric that was collapsed or re-requested meanwhile is discarded.

The cache is bound to one Snapshot. Replacing the snapshot clears every
entry, since trees are only valid for the snapshot whose series count they
show. It is a presentation-layer cache: the builder itself stays pure.
"""

import itertools
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from enum import Enum

from schemas.analysis import MetricTree
from schemas.snapshot import RawSeries, Snapshot
from signals.multiplier_tree import MultiplierTreeBuilder

logger = logging.getLogger(__name__)

SeriesFetcher = Callable[[str], Awaitable[Iterable[RawSeries]]]


class ExpansionStatus(str, Enum):
    """Lifecycle of one expanded metric.

    Values:
        LOADING: Series fetch in flight.
        READY: Tree built. An empty tree (no labels) is READY, not FAILED.
        FAILED: The series fetch raised. No tree exists.
    """

    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class Expansion:
    """State of one metric's expansion.

    Attributes:
        metric: The metric this entry belongs to. Also its cache key.
        status: Where the expansion is in its lifecycle.
        token: Request token of the fetch that owns this entry.
        tree: The built tree when status is READY.
        error: The fetch failure message when status is FAILED.
    """

    metric: str
    status: ExpansionStatus
    token: int
    tree: MetricTree | None = None
    error: str | None = None


class ExpansionCache:
    """Per-snapshot cache of expanded metric trees.

    Attributes:
        _snapshot: Snapshot the cached trees were built against.
        _entries: Expansion state keyed by metric name.
        _tokens: Source of request tokens, unique for the cache's lifetime.
    """

    def __init__(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot
        self._entries: dict[str, Expansion] = {}
        self._tokens = itertools.count(1)
        self._builder = MultiplierTreeBuilder()

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    def replace_snapshot(self, snapshot: Snapshot) -> None:
        """Bind to a new snapshot. Drops every entry if the snapshot changed."""
        if snapshot is self._snapshot:
            return
        self._snapshot = snapshot
        self._entries.clear()

    def get(self, metric: str) -> Expansion | None:
        return self._entries.get(metric)

    def expanded(self) -> list[str]:
        """Metric names with an entry, in the order they were expanded."""
        return list(self._entries)

    def collapse(self, metric: str) -> None:
        """Forget a metric. Any in-flight fetch for it becomes stale."""
        self._entries.pop(metric, None)

    async def expand(self, metric: str, fetch: SeriesFetcher) -> Expansion:
        """Fetch the metric's series and build its tree.

        A READY entry is returned as-is without refetching. A LOADING or
        FAILED entry is replaced by a new request.

        Args:
            metric: Metric name to expand.
            fetch: Coroutine function taking the metric name and returning
                its raw series. Any exception it raises marks the
                expansion FAILED.

        Returns:
            The entry for this request. If the request went stale while
            the fetch was in flight, the returned entry is the one that
            would have been applied; the cache itself is left untouched.
        """
        current = self._entries.get(metric)
        if current is not None and current.status is ExpansionStatus.READY:
            return current

        token = next(self._tokens)
        snapshot = self._snapshot
        self._entries[metric] = Expansion(metric=metric, status=ExpansionStatus.LOADING, token=token)

        try:
            raw_series = await fetch(metric)
        except Exception as exc:
            logger.warning("Series fetch for %s failed: %s", metric, exc)
            result = Expansion(
                metric=metric, status=ExpansionStatus.FAILED, token=token, error=str(exc),
            )
        else:
            tree = self._builder.build_tree(metric, snapshot.metric_series(metric), raw_series)
            result = Expansion(metric=metric, status=ExpansionStatus.READY, token=token, tree=tree)

        return self._apply(result, snapshot)

    async def toggle(self, metric: str, fetch: SeriesFetcher) -> Expansion | None:
        """Collapse an expanded metric, or expand a collapsed one."""
        if metric in self._entries:
            self.collapse(metric)
            return None
        return await self.expand(metric, fetch)

    # ── Private ───────────────────────────────────────────────────────────────

    def _apply(self, result: Expansion, snapshot: Snapshot) -> Expansion:
        """Store result only if its request still owns the metric's entry."""
        current = self._entries.get(result.metric)
        if snapshot is not self._snapshot or current is None or current.token != result.token:
            logger.debug("Discarding stale series response for %s.", result.metric)
            return result
        self._entries[result.metric] = result
        return result
