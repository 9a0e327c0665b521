"""What-if simulator: estimated series reduction for proposed changes.

A left fold over the user's action list. Each action contributes an
independently rounded number of series; the contributions are summed. The
fold is therefore order-independent, and rounding per action (not once at
the end) keeps the total equal to the sum of the per-action numbers the user
sees.

drop_label is a rough estimate, disclosed to users as such. The snapshot
does not say which metrics carry a label or how its values are distributed,
so the simulator assumes 10% of all series carry it and that dropping it
collapses those series by a factor of (1 - 1/unique_values).
"""

import logging
from collections.abc import Sequence

from schemas.simulation import ActionKind, SimulationAction, SimulationImpact
from schemas.snapshot import Snapshot
from signals.thresholds import BUCKET_SUFFIX, LABEL_DROP_AFFECTED_SHARE, MAX_PERCENT_REDUCTION
from utils.numbers import round_half_up

logger = logging.getLogger(__name__)


class WhatIfSimulator:
    """Estimate the cumulative impact of a list of actions."""

    def estimate(self, snapshot: Snapshot | None, actions: Sequence[SimulationAction]) -> SimulationImpact:
        """Fold over actions and return the combined impact.

        The actions sequence is read, never modified.

        Args:
            snapshot: Current TSDB snapshot. None reads as empty.
            actions: Proposed changes in the order the user added them.

        Returns:
            SimulationImpact. percent_reduction is capped at 99 so the
            estimate never claims total elimination; it is 0 when the
            snapshot reports no series.
        """
        snapshot = snapshot or Snapshot()
        total = snapshot.total_series

        contributions = tuple(self.contribution(snapshot, action) for action in actions)
        removed = sum(contributions)

        percent = (
            min(MAX_PERCENT_REDUCTION, round_half_up(removed / total * 100))
            if total > 0
            else 0
        )

        return SimulationImpact(
            estimated_series_removed=removed,
            percent_reduction=percent,
            remaining_series=max(0, total - removed),
            contributions=contributions,
        )

    def contribution(self, snapshot: Snapshot, action: SimulationAction) -> int:
        """Series removed by one action on its own. Unknown targets give 0."""
        if action.kind is ActionKind.DROP_METRIC:
            return snapshot.metric_series(action.target)

        if action.kind is ActionKind.DROP_BUCKET:
            return snapshot.metric_series(action.target + BUCKET_SUFFIX)

        if action.kind is ActionKind.DROP_LABEL:
            unique_values = snapshot.label_values(action.target)
            if unique_values <= 1:
                return 0
            return round_half_up(
                snapshot.total_series * LABEL_DROP_AFFECTED_SHARE * (1 - 1 / unique_values)
            )

        # increase_interval changes samples/sec, not series count
        return 0
