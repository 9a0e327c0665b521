"""Simulation schemas.

SimulationAction is user-authored input: an ordered, append-only list of
proposed changes. SimulationImpact is derived by folding over that list and is
recomputed in full on every change.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ActionKind(str, Enum):
    """The proposed changes the simulator understands.

    Extends str so values serialize to plain strings ("drop_metric") in
    JSON payloads and in the persisted simulation plan.

    Values:
        DROP_METRIC: Drop every series of the target metric.
        DROP_BUCKET: Drop only `<target>_bucket`, keeping _sum and _count.
        DROP_LABEL: Remove the target label from all series (estimate).
        INCREASE_INTERVAL: Scrape the target job less often. Changes the
            sample rate, not the series count, so it removes nothing.
    """

    DROP_METRIC = "drop_metric"
    DROP_BUCKET = "drop_bucket"
    DROP_LABEL = "drop_label"
    INCREASE_INTERVAL = "increase_interval"


class SimulationAction(BaseModel):
    """One proposed change.

    Attributes:
        kind: What to do.
        target: Metric name, histogram base name or label name, depending
            on kind.
        insertion_order: Position in the user's list. Kept so a persisted
            plan reloads in the same order.
    """

    model_config = ConfigDict(frozen=True)

    kind: ActionKind
    target: str
    insertion_order: int = 0


class SimulationImpact(BaseModel):
    """Estimated cumulative effect of a list of actions.

    Attributes:
        estimated_series_removed: Sum of every action's rounded contribution.
        percent_reduction: Share of total series removed, capped at 99.
        remaining_series: Total series minus removed, floored at 0.
        contributions: Series removed by each action, in input order.
            increase_interval always contributes 0 but keeps its slot.
    """

    model_config = ConfigDict(frozen=True)

    estimated_series_removed: int = 0
    percent_reduction: int = Field(default=0, ge=0, le=99)
    remaining_series: int = 0
    contributions: tuple[int, ...] = ()
