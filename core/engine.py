"""Engine surface: the five analysis operations as plain functions.

These are what the display and API layers call. Every function is
synchronous, takes immutable inputs, returns immutable outputs and never
raises on well-formed input. Missing snapshots, targets or names degrade to
empty results or zeros.
"""

from collections.abc import Iterable, Sequence

from aggregation.recommender import RecommendationEngine
from schemas.analysis import HistogramCandidate, LabelRisk, MetricTree
from schemas.finding import Finding
from schemas.simulation import SimulationAction, SimulationImpact
from schemas.snapshot import RawSeries, Snapshot, TargetSet
from signals.histogram_scorer import HistogramRiskScorer
from signals.label_classifier import LabelRiskClassifier
from signals.multiplier_tree import MultiplierTreeBuilder
from simulation.simulator import WhatIfSimulator


def build_multiplier_tree(metric: str, total_series: int, raw_series: Iterable[RawSeries]) -> MetricTree:
    return MultiplierTreeBuilder().build_tree(metric, total_series, raw_series)


def score_histograms(snapshot: Snapshot | None) -> list[HistogramCandidate]:
    return HistogramRiskScorer().score(snapshot or Snapshot())


def classify_labels(snapshot: Snapshot | None) -> list[LabelRisk]:
    return LabelRiskClassifier().classify(snapshot or Snapshot())


def recommend(snapshot: Snapshot | None, targets: TargetSet | None) -> list[Finding]:
    return RecommendationEngine().recommend(snapshot, targets)


def estimate_impact(snapshot: Snapshot | None, actions: Sequence[SimulationAction]) -> SimulationImpact:
    return WhatIfSimulator().estimate(snapshot, actions)
