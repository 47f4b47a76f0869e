"""Resolution layer: aggregation, provider integrations and the tiered workflow."""

from cellgeo.resolve.aggregate import (
    AggregationStrategy,
    Aggregator,
    accuracy_weighted_centroid,
    most_recent,
    strategy_by_name,
)
from cellgeo.resolve.external import ExternalResolver, UnwiredLabsResolver
from cellgeo.resolve.orchestrator import ResolutionOrchestrator, ResolutionStage

__all__ = [
    "AggregationStrategy",
    "Aggregator",
    "ExternalResolver",
    "ResolutionOrchestrator",
    "ResolutionStage",
    "UnwiredLabsResolver",
    "accuracy_weighted_centroid",
    "most_recent",
    "strategy_by_name",
]
