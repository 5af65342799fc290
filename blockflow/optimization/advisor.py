"""
Optimization Advisor: merge oracle, heuristic, and pattern-derived
opportunities; rank them; accept the confident ones; score the result.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from blockflow.errors import OracleFailure
from blockflow.graph.analysis_model import FlowFeatures, PatternAnalysis
from blockflow.graph.flow import Flow
from blockflow.optimization.data_model import (
    AppliedOptimization,
    OptimizationOpportunity,
    OptimizationPredictions,
    OptimizerSettings,
)
from blockflow.optimization.heuristics import heuristic_predictions, opportunities_from_patterns
from blockflow.optimization.oracle import OpinionOracle, build_oracle_request, consult_oracle

logger = logging.getLogger(__name__)

OPTIMIZATION_DESCRIPTIONS: dict[str, str] = {
    "parallelization": "Execute independent blocks in parallel",
    "caching": "Cache results of expensive operations",
    "merging": "Merge sequential blocks with compatible operations",
    "reordering": "Reorder blocks for optimal execution sequence",
    "elimination": "Remove redundant or unnecessary operations",
}


@dataclass(frozen=True)
class Advice:
    """Advisor output: predictions carrying the ranked list, plus the accepted candidates."""

    predictions: OptimizationPredictions
    candidates: tuple[AppliedOptimization, ...]
    oracle_confidence: float | None  # None when the heuristics were used


def merge_opportunities(
    primary: Iterable[OptimizationOpportunity],
    fallback: Iterable[OptimizationOpportunity],
) -> list[OptimizationOpportunity]:
    """All primary opportunities, then the first fallback of each type primary does not cover."""
    merged = list(primary)
    covered = {o.type for o in merged}
    for opp in fallback:
        if opp.type not in covered:
            merged.append(opp)
            covered.add(opp.type)
    return merged


def opportunity_score(opp: OptimizationOpportunity, patterns: PatternAnalysis) -> float:
    """gain x confidence, plus a bonus from the worst anti-pattern touching the same blocks."""
    targets = set(opp.target_blocks)
    overlap = max(
        (a.estimated_impact for a in patterns.anti_patterns if targets & set(a.location)),
        default=0,
    )
    return opp.expected_gain * opp.confidence / 100 + overlap / 10


def rank_opportunities(
    opportunities: Sequence[OptimizationOpportunity], patterns: PatternAnalysis
) -> list[OptimizationOpportunity]:
    return sorted(opportunities, key=lambda o: -opportunity_score(o, patterns))


def accept_opportunities(
    ranked: Iterable[OptimizationOpportunity], confidence_floor: float
) -> list[AppliedOptimization]:
    """Opportunities strictly above the floor become candidates, in rank order."""
    return [
        AppliedOptimization(
            type=o.type,
            description=OPTIMIZATION_DESCRIPTIONS[o.type],
            affected_blocks=o.target_blocks,
            estimated_gain=o.expected_gain,
            confidence=o.confidence,
        )
        for o in ranked
        if o.confidence > confidence_floor
    ]


def composite_confidence(
    optimizations: Sequence[AppliedOptimization], oracle_confidence: float | None = None
) -> float:
    """Mean member confidence, scaled by the oracle's own confidence when it was used; 0 when empty."""
    if not optimizations:
        return 0.0
    mean = sum(o.confidence for o in optimizations) / len(optimizations)
    if oracle_confidence is not None:
        mean *= oracle_confidence / 100
    return round(min(100.0, max(0.0, mean)), 2)


def expected_improvement(gains: Iterable[float], cap: float = 90.0) -> float:
    """
    Combine gains with diminishing returns: largest first, each takes gain%
    of what is left of a pool starting at 100. Never exceeds cap.
    """
    pool = 100.0
    total = 0.0
    for gain in sorted(gains, reverse=True):
        take = max(0.0, min(100.0, gain)) / 100 * pool
        total += take
        pool -= take
    return round(min(cap, total), 2)


class OptimizationAdvisor:
    """Consult the oracle when one is configured; fall back to heuristics on any failure."""

    def __init__(
        self, oracle: OpinionOracle | None = None, settings: OptimizerSettings | None = None
    ) -> None:
        self.oracle = oracle
        self.settings = settings or OptimizerSettings()

    async def _oracle_predictions(
        self, flow: Flow, features: FlowFeatures, patterns: PatternAnalysis
    ) -> OptimizationPredictions | None:
        if self.oracle is None:
            return None
        request = build_oracle_request(flow.id, features, patterns)
        try:
            return await consult_oracle(
                self.oracle, request, self.settings.oracle_timeout_seconds
            )
        except OracleFailure as e:
            logger.warning("Oracle unavailable for flow %s, using heuristics: %s", flow.id, e)
            return None

    async def advise(
        self, flow: Flow, features: FlowFeatures, patterns: PatternAnalysis
    ) -> Advice:
        heuristic = heuristic_predictions(flow, features, patterns)
        local = merge_opportunities(heuristic.opportunities, opportunities_from_patterns(patterns))

        oracle = await self._oracle_predictions(flow, features, patterns)
        if oracle is not None:
            base = oracle
            merged = merge_opportunities(oracle.opportunities, local)
        else:
            base = heuristic
            merged = local

        ranked = rank_opportunities(merged, patterns)
        candidates = accept_opportunities(ranked, self.settings.confidence_floor)
        logger.debug(
            "Flow %s: %d opportunities, %d accepted (source=%s)",
            flow.id,
            len(ranked),
            len(candidates),
            base.source,
        )
        return Advice(
            predictions=dataclasses.replace(base, opportunities=tuple(ranked)),
            candidates=tuple(candidates),
            oracle_confidence=oracle.confidence if oracle is not None else None,
        )
