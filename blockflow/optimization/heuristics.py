"""
Deterministic fallback predictions. Always available; used exclusively when
the oracle is absent or fails.
"""

from __future__ import annotations

from blockflow.graph.analysis_model import FlowFeatures, PatternAnalysis
from blockflow.graph.blocks import EXPENSIVE_IO_TYPES
from blockflow.graph.flow import Flow
from blockflow.optimization.data_model import (
    OptimizationOpportunity,
    OptimizationPredictions,
    RiskAssessment,
    RiskFactor,
)

from blockflow.analysis.digraph import build_digraph
from blockflow.analysis.execution_order import compute_parallel_groups

HEURISTIC_CONFIDENCE = 60.0
HEURISTIC_GAIN_CAP = 60.0

# Difficulty of acting on each optimization pattern kind.
_PATTERN_DIFFICULTY = {
    "caching": "low",
    "parallelization": "medium",
    "merging": "medium",
    "reordering": "medium",
    "elimination": "high",
}


def risk_level(complexity: int) -> str:
    if complexity > 10:
        return "high"
    if complexity > 5:
        return "medium"
    return "low"


def assess_risk(features: FlowFeatures, patterns: PatternAnalysis | None = None) -> RiskAssessment:
    """Overall risk from McCabe complexity, with one factor per concrete concern."""
    overall = risk_level(features.complexity)
    factors: list[RiskFactor] = []
    mitigation: list[str] = []

    if overall != "low":
        factors.append(
            RiskFactor(
                "complexity",
                overall,  # type: ignore[arg-type]
                f"Flow complexity {features.complexity} makes restructuring error-prone",
            )
        )
        mitigation.append("Apply optimizations incrementally and compare outputs")
    if patterns is not None and patterns.has_circular_dependency:
        factors.append(
            RiskFactor("dependencies", "high", "Flow contains a circular dependency")
        )
        mitigation.append("Break the cycle before executing the optimized flow")
    if features.cyclomatic_complexity > 10:
        factors.append(
            RiskFactor(
                "data_flow",
                "medium",
                f"{features.cyclomatic_complexity} independent paths through the flow",
            )
        )

    return RiskAssessment(overall=overall, factors=tuple(factors), mitigation=tuple(mitigation))  # type: ignore[arg-type]


def heuristic_opportunities(flow: Flow, features: FlowFeatures) -> list[OptimizationOpportunity]:
    opportunities: list[OptimizationOpportunity] = []

    n = features.parallelizable_blocks
    if n >= 2:
        members = tuple(
            m for g in compute_parallel_groups(build_digraph(flow)) for m in g
        )
        opportunities.append(
            OptimizationOpportunity(
                type="parallelization",
                target_blocks=members,
                expected_gain=float(min(50, n * 10)),
                difficulty="medium",
                confidence=70.0,
            )
        )

    expensive = tuple(b.id for b in flow.blocks if b.type in EXPENSIVE_IO_TYPES)
    if expensive:
        opportunities.append(
            OptimizationOpportunity(
                type="caching",
                target_blocks=expensive,
                expected_gain=30.0,
                difficulty="low",
                confidence=80.0,
            )
        )

    return opportunities


def opportunities_from_patterns(patterns: PatternAnalysis) -> list[OptimizationOpportunity]:
    """Turn the pattern analyzer's optimization patterns into candidate opportunities."""
    return [
        OptimizationOpportunity(
            type=p.type,  # type: ignore[arg-type]
            target_blocks=p.applicable_blocks,
            expected_gain=float(p.expected_gain),
            difficulty=_PATTERN_DIFFICULTY.get(p.type, "medium"),  # type: ignore[arg-type]
            confidence=float(p.confidence),
        )
        for p in patterns.optimization_patterns
        if p.type in _PATTERN_DIFFICULTY
    ]


def heuristic_predictions(
    flow: Flow, features: FlowFeatures, patterns: PatternAnalysis | None = None
) -> OptimizationPredictions:
    """Fixed-confidence predictions; expected gain is the mean opportunity gain, capped at 60."""
    opportunities = heuristic_opportunities(flow, features)
    gain = (
        sum(o.expected_gain for o in opportunities) / len(opportunities)
        if opportunities
        else 0.0
    )
    return OptimizationPredictions(
        expected_performance_gain=min(HEURISTIC_GAIN_CAP, gain),
        confidence=HEURISTIC_CONFIDENCE,
        opportunities=tuple(opportunities),
        risk_assessment=assess_risk(features, patterns),
        source="heuristic",
    )
