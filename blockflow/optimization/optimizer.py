"""
FlowOptimizer: analyze -> advise (oracle or heuristics) -> apply, with the
Model Cache wrapping the analysis-to-advice path and a short per-flow history.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from blockflow.graph.analysis_model import FlowAnalysis
from blockflow.graph.flow import Flow
from blockflow.optimization.advisor import (
    OptimizationAdvisor,
    composite_confidence,
    expected_improvement,
    merge_opportunities,
)
from blockflow.optimization.applier import apply_optimizations
from blockflow.optimization.cache import Clock, ModelCache, compute_signature
from blockflow.optimization.data_model import (
    AppliedOptimization,
    CachedModel,
    CacheStats,
    OptimizedFlow,
    OptimizerSettings,
)
from blockflow.optimization.heuristics import heuristic_opportunities, opportunities_from_patterns
from blockflow.optimization.oracle import OpinionOracle
from blockflow.optimization.settings_loader import load_settings

from blockflow.analysis.analyzer import FlowAnalyzer

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 10


def anchor_candidates(
    candidates: Sequence[AppliedOptimization], flow: Flow, analysis: FlowAnalysis
) -> list[AppliedOptimization]:
    """
    Fit cached candidates to a flow that shares the signature but not the
    block ids. A candidate none of whose targets exist takes the targets the
    local heuristics pick for its type; otherwise it is kept as cached.
    """
    known = set(flow.block_ids())
    local = {
        o.type: o.target_blocks
        for o in merge_opportunities(
            heuristic_opportunities(flow, analysis.features),
            opportunities_from_patterns(analysis.patterns),
        )
    }
    anchored: list[AppliedOptimization] = []
    for c in candidates:
        if known.intersection(c.affected_blocks) or c.type not in local:
            anchored.append(c)
        else:
            anchored.append(
                AppliedOptimization(
                    type=c.type,
                    description=c.description,
                    affected_blocks=local[c.type],
                    estimated_gain=c.estimated_gain,
                    confidence=c.confidence,
                )
            )
    return anchored


class FlowOptimizer:
    """
    Engine entry point for optimization. Never raises for oracle failures;
    NotFoundError and ValidationError from the graph model still propagate.
    """

    def __init__(
        self,
        oracle: OpinionOracle | None = None,
        cache: ModelCache | None = None,
        settings: OptimizerSettings | str | Path | dict | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.settings = load_settings(settings)
        self.cache = cache if cache is not None else ModelCache(self.settings, clock)
        self.advisor = OptimizationAdvisor(oracle, self.settings)
        self.analyzer = FlowAnalyzer(nesting_threshold=self.settings.nesting_threshold)
        self._history: dict[str, list[OptimizedFlow]] = {}

    async def optimize(self, flow: Flow) -> OptimizedFlow:
        analysis = self.analyzer.analyze(flow)
        signature = compute_signature(analysis.features)

        async def compute() -> CachedModel:
            advice = await self.advisor.advise(flow, analysis.features, analysis.patterns)
            confidence = composite_confidence(advice.candidates, advice.oracle_confidence)
            return self.cache.put(
                signature,
                analysis.features,
                advice.predictions,
                advice.candidates,
                confidence,
                changes=(
                    f"{len(advice.candidates)} optimization(s) from "
                    f"{advice.predictions.source} for flow {flow.id}",
                ),
            )

        model, reused = await self.cache.get_or_compute(signature, compute)
        candidates = (
            anchor_candidates(model.optimizations, flow, analysis)
            if reused
            else list(model.optimizations)
        )
        optimized, applied = apply_optimizations(flow, candidates, self.settings)

        predictions = model.predictions
        oracle_confidence = predictions.confidence if predictions.source == "oracle" else None
        result = OptimizedFlow(
            original=flow,
            optimized=optimized,
            predictions=predictions,
            applied_optimizations=tuple(applied),
            expected_improvement=expected_improvement(
                (a.estimated_gain for a in applied), self.settings.improvement_cap
            ),
            confidence=composite_confidence(applied, oracle_confidence),
            from_cache=reused,
            analysis=analysis,
        )
        self._remember(flow.id, result)
        logger.info(
            "Optimized flow %s: %d change(s), expected improvement %.1f%% "
            "(confidence %.1f%%, %s%s)",
            flow.id,
            len(applied),
            result.expected_improvement,
            result.confidence,
            predictions.source,
            ", cached" if reused else "",
        )
        return result

    def _remember(self, flow_id: str, result: OptimizedFlow) -> None:
        entries = self._history.setdefault(flow_id, [])
        entries.append(result)
        del entries[:-HISTORY_LIMIT]

    def history(self, flow_id: str) -> list[OptimizedFlow]:
        """Most recent results for flow_id, oldest first, at most ten."""
        return list(self._history.get(flow_id, []))

    def cache_stats(self) -> CacheStats:
        return self.cache.stats()

    def clear_cache(self) -> None:
        self.cache.clear()


async def optimize(
    flow: Flow,
    oracle: OpinionOracle | None = None,
    settings: OptimizerSettings | str | Path | dict | None = None,
) -> OptimizedFlow:
    """Convenience: one-shot FlowOptimizer(oracle, settings=settings).optimize(flow)."""
    return await FlowOptimizer(oracle=oracle, settings=settings).optimize(flow)
