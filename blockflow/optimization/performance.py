"""
Performance prediction: per-kind block profiles, execution-time and memory
estimates over execution groups, and a best-effort comparison against
historical executions.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Protocol

from blockflow.graph.analysis_model import FlowFeatures
from blockflow.graph.blocks import EXPENSIVE_IO_TYPES, Block, BlockType
from blockflow.graph.flow import Flow
from blockflow.optimization.data_model import (
    BlockProfile,
    BlockTiming,
    ExecutionTimePrediction,
    HistoricalComparison,
    HistoricalRecord,
    MemoryPrediction,
    PerformancePrediction,
)

from blockflow.analysis.digraph import DirectedGraph, build_digraph
from blockflow.analysis.execution_order import (
    compute_execution_groups,
    compute_execution_order,
    compute_parallel_groups,
    estimate_latency,
)
from blockflow.analysis.features import compute_features

logger = logging.getLogger(__name__)

BLOCK_PROFILES: dict[BlockType, BlockProfile] = {
    BlockType.INPUT: BlockProfile(5, 1024, 0.1),
    BlockType.OUTPUT: BlockProfile(5, 1024, 0.1),
    BlockType.TRANSFORM: BlockProfile(20, 2048, 0.3),
    BlockType.FILTER: BlockProfile(15, 1536, 0.2),
    BlockType.AGGREGATE: BlockProfile(30, 4096, 0.4),
    BlockType.CONDITION: BlockProfile(10, 1024, 0.1),
    BlockType.LOOP: BlockProfile(50, 2048, 0.5),
    BlockType.EXTERNAL_CALL: BlockProfile(200, 2048, 0.1),
    BlockType.DATABASE: BlockProfile(100, 3072, 0.2),
    BlockType.CUSTOM: BlockProfile(50, 2048, 0.3),
}

DEFAULT_LOOP_ITERATIONS = 10
VARIABILITY = 0.2
SIMILARITY_THRESHOLD = 0.7
MAX_SIMILAR_FLOWS = 5
HISTORY_TIMEOUT_SECONDS = 5.0


class HistoricalMetricsStore(Protocol):
    """Read-only source of past execution telemetry."""

    async def recent_executions(self) -> Sequence[HistoricalRecord]: ...


def loop_iterations(block: Block) -> float:
    """Numeric value of the first parameter named like iter*/count*, else 10."""
    for param in block.parameters:
        name = param.name.lower()
        if "iter" in name or "count" in name:
            value = param.value
            if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
                return float(value)
            break
    return float(DEFAULT_LOOP_ITERATIONS)


def complexity_multiplier(block: Block, dg: DirectedGraph) -> float:
    connections = dg.in_degree(block.id) + dg.out_degree(block.id)
    multiplier = (1 + 0.1 * connections) * (1 + 0.05 * len(block.parameters))
    if block.type is BlockType.CUSTOM:
        multiplier *= 1.5
    return multiplier


def block_cost_ms(block: Block, dg: DirectedGraph) -> float:
    cost = BLOCK_PROFILES[block.type].average_ms * complexity_multiplier(block, dg)
    if block.type is BlockType.LOOP:
        cost *= loop_iterations(block)
    return cost


def time_confidence(flow: Flow, features: FlowFeatures) -> float:
    confidence = 0.8
    if features.complexity > 100:
        confidence *= 0.8
    if features.cyclomatic_complexity > 20:
        confidence *= 0.9
    if sum(1 for b in flow.blocks if b.type in EXPENSIVE_IO_TYPES) > 5:
        confidence *= 0.7
    return round(max(0.5, confidence), 2)


def _predict_execution_time(
    flow: Flow, dg: DirectedGraph, features: FlowFeatures
) -> ExecutionTimePrediction:
    costs = {b.id: block_cost_ms(b, dg) for b in flow.blocks}
    order = compute_execution_order(dg)
    groups = compute_execution_groups(order, compute_parallel_groups(dg))
    total = estimate_latency(groups, costs)

    mean = sum(costs.values()) / len(costs) if costs else 0.0
    timings = tuple(
        BlockTiming(bid, round(costs[bid], 2), bottleneck=costs[bid] > 2 * mean)
        for bid in order
    )
    return ExecutionTimePrediction(
        estimated_ms=round(total, 2),
        best_case_ms=round(total * 0.8, 2),
        worst_case_ms=round(total * 1.5, 2),
        p50_ms=round(total, 2),
        p95_ms=round(total * (1 + VARIABILITY), 2),
        p99_ms=round(total * (1 + 2 * VARIABILITY), 2),
        confidence=time_confidence(flow, features),
        block_timings=timings,
        bottlenecks=tuple(t.block_id for t in timings if t.bottleneck),
    )


def predict_execution_time(flow: Flow) -> ExecutionTimePrediction:
    """Wall-clock estimate: parallel groups cost their slowest member, groups run in sequence."""
    dg = build_digraph(flow)
    return _predict_execution_time(flow, dg, compute_features(flow, dg))


def predict_memory(flow: Flow, dg: DirectedGraph | None = None) -> MemoryPrediction:
    """Peak is the largest block footprint plus 20% headroom; hotspots exceed twice their profile."""
    dg = dg or build_digraph(flow)
    if not flow.blocks:
        return MemoryPrediction(peak_bytes=0, average_bytes=0)

    usage: dict[str, float] = {}
    for block in flow.blocks:
        base = BLOCK_PROFILES[block.type].memory_bytes
        if block.type is BlockType.LOOP:
            factor = loop_iterations(block)
        else:
            factor = 1 + 0.5 * max(0, dg.in_degree(block.id) - 1)
        usage[block.id] = base * factor

    hotspots = tuple(
        b.id for b in flow.blocks if usage[b.id] > 2 * BLOCK_PROFILES[b.type].memory_bytes
    )
    return MemoryPrediction(
        peak_bytes=int(max(usage.values()) * 1.2),
        average_bytes=int(sum(usage.values()) / len(usage)),
        hotspots=hotspots,
    )


def feature_similarity(a: FlowFeatures, b: FlowFeatures) -> float:
    """Mean ratio similarity over counts and complexities; 1.0 for identical shapes."""
    pairs = (
        (a.node_count, b.node_count),
        (a.connection_count, b.connection_count),
        (a.complexity, b.complexity),
        (a.cyclomatic_complexity, b.cyclomatic_complexity),
    )
    scores = [1 - abs(x - y) / max(x, y, 1) for x, y in pairs]
    return sum(scores) / len(scores)


def performance_trend(times: Sequence[float]) -> str:
    """Trend over the last three runs: strictly falling is improving, strictly rising degrading."""
    recent = list(times)[-3:]
    if len(recent) < 3:
        return "stable"
    if recent[0] > recent[1] > recent[2]:
        return "improving"
    if recent[0] < recent[1] < recent[2]:
        return "degrading"
    return "stable"


def compare_with_history(
    flow_id: str, features: FlowFeatures, records: Sequence[HistoricalRecord]
) -> HistoricalComparison | None:
    similar: dict[str, tuple[float, float]] = {}
    for record in records:
        if record.flow_id == flow_id:
            continue
        score = feature_similarity(features, record.features)
        if score > SIMILARITY_THRESHOLD:
            best = similar.get(record.flow_id)
            if best is None or score > best[0]:
                similar[record.flow_id] = (score, record.execution_time_ms)
    own = sorted((r for r in records if r.flow_id == flow_id), key=lambda r: r.recorded_at)
    if not similar and not own:
        return None

    top = sorted(similar.items(), key=lambda item: (-item[1][0], item[0]))[:MAX_SIMILAR_FLOWS]
    times = [t for _, (_, t) in top]
    return HistoricalComparison(
        similar_flows=tuple(fid for fid, _ in top),
        average_execution_ms=round(sum(times) / len(times), 2) if times else 0.0,
        trend=performance_trend([r.execution_time_ms for r in own]),  # type: ignore[arg-type]
    )


async def predict_performance(
    flow: Flow,
    store: HistoricalMetricsStore | None = None,
    *,
    history_timeout: float = HISTORY_TIMEOUT_SECONDS,
) -> PerformancePrediction:
    """
    Execution time, memory, and (when a store is given) a historical
    comparison. The store read is best-effort: any failure is logged and the
    prediction carries no comparison.
    """
    dg = build_digraph(flow)
    features = compute_features(flow, dg)
    execution = _predict_execution_time(flow, dg, features)
    memory = predict_memory(flow, dg)

    historical = None
    warnings: list[str] = []
    if store is not None:
        try:
            records = await asyncio.wait_for(store.recent_executions(), timeout=history_timeout)
        except Exception as e:
            logger.warning("Historical metrics unavailable for flow %s: %s", flow.id, e)
            warnings.append("Historical metrics unavailable")
        else:
            historical = compare_with_history(flow.id, features, records)

    if execution.bottlenecks:
        warnings.append(f"Bottleneck blocks: {', '.join(execution.bottlenecks)}")

    return PerformancePrediction(
        flow_id=flow.id,
        execution_time=execution,
        memory=memory,
        historical=historical,
        warnings=tuple(warnings),
    )
