"""
Pattern analysis: anti-patterns (cycles, N+1, sync/async mismatch, leaks,
excessive nesting), optimization, scalability, and security patterns.
State-free; every run starts from the flow and its features.
"""

from __future__ import annotations

from blockflow.graph.analysis_model import (
    AntiPattern,
    FlowFeatures,
    OptimizationPattern,
    PatternAnalysis,
    ScalabilityPattern,
    SecurityPattern,
)
from blockflow.graph.blocks import (
    EXPENSIVE_IO_TYPES,
    PARALLEL_MARKER,
    STATELESS_TYPES,
    BlockType,
)
from blockflow.graph.flow import Flow

from blockflow.analysis.digraph import DirectedGraph, build_digraph
from blockflow.analysis.execution_order import compute_parallel_groups
from blockflow.analysis.features import compute_features
from blockflow.analysis.validation import validate_flow

DEFAULT_NESTING_THRESHOLD = 5
LEAK_PRONE_PARAMETER_HINTS = ("event", "listener", "interval")


def _canonical_cycle(cycle: list[str]) -> tuple[str, ...]:
    """Rotate so the smallest id comes first; the same loop found twice compares equal."""
    pivot = cycle.index(min(cycle))
    return tuple(cycle[pivot:] + cycle[:pivot])


def detect_circular_dependencies(dg: DirectedGraph) -> list[AntiPattern]:
    """
    Depth-first walk with an explicit (node, child_idx) stack and an on-path
    set; each back edge is reported once with its cycle path.
    """
    visited: set[str] = set()
    on_path: set[str] = set()
    path: list[str] = []
    seen_cycles: set[tuple[str, ...]] = set()
    found: list[AntiPattern] = []

    def enter(node: str) -> None:
        visited.add(node)
        on_path.add(node)
        path.append(node)

    for root in dg.roots() + dg.nodes():
        if root in visited:
            continue
        enter(root)
        stack: list[tuple[str, int]] = [(root, 0)]
        while stack:
            node, child_idx = stack[-1]
            succs = dg.successors(node)
            if child_idx >= len(succs):
                stack.pop()
                path.pop()
                on_path.discard(node)
                continue
            stack[-1] = (node, child_idx + 1)
            succ = succs[child_idx]
            if succ in on_path:
                cycle = path[path.index(succ):]
                key = _canonical_cycle(cycle)
                if key in seen_cycles:
                    continue
                seen_cycles.add(key)
                rendered = " → ".join(cycle + [succ])
                found.append(
                    AntiPattern(
                        type="circular_dependency",
                        severity="critical",
                        location=tuple(cycle),
                        description=f"Circular dependency detected in flow: {rendered}",
                        recommendation="Restructure flow to eliminate circular dependencies",
                        estimated_impact=90,
                    )
                )
            elif succ not in visited:
                enter(succ)
                stack.append((succ, 0))
    return found


def detect_n_plus_one(flow: Flow, dg: DirectedGraph) -> list[AntiPattern]:
    """Loop blocks feeding a database or external-call block directly."""
    by_id = {b.id: b for b in flow.blocks}
    found: list[AntiPattern] = []
    for block in flow.blocks:
        if block.type is not BlockType.LOOP:
            continue
        targets = [
            succ
            for succ in dict.fromkeys(dg.successors(block.id))
            if by_id[succ].type in EXPENSIVE_IO_TYPES
        ]
        if not targets:
            continue
        kinds = sorted({by_id[t].type.value.replace("_", " ") for t in targets})
        found.append(
            AntiPattern(
                type="n_plus_one",
                severity="high",
                location=(block.id, *targets),
                description=f"Potential N+1 problem: {' and '.join(kinds)} operation inside loop",
                recommendation="Batch the requests or load all rows in one query before the loop",
                estimated_impact=70,
            )
        )
    return found


def detect_sync_async_mismatches(flow: Flow, dg: DirectedGraph) -> list[AntiPattern]:
    """Expensive I/O blocks fanning out to several children while still running sequentially."""
    found: list[AntiPattern] = []
    for block in flow.blocks:
        if block.type not in EXPENSIVE_IO_TYPES:
            continue
        if dg.out_degree(block.id) > 1 and not block.has_flag(PARALLEL_MARKER):
            found.append(
                AntiPattern(
                    type="sync_async_mismatch",
                    severity="medium",
                    location=(block.id,),
                    description="Synchronous operation could be optimized with async execution",
                    recommendation="Run the downstream branches concurrently once the result is available",
                    estimated_impact=40,
                )
            )
    return found


def detect_memory_leaks(flow: Flow) -> list[AntiPattern]:
    """Custom blocks registering events, listeners, or intervals."""
    found: list[AntiPattern] = []
    for block in flow.blocks:
        if block.type is not BlockType.CUSTOM:
            continue
        if any(
            hint in param.name.lower()
            for param in block.parameters
            for hint in LEAK_PRONE_PARAMETER_HINTS
        ):
            found.append(
                AntiPattern(
                    type="memory_leak",
                    severity="medium",
                    location=(block.id,),
                    description="Potential memory leak: event listeners or intervals may not be cleaned up",
                    recommendation="Ensure proper cleanup of event listeners and intervals",
                    estimated_impact=30,
                )
            )
    return found


def detect_excessive_nesting(
    features: FlowFeatures,
    threshold: int = DEFAULT_NESTING_THRESHOLD,
) -> list[AntiPattern]:
    """Flag max_depth beyond threshold; severity grows with the overshoot."""
    depth = features.max_depth
    if depth <= threshold:
        return []
    if depth > 2 * threshold:
        severity = "critical"
    elif depth > threshold + 3:
        severity = "high"
    else:
        severity = "medium"
    return [
        AntiPattern(
            type="excessive_nesting",
            severity=severity,
            location=(),
            description=f"Excessive nesting depth detected: {depth} levels (threshold {threshold})",
            recommendation="Consider breaking complex flows into smaller, reusable components",
            estimated_impact=min(60, depth * 10),
        )
    ]


def identify_optimization_patterns(flow: Flow, dg: DirectedGraph) -> list[OptimizationPattern]:
    patterns: list[OptimizationPattern] = []

    expensive = tuple(b.id for b in flow.blocks if b.type in EXPENSIVE_IO_TYPES)
    if expensive:
        patterns.append(OptimizationPattern("caching", 80, expensive, 50))

    groups = compute_parallel_groups(dg)
    if groups:
        members = tuple(m for g in groups for m in g)
        patterns.append(OptimizationPattern("parallelization", 70, members, 35))

    return patterns


def analyze_scalability_patterns(flow: Flow) -> list[ScalabilityPattern]:
    patterns: list[ScalabilityPattern] = []
    if not flow.blocks:
        return patterns

    stateless = sum(1 for b in flow.blocks if b.type in STATELESS_TYPES)
    if stateless / len(flow.blocks) > 0.5:
        patterns.append(
            ScalabilityPattern(
                pattern="horizontal",
                suitability=85,
                requirements=("Stateless operations", "Load balancer"),
                limitations=("Shared state management",),
            )
        )

    if any(b.type in EXPENSIVE_IO_TYPES or b.type is BlockType.AGGREGATE for b in flow.blocks):
        patterns.append(
            ScalabilityPattern(
                pattern="caching",
                suitability=90,
                requirements=("Cache layer", "TTL management"),
                limitations=("Cache invalidation complexity",),
            )
        )
    return patterns


def check_security_patterns(flow: Flow) -> list[SecurityPattern]:
    types = {b.type for b in flow.blocks}
    patterns: list[SecurityPattern] = []
    if BlockType.INPUT in types:
        patterns.append(
            SecurityPattern(
                pattern="input_validation",
                required=True,
                severity="high",
                recommendation="Implement comprehensive input validation for all input blocks",
            )
        )
    if BlockType.OUTPUT in types:
        patterns.append(
            SecurityPattern(
                pattern="output_sanitization",
                required=True,
                severity="medium",
                recommendation="Ensure output data is properly sanitized before transmission",
            )
        )
    if BlockType.DATABASE in types:
        patterns.append(
            SecurityPattern(
                pattern="access_control",
                required=True,
                severity="medium",
                recommendation="Use least-privilege credentials for database blocks",
            )
        )
    return patterns


def compute_patterns(
    flow: Flow,
    features: FlowFeatures,
    dg: DirectedGraph,
    *,
    nesting_threshold: int = DEFAULT_NESTING_THRESHOLD,
) -> PatternAnalysis:
    """Run every pass over one digraph."""
    anti = (
        detect_circular_dependencies(dg)
        + detect_n_plus_one(flow, dg)
        + detect_sync_async_mismatches(flow, dg)
        + detect_memory_leaks(flow)
        + detect_excessive_nesting(features, nesting_threshold)
    )
    return PatternAnalysis(
        anti_patterns=tuple(anti),
        optimization_patterns=tuple(identify_optimization_patterns(flow, dg)),
        scalability_patterns=tuple(analyze_scalability_patterns(flow)),
        security_patterns=tuple(check_security_patterns(flow)),
        structural_issues=validate_flow(flow),
    )


def detect_patterns(
    flow: Flow,
    features: FlowFeatures | None = None,
    *,
    nesting_threshold: int = DEFAULT_NESTING_THRESHOLD,
) -> PatternAnalysis:
    """Pure: pattern findings for a flow. Features are computed when not given."""
    dg = build_digraph(flow)
    if features is None:
        features = compute_features(flow, dg)
    return compute_patterns(flow, features, dg, nesting_threshold=nesting_threshold)
