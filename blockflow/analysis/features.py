"""
Feature extraction: counts, McCabe and cyclomatic complexity, depth,
branching factor, parallelizable blocks, and data-flow pattern histogram.
"""

from __future__ import annotations

import logging

from blockflow.graph.analysis_model import DataFlowPattern, FlowFeatures
from blockflow.graph.blocks import BlockType
from blockflow.graph.flow import Flow

from blockflow.analysis.digraph import DirectedGraph, build_digraph
from blockflow.analysis.execution_order import compute_parallel_groups

logger = logging.getLogger(__name__)


def _mean(values: list[float]) -> float:
    return round(sum(values) / len(values), 2) if values else 0.0


def _longest_walk_from_inputs(dg: DirectedGraph, input_ids: list[str]) -> int:
    """
    Number of blocks on the longest walk from any input block. A leaf counts 1;
    a block already on the current path contributes 0. One memo is shared by
    every walk of this call. Post-order with an explicit stack.
    """
    memo: dict[str, int] = {}

    def depth(start: str) -> int:
        if start in memo:
            return memo[start]
        on_path: set[str] = {start}
        best: dict[str, int] = {start: 0}
        stack: list[tuple[str, int]] = [(start, 0)]
        while stack:
            node, child_idx = stack[-1]
            succs = dg.successors(node)
            if child_idx < len(succs):
                stack[-1] = (node, child_idx + 1)
                child = succs[child_idx]
                if child in on_path:
                    continue
                if child in memo:
                    best[node] = max(best[node], memo[child])
                    continue
                on_path.add(child)
                best[child] = 0
                stack.append((child, 0))
            else:
                stack.pop()
                on_path.discard(node)
                memo[node] = 1 + best.pop(node)
                if stack:
                    parent = stack[-1][0]
                    best[parent] = max(best[parent], memo[node])
        return memo[start]

    return max((depth(i) for i in input_ids), default=0)


def find_branching_nodes(dg: DirectedGraph) -> list[str]:
    return [n for n in dg.nodes() if dg.out_degree(n) > 1]


def find_merging_nodes(dg: DirectedGraph) -> list[str]:
    return [n for n in dg.nodes() if dg.in_degree(n) > 1]


def find_linear_chains(dg: DirectedGraph) -> list[list[str]]:
    """Maximal runs of single-successor hops into single-predecessor blocks (length >= 2)."""
    visited: set[str] = set()
    chains: list[list[str]] = []
    for start in dg.nodes():
        if start in visited:
            continue
        chain = [start]
        visited.add(start)
        current = start
        while True:
            succs = dg.successors(current)
            if len(succs) != 1:
                break
            nxt = succs[0]
            if dg.in_degree(nxt) != 1 or nxt in visited:
                break
            chain.append(nxt)
            visited.add(nxt)
            current = nxt
        if len(chain) > 1:
            chains.append(chain)
    return chains


def compute_data_flow_patterns(
    flow: Flow,
    dg: DirectedGraph,
    groups: list[tuple[str, ...]],
) -> tuple[DataFlowPattern, ...]:
    """Pattern histogram in fixed order: linear, branching, merging, looping, parallel."""
    patterns: list[DataFlowPattern] = []

    chains = find_linear_chains(dg)
    if chains:
        patterns.append(
            DataFlowPattern("linear", len(chains), _mean([len(c) for c in chains]))
        )

    branching = find_branching_nodes(dg)
    if branching:
        patterns.append(
            DataFlowPattern(
                "branching", len(branching), _mean([dg.out_degree(n) for n in branching])
            )
        )

    merging = find_merging_nodes(dg)
    if merging:
        patterns.append(
            DataFlowPattern(
                "merging", len(merging), _mean([dg.in_degree(n) for n in merging])
            )
        )

    # Loop blocks weigh by their fan-out; graph cycles by their size.
    loop_sizes = [
        1 + dg.out_degree(b.id) for b in flow.blocks if b.type is BlockType.LOOP
    ]
    loop_sizes.extend(len(scc) for scc in dg.cyclic_components())
    if loop_sizes:
        patterns.append(DataFlowPattern("looping", len(loop_sizes), _mean(loop_sizes)))

    if groups:
        patterns.append(
            DataFlowPattern("parallel", len(groups), _mean([len(g) for g in groups]))
        )

    return tuple(patterns)


def compute_features(flow: Flow, dg: DirectedGraph) -> FlowFeatures:
    """Compute FlowFeatures from a flow and its digraph."""
    node_count = len(flow.blocks)
    connection_count = len(flow.connections)

    # Edges and components both come from the digraph; dangling connections are excluded.
    components = len(dg.connected_components()) if node_count else 0
    complexity = max(1, dg.edge_count() - node_count + 2 * components)

    cyclomatic = 1
    for block in flow.blocks:
        if block.type is BlockType.CONDITION:
            cyclomatic += 1
        elif block.type is BlockType.LOOP:
            cyclomatic += 2
    cyclomatic += len(find_branching_nodes(dg))

    input_ids = [b.id for b in flow.blocks if b.type is BlockType.INPUT]
    longest_walk = _longest_walk_from_inputs(dg, input_ids)
    max_depth = max(0, longest_walk - 1)

    if node_count:
        branching_factor = round(sum(dg.out_degree(n) for n in dg.nodes()) / node_count, 2)
        average_block_parameters = round(
            sum(len(b.parameters) for b in flow.blocks) / node_count, 2
        )
    else:
        branching_factor = 0.0
        average_block_parameters = 0.0

    distribution: dict[str, int] = {}
    for block in flow.blocks:
        distribution[block.type.value] = distribution.get(block.type.value, 0) + 1

    groups = compute_parallel_groups(dg)
    parallelizable = len({m for g in groups for m in g})

    features = FlowFeatures(
        node_count=node_count,
        connection_count=connection_count,
        complexity=complexity,
        cyclomatic_complexity=cyclomatic,
        max_depth=max_depth,
        branching_factor=branching_factor,
        average_block_parameters=average_block_parameters,
        parallelizable_blocks=parallelizable,
        block_type_distribution=distribution,
        data_flow_patterns=compute_data_flow_patterns(flow, dg, groups),
    )
    logger.debug(
        "Extracted features for flow %s: nodes=%d complexity=%d cyclomatic=%d",
        flow.id,
        node_count,
        complexity,
        cyclomatic,
    )
    return features


def extract_features(flow: Flow) -> FlowFeatures:
    """Pure function of a flow snapshot."""
    return compute_features(flow, build_digraph(flow))
