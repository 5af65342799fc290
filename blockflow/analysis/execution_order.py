"""
Execution order: dependency-consistent schedule, parallel groups, execution
groups, and group-based latency estimation.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from blockflow.graph.flow import Flow

from blockflow.analysis.digraph import DirectedGraph, build_digraph


def compute_execution_order(dg: DirectedGraph) -> list[str]:
    """
    Reverse post-order depth-first traversal, starting from nodes with no
    incoming edges, then from any node still unvisited (disconnected or
    purely cyclic parts). Every node appears exactly once. On acyclic graphs
    every edge u -> v has u before v; on cyclic graphs the order is still
    total and the traversal terminates.
    """
    visited: set[str] = set()
    post_order: list[str] = []

    def visit(start: str) -> None:
        if start in visited:
            return
        visited.add(start)
        stack: list[tuple[str, int]] = [(start, 0)]
        while stack:
            node, child_idx = stack[-1]
            succs = dg.successors(node)
            if child_idx < len(succs):
                stack[-1] = (node, child_idx + 1)
                child = succs[child_idx]
                if child not in visited:
                    visited.add(child)
                    stack.append((child, 0))
            else:
                stack.pop()
                post_order.append(node)

    for root in dg.roots():
        visit(root)
    for node in dg.nodes():
        visit(node)

    post_order.reverse()
    return post_order


def _drop_dependent_members(dg: DirectedGraph, members: list[str]) -> list[str]:
    """Keep members that no other member can reach."""
    reach = {m: dg.reachable_from(m) - {m} for m in members}
    return [
        m
        for m in members
        if not any(m in reach[other] for other in members if other != m)
    ]


def compute_parallel_groups(dg: DirectedGraph) -> list[tuple[str, ...]]:
    """
    Sibling blocks sharing an identical predecessor set (roots share the empty
    set) form a parallel group, provided no member depends on another. Groups
    with fewer than two members are dropped. Independent subgraphs with
    different inputs are not grouped.
    """
    by_inputs: dict[frozenset[str], list[str]] = {}
    for node in dg.nodes():
        key = frozenset(dg.predecessors(node))
        by_inputs.setdefault(key, []).append(node)

    groups: list[tuple[str, ...]] = []
    for members in by_inputs.values():
        if len(members) < 2:
            continue
        independent = _drop_dependent_members(dg, members)
        if len(independent) >= 2:
            groups.append(tuple(independent))
    return groups


def compute_execution_groups(
    order: Sequence[str],
    groups: Sequence[tuple[str, ...]],
) -> list[tuple[str, ...]]:
    """
    Partition the schedule into groups that run concurrently. A parallel group
    is placed at the position of its first scheduled member; every other
    block forms a singleton group.
    """
    group_of: dict[str, tuple[str, ...]] = {}
    for g in groups:
        for member in g:
            group_of.setdefault(member, g)

    emitted: set[str] = set()
    result: list[tuple[str, ...]] = []
    for node in order:
        if node in emitted:
            continue
        g = group_of.get(node)
        if g is not None:
            members = tuple(m for m in g if m not in emitted)
            result.append(members)
            emitted.update(members)
        else:
            result.append((node,))
            emitted.add(node)
    return result


def estimate_latency(
    groups: Sequence[tuple[str, ...]],
    costs: Mapping[str, float],
) -> float:
    """Wall-clock estimate: each group costs its slowest member; groups run in sequence."""
    return sum(max((costs.get(m, 0.0) for m in g), default=0.0) for g in groups)


def resolve_execution_order(flow: Flow) -> list[str]:
    """Block ids in an order consistent with data dependencies."""
    return compute_execution_order(build_digraph(flow))


def parallel_groups(flow: Flow) -> list[tuple[str, ...]]:
    """Groups of block ids eligible for concurrent execution."""
    return compute_parallel_groups(build_digraph(flow))


def execution_groups(flow: Flow) -> list[tuple[str, ...]]:
    """Concurrent groups in schedule order."""
    dg = build_digraph(flow)
    return compute_execution_groups(compute_execution_order(dg), compute_parallel_groups(dg))
