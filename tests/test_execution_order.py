"""Tests for the execution order resolver: ordering, parallel groups, execution groups, latency."""

import itertools

from blockflow.graph import BlockType, Flow
from blockflow.analysis import (
    build_digraph,
    compute_execution_groups,
    compute_execution_order,
    estimate_latency,
    execution_groups,
    parallel_groups,
    resolve_execution_order,
)


def _diamond() -> Flow:
    flow = Flow.create("diamond", flow_id="diamond")
    flow.add_block(BlockType.INPUT, "Data Input", block_id="input")
    flow.add_block(BlockType.TRANSFORM, "Map Transform", block_id="transform")
    flow.add_block(BlockType.FILTER, "Filter Items", block_id="filter1")
    flow.add_block(BlockType.FILTER, "Filter Items", block_id="filter2")
    flow.add_block(BlockType.AGGREGATE, "Group By", block_id="aggregate")
    flow.add_block(BlockType.OUTPUT, "Return Items", block_id="output")
    for src, dst in [
        ("input", "transform"),
        ("transform", "filter1"),
        ("transform", "filter2"),
        ("filter1", "aggregate"),
        ("filter2", "aggregate"),
        ("aggregate", "output"),
    ]:
        flow.connect(src, "main", dst, "main")
    return flow


def _layered_dag() -> Flow:
    """Blocks added in reverse of their data order, to defeat insertion-order luck."""
    flow = Flow.create("layers")
    for bid in ["e", "d", "c", "b", "a"]:
        flow.add_block(BlockType.TRANSFORM, "Map Transform", block_id=bid)
    for src, dst in [("a", "b"), ("a", "c"), ("b", "d"), ("c", "d"), ("d", "e"), ("a", "e")]:
        flow.connect(src, "main", dst, "main")
    return flow


def _assert_topological(flow: Flow, order: list[str]) -> None:
    index = {bid: i for i, bid in enumerate(order)}
    for conn in flow.connections:
        assert index[conn.source.block_id] < index[conn.target.block_id], conn


def test_order_respects_every_edge_on_acyclic_flows():
    for flow in (_diamond(), _layered_dag()):
        order = resolve_execution_order(flow)
        _assert_topological(flow, order)


def test_order_on_diamond():
    assert resolve_execution_order(_diamond()) == [
        "input",
        "transform",
        "filter2",
        "filter1",
        "aggregate",
        "output",
    ]


def test_every_block_appears_exactly_once_including_disconnected():
    flow = _diamond()
    flow.add_block(BlockType.CUSTOM, "Custom Code", block_id="island")
    order = resolve_execution_order(flow)
    assert sorted(order) == sorted(flow.block_ids())
    assert len(order) == len(set(order))


def test_order_terminates_on_cycles():
    """A purely cyclic component (no roots) is still scheduled."""
    flow = Flow.create("ring")
    for bid in ["x", "y", "z"]:
        flow.add_block(BlockType.TRANSFORM, "Map Transform", block_id=bid)
    for src, dst in [("x", "y"), ("y", "z"), ("z", "x")]:
        flow.connect(src, "main", dst, "main")
    order = resolve_execution_order(flow)
    assert sorted(order) == ["x", "y", "z"]


def test_order_every_permutation_of_insertion():
    """Insertion order never breaks the dependency contract."""
    edges = [("a", "b"), ("b", "c"), ("a", "c")]
    for perm in itertools.permutations(["a", "b", "c"]):
        flow = Flow.create("perm")
        for bid in perm:
            flow.add_block(BlockType.FILTER, "Filter Items", block_id=bid)
        for src, dst in edges:
            flow.connect(src, "main", dst, "main")
        _assert_topological(flow, resolve_execution_order(flow))


def test_parallel_groups_on_diamond():
    assert parallel_groups(_diamond()) == [("filter1", "filter2")]


def test_parallel_groups_roots_share_the_empty_input_set():
    flow = Flow.create("roots")
    flow.add_block(BlockType.INPUT, "Data Input", block_id="a")
    flow.add_block(BlockType.INPUT, "Data Input", block_id="b")
    flow.add_block(BlockType.OUTPUT, "Return Items", block_id="out")
    flow.connect("a", "main", "out", "main")
    flow.connect("b", "main", "out", "main")
    assert parallel_groups(flow) == [("a", "b")]


def test_parallel_groups_drop_members_that_depend_on_each_other():
    """Siblings with identical inputs are not grouped when one reaches the other through a cycle."""
    flow = Flow.create("dep")
    for bid in ["s", "x", "u", "v"]:
        flow.add_block(BlockType.TRANSFORM, "Map Transform", block_id=bid)
    for src, dst in [("s", "u"), ("s", "v"), ("x", "u"), ("x", "v"), ("u", "x")]:
        flow.connect(src, "main", dst, "main")
    assert all("v" not in g for g in parallel_groups(flow))


def test_parallel_groups_ignore_independent_subgraphs_with_different_inputs():
    flow = Flow.create("two chains")
    for bid in ["a1", "a2", "b1", "b2"]:
        flow.add_block(BlockType.TRANSFORM, "Map Transform", block_id=bid)
    flow.connect("a1", "main", "a2", "main")
    flow.connect("b1", "main", "b2", "main")
    assert parallel_groups(flow) == [("a1", "b1")]


def test_execution_groups_on_diamond():
    assert execution_groups(_diamond()) == [
        ("input",),
        ("transform",),
        ("filter1", "filter2"),
        ("aggregate",),
        ("output",),
    ]


def test_compute_execution_groups_partitions_the_schedule():
    dg = build_digraph(_layered_dag())
    order = compute_execution_order(dg)
    groups = compute_execution_groups(order, [("b", "c")])
    flat = [m for g in groups for m in g]
    assert sorted(flat) == sorted(order)
    assert ("b", "c") in groups


def test_estimate_latency_is_max_within_group_sum_across():
    groups = [("a",), ("b", "c"), ("d",)]
    costs = {"a": 10.0, "b": 5.0, "c": 30.0, "d": 1.0}
    assert estimate_latency(groups, costs) == 41.0
    assert estimate_latency([], costs) == 0.0
    assert estimate_latency([("missing",)], costs) == 0.0
