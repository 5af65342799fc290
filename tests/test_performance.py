"""Tests for performance prediction: block profiles, time, memory, historical comparison."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone

import pytest

from blockflow.graph import BlockType, Flow
from blockflow.analysis import extract_features
from blockflow.optimization.data_model import HistoricalRecord
from blockflow.optimization.performance import (
    BLOCK_PROFILES,
    compare_with_history,
    feature_similarity,
    loop_iterations,
    performance_trend,
    predict_execution_time,
    predict_memory,
    predict_performance,
)


def _in_out() -> Flow:
    flow = Flow.create("io", flow_id="io")
    flow.add_block(BlockType.INPUT, "Data Input", block_id="in")
    flow.add_block(BlockType.OUTPUT, "Return Items", block_id="out")
    flow.connect("in", "main", "out", "main")
    return flow


def _api_flow() -> Flow:
    flow = Flow.create("api", flow_id="api")
    flow.add_block(BlockType.INPUT, "Data Input", block_id="in")
    flow.add_block(BlockType.EXTERNAL_CALL, "HTTP Request", block_id="http")
    flow.add_block(BlockType.OUTPUT, "Return Items", block_id="out")
    flow.connect("in", "main", "http", "main")
    flow.connect("http", "main", "out", "main")
    return flow


def _records(flow_id, features, times):
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return [
        HistoricalRecord(flow_id, features, t, start + timedelta(hours=i))
        for i, t in enumerate(times)
    ]


class _Store:
    def __init__(self, records):
        self.records = records

    async def recent_executions(self):
        return self.records


class _BrokenStore:
    async def recent_executions(self):
        raise ConnectionError("metrics offline")


class _SlowStore:
    async def recent_executions(self):
        await asyncio.sleep(5)
        return []


def test_every_block_type_has_a_profile():
    assert set(BLOCK_PROFILES) == set(BlockType)


def test_two_block_flow_time():
    prediction = predict_execution_time(_in_out())
    assert prediction.estimated_ms == 11.0
    assert prediction.best_case_ms <= prediction.estimated_ms <= prediction.worst_case_ms
    assert prediction.confidence == 0.8
    assert prediction.bottlenecks == ()


def test_expensive_block_is_a_bottleneck():
    prediction = predict_execution_time(_api_flow())
    timings = {t.block_id: t.estimated_ms for t in prediction.block_timings}
    assert timings == {"in": 5.5, "http": 264.0, "out": 5.5}
    assert prediction.bottlenecks == ("http",)
    assert prediction.estimated_ms == 275.0
    assert prediction.best_case_ms == 220.0
    assert prediction.worst_case_ms == 412.5
    assert prediction.p50_ms == 275.0
    assert prediction.p95_ms == pytest.approx(330.0)
    assert prediction.p99_ms == pytest.approx(385.0)


def test_parallel_group_costs_its_slowest_member():
    flow = Flow.create("fan")
    flow.add_block(BlockType.INPUT, "Data Input", block_id="in")
    flow.add_block(BlockType.FILTER, "Filter Items", block_id="a")
    flow.add_block(BlockType.DATABASE, "Query", block_id="b")
    flow.connect("in", "main", "a", "main")
    flow.connect("in", "main", "b", "main")
    prediction = predict_execution_time(flow)
    timings = {t.block_id: t.estimated_ms for t in prediction.block_timings}
    assert prediction.estimated_ms == pytest.approx(timings["in"] + timings["b"])


def test_loop_iterations():
    flow = Flow.create("loop")
    loop = flow.add_block(BlockType.LOOP, "For Each", block_id="loop")
    assert loop_iterations(loop) == 10.0
    flow.update_parameter("loop", "iterations", 3)
    assert loop_iterations(loop) == 3.0
    flow.update_parameter("loop", "iterations", -1)
    assert loop_iterations(loop) == 10.0


def test_loop_cost_scales_with_iterations():
    flow = Flow.create("loop")
    flow.add_block(BlockType.LOOP, "For Each", block_id="loop")
    flow.update_parameter("loop", "iterations", 2)
    # 50ms * (1 + 0.05 * 1 parameter) * 2 iterations
    assert predict_execution_time(flow).estimated_ms == 105.0


def test_memory_prediction():
    memory = predict_memory(_in_out())
    assert memory.peak_bytes == 1228
    assert memory.average_bytes == 1024
    assert memory.hotspots == ()
    assert predict_memory(Flow.create("empty")).peak_bytes == 0


def test_memory_hotspots_for_loops_and_wide_merges():
    flow = Flow.create("mem")
    flow.add_block(BlockType.LOOP, "For Each", block_id="loop")
    flow.add_block(BlockType.AGGREGATE, "Group By", block_id="agg")
    for i in range(4):
        flow.add_block(BlockType.INPUT, "Data Input", block_id=f"in{i}")
        flow.connect(f"in{i}", "main", "agg", "main")
    memory = predict_memory(flow)
    assert memory.hotspots == ("loop", "agg")
    assert memory.peak_bytes == int(2048 * 10 * 1.2)


def test_feature_similarity_and_trend():
    f = extract_features(_api_flow())
    assert feature_similarity(f, f) == 1.0
    assert feature_similarity(f, extract_features(Flow.create("empty"))) < 0.7
    assert performance_trend([30, 20, 10]) == "improving"
    assert performance_trend([5, 10, 30, 20, 10]) == "improving"
    assert performance_trend([10, 20, 30]) == "degrading"
    assert performance_trend([10, 30, 20]) == "stable"
    assert performance_trend([10, 5]) == "stable"


def test_compare_with_history():
    features = extract_features(_api_flow())
    records = (
        _records("api", features, [300, 280, 260])
        + _records("other", features, [100, 140])
        + _records("tiny", extract_features(Flow.create("empty")), [1])
    )
    comparison = compare_with_history("api", features, records)
    assert comparison.similar_flows == ("other",)
    assert comparison.average_execution_ms == 100.0
    assert comparison.trend == "improving"
    assert compare_with_history("api", features, []) is None


def test_predict_performance_with_store():
    flow = _api_flow()
    records = _records("twin", extract_features(flow), [250])
    prediction = asyncio.run(predict_performance(flow, _Store(records)))
    assert prediction.flow_id == "api"
    assert prediction.historical.similar_flows == ("twin",)
    assert prediction.historical.trend == "stable"
    assert prediction.warnings == ("Bottleneck blocks: http",)


def test_predict_performance_without_store():
    prediction = asyncio.run(predict_performance(_in_out()))
    assert prediction.historical is None
    assert prediction.warnings == ()


def test_predict_performance_survives_store_failure(caplog):
    with caplog.at_level(logging.WARNING, logger="blockflow"):
        prediction = asyncio.run(predict_performance(_in_out(), _BrokenStore()))
    assert prediction.historical is None
    assert prediction.warnings == ("Historical metrics unavailable",)
    assert prediction.execution_time.estimated_ms == 11.0
    assert any("metrics offline" in r.getMessage() for r in caplog.records)


def test_predict_performance_abandons_slow_store():
    prediction = asyncio.run(
        predict_performance(_in_out(), _SlowStore(), history_timeout=0.01)
    )
    assert prediction.historical is None
    assert "Historical metrics unavailable" in prediction.warnings
