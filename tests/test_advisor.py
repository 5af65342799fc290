"""Tests for the optimization advisor: merging, ranking, acceptance, scoring, fallback."""

import asyncio
import logging

from blockflow.graph import AntiPattern, BlockType, Flow, PatternAnalysis
from blockflow.analysis import detect_patterns, extract_features
from blockflow.optimization.advisor import (
    OptimizationAdvisor,
    accept_opportunities,
    composite_confidence,
    expected_improvement,
    merge_opportunities,
    rank_opportunities,
)
from blockflow.optimization.data_model import (
    AppliedOptimization,
    OptimizationOpportunity,
    OptimizerSettings,
)
from blockflow.optimization.heuristics import assess_risk, heuristic_predictions, risk_level


def _opp(kind, targets=("a",), gain=20.0, confidence=70.0):
    return OptimizationOpportunity(kind, tuple(targets), gain, "medium", confidence)


def _applied(confidence, gain=10.0):
    return AppliedOptimization("caching", "Cache", ("a",), gain, confidence)


def _no_patterns(*anti):
    return PatternAnalysis(tuple(anti), (), (), ())


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


class _FailingOracle:
    async def suggest(self, request):
        raise RuntimeError("boom")


class _StaticOracle:
    def __init__(self, answer):
        self.answer = answer

    async def suggest(self, request):
        return self.answer


def _advise(flow, oracle=None, settings=None):
    features = extract_features(flow)
    patterns = detect_patterns(flow, features)
    advisor = OptimizationAdvisor(oracle, settings)
    return asyncio.run(advisor.advise(flow, features, patterns))


def test_merge_keeps_primary_and_fills_missing_types():
    primary = [_opp("caching", ("db",))]
    fallback = [
        _opp("caching", ("other",)),
        _opp("parallelization", ("x", "y")),
        _opp("parallelization", ("z",)),
    ]
    merged = merge_opportunities(primary, fallback)
    assert [(o.type, o.target_blocks) for o in merged] == [
        ("caching", ("db",)),
        ("parallelization", ("x", "y")),
    ]


def test_rank_orders_by_gain_times_confidence():
    low = _opp("merging", gain=10, confidence=90)
    high = _opp("caching", gain=50, confidence=80)
    assert rank_opportunities([low, high], _no_patterns()) == [high, low]


def test_rank_boosts_opportunities_on_anti_pattern_blocks():
    plain = _opp("caching", ("a",), gain=20, confidence=70)
    hot = _opp("parallelization", ("db",), gain=20, confidence=70)
    mismatch = AntiPattern("sync_async_mismatch", "medium", ("db",), "d", "r", 40)
    assert rank_opportunities([plain, hot], _no_patterns(mismatch))[0] is hot


def test_rank_is_stable_for_equal_scores():
    first = _opp("caching", ("a",))
    second = _opp("merging", ("b",))
    assert rank_opportunities([first, second], _no_patterns()) == [first, second]


def test_accept_requires_confidence_strictly_above_floor():
    ranked = [_opp("caching", confidence=60), _opp("parallelization", confidence=60.5)]
    accepted = accept_opportunities(ranked, 60)
    assert [a.type for a in accepted] == ["parallelization"]
    assert accepted[0].description == "Execute independent blocks in parallel"


def test_composite_confidence():
    assert composite_confidence([_applied(70), _applied(80)]) == 75.0
    assert composite_confidence([_applied(70), _applied(80)], oracle_confidence=50) == 37.5
    assert composite_confidence([]) == 0.0
    assert composite_confidence([], oracle_confidence=90) == 0.0


def test_expected_improvement_has_diminishing_returns():
    assert expected_improvement([50, 30]) == 65.0
    assert expected_improvement([30, 50]) == 65.0
    assert expected_improvement([20]) == 20.0
    assert expected_improvement([]) == 0.0


def test_expected_improvement_never_exceeds_cap():
    assert expected_improvement([100, 100]) == 90.0
    assert expected_improvement([80, 80, 80], cap=50) == 50.0
    for gains in ([10] * 30, [99, 1], [60, 60]):
        assert expected_improvement(gains) <= 90.0


def test_risk_levels():
    assert risk_level(3) == "low"
    assert risk_level(6) == "medium"
    assert risk_level(11) == "high"
    assert assess_risk(extract_features(_diamond())).factors == ()


def test_heuristic_predictions_on_diamond():
    flow = _diamond()
    predictions = heuristic_predictions(flow, extract_features(flow))
    assert predictions.source == "heuristic"
    assert predictions.confidence == 60.0
    assert len(predictions.opportunities) == 1
    opp = predictions.opportunities[0]
    assert opp.type == "parallelization"
    assert opp.target_blocks == ("filter1", "filter2")
    assert (opp.expected_gain, opp.confidence) == (20.0, 70.0)
    assert predictions.expected_performance_gain == 20.0
    assert predictions.risk_assessment.overall == "low"


def test_advise_without_oracle_uses_heuristics():
    advice = _advise(_diamond())
    assert advice.oracle_confidence is None
    assert advice.predictions.source == "heuristic"
    assert [c.type for c in advice.candidates] == ["parallelization"]
    assert advice.candidates[0].affected_blocks == ("filter1", "filter2")


def test_advise_falls_back_and_logs_when_oracle_fails(caplog):
    with caplog.at_level(logging.WARNING, logger="blockflow"):
        advice = _advise(_diamond(), oracle=_FailingOracle())
    assert advice.predictions.source == "heuristic"
    assert advice.oracle_confidence is None
    assert [c.type for c in advice.candidates] == ["parallelization"]
    assert any("Oracle unavailable for flow diamond" in r.getMessage() for r in caplog.records)


def test_advise_prefers_oracle_opportunities_of_the_same_type():
    oracle = _StaticOracle(
        {
            "confidence": 80,
            "opportunities": [
                {"type": "parallelization", "target": ["filter1", "filter2"], "expected_gain": 40, "confidence": 90},
                {"type": "merging", "target": ["filter1"], "expected_gain": 10, "confidence": 40},
            ],
        }
    )
    advice = _advise(_diamond(), oracle=oracle)
    assert advice.oracle_confidence == 80.0
    assert advice.predictions.source == "oracle"
    kinds = [o.type for o in advice.predictions.opportunities]
    assert kinds.count("parallelization") == 1
    assert [c.type for c in advice.candidates] == ["parallelization"]
    assert advice.candidates[0].estimated_gain == 40.0


def test_advise_respects_configured_floor():
    advice = _advise(_diamond(), settings=OptimizerSettings(confidence_floor=75))
    assert advice.candidates == ()
    assert len(advice.predictions.opportunities) == 1
