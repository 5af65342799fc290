"""Tests for the oracle boundary: response clamping, malformed answers, timeouts."""

import asyncio
import json
import math

import pytest

from blockflow.errors import OracleFailure
from blockflow.graph import BlockType, Flow
from blockflow.analysis import detect_patterns, extract_features
from blockflow.optimization.oracle import (
    PromptOracle,
    build_oracle_request,
    clamp,
    consult_oracle,
    parse_oracle_response,
)


def _request():
    flow = Flow.create("api", flow_id="api")
    flow.add_block(BlockType.INPUT, "Data Input", block_id="in")
    flow.add_block(BlockType.EXTERNAL_CALL, "HTTP Request", block_id="http")
    flow.connect("in", "main", "http", "main")
    return build_oracle_request(flow.id, extract_features(flow), detect_patterns(flow))


class _StaticOracle:
    def __init__(self, answer):
        self.answer = answer
        self.requests = []

    async def suggest(self, request):
        self.requests.append(request)
        return self.answer


class _RaisingOracle:
    async def suggest(self, request):
        raise ConnectionError("service down")


class _SlowOracle:
    async def suggest(self, request):
        await asyncio.sleep(5)
        return {}


def test_clamp():
    assert clamp(250) == 100.0
    assert clamp(-5) == 0.0
    assert clamp(42.5) == 42.5
    assert clamp("80", default=7) == 7
    assert clamp(True, default=3) == 3
    assert clamp(math.nan, default=9) == 9
    assert clamp(None) == 0.0
    assert clamp(42, 1, 10) == 10.0


def test_request_carries_features_and_pattern_summary():
    request = _request()
    assert request.flow_id == "api"
    assert request.features["node_count"] == 2
    assert request.pattern_summary["optimization_patterns"][0]["type"] == "caching"
    assert '"node_count": 2' in request.prompt
    json.dumps(request.pattern_summary)


def test_parse_clamps_out_of_range_values():
    predictions = parse_oracle_response(
        {
            "expected_performance_gain": 250,
            "confidence": -5,
            "opportunities": [
                {
                    "type": "caching",
                    "target": ["http"],
                    "expected_gain": 40,
                    "difficulty": "extreme",
                    "confidence": 300,
                },
                {"type": "teleport", "target": ["http"], "confidence": 99},
            ],
            "recommendations": [
                {"category": "speed", "priority": 42, "description": "Cache the call"},
                {"priority": 3},
            ],
        }
    )
    assert predictions.expected_performance_gain == 100.0
    assert predictions.confidence == 0.0
    assert predictions.source == "oracle"
    assert len(predictions.opportunities) == 1
    opp = predictions.opportunities[0]
    assert opp.confidence == 100.0
    assert opp.difficulty == "medium"
    assert opp.target_blocks == ("http",)
    assert len(predictions.recommendations) == 1
    rec = predictions.recommendations[0]
    assert (rec.category, rec.priority) == ("performance", 10)
    assert predictions.risk_assessment.overall == "medium"


def test_parse_accepts_camel_case_keys_and_json_text():
    text = json.dumps(
        {
            "expectedPerformanceGain": 35,
            "confidence": 75,
            "optimizationOpportunities": [
                {"type": "parallelization", "targetBlocks": ["a", "b", 7], "expectedGain": 20}
            ],
            "riskAssessment": {
                "overallRisk": "low",
                "factors": [{"factor": "size", "severity": "critical"}, "junk"],
                "mitigation": ["test first", 3],
            },
        }
    )
    predictions = parse_oracle_response(text)
    assert predictions.expected_performance_gain == 35.0
    opp = predictions.opportunities[0]
    assert opp.target_blocks == ("a", "b")
    assert opp.confidence == 50.0
    risk = predictions.risk_assessment
    assert risk.overall == "low"
    assert [f.severity for f in risk.factors] == ["medium"]
    assert risk.mitigation == ("test first",)


@pytest.mark.parametrize(
    "raw",
    [
        "{not json",
        "[1, 2]",
        42,
        None,
        {"opportunities": "many"},
        {"recommendations": {"a": 1}},
    ],
)
def test_parse_rejects_unusable_answers(raw):
    with pytest.raises(OracleFailure):
        parse_oracle_response(raw)


def test_consult_oracle_returns_parsed_predictions():
    oracle = _StaticOracle({"confidence": 90, "opportunities": []})
    request = _request()
    predictions = asyncio.run(consult_oracle(oracle, request, timeout=1.0))
    assert predictions.confidence == 90.0
    assert oracle.requests == [request]


def test_consult_oracle_timeout_becomes_failure():
    with pytest.raises(OracleFailure, match="timed out"):
        asyncio.run(consult_oracle(_SlowOracle(), _request(), timeout=0.01))


def test_consult_oracle_exception_becomes_failure():
    with pytest.raises(OracleFailure) as exc:
        asyncio.run(consult_oracle(_RaisingOracle(), _request(), timeout=1.0))
    assert isinstance(exc.value.__cause__, ConnectionError)


def test_prompt_oracle_passes_the_prompt_through():
    prompts = []

    async def complete(prompt):
        prompts.append(prompt)
        return '{"confidence": 65}'

    request = _request()
    predictions = asyncio.run(consult_oracle(PromptOracle(complete), request, timeout=1.0))
    assert prompts == [request.prompt]
    assert predictions.confidence == 65.0
