"""
Opinion oracle boundary: request construction, the call with a hard timeout,
and validation/clamping of whatever comes back.

The oracle is an unreliable external text-completion service. Everything that
can go wrong here surfaces as OracleFailure; callers fall back to heuristics.
"""

from __future__ import annotations

import asyncio
import json
import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol

from blockflow.errors import OracleFailure
from blockflow.graph.analysis_model import (
    FlowFeatures,
    PatternAnalysis,
    features_to_dict,
)
from blockflow.optimization.data_model import (
    DIFFICULTIES,
    OPTIMIZATION_TYPES,
    RECOMMENDATION_CATEGORIES,
    RISK_LEVELS,
    OptimizationOpportunity,
    OptimizationPredictions,
    Recommendation,
    RiskAssessment,
    RiskFactor,
)

DEFAULT_ORACLE_CONFIDENCE = 50.0


@dataclass(frozen=True)
class OracleRequest:
    """Structured request: feature dict, pattern summary, and the rendered prompt."""

    flow_id: str
    features: dict
    pattern_summary: dict
    prompt: str


class OpinionOracle(Protocol):
    """Anything that can turn an OracleRequest into a JSON object (or JSON text)."""

    async def suggest(self, request: OracleRequest) -> Any: ...


class PromptOracle:
    """Adapter for a plain ``async complete(prompt) -> str | dict`` completion function."""

    def __init__(self, complete: Callable[[str], Awaitable[Any]]) -> None:
        self._complete = complete

    async def suggest(self, request: OracleRequest) -> Any:
        return await self._complete(request.prompt)


_PROMPT_TEMPLATE = """\
Analyze this block flow for optimization opportunities.

Flow features:
{features}

Pattern summary:
{patterns}

Respond with a single JSON object:
{{
  "expected_performance_gain": <0-100>,
  "confidence": <0-100>,
  "opportunities": [
    {{"type": "parallelization|caching|merging|reordering|elimination",
      "target": ["block ids"], "expected_gain": <0-100>,
      "difficulty": "low|medium|high", "confidence": <0-100>}}
  ],
  "risk_assessment": {{
    "overall": "low|medium|high",
    "factors": [{{"factor": "...", "severity": "low|medium|high", "description": "..."}}],
    "mitigation": ["..."]
  }},
  "recommendations": [
    {{"category": "performance|maintainability|scalability|reliability",
      "priority": <1-10>, "description": "...", "implementation": "...", "impact": "..."}}
  ]
}}

Consider parallel execution, caching of expensive operations, merging of
compatible blocks, execution order, and redundant blocks.
"""


def summarize_patterns(patterns: PatternAnalysis) -> dict:
    """Compact pattern summary: counts plus the anti-pattern findings the oracle should weigh."""
    return {
        "anti_patterns": [
            {
                "type": a.type,
                "severity": a.severity,
                "location": list(a.location),
                "estimated_impact": a.estimated_impact,
            }
            for a in patterns.anti_patterns
        ],
        "optimization_patterns": [
            {"type": o.type, "applicable_blocks": list(o.applicable_blocks)}
            for o in patterns.optimization_patterns
        ],
        "scalability": [s.pattern for s in patterns.scalability_patterns],
        "security": [s.pattern for s in patterns.security_patterns],
    }


def build_oracle_request(
    flow_id: str, features: FlowFeatures, patterns: PatternAnalysis
) -> OracleRequest:
    features_dict = features_to_dict(features)
    summary = summarize_patterns(patterns)
    prompt = _PROMPT_TEMPLATE.format(
        features=json.dumps(features_dict, indent=2, sort_keys=True),
        patterns=json.dumps(summary, indent=2, sort_keys=True),
    )
    return OracleRequest(
        flow_id=flow_id, features=features_dict, pattern_summary=summary, prompt=prompt
    )


# --- response validation ---


def clamp(value: Any, low: float = 0.0, high: float = 100.0, default: float = 0.0) -> float:
    """Clamp a numeric value into [low, high]; non-numbers and NaN become default."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if math.isnan(value):
        return default
    return float(min(high, max(low, value)))


def _pick(data: dict, *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return default


def _enum(value: Any, allowed: tuple[str, ...], default: str) -> str:
    return value if isinstance(value, str) and value in allowed else default


def _str_list(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(v for v in value if isinstance(v, str))


def _parse_opportunity(raw: Any) -> OptimizationOpportunity | None:
    if not isinstance(raw, dict):
        return None
    kind = raw.get("type")
    if kind not in OPTIMIZATION_TYPES:
        return None
    return OptimizationOpportunity(
        type=kind,
        target_blocks=_str_list(_pick(raw, "target", "target_blocks", "targetBlocks")),
        expected_gain=clamp(_pick(raw, "expected_gain", "expectedGain")),
        difficulty=_enum(raw.get("difficulty"), DIFFICULTIES, "medium"),  # type: ignore[arg-type]
        confidence=clamp(raw.get("confidence"), default=DEFAULT_ORACLE_CONFIDENCE),
    )


def _parse_risk(raw: Any) -> RiskAssessment:
    if not isinstance(raw, dict):
        return RiskAssessment(overall="medium")
    factors = []
    for f in raw.get("factors") or []:
        if not isinstance(f, dict):
            continue
        factors.append(
            RiskFactor(
                factor=str(f.get("factor", "unspecified")),
                severity=_enum(f.get("severity"), RISK_LEVELS, "medium"),  # type: ignore[arg-type]
                description=str(f.get("description", "")),
            )
        )
    return RiskAssessment(
        overall=_enum(_pick(raw, "overall", "overallRisk"), RISK_LEVELS, "medium"),  # type: ignore[arg-type]
        factors=tuple(factors),
        mitigation=_str_list(raw.get("mitigation")),
    )


def _parse_recommendation(raw: Any) -> Recommendation | None:
    if not isinstance(raw, dict) or not isinstance(raw.get("description"), str):
        return None
    return Recommendation(
        category=_enum(raw.get("category"), RECOMMENDATION_CATEGORIES, "performance"),  # type: ignore[arg-type]
        priority=int(clamp(raw.get("priority"), 1, 10, default=5)),
        description=raw["description"],
        implementation=str(raw.get("implementation", "")),
        impact=str(raw.get("impact", "")),
    )


def parse_oracle_response(raw: Any) -> OptimizationPredictions:
    """
    Validate and clamp an oracle answer. Unknown opportunity types and
    malformed entries are dropped; numbers are clamped to [0, 100]; enum
    fields fall back to defaults.

    Raises:
        OracleFailure: If the answer is not JSON or not a JSON object.
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise OracleFailure(f"Oracle returned malformed JSON: {e}") from e
    if not isinstance(raw, dict):
        raise OracleFailure(f"Oracle returned {type(raw).__name__}, expected a JSON object")

    opportunities = _pick(raw, "opportunities", "optimizationOpportunities", default=[])
    recommendations = raw.get("recommendations") or []
    if not isinstance(opportunities, list) or not isinstance(recommendations, list):
        raise OracleFailure("Oracle 'opportunities' and 'recommendations' must be lists")

    parsed_opps = [o for o in map(_parse_opportunity, opportunities) if o is not None]
    parsed_recs = [r for r in map(_parse_recommendation, recommendations) if r is not None]

    return OptimizationPredictions(
        expected_performance_gain=clamp(
            _pick(raw, "expected_performance_gain", "expectedPerformanceGain")
        ),
        confidence=clamp(raw.get("confidence"), default=DEFAULT_ORACLE_CONFIDENCE),
        opportunities=tuple(parsed_opps),
        risk_assessment=_parse_risk(_pick(raw, "risk_assessment", "riskAssessment")),
        recommendations=tuple(parsed_recs),
        source="oracle",
    )


async def consult_oracle(
    oracle: OpinionOracle, request: OracleRequest, timeout: float
) -> OptimizationPredictions:
    """
    Ask the oracle, abandoning the call after timeout seconds.

    Raises:
        OracleFailure: On timeout, any exception from the oracle, or an unusable answer.
    """
    try:
        raw = await asyncio.wait_for(oracle.suggest(request), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise OracleFailure(f"Oracle timed out after {timeout}s") from e
    except OracleFailure:
        raise
    except Exception as e:
        raise OracleFailure(f"Oracle call failed: {type(e).__name__}: {e}") from e
    return parse_oracle_response(raw)
