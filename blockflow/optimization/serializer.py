"""
Optimization serializer: deterministic JSON-friendly dicts for optimization
results, cache statistics, and performance predictions.
"""

from __future__ import annotations

from datetime import datetime

from blockflow.graph.flow import flow_to_dict
from blockflow.optimization.data_model import (
    AppliedOptimization,
    CachedModel,
    CacheStats,
    ModelVersion,
    OptimizationOpportunity,
    OptimizationPredictions,
    OptimizedFlow,
    PerformancePrediction,
)

OPTIMIZATION_SCHEMA_VERSION = "1.0"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def opportunity_to_dict(o: OptimizationOpportunity) -> dict:
    return {
        "type": o.type,
        "target_blocks": list(o.target_blocks),
        "expected_gain": o.expected_gain,
        "difficulty": o.difficulty,
        "confidence": o.confidence,
    }


def applied_optimization_to_dict(a: AppliedOptimization) -> dict:
    return {
        "type": a.type,
        "description": a.description,
        "affected_blocks": list(a.affected_blocks),
        "estimated_gain": a.estimated_gain,
        "confidence": a.confidence,
    }


def predictions_to_dict(p: OptimizationPredictions) -> dict:
    """Opportunities keep rank order; recommendations are sorted by priority (highest first)."""
    risk = p.risk_assessment
    return {
        "source": p.source,
        "expected_performance_gain": p.expected_performance_gain,
        "confidence": p.confidence,
        "opportunities": [opportunity_to_dict(o) for o in p.opportunities],
        "risk_assessment": {
            "overall": risk.overall,
            "factors": [
                {"factor": f.factor, "severity": f.severity, "description": f.description}
                for f in risk.factors
            ],
            "mitigation": list(risk.mitigation),
        },
        "recommendations": [
            {
                "category": r.category,
                "priority": r.priority,
                "description": r.description,
                "implementation": r.implementation,
                "impact": r.impact,
            }
            for r in sorted(p.recommendations, key=lambda r: (-r.priority, r.description))
        ],
    }


def optimized_flow_to_dict(result: OptimizedFlow, *, include_flows: bool = True) -> dict:
    """
    Return a JSON-serializable dict. With include_flows=False only the
    flow ids are written, not the full original and optimized documents.
    """
    base = {
        "schema_version": OPTIMIZATION_SCHEMA_VERSION,
        "flow_id": result.original.id,
        "optimized_flow_id": result.optimized.id,
        "from_cache": result.from_cache,
        "expected_improvement": result.expected_improvement,
        "confidence": result.confidence,
        "applied_optimizations": [
            applied_optimization_to_dict(a) for a in result.applied_optimizations
        ],
        "predictions": predictions_to_dict(result.predictions),
    }
    if include_flows:
        base["original"] = flow_to_dict(result.original)
        base["optimized"] = flow_to_dict(result.optimized)
    return base


def model_version_to_dict(v: ModelVersion) -> dict:
    return {
        "version": v.version,
        "created_at": v.created_at.isoformat(),
        "accuracy": v.accuracy,
        "changes": list(v.changes),
    }


def cached_model_to_dict(m: CachedModel) -> dict:
    return {
        "signature": m.signature,
        "version": m.version,
        "created_at": m.created_at.isoformat(),
        "last_used": m.last_used.isoformat(),
        "metadata": {
            "accuracy": m.metadata.accuracy,
            "confidence": m.metadata.confidence,
            "usage_count": m.metadata.usage_count,
        },
        "optimizations": [applied_optimization_to_dict(a) for a in m.optimizations],
    }


def cache_stats_to_dict(s: CacheStats) -> dict:
    return {
        "total_models": s.total_models,
        "total_usage": s.total_usage,
        "average_accuracy": s.average_accuracy,
        "oldest_created_at": _iso(s.oldest_created_at),
        "newest_created_at": _iso(s.newest_created_at),
    }


def performance_to_dict(p: PerformancePrediction) -> dict:
    t = p.execution_time
    historical = None
    if p.historical is not None:
        historical = {
            "similar_flows": list(p.historical.similar_flows),
            "average_execution_ms": p.historical.average_execution_ms,
            "trend": p.historical.trend,
        }
    return {
        "flow_id": p.flow_id,
        "execution_time": {
            "estimated_ms": t.estimated_ms,
            "best_case_ms": t.best_case_ms,
            "worst_case_ms": t.worst_case_ms,
            "percentiles": {"p50": t.p50_ms, "p95": t.p95_ms, "p99": t.p99_ms},
            "confidence": t.confidence,
            "bottlenecks": list(t.bottlenecks),
            "blocks": [
                {"block_id": b.block_id, "estimated_ms": b.estimated_ms, "bottleneck": b.bottleneck}
                for b in t.block_timings
            ],
        },
        "memory": {
            "peak_bytes": p.memory.peak_bytes,
            "average_bytes": p.memory.average_bytes,
            "hotspots": list(p.memory.hotspots),
        },
        "historical": historical,
        "warnings": sorted(p.warnings),
    }
