"""
Optimization data model: opportunities, predictions, applied changes, cache
records, performance predictions, and optimizer settings.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from blockflow.graph.analysis_model import FlowAnalysis, FlowFeatures
from blockflow.graph.flow import Flow

OptimizationType = Literal["parallelization", "caching", "merging", "reordering", "elimination"]
Difficulty = Literal["low", "medium", "high"]
RiskLevel = Literal["low", "medium", "high"]
RecommendationCategory = Literal["performance", "maintainability", "scalability", "reliability"]
PredictionSource = Literal["oracle", "heuristic"]
Trend = Literal["improving", "degrading", "stable"]

OPTIMIZATION_TYPES: tuple[str, ...] = (
    "parallelization",
    "caching",
    "merging",
    "reordering",
    "elimination",
)
DIFFICULTIES: tuple[str, ...] = ("low", "medium", "high")
RISK_LEVELS: tuple[str, ...] = ("low", "medium", "high")
RECOMMENDATION_CATEGORIES: tuple[str, ...] = (
    "performance",
    "maintainability",
    "scalability",
    "reliability",
)


@dataclass(frozen=True)
class OptimizerSettings:
    """Tunable thresholds for the advisor, applier, cache, and oracle boundary."""

    oracle_timeout_seconds: float = 10.0
    confidence_floor: int = 60  # Opportunities must be strictly above this
    improvement_cap: float = 90.0
    nesting_threshold: int = 5
    cache_capacity: int = 100
    cache_eviction_fraction: float = 0.2
    cache_max_age_hours: float = 24.0
    cache_min_accuracy: float = 0.7
    cache_ttl_seconds: int = 300  # Written onto blocks by the caching optimization


@dataclass(frozen=True)
class OptimizationOpportunity:
    """A candidate optimization, before acceptance."""

    type: OptimizationType
    target_blocks: tuple[str, ...]
    expected_gain: float  # Percent, 0-100
    difficulty: Difficulty
    confidence: float  # Percent, 0-100


@dataclass(frozen=True)
class AppliedOptimization:
    """An optimization accepted and applied (or recorded) on a flow copy."""

    type: OptimizationType
    description: str
    affected_blocks: tuple[str, ...]
    estimated_gain: float
    confidence: float


@dataclass(frozen=True)
class RiskFactor:
    factor: str
    severity: RiskLevel
    description: str


@dataclass(frozen=True)
class RiskAssessment:
    overall: RiskLevel
    factors: tuple[RiskFactor, ...] = ()
    mitigation: tuple[str, ...] = ()


@dataclass(frozen=True)
class Recommendation:
    category: RecommendationCategory
    priority: int  # 1-10
    description: str
    implementation: str
    impact: str


@dataclass(frozen=True)
class OptimizationPredictions:
    """What the advisor believes about a flow, from the oracle or the heuristics."""

    expected_performance_gain: float
    confidence: float
    opportunities: tuple[OptimizationOpportunity, ...]
    risk_assessment: RiskAssessment
    recommendations: tuple[Recommendation, ...] = ()
    source: PredictionSource = "heuristic"


@dataclass(frozen=True)
class OptimizedFlow:
    """Result of one optimize() call. The original flow is never mutated."""

    original: Flow
    optimized: Flow
    predictions: OptimizationPredictions
    applied_optimizations: tuple[AppliedOptimization, ...]
    expected_improvement: float
    confidence: float
    from_cache: bool = False
    analysis: FlowAnalysis | None = None


@dataclass(frozen=True)
class ModelVersion:
    """One put() of a signature: when, how accurate, and what changed."""

    version: int
    created_at: datetime
    accuracy: float
    changes: tuple[str, ...] = ()


@dataclass
class ModelMetadata:
    accuracy: float  # 0-1
    confidence: float  # 0-100
    usage_count: int = 0


@dataclass
class CachedModel:
    """
    Memoized advisor output for a structural signature.

    Mutable: last_used and metadata.usage_count change on every hit, under
    the cache lock.
    """

    signature: str
    version: int
    created_at: datetime
    last_used: datetime
    features: FlowFeatures
    predictions: OptimizationPredictions
    optimizations: tuple[AppliedOptimization, ...]
    metadata: ModelMetadata


@dataclass(frozen=True)
class CacheStats:
    total_models: int
    total_usage: int
    average_accuracy: float
    oldest_created_at: datetime | None = None
    newest_created_at: datetime | None = None


# --- performance prediction ---


@dataclass(frozen=True)
class BlockProfile:
    """Baseline cost of one block kind."""

    average_ms: float
    memory_bytes: int
    cpu_intensity: float  # 0-1


@dataclass(frozen=True)
class BlockTiming:
    block_id: str
    estimated_ms: float
    bottleneck: bool = False


@dataclass(frozen=True)
class ExecutionTimePrediction:
    """
    Wall-clock estimate for one run.

    Invariant: best_case_ms <= estimated_ms <= worst_case_ms
    """

    estimated_ms: float
    best_case_ms: float
    worst_case_ms: float
    p50_ms: float
    p95_ms: float
    p99_ms: float
    confidence: float  # 0-1
    block_timings: tuple[BlockTiming, ...] = ()
    bottlenecks: tuple[str, ...] = ()


@dataclass(frozen=True)
class MemoryPrediction:
    peak_bytes: int
    average_bytes: int
    hotspots: tuple[str, ...] = ()


@dataclass(frozen=True)
class HistoricalRecord:
    """One past execution read from the metrics store."""

    flow_id: str
    features: FlowFeatures
    execution_time_ms: float
    recorded_at: datetime


@dataclass(frozen=True)
class HistoricalComparison:
    similar_flows: tuple[str, ...]
    average_execution_ms: float
    trend: Trend


@dataclass(frozen=True)
class PerformancePrediction:
    flow_id: str
    execution_time: ExecutionTimePrediction
    memory: MemoryPrediction
    historical: HistoricalComparison | None = None
    warnings: tuple[str, ...] = ()
