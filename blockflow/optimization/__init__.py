"""Optimization: oracle boundary, heuristics, advisor, applier, model cache, performance, FlowOptimizer."""

from blockflow.optimization.advisor import (
    OPTIMIZATION_DESCRIPTIONS,
    Advice,
    OptimizationAdvisor,
    composite_confidence,
    expected_improvement,
)
from blockflow.optimization.applier import apply_optimizations
from blockflow.optimization.cache import ModelCache, compute_signature
from blockflow.optimization.data_model import (
    AppliedOptimization,
    CachedModel,
    CacheStats,
    ModelVersion,
    OptimizationOpportunity,
    OptimizationPredictions,
    OptimizedFlow,
    OptimizerSettings,
    PerformancePrediction,
    Recommendation,
    RiskAssessment,
    RiskFactor,
)
from blockflow.optimization.heuristics import heuristic_predictions
from blockflow.optimization.optimizer import FlowOptimizer, optimize
from blockflow.optimization.oracle import (
    OpinionOracle,
    OracleRequest,
    PromptOracle,
    build_oracle_request,
    consult_oracle,
    parse_oracle_response,
)
from blockflow.optimization.performance import (
    HistoricalMetricsStore,
    predict_execution_time,
    predict_performance,
)
from blockflow.optimization.serializer import (
    OPTIMIZATION_SCHEMA_VERSION,
    cache_stats_to_dict,
    optimized_flow_to_dict,
    performance_to_dict,
)
from blockflow.optimization.settings_loader import default_settings, load_settings

__all__ = [
    "Advice",
    "AppliedOptimization",
    "CacheStats",
    "CachedModel",
    "FlowOptimizer",
    "HistoricalMetricsStore",
    "ModelCache",
    "ModelVersion",
    "OPTIMIZATION_DESCRIPTIONS",
    "OPTIMIZATION_SCHEMA_VERSION",
    "OpinionOracle",
    "OptimizationAdvisor",
    "OptimizationOpportunity",
    "OptimizationPredictions",
    "OptimizedFlow",
    "OptimizerSettings",
    "OracleRequest",
    "PerformancePrediction",
    "PromptOracle",
    "Recommendation",
    "RiskAssessment",
    "RiskFactor",
    "apply_optimizations",
    "build_oracle_request",
    "cache_stats_to_dict",
    "composite_confidence",
    "compute_signature",
    "consult_oracle",
    "default_settings",
    "expected_improvement",
    "heuristic_predictions",
    "load_settings",
    "optimize",
    "optimized_flow_to_dict",
    "parse_oracle_response",
    "performance_to_dict",
    "predict_execution_time",
    "predict_performance",
]
