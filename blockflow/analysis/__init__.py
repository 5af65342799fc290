"""Flow analysis: features, execution order, validation, patterns, FlowAnalyzer."""

from blockflow.analysis.analyzer import FlowAnalyzer, analyze, analyze_flow
from blockflow.analysis.digraph import DirectedGraph, build_digraph
from blockflow.analysis.execution_order import (
    compute_execution_groups,
    compute_execution_order,
    compute_parallel_groups,
    estimate_latency,
    execution_groups,
    parallel_groups,
    resolve_execution_order,
)
from blockflow.analysis.features import compute_features, extract_features
from blockflow.analysis.patterns import compute_patterns, detect_patterns
from blockflow.analysis.validation import validate_flow

__all__ = [
    "DirectedGraph",
    "FlowAnalyzer",
    "analyze",
    "analyze_flow",
    "build_digraph",
    "compute_execution_groups",
    "compute_execution_order",
    "compute_features",
    "compute_parallel_groups",
    "compute_patterns",
    "detect_patterns",
    "estimate_latency",
    "execution_groups",
    "extract_features",
    "parallel_groups",
    "resolve_execution_order",
    "validate_flow",
]
