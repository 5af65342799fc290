"""blockflow: static analysis and optimization engine for block-based data-processing flows."""

from blockflow.analysis import (
    FlowAnalyzer,
    analyze,
    analyze_flow,
    detect_patterns,
    parallel_groups,
    resolve_execution_order,
)
from blockflow.errors import BlockflowError, NotFoundError, OracleFailure, ValidationError
from blockflow.graph import Block, BlockType, Connection, Flow, FlowFeatures
from blockflow.optimization import FlowOptimizer, ModelCache, OptimizerSettings, optimize

__all__ = [
    "Block",
    "BlockType",
    "BlockflowError",
    "Connection",
    "Flow",
    "FlowAnalyzer",
    "FlowFeatures",
    "FlowOptimizer",
    "ModelCache",
    "NotFoundError",
    "OptimizerSettings",
    "OracleFailure",
    "ValidationError",
    "analyze",
    "analyze_flow",
    "detect_patterns",
    "optimize",
    "parallel_groups",
    "resolve_execution_order",
]
