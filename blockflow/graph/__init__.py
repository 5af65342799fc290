"""Flow graph model: blocks, connections, flows, templates, and analysis records."""

from blockflow.graph.analysis_model import (
    AntiPattern,
    DataFlowPattern,
    FlowAnalysis,
    FlowFeatures,
    OptimizationPattern,
    PatternAnalysis,
    ScalabilityPattern,
    SecurityPattern,
    ValidationIssue,
    features_to_dict,
    flow_analysis_to_dict,
    pattern_analysis_to_dict,
)
from blockflow.graph.blocks import Block, BlockConnections, BlockParameter, BlockType
from blockflow.graph.connections import Connection, Endpoint
from blockflow.graph.flow import Flow, FlowMetadata, copy_flow, flow_from_dict, flow_to_dict
from blockflow.graph.templates import BLOCK_TEMPLATES, BlockTemplate, find_template

__all__ = [
    "AntiPattern",
    "BLOCK_TEMPLATES",
    "Block",
    "BlockConnections",
    "BlockParameter",
    "BlockTemplate",
    "BlockType",
    "Connection",
    "DataFlowPattern",
    "Endpoint",
    "Flow",
    "FlowAnalysis",
    "FlowFeatures",
    "FlowMetadata",
    "OptimizationPattern",
    "PatternAnalysis",
    "ScalabilityPattern",
    "SecurityPattern",
    "ValidationIssue",
    "copy_flow",
    "features_to_dict",
    "find_template",
    "flow_analysis_to_dict",
    "flow_from_dict",
    "flow_to_dict",
    "pattern_analysis_to_dict",
]
