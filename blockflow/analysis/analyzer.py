"""
FlowAnalyzer: orchestrate digraph, features, execution order, patterns, validation -> FlowAnalysis.
"""

from __future__ import annotations

import logging

from blockflow.graph.analysis_model import FlowAnalysis, FlowFeatures
from blockflow.graph.flow import Flow

from blockflow.analysis.digraph import build_digraph
from blockflow.analysis.execution_order import (
    compute_execution_groups,
    compute_execution_order,
    compute_parallel_groups,
)
from blockflow.analysis.features import compute_features, extract_features
from blockflow.analysis.patterns import DEFAULT_NESTING_THRESHOLD, compute_patterns

logger = logging.getLogger(__name__)


class FlowAnalyzer:
    """Run every analysis pass over one digraph built from a flow snapshot."""

    def __init__(self, nesting_threshold: int = DEFAULT_NESTING_THRESHOLD) -> None:
        self.nesting_threshold = nesting_threshold

    def analyze(self, flow: Flow) -> FlowAnalysis:
        dg = build_digraph(flow)
        order = compute_execution_order(dg)
        groups = compute_parallel_groups(dg)
        features = compute_features(flow, dg)
        patterns = compute_patterns(
            flow, features, dg, nesting_threshold=self.nesting_threshold
        )
        if patterns.has_circular_dependency:
            logger.info("Flow %s contains a circular dependency", flow.id)

        return FlowAnalysis(
            flow_id=flow.id,
            features=features,
            execution_order=tuple(order),
            parallel_groups=tuple(groups),
            execution_groups=tuple(compute_execution_groups(order, groups)),
            patterns=patterns,
        )


def analyze_flow(
    flow: Flow, *, nesting_threshold: int = DEFAULT_NESTING_THRESHOLD
) -> FlowAnalysis:
    """Convenience: run FlowAnalyzer().analyze(flow)."""
    return FlowAnalyzer(nesting_threshold=nesting_threshold).analyze(flow)


def analyze(flow: Flow) -> FlowFeatures:
    """Pure, synchronous: structural features of a flow snapshot."""
    return extract_features(flow)
