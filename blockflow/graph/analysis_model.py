"""
Analysis data model: flow features, pattern findings, structural issues,
and deterministic JSON serialization.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

PatternKind = Literal["linear", "branching", "merging", "looping", "parallel"]
Severity = Literal["low", "medium", "high", "critical"]
AntiPatternType = Literal[
    "n_plus_one",
    "sync_async_mismatch",
    "memory_leak",
    "circular_dependency",
    "excessive_nesting",
]
ScalabilityKind = Literal["horizontal", "vertical", "data_partitioning", "caching"]
SecurityKind = Literal[
    "input_validation", "output_sanitization", "access_control", "data_encryption"
]
IssueLevel = Literal["error", "warning"]

SEVERITIES: tuple[str, ...] = ("low", "medium", "high", "critical")

ANALYSIS_SCHEMA_VERSION = "1.0"


@dataclass(frozen=True)
class DataFlowPattern:
    """Frequency and mean local size of one structural pattern."""

    pattern: PatternKind
    frequency: int
    complexity: float


@dataclass(frozen=True)
class FlowFeatures:
    """Immutable structural snapshot of a flow."""

    node_count: int
    connection_count: int
    complexity: int
    cyclomatic_complexity: int
    max_depth: int
    branching_factor: float
    average_block_parameters: float
    parallelizable_blocks: int
    block_type_distribution: dict[str, int]
    data_flow_patterns: tuple[DataFlowPattern, ...]

    def pattern(self, kind: str) -> DataFlowPattern | None:
        for p in self.data_flow_patterns:
            if p.pattern == kind:
                return p
        return None


@dataclass(frozen=True)
class ValidationIssue:
    """A structural problem found by whole-graph validation. Reported, never raised."""

    level: IssueLevel
    code: str  # dangling_connection | orphaned_block | missing_input | missing_output | missing_parameter
    message: str
    block_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class AntiPattern:
    """A structurally detectable design flaw."""

    type: AntiPatternType
    severity: Severity
    location: tuple[str, ...]
    description: str
    recommendation: str
    estimated_impact: int  # 0-100, feeds optimization ranking


@dataclass(frozen=True)
class OptimizationPattern:
    type: str
    confidence: int
    applicable_blocks: tuple[str, ...]
    expected_gain: int


@dataclass(frozen=True)
class ScalabilityPattern:
    pattern: ScalabilityKind
    suitability: int
    requirements: tuple[str, ...]
    limitations: tuple[str, ...]


@dataclass(frozen=True)
class SecurityPattern:
    pattern: SecurityKind
    required: bool
    severity: Severity
    recommendation: str


@dataclass(frozen=True)
class PatternAnalysis:
    """All findings of one Pattern Analyzer run."""

    anti_patterns: tuple[AntiPattern, ...]
    optimization_patterns: tuple[OptimizationPattern, ...]
    scalability_patterns: tuple[ScalabilityPattern, ...]
    security_patterns: tuple[SecurityPattern, ...]
    structural_issues: tuple[ValidationIssue, ...] = ()

    @property
    def has_circular_dependency(self) -> bool:
        """Upstream callers must not treat a flow with a cycle as safe to execute."""
        return any(a.type == "circular_dependency" for a in self.anti_patterns)

    @property
    def has_structural_errors(self) -> bool:
        return any(i.level == "error" for i in self.structural_issues)


def features_to_dict(f: FlowFeatures) -> dict:
    """Return a JSON-serializable dict with deterministic ordering."""
    return {
        "node_count": f.node_count,
        "connection_count": f.connection_count,
        "complexity": f.complexity,
        "cyclomatic_complexity": f.cyclomatic_complexity,
        "max_depth": f.max_depth,
        "branching_factor": f.branching_factor,
        "average_block_parameters": f.average_block_parameters,
        "parallelizable_blocks": f.parallelizable_blocks,
        "block_type_distribution": dict(sorted(f.block_type_distribution.items())),
        "data_flow_patterns": [
            {"pattern": p.pattern, "frequency": p.frequency, "complexity": p.complexity}
            for p in f.data_flow_patterns
        ],
    }


def pattern_analysis_to_dict(pa: PatternAnalysis) -> dict:
    """
    Return a JSON-serializable dict. Anti-patterns are sorted by descending
    severity then type so that the most urgent finding comes first.
    """
    anti_sorted = sorted(
        pa.anti_patterns,
        key=lambda a: (-SEVERITIES.index(a.severity), a.type, a.location),
    )
    return {
        "schema_version": ANALYSIS_SCHEMA_VERSION,
        "anti_patterns": [
            {
                "type": a.type,
                "severity": a.severity,
                "location": list(a.location),
                "description": a.description,
                "recommendation": a.recommendation,
                "estimated_impact": a.estimated_impact,
            }
            for a in anti_sorted
        ],
        "optimization_patterns": [
            {
                "type": o.type,
                "confidence": o.confidence,
                "applicable_blocks": list(o.applicable_blocks),
                "expected_gain": o.expected_gain,
            }
            for o in pa.optimization_patterns
        ],
        "scalability_patterns": [
            {
                "pattern": s.pattern,
                "suitability": s.suitability,
                "requirements": list(s.requirements),
                "limitations": list(s.limitations),
            }
            for s in pa.scalability_patterns
        ],
        "security_patterns": [
            {
                "pattern": s.pattern,
                "required": s.required,
                "severity": s.severity,
                "recommendation": s.recommendation,
            }
            for s in pa.security_patterns
        ],
        "structural_issues": [
            {
                "level": i.level,
                "code": i.code,
                "message": i.message,
                "block_ids": list(i.block_ids),
            }
            for i in pa.structural_issues
        ],
    }


@dataclass(frozen=True)
class FlowAnalysis:
    """Everything the analyzer derives from one flow snapshot."""

    flow_id: str
    features: FlowFeatures
    execution_order: tuple[str, ...]
    parallel_groups: tuple[tuple[str, ...], ...]
    execution_groups: tuple[tuple[str, ...], ...]
    patterns: PatternAnalysis


def flow_analysis_to_dict(analysis: FlowAnalysis) -> dict:
    """Return a JSON-serializable dict; execution order is kept as scheduled."""
    base = {
        "schema_version": ANALYSIS_SCHEMA_VERSION,
        "flow_id": analysis.flow_id,
        "features": features_to_dict(analysis.features),
        "execution_order": list(analysis.execution_order),
        "parallel_groups": [list(g) for g in analysis.parallel_groups],
        "execution_groups": [list(g) for g in analysis.execution_groups],
    }
    patterns = pattern_analysis_to_dict(analysis.patterns)
    patterns.pop("schema_version")
    base["patterns"] = patterns
    return base
