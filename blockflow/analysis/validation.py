"""
Whole-graph structural validation: dangling connections, orphaned blocks,
missing input/output blocks, unset required parameters.
Never raises; every problem becomes a ValidationIssue.
"""

from __future__ import annotations

from blockflow.graph.analysis_model import ValidationIssue
from blockflow.graph.blocks import BlockType
from blockflow.graph.flow import Flow


def _is_unset(value: object) -> bool:
    return value is None or value == ""


def validate_flow(flow: Flow) -> tuple[ValidationIssue, ...]:
    """Return structural issues in a stable order: errors first, then warnings."""
    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []
    known = {b.id for b in flow.blocks}

    for conn in flow.connections:
        missing = tuple(
            bid for bid in (conn.source.block_id, conn.target.block_id) if bid not in known
        )
        if missing:
            errors.append(
                ValidationIssue(
                    level="error",
                    code="dangling_connection",
                    message=(
                        f"Connection {conn.id} references missing block(s): "
                        f"{', '.join(missing)}"
                    ),
                    block_ids=missing,
                )
            )

    if not flow.blocks:
        return tuple(errors)

    connected: set[str] = set()
    for conn in flow.connections:
        if conn.source.block_id in known and conn.target.block_id in known:
            connected.add(conn.source.block_id)
            connected.add(conn.target.block_id)
    if len(flow.blocks) > 1:
        for block in flow.blocks:
            if block.id not in connected:
                warnings.append(
                    ValidationIssue(
                        level="warning",
                        code="orphaned_block",
                        message=f"Block {block.id} ({block.label}) has no connections",
                        block_ids=(block.id,),
                    )
                )

    types = {b.type for b in flow.blocks}
    if BlockType.INPUT not in types:
        warnings.append(
            ValidationIssue("warning", "missing_input", "Flow has no input block")
        )
    if BlockType.OUTPUT not in types:
        warnings.append(
            ValidationIssue("warning", "missing_output", "Flow has no output block")
        )

    for block in flow.blocks:
        for param in block.parameters:
            if param.required and _is_unset(param.value):
                warnings.append(
                    ValidationIssue(
                        level="warning",
                        code="missing_parameter",
                        message=f"Block {block.id}: required parameter {param.name} is not set",
                        block_ids=(block.id,),
                    )
                )

    return tuple(errors + warnings)
