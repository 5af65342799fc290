"""
Block template catalog: the named starting points a builder may instantiate.
Each template carries default parameters; instantiation deep-copies them.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass

from blockflow.errors import ValidationError
from blockflow.graph.blocks import BlockParameter, BlockType


@dataclass(frozen=True)
class BlockTemplate:
    """A named block preset for one block kind."""

    type: BlockType
    name: str
    description: str
    default_parameters: tuple[BlockParameter, ...] = ()

    def instantiate_parameters(self) -> list[BlockParameter]:
        return [copy.deepcopy(p) for p in self.default_parameters]


def _p(name: str, type_: str, value=None, required: bool = False) -> BlockParameter:
    return BlockParameter(name=name, type=type_, value=value, required=required)  # type: ignore[arg-type]


BLOCK_TEMPLATES: dict[BlockType, tuple[BlockTemplate, ...]] = {
    BlockType.INPUT: (
        BlockTemplate(BlockType.INPUT, "Data Input", "Read input data from previous nodes"),
        BlockTemplate(
            BlockType.INPUT,
            "File Input",
            "Read data from file",
            (_p("filePath", "string", "", required=True),),
        ),
    ),
    BlockType.OUTPUT: (
        BlockTemplate(BlockType.OUTPUT, "Return Items", "Return items to the next node"),
        BlockTemplate(
            BlockType.OUTPUT,
            "File Output",
            "Write items to a file",
            (_p("filePath", "string", "", required=True),),
        ),
    ),
    BlockType.TRANSFORM: (
        BlockTemplate(
            BlockType.TRANSFORM,
            "Map Transform",
            "Transform each item using map function",
            (_p("mapFunction", "code", "item => item", required=True),),
        ),
        BlockTemplate(
            BlockType.TRANSFORM,
            "Field Rename",
            "Rename fields in objects",
            (_p("fieldMap", "object", {}, required=True),),
        ),
    ),
    BlockType.FILTER: (
        BlockTemplate(
            BlockType.FILTER,
            "Filter Items",
            "Filter items based on condition",
            (_p("condition", "code", "item => true", required=True),),
        ),
    ),
    BlockType.AGGREGATE: (
        BlockTemplate(
            BlockType.AGGREGATE,
            "Group By",
            "Group items by field",
            (_p("groupField", "string", "", required=True),),
        ),
        BlockTemplate(
            BlockType.AGGREGATE,
            "Sum",
            "Sum a numeric field across items",
            (_p("field", "string", "", required=True),),
        ),
    ),
    BlockType.CONDITION: (
        BlockTemplate(
            BlockType.CONDITION,
            "If",
            "Route items by a boolean expression",
            (_p("expression", "code", "item => true", required=True),),
        ),
    ),
    BlockType.LOOP: (
        BlockTemplate(
            BlockType.LOOP,
            "For Each",
            "Run downstream blocks once per item",
            (_p("iterations", "number", None),),
        ),
    ),
    BlockType.EXTERNAL_CALL: (
        BlockTemplate(
            BlockType.EXTERNAL_CALL,
            "HTTP Request",
            "Call an external HTTP API",
            (
                _p("url", "string", "", required=True),
                _p("method", "string", "GET"),
            ),
        ),
    ),
    BlockType.DATABASE: (
        BlockTemplate(
            BlockType.DATABASE,
            "Query",
            "Run a database query",
            (_p("query", "string", "", required=True),),
        ),
    ),
    BlockType.CUSTOM: (
        BlockTemplate(
            BlockType.CUSTOM,
            "Custom Code",
            "Run user-supplied code",
            (_p("code", "code", "", required=True),),
        ),
    ),
}


def template_names(block_type: BlockType) -> tuple[str, ...]:
    return tuple(t.name for t in BLOCK_TEMPLATES.get(block_type, ()))


def find_template(block_type: BlockType | str, template_name: str) -> BlockTemplate:
    """
    Look up a template by kind and name.

    Raises:
        ValidationError: If the kind or the template name is unknown.
    """
    try:
        kind = BlockType.parse(block_type)
    except ValueError as e:
        raise ValidationError(
            f"Unknown block type: {block_type}", field="block_type", value=block_type
        ) from e

    for template in BLOCK_TEMPLATES.get(kind, ()):
        if template.name == template_name:
            return template
    raise ValidationError(
        f"Block template not found: {template_name} ({kind.value}); "
        f"available: {', '.join(template_names(kind))}",
        field="template_name",
        value=template_name,
    )
