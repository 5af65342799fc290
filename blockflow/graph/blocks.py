"""Block types for flow graphs."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

ParameterType = Literal["string", "number", "boolean", "array", "object", "code"]

PARAMETER_TYPES: tuple[str, ...] = (
    "string",
    "number",
    "boolean",
    "array",
    "object",
    "code",
)


class BlockType(str, Enum):
    """Closed set of block kinds. Lookup tables keyed by kind must cover every member."""

    INPUT = "input"
    OUTPUT = "output"
    TRANSFORM = "transform"
    FILTER = "filter"
    AGGREGATE = "aggregate"
    CONDITION = "condition"
    LOOP = "loop"
    EXTERNAL_CALL = "external_call"
    DATABASE = "database"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, value: str | BlockType) -> BlockType:
        """Parse a kind name; ``api_call`` is accepted for older flow documents."""
        if isinstance(value, BlockType):
            return value
        if value == "api_call":
            return cls.EXTERNAL_CALL
        return cls(value)


# Kinds that perform I/O against another system and are worth caching.
EXPENSIVE_IO_TYPES: frozenset[BlockType] = frozenset(
    {BlockType.EXTERNAL_CALL, BlockType.DATABASE}
)

# Kinds with no state between invocations.
STATELESS_TYPES: frozenset[BlockType] = frozenset(
    {BlockType.TRANSFORM, BlockType.FILTER, BlockType.OUTPUT}
)

# Marker parameters written by the optimizer.
PARALLEL_MARKER = "_parallel_execution"
CACHE_MARKER = "_enable_caching"
CACHE_TTL = "_cache_ttl"


def value_matches_type(value: Any, declared: str) -> bool:
    """True if value is acceptable for a parameter of the declared type. None is always accepted."""
    if value is None:
        return True
    if declared in ("string", "code"):
        return isinstance(value, str)
    if declared == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if declared == "boolean":
        return isinstance(value, bool)
    if declared == "array":
        return isinstance(value, (list, tuple))
    if declared == "object":
        return isinstance(value, dict)
    return False


@dataclass
class BlockParameter:
    """A named, typed parameter on a block."""

    name: str
    type: ParameterType
    value: Any = None
    required: bool = False


@dataclass
class BlockConnections:
    """Connection ids attached to a block, by direction."""

    inputs: list[str] = field(default_factory=list)
    outputs: list[str] = field(default_factory=list)


@dataclass
class Block:
    """A typed unit of work in a flow graph. Position is for display only."""

    id: str
    type: BlockType
    label: str
    parameters: list[BlockParameter] = field(default_factory=list)
    position: tuple[float, float] = (0.0, 0.0)
    connections: BlockConnections = field(default_factory=BlockConnections)
    description: str = ""

    def get_parameter(self, name: str) -> BlockParameter | None:
        for param in self.parameters:
            if param.name == name:
                return param
        return None

    def has_flag(self, name: str) -> bool:
        """True if a boolean marker parameter is present and set."""
        param = self.get_parameter(name)
        return param is not None and param.value is True
