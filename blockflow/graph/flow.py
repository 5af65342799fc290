"""
Flow data model: blocks, connections, metadata, builder mutations, and
deterministic dict serialization.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from blockflow.errors import NotFoundError, ValidationError
from blockflow.graph.blocks import (
    PARAMETER_TYPES,
    Block,
    BlockParameter,
    BlockType,
    value_matches_type,
)
from blockflow.graph.connections import Connection, Endpoint
from blockflow.graph.templates import find_template

DEFAULT_LANGUAGE = "javascript"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class FlowMetadata:
    """Source language tag, timestamps, and a version counter bumped on every mutation."""

    language: str = DEFAULT_LANGUAGE
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    version: int = 1


@dataclass
class Flow:
    """
    A flow graph: ordered blocks plus directed connections.

    Block order is the deterministic iteration order for every algorithm.
    Connections are checked against existing blocks when created through
    connect(); flows loaded from documents may still hold dangling references,
    which the validator reports.
    """

    id: str
    name: str
    description: str = ""
    blocks: list[Block] = field(default_factory=list)
    connections: list[Connection] = field(default_factory=list)
    metadata: FlowMetadata = field(default_factory=FlowMetadata)
    _sequence: int = field(default=0, repr=False, compare=False)

    @classmethod
    def create(
        cls,
        name: str,
        description: str = "",
        language: str = DEFAULT_LANGUAGE,
        flow_id: str | None = None,
    ) -> Flow:
        """Build an empty flow."""
        now = _utcnow()
        return cls(
            id=flow_id or f"flow_{now.strftime('%Y%m%d%H%M%S%f')}",
            name=name,
            description=description,
            metadata=FlowMetadata(language=language, created_at=now, updated_at=now),
        )

    # --- lookups ---

    def block_ids(self) -> list[str]:
        return [b.id for b in self.blocks]

    def find_block(self, block_id: str) -> Block | None:
        for block in self.blocks:
            if block.id == block_id:
                return block
        return None

    def get_block(self, block_id: str) -> Block:
        """Return the block with block_id; raises NotFoundError when absent."""
        block = self.find_block(block_id)
        if block is None:
            raise NotFoundError("Block", block_id, context=f"flow {self.id}")
        return block

    # --- mutations ---

    def _touch(self) -> None:
        self.metadata.updated_at = _utcnow()
        self.metadata.version += 1

    def _next_id(self, prefix: str) -> str:
        existing = {b.id for b in self.blocks} | {c.id for c in self.connections}
        while True:
            self._sequence += 1
            candidate = f"{prefix}_{self._sequence}"
            if candidate not in existing:
                return candidate

    def add_block(
        self,
        block_type: BlockType | str,
        template_name: str,
        position: tuple[float, float] = (0.0, 0.0),
        block_id: str | None = None,
    ) -> Block:
        """
        Instantiate a template as a new block at the end of the block list.

        Raises:
            ValidationError: If the template or type is unknown, or block_id is taken.
        """
        template = find_template(block_type, template_name)
        if block_id is not None and self.find_block(block_id) is not None:
            raise ValidationError(
                f"Duplicate block id: {block_id}", field="block_id", value=block_id
            )
        block = Block(
            id=block_id or self._next_id("block"),
            type=template.type,
            label=template.name,
            parameters=template.instantiate_parameters(),
            position=position,
            description=template.description,
        )
        self.blocks.append(block)
        self._touch()
        return block

    def connect(
        self,
        source_id: str,
        source_port: str,
        target_id: str,
        target_port: str,
        data_type: str | None = None,
        connection_id: str | None = None,
    ) -> Connection:
        """
        Connect source_id:source_port to target_id:target_port.

        Raises:
            NotFoundError: If either block is not in this flow.
        """
        source = self.get_block(source_id)
        target = self.get_block(target_id)
        conn = Connection(
            id=connection_id or self._next_id("conn"),
            source=Endpoint(source_id, source_port),
            target=Endpoint(target_id, target_port),
            data_type=data_type,
        )
        self.connections.append(conn)
        source.connections.outputs.append(conn.id)
        target.connections.inputs.append(conn.id)
        self._touch()
        return conn

    def update_parameter(self, block_id: str, name: str, value: Any) -> BlockParameter:
        """
        Set a parameter value on a block.

        Raises:
            NotFoundError: If the block or parameter does not exist.
            ValidationError: If the value does not match the declared type, or a
                required parameter is cleared.
        """
        block = self.get_block(block_id)
        param = block.get_parameter(name)
        if param is None:
            raise NotFoundError("Parameter", name, context=f"block {block_id}")
        if param.required and value is None:
            raise ValidationError(
                f"Parameter {name} on block {block_id} is required", field=name, value=value
            )
        if not value_matches_type(value, param.type):
            raise ValidationError(
                f"Parameter {name} expects {param.type}, got {type(value).__name__}",
                field=name,
                value=value,
            )
        param.value = value
        self._touch()
        return param

    def set_parameter(
        self, block_id: str, name: str, declared: str, value: Any
    ) -> BlockParameter:
        """
        Add a parameter to a block, or overwrite the value of an existing one.
        Used for marker parameters that templates do not declare.

        Raises:
            NotFoundError: If the block does not exist.
            ValidationError: If the value does not match the declared type.
        """
        block = self.get_block(block_id)
        param = block.get_parameter(name)
        if param is None:
            if declared not in PARAMETER_TYPES or not value_matches_type(value, declared):
                raise ValidationError(
                    f"Parameter {name} cannot hold {value!r} as {declared}",
                    field=name,
                    value=value,
                )
            param = BlockParameter(name=name, type=declared, value=value)  # type: ignore[arg-type]
            block.parameters.append(param)
            self._touch()
            return param
        return self.update_parameter(block_id, name, value)

    def remove_block(self, block_id: str) -> Block:
        """
        Remove a block and every connection touching it.

        Raises:
            NotFoundError: If the block does not exist.
        """
        block = self.get_block(block_id)
        self.blocks = [b for b in self.blocks if b.id != block_id]
        self._drop_connections(
            {
                c.id
                for c in self.connections
                if c.source.block_id == block_id or c.target.block_id == block_id
            }
        )
        self._touch()
        return block

    def _drop_connections(self, connection_ids: set[str]) -> None:
        if not connection_ids:
            return
        self.connections = [c for c in self.connections if c.id not in connection_ids]
        for b in self.blocks:
            b.connections.inputs = [c for c in b.connections.inputs if c not in connection_ids]
            b.connections.outputs = [c for c in b.connections.outputs if c not in connection_ids]


# --- serialization ---


def _parameter_to_dict(p: BlockParameter) -> dict:
    return {"name": p.name, "type": p.type, "value": p.value, "required": p.required}


def flow_to_dict(flow: Flow) -> dict:
    """
    Return a JSON-serializable dict. Blocks and connections keep flow order,
    which is significant for deterministic iteration.
    """
    m = flow.metadata
    return {
        "id": flow.id,
        "name": flow.name,
        "description": flow.description,
        "metadata": {
            "language": m.language,
            "created_at": m.created_at.isoformat(),
            "updated_at": m.updated_at.isoformat(),
            "version": m.version,
        },
        "blocks": [
            {
                "id": b.id,
                "type": b.type.value,
                "label": b.label,
                "description": b.description,
                "position": [b.position[0], b.position[1]],
                "parameters": [_parameter_to_dict(p) for p in b.parameters],
                "connections": {
                    "inputs": list(b.connections.inputs),
                    "outputs": list(b.connections.outputs),
                },
            }
            for b in flow.blocks
        ],
        "connections": [
            {
                "id": c.id,
                "source": {"block_id": c.source.block_id, "port": c.source.port},
                "target": {"block_id": c.target.block_id, "port": c.target.port},
                "data_type": c.data_type,
            }
            for c in flow.connections
        ],
    }


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        # fromisoformat only accepts a trailing Z from Python 3.11 on.
        text = value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value
        try:
            return datetime.fromisoformat(text)
        except ValueError as e:
            raise ValidationError(f"Invalid timestamp: {value!r}", value=value) from e
    return _utcnow()


def _parse_position(value: Any) -> tuple[float, float]:
    if isinstance(value, dict):
        return (float(value.get("x", 0.0)), float(value.get("y", 0.0)))
    if isinstance(value, (list, tuple)) and len(value) == 2:
        return (float(value[0]), float(value[1]))
    return (0.0, 0.0)


def _parse_parameter(data: dict, block_id: str) -> BlockParameter:
    name = data.get("name")
    if not isinstance(name, str):
        raise ValidationError(f"Block {block_id}: parameter 'name' must be a string", field="name")
    declared = data.get("type", "string")
    if declared not in PARAMETER_TYPES:
        raise ValidationError(
            f"Block {block_id}: parameter {name} has unknown type {declared!r}",
            field="type",
            value=declared,
        )
    return BlockParameter(
        name=name,
        type=declared,
        value=data.get("value"),
        required=bool(data.get("required", False)),
    )


def _parse_endpoint(data: dict, legacy_port_key: str) -> Endpoint:
    block_id = data.get("block_id", data.get("blockId"))
    port = data.get("port", data.get(legacy_port_key, "main"))
    if not isinstance(block_id, str):
        raise ValidationError("Connection endpoint needs a 'block_id' string", field="block_id")
    return Endpoint(block_id=block_id, port=str(port))


def flow_from_dict(data: dict) -> Flow:
    """
    Build a Flow from a dict produced by flow_to_dict (or the legacy
    ``from``/``to`` connection shape). Dangling connection endpoints are
    kept as-is so that validation can report them.

    Raises:
        ValidationError: If required keys are missing or a block type is unknown.
    """
    if not isinstance(data, dict):
        raise ValidationError(f"Flow document must be a mapping, got {type(data).__name__}")
    flow_id = data.get("id")
    name = data.get("name")
    if not isinstance(flow_id, str) or not isinstance(name, str):
        raise ValidationError("Flow document needs 'id' and 'name' strings")

    meta = data.get("metadata") or {}
    flow = Flow(
        id=flow_id,
        name=name,
        description=str(data.get("description", "")),
        metadata=FlowMetadata(
            language=str(meta.get("language", DEFAULT_LANGUAGE)),
            created_at=_parse_datetime(meta.get("created_at", meta.get("createdAt"))),
            updated_at=_parse_datetime(meta.get("updated_at", meta.get("updatedAt"))),
            version=int(meta.get("version", 1)),
        ),
    )

    seen: set[str] = set()
    for raw in data.get("blocks", []):
        block_id = raw.get("id")
        if not isinstance(block_id, str):
            raise ValidationError("Block needs an 'id' string", field="id")
        if block_id in seen:
            raise ValidationError(f"Duplicate block id: {block_id}", field="id", value=block_id)
        seen.add(block_id)
        try:
            kind = BlockType.parse(raw.get("type"))
        except ValueError as e:
            raise ValidationError(
                f"Block {block_id}: unknown block type {raw.get('type')!r}",
                field="type",
                value=raw.get("type"),
            ) from e
        flow.blocks.append(
            Block(
                id=block_id,
                type=kind,
                label=str(raw.get("label", kind.value)),
                parameters=[_parse_parameter(p, block_id) for p in raw.get("parameters", [])],
                position=_parse_position(raw.get("position")),
                description=str(raw.get("description", "")),
            )
        )

    for raw in data.get("connections", []):
        conn_id = raw.get("id")
        if not isinstance(conn_id, str):
            raise ValidationError("Connection needs an 'id' string", field="id")
        source = _parse_endpoint(raw.get("source", raw.get("from", {})), "output")
        target = _parse_endpoint(raw.get("target", raw.get("to", {})), "input")
        conn = Connection(
            id=conn_id,
            source=source,
            target=target,
            data_type=raw.get("data_type", raw.get("dataType")),
        )
        flow.connections.append(conn)

    # Rebuild per-block connection lists from the connection table.
    by_id = {b.id: b for b in flow.blocks}
    for conn in flow.connections:
        if conn.source.block_id in by_id:
            by_id[conn.source.block_id].connections.outputs.append(conn.id)
        if conn.target.block_id in by_id:
            by_id[conn.target.block_id].connections.inputs.append(conn.id)

    return flow


def copy_flow(flow: Flow) -> Flow:
    """Independent deep copy of a flow, parameter values included."""
    return copy.deepcopy(flow)

