"""Connection types for flow graphs."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Endpoint:
    """One side of a connection: a block id and a port name."""

    block_id: str
    port: str


@dataclass(frozen=True)
class Connection:
    """A directed data edge from a source block port to a target block port."""

    id: str
    source: Endpoint
    target: Endpoint
    data_type: str | None = None
