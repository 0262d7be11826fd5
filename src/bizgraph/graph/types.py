"""Value types returned by GraphService."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional

from .metadata import NodeMetadata, parse_node_metadata


@dataclass(slots=True)
class Node:
    id: str
    type: str
    label: str
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Populated only by lookups that eagerly include outbound edges.
    outgoing_edges: Optional[list["Edge"]] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Node":
        return cls(
            id=row["id"],
            type=row["type"],
            label=row["label"],
            metadata=dict(row["metadata"] or {}),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    @property
    def original_id(self) -> Optional[str]:
        return self.metadata.get("originalId")

    def typed_metadata(self) -> NodeMetadata:
        return parse_node_metadata(self.type, self.metadata)


@dataclass(slots=True)
class Edge:
    from_id: str
    to_id: str
    relation_type: str
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Opposite endpoints, populated by relationship lookups.
    from_node: Optional[Node] = None
    to_node: Optional[Node] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Edge":
        return cls(
            from_id=row["from_id"],
            to_id=row["to_id"],
            relation_type=row["relation_type"],
            metadata=dict(row["metadata"] or {}),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    @property
    def key(self) -> tuple[str, str, str]:
        return self.from_id, self.to_id, self.relation_type


@dataclass(slots=True)
class TraversalStep:
    node: Node
    depth: int


@dataclass(slots=True)
class NodeTypeCount:
    type: str
    count: int


@dataclass(slots=True)
class GraphStats:
    total_nodes: int
    total_edges: int
    node_types: list[NodeTypeCount]

    def count_for(self, node_type: str) -> int:
        for entry in self.node_types:
            if entry.type == node_type:
                return entry.count
        return 0


@dataclass(slots=True)
class NodeConnections:
    id: str
    type: str
    label: str
    outgoing: int
    incoming: int

    @property
    def total_connections(self) -> int:
        return self.outgoing + self.incoming


@dataclass(slots=True)
class RelationTypeCount:
    type: str
    count: int
