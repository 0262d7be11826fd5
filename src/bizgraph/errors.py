"""Error taxonomy shared by the graph, store, hybrid and migration layers."""

from __future__ import annotations


class BizGraphError(Exception):
    """Base class for all bizgraph errors."""


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------


class NotFoundError(BizGraphError, LookupError):
    pass


class NodeNotFound(NotFoundError):
    def __init__(self, node_id: str) -> None:
        super().__init__(f"Node {node_id!r} does not exist")
        self.node_id = node_id


class EdgeNotFound(NotFoundError):
    def __init__(self, from_id: str, to_id: str, relation_type: str) -> None:
        super().__init__(
            f"Edge ({from_id!r} -[{relation_type}]-> {to_id!r}) does not exist"
        )
        self.from_id = from_id
        self.to_id = to_id
        self.relation_type = relation_type


class EntityNotFound(NotFoundError):
    def __init__(self, entity_type: str, entity_id: str) -> None:
        super().__init__(f"{entity_type} {entity_id!r} does not exist")
        self.entity_type = entity_type
        self.entity_id = entity_id


# ---------------------------------------------------------------------------
# Constraint violations
# ---------------------------------------------------------------------------


class DuplicateEdge(BizGraphError):
    """An edge with the same (from_id, to_id, relation_type) already exists."""

    def __init__(self, from_id: str, to_id: str, relation_type: str) -> None:
        super().__init__(
            f"Edge ({from_id!r} -[{relation_type}]-> {to_id!r}) already exists"
        )
        self.from_id = from_id
        self.to_id = to_id
        self.relation_type = relation_type


class HierarchyPathError(BizGraphError, ValueError):
    """A hierarchy path segment is empty or contains the path delimiter."""


class UnknownEntityType(BizGraphError, KeyError):
    def __init__(self, entity_type: str) -> None:
        super().__init__(entity_type)
        self.entity_type = entity_type

    def __str__(self) -> str:
        return f"Unknown entity type {self.entity_type!r}"


# ---------------------------------------------------------------------------
# Consistency faults between the relational rows and the graph mirror
# ---------------------------------------------------------------------------


class ConsistencyError(BizGraphError):
    pass


class StaleGraphReference(ConsistencyError):
    """A relational row's graph_node_id points at a node that no longer exists."""

    def __init__(self, entity_type: str, entity_id: str, node_id: str) -> None:
        super().__init__(
            f"{entity_type} {entity_id!r} references missing graph node {node_id!r}"
        )
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.node_id = node_id
