from __future__ import annotations

import uuid
from collections import deque
from datetime import datetime, timezone
from logging import getLogger
from typing import Any, Mapping, Optional, Union

from sqlalchemy import and_, delete, func, insert, literal, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import GraphSettings
from ..errors import DuplicateEdge, EdgeNotFound, NodeNotFound
from .metadata import NodeMetadata, metadata_document
from .schema import edges, nodes
from .types import (
    Edge,
    GraphStats,
    Node,
    NodeConnections,
    NodeTypeCount,
    RelationTypeCount,
    TraversalStep,
)

logger = getLogger(__name__)

MetadataArg = Union[NodeMetadata, Mapping[str, Any], None]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _edge_key(from_id: str, to_id: str, relation_type: str):
    return and_(
        edges.c.from_id == from_id,
        edges.c.to_id == to_id,
        edges.c.relation_type == relation_type,
    )


# Outbound edges are enumerated in creation order; to_id and relation_type
# break ties so traversal order is deterministic.
_EDGE_ORDER = (edges.c.created_at, edges.c.to_id, edges.c.relation_type)


class GraphService:
    """
    Sole reader and writer of the node/edge tables.

    Operates on a caller-supplied Session and never commits: the caller owns
    the unit of work. Store errors (not found, constraint violations) are
    surfaced as bizgraph errors and never retried.

    Traversal and path search issue one store round-trip per dequeued node,
    so their cost grows with the number of nodes visited.
    """

    def __init__(self, session: Session, settings: Optional[GraphSettings] = None) -> None:
        self._session = session
        self._settings = settings or GraphSettings()

    @property
    def session(self) -> Session:
        return self._session

    # ------------------------------------------------------------------ #
    # Nodes
    # ------------------------------------------------------------------ #

    def create_node(self, type: str, label: str, metadata: MetadataArg = None) -> Node:
        """
        Insert a node and return it.

        No de-duplication: callers check for an existing (type, originalId)
        node first when they need one node per mirrored row.
        """
        now = _now()
        node = Node(
            id=str(uuid.uuid4()),
            type=type,
            label=label,
            metadata=metadata_document(metadata),
            created_at=now,
            updated_at=now,
        )
        self._session.execute(
            insert(nodes).values(
                id=node.id,
                type=node.type,
                label=node.label,
                metadata=node.metadata,
                created_at=now,
                updated_at=now,
            )
        )
        logger.debug("Created node %s (%s) %r", node.id, type, label)
        return node

    def get_node(self, node_id: str) -> Optional[Node]:
        row = self._session.execute(
            select(nodes).where(nodes.c.id == node_id)
        ).mappings().one_or_none()
        return Node.from_row(row) if row is not None else None

    def _require_node(self, node_id: str) -> Node:
        node = self.get_node(node_id)
        if node is None:
            raise NodeNotFound(node_id)
        return node

    def find_node_by_original_id(self, type: str, original_id: str) -> Optional[Node]:
        """Exact match on the `originalId` key of the metadata document."""
        row = self._session.execute(
            select(nodes)
            .where(
                nodes.c.type == type,
                nodes.c.metadata["originalId"].as_string() == original_id,
            )
            .order_by(nodes.c.created_at, nodes.c.id)
            .limit(1)
        ).mappings().one_or_none()
        return Node.from_row(row) if row is not None else None

    def list_nodes(self, type: Optional[str] = None, limit: Optional[int] = None) -> list[Node]:
        stmt = select(nodes).order_by(nodes.c.created_at, nodes.c.id).limit(limit)
        if type is not None:
            stmt = stmt.where(nodes.c.type == type)
        return [Node.from_row(r) for r in self._session.execute(stmt).mappings()]

    def _attach_outgoing(self, found: list[Node]) -> list[Node]:
        """Eagerly load outbound edges (with target nodes) for a list of nodes."""
        if not found:
            return found
        ids = [n.id for n in found]
        target = nodes.alias("target")
        rows = self._session.execute(
            select(edges, *[c.label(f"target_{c.name}") for c in target.c])
            .join(target, target.c.id == edges.c.to_id)
            .where(edges.c.from_id.in_(ids))
            .order_by(*_EDGE_ORDER)
        ).mappings()

        by_source: dict[str, list[Edge]] = {n.id: [] for n in found}
        for row in rows:
            edge = Edge.from_row(row)
            edge.to_node = Node.from_row(_prefixed(row, "target_"))
            by_source[edge.from_id].append(edge)
        for n in found:
            n.outgoing_edges = by_source[n.id]
        return found

    def find_nodes_by_type(self, type: str, limit: Optional[int] = None) -> list[Node]:
        stmt = (
            select(nodes)
            .where(nodes.c.type == type)
            .order_by(nodes.c.created_at, nodes.c.id)
            .limit(limit)
        )
        found = [Node.from_row(r) for r in self._session.execute(stmt).mappings()]
        return self._attach_outgoing(found)

    def find_nodes_by_label(
        self,
        label: str,
        limit: Optional[int] = None,
        case_insensitive: bool = True,
    ) -> list[Node]:
        """Substring match on node labels."""
        if case_insensitive:
            condition = nodes.c.label.icontains(label, autoescape=True)
        else:
            condition = nodes.c.label.contains(label, autoescape=True)
        stmt = (
            select(nodes)
            .where(condition)
            .order_by(nodes.c.created_at, nodes.c.id)
        )
        if case_insensitive:
            stmt = stmt.limit(limit)
        found = [Node.from_row(r) for r in self._session.execute(stmt).mappings()]
        if not case_insensitive:
            # LIKE ignores case for ASCII on SQLite; enforce it here.
            found = [n for n in found if label in n.label][:limit]
        return self._attach_outgoing(found)

    def update_node_metadata(self, node_id: str, metadata: MetadataArg) -> Node:
        return self._update_node(node_id, metadata=metadata_document(metadata))

    def update_node_label(self, node_id: str, label: str) -> Node:
        return self._update_node(node_id, label=label)

    def _update_node(self, node_id: str, **values: Any) -> Node:
        result = self._session.execute(
            update(nodes)
            .where(nodes.c.id == node_id)
            .values(updated_at=_now(), **values)
        )
        if result.rowcount == 0:
            raise NodeNotFound(node_id)
        return self._require_node(node_id)

    def delete_node(self, node_id: str) -> None:
        """
        Delete a node together with every edge that references it.

        Edges in both directions go first, in the same transaction, so no edge
        is ever left pointing at a missing node.
        """
        self._require_node(node_id)
        removed = self._session.execute(
            delete(edges).where(
                or_(edges.c.from_id == node_id, edges.c.to_id == node_id)
            )
        ).rowcount
        self._session.execute(delete(nodes).where(nodes.c.id == node_id))
        logger.debug("Deleted node %s and %d edge(s)", node_id, removed)

    # ------------------------------------------------------------------ #
    # Edges
    # ------------------------------------------------------------------ #

    def create_edge(
        self,
        from_id: str,
        to_id: str,
        relation_type: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> Edge:
        """
        Insert a directed edge.

        Both endpoints must exist. Raises DuplicateEdge when an edge with the
        same (from_id, to_id, relation_type) is already stored.
        """
        self._require_node(from_id)
        self._require_node(to_id)
        if self.edge_exists(from_id, to_id, relation_type):
            raise DuplicateEdge(from_id, to_id, relation_type)

        now = _now()
        edge = Edge(
            from_id=from_id,
            to_id=to_id,
            relation_type=relation_type,
            metadata=dict(metadata or {}),
            created_at=now,
            updated_at=now,
        )
        try:
            self._session.execute(
                insert(edges).values(
                    from_id=from_id,
                    to_id=to_id,
                    relation_type=relation_type,
                    metadata=edge.metadata,
                    created_at=now,
                    updated_at=now,
                )
            )
        except IntegrityError as exc:
            # Lost a race with a concurrent writer between check and insert.
            raise DuplicateEdge(from_id, to_id, relation_type) from exc
        logger.debug("Created edge %s -[%s]-> %s", from_id, relation_type, to_id)
        return edge

    def get_edge(self, from_id: str, to_id: str, relation_type: str) -> Optional[Edge]:
        row = self._session.execute(
            select(edges).where(_edge_key(from_id, to_id, relation_type))
        ).mappings().one_or_none()
        return Edge.from_row(row) if row is not None else None

    def edge_exists(self, from_id: str, to_id: str, relation_type: str) -> bool:
        return self._session.execute(
            select(literal(1)).where(_edge_key(from_id, to_id, relation_type))
        ).first() is not None

    def delete_edge(self, from_id: str, to_id: str, relation_type: str) -> None:
        result = self._session.execute(
            delete(edges).where(_edge_key(from_id, to_id, relation_type))
        )
        if result.rowcount == 0:
            raise EdgeNotFound(from_id, to_id, relation_type)
        logger.debug("Deleted edge %s -[%s]-> %s", from_id, relation_type, to_id)

    def update_edge_metadata(
        self,
        from_id: str,
        to_id: str,
        relation_type: str,
        metadata: Optional[Mapping[str, Any]],
    ) -> Edge:
        result = self._session.execute(
            update(edges)
            .where(_edge_key(from_id, to_id, relation_type))
            .values(metadata=dict(metadata or {}), updated_at=_now())
        )
        if result.rowcount == 0:
            raise EdgeNotFound(from_id, to_id, relation_type)
        edge = self.get_edge(from_id, to_id, relation_type)
        if edge is None:
            raise EdgeNotFound(from_id, to_id, relation_type)
        return edge

    def get_node_relationships(
        self, node_id: str, relation_type: Optional[str] = None
    ) -> list[Edge]:
        """Outbound edges of `node_id`, each with its target node attached."""
        return self._relationships(node_id, relation_type, outbound=True)

    def get_incoming_relationships(
        self, node_id: str, relation_type: Optional[str] = None
    ) -> list[Edge]:
        """Inbound edges of `node_id`, each with its source node attached."""
        return self._relationships(node_id, relation_type, outbound=False)

    def _relationships(
        self, node_id: str, relation_type: Optional[str], *, outbound: bool
    ) -> list[Edge]:
        own, other = (edges.c.from_id, edges.c.to_id) if outbound else (edges.c.to_id, edges.c.from_id)
        peer = nodes.alias("peer")
        stmt = (
            select(edges, *[c.label(f"peer_{c.name}") for c in peer.c])
            .join(peer, peer.c.id == other)
            .where(own == node_id)
            .order_by(*_EDGE_ORDER)
        )
        if relation_type is not None:
            stmt = stmt.where(edges.c.relation_type == relation_type)

        result: list[Edge] = []
        for row in self._session.execute(stmt).mappings():
            edge = Edge.from_row(row)
            peer_node = Node.from_row(_prefixed(row, "peer_"))
            if outbound:
                edge.to_node = peer_node
            else:
                edge.from_node = peer_node
            result.append(edge)
        return result

    def find_edges(
        self,
        from_id: Optional[str] = None,
        to_id: Optional[str] = None,
        relation_type: Optional[str] = None,
    ) -> list[Edge]:
        """Filtered edge listing with both endpoint nodes, newest first."""
        src = nodes.alias("src")
        dst = nodes.alias("dst")
        stmt = (
            select(
                edges,
                *[c.label(f"src_{c.name}") for c in src.c],
                *[c.label(f"dst_{c.name}") for c in dst.c],
            )
            .join(src, src.c.id == edges.c.from_id)
            .join(dst, dst.c.id == edges.c.to_id)
            .order_by(edges.c.created_at.desc(), edges.c.from_id, edges.c.to_id)
        )
        if from_id is not None:
            stmt = stmt.where(edges.c.from_id == from_id)
        if to_id is not None:
            stmt = stmt.where(edges.c.to_id == to_id)
        if relation_type is not None:
            stmt = stmt.where(edges.c.relation_type == relation_type)

        result: list[Edge] = []
        for row in self._session.execute(stmt).mappings():
            edge = Edge.from_row(row)
            edge.from_node = Node.from_row(_prefixed(row, "src_"))
            edge.to_node = Node.from_row(_prefixed(row, "dst_"))
            result.append(edge)
        return result

    def _outbound_edges(self, node_id: str) -> list[Edge]:
        rows = self._session.execute(
            select(edges).where(edges.c.from_id == node_id).order_by(*_EDGE_ORDER)
        ).mappings()
        return [Edge.from_row(r) for r in rows]

    # ------------------------------------------------------------------ #
    # Traversal
    # ------------------------------------------------------------------ #

    def traverse_graph(
        self, start_node_id: str, max_depth: Optional[int] = None
    ) -> list[TraversalStep]:
        """
        Breadth-first traversal along outbound edges.

        Each node appears once, at the depth it was first dequeued. Depth 0 is
        the start node; an unknown start id yields an empty result. A node id
        that no longer resolves is skipped and its edges are not followed.
        """
        if max_depth is None:
            max_depth = self._settings.traversal_depth
        visited: set[str] = set()
        queue: deque[tuple[str, int]] = deque([(start_node_id, 0)])
        result: list[TraversalStep] = []

        while queue:
            node_id, depth = queue.popleft()
            if node_id in visited or depth > max_depth:
                continue
            visited.add(node_id)

            node = self.get_node(node_id)
            if node is None:
                continue
            result.append(TraversalStep(node=node, depth=depth))

            for edge in self._outbound_edges(node_id):
                queue.append((edge.to_id, depth + 1))

        return result

    def get_relationship_path(
        self,
        from_node_id: str,
        to_node_id: str,
        max_depth: Optional[int] = None,
    ) -> list[Edge]:
        """
        Edges of the first path found from one node to another.

        Breadth-first, so the path is shortest in edge count; ties go to the
        earlier enumerated edge. Empty when unreachable within `max_depth`
        edges (and when both ids are the same node).
        """
        if max_depth is None:
            max_depth = self._settings.path_depth
        visited: set[str] = set()
        queue: deque[tuple[str, list[Edge]]] = deque([(from_node_id, [])])

        while queue:
            node_id, path = queue.popleft()
            if node_id in visited or len(path) > max_depth:
                continue
            visited.add(node_id)

            if node_id == to_node_id:
                return path

            for edge in self._outbound_edges(node_id):
                queue.append((edge.to_id, [*path, edge]))

        return []

    # ------------------------------------------------------------------ #
    # Aggregates
    # ------------------------------------------------------------------ #

    def get_graph_stats(self) -> GraphStats:
        total_nodes = self._session.execute(select(func.count()).select_from(nodes)).scalar_one()
        total_edges = self._session.execute(select(func.count()).select_from(edges)).scalar_one()
        type_rows = self._session.execute(
            select(nodes.c.type, func.count().label("count"))
            .group_by(nodes.c.type)
            .order_by(nodes.c.type)
        ).all()
        return GraphStats(
            total_nodes=int(total_nodes),
            total_edges=int(total_edges),
            node_types=[NodeTypeCount(type=t, count=int(c)) for t, c in type_rows],
        )

    def most_connected_nodes(self, limit: int = 10) -> list[NodeConnections]:
        """Nodes ranked by outbound + inbound edge count, highest first."""
        out_counts = (
            select(edges.c.from_id.label("node_id"), func.count().label("n"))
            .group_by(edges.c.from_id)
            .subquery("out_counts")
        )
        in_counts = (
            select(edges.c.to_id.label("node_id"), func.count().label("n"))
            .group_by(edges.c.to_id)
            .subquery("in_counts")
        )
        outgoing = func.coalesce(out_counts.c.n, 0)
        incoming = func.coalesce(in_counts.c.n, 0)
        rows = self._session.execute(
            select(
                nodes.c.id,
                nodes.c.type,
                nodes.c.label,
                outgoing.label("outgoing"),
                incoming.label("incoming"),
            )
            .outerjoin(out_counts, out_counts.c.node_id == nodes.c.id)
            .outerjoin(in_counts, in_counts.c.node_id == nodes.c.id)
            .order_by((outgoing + incoming).desc(), nodes.c.id)
            .limit(limit)
        ).mappings()
        return [
            NodeConnections(
                id=r["id"],
                type=r["type"],
                label=r["label"],
                outgoing=int(r["outgoing"]),
                incoming=int(r["incoming"]),
            )
            for r in rows
        ]

    def relation_type_counts(self) -> list[RelationTypeCount]:
        n = func.count().label("count")
        rows = self._session.execute(
            select(edges.c.relation_type, n)
            .group_by(edges.c.relation_type)
            .order_by(n.desc(), edges.c.relation_type)
        ).all()
        return [RelationTypeCount(type=t, count=int(c)) for t, c in rows]

    def count_dangling_edges(self) -> int:
        """Edges whose source or target node is missing (out-of-band deletes)."""
        src = nodes.alias("src")
        dst = nodes.alias("dst")
        return int(
            self._session.execute(
                select(func.count())
                .select_from(edges)
                .outerjoin(src, src.c.id == edges.c.from_id)
                .outerjoin(dst, dst.c.id == edges.c.to_id)
                .where(or_(src.c.id.is_(None), dst.c.id.is_(None)))
            ).scalar_one()
        )


def _prefixed(row: Mapping[str, Any], prefix: str) -> dict[str, Any]:
    """Extract the columns of a joined node from a row of labelled columns."""
    return {
        key[len(prefix):]: value
        for key, value in row.items()
        if isinstance(key, str) and key.startswith(prefix)
    }
