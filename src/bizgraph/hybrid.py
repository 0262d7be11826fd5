from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import Any, Optional, Sequence

from sqlalchemy.orm import Session

from .config import GraphSettings
from .errors import StaleGraphReference, UnknownEntityType
from .graph import vocabulary as v
from .graph.service import GraphService
from .graph.types import GraphStats, Node, NodeConnections, RelationTypeCount, TraversalStep
from .store.relations import DEFAULT_INCLUDES, MASTER_TYPES, SEARCHABLE_TYPES, IncludeType
from .store.repository import RelationalStore, Row

logger = getLogger(__name__)

RELATIONSHIPS = "relationships"


@dataclass(slots=True)
class SearchResults:
    """
    Two independent buckets: relational rows (tagged with their `type`) and
    graph nodes matched on label. Overlap is not reconciled.
    """

    relational: list[Row]
    graph: list[dict[str, Any]]


@dataclass(slots=True)
class RelationshipAnalytics:
    stats: GraphStats
    most_connected_nodes: list[NodeConnections]
    relationship_types: list[RelationTypeCount]


class HybridQueryService:
    """
    Composite reads over the relational rows and the graph mirror.

    Every detail fetch follows the same pattern:

      1. fetch the relational row with its include set;
      2. if the row has no graph_node_id, return it unchanged (not migrated
         yet, still fully usable);
      3. otherwise fetch the mirror node's outbound edges through
         GraphService and attach them under "relationships".

    A graph_node_id that no longer resolves to a node is a consistency fault
    and raises StaleGraphReference.
    """

    def __init__(
        self,
        session: Session,
        *,
        graph: Optional[GraphService] = None,
        store: Optional[RelationalStore] = None,
        settings: Optional[GraphSettings] = None,
    ) -> None:
        self._settings = settings or GraphSettings()
        self._graph = graph or GraphService(session, self._settings)
        self._store = store or RelationalStore(session)

    @property
    def graph(self) -> GraphService:
        return self._graph

    @property
    def store(self) -> RelationalStore:
        return self._store

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _mirror_node(self, entity_type: str, row: Row) -> Optional[Node]:
        node_id = row.get("graph_node_id")
        if not node_id:
            return None
        node = self._graph.get_node(node_id)
        if node is None:
            logger.warning(
                "%s %s references missing graph node %s", entity_type, row["id"], node_id
            )
            raise StaleGraphReference(entity_type, row["id"], node_id)
        return node

    def _with_relationships(self, entity_type: str, row: Optional[Row]) -> Optional[Row]:
        if row is None:
            return None
        node = self._mirror_node(entity_type, row)
        if node is None:
            return row
        return {**row, RELATIONSHIPS: self._graph.get_node_relationships(node.id)}

    # ------------------------------------------------------------------ #
    # Detail fetches
    # ------------------------------------------------------------------ #

    def get_entity_with_relationships(
        self,
        entity_type: str,
        entity_id: str,
        *,
        include: IncludeType = None,
    ) -> Optional[Row]:
        """Relational row with its default include set plus one level of outbound edges."""
        if include is None:
            include = DEFAULT_INCLUDES.get(entity_type)
        row = self._store.get(entity_type, entity_id, include=include)
        return self._with_relationships(entity_type, row)

    def get_business_canvas_with_relationships(self, canvas_id: str) -> Optional[Row]:
        return self.get_entity_with_relationships(v.BUSINESS_CANVAS, canvas_id)

    def get_process_with_controls(self, process_id: str) -> Optional[Row]:
        return self.get_entity_with_relationships(v.PROCESS, process_id)

    def get_enterprise_with_hierarchy(self, enterprise_id: str) -> Optional[Row]:
        return self.get_entity_with_relationships(v.ENTERPRISE, enterprise_id)

    def get_risk_propagation_path(self, risk_id: str) -> list[TraversalStep]:
        """
        Bounded traversal rooted at the risk's node.

        Follows every outbound relation type, not one fixed risk -> control ->
        process chain, so the result is exploratory.
        """
        return self._graph.traverse_graph(risk_id, self._settings.risk_propagation_depth)

    def get_control_effectiveness_mapping(self, control_id: str) -> Optional[Row]:
        """
        Control with the processes it is attached to, plus graph relationships.

        Controls carry no graph_node_id; their node is found by the
        `originalId` in the node metadata.
        """
        control = self._store.get(
            "critical_control", control_id, include=DEFAULT_INCLUDES["critical_control"]
        )
        if control is None:
            return None

        node = self._graph.find_node_by_original_id(v.CRITICAL_CONTROL, control_id)
        if node is None:
            return control
        return {**control, RELATIONSHIPS: self._graph.get_node_relationships(node.id)}

    # ------------------------------------------------------------------ #
    # Search and listings
    # ------------------------------------------------------------------ #

    def search_entities(self, query: str, types: Optional[Sequence[str]] = None) -> SearchResults:
        """
        Substring search over relational name/description fields of each
        requested type, and separately over node labels.
        """
        wanted = list(types) if types is not None else SEARCHABLE_TYPES
        relational: list[Row] = []
        for entity_type in SEARCHABLE_TYPES:
            if entity_type not in wanted:
                continue
            rows = self._store.search(
                entity_type, query, limit=self._settings.relational_search_limit
            )
            relational.extend({**row, "type": entity_type} for row in rows)

        graph = [
            {"id": n.id, "type": n.type, "label": n.label, "metadata": n.metadata}
            for n in self._graph.find_nodes_by_label(query, self._settings.graph_search_limit)
        ]
        return SearchResults(relational=relational, graph=graph)

    def get_hierarchical_data(self, entity_type: str, parent_id: Optional[str] = None) -> list[Row]:
        """
        Entities of a type in the subtree rooted at `parent_id`, pre-ordered by
        hierarchy path. Types without a hierarchy path yield an empty list.
        """
        try:
            if not self._store.supports_hierarchy(entity_type):
                return []
        except UnknownEntityType:
            return []
        return self._store.find_by_hierarchy(entity_type, parent_id)

    def get_master_data_with_relationships(self, master_type: str) -> list[Row]:
        """
        Master data rows, each with its graph node (or None) under
        "graph_node"; the node carries its outbound edges and their targets.
        """
        entity_type = MASTER_TYPES.get(master_type)
        if entity_type is None:
            return []

        result: list[Row] = []
        for row in self._store.list_all(entity_type):
            node = self._mirror_node(entity_type, row)
            if node is not None:
                node.outgoing_edges = self._graph.get_node_relationships(node.id)
            result.append({**row, "graph_node": node})
        return result

    # ------------------------------------------------------------------ #
    # Analytics
    # ------------------------------------------------------------------ #

    def get_relationship_analytics(self) -> RelationshipAnalytics:
        return RelationshipAnalytics(
            stats=self._graph.get_graph_stats(),
            most_connected_nodes=self._graph.most_connected_nodes(
                self._settings.most_connected_limit
            ),
            relationship_types=self._graph.relation_type_counts(),
        )

