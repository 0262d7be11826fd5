from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import Optional

from sqlalchemy.orm import Session

from ..config import GraphSettings
from ..graph import vocabulary as v
from ..graph.extract import get_node_type_distribution
from ..graph.service import GraphService
from ..graph.types import NodeTypeCount
from ..hybrid import RELATIONSHIPS, HybridQueryService
from ..store.hierarchy import is_within, split_path
from ..store.repository import RelationalStore

logger = getLogger(__name__)

# Entity types that carry graph_node_id and hierarchy_path.
BACK_REFERENCED_TYPES = [
    "enterprise",
    "facility",
    "business_unit",
    "department",
    "business_canvas",
    "process",
]


@dataclass
class ValidationReport:
    total_nodes: int
    total_edges: int
    entity_counts: dict[str, int] = field(default_factory=dict)
    mirrored_counts: dict[str, int] = field(default_factory=dict)
    canvases_with_hierarchy_path: int = 0
    dangling_edges: int = 0
    misplaced_paths: int = 0
    node_types: list[NodeTypeCount] = field(default_factory=list)
    sample_node_relationships: Optional[int] = None
    traversal_reached: Optional[int] = None
    hybrid_canvas_relationships: Optional[int] = None

    @property
    def missing_mirrors(self) -> dict[str, int]:
        """Per type, rows that have no graph_node_id yet."""
        missing = {
            t: total - self.mirrored_counts.get(t, 0)
            for t, total in self.entity_counts.items()
        }
        return {t: n for t, n in missing.items() if n > 0}

    @property
    def is_complete(self) -> bool:
        return (
            not self.missing_mirrors
            and self.dangling_edges == 0
            and self.misplaced_paths == 0
        )


def _misplaced_paths(store: RelationalStore) -> int:
    """
    Rows whose hierarchy path does not end in their own key, or does not lie
    under their enterprise's path.
    """
    enterprise_paths = {
        row["id"]: row["hierarchy_path"] for row in store.list_all("enterprise")
    }
    misplaced = 0
    for entity_type in BACK_REFERENCED_TYPES:
        for row in store.list_all(entity_type):
            path = row["hierarchy_path"]
            if path is None:
                continue
            root = enterprise_paths.get(row.get("enterprise_id"))
            if split_path(path)[-1] != row["id"] or (root and not is_within(path, root)):
                logger.warning(
                    "%s %s has misplaced hierarchy path %r", entity_type, row["id"], path
                )
                misplaced += 1
    return misplaced


def validate_migration(session: Session, settings: Optional[GraphSettings] = None) -> ValidationReport:
    """
    Count what the migration produced and run a sample traversal and hybrid
    query.

    This is a smoke test: it reports gaps (rows without a node, dangling
    edges) but repairs nothing.
    """
    settings = settings or GraphSettings()
    graph = GraphService(session, settings)
    store = RelationalStore(session)
    hybrid = HybridQueryService(session, graph=graph, store=store, settings=settings)

    logger.info("Validating graph-relational migration...")
    try:
        stats = graph.get_graph_stats()
        report = ValidationReport(
            total_nodes=stats.total_nodes,
            total_edges=stats.total_edges,
            node_types=stats.node_types,
        )
        logger.info("Total graph nodes: %d", report.total_nodes)
        logger.info("Total graph edges: %d", report.total_edges)

        for entity_type in BACK_REFERENCED_TYPES:
            report.entity_counts[entity_type] = store.count(entity_type)
            report.mirrored_counts[entity_type] = store.count(entity_type, with_graph_node=True)
            logger.info(
                "%s with graph nodes: %d of %d",
                entity_type,
                report.mirrored_counts[entity_type],
                report.entity_counts[entity_type],
            )

        report.canvases_with_hierarchy_path = store.count(
            "business_canvas", with_hierarchy_path=True
        )
        logger.info(
            "Business canvases with hierarchy paths: %d", report.canvases_with_hierarchy_path
        )

        report.dangling_edges = graph.count_dangling_edges()
        logger.info("Dangling edges: %d", report.dangling_edges)

        report.misplaced_paths = _misplaced_paths(store)
        logger.info("Misplaced hierarchy paths: %d", report.misplaced_paths)

        sample = graph.list_nodes(limit=1)
        if sample:
            report.sample_node_relationships = len(graph.get_node_relationships(sample[0].id))
            logger.info("Test node relationships: %d", report.sample_node_relationships)

        enterprise_nodes = graph.find_nodes_by_type(v.ENTERPRISE, limit=1)
        if enterprise_nodes:
            steps = graph.traverse_graph(
                enterprise_nodes[0].id, settings.validation_traversal_depth
            )
            report.traversal_reached = len(steps)
            logger.info("Graph traversal test: %d nodes reached", report.traversal_reached)

        canvases = store.list_all("business_canvas", limit=1)
        if canvases:
            result = hybrid.get_business_canvas_with_relationships(canvases[0]["id"])
            report.hybrid_canvas_relationships = len((result or {}).get(RELATIONSHIPS, []))
            logger.info(
                "Hybrid query test: canvas has %d relationships",
                report.hybrid_canvas_relationships,
            )

        logger.info(
            "Node type distribution:\n%s", get_node_type_distribution(graph).to_string()
        )
    except Exception:
        logger.exception("Error during migration validation")
        raise

    if report.is_complete:
        logger.info("Migration validation completed successfully")
    else:
        logger.warning(
            "Migration validation found gaps: missing mirrors %s, %d dangling edge(s), "
            "%d misplaced path(s)",
            report.missing_mirrors,
            report.dangling_edges,
            report.misplaced_paths,
        )
    return report
