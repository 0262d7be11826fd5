from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import Any, Callable, Iterator, Optional

from sqlalchemy.orm import Session

from ..graph import vocabulary as v
from ..graph.service import GraphService
from ..store.repository import RelationalStore, Row

logger = getLogger(__name__)

# (from node id, to node id, edge metadata); either id may be None when the
# endpoint has not been mirrored.
Candidate = tuple[Optional[str], Optional[str], dict[str, Any]]


def _node_id(row: Optional[Row]) -> Optional[str]:
    return row.get("graph_node_id") if row else None


@dataclass(frozen=True)
class Pairing:
    name: str
    relation_type: str
    candidates: Callable[[RelationalStore, GraphService], Iterator[Candidate]]


def _enterprise_facility(store: RelationalStore, graph: GraphService) -> Iterator[Candidate]:
    for facility in store.list_all("facility", include={"enterprise": None}):
        if facility["enterprise"] is None:
            continue
        yield _node_id(facility["enterprise"]), facility["graph_node_id"], {
            "relationshipType": "ownership",
            "capacity": facility["capacity"],
            "type": facility["type"],
        }


def _facility_business_unit(store: RelationalStore, graph: GraphService) -> Iterator[Candidate]:
    for unit in store.list_all("business_unit", include={"facility": None}):
        if unit["facility"] is None:
            continue
        yield _node_id(unit["facility"]), unit["graph_node_id"], {
            "relationshipType": "operational",
            "budget": unit["budget"],
            "type": unit["type"],
        }


def _business_unit_department(store: RelationalStore, graph: GraphService) -> Iterator[Candidate]:
    for dept in store.list_all("department", include={"business_unit": None}):
        if dept["business_unit"] is None:
            continue
        yield _node_id(dept["business_unit"]), dept["graph_node_id"], {
            "relationshipType": "operational",
            "employeeCount": dept["employee_count"],
            "type": dept["type"],
        }


def _enterprise_business_unit(store: RelationalStore, graph: GraphService) -> Iterator[Candidate]:
    for unit in store.list_all("business_unit", include={"enterprise": None}):
        if unit["enterprise"] is None:
            continue
        yield _node_id(unit["enterprise"]), unit["graph_node_id"], {
            "relationshipType": "ownership",
            "budget": unit["budget"],
            "type": unit["type"],
        }


def _enterprise_canvas(store: RelationalStore, graph: GraphService) -> Iterator[Candidate]:
    for canvas in store.list_all("business_canvas", include={"enterprise": None}):
        if canvas["enterprise"] is None:
            continue
        yield _node_id(canvas["enterprise"]), canvas["graph_node_id"], {
            "relationshipType": "strategic",
            "industry": canvas["industry"],
            "status": canvas["status"],
        }


def _business_unit_process(store: RelationalStore, graph: GraphService) -> Iterator[Candidate]:
    for process in store.list_all("process", include={"business_unit": None}):
        if process["business_unit"] is None:
            continue
        yield _node_id(process["business_unit"]), process["graph_node_id"], {
            "relationshipType": "operational",
            "priority": process["priority"],
            "status": process["status"],
        }


def _department_process(store: RelationalStore, graph: GraphService) -> Iterator[Candidate]:
    for process in store.list_all("process", include={"department": None}):
        if process["department"] is None:
            continue
        yield _node_id(process["department"]), process["graph_node_id"], {
            "relationshipType": "operational",
            "priority": process["priority"],
            "status": process["status"],
        }


def _process_control(store: RelationalStore, graph: GraphService) -> Iterator[Candidate]:
    links = store.list_all("process_control", include={"process": None, "control": None})
    for link in links:
        control_node = graph.find_node_by_original_id(v.CRITICAL_CONTROL, link["control_id"])
        control = link["control"] or {}
        yield _node_id(link["process"]), control_node.id if control_node else None, {
            "relationshipType": "control",
            "controlName": control.get("name"),
        }


def _canvas_process(store: RelationalStore, graph: GraphService) -> Iterator[Candidate]:
    canvases = store.list_all("business_canvas")
    processes = store.list_all("process")
    for canvas in canvases:
        if canvas["enterprise_id"] is None:
            continue
        for process in processes:
            if process["enterprise_id"] != canvas["enterprise_id"]:
                continue
            yield canvas["graph_node_id"], process["graph_node_id"], {
                "relationshipType": "strategic_to_operational",
                "canvasStatus": canvas["status"],
                "processStatus": process["status"],
            }


PAIRINGS: list[Pairing] = [
    Pairing("enterprise->facility", v.OPERATES, _enterprise_facility),
    Pairing("facility->business_unit", v.CONTAINS, _facility_business_unit),
    Pairing("business_unit->department", v.MANAGES, _business_unit_department),
    Pairing("enterprise->business_unit", v.OWNS, _enterprise_business_unit),
    Pairing("enterprise->business_canvas", v.STRATEGIZES, _enterprise_canvas),
    Pairing("business_unit->process", v.EXECUTES, _business_unit_process),
    Pairing("department->process", v.IMPLEMENTS, _department_process),
    Pairing("process->critical_control", v.IMPLEMENTS, _process_control),
    Pairing("business_canvas->process", v.ENABLES, _canvas_process),
]


@dataclass
class RelationshipSummary:
    created: dict[str, int] = field(default_factory=dict)
    skipped_unmirrored: dict[str, int] = field(default_factory=dict)
    skipped_existing: dict[str, int] = field(default_factory=dict)

    @property
    def total_created(self) -> int:
        return sum(self.created.values())


def create_hierarchy_relationships(
    session: Session, *, skip_existing: bool = False
) -> RelationshipSummary:
    """
    Create one directed edge per parent -> child pairing found in the
    relational rows.

    Pairings where either side has no node are skipped. Without
    skip_existing, a pairing whose edge already exists raises DuplicateEdge;
    with it, the existing edge is left as is.

    Each edge is committed on its own; the first error is logged and
    re-raised, aborting the remaining pairings.
    `session` must not be inside `session.begin()`; see db.migration_session.
    """
    graph = GraphService(session)
    store = RelationalStore(session)
    summary = RelationshipSummary()

    logger.info("Creating hierarchy relationships...")
    try:
        for pairing in PAIRINGS:
            logger.info("Creating %s relationships (%s)...", pairing.name, pairing.relation_type)
            created = unmirrored = existing = 0
            for from_id, to_id, edge_metadata in pairing.candidates(store, graph):
                if not from_id or not to_id:
                    unmirrored += 1
                    continue
                if skip_existing and graph.edge_exists(from_id, to_id, pairing.relation_type):
                    existing += 1
                    continue
                graph.create_edge(from_id, to_id, pairing.relation_type, edge_metadata)
                session.commit()
                created += 1

            summary.created[pairing.name] = created
            summary.skipped_unmirrored[pairing.name] = unmirrored
            summary.skipped_existing[pairing.name] = existing
            logger.info(
                "%s: %d created, %d skipped (unmirrored), %d skipped (existing)",
                pairing.name, created, unmirrored, existing,
            )
    except Exception:
        session.rollback()
        logger.exception("Error creating hierarchy relationships")
        raise

    logger.info(
        "Hierarchy relationships created successfully (%d edges)", summary.total_created
    )
    return summary
