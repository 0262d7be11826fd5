from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import Callable, Optional, Sequence

from sqlalchemy.orm import Session

from ..graph import metadata as m
from ..graph import vocabulary as v
from ..graph.service import GraphService
from ..store.hierarchy import build_path
from ..store.relations import IncludeType
from ..store.repository import RelationalStore, Row

logger = getLogger(__name__)


def _key(related: Optional[Row]) -> Optional[str]:
    return related["id"] if related else None


@dataclass(frozen=True)
class EntityMirror:
    """
    How rows of one entity type are mirrored into nodes.

    `ancestors` returns the keys of the row's ancestors in parent-to-child
    order, None where an optional ancestor is absent; the row's own key is
    appended to form the hierarchy path. Types with `writes_back=False` have
    no graph_node_id/hierarchy_path columns and are found through the node's
    `originalId` instead.
    """

    entity_type: str
    node_type: str
    title: str
    include: IncludeType
    metadata: Callable[[Row], m.NodeMetadata]
    ancestors: Callable[[Row], Sequence[Optional[str]]] = lambda row: ()
    writes_back: bool = True


def _department_ancestors(row: Row) -> Sequence[Optional[str]]:
    unit = row["business_unit"] or {}
    return (_key(unit.get("enterprise")), _key(unit.get("facility")), unit.get("id"))


# Parents are migrated before children.
ENTITY_MIRRORS: list[EntityMirror] = [
    EntityMirror(
        entity_type="enterprise",
        node_type=v.ENTERPRISE,
        title="enterprises",
        include=None,
        metadata=lambda r: m.EnterpriseMetadata(
            original_id=r["id"],
            legal_name=r["legal_name"],
            abn=r["abn"],
            industry=r["industry"],
            sector=r["sector"],
        ),
    ),
    EntityMirror(
        entity_type="facility",
        node_type=v.FACILITY,
        title="facilities",
        include={"enterprise": None},
        metadata=lambda r: m.FacilityMetadata(
            original_id=r["id"],
            code=r["code"],
            type=r["type"],
            status=r["status"],
            location=r["location"],
            capacity=r["capacity"],
        ),
        ancestors=lambda r: (_key(r["enterprise"]),),
    ),
    EntityMirror(
        entity_type="business_unit",
        node_type=v.BUSINESS_UNIT,
        title="business units",
        include={"enterprise": None, "facility": None},
        metadata=lambda r: m.BusinessUnitMetadata(
            original_id=r["id"],
            code=r["code"],
            type=r["type"],
            status=r["status"],
            budget=r["budget"],
        ),
        ancestors=lambda r: (_key(r["enterprise"]), _key(r["facility"])),
    ),
    EntityMirror(
        entity_type="department",
        node_type=v.DEPARTMENT,
        title="departments",
        include={"business_unit": {"enterprise": None, "facility": None}},
        metadata=lambda r: m.DepartmentMetadata(
            original_id=r["id"],
            code=r["code"],
            type=r["type"],
            status=r["status"],
            employee_count=r["employee_count"],
        ),
        ancestors=_department_ancestors,
    ),
    EntityMirror(
        entity_type="business_canvas",
        node_type=v.BUSINESS_CANVAS,
        title="business canvases",
        include={"enterprise": None, "facility": None, "business_unit": None},
        metadata=lambda r: m.BusinessCanvasMetadata(
            original_id=r["id"],
            description=r["description"],
            industry=r["industry"],
            sectors=r["sectors"] or [],
            status=r["status"],
        ),
        ancestors=lambda r: (
            _key(r["enterprise"]),
            _key(r["facility"]),
            _key(r["business_unit"]),
        ),
    ),
    EntityMirror(
        entity_type="process",
        node_type=v.PROCESS,
        title="processes",
        include={
            "enterprise": None,
            "facility": None,
            "business_unit": None,
            "department": None,
        },
        metadata=lambda r: m.ProcessMetadata(
            original_id=r["id"],
            description=r["description"],
            version=r["version"],
            status=r["status"],
            priority=r["priority"],
        ),
        ancestors=lambda r: (
            _key(r["enterprise"]),
            _key(r["facility"]),
            _key(r["business_unit"]),
            _key(r["department"]),
        ),
    ),
    EntityMirror(
        entity_type="critical_control",
        node_type=v.CRITICAL_CONTROL,
        title="critical controls",
        include=None,
        metadata=lambda r: m.CriticalControlMetadata(
            original_id=r["id"],
            description=r["description"],
            risk_category=r["risk_category"],
            control_type=r["control_type"],
            effectiveness=r["effectiveness"],
        ),
        writes_back=False,
    ),
]


def hierarchy_path_for(mirror: EntityMirror, row: Row) -> str:
    return build_path(*mirror.ancestors(row), row["id"])


@dataclass
class MigrationSummary:
    created: dict[str, int] = field(default_factory=dict)
    reused: dict[str, int] = field(default_factory=dict)

    @property
    def total_created(self) -> int:
        return sum(self.created.values())


def migrate_entities_to_graph(session: Session, *, skip_existing: bool = False) -> MigrationSummary:
    """
    Create a node for every mirrored row and write back graph_node_id and
    hierarchy_path.

    With skip_existing=False (the default) a node is created for every row on
    every run, so re-running duplicates nodes. With skip_existing=True an
    existing (type, originalId) node is reused and only the back-references
    are rewritten.

    Each row is committed on its own. The first error is logged and
    re-raised; rows committed before it stay migrated.
    `session` must not be inside `session.begin()`; see db.migration_session.
    """
    graph = GraphService(session)
    store = RelationalStore(session)
    summary = MigrationSummary()

    logger.info("Starting entity to graph migration (skip_existing=%s)", skip_existing)
    try:
        for mirror in ENTITY_MIRRORS:
            logger.info("Migrating %s...", mirror.title)
            created = reused = 0
            for row in store.list_all(mirror.entity_type, include=mirror.include):
                node = None
                if skip_existing:
                    node = graph.find_node_by_original_id(mirror.node_type, row["id"])
                if node is None:
                    node = graph.create_node(mirror.node_type, row["name"], mirror.metadata(row))
                    created += 1
                else:
                    reused += 1

                if mirror.writes_back:
                    store.update(
                        mirror.entity_type,
                        row["id"],
                        {
                            "graph_node_id": node.id,
                            "hierarchy_path": hierarchy_path_for(mirror, row),
                        },
                    )
                session.commit()

            summary.created[mirror.entity_type] = created
            summary.reused[mirror.entity_type] = reused
            logger.info("Migrated %s: %d created, %d reused", mirror.title, created, reused)
    except Exception:
        session.rollback()
        logger.exception("Error during entity to graph migration")
        raise

    logger.info(
        "Entity to graph migration completed successfully (%d nodes created)",
        summary.total_created,
    )
    return summary
