from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
)
from sqlalchemy.engine import Engine

metadata = MetaData()


def _mirror_columns() -> list[Column]:
    """
    Denormalized mirror fields carried by entities that have a graph node.

    graph_node_id is a weak reference (no foreign key, no cascade) and
    hierarchy_path is derived; both are rewritten by the migration only.
    """
    return [
        Column("graph_node_id", String(36), nullable=True, index=True),
        Column("hierarchy_path", String, nullable=True, index=True),
    ]


enterprises = Table(
    "enterprises",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("name", String, nullable=False),
    Column("legal_name", String, nullable=True),
    Column("abn", String, nullable=True),
    Column("industry", String, nullable=True),
    Column("sector", String, nullable=True),
    Column("description", Text, nullable=True),
    *_mirror_columns(),
)

facilities = Table(
    "facilities",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("enterprise_id", String(64), ForeignKey("enterprises.id"), nullable=True),
    Column("name", String, nullable=False),
    Column("code", String, nullable=True),
    Column("type", String, nullable=True),
    Column("status", String, nullable=True),
    Column("location", JSON, nullable=True),
    Column("capacity", Float, nullable=True),
    Column("description", Text, nullable=True),
    *_mirror_columns(),
)

business_units = Table(
    "business_units",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("enterprise_id", String(64), ForeignKey("enterprises.id"), nullable=False),
    Column("facility_id", String(64), ForeignKey("facilities.id"), nullable=True),
    Column("name", String, nullable=False),
    Column("code", String, nullable=True),
    Column("type", String, nullable=True),
    Column("status", String, nullable=True),
    Column("budget", Float, nullable=True),
    Column("description", Text, nullable=True),
    *_mirror_columns(),
)

departments = Table(
    "departments",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("business_unit_id", String(64), ForeignKey("business_units.id"), nullable=False),
    Column("name", String, nullable=False),
    Column("code", String, nullable=True),
    Column("type", String, nullable=True),
    Column("status", String, nullable=True),
    Column("employee_count", Integer, nullable=True),
    Column("description", Text, nullable=True),
    *_mirror_columns(),
)

business_canvases = Table(
    "business_canvases",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("enterprise_id", String(64), ForeignKey("enterprises.id"), nullable=True),
    Column("facility_id", String(64), ForeignKey("facilities.id"), nullable=True),
    Column("business_unit_id", String(64), ForeignKey("business_units.id"), nullable=True),
    Column("name", String, nullable=False),
    Column("description", Text, nullable=True),
    Column("industry", String, nullable=True),
    Column("sectors", JSON, nullable=True),
    Column("status", String, nullable=True),
    Column("is_active", Boolean, nullable=False, default=True),
    *_mirror_columns(),
)


def _canvas_item_table(name: str) -> Table:
    return Table(
        name,
        metadata,
        Column("id", String(64), primary_key=True),
        Column(
            "business_canvas_id",
            String(64),
            ForeignKey("business_canvases.id"),
            nullable=False,
            index=True,
        ),
        Column("name", String, nullable=False),
        Column("description", Text, nullable=True),
        Column("priority", String, nullable=True),
    )


value_propositions = _canvas_item_table("value_propositions")
customer_segments = _canvas_item_table("customer_segments")
revenue_streams = _canvas_item_table("revenue_streams")
partnerships = _canvas_item_table("partnerships")
resources = _canvas_item_table("resources")
activities = _canvas_item_table("activities")
cost_structures = _canvas_item_table("cost_structures")
channels = _canvas_item_table("channels")

processes = Table(
    "processes",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("enterprise_id", String(64), ForeignKey("enterprises.id"), nullable=True),
    Column("facility_id", String(64), ForeignKey("facilities.id"), nullable=True),
    Column("business_unit_id", String(64), ForeignKey("business_units.id"), nullable=True),
    Column("department_id", String(64), ForeignKey("departments.id"), nullable=True),
    Column("name", String, nullable=False),
    Column("description", Text, nullable=True),
    Column("version", String, nullable=True),
    Column("status", String, nullable=True),
    Column("priority", String, nullable=True),
    *_mirror_columns(),
)

# Critical controls are master data: no graph_node_id or hierarchy_path. Their
# node is located through the node metadata `originalId`.
critical_controls = Table(
    "critical_controls",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("name", String, nullable=False),
    Column("description", Text, nullable=True),
    Column("risk_category", String, nullable=True),
    Column("control_type", String, nullable=True),
    Column("effectiveness", String, nullable=True),
    Column("compliance_status", String, nullable=True),
    Column("priority", String, nullable=True),
)

process_controls = Table(
    "process_controls",
    metadata,
    Column("process_id", String(64), ForeignKey("processes.id"), primary_key=True),
    Column("control_id", String(64), ForeignKey("critical_controls.id"), primary_key=True),
)


def _master_table(name: str) -> Table:
    return Table(
        name,
        metadata,
        Column("id", String(64), primary_key=True),
        Column("name", String, nullable=False),
        Column("description", Text, nullable=True),
        Column("graph_node_id", String(36), nullable=True, index=True),
    )


master_roles = _master_table("master_roles")
master_systems = _master_table("master_systems")
master_vendors = _master_table("master_vendors")
master_hazards = _master_table("master_hazards")
master_controls = _master_table("master_controls")


def create_store_schema(engine: Engine) -> None:
    """Create the relational entity tables if they do not exist yet."""
    with engine.begin() as conn:
        metadata.create_all(conn)
