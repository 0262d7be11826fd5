"""
Entity registry for the relational store.

Maps entity type names to tables, declares how entity types relate to each
other, and defines the default include set used by detail fetches.

Include sets are nested dicts, following the same expansion rules as the
hierarchical get/update helpers elsewhere in this code base:

  - include[name] is None  -> load the relation, no further nesting.
  - include[name] is dict  -> load the relation and apply the dict to each
                              loaded row.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Literal, Optional, TypeAlias

from sqlalchemy import Table

from ..errors import UnknownEntityType
from . import schema as s

IncludeType: TypeAlias = Optional[Dict[str, "IncludeType"]]


ENTITY_TABLES: dict[str, Table] = {
    "enterprise": s.enterprises,
    "facility": s.facilities,
    "business_unit": s.business_units,
    "department": s.departments,
    "business_canvas": s.business_canvases,
    "value_proposition": s.value_propositions,
    "customer_segment": s.customer_segments,
    "revenue_stream": s.revenue_streams,
    "partnership": s.partnerships,
    "resource": s.resources,
    "activity": s.activities,
    "cost_structure": s.cost_structures,
    "channel": s.channels,
    "process": s.processes,
    "critical_control": s.critical_controls,
    "process_control": s.process_controls,
    "master_role": s.master_roles,
    "master_system": s.master_systems,
    "master_vendor": s.master_vendors,
    "master_hazard": s.master_hazards,
    "master_control": s.master_controls,
}

# Public names accepted by get_master_data_with_relationships.
MASTER_TYPES: dict[str, str] = {
    "roles": "master_role",
    "systems": "master_system",
    "vendors": "master_vendor",
    "hazards": "master_hazard",
    "controls": "master_control",
}

# Entity types covered by cross-representation search (name/description).
SEARCHABLE_TYPES = [
    "enterprise",
    "facility",
    "business_unit",
    "department",
    "business_canvas",
    "process",
    "critical_control",
]
SEARCH_FIELDS = ("name", "description")


@dataclass(frozen=True)
class Relation:
    """
    A named relation from one entity type to another.

    kind="one":  source[local] == target[remote]; loads a single row or None.
    kind="many": target[remote] == source[local]; loads a list of rows.
    """

    target: str
    kind: Literal["one", "many"]
    local: str
    remote: str


def _parent(target: str, fk: str) -> Relation:
    return Relation(target=target, kind="one", local=fk, remote="id")


def _children(target: str, fk: str) -> Relation:
    return Relation(target=target, kind="many", local="id", remote=fk)


CANVAS_ITEMS = {
    "value_propositions": "value_proposition",
    "customer_segments": "customer_segment",
    "revenue_streams": "revenue_stream",
    "partnerships": "partnership",
    "resources": "resource",
    "activities": "activity",
    "cost_structures": "cost_structure",
    "channels": "channel",
}

RELATIONS: dict[str, dict[str, Relation]] = {
    "enterprise": {
        "facilities": _children("facility", "enterprise_id"),
        "business_units": _children("business_unit", "enterprise_id"),
        "business_canvases": _children("business_canvas", "enterprise_id"),
        "processes": _children("process", "enterprise_id"),
    },
    "facility": {
        "enterprise": _parent("enterprise", "enterprise_id"),
        "business_units": _children("business_unit", "facility_id"),
        "business_canvases": _children("business_canvas", "facility_id"),
        "processes": _children("process", "facility_id"),
    },
    "business_unit": {
        "enterprise": _parent("enterprise", "enterprise_id"),
        "facility": _parent("facility", "facility_id"),
        "departments": _children("department", "business_unit_id"),
        "business_canvases": _children("business_canvas", "business_unit_id"),
        "processes": _children("process", "business_unit_id"),
    },
    "department": {
        "business_unit": _parent("business_unit", "business_unit_id"),
        "processes": _children("process", "department_id"),
    },
    "business_canvas": {
        "enterprise": _parent("enterprise", "enterprise_id"),
        "facility": _parent("facility", "facility_id"),
        "business_unit": _parent("business_unit", "business_unit_id"),
        **{
            name: _children(item, "business_canvas_id")
            for name, item in CANVAS_ITEMS.items()
        },
    },
    "process": {
        "enterprise": _parent("enterprise", "enterprise_id"),
        "facility": _parent("facility", "facility_id"),
        "business_unit": _parent("business_unit", "business_unit_id"),
        "department": _parent("department", "department_id"),
        "controls": _children("process_control", "process_id"),
    },
    "process_control": {
        "process": _parent("process", "process_id"),
        "control": _parent("critical_control", "control_id"),
    },
    "critical_control": {
        "processes": _children("process_control", "control_id"),
    },
}

DEFAULT_INCLUDES: dict[str, IncludeType] = {
    "enterprise": {
        "facilities": {"business_units": {"departments": None}},
        "business_units": {"departments": None},
        "business_canvases": None,
    },
    "facility": {
        "enterprise": None,
        "business_units": None,
    },
    "business_unit": {
        "enterprise": None,
        "facility": None,
        "departments": None,
    },
    "department": {
        "business_unit": None,
        "processes": None,
    },
    "business_canvas": {
        **{name: None for name in CANVAS_ITEMS},
        "enterprise": None,
        "facility": None,
        "business_unit": None,
    },
    "process": {
        "controls": {"control": None},
        "enterprise": None,
        "facility": None,
        "business_unit": None,
        "department": None,
    },
    "critical_control": {
        "processes": {"process": None},
    },
}


def table_for(entity_type: str) -> Table:
    try:
        return ENTITY_TABLES[entity_type]
    except KeyError:
        raise UnknownEntityType(entity_type) from None


def relation_for(entity_type: str, name: str) -> Relation:
    try:
        return RELATIONS[entity_type][name]
    except KeyError:
        raise KeyError(f"{entity_type} has no relation {name!r}") from None


def has_column(entity_type: str, column: str) -> bool:
    return column in table_for(entity_type).c
