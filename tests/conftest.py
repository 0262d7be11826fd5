from __future__ import annotations

from typing import Iterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from bizgraph.db import create_schema
from bizgraph.graph import GraphService
from bizgraph.hybrid import HybridQueryService
from bizgraph.store import RelationalStore


@pytest.fixture
def engine() -> Iterator[Engine]:
    # One shared in-memory connection so every session sees the same tables.
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    create_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine: Engine) -> Iterator[Session]:
    with Session(engine) as session:
        yield session


@pytest.fixture
def graph(session: Session) -> GraphService:
    return GraphService(session)


@pytest.fixture
def store(session: Session) -> RelationalStore:
    return RelationalStore(session)


@pytest.fixture
def hybrid(session: Session, graph: GraphService, store: RelationalStore) -> HybridQueryService:
    return HybridQueryService(session, graph=graph, store=store)


@pytest.fixture
def org(session: Session, store: RelationalStore) -> RelationalStore:
    """
    A small organisation, committed:

      E1 ── F1 ── B1 ── D1
       │           ├── C1 (canvas, E1/F1/B1)
       │           └── P1 (E1/F1/B1/D1) ── K1 (critical control)
       └── B2 (no facility) ── P2 (E1/B2)
      E2 (empty), C2 (canvas without enterprise)
    """
    store.insert("enterprise", {"id": "E1", "name": "Acme Mining", "industry": "Mining"})
    store.insert("enterprise", {"id": "E2", "name": "Beta Logistics"})
    store.insert(
        "facility",
        {"id": "F1", "enterprise_id": "E1", "name": "Pit One", "type": "mine", "capacity": 120.0},
    )
    store.insert(
        "business_unit",
        {"id": "B1", "enterprise_id": "E1", "facility_id": "F1", "name": "Extraction", "budget": 5e6},
    )
    store.insert("business_unit", {"id": "B2", "enterprise_id": "E1", "name": "Corporate"})
    store.insert(
        "department",
        {"id": "D1", "business_unit_id": "B1", "name": "Drill and Blast", "employee_count": 42},
    )
    store.insert(
        "business_canvas",
        {
            "id": "C1",
            "enterprise_id": "E1",
            "facility_id": "F1",
            "business_unit_id": "B1",
            "name": "Extraction Canvas",
            "sectors": ["mining"],
            "status": "active",
        },
    )
    store.insert("business_canvas", {"id": "C2", "name": "Orphan Canvas", "status": "draft"})
    store.insert(
        "value_proposition",
        {"id": "VP1", "business_canvas_id": "C1", "name": "Low cost ore"},
    )
    store.insert(
        "process",
        {
            "id": "P1",
            "enterprise_id": "E1",
            "facility_id": "F1",
            "business_unit_id": "B1",
            "department_id": "D1",
            "name": "Blast Hole Drilling",
            "priority": "high",
            "status": "active",
        },
    )
    store.insert(
        "process",
        {"id": "P2", "enterprise_id": "E1", "business_unit_id": "B2", "name": "Payroll"},
    )
    store.insert(
        "critical_control",
        {"id": "K1", "name": "Exclusion Zone", "risk_category": "safety", "effectiveness": "high"},
    )
    store.insert("process_control", {"process_id": "P1", "control_id": "K1"})
    session.commit()
    return store
