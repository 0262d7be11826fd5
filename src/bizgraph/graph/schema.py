from __future__ import annotations

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    MetaData,
    String,
    Table,
)
from sqlalchemy.engine import Engine

metadata = MetaData()

nodes = Table(
    "nodes",
    metadata,
    Column("id", String(36), primary_key=True),  # uuid4, generated by GraphService
    Column("type", String, nullable=False),
    Column("label", String, nullable=False),
    Column("metadata", JSON, nullable=False, default=dict),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Index("ix_nodes_type", "type"),
    Index("ix_nodes_label", "label"),
)

# (from_id, to_id, relation_type) is the natural key: one edge per relation
# type between an ordered pair of nodes.
edges = Table(
    "edges",
    metadata,
    Column("from_id", String(36), ForeignKey("nodes.id"), primary_key=True),
    Column("to_id", String(36), ForeignKey("nodes.id"), primary_key=True),
    Column("relation_type", String, primary_key=True),
    Column("metadata", JSON, nullable=False, default=dict),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Index("ix_edges_to_id", "to_id"),
    Index("ix_edges_relation_type", "relation_type"),
)


def create_graph_schema(engine: Engine) -> None:
    """
    Create the node/edge tables if they do not exist yet.

    The tables live next to the relational entities in the same store; the
    relational side only holds weak `graph_node_id` references into `nodes`.
    """
    with engine.begin() as conn:
        metadata.create_all(conn)
