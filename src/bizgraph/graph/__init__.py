"""
bizgraph.graph
==============

Node/edge mirror of the relational entities.

Public API:

- GraphService       : sole reader/writer of the node and edge tables
                       (CRUD, BFS traversal, path search, lookups, stats).
- Node, Edge         : stored records; Edge carries its opposite endpoint
                       when returned by relationship lookups.
- TraversalStep      : (node, depth) pair produced by traverse_graph.
- GraphStats         : aggregate node/edge counts.
- NodeMetadata       : typed metadata document; per-type subclasses are in
                       .metadata and resolved by parse_node_metadata.
- create_graph_schema: create the node/edge tables in a database.

All other modules in this package are considered internal implementation details.
"""

from __future__ import annotations

from .metadata import NodeMetadata, parse_node_metadata
from .schema import create_graph_schema
from .service import GraphService
from .types import (
    Edge,
    GraphStats,
    Node,
    NodeConnections,
    NodeTypeCount,
    RelationTypeCount,
    TraversalStep,
)

__all__ = [
    "GraphService",
    "Node",
    "Edge",
    "TraversalStep",
    "GraphStats",
    "NodeTypeCount",
    "NodeConnections",
    "RelationTypeCount",
    "NodeMetadata",
    "parse_node_metadata",
    "create_graph_schema",
]
