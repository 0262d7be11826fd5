"""
bizgraph.store
==============

Relational side of the hybrid model: the canonical entity tables and the
typed access layer the graph mirror and the hybrid queries are built on.

Public API:

- RelationalStore    : CRUD, nested includes, search and hierarchy queries.
- create_store_schema: create the entity tables in a database.
- build_path         : compose a hierarchy path from ancestor keys.
"""

from .hierarchy import build_path, is_within
from .relations import DEFAULT_INCLUDES, MASTER_TYPES, SEARCHABLE_TYPES
from .repository import RelationalStore
from .schema import create_store_schema

__all__ = [
    "RelationalStore",
    "create_store_schema",
    "build_path",
    "is_within",
    "DEFAULT_INCLUDES",
    "MASTER_TYPES",
    "SEARCHABLE_TYPES",
]
