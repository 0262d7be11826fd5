from __future__ import annotations

import uuid
from logging import getLogger
from typing import Any, Iterable, Mapping, Optional, Sequence

from sqlalchemy import Table, delete, func, insert, or_, select, update
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

from ..errors import EntityNotFound, UnknownEntityType
from .hierarchy import DELIMITER
from .relations import (
    SEARCH_FIELDS,
    IncludeType,
    has_column,
    relation_for,
    table_for,
)

logger = getLogger(__name__)

Row = dict[str, Any]


class RelationalStore:
    """
    Typed CRUD over the relational entities, with nested includes.

    Rows are returned as plain dicts keyed by column name; included relations
    are added under their relation name (a dict or None for to-one relations,
    a list for to-many ones). Includes are loaded with one query per relation
    per nesting level, not per row.

    Like GraphService, the store works on a caller-supplied Session and
    never commits.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    @property
    def session(self) -> Session:
        return self._session

    # ------------------------------------------------------------------ #
    # CRUD
    # ------------------------------------------------------------------ #

    def insert(self, entity_type: str, values: Mapping[str, Any]) -> Row:
        """Insert a row; an `id` is generated when the table has one and none is given."""
        table = table_for(entity_type)
        data = dict(values)
        if "id" in table.c and data.get("id") is None:
            data["id"] = str(uuid.uuid4())
        self._session.execute(insert(table).values(**data))
        return data

    def get(
        self,
        entity_type: str,
        entity_id: str,
        *,
        include: IncludeType = None,
    ) -> Optional[Row]:
        table = _keyed_table(entity_type)
        row = self._session.execute(
            select(table).where(table.c.id == entity_id)
        ).mappings().one_or_none()
        if row is None:
            return None
        result = [dict(row)]
        self._load_includes(entity_type, result, include)
        return result[0]

    def list_all(
        self,
        entity_type: str,
        *,
        include: IncludeType = None,
        where: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> list[Row]:
        """All rows of a type in primary key order, optionally filtered by equality."""
        table = table_for(entity_type)
        stmt = select(table).order_by(*table.primary_key.columns).limit(limit)
        for column, value in (where or {}).items():
            stmt = stmt.where(table.c[column] == value)
        return self._fetch(entity_type, stmt, include)

    def update(self, entity_type: str, entity_id: str, values: Mapping[str, Any]) -> None:
        table = _keyed_table(entity_type)
        result = self._session.execute(
            update(table).where(table.c.id == entity_id).values(**values)
        )
        if result.rowcount == 0:
            raise EntityNotFound(entity_type, entity_id)

    def delete(self, entity_type: str, entity_id: str) -> None:
        """
        Delete a row by primary key.

        The graph mirror is not touched: a node created for this row stays
        behind until removed through GraphService.
        """
        table = _keyed_table(entity_type)
        result = self._session.execute(delete(table).where(table.c.id == entity_id))
        if result.rowcount == 0:
            raise EntityNotFound(entity_type, entity_id)

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def count(
        self,
        entity_type: str,
        *,
        with_graph_node: bool = False,
        with_hierarchy_path: bool = False,
    ) -> int:
        table = table_for(entity_type)
        stmt = select(func.count()).select_from(table)
        if with_graph_node:
            stmt = stmt.where(table.c.graph_node_id.is_not(None))
        if with_hierarchy_path:
            stmt = stmt.where(table.c.hierarchy_path.is_not(None))
        return int(self._session.execute(stmt).scalar_one())

    def search(
        self,
        entity_type: str,
        query: str,
        *,
        fields: Sequence[str] = SEARCH_FIELDS,
        limit: Optional[int] = 10,
    ) -> list[Row]:
        """Case-insensitive substring match on any of `fields`."""
        table = table_for(entity_type)
        conditions = [
            table.c[f].icontains(query, autoescape=True)
            for f in fields
            if f in table.c
        ]
        if not conditions:
            return []
        stmt = (
            select(table)
            .where(or_(*conditions))
            .order_by(*table.primary_key.columns)
            .limit(limit)
        )
        return self._fetch(entity_type, stmt, None)

    def find_by_hierarchy(self, entity_type: str, root: Optional[str] = None) -> list[Row]:
        """
        Rows whose hierarchy path is `root` or lies below it, ordered by path.

        Ordering by path yields a pre-order listing of the subtree. Matching is
        per segment, so root "E1" does not pick up "E10". Without a root every
        row of the type is returned.
        """
        table = table_for(entity_type)
        path = table.c.hierarchy_path
        stmt = select(table).order_by(path.asc(), table.c.id)
        if root is not None:
            stmt = stmt.where(
                or_(path == root, path.startswith(root + DELIMITER, autoescape=True))
            )
        return self._fetch(entity_type, stmt, None)

    def supports_hierarchy(self, entity_type: str) -> bool:
        return has_column(entity_type, "hierarchy_path")

    # ------------------------------------------------------------------ #
    # Includes
    # ------------------------------------------------------------------ #

    def _fetch(self, entity_type: str, stmt: Select, include: IncludeType) -> list[Row]:
        rows = [dict(r) for r in self._session.execute(stmt).mappings()]
        self._load_includes(entity_type, rows, include)
        return rows

    def _load_includes(self, entity_type: str, rows: list[Row], include: IncludeType) -> None:
        if not include or not rows:
            return
        for name, nested in include.items():
            relation = relation_for(entity_type, name)
            target = table_for(relation.target)
            keys = _distinct(row[relation.local] for row in rows)

            related: list[Row] = []
            if keys:
                stmt = (
                    select(target)
                    .where(target.c[relation.remote].in_(keys))
                    .order_by(*target.primary_key.columns)
                )
                related = [dict(r) for r in self._session.execute(stmt).mappings()]
                self._load_includes(relation.target, related, nested)

            if relation.kind == "one":
                by_key = {r[relation.remote]: r for r in related}
                for row in rows:
                    row[name] = by_key.get(row[relation.local])
            else:
                groups: dict[Any, list[Row]] = {}
                for r in related:
                    groups.setdefault(r[relation.remote], []).append(r)
                for row in rows:
                    row[name] = list(groups.get(row[relation.local], []))


def _keyed_table(entity_type: str) -> Table:
    """Table of an entity type addressed by `id`; join tables have none."""
    table = table_for(entity_type)
    if "id" not in table.c:
        raise UnknownEntityType(entity_type)
    return table


def _distinct(values: Iterable[Any]) -> list[Any]:
    seen: dict[Any, None] = {}
    for value in values:
        if value is not None:
            seen.setdefault(value, None)
    return list(seen)
