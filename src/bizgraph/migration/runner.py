from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from ..config import AppSettings, get_settings
from ..db import create_schema, engine_from_settings, migration_session
from .entities import MigrationSummary, migrate_entities_to_graph
from .relationships import RelationshipSummary, create_hierarchy_relationships
from .validation import ValidationReport, validate_migration

logger = getLogger(__name__)


@dataclass
class MigrationRun:
    entities: MigrationSummary
    relationships: RelationshipSummary
    validation: ValidationReport


def run_migration(session: Session, settings: Optional[AppSettings] = None) -> MigrationRun:
    """
    Mirror nodes, then edges, then validate.

    The steps commit per item, so `session` must not be inside
    `session.begin()` (use db.migration_session, not db.session_scope).

    Not safe to run concurrently against the same data; schedule it as a
    singleton job.
    """
    settings = settings or get_settings()
    skip_existing = settings.migration.skip_existing

    entities = migrate_entities_to_graph(session, skip_existing=skip_existing)
    relationships = create_hierarchy_relationships(session, skip_existing=skip_existing)
    validation = validate_migration(session, settings.graph)
    logger.info(
        "Migration run finished: %d nodes, %d edges created",
        entities.total_created,
        relationships.total_created,
    )
    return MigrationRun(entities=entities, relationships=relationships, validation=validation)


def migrate(settings: Optional[AppSettings] = None, engine: Optional[Engine] = None) -> MigrationRun:
    """
    Entry point for a scheduled migration job.

    Configures logging, makes sure the tables exist and runs the migration
    against the configured database (or `engine`, when given).
    """
    settings = settings or get_settings()
    settings.logging.configure()
    engine = engine or engine_from_settings(settings)
    create_schema(engine)
    with migration_session(engine) as session:
        return run_migration(session, settings)
