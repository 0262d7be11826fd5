from .entities import ENTITY_MIRRORS, MigrationSummary, migrate_entities_to_graph
from .relationships import PAIRINGS, RelationshipSummary, create_hierarchy_relationships
from .runner import MigrationRun, migrate, run_migration
from .validation import ValidationReport, validate_migration

__all__ = [
    "migrate_entities_to_graph",
    "create_hierarchy_relationships",
    "validate_migration",
    "run_migration",
    "migrate",
    "MigrationSummary",
    "RelationshipSummary",
    "ValidationReport",
    "MigrationRun",
    "ENTITY_MIRRORS",
    "PAIRINGS",
]
