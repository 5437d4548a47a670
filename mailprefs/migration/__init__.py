"""Forward-only preference migration engine."""

from .engine import MigrationEngine, MigrationResult, PreferenceStores
from .steps import MIGRATION_STEPS, MigrationContext, MigrationStep

__all__ = [
    "MIGRATION_STEPS",
    "MigrationContext",
    "MigrationEngine",
    "MigrationResult",
    "MigrationStep",
    "PreferenceStores",
]
