"""Startup upgrade trigger owning the persisted preference version."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from dateutil import parser as date_parser

from .migration import MIGRATION_STEPS, MigrationEngine, MigrationResult, PreferenceStores
from .migration.steps import MigrationStep
from .prefs_db import apply_migrations
from .prefs_db.migrations import get_metadata_int, get_metadata_value, set_metadata_value
from .prefs_db.operations import get_prefs_db_engine
from .records import SqlRecordSource
from .stores import SqlStoreProvider

logger = logging.getLogger(__name__)

CURRENT_PREFERENCES_VERSION = max(step.applies_below for step in MIGRATION_STEPS)
PREFERENCES_VERSION_KEY = "preferences_version"
MIGRATED_AT_KEY = "preferences_migrated_at"


@dataclass(frozen=True)
class UpgradeOutcome:
    previous_version: int
    current_version: int
    result: Optional[MigrationResult] = None

    @property
    def migrated(self) -> bool:
        return self.result is not None and self.result.changed


def read_preferences_version(db_path: Path) -> int:
    """Return the stored preference version, 0 for a fresh database."""
    engine = get_prefs_db_engine(db_path)
    with engine.connect() as conn:
        return get_metadata_int(conn, PREFERENCES_VERSION_KEY)


def read_migrated_at(db_path: Path) -> Optional[datetime]:
    """Return when preferences were last migrated, as an aware UTC datetime."""
    engine = get_prefs_db_engine(db_path)
    with engine.connect() as conn:
        raw = get_metadata_value(conn, MIGRATED_AT_KEY)
    if not raw:
        return None
    dt = date_parser.isoparse(raw)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def write_preferences_version(
    db_path: Path, version: int, *, migrated_at: Optional[datetime] = None
) -> None:
    engine = get_prefs_db_engine(db_path)
    stamp = (migrated_at or datetime.now(timezone.utc)).astimezone(timezone.utc)
    with engine.begin() as conn:
        set_metadata_value(conn, PREFERENCES_VERSION_KEY, str(version))
        set_metadata_value(conn, MIGRATED_AT_KEY, stamp.isoformat())


def pending_steps(stored_version: int, target_version: int) -> List[MigrationStep]:
    return [
        step
        for step in sorted(MIGRATION_STEPS, key=lambda s: s.applies_below)
        if stored_version < step.applies_below <= target_version
    ]


def run_preference_upgrade(
    db_path: Path, *, target_version: int = CURRENT_PREFERENCES_VERSION
) -> UpgradeOutcome:
    """Migrate stored preferences up to ``target_version``.

    The stored version is advanced only after every due step committed, so a
    failed pass is retried from the same version on the next start.
    """
    if target_version > CURRENT_PREFERENCES_VERSION:
        raise ValueError(
            f"Target preference version {target_version} exceeds supported "
            f"version {CURRENT_PREFERENCES_VERSION}."
        )

    db_path = Path(db_path)
    apply_migrations(db_path)
    stored = read_preferences_version(db_path)
    if stored > target_version:
        raise RuntimeError(
            f"Stored preference version {stored} is newer than "
            f"target version {target_version}."
        )
    if stored == target_version:
        logger.debug("Preferences already at version %d", stored)
        return UpgradeOutcome(previous_version=stored, current_version=stored)

    engine = get_prefs_db_engine(db_path)
    stores = PreferenceStores.from_provider(SqlStoreProvider(engine))
    migration = MigrationEngine(stores)
    result = migration.migrate(stored, target_version, SqlRecordSource(engine))

    write_preferences_version(db_path, target_version)
    logger.info("Stored preference version advanced from %d to %d", stored, target_version)
    return UpgradeOutcome(
        previous_version=stored, current_version=target_version, result=result
    )
