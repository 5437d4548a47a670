"""Migration helpers for the preferences database layout."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Dict, Optional

from sqlalchemy import create_engine, inspect, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection

from .schema import SCHEMA_VERSION, metadata, metadata_table

logger = logging.getLogger(__name__)

MigrationFn = Callable[[Connection], None]

SCHEMA_VERSION_KEY = "schema_version"


def _migration_001(conn: Connection) -> None:
    """Initial migration creating all tables in the schema."""
    metadata.create_all(conn)


MIGRATIONS: Dict[int, MigrationFn] = {
    1: _migration_001,
}


def get_metadata_value(conn: Connection, key: str) -> Optional[str]:
    """Return a raw metadata value, or None when the table or key is missing."""
    inspector = inspect(conn)
    if metadata_table.name not in inspector.get_table_names():
        return None
    return conn.execute(
        select(metadata_table.c.value).where(metadata_table.c.key == key)
    ).scalar_one_or_none()


def get_metadata_int(conn: Connection, key: str) -> int:
    """Return an integer metadata value, treating a missing entry as 0."""
    result = get_metadata_value(conn, key)
    if result is None:
        return 0
    try:
        return int(result)
    except ValueError as exc:
        raise RuntimeError(f"Invalid {key} value in metadata table") from exc


def set_metadata_value(conn: Connection, key: str, value: str) -> None:
    """Persist a metadata value using an upsert on the metadata table."""
    stmt = sqlite_insert(metadata_table).values(key=key, value=value)
    stmt = stmt.on_conflict_do_update(
        index_elements=[metadata_table.c.key],
        set_={"value": value},
    )
    conn.execute(stmt)


def apply_migrations(db_path: Path) -> int:
    """Apply pending layout migrations and return the current schema version."""
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(f"sqlite:///{db_path}", future=True)

    try:
        with engine.begin() as conn:
            conn.exec_driver_sql("PRAGMA foreign_keys = ON")
            current_version = get_metadata_int(conn, SCHEMA_VERSION_KEY)
            if current_version > SCHEMA_VERSION:
                raise RuntimeError(
                    f"Database schema version {current_version} is newer than "
                    f"supported version {SCHEMA_VERSION}."
                )
            for version in range(current_version + 1, SCHEMA_VERSION + 1):
                migration = MIGRATIONS.get(version)
                if migration is None:
                    raise RuntimeError(f"No migration registered for version {version}.")
                logger.info("Applying database layout migration %d to %s", version, db_path)
                migration(conn)
                set_metadata_value(conn, SCHEMA_VERSION_KEY, str(version))
    finally:
        engine.dispose()
    return SCHEMA_VERSION
