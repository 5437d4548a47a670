"""Operational helpers for interacting with the preferences SQLite store."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import create_engine, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.sql import func

from .migrations import apply_migrations
from .schema import accounts, folders, preferences


class AccountExistsError(ValueError):
    """Raised when an account with the same name is already stored."""


class AccountNotFoundError(LookupError):
    """Raised when an account entry cannot be found in the preferences database."""


@lru_cache(maxsize=None)
def get_prefs_db_engine(db_path: Path) -> Engine:
    """Return a cached SQLAlchemy engine for the preferences database path."""
    normalized = Path(db_path)
    return create_engine(f"sqlite:///{normalized}", future=True)


def encode_value(value: Any) -> str:
    """Serialise a preference value for the ``preferences.value`` column.

    Sets are stored as sorted lists so the encoded text is stable.
    """
    if isinstance(value, (set, frozenset)):
        value = sorted(value)
    return json.dumps(value)


def decode_value(raw: Optional[str]) -> Any:
    if raw is None:
        return None
    return json.loads(raw)


def upsert_preference_rows(
    conn: Connection, namespace: str, values: Mapping[str, Any]
) -> int:
    """Upsert ``values`` into ``namespace`` on an open connection."""
    count = 0
    for key, value in values.items():
        encoded = encode_value(value)
        stmt = sqlite_insert(preferences).values(
            namespace=namespace, key=key, value=encoded
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[preferences.c.namespace, preferences.c.key],
            set_={"value": encoded, "updated_at": func.now()},
        )
        conn.execute(stmt)
        count += 1
    return count


def write_preferences(db_path: Path, namespace: str, values: Mapping[str, Any]) -> int:
    """Write preference values into a namespace, returning the number of keys."""
    apply_migrations(db_path)
    engine = get_prefs_db_engine(db_path)
    with engine.begin() as conn:
        return upsert_preference_rows(conn, namespace, values)


def read_preference_rows(conn: Connection, namespace: str) -> Dict[str, Any]:
    rows = conn.execute(
        select(preferences.c.key, preferences.c.value).where(
            preferences.c.namespace == namespace
        )
    ).all()
    return {row.key: decode_value(row.value) for row in rows}


def read_namespace(db_path: Path, namespace: str) -> Dict[str, Any]:
    """Return every decoded key/value pair stored under ``namespace``."""
    engine = get_prefs_db_engine(db_path)
    with engine.connect() as conn:
        return read_preference_rows(conn, namespace)


def list_namespaces(db_path: Path) -> List[str]:
    """Return the distinct preference namespaces present in the database."""
    engine = get_prefs_db_engine(db_path)
    with engine.connect() as conn:
        return list(
            conn.execute(
                select(preferences.c.namespace)
                .distinct()
                .order_by(preferences.c.namespace)
            ).scalars()
        )


def add_account(
    db_path: Path,
    *,
    name: str,
    default_inbox: Optional[str],
    settings: Optional[Mapping[str, Any]] = None,
) -> int:
    """Insert an account row and return its identifier."""
    apply_migrations(db_path)
    engine = get_prefs_db_engine(db_path)
    try:
        with engine.begin() as conn:
            result = conn.execute(
                accounts.insert().values(
                    name=name.strip(),
                    default_inbox=default_inbox,
                    settings=json.dumps(dict(settings)) if settings else None,
                )
            )
            return int(result.inserted_primary_key[0])
    except IntegrityError as exc:
        raise AccountExistsError(f"Account {name!r} already exists") from exc


def add_folders(
    db_path: Path, account_name: str, entries: Iterable[Mapping[str, str]]
) -> int:
    """Insert folder rows (``persistent_id``, ``name``, ``uri``) for an account."""
    apply_migrations(db_path)
    engine = get_prefs_db_engine(db_path)
    with engine.begin() as conn:
        account_id = conn.execute(
            select(accounts.c.account_id).where(accounts.c.name == account_name)
        ).scalar_one_or_none()
        if account_id is None:
            raise AccountNotFoundError(f"Account {account_name!r} not found")
        inserted = 0
        for entry in entries:
            conn.execute(
                folders.insert().values(
                    account_id=account_id,
                    persistent_id=entry["persistent_id"],
                    name=entry["name"],
                    uri=entry["uri"],
                )
            )
            inserted += 1
    return inserted


__all__ = [
    "AccountExistsError",
    "AccountNotFoundError",
    "get_prefs_db_engine",
    "encode_value",
    "decode_value",
    "upsert_preference_rows",
    "read_preference_rows",
    "write_preferences",
    "read_namespace",
    "list_namespaces",
    "add_account",
    "add_folders",
]
