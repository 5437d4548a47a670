"""SQLAlchemy schema definitions for the preferences SQLite database."""

from __future__ import annotations

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
)
from sqlalchemy.sql import func

metadata = MetaData()

SCHEMA_VERSION = 1

accounts = Table(
    "accounts",
    metadata,
    Column("account_id", Integer, primary_key=True, autoincrement=True),
    Column("name", String, nullable=False, unique=True),
    Column("default_inbox", String),
    Column("settings", Text),
    Column("created_at", DateTime, nullable=False, server_default=func.now()),
)

folders = Table(
    "folders",
    metadata,
    Column("folder_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "account_id",
        Integer,
        ForeignKey("accounts.account_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("persistent_id", String, nullable=False, unique=True),
    Column("name", String, nullable=False),
    Column("uri", String, nullable=False),
)
Index("idx_folders_uri", folders.c.uri)

preferences = Table(
    "preferences",
    metadata,
    Column("namespace", String, nullable=False),
    Column("key", String, nullable=False),
    Column("value", Text),
    Column(
        "updated_at",
        DateTime,
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    ),
    PrimaryKeyConstraint("namespace", "key", name="pk_preferences"),
)

metadata_table = Table(
    "metadata",
    metadata,
    Column("key", String, primary_key=True),
    Column("value", String, nullable=False),
)

ALL_TABLES = (
    accounts,
    folders,
    preferences,
    metadata_table,
)
