"""Helpers and metadata for the preferences database schema."""

from .migrations import SCHEMA_VERSION_KEY, apply_migrations
from .schema import (
    SCHEMA_VERSION,
    ALL_TABLES,
    metadata,
    accounts,
    folders,
    metadata_table,
    preferences,
)

__all__ = [
    "SCHEMA_VERSION",
    "SCHEMA_VERSION_KEY",
    "ALL_TABLES",
    "metadata",
    "accounts",
    "folders",
    "preferences",
    "metadata_table",
    "apply_migrations",
]
