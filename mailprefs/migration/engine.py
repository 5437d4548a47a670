"""Runs the due preference migration steps in a single forward pass."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Sequence

from ..preferences import (
    LEGACY_NAMESPACE,
    LEGACY_NOTIFICATIONS_NAMESPACE,
    UNIFIED_NAMESPACE,
    LegacyNotificationPreferences,
    LegacyPreferencesView,
    UnifiedPreferences,
)
from ..records import Account, RecordSource, SourceUnavailable
from ..stores import KeyValueStore, StoreProvider
from .steps import MIGRATION_STEPS, MigrationContext, MigrationStep

logger = logging.getLogger(__name__)


@dataclass
class PreferenceStores:
    """The named stores a migration reads and writes.

    Folder stores are opened on demand through ``provider``.
    """

    legacy: KeyValueStore
    legacy_notifications: KeyValueStore
    unified: KeyValueStore
    provider: StoreProvider

    @classmethod
    def from_provider(cls, provider: StoreProvider) -> "PreferenceStores":
        return cls(
            legacy=provider.open(LEGACY_NAMESPACE),
            legacy_notifications=provider.open(LEGACY_NOTIFICATIONS_NAMESPACE),
            unified=provider.open(UNIFIED_NAMESPACE),
            provider=provider,
        )


@dataclass
class MigrationResult:
    old_version: int
    new_version: int
    steps_applied: List[str] = field(default_factory=list)
    folders_updated: List[str] = field(default_factory=list)
    accounts_skipped: List[str] = field(default_factory=list)
    source_available: bool = True

    @property
    def changed(self) -> bool:
        return bool(self.steps_applied)


def validate_steps(steps: Sequence[MigrationStep]) -> List[MigrationStep]:
    """Return ``steps`` sorted by threshold, rejecting duplicates and non-positive values."""
    ordered = sorted(steps, key=lambda step: step.applies_below)
    seen = set()
    for step in ordered:
        if step.applies_below < 1:
            raise ValueError(
                f"Step {step.name!r} has non-positive threshold {step.applies_below}"
            )
        if step.applies_below in seen:
            raise ValueError(f"Duplicate migration threshold {step.applies_below}")
        seen.add(step.applies_below)
    return ordered


class MigrationEngine:
    def __init__(
        self,
        stores: PreferenceStores,
        steps: Sequence[MigrationStep] = MIGRATION_STEPS,
    ) -> None:
        self.stores = stores
        self.steps = validate_steps(steps)

    @property
    def latest_version(self) -> int:
        return self.steps[-1].applies_below if self.steps else 0

    def due_steps(self, old_version: int, new_version: int) -> List[MigrationStep]:
        return [
            step
            for step in self.steps
            if old_version < step.applies_below <= new_version
        ]

    def _fetch_accounts(self, record_source: RecordSource, result: MigrationResult) -> List[Account]:
        try:
            return record_source.fetch_accounts()
        except SourceUnavailable as exc:
            logger.critical(
                "Record source unavailable when migrating preferences from %d to %d: %s",
                result.old_version,
                result.new_version,
                exc,
            )
            result.source_available = False
            return []

    def migrate(
        self, old_version: int, new_version: int, record_source: RecordSource
    ) -> MigrationResult:
        """Apply every step due between ``old_version`` and ``new_version``.

        Persisting ``new_version`` is left to the caller. A
        :class:`~mailprefs.stores.StorageWriteError` aborts the remaining
        steps and propagates.
        """
        if old_version < 0 or new_version < 0:
            raise ValueError("Preference versions must be non-negative")
        if old_version > new_version:
            raise ValueError(
                f"Cannot migrate preferences backwards from {old_version} to {new_version}"
            )

        result = MigrationResult(old_version=old_version, new_version=new_version)
        if old_version == new_version:
            return result

        due = self.due_steps(old_version, new_version)
        accounts: List[Account] = []
        if any(step.needs_records for step in due):
            accounts = self._fetch_accounts(record_source, result)

        ctx = MigrationContext(
            old_version=old_version,
            new_version=new_version,
            legacy=LegacyPreferencesView(self.stores.legacy),
            legacy_notifications=LegacyNotificationPreferences(
                self.stores.legacy_notifications
            ),
            unified=UnifiedPreferences(self.stores.unified),
            provider=self.stores.provider,
            record_source=record_source,
            accounts=accounts,
        )

        for step in due:
            logger.info(
                "Applying preference migration %r (below version %d)",
                step.name,
                step.applies_below,
            )
            step.apply(ctx)
            result.steps_applied.append(step.name)

        ctx.unified.commit()
        result.folders_updated = list(ctx.folders_updated)
        result.accounts_skipped = list(ctx.accounts_skipped)
        logger.info(
            "Preferences migrated from %d to %d: %d step(s), %d folder(s)",
            old_version,
            new_version,
            len(result.steps_applied),
            len(result.folders_updated),
        )
        return result
