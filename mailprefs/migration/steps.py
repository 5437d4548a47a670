"""Version-gated preference migration steps."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Tuple

from ..preferences import (
    CONV_LIST_ICON_NONE,
    FolderPreferences,
    LegacyNotificationPreferences,
    LegacyPreferencesView,
    UnifiedPreferences,
    folder_namespace,
)
from ..records import Account, RecordSource, SourceUnavailable
from ..stores import KeyValueStore, StoreProvider

logger = logging.getLogger(__name__)


@dataclass
class MigrationContext:
    """Everything a step may read or write during one migration pass."""

    old_version: int
    new_version: int
    legacy: LegacyPreferencesView
    legacy_notifications: LegacyNotificationPreferences
    unified: UnifiedPreferences
    provider: StoreProvider
    record_source: RecordSource
    accounts: List[Account] = field(default_factory=list)
    folders_updated: List[str] = field(default_factory=list)
    accounts_skipped: List[str] = field(default_factory=list)

    def open_folder_store(self, namespace: str) -> KeyValueStore:
        return self.provider.open(namespace)


StepFn = Callable[[MigrationContext], None]


@dataclass(frozen=True)
class MigrationStep:
    """A step runs when the pass starts from a version below ``applies_below``."""

    applies_below: int
    name: str
    apply: StepFn
    needs_records: bool = False


def _skip_account(ctx: MigrationContext, account: Account, message: str, *args) -> None:
    logger.error(message, *args)
    ctx.accounts_skipped.append(account.name)


def _migrate_folder_notifications(ctx: MigrationContext, account: Account) -> None:
    inbox = account.settings.default_inbox
    if not inbox:
        _skip_account(ctx, account, "Account %s has no default inbox reference", account.name)
        return

    try:
        candidates = ctx.record_source.fetch_folders_for(account)
    except SourceUnavailable as exc:
        _skip_account(ctx, account, "Folder query for mailbox %s failed: %s", inbox, exc)
        return

    if not candidates:
        _skip_account(ctx, account, "No folder found for mailbox %s", inbox)
        return

    folder = candidates[0]
    namespace = folder_namespace(account.name, folder)
    folder_prefs = FolderPreferences(ctx.open_folder_store(namespace), account, folder)
    legacy = ctx.legacy_notifications

    notify = legacy.notify()
    if notify is not None:
        folder_prefs.set_notifications_enabled(notify)

    if legacy.has_ringtone():
        folder_prefs.set_notification_ringtone_uri(legacy.ringtone())

    vibrate = legacy.vibrate()
    if vibrate is not None:
        folder_prefs.set_notification_vibrate_enabled(vibrate)

    folder_prefs.commit()
    ctx.folders_updated.append(namespace)


def _step_001_global_and_folder_settings(ctx: MigrationContext) -> None:
    """Move swipe/reply-all globals and per-inbox notification settings."""
    legacy = ctx.legacy
    if legacy.has_swipe_delete():
        ctx.unified.set_conversation_list_swipe_enabled(legacy.get_swipe_delete())

    if legacy.has_reply_all():
        ctx.unified.set_default_reply_all(legacy.get_reply_all())

    for account in ctx.accounts:
        _migrate_folder_notifications(ctx, account)


def _step_002_sender_whitelist(ctx: MigrationContext) -> None:
    """Copy the trusted sender addresses."""
    ctx.unified.set_sender_whitelist(ctx.legacy.get_whitelisted_sender_addresses())


def _step_003_sender_images(ctx: MigrationContext) -> None:
    """Sender images are shown unless the legacy icon mode was ``none``."""
    icon = ctx.legacy.get_conversation_list_icon()
    ctx.unified.set_show_sender_images(icon != CONV_LIST_ICON_NONE)


MIGRATION_STEPS: Tuple[MigrationStep, ...] = (
    MigrationStep(
        1,
        "global-and-folder-settings",
        _step_001_global_and_folder_settings,
        needs_records=True,
    ),
    MigrationStep(2, "sender-whitelist", _step_002_sender_whitelist),
    MigrationStep(3, "sender-images", _step_003_sender_images),
)
