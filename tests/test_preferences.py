from __future__ import annotations

import logging

from mailprefs.preferences import (
    CONV_LIST_ICON_SENDER_IMAGE,
    FolderPreferences,
    LegacyNotificationPreferences,
    LegacyPreferencesView,
    UnifiedPreferences,
    folder_namespace,
)
from mailprefs.records import Account, AccountSettings, Folder
from mailprefs.stores import MemoryKeyValueStore


def test_legacy_view_presence_checks_are_key_based() -> None:
    view = LegacyPreferencesView(MemoryKeyValueStore("legacy", {"swipe_delete": False}))

    assert view.has_swipe_delete() is True
    assert view.get_swipe_delete() is False
    assert view.has_reply_all() is False
    assert view.get_reply_all() is False


def test_legacy_view_defaults() -> None:
    view = LegacyPreferencesView(MemoryKeyValueStore("legacy"))

    assert view.get_whitelisted_sender_addresses() == set()
    assert view.get_conversation_list_icon() == CONV_LIST_ICON_SENDER_IMAGE


def test_legacy_view_accepts_comma_separated_whitelist() -> None:
    view = LegacyPreferencesView(
        MemoryKeyValueStore("legacy", {"trusted_senders": "a@x.com, b@y.com,,"})
    )

    assert view.get_whitelisted_sender_addresses() == {"a@x.com", "b@y.com"}


def test_legacy_notifications_report_absent_keys_as_none() -> None:
    legacy = LegacyNotificationPreferences(MemoryKeyValueStore("legacy_notifications"))

    assert legacy.notify() is None
    assert legacy.has_ringtone() is False
    assert legacy.vibrate() is None


def test_legacy_notifications_parse_string_booleans() -> None:
    legacy = LegacyNotificationPreferences(
        MemoryKeyValueStore(
            "legacy_notifications",
            {"account_notify": "false", "account_settings_vibrate": "true"},
        )
    )

    assert legacy.notify() is False
    assert legacy.vibrate() is True


def test_unified_preferences_store_whitelist_sorted() -> None:
    store = MemoryKeyValueStore("mail")
    unified = UnifiedPreferences(store)

    unified.set_sender_whitelist({"b@y.com", "a@x.com"})
    unified.commit()

    assert store.get(UnifiedPreferences.SENDER_WHITELIST) == ["a@x.com", "b@y.com"]
    assert unified.get_sender_whitelist() == {"a@x.com", "b@y.com"}
    assert unified.get_show_sender_images() is True


def test_folder_preferences_defaults_and_namespace() -> None:
    account = Account(
        name="alice@example.com",
        settings=AccountSettings(default_inbox="content://mail/uifolder/1"),
    )
    folder = Folder("1", "Inbox", "content://mail/uifolder/1", account.name)
    prefs = FolderPreferences(MemoryKeyValueStore("folder"), account, folder)

    assert folder_namespace(account.name, folder) == "folder:alice@example.com:1"
    assert prefs.are_notifications_enabled() is True
    assert prefs.get_notification_ringtone_uri() is None
    assert prefs.is_notification_vibrate_enabled() is False


def test_legacy_view_ignores_malformed_whitelist(caplog) -> None:
    scalar = LegacyPreferencesView(MemoryKeyValueStore("legacy", {"trusted_senders": 5}))
    mixed = LegacyPreferencesView(
        MemoryKeyValueStore("legacy", {"trusted_senders": ["a@x.com", 7, None, " b@y.com "]})
    )

    with caplog.at_level(logging.WARNING, logger="mailprefs.preferences"):
        assert scalar.get_whitelisted_sender_addresses() == set()
        assert mixed.get_whitelisted_sender_addresses() == {"a@x.com", "b@y.com"}

    assert len([r for r in caplog.records if r.levelno == logging.WARNING]) == 3
