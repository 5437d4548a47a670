#!/usr/bin/env python3
"""Generate a preferences database holding legacy settings for local testing."""

from __future__ import annotations

from pathlib import Path

from mailprefs.preferences import (
    LEGACY_NAMESPACE,
    LEGACY_NOTIFICATIONS_NAMESPACE,
    LegacyNotificationPreferences,
    LegacyPreferencesView,
)
from mailprefs.prefs_db.operations import add_account, add_folders, write_preferences


def main() -> None:
    root = Path(__file__).resolve().parents[1]
    fixture_dir = root / "data" / "fixtures"
    fixture_dir.mkdir(parents=True, exist_ok=True)
    fixture_path = fixture_dir / "legacy_prefs.sqlite"

    if fixture_path.exists():
        fixture_path.unlink()

    write_preferences(
        fixture_path,
        LEGACY_NAMESPACE,
        {
            LegacyPreferencesView.SWIPE_DELETE: True,
            LegacyPreferencesView.REPLY_ALL: False,
            LegacyPreferencesView.TRUSTED_SENDERS: ["alice@example.com", "bob@example.org"],
            LegacyPreferencesView.CONV_LIST_ICON: "none",
        },
    )
    write_preferences(
        fixture_path,
        LEGACY_NOTIFICATIONS_NAMESPACE,
        {
            LegacyNotificationPreferences.NOTIFY: True,
            LegacyNotificationPreferences.RINGTONE: "content://media/internal/audio/media/12",
            LegacyNotificationPreferences.VIBRATE_WHEN: "always",
        },
    )

    accounts = [
        ("alice@example.com", "content://mail/uifolder/1", "1"),
        ("carol@example.net", "content://mail/uifolder/7", "7"),
    ]
    for name, inbox, folder_id in accounts:
        add_account(fixture_path, name=name, default_inbox=inbox)
        add_folders(
            fixture_path,
            name,
            [{"persistent_id": folder_id, "name": "Inbox", "uri": inbox}],
        )
    add_account(fixture_path, name="dave@example.com", default_inbox=None)

    print(f"Legacy preferences fixture written to {fixture_path}")


if __name__ == "__main__":
    main()
