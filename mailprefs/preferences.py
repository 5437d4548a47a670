"""Typed views over the legacy and unified preference stores."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional, Set

from .records import Account, Folder
from .stores import KeyValueStore

logger = logging.getLogger(__name__)

LEGACY_NAMESPACE = "legacy"
LEGACY_NOTIFICATIONS_NAMESPACE = "legacy_notifications"
UNIFIED_NAMESPACE = "mail"
FOLDER_NAMESPACE_PREFIX = "folder"

CONV_LIST_ICON_NONE = "none"
CONV_LIST_ICON_SENDER_IMAGE = "senderimage"

_TRUE_STRINGS = {"1", "true", "yes", "y", "on"}


def _to_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


class LegacyPreferencesView:
    """Read-only accessors for the legacy global preference bag.

    The key layout is frozen at :attr:`FROZEN_AT_VERSION`; nothing outside the
    migration steps should read these keys.
    """

    FROZEN_AT_VERSION = 3

    SWIPE_DELETE = "swipe_delete"
    REPLY_ALL = "reply_all"
    TRUSTED_SENDERS = "trusted_senders"
    CONV_LIST_ICON = "conversation_list_icon"

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def has_swipe_delete(self) -> bool:
        return self.store.contains(self.SWIPE_DELETE)

    def get_swipe_delete(self) -> bool:
        return _to_bool(self.store.get(self.SWIPE_DELETE), False)

    def has_reply_all(self) -> bool:
        return self.store.contains(self.REPLY_ALL)

    def get_reply_all(self) -> bool:
        return _to_bool(self.store.get(self.REPLY_ALL), False)

    def get_whitelisted_sender_addresses(self) -> Set[str]:
        raw = self.store.get(self.TRUSTED_SENDERS)
        if not raw:
            return set()
        if isinstance(raw, str):
            raw = raw.split(",")
        elif not isinstance(raw, (list, tuple, set, frozenset)):
            logger.warning(
                "Ignoring legacy %s of unexpected type %s",
                self.TRUSTED_SENDERS,
                type(raw).__name__,
            )
            return set()

        addresses = set()
        for address in raw:
            if not isinstance(address, str):
                logger.warning(
                    "Ignoring non-string entry %r in legacy %s", address, self.TRUSTED_SENDERS
                )
                continue
            if address.strip():
                addresses.add(address.strip())
        return addresses

    def get_conversation_list_icon(self) -> str:
        value = self.store.get(self.CONV_LIST_ICON)
        return value if isinstance(value, str) else CONV_LIST_ICON_SENDER_IMAGE


class LegacyNotificationPreferences:
    """The flat legacy bag holding notification settings shared by all accounts."""

    NOTIFY = "account_notify"
    RINGTONE = "account_ringtone"
    VIBRATE = "account_settings_vibrate"
    VIBRATE_WHEN = "account_settings_vibrate_when"
    VIBRATE_ALWAYS = "always"

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def notify(self) -> Optional[bool]:
        if not self.store.contains(self.NOTIFY):
            return None
        return _to_bool(self.store.get(self.NOTIFY), True)

    def has_ringtone(self) -> bool:
        return self.store.contains(self.RINGTONE)

    def ringtone(self) -> Optional[str]:
        return self.store.get(self.RINGTONE)

    def vibrate(self) -> Optional[bool]:
        """Resolve the vibrate flag, or None when neither legacy key is set.

        The boolean key wins; the older string key means true only for
        ``"always"``.
        """
        if self.store.contains(self.VIBRATE):
            return _to_bool(self.store.get(self.VIBRATE), False)
        if self.store.contains(self.VIBRATE_WHEN):
            return self.store.get(self.VIBRATE_WHEN, "") == self.VIBRATE_ALWAYS
        return None


class UnifiedPreferences:
    """Canonical global mail preferences."""

    CONVERSATION_LIST_SWIPE = "conversation-list-swipe"
    DEFAULT_REPLY_ALL = "default-reply-all"
    SENDER_WHITELIST = "sender-whitelist"
    SHOW_SENDER_IMAGES = "conversation-list-sender-image"

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def set_conversation_list_swipe_enabled(self, enabled: bool) -> None:
        self.store.set(self.CONVERSATION_LIST_SWIPE, bool(enabled))

    def get_conversation_list_swipe_enabled(self) -> bool:
        return _to_bool(self.store.get(self.CONVERSATION_LIST_SWIPE), True)

    def set_default_reply_all(self, reply_all: bool) -> None:
        self.store.set(self.DEFAULT_REPLY_ALL, bool(reply_all))

    def get_default_reply_all(self) -> bool:
        return _to_bool(self.store.get(self.DEFAULT_REPLY_ALL), False)

    def set_sender_whitelist(self, addresses: Iterable[str]) -> None:
        self.store.set(self.SENDER_WHITELIST, sorted(set(addresses)))

    def get_sender_whitelist(self) -> Set[str]:
        return set(self.store.get(self.SENDER_WHITELIST) or [])

    def set_show_sender_images(self, show: bool) -> None:
        self.store.set(self.SHOW_SENDER_IMAGES, bool(show))

    def get_show_sender_images(self) -> bool:
        return _to_bool(self.store.get(self.SHOW_SENDER_IMAGES), True)

    def commit(self) -> None:
        self.store.commit()


def folder_namespace(account_name: str, folder: Folder) -> str:
    return f"{FOLDER_NAMESPACE_PREFIX}:{account_name}:{folder.persistent_id}"


class FolderPreferences:
    """Notification settings for one folder of one account."""

    NOTIFICATIONS_ENABLED = "notifications-enabled"
    NOTIFICATION_RINGTONE = "notification-ringtone"
    NOTIFICATION_VIBRATE = "notification-vibrate"

    def __init__(self, store: KeyValueStore, account: Account, folder: Folder) -> None:
        self.store = store
        self.account = account
        self.folder = folder

    def set_notifications_enabled(self, enabled: bool) -> None:
        self.store.set(self.NOTIFICATIONS_ENABLED, bool(enabled))

    def are_notifications_enabled(self) -> bool:
        return _to_bool(self.store.get(self.NOTIFICATIONS_ENABLED), True)

    def set_notification_ringtone_uri(self, uri: Optional[str]) -> None:
        self.store.set(self.NOTIFICATION_RINGTONE, uri)

    def get_notification_ringtone_uri(self) -> Optional[str]:
        return self.store.get(self.NOTIFICATION_RINGTONE)

    def set_notification_vibrate_enabled(self, enabled: bool) -> None:
        self.store.set(self.NOTIFICATION_VIBRATE, bool(enabled))

    def is_notification_vibrate_enabled(self) -> bool:
        return _to_bool(self.store.get(self.NOTIFICATION_VIBRATE), False)

    def commit(self) -> None:
        self.store.commit()
