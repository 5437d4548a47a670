"""Account and folder records read during preference migration."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .prefs_db.schema import accounts, folders

logger = logging.getLogger(__name__)


class SourceUnavailable(RuntimeError):
    """Raised when account or folder records cannot be enumerated."""


@dataclass(frozen=True)
class AccountSettings:
    default_inbox: Optional[str] = None
    values: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Account:
    name: str
    settings: AccountSettings = field(default_factory=AccountSettings)
    account_id: Optional[int] = None


@dataclass(frozen=True)
class Folder:
    persistent_id: str
    name: str
    uri: str
    account_name: str


class RecordSource(ABC):
    """Read-only provider of the accounts and folders a migration iterates."""

    @abstractmethod
    def fetch_accounts(self) -> List[Account]:
        """Return every account, or an empty list when none exist."""

    @abstractmethod
    def fetch_folders_for(self, account: Account) -> List[Folder]:
        """Return the account's folders located at its default inbox reference."""


def _parse_settings(raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except ValueError:
        logger.warning("Ignoring malformed account settings payload")
        return {}
    return parsed if isinstance(parsed, dict) else {}


class SqlRecordSource(RecordSource):
    """Records read from the ``accounts`` and ``folders`` tables."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def fetch_accounts(self) -> List[Account]:
        query = select(
            accounts.c.account_id,
            accounts.c.name,
            accounts.c.default_inbox,
            accounts.c.settings,
        ).order_by(accounts.c.account_id)
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(query).all()
        except SQLAlchemyError as exc:
            raise SourceUnavailable("Failed to query accounts") from exc

        return [
            Account(
                name=row.name,
                settings=AccountSettings(
                    default_inbox=row.default_inbox,
                    values=_parse_settings(row.settings),
                ),
                account_id=row.account_id,
            )
            for row in rows
        ]

    def fetch_folders_for(self, account: Account) -> List[Folder]:
        inbox = account.settings.default_inbox
        if not inbox:
            return []
        query = (
            select(folders.c.persistent_id, folders.c.name, folders.c.uri)
            .select_from(folders.join(accounts))
            .where(accounts.c.name == account.name)
            .where(folders.c.uri == inbox)
            .order_by(folders.c.folder_id)
        )
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(query).all()
        except SQLAlchemyError as exc:
            raise SourceUnavailable(f"Failed to query folders at {inbox}") from exc

        return [
            Folder(
                persistent_id=row.persistent_id,
                name=row.name,
                uri=row.uri,
                account_name=account.name,
            )
            for row in rows
        ]


class StaticRecordSource(RecordSource):
    """Serves fixed record lists; ``available=False`` simulates an outage."""

    def __init__(
        self,
        accounts: Iterable[Account] = (),
        folders: Iterable[Folder] = (),
        *,
        available: bool = True,
    ) -> None:
        self.accounts = list(accounts)
        self.folders = list(folders)
        self.available = available
        self.folder_queries = 0

    def fetch_accounts(self) -> List[Account]:
        if not self.available:
            raise SourceUnavailable("Record source is offline")
        return list(self.accounts)

    def fetch_folders_for(self, account: Account) -> List[Folder]:
        if not self.available:
            raise SourceUnavailable("Record source is offline")
        self.folder_queries += 1
        inbox = account.settings.default_inbox
        return [
            folder
            for folder in self.folders
            if folder.account_name == account.name and folder.uri == inbox
        ]
