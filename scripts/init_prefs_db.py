"""Initialize or migrate the preferences SQLite database."""

from __future__ import annotations

from pathlib import Path

from mailprefs.config import Settings
from mailprefs.prefs_db.migrations import apply_migrations


def main() -> None:
    settings = Settings()
    settings.ensure_prefs_db_parent()
    target = apply_migrations(settings.prefs_db_path)
    path: Path = settings.prefs_db_path
    print(f"Preferences database migrated to schema version {target} at {path}")


if __name__ == "__main__":
    main()
