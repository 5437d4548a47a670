"""Configuration helpers for the preference migrator."""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional
import logging
import os

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parents[1]
ENV_PATH = BASE_DIR / ".env"
DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "default_config.yml"
USER_CONFIG_PATH = BASE_DIR / "user_config.yml"

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Load environment variables if a .env file exists.
if ENV_PATH.exists():
    load_dotenv(ENV_PATH)


def _convert_scalar(value: str) -> Any:
    value = value.strip()
    if value in {"", "~", "null", "Null", "NULL"}:
        return None
    if value[:1] in {'"', "'"} and value[-1:] == value[:1] and len(value) > 1:
        return value[1:-1]
    lowered = value.lower()
    if lowered in {"true", "yes", "on"}:
        return True
    if lowered in {"false", "no", "off"}:
        return False
    try:
        return int(value)
    except ValueError:
        return value


def _load_yaml(path: Path) -> Dict[str, Any]:
    """Parse the two-space indented ``key: value`` subset used by our config files."""
    if not path.exists():
        return {}

    root: Dict[str, Any] = {}
    stack: list[tuple[int, Dict[str, Any]]] = [(0, root)]
    with path.open(encoding="utf-8") as fh:
        for raw_line in fh:
            line = raw_line.rstrip()
            stripped = line.lstrip()
            if not stripped or stripped.startswith("#"):
                continue

            indent = len(line) - len(stripped)
            if indent % 2 != 0:
                raise ValueError(f"Invalid indentation in {path}: '{line}'")

            while len(stack) > 1 and indent < stack[-1][0]:
                stack.pop()
            current = stack[-1][1]

            key, sep, value = stripped.partition(":")
            if not sep:
                raise ValueError(f"Missing ':' in config line: '{line}'")
            key = key.strip()

            if value.strip():
                current[key] = _convert_scalar(value)
            else:
                section: Dict[str, Any] = {}
                current[key] = section
                stack.append((indent + 2, section))

    return root


def _merge_config(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _merge_config(dict(base[key]), value)
        else:
            base[key] = value
    return base


CONFIG: Dict[str, Any] = {}
CONFIG = _merge_config(CONFIG, _load_yaml(DEFAULT_CONFIG_PATH))
CONFIG = _merge_config(CONFIG, _load_yaml(USER_CONFIG_PATH))


def _config_get(path: str, default: Any = None) -> Any:
    current: Any = CONFIG
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current


# Environment variables take precedence over the YAML files.
def _config_optional_str(
    config_path: str, env_var: str, default: Optional[str] = None
) -> Optional[str]:
    env_value = os.getenv(env_var)
    if env_value:
        return env_value
    value = _config_get(config_path)
    if value is not None:
        return str(value)
    return default


def _config_str(config_path: str, env_var: str, default: str) -> str:
    value = _config_optional_str(config_path, env_var, default)
    if value is None:
        raise ValueError(f"Missing configuration for {config_path}")
    return value


def _config_path(config_path: str, env_var: str, fallback: Path) -> Path:
    value = _config_optional_str(config_path, env_var)
    if value:
        path = Path(value).expanduser()
        if not path.is_absolute():
            path = BASE_DIR / path
        return path.resolve()
    return fallback.resolve()


def _config_optional_int(config_path: str, env_var: str) -> Optional[int]:
    value = _config_optional_str(config_path, env_var)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"Invalid integer for {config_path}: {value!r}") from exc


@dataclass
class Settings:
    """Application settings loaded from config files and environment variables."""

    tz: str = _config_str("general.tz", "MAILPREFS_TZ", "UTC")
    prefs_db_path: Path = _config_path(
        "paths.prefs_db_path",
        "MAILPREFS_DB_PATH",
        BASE_DIR / "prefs.db" / "prefs.sqlite",
    )
    log_level: str = _config_str("logging.level", "MAILPREFS_LOG_LEVEL", "INFO")
    log_file: Optional[str] = _config_optional_str(
        "logging.file", "MAILPREFS_LOG_FILE"
    )
    target_version: Optional[int] = _config_optional_int(
        "migration.target_version", "MAILPREFS_TARGET_VERSION"
    )

    def ensure_prefs_db_parent(self) -> None:
        """Create the parent directory for the preferences database if missing."""
        self.prefs_db_path.parent.mkdir(parents=True, exist_ok=True)

    def with_overrides(self, **overrides: Any) -> "Settings":
        """Return a copy of the settings with specified attributes replaced."""
        return replace(self, **overrides)

    def to_dict(self) -> Dict[str, Any]:
        """Expose a dict representation for debugging/logging."""
        return {
            "tz": self.tz,
            "prefs_db_path": str(self.prefs_db_path),
            "log_level": self.log_level,
            "log_file": self.log_file,
            "target_version": self.target_version,
        }


def configure_logging(settings: Settings) -> None:
    """Install a root handler honouring the configured level and optional file."""
    level = logging.getLevelName(settings.log_level.strip().upper())
    if not isinstance(level, int):
        level = logging.INFO

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if settings.log_file:
        log_path = Path(settings.log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
