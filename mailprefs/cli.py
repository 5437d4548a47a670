"""CLI entry point for the preference migrator."""

from __future__ import annotations

from typing import Optional
import json
import logging

import click
import pytz

from .config import Settings, configure_logging
from .prefs_db import SCHEMA_VERSION_KEY, apply_migrations
from .prefs_db.migrations import get_metadata_int
from .prefs_db.operations import get_prefs_db_engine, list_namespaces, read_namespace
from .stores import StorageError
from .upgrade import (
    CURRENT_PREFERENCES_VERSION,
    pending_steps,
    read_migrated_at,
    read_preferences_version,
    run_preference_upgrade,
)

logger = logging.getLogger(__name__)


def _load_settings() -> Settings:
    return Settings()


def _resolve_target(settings: Settings, override: Optional[int]) -> int:
    target = override if override is not None else settings.target_version
    if target is None:
        return CURRENT_PREFERENCES_VERSION
    if target < 0 or target > CURRENT_PREFERENCES_VERSION:
        raise click.ClickException(
            f"Target version must be between 0 and {CURRENT_PREFERENCES_VERSION} (got {target})."
        )
    return target


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Mail preference migrator CLI."""
    settings = _load_settings()
    configure_logging(settings)
    logger.debug("Loaded settings: %s", settings.to_dict())
    ctx.obj = settings


@cli.command("init-db")
@click.pass_obj
def init_db_command(settings: Settings) -> None:
    """Apply database layout migrations to ensure the schema is up to date."""
    settings.ensure_prefs_db_parent()
    version = apply_migrations(settings.prefs_db_path)
    click.echo(
        f"Preferences database at schema version {version} at {settings.prefs_db_path}"
    )


@cli.command("migrate")
@click.option(
    "--target-version",
    "target_version",
    type=int,
    default=None,
    help="Preference version to migrate to (defaults to the latest).",
)
@click.pass_obj
def migrate_command(settings: Settings, target_version: Optional[int]) -> None:
    """Migrate legacy preferences into the unified and folder stores."""
    target = _resolve_target(settings, target_version)
    settings.ensure_prefs_db_parent()
    try:
        outcome = run_preference_upgrade(settings.prefs_db_path, target_version=target)
    except StorageError as exc:
        raise click.ClickException(
            f"{exc}. Preference version left unchanged; rerun to retry."
        ) from exc
    except (RuntimeError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc

    result = outcome.result
    if result is None:
        click.echo(f"Preferences already at version {outcome.current_version}.")
        return

    click.echo(
        f"Preferences migrated from version {outcome.previous_version} "
        f"to {outcome.current_version}."
    )
    for name in result.steps_applied:
        click.echo(f"  applied: {name}")
    for namespace in result.folders_updated:
        click.echo(f"  folder: {namespace}")
    for account in result.accounts_skipped:
        click.echo(f"  skipped account: {account}")
    if not result.source_available:
        click.echo(
            "Account records were unavailable; folder notification settings were not migrated.",
            err=True,
        )


@cli.command("status")
@click.pass_obj
def status_command(settings: Settings) -> None:
    """Show stored schema and preference versions and pending steps."""
    if not settings.prefs_db_path.exists():
        raise click.ClickException(
            f"No preferences database at {settings.prefs_db_path}; run init-db first."
        )

    engine = get_prefs_db_engine(settings.prefs_db_path)
    with engine.connect() as conn:
        schema_version = get_metadata_int(conn, SCHEMA_VERSION_KEY)
    stored = read_preferences_version(settings.prefs_db_path)
    target = _resolve_target(settings, None)

    click.echo(f"Database schema version: {schema_version}")
    click.echo(f"Preference version: {stored} (target {target})")

    migrated_at = read_migrated_at(settings.prefs_db_path)
    if migrated_at is not None:
        try:
            tz = pytz.timezone(settings.tz)
        except pytz.UnknownTimeZoneError as exc:
            raise click.ClickException(f"Unknown time zone {settings.tz!r}.") from exc
        click.echo(f"Last migrated: {migrated_at.astimezone(tz).isoformat()}")

    due = pending_steps(stored, target)
    if not due:
        click.echo("No pending preference migrations.")
        return
    click.echo("Pending preference migrations:")
    for step in due:
        click.echo(f"  - {step.name} (below version {step.applies_below})")


@cli.command("show-prefs")
@click.option(
    "--namespace",
    "namespace",
    default=None,
    help="Namespace to list (e.g. legacy, mail); lists namespaces when omitted.",
)
@click.pass_obj
def show_prefs_command(settings: Settings, namespace: Optional[str]) -> None:
    """Display stored preference values."""
    if not settings.prefs_db_path.exists():
        raise click.ClickException(
            f"No preferences database at {settings.prefs_db_path}; run init-db first."
        )

    if namespace is None:
        namespaces = list_namespaces(settings.prefs_db_path)
        if not namespaces:
            click.echo("No preferences stored.")
            return
        for name in namespaces:
            click.echo(name)
        return

    values = read_namespace(settings.prefs_db_path, namespace)
    if not values:
        click.echo(f"No preferences stored under {namespace!r}.")
        return
    click.echo("key | value")
    click.echo("-" * 40)
    for key in sorted(values):
        click.echo(f"{key} | {json.dumps(values[key])}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
