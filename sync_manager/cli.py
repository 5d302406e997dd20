"""
Command-Line Interface

click entry point for ad-hoc syncs, configured profile runs, the
long-running watch mode and snapshot listing.

Author: SyncManager Project
License: MIT
"""

import signal
import sys
import time
from pathlib import Path
from typing import Optional

import click

from . import __version__
from .config.config_loader import load_config
from .config.schema import Config, SyncProfile
from .core.backup_manager import BackupManager
from .core.orchestrator import SyncCoordinator
from .core.sync_engine import SyncEngine, SyncResult
from .utils.logger import setup_logging


def _configure_logging(ctx: click.Context, config: Optional[Config] = None):
    """Set up logging from CLI flags, falling back to the config file."""
    level = ctx.obj.get("log_level")
    json_logs = ctx.obj.get("json_logs")

    if config is not None:
        app = config.app
        setup_logging(
            log_level=level or app.log_level,
            log_to_file=app.log_to_file,
            log_file_path=app.log_file_path,
            log_rotation_size=app.log_rotation_size,
            log_retention_count=app.log_retention_count,
            json_format=json_logs or app.json_logs
        )
    else:
        setup_logging(log_level=level or "WARNING", log_to_file=False, json_format=json_logs)


def _load(ctx: click.Context, config_path: Optional[Path]) -> Config:
    try:
        config = load_config(str(config_path) if config_path else None)
    except ValueError as e:
        click.echo(f"Invalid configuration: {e}", err=True)
        sys.exit(2)
    _configure_logging(ctx, config)
    return config


def _print_summary(result: SyncResult):
    prefix = "[DRY RUN] " if result.dry_run else ""
    if not result.success:
        click.secho(f"{prefix}Sync failed: {result.error}", fg="red", err=True)
        return

    state = "cancelled" if result.cancelled else "completed successfully"
    click.secho(f"{prefix}Sync {state}!", fg="yellow" if result.cancelled else "green")
    click.echo(f"Files processed: {result.files_processed}")
    click.echo(f"Files backed up: {result.files_backed_up}")
    click.echo(f"Files skipped:   {result.files_skipped}")
    click.echo(f"Files failed:    {result.files_failed}")
    if result.orphaned_files:
        click.echo(f"Kept destination-only files: {result.orphaned_files}")


config_option = click.option(
    '--config', '-c', 'config_path',
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help='Path to configuration file (default: $SYNC_MANAGER_CONFIG or config/config.yaml)'
)


@click.group()
@click.version_option(version=__version__)
@click.option('--log-level', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
              default=None, help='Override the configured log level')
@click.option('--json-logs', is_flag=True, help='Emit logs as JSON')
@click.pass_context
def cli(ctx: click.Context, log_level: Optional[str], json_logs: bool):
    """SyncManager

    One-way folder sync with versioned backups of overwritten files.
    """
    ctx.ensure_object(dict)
    ctx.obj["log_level"] = log_level.upper() if log_level else None
    ctx.obj["json_logs"] = json_logs


@cli.command()
@click.argument('source', type=click.Path(file_okay=False, path_type=Path))
@click.argument('destination', type=click.Path(file_okay=False, path_type=Path))
@click.option('--backup-root', '-b', type=click.Path(file_okay=False, path_type=Path),
              default=None, help='Where snapshots are kept')
@click.option('--versions', '-n', type=click.IntRange(min=1), default=3, show_default=True,
              help='Snapshots kept per file')
@click.option('--name', default='adhoc', show_default=True, help='Profile name used in logs')
@click.option('--dry-run', '-d', is_flag=True, help='Show what would change without doing it')
@click.pass_context
def sync(ctx, source: Path, destination: Path, backup_root: Optional[Path],
         versions: int, name: str, dry_run: bool):
    """Sync SOURCE into DESTINATION once."""
    _configure_logging(ctx)

    profile = SyncProfile(
        name=name,
        source_folder=str(source),
        destination_folder=str(destination),
        backup_folder=str(backup_root) if backup_root else None,
        backup_versions=versions
    )

    result = SyncEngine().execute(profile, dry_run=dry_run, progress=click.echo)
    _print_summary(result)
    sys.exit(0 if result.success else 1)


@cli.command()
@click.argument('profile_name')
@config_option
@click.option('--dry-run', '-d', is_flag=True, help='Show what would change without doing it')
@click.pass_context
def run(ctx, profile_name: str, config_path: Optional[Path], dry_run: bool):
    """Run one sync of a configured profile."""
    config = _load(ctx, config_path)

    if config.get_profile(profile_name) is None:
        click.echo(f"Profile '{profile_name}' not found", err=True)
        sys.exit(2)

    coordinator = SyncCoordinator(config, on_progress=lambda _, message: click.echo(message))
    result = coordinator.run_now(profile_name, dry_run=dry_run)

    if result is None:
        sys.exit(1)
    _print_summary(result)
    sys.exit(0 if result.success else 1)


@cli.command()
@config_option
@click.pass_context
def watch(ctx, config_path: Optional[Path]):
    """Watch auto-sync profiles and run scheduled syncs until interrupted."""
    config = _load(ctx, config_path)

    coordinator = SyncCoordinator(
        config,
        on_progress=lambda profile, message: click.echo(f"[{profile}] {message}"),
        on_result=_print_summary
    )

    stop_requested = []

    def _handle_signal(signum, frame):
        stop_requested.append(signum)

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    coordinator.start()
    status = coordinator.get_status()
    click.echo(
        f"Watching {len(status['watched_profiles'])} profiles, "
        f"{len(status['scheduled_jobs'])} scheduled. Press Ctrl+C to stop."
    )

    try:
        while not stop_requested:
            time.sleep(0.5)
    finally:
        coordinator.stop()
        click.echo("Stopped.")


@cli.command()
@config_option
@click.pass_context
def profiles(ctx, config_path: Optional[Path]):
    """List configured profiles."""
    config = _load(ctx, config_path)

    if not config.profiles:
        click.echo("No profiles configured.")
        return

    for profile in config.profiles:
        flags = []
        if profile.auto_sync_enabled:
            flags.append("auto-sync")
        if profile.schedule:
            flags.append(f"schedule={profile.schedule}")
        click.echo(
            f"{profile.name}: {profile.source_folder} -> {profile.destination_folder} "
            f"(versions={profile.backup_versions}, backups={profile.get_backup_folder()})"
            + (f" [{', '.join(flags)}]" if flags else "")
        )


@cli.command()
@click.argument('profile_name')
@click.argument('file_name')
@config_option
@click.pass_context
def snapshots(ctx, profile_name: str, file_name: str, config_path: Optional[Path]):
    """List the backup snapshots kept for FILE_NAME, newest first."""
    config = _load(ctx, config_path)

    profile = config.get_profile(profile_name)
    if profile is None:
        click.echo(f"Profile '{profile_name}' not found", err=True)
        sys.exit(2)

    found = BackupManager(profile.get_backup_folder(), profile_name=profile.name).list_snapshots(file_name)
    if not found:
        click.echo(f"No snapshots for {file_name}")
        return

    for snapshot in found:
        click.echo(str(snapshot))


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
