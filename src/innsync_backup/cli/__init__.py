"""CLI for snapshot backup, validation, restore, and history.

Usage:
    innsync-backup backup --output backups/
    innsync-backup backup --scope 8f14e45f --output backups/
    innsync-backup validate backups/innsync_backup_all_properties_2026-01-15.json
    innsync-backup restore backups/snapshot.json --dry-run
    innsync-backup restore backups/snapshot.json --abort-on-failure --yes
    innsync-backup history
    innsync-backup cleanup --max-age-days 30
    innsync-backup schedule --interval-minutes 60

Commands:
    backup    - Build a snapshot and write it to a directory
    validate  - Validate a snapshot file (no database access)
    restore   - Restore a snapshot file into the configured store
    history   - List recorded snapshot events
    cleanup   - Prune old history entries
    schedule  - Run automatic snapshots until interrupted
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from innsync_backup.config.loader import load_backup_config
from innsync_backup.config.models import BackupConfig
from innsync_backup.factory import ProfileNotFoundError, create_service
from innsync_backup.snapshot.artifact import parse_snapshot
from innsync_backup.snapshot.errors import SnapshotParseError
from innsync_backup.snapshot.history import (
    HistoryLedger,
    InMemoryHistoryStore,
    JsonFileHistoryStore,
)
from innsync_backup.snapshot.models import DEFAULT_SCHEMA, RestoreOptions
from innsync_backup.snapshot.service import SnapshotService
from innsync_backup.snapshot.validator import validate_snapshot

console = Console()


# ============================================================================
# Helpers
# ============================================================================


def configure_logging(level: str) -> None:
    """Route library logging through rich at ``level``."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
        force=True,
    )


def _load_config(args: argparse.Namespace, required: bool = True) -> BackupConfig | None:
    """Load backup.toml, printing the error when it is missing.

    Returns defaults instead of ``None`` when ``required`` is false.
    """
    config_path = Path(args.config) if args.config else None
    try:
        return load_backup_config(config_path, env_prefix=args.env_prefix)
    except FileNotFoundError as e:
        if not required:
            return BackupConfig()
        console.print(f"[red]Error: {e}[/red]")
        return None


def _ledger(config: BackupConfig) -> HistoryLedger:
    store = (
        JsonFileHistoryStore(config.history_path)
        if config.history_path
        else InMemoryHistoryStore()
    )
    return HistoryLedger(store, max_entries=config.history_max_entries)


def _service(args: argparse.Namespace, config: BackupConfig) -> SnapshotService | None:
    try:
        return create_service(config, args.profile)
    except (ProfileNotFoundError, ValueError, ImportError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return None


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_backup(args: argparse.Namespace) -> int:
    """Async implementation for backup command.

    Returns:
        0 on success, 1 on failure.
    """
    config = _load_config(args)
    if config is None:
        return 1
    service = _service(args, config)
    if service is None:
        return 1

    scope = args.scope or "all properties"
    console.print(f"Creating snapshot of [bold cyan]{scope}[/bold cyan]...", style="dim")
    try:
        ok = await service.download_snapshot(args.output, scope_key=args.scope, reason=args.reason)
    finally:
        await service.gateway.close()

    if not ok:
        console.print("[bold red]x[/bold red] Snapshot failed (see log)")
        return 1

    history = service.list_history()
    console.print(f"[bold green]v[/bold green] Snapshot written to [cyan]{args.output}[/cyan]")
    if history:
        console.print(f"  Records: {history[-1].record_count}")
    return 0


async def _async_restore(args: argparse.Namespace) -> int:
    """Async implementation for restore command.

    Returns:
        0 on success, 1 on failure.
    """
    config = _load_config(args)
    if config is None:
        return 1

    path = Path(args.snapshot_path)
    try:
        contents = path.read_bytes()
    except OSError as e:
        console.print(f"[red]Error reading snapshot: {e}[/red]")
        return 1

    if not args.yes and not args.dry_run:
        console.print(f"[yellow]This will upsert data from:[/yellow] {path}")
        console.print(f"  Failure policy: {args.failure_policy}")
        response = input("Continue? [y/N] ")
        if response.lower() not in ["y", "yes"]:
            console.print("Cancelled.")
            return 0

    service = _service(args, config)
    if service is None:
        return 1

    options = RestoreOptions(
        validate_integrity=not args.no_validate,
        create_safety_backup_first=not args.no_safety_backup,
        dry_run=args.dry_run,
        scope_key=args.scope,
        failure_policy=args.failure_policy,
    )
    try:
        result = await service.restore_from_file(contents, options)
    finally:
        await service.gateway.close()

    if result.dry_run and result.success:
        console.print(
            f"[bold yellow]DRY RUN[/bold yellow] - {result.restored_records} records "
            f"would be restored. No changes made."
        )
        return 0

    if result.collections:
        table = Table(title="Restored Collections", show_header=True, header_style="bold")
        table.add_column("Collection", style="dim")
        table.add_column("Records", justify="right")
        for name, count in result.collections.items():
            table.add_row(name, str(count))
        console.print(table)

    if result.success:
        console.print(
            f"[bold green]v[/bold green] Restore complete: {result.restored_records} records"
        )
        return 0

    label = "cancelled" if result.cancelled else "failed"
    console.print(f"[bold red]x[/bold red] Restore {label} ({result.restored_records} records restored)")
    for error in result.errors:
        console.print(f"   - {error}")
    return 1


async def _async_schedule(args: argparse.Namespace) -> int:
    """Async implementation for schedule command. Runs until interrupted."""
    config = _load_config(args)
    if config is None:
        return 1
    service = _service(args, config)
    if service is None:
        return 1

    removed = service.cleanup_history()
    if removed:
        console.print(f"[dim]Pruned {removed} old history entries[/dim]")

    task = service.schedule_automatic_snapshots(args.interval_minutes)
    console.print(
        f"Automatic snapshots every [bold]{args.interval_minutes}[/bold] minutes. "
        f"Press Ctrl+C to stop."
    )
    try:
        await asyncio.Event().wait()
    finally:
        await task.stop()
        await service.gateway.close()
    return 0


# ============================================================================
# Command wrappers
# ============================================================================


def cmd_backup(args: argparse.Namespace) -> int:
    """Build a snapshot and write it to a directory.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_backup(args))


def cmd_restore(args: argparse.Namespace) -> int:
    """Restore a snapshot file.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_restore(args))


def cmd_schedule(args: argparse.Namespace) -> int:
    """Run automatic snapshots until interrupted."""
    try:
        return asyncio.run(_async_schedule(args))
    except KeyboardInterrupt:
        console.print("\nStopped.")
        return 0


def cmd_validate(args: argparse.Namespace) -> int:
    """Validate a snapshot file.

    Reads only the local file and config -- no database calls.

    Returns:
        0 if valid (warnings allowed), 1 otherwise.
    """
    config = _load_config(args, required=False)
    path = Path(args.snapshot_path)

    console.print(f"Validating: [cyan]{path}[/cyan]")
    try:
        snapshot = parse_snapshot(path.read_bytes(), DEFAULT_SCHEMA)
    except (OSError, SnapshotParseError) as e:
        console.print(f"\n[bold red]x[/bold red] Cannot read snapshot: {e}")
        return 1

    report = validate_snapshot(snapshot, DEFAULT_SCHEMA, config.format_version)

    if report.errors:
        console.print(f"\n[red]INVALID - Found {len(report.errors)} errors:[/red]")
        for error in report.errors:
            console.print(f"   - {error}")

    if report.warnings:
        console.print(f"\n[yellow]Found {len(report.warnings)} warnings:[/yellow]")
        for warning in report.warnings:
            console.print(f"   - {warning}")

    if report.is_valid:
        suffix = " (with warnings)" if report.warnings else ""
        console.print(f"\n[bold green]v[/bold green] Snapshot is valid{suffix}")
        console.print(f"  Records: {snapshot.total_records()}")
        return 0

    console.print("\n[bold red]x[/bold red] Snapshot is invalid")
    return 1


def cmd_history(args: argparse.Namespace) -> int:
    """List recorded snapshot events.

    Returns:
        0 always (informational command), 1 if config is missing.
    """
    config = _load_config(args)
    if config is None:
        return 1

    entries = _ledger(config).list_history()
    if not entries:
        console.print("[yellow]No snapshot history.[/yellow]")
        return 0

    table = Table(title="Snapshot History", show_header=True, header_style="bold")
    table.add_column("Timestamp")
    table.add_column("Scope")
    table.add_column("Reason")
    table.add_column("Records", justify="right")
    for entry in entries:
        table.add_row(
            entry.timestamp.isoformat(timespec="seconds"),
            entry.scope_key or "all",
            entry.reason,
            str(entry.record_count),
        )
    console.print(table)
    return 0


def cmd_cleanup(args: argparse.Namespace) -> int:
    """Prune history entries older than ``--max-age-days``."""
    config = _load_config(args)
    if config is None:
        return 1

    max_age = args.max_age_days if args.max_age_days is not None else config.history_max_age_days
    removed = _ledger(config).cleanup(max_age)
    console.print(f"[bold green]v[/bold green] Removed {removed} history entries older than {max_age} days")
    return 0


# ============================================================================
# Main entry point
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="innsync-backup",
        description="Snapshot, validate, and restore InnSync property data",
    )
    parser.add_argument("--config", "-c", help="Path to backup.toml (default: ./backup.toml)")
    parser.add_argument(
        "--env-prefix",
        default="",
        help="Prefix for environment variable lookup (e.g., --env-prefix APP_ reads APP_BACKUP_PROFILE)",
    )
    parser.add_argument("--profile", "-p", help="Gateway profile from backup.toml")
    parser.add_argument(
        "--log-level",
        default="warning",
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: warning)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    p_backup = subparsers.add_parser("backup", help="Build a snapshot and write it to a directory")
    p_backup.add_argument("--output", "-o", default="backups", help="Output directory (default: backups)")
    p_backup.add_argument("--scope", "-s", help="Limit the snapshot to one property id")
    p_backup.add_argument("--reason", default="user_initiated", help="Reason recorded in the snapshot")
    p_backup.set_defaults(func=cmd_backup)

    p_validate = subparsers.add_parser("validate", help="Validate a snapshot file")
    p_validate.add_argument("snapshot_path", help="Path to snapshot JSON file")
    p_validate.set_defaults(func=cmd_validate)

    p_restore = subparsers.add_parser("restore", help="Restore a snapshot file")
    p_restore.add_argument("snapshot_path", help="Path to snapshot JSON file")
    p_restore.add_argument("--dry-run", action="store_true", help="Preview without writing")
    p_restore.add_argument("--no-validate", action="store_true", help="Skip integrity validation")
    p_restore.add_argument(
        "--no-safety-backup",
        action="store_true",
        help="Skip the pre-restore safety snapshot",
    )
    p_restore.add_argument(
        "--abort-on-failure",
        dest="failure_policy",
        action="store_const",
        const="abort_on_failure",
        default="best_effort",
        help="Stop at the first collection that fails to write",
    )
    p_restore.add_argument("--scope", "-s", help="Property id for the safety snapshot")
    p_restore.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompt")
    p_restore.set_defaults(func=cmd_restore)

    p_history = subparsers.add_parser("history", help="List recorded snapshot events")
    p_history.set_defaults(func=cmd_history)

    p_cleanup = subparsers.add_parser("cleanup", help="Prune old history entries")
    p_cleanup.add_argument("--max-age-days", type=int, help="Retention horizon (default from config)")
    p_cleanup.set_defaults(func=cmd_cleanup)

    p_schedule = subparsers.add_parser("schedule", help="Run automatic snapshots until interrupted")
    p_schedule.add_argument(
        "--interval-minutes",
        type=float,
        default=60,
        help="Minutes between snapshots (default: 60)",
    )
    p_schedule.set_defaults(func=cmd_schedule)

    return parser


def main() -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = build_parser().parse_args()
    configure_logging(args.log_level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
