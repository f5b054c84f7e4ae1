"""CLI for backing up and restoring divban-managed services.

Usage:
    divban backup immich
    divban backup actual --force
    divban restore immich /srv/immich/backups/immich-db-backup-2026-01-05T10-11-12-123Z.tar.zst --yes
    divban list immich
    divban --config ./divban.toml --verbose backup freshrss

Commands:
    backup   - Create a backup archive under <data_dir>/backups/
    restore  - Restore a service from a backup archive
    list     - List a service's backup archives, newest first
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from divban.backup.files import list_backup_files
from divban.backup.models import BackupOptions, RestoreOptions
from divban.backup.workflow import BACKUP_SUBDIR, backup_service, restore_service
from divban.config.loader import get_service_profile, load_divban_config
from divban.config.models import DivbanConfig, ServiceProfile
from divban.errors import DivbanError, error_code_name
from divban.types import join_path
from divban.version import DIVBAN_VERSION

console = Console()


def _load_profile(args: argparse.Namespace) -> tuple[DivbanConfig, ServiceProfile]:
    config_path = Path(args.config) if args.config else None
    config = load_divban_config(config_path)
    return config, get_service_profile(config, args.service)


def _print_error(e: DivbanError) -> None:
    console.print(f"[red]Error ({error_code_name(e.code)}): {e.message}[/red]")


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_backup(args: argparse.Namespace) -> int:
    """Async implementation for backup command.

    Args:
        args: Parsed arguments with service, force and config.

    Returns:
        0 on success, the error's exit code on failure.
    """
    try:
        config, profile = _load_profile(args)
        options = BackupOptions(
            service_name=args.service,
            data_dir=profile.data_dir,
            user=profile.user,
            uid=profile.uid,
            timeouts=config.timeouts,
            force=args.force,
        )
        console.print(
            f"Backing up [bold cyan]{args.service}[/bold cyan] "
            f"([dim]{profile.backup.type}[/dim])..."
        )
        path = await backup_service(profile.backup, options)
    except DivbanError as e:
        _print_error(e)
        return e.exit_code

    console.print(f"[bold green]v[/bold green] Backup written: [cyan]{path}[/cyan]")
    return 0


async def _async_restore(args: argparse.Namespace) -> int:
    """Async implementation for restore command.

    Without ``--yes`` nothing is touched; the command only says what
    would be overwritten.

    Args:
        args: Parsed arguments with service, backup_path, yes and config.

    Returns:
        0 on success, 1 without ``--yes``, the error's exit code on failure.
    """
    try:
        config, profile = _load_profile(args)
    except DivbanError as e:
        _print_error(e)
        return e.exit_code

    backup_path = os.path.abspath(args.backup_path)

    if not args.yes:
        console.print(
            f"[yellow]Restoring [bold]{args.service}[/bold] overwrites data in "
            f"{profile.data_dir}.[/yellow]"
        )
        console.print(
            f"[dim]Run:[/dim] [cyan]divban restore {args.service} "
            f"{backup_path} --yes[/cyan]"
        )
        return 1

    options = RestoreOptions(
        service_name=args.service,
        data_dir=profile.data_dir,
        user=profile.user,
        uid=profile.uid,
        timeouts=config.timeouts,
    )

    console.print(
        f"Restoring [bold cyan]{args.service}[/bold cyan] from [cyan]{backup_path}[/cyan]..."
    )
    try:
        await restore_service(backup_path, profile.backup, options)
    except DivbanError as e:
        _print_error(e)
        return e.exit_code

    console.print(f"[bold green]v[/bold green] Restore complete: {args.service}")
    return 0


# ============================================================================
# Command handlers
# ============================================================================


def cmd_backup(args: argparse.Namespace) -> int:
    """Create a backup archive.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_backup(args))


def cmd_restore(args: argparse.Namespace) -> int:
    """Restore from a backup archive.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_restore(args))


def cmd_list(args: argparse.Namespace) -> int:
    """List backup archives for a service.

    Reads only the local backups directory -- no container calls.

    Returns:
        0 on success, the error's exit code if the service is unknown.
    """
    try:
        _, profile = _load_profile(args)
    except DivbanError as e:
        _print_error(e)
        return e.exit_code

    backup_dir = join_path(profile.data_dir, BACKUP_SUBDIR)
    names = list_backup_files(backup_dir)
    if not names:
        console.print(f"[yellow]No backups in {backup_dir}[/yellow]")
        return 0

    table = Table(
        title=f"Backups: {args.service}", show_header=True, header_style="bold"
    )
    table.add_column("Archive")
    table.add_column("Size", justify="right")

    for name in names:
        size = os.path.getsize(os.path.join(backup_dir, name))
        table.add_row(name, f"{size:,}")

    console.print(table)
    return 0


# ============================================================================
# Main entry point
# ============================================================================


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="divban",
        description="Backup and restore for rootless container services",
    )
    parser.add_argument("--version", action="version", version=f"divban {DIVBAN_VERSION}")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to divban.toml (default: $DIVBAN_CONFIG or /etc/divban/divban.toml)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log debug output, including executed commands",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # backup command
    p_backup = subparsers.add_parser("backup", help="Create a backup archive")
    p_backup.add_argument("service", help="Service name from divban.toml")
    p_backup.add_argument(
        "--force",
        action="store_true",
        help="Allow stopping the container (required for sqlite-stop backups)",
    )
    p_backup.set_defaults(func=cmd_backup)

    # restore command
    p_restore = subparsers.add_parser("restore", help="Restore from a backup archive")
    p_restore.add_argument("service", help="Service name from divban.toml")
    p_restore.add_argument("backup_path", help="Path to the .tar.gz/.tar.zst archive")
    p_restore.add_argument(
        "--yes",
        "-y",
        action="store_true",
        help="Confirm overwriting the service's data",
    )
    p_restore.set_defaults(func=cmd_restore)

    # list command
    p_list = subparsers.add_parser("list", help="List backup archives, newest first")
    p_list.add_argument("service", help="Service name from divban.toml")
    p_list.set_defaults(func=cmd_list)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
