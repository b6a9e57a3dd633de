"""CLI module for taking and comparing database snapshots.

Provides commands for listing profiles, taking a snapshot into a backup
file, inspecting a backup file and comparing two backup files.

Usage:
    db-snapshot profiles
    DB_SNAPSHOT_PROFILE=dev db-snapshot take --output snapshots/before.xml
    db-snapshot take --profile dev --name after --output snapshots/after.xml
    db-snapshot show snapshots/before.xml
    db-snapshot compare snapshots/before.xml snapshots/after.xml --expect orders:1:1

Commands:
    profiles  - List available profiles
    take      - Take a snapshot of a profile's database and save it
    show      - Summarize a snapshot backup file
    compare   - Compare two snapshot backup files
"""

import argparse
import logging
import os
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from db_snapshot.config.loader import load_db_config
from db_snapshot.factory import PROFILE_ENV_VAR, ProfileNotFoundError, get_data_source
from db_snapshot.snapshot.errors import DatabaseSnapshotError
from db_snapshot.snapshot.options import CompareOptions
from db_snapshot.snapshot.snapshot import DatabaseSnapshot

console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


def _parse_expectation(value: str) -> tuple[str, int, int]:
    """Parse a ``TABLE:MIN:MAX`` expectation.

    Example:
        >>> _parse_expectation("orders:1:3")
        ('orders', 1, 3)
    """
    table, sep, maximum = value.rpartition(":")
    table, sep2, minimum = table.rpartition(":")
    if not sep or not sep2 or not table:
        raise argparse.ArgumentTypeError(f"Expected TABLE:MIN:MAX, got '{value}'")
    try:
        return table, int(minimum), int(maximum)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Expected integer bounds in '{value}'") from e


# ============================================================================
# Commands
# ============================================================================


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from db.toml.

    Reads only local TOML config -- no database calls.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 on success, 1 if db.toml not found.
    """
    try:
        config = load_db_config(args.config)
    except FileNotFoundError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    current = os.environ.get(PROFILE_ENV_VAR)

    table = Table(title="Database Profiles", show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Profile")
    table.add_column("Provider")
    table.add_column("Schema")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        marker = "[bold green]*[/bold green]" if name == current else " "
        name_style = "bold cyan" if name == current else ""
        table.add_row(
            marker,
            f"[{name_style}]{name}[/{name_style}]" if name_style else name,
            profile.provider,
            profile.schema_name or "",
            profile.description or "",
        )

    console.print(table)

    if current:
        console.print(f"\n[bold green]*[/bold green] = {PROFILE_ENV_VAR}")

    return 0


def cmd_take(args: argparse.Namespace) -> int:
    """Take a snapshot of a profile's database and save it.

    Skip rules from the ``[skip]`` table of db.toml are applied.

    Args:
        args: Parsed CLI arguments with profile, name and output.

    Returns:
        0 on success, 1 on failure.
    """
    try:
        config = load_db_config(args.config)
        data_source = get_data_source(args.profile, config)
    except (FileNotFoundError, ProfileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    name = args.name or args.profile or os.environ.get(PROFILE_ENV_VAR, "snapshot")
    try:
        snapshot = DatabaseSnapshot(name, data_source)
        config.skip.apply_to(snapshot)
        snapshot.take_snapshot()
        snapshot.save_to_file(args.output)
    except DatabaseSnapshotError as e:
        console.print(f"[bold red]x[/bold red] {escape(str(e))}")
        return 1

    console.print(
        f"[bold green]v[/bold green] Snapshot [bold cyan]{snapshot.name}[/bold cyan] "
        f"with {len(snapshot.tables)} tables saved to {args.output}"
    )
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    """Summarize a snapshot backup file.

    Returns:
        0 on success, 1 if the file cannot be loaded.
    """
    snapshot = DatabaseSnapshot("backup")
    try:
        snapshot.load_from_file(args.file)
    except DatabaseSnapshotError as e:
        console.print(f"[bold red]x[/bold red] {escape(str(e))}")
        return 1

    table = Table(
        title=f"Snapshot {snapshot.name}", show_header=True, header_style="bold"
    )
    table.add_column("Table")
    table.add_column("Primary key", style="dim")
    table.add_column("Columns", justify="right")
    table.add_column("Indexes", justify="right")
    table.add_column("Rows", justify="right")

    for description in snapshot.tables:
        table.add_row(
            description.qualified_name,
            description.primary_key_column,
            str(len(description.column_descriptions)),
            str(len(description.indexes)),
            str(snapshot.load_table_row_count(description)),
        )

    console.print(table)
    return 0


def cmd_compare(args: argparse.Namespace) -> int:
    """Compare two snapshot backup files.

    Returns:
        0 when the snapshots are equal, 1 otherwise.
    """
    first = DatabaseSnapshot("first")
    second = DatabaseSnapshot("second")
    try:
        first.load_from_file(args.first, args.first_name)
        second.load_from_file(args.second, args.second_name)
        options = CompareOptions()
        for table, min_rows, max_rows in args.expect:
            options.set_expected_table_missing_rows_count(table, min_rows, max_rows)
    except (DatabaseSnapshotError, ValueError) as e:
        console.print(f"[bold red]x[/bold red] {escape(str(e))}")
        return 1

    console.print(
        f"Comparing [bold cyan]{first.name}[/bold cyan] with "
        f"[bold cyan]{second.name}[/bold cyan]...",
        style="dim",
    )

    try:
        first.compare(second, options)
    except DatabaseSnapshotError as e:
        console.print()
        if e.equality is None:
            console.print(f"[bold red]x[/bold red] {escape(str(e))}")
        else:
            console.print("[bold red]x[/bold red] Snapshots differ")
            console.print(e.equality.format_report(), markup=False, highlight=False)
        return 1

    console.print()
    console.print("[bold green]v[/bold green] Snapshots are equal")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="db-snapshot",
        description="Take and compare database snapshots",
    )

    # Global options
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to db.toml (default: ./db.toml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # profiles command
    p_profiles = subparsers.add_parser(
        "profiles",
        help="List available profiles",
    )
    p_profiles.set_defaults(func=cmd_profiles)

    # take command
    p_take = subparsers.add_parser(
        "take",
        help="Take a snapshot of a profile's database and save it",
    )
    p_take.add_argument(
        "--profile",
        "-p",
        default=None,
        help=f"Profile from db.toml (default: ${PROFILE_ENV_VAR})",
    )
    p_take.add_argument(
        "--name",
        "-n",
        default=None,
        help="Snapshot name (default: profile name)",
    )
    p_take.add_argument(
        "--output",
        "-o",
        required=True,
        help="Backup file to write",
    )
    p_take.set_defaults(func=cmd_take)

    # show command
    p_show = subparsers.add_parser(
        "show",
        help="Summarize a snapshot backup file",
    )
    p_show.add_argument("file", help="Backup file to read")
    p_show.set_defaults(func=cmd_show)

    # compare command
    p_compare = subparsers.add_parser(
        "compare",
        help="Compare two snapshot backup files",
    )
    p_compare.add_argument("first", help="First backup file")
    p_compare.add_argument("second", help="Second backup file")
    p_compare.add_argument(
        "--first-name",
        default=None,
        help="Name replacing the one stored in the first file",
    )
    p_compare.add_argument(
        "--second-name",
        default=None,
        help="Name replacing the one stored in the second file",
    )
    p_compare.add_argument(
        "--expect",
        type=_parse_expectation,
        action="append",
        default=[],
        metavar="TABLE:MIN:MAX",
        help="Tolerate MIN to MAX rows present in one snapshot only for TABLE",
    )
    p_compare.set_defaults(func=cmd_compare)

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
