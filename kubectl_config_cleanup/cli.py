"""Command-line interface for kubectl-config-cleanup."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from kubectl_config_cleanup import __version__
from kubectl_config_cleanup.errors import CleanupError
from kubectl_config_cleanup.kubeconfig import (
    DEFAULT_BACKUP_DIR,
    load_kubeconfig,
    save_kubeconfig,
)
from kubectl_config_cleanup.prune import PruneOptions, PruneResult, prune_contexts
from kubectl_config_cleanup.selector import select_contexts

logging.basicConfig(level=logging.WARNING, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)

console = Console(stderr=True)

TRUE_VALUES = ("1", "true", "t", "yes", "y", "on")
FALSE_VALUES = ("0", "false", "f", "no", "n", "off")


def parse_bool(value: str | bool) -> bool:
    if isinstance(value, bool):
        return value
    lowered = value.strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value: {value!r}")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="kubectl-config_cleanup",
        description=(
            "Interactively remove kubeconfig contexts together with the clusters "
            "and users they reference"
        ),
    )
    parser.add_argument(
        "--kubeconfig",
        default=None,
        help="Use a particular kubeconfig file (default: $KUBECONFIG or ~/.kube/config)",
    )
    parser.add_argument(
        "-u",
        "--remove-stale-users",
        nargs="?",
        const=True,
        default=True,
        type=parse_bool,
        metavar="BOOL",
        help="Remove stale users, not referenced by any context (default: true)",
    )
    parser.add_argument(
        "-c",
        "--remove-stale-clusters",
        nargs="?",
        const=True,
        default=True,
        type=parse_bool,
        metavar="BOOL",
        help="Remove stale clusters, not referenced by any context (default: true)",
    )
    parser.add_argument(
        "--keep-shared",
        action="store_true",
        help="Keep clusters/users of removed contexts that remaining contexts still use",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show changes without writing the file",
    )
    parser.add_argument(
        "--no-backup",
        action="store_true",
        help="Do not copy the kubeconfig to the backup directory before writing",
    )
    parser.add_argument(
        "--backup-dir",
        default=str(DEFAULT_BACKUP_DIR),
        help="Directory for kubeconfig backups (default: ~/.kube/config_backup)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def build_options(args: argparse.Namespace) -> PruneOptions:
    return PruneOptions(
        remove_stale_clusters=args.remove_stale_clusters,
        remove_stale_users=args.remove_stale_users,
        keep_shared=args.keep_shared,
    )


def format_names(names: list[str]) -> str:
    return ", ".join(names) if names else "none"


def print_result(result: PruneResult) -> None:
    print(f"Contexts removed: {format_names(result.removed_contexts)}")
    print(f"Clusters removed: {format_names(result.removed_clusters)}")
    print(f"Users removed: {format_names(result.removed_users)}")

    if result.current_context_removed:
        console.print(
            "[yellow]Warning: current-context points to a removed context.[/yellow]"
        )

    if result.missing_clusters or result.missing_users:
        print("Warning: remaining contexts reference missing clusters/users.")
        if result.missing_clusters:
            print(f"  Missing clusters: {format_names(result.missing_clusters)}")
        if result.missing_users:
            print(f"  Missing users: {format_names(result.missing_users)}")


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    try:
        args = parse_args(argv)

        if args.verbose:
            logging.getLogger().setLevel(logging.INFO)

        options = build_options(args)
        config = load_kubeconfig(args.kubeconfig)

        selected = select_contexts(config.contexts(), config.current_context)
        if not selected:
            logger.info("No selection made, exiting")
            return 0

        console.print(f"\n[green]Selected:[/green] {escape(', '.join(selected))}")
        result = prune_contexts(config, selected, options)

        print(f"Kubeconfig: {', '.join(str(path) for path in config.paths)}")
        print_result(result)

        if args.dry_run:
            print("dry-run enabled: no changes made.")
            return 0

        backup_dir = None if args.no_backup else Path(args.backup_dir).expanduser()
        saved = save_kubeconfig(config, backup_dir=backup_dir)
        for backup_path in saved.backups:
            print(f"Backup saved: {backup_path}")
        print("done.")
        return 0

    except CleanupError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        return 1
    except Exception as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        logger.exception("Unexpected error")
        return 1


if __name__ == "__main__":
    sys.exit(main())
