"""Terminal entry point: ``vault-sync``.

Subcommands:

- ``pull`` / ``push`` / ``sync`` -- run the engine for one profile.
- ``status`` -- checkpoint and document counts.
- ``audit`` -- find (``--repair``: collapse) documents sharing a path.
- ``diagnose`` -- metadata health report.
- ``clear-errors`` -- drop the ``sync-error`` tag so failed pushes retry.
- ``init`` -- write a starter config file.

Conflict and deletion questions are asked on the terminal unless answered
up front with ``--conflicts`` and ``--yes``.
"""

import argparse
import logging
import sys

from dotenv import load_dotenv

from . import __version__
from .config import load_config
from .config_loader import ensure_config, load_hierarchical_config
from .config_schema import (
    SyncProfileConfig,
    UnifiedConfig,
    build_config,
    remote_fallbacks,
)
from .core.client import GitHubClient
from .errors import VaultSyncError
from .logger import setup_logging
from .sync.auditor import DuplicateAuditor, sync_status
from .sync.engine import SyncEngine, build_adapters
from .sync.models import SyncDirection, SyncMode
from .sync.reporter import format_duplicates, format_sync_report
from .sync.resolver import (
    AutoConfirm,
    InteractiveConfirm,
    create_decider,
)

logger = logging.getLogger(__name__)

# --conflicts choice -> profile conflict_strategy
_CONFLICT_CHOICES = {
    "ask": "interactive",
    "markers": "markers",
    "local": "local-wins",
    "remote": "remote-wins",
    "abort": "abort",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vault-sync",
        description="Sync a local document store with a GitHub vault",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Two-way sync of the first configured profile
  vault-sync sync

  # Preview a full pull without changing anything
  vault-sync pull --full --dry-run

  # Unattended run: keep local on conflict, approve deletions
  vault-sync sync --conflicts local --yes

  # Collapse documents that claim the same remote path
  vault-sync audit --repair
        """,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"vault-sync version {__version__}",
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--profile",
        help="Sync profile name (default: first configured profile)",
    )
    common.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )

    run_opts = argparse.ArgumentParser(add_help=False)
    run_opts.add_argument(
        "--full",
        action="store_true",
        help="Scan every remote file instead of recent history",
    )
    run_opts.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would change without changing anything",
    )
    run_opts.add_argument(
        "--yes",
        action="store_true",
        help="Approve trash/delete actions without asking",
    )
    run_opts.add_argument(
        "--conflicts",
        choices=sorted(_CONFLICT_CHOICES),
        help="How to resolve conflicts (default: profile conflict_strategy)",
    )

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser(
        "pull", parents=[common, run_opts], help="Apply remote changes locally"
    )
    sub.add_parser(
        "push", parents=[common, run_opts], help="Upload local changes"
    )
    sub.add_parser(
        "sync", parents=[common, run_opts], help="Two-way sync"
    )
    sub.add_parser("status", parents=[common], help="Show sync state")
    audit = sub.add_parser(
        "audit", parents=[common], help="Find documents sharing a path"
    )
    audit.add_argument(
        "--repair",
        action="store_true",
        help="Keep one document per path and trash the rest",
    )
    sub.add_parser(
        "diagnose", parents=[common], help="Report metadata health"
    )
    sub.add_parser(
        "clear-errors",
        parents=[common],
        help="Remove the sync-error tag from all documents",
    )
    sub.add_parser("init", help="Write a starter config file")
    return parser


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_profile(
    args: argparse.Namespace,
) -> tuple[UnifiedConfig, str, SyncProfileConfig]:
    unified = build_config(load_hierarchical_config())
    setup_logging(
        mode="cli",
        debug=args.debug,
        log_file=unified.logging.file,
        level=unified.logging.level,
    )
    try:
        name, profile = unified.profile(args.profile)
    except KeyError:
        raise ValueError(
            f"Sync profile '{args.profile}' not found. "
            f"Available profiles: {list(unified.sync.keys())}"
        ) from None
    return unified, name, profile


def _client(unified: UnifiedConfig, debug: bool) -> GitHubClient:
    config = load_config(
        debug=debug, yaml_fallbacks=remote_fallbacks(unified)
    )
    return GitHubClient(config)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_run(args: argparse.Namespace) -> int:
    unified, name, profile = _load_profile(args)
    strategy = (
        _CONFLICT_CHOICES[args.conflicts]
        if args.conflicts
        else profile.conflict_strategy
    )
    if args.yes or profile.confirm_deletions:
        confirm = AutoConfirm(True)
    else:
        confirm = InteractiveConfirm()

    client = _client(unified, args.debug)
    engine = SyncEngine.from_profile(
        client,
        profile,
        name,
        decide=create_decider(strategy),
        confirm=confirm,
    )
    mode = SyncMode.FULL if args.full else SyncMode(profile.mode)
    direction = (
        SyncDirection.BIDIRECTIONAL
        if args.command == "sync"
        else SyncDirection(args.command)
    )
    try:
        report = engine.run(direction, mode, args.dry_run)
    finally:
        client.close()
    print(format_sync_report(report))
    return 1 if report.errors else 0


def _cmd_status(args: argparse.Namespace) -> int:
    _, name, profile = _load_profile(args)
    local, _, checkpoints = build_adapters(None, profile)
    status = sync_status(local, checkpoints, name)
    print(f"Sync status for '{name}'")
    print(f"  Last checkpoint:  {status['checkpoint'] or 'never'}")
    print(f"  Managed docs:     {status['managed_documents']}")
    print(f"  Unmapped docs:    {status['unmapped_documents']}")
    print(f"  Needs push:       {status['needs_push']}")
    print(f"  Sync errors:      {status['sync_errors']}")
    return 0


def _cmd_audit(args: argparse.Namespace) -> int:
    unified, _, profile = _load_profile(args)
    client = _client(unified, args.debug) if args.repair else None
    local, remote, _ = build_adapters(client, profile)
    auditor = DuplicateAuditor(local, remote)
    try:
        groups = auditor.repair() if args.repair else auditor.find_duplicates()
    finally:
        if client is not None:
            client.close()
    print(format_duplicates(groups, repaired=args.repair))
    return 0


def _cmd_diagnose(args: argparse.Namespace) -> int:
    _, _, profile = _load_profile(args)
    local, _, _ = build_adapters(None, profile)
    print(DuplicateAuditor(local).diagnose().summary())
    return 0


def _cmd_clear_errors(args: argparse.Namespace) -> int:
    _, _, profile = _load_profile(args)
    local, _, _ = build_adapters(None, profile)
    cleared = DuplicateAuditor(local).clear_errors()
    print(f"Cleared sync errors on {cleared} documents.")
    return 0


def _cmd_init(args: argparse.Namespace) -> int:
    path = ensure_config()
    print(f"Config file: {path}")
    return 0


_COMMANDS = {
    "pull": _cmd_run,
    "push": _cmd_run,
    "sync": _cmd_run,
    "status": _cmd_status,
    "audit": _cmd_audit,
    "diagnose": _cmd_diagnose,
    "clear-errors": _cmd_clear_errors,
    "init": _cmd_init,
}


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, run one subcommand and return its exit code."""
    args = build_parser().parse_args(argv)
    load_dotenv()
    try:
        return _COMMANDS[args.command](args)
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    except VaultSyncError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


def run() -> None:
    """Console script entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
