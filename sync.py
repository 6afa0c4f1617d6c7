#!/usr/bin/env python3
"""
Pack Sync - Keep local content sets in line with the content server.

Fetches the manifest list from the server, then verifies, cleans up and
downloads each selected content set.
"""

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from packsync.config import SyncConfig
from packsync.core.cancel import CancelToken
from packsync.core.errors import OfflineError, SyncError
from packsync.core.formatting import format_size
from packsync.core.paths import get_config_path
from packsync.manifest import AssetIndexInfo, ContentManifest, check_network, fetch_manifests, find_manifest
from packsync.sync import ContentSync, SyncOutcome, SyncStatus
from packsync.ui import Colors, TerminalProgress

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_OFFLINE = 2
EXIT_CANCELLED = 130


def print_manifests(manifests: List[ContentManifest], app: ContentSync):
    """Print every content set on the server with its local status."""
    if not manifests:
        print("No content sets available!")
        return
    for manifest in manifests:
        status = app.check(manifest)
        color = Colors.GREEN if status is SyncStatus.SYNCED else Colors.MUTED
        print(
            f"  {Colors.BOLD}{manifest.modpack_name}{Colors.RESET} "
            f"{Colors.DIM}v{manifest.modpack_version}{Colors.RESET}  "
            f"{color}{status.value}{Colors.RESET}"
        )


def print_outcome(outcome: SyncOutcome):
    """Print a one-line summary of a sync run."""
    if outcome.status is SyncStatus.SYNCED:
        parts = [outcome.detail] if outcome.detail else []
        if outcome.plan is not None:
            parts.append(f"{outcome.downloaded} downloaded ({format_size(outcome.plan.fetch_size)})")
            parts.append(f"{outcome.deleted} removed")
        print(f"{Colors.GREEN}Synced{Colors.RESET}  {', '.join(parts)}")
    elif outcome.status is SyncStatus.CANCELLED:
        print(f"{Colors.YELLOW}Cancelled{Colors.RESET}")
    else:
        print(f"{Colors.RED}Sync failed{Colors.RESET}  {outcome.detail}")


def exit_code(status: SyncStatus) -> int:
    if status is SyncStatus.SYNCED:
        return EXIT_OK
    if status is SyncStatus.CANCELLED:
        return EXIT_CANCELLED
    if status in (SyncStatus.SYNC_ERROR_OFFLINE, SyncStatus.NOT_SYNCED):
        return EXIT_OFFLINE
    return EXIT_ERROR


def run_offline(app: ContentSync, names: List[str], reason: Optional[str] = None) -> int:
    """Report what can still be launched without a connection."""
    print(f"{Colors.YELLOW}No connection to the content server.{Colors.RESET}")
    if reason:
        print(f"  {Colors.DIM}{reason}{Colors.RESET}")
    names = names or app.state.names()
    if not names:
        print("Nothing has been synced yet.")
        return EXIT_OFFLINE
    worst = EXIT_OK
    for name in names:
        status = app.status_offline(name)
        if status is SyncStatus.SYNCED:
            print(f"  {name}  {Colors.GREEN}ready (last synced copy){Colors.RESET}")
        else:
            print(f"  {name}  {Colors.RED}{SyncStatus.SYNC_ERROR_OFFLINE.value}{Colors.RESET}")
            worst = EXIT_OFFLINE
    return worst


def sync_assets(
    app: ContentSync,
    config: SyncConfig,
    manifests: List[ContentManifest],
    cancel: CancelToken,
) -> SyncOutcome:
    """Fetch the shared asset objects of every distinct asset index."""
    outcome = SyncOutcome(SyncStatus.SYNCED, "No shared assets")
    seen = set()
    for manifest in manifests:
        info = AssetIndexInfo.for_content_set(manifest, config)
        if info is None or info.id in seen:
            continue
        seen.add(info.id)
        print(f"Syncing assets {Colors.BOLD}{info.id}{Colors.RESET}...")
        outcome = app.sync_assets(info, cancel)
        if outcome.status is not SyncStatus.SYNCED:
            break
    return outcome


def main(argv=None) -> int:
    """Entry point."""
    parser = argparse.ArgumentParser(
        description="Pack Sync - Sync content sets from a content server"
    )
    parser.add_argument("--list", action="store_true", help="List content sets and their status")
    parser.add_argument(
        "--content-set", action="append", default=[], metavar="NAME",
        help="Content set to sync (repeatable; default: all)",
    )
    parser.add_argument("--force", action="store_true", help="Overwrite protected files too")
    parser.add_argument("--rescan", action="store_true", help="Re-verify even if already up to date")
    parser.add_argument(
        "--assets", action="store_true", help="Also fetch the shared assets of each content set"
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to settings file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = SyncConfig.load(args.config or get_config_path())
    progress = TerminalProgress()
    app = ContentSync(config, progress=progress)

    is_online, network_error = check_network(config.server_base, timeout=config.connect_timeout)
    if not is_online:
        return run_offline(app, args.content_set, network_error)

    print("Fetching content sets...")
    try:
        manifests = fetch_manifests(config.server_base, timeout=config.connect_timeout)
    except OfflineError:
        return run_offline(app, args.content_set)
    except SyncError as e:
        print(f"{Colors.RED}Could not load content sets:{Colors.RESET} {e}")
        return EXIT_ERROR

    if args.list:
        print_manifests(manifests, app)
        return EXIT_OK

    try:
        selected = [find_manifest(manifests, name) for name in args.content_set] or manifests
    except KeyError as e:
        print(f"{Colors.RED}Unknown content set:{Colors.RESET} {e.args[0]}")
        return EXIT_ERROR

    cancel = CancelToken()
    previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: cancel.cancel())
    try:
        outcome = app.sync_many(
            selected,
            force_overwrite=args.force,
            ignore_version=args.rescan,
            cancel=cancel,
        )
        if args.assets and outcome.status is SyncStatus.SYNCED:
            print_outcome(outcome)
            outcome = sync_assets(app, config, selected, cancel)
    finally:
        signal.signal(signal.SIGINT, previous_handler)
    print_outcome(outcome)
    if outcome.status is SyncStatus.SYNC_ERROR_OFFLINE:
        return run_offline(app, [m.modpack_name for m in selected])
    return exit_code(outcome.status)


if __name__ == "__main__":
    sys.exit(main())
