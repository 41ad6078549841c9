#!/usr/bin/env python3
"""Operator console for the sales tracker's local storage.

Inspects primary and backup slots of every known key, restores a key from
its backup, exports a full snapshot, and purges backups.

Usage
-----
::

    python scripts/recovery_console.py inspect
    python scripts/recovery_console.py restore shopee_sales_data
    python scripts/recovery_console.py export --dir ./backups
    python scripts/recovery_console.py clear-backups --yes
    python scripts/recovery_console.py counts
    python scripts/recovery_console.py import backup.json

Storage locations come from ``SALESCACHE_*`` environment variables
(see :class:`salescache.CacheConfig`); ``--data-dir`` overrides the directory.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from salescache import CacheConfig, CacheError, RecoveryConsole, StateCache  # noqa: E402

# ── helpers ──────────────────────────────────────────────────


def _ask(prompt: str) -> bool:
    try:
        answer = input(f"{prompt} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}


def _print_stats(console: RecoveryConsole) -> None:
    print(f"{'Data Store':<26}{'Main':>18}{'Backup':>14}  Action")
    print("-" * 66)
    for stat in console.inspect():
        name = stat.key.removeprefix("shopee_")
        main = f"{stat.main_count} items ({stat.main_size / 1024:.1f}KB)"
        backup = f"{stat.backup_count} items"
        action = "RESTORE" if stat.can_restore else "OK"
        print(f"{name:<26}{main:>18}{backup:>14}  {action}")
    usage = console.storage_usage()
    print("-" * 66)
    print(f"Storage used: {usage.used} / {usage.total} bytes ({usage.percentage:.1f}%)")


# ── commands ─────────────────────────────────────────────────


def _run(args: argparse.Namespace, cache: StateCache) -> int:
    console = cache.console()

    if args.command == "inspect":
        _print_stats(console)
    elif args.command == "restore":
        restored = console.restore_from_backup(args.key)
        print(f"Restored {args.key} from backup ({restored} items). Restart the application to reload.")
    elif args.command == "export":
        path = console.export_all(Path(args.dir) if args.dir else None)
        print(f"Backup exported to {path}")
    elif args.command == "clear-backups":
        removed = console.clear_all_backups(confirm=True if args.yes else _ask)
        print(f"Cleared {removed} backups.")
    elif args.command == "clear-all":
        removed = console.clear_all(args.prefix or cache.config.namespace, confirm=True if args.yes else _ask)
        print(f"Removed {removed} slots.")
    elif args.command == "counts":
        counts = asyncio.run(console.record_counts())
        for store, count in counts.items():
            print(f"{store:<20}{count:>8}")
    elif args.command == "import":
        document = json.loads(Path(args.file).read_text(encoding="utf-8"))
        result = asyncio.run(console.import_full_backup(document))
        for store, count in result.counts.items():
            print(f"{store:<20}{count:>8}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Sales tracker storage recovery console")
    parser.add_argument("--data-dir", help="Override SALESCACHE_DATA_DIR")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("inspect", help="Show primary/backup sizes and counts")
    restore = sub.add_parser("restore", help="Copy a key's backup into its primary slot")
    restore.add_argument("key")
    export = sub.add_parser("export", help="Write a full snapshot of all known keys")
    export.add_argument("--dir", help="Destination directory")
    clear_backups = sub.add_parser("clear-backups", help="Delete every backup slot")
    clear_backups.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")
    clear_all = sub.add_parser("clear-all", help="Delete every slot with a key prefix")
    clear_all.add_argument("--prefix", help="Key prefix (default: configured namespace)")
    clear_all.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")
    sub.add_parser("counts", help="Show item counts of the record stores")
    import_cmd = sub.add_parser("import", help="Replace record stores from a full backup file")
    import_cmd.add_argument("file")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    overrides = {"data_dir": args.data_dir} if args.data_dir else {}
    try:
        cache = StateCache(CacheConfig.from_env(**overrides))
        return _run(args, cache)
    except CacheError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
