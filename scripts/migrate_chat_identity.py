#!/usr/bin/env python3
"""
Migration: merge duplicate direct-message chats into one canonical chat per user pair.
Safe to re-run; a partially completed run is resumed by running it again.

- Lists all chat docs.
- For each direct chat with two members computes the canonical id (dm_<a>_<b>, sorted pair;
  dm_<sha1 prefix> when that would exceed 36 characters).
- Creates the canonical chat when it is missing (copying the original chat attributes).
- Reassigns messages from the old chat id to the canonical chat id.
- Old chats are kept as they are.

Required env vars (or .env):
  APPWRITE_ENDPOINT (e.g. https://HOST/v1)
  APPWRITE_PROJECT
  APPWRITE_DATABASE_ID
  APPWRITE_CHATS_COLLECTION_ID
  APPWRITE_MESSAGES_COLLECTION_ID
  APPWRITE_API_KEY

Usage:
  python scripts/migrate_chat_identity.py                  # dry-run, report only
  python scripts/migrate_chat_identity.py --dry-run=false  # run migration
"""
import argparse
import asyncio
import logging
import os
import sys

# Project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import load_migration_config
from services.document_store import DocumentStoreClient
from services.migration_engine import run_migration
from utils.errors import ConfigurationError, FetchError

logger = logging.getLogger("migrate_chat_identity")

TRUE_VALUES = ("true", "1", "yes", "y", "on")
FALSE_VALUES = ("false", "0", "no", "n", "off")


def parse_bool(value: str) -> bool:
    lowered = str(value).strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise argparse.ArgumentTypeError(f"expected true or false, got {value!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Merge duplicate direct-message chats into canonical chats")
    parser.add_argument(
        "--dry-run",
        type=parse_bool,
        nargs="?",
        const=True,
        default=True,
        metavar="{true,false}",
        help="Only report what would change (default: true). Pass --dry-run=false to write.",
    )
    return parser


async def _run(config, dry_run: bool):
    async with DocumentStoreClient(config) as store:
        return await run_migration(store, config, dry_run=dry_run)


def main(argv=None, environ=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        config = load_migration_config(environ)
    except ConfigurationError as e:
        print(f"❌ {e}. See header of script.")
        return 1

    mode = "DRY-RUN" if args.dry_run else "LIVE"
    print("=" * 70)
    print(f"🔧 CHAT IDENTITY MIGRATION ({mode})")
    print(f"   Store: {config.base_url}  database={config.database_id}")
    print("=" * 70)

    try:
        report = asyncio.run(_run(config, args.dry_run))
    except FetchError as e:
        print(f"❌ Could not list chats, nothing was migrated: {e}")
        return 1

    print("\n" + "=" * 70)
    print("📝 SUMMARY")
    print("=" * 70)
    for line in report.summary_lines():
        print(f"   {line}")
    if args.dry_run:
        print("\n   Dry run: no documents were written. Re-run with --dry-run=false to apply.")
    print("=" * 70)
    return 0


if __name__ == "__main__":
    sys.exit(main())
