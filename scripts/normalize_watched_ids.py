"""
Watched ID Normalization Script

Older clients stored some watched entries with string ids ("1198994") or
under non-numeric keys (watched:{uid}:undefined). Those rows slip past the
numeric exclusion filters, so already-watched movies keep reappearing in
discovery.

This script scans every watched:* row and:
1. Rewrites the value with a numeric id when the id is a numeric string
2. Moves rows whose key suffix is not numeric to watched:{uid}:{id}
3. Reports rows with no usable id at all (deleted only with --delete-invalid)

Usage:
    python scripts/normalize_watched_ids.py [--dry-run] [--delete-invalid]

Requirements:
    - SUPABASE_URL and SUPABASE_SERVICE_KEY in environment (or .env)
"""

import os
import sys
import asyncio

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

# Load environment variables before settings are read
load_dotenv()

from duoreel.config import get_settings
from duoreel.services.kv_paginated import scan_rows_by_prefix
from duoreel.services.kv_store import SupabaseKVStore
from duoreel.services.maintenance import new_stats, normalize_watched_row

DRY_RUN = "--dry-run" in sys.argv
DELETE_INVALID = "--delete-invalid" in sys.argv


async def main():
    settings = get_settings()
    stats = new_stats()

    print("\n" + "=" * 60)
    print("WATCHED ID NORMALIZATION")
    if DRY_RUN:
        print("(dry run, nothing will be written)")
    print("=" * 60)

    if not settings.supabase_configured:
        print("❌ Missing SUPABASE_URL or SUPABASE_SERVICE_KEY")
        sys.exit(1)

    store = SupabaseKVStore(
        url=settings.supabase_url,
        service_key=settings.supabase_service_key,
        table=settings.kv_table,
        timeout=settings.upstream_timeout_seconds,
    )

    rows = await scan_rows_by_prefix(store, "watched:")
    print(f"Found {len(rows)} watched rows")

    for row in rows:
        outcome = await normalize_watched_row(
            store, row["key"], row.get("value"), stats,
            dry_run=DRY_RUN, delete_invalid=DELETE_INVALID,
        )
        if outcome == "invalid":
            print(f"  ⚠️ No usable id: {row['key']}")
        if stats["scanned"] % 500 == 0:
            print(f"  ...{stats['scanned']} scanned")

    print("\n" + "=" * 60)
    print("DONE")
    print("=" * 60)
    print(f"Scanned:    {stats['scanned']}")
    print(f"Already ok: {stats['already_ok']}")
    print(f"Retyped:    {stats['retyped']}")
    print(f"Moved:      {stats['moved']}")
    print(f"Invalid:    {stats['invalid']} ({stats['deleted']} deleted)")
    print("=" * 60 + "\n")


if __name__ == "__main__":
    asyncio.run(main())
