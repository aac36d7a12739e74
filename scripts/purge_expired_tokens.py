#!/usr/bin/env python3
"""
Expired Token Purge Script
--------------------------
Deletes tokens whose expiry window has passed.

Run periodically via cron:
    */30 * * * * cd /path/to/gallery && python scripts/purge_expired_tokens.py >> /var/log/gallery-token-purge.log 2>&1

Or manually with options:
    # Purge
    python scripts/purge_expired_tokens.py

    # Dry-run mode (count only, no deletes)
    python scripts/purge_expired_tokens.py --dry-run

Environment variables:
    DATABASE_URL: PostgreSQL connection string
"""
import argparse
import os
import sys
from datetime import datetime, timezone

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Purge expired auth tokens",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Count expired tokens but don't delete them",
    )
    args = parser.parse_args(argv)

    from gallery.db import DatabaseError, is_available
    from gallery.logging_conf import configure_logging
    from gallery.services.token_service import TokenStore

    configure_logging()

    start_time = datetime.now(timezone.utc)
    print(f"[{start_time.isoformat()}] Expired token purge")
    print(f"  Mode: {'dry-run' if args.dry_run else 'apply'}")

    if not is_available():
        print("  ERROR: DATABASE_URL is not set")
        return 1

    try:
        if args.dry_run:
            count = TokenStore.count_expired()
            print(f"  Expired tokens: {count}")
        else:
            count = TokenStore.purge_expired()
            print(f"  Deleted: {count}")
    except DatabaseError as e:
        print(f"  ERROR: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
