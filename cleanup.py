"""
Delete EXECUTED/FAILED commands older than a retention window.
PENDING commands are never removed.

Usage: python cleanup.py --days 30
"""
import argparse
from drawer_dispatch.config import settings
from drawer_dispatch.database import SessionLocal
from drawer_dispatch.logging_config import configure_logging
from drawer_dispatch import crud

def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument(
        "--days",
        type=int,
        default=settings.cleanup_default_days,
        help="retention window in days (at least 1)",
    )
    args = parser.parse_args(argv)

    configure_logging(settings.log_level)
    db = SessionLocal()
    try:
        deleted = crud.cleanup_older_than(db, args.days)
    finally:
        db.close()

    print(f"🧹 Deleted {deleted} command(s) older than {args.days} days")
    return deleted

if __name__ == "__main__":
    main()
