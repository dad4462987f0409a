"""Order Management database CLI.

Creates and drops the ordering schema on the relational providers configured
for the domain (nothing to do with the default in-memory provider).

Usage:
    python src/manage.py setup-db   # Create all tables
    python src/manage.py drop-db    # Drop all tables
"""

import argparse
import sys


def setup_database():
    from ordering.domain import ordering
    from ordering.utils.db import setup_db

    print("Initializing ordering domain...")
    ordering.init()
    created = setup_db(ordering)
    if created:
        print(f"  Schema ready on: {', '.join(created)}")
    else:
        print("  No relational provider configured; nothing to create.")


def drop_database():
    from ordering.domain import ordering
    from ordering.utils.db import drop_db

    print("Initializing ordering domain...")
    ordering.init()
    dropped = drop_db(ordering)
    if dropped:
        print(f"  Schema dropped on: {', '.join(dropped)}")
    else:
        print("  No relational provider configured; nothing to drop.")


def main():
    parser = argparse.ArgumentParser(description="Order Management database management")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
