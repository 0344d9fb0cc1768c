"""Database management CLI.

Usage:
    python src/manage.py setup-db   # Create all tables
    python src/manage.py drop-db    # Drop all tables
"""

import argparse

from forwarding.domain import forwarding
from forwarding.utils.db import drop_db, setup_db
from forwarding.utils.logging import configure_logging


def main(argv=None):
    parser = argparse.ArgumentParser(description="Forwarding database management")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    args = parser.parse_args(argv)

    configure_logging()
    forwarding.init()
    if args.command == "setup-db":
        print("Creating forwarding database schema...")
        setup_db(forwarding)
    else:
        print("Dropping forwarding database schema...")
        drop_db(forwarding)
    print("Done.")


if __name__ == "__main__":
    main()
