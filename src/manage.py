"""Marketplace management CLI.

Usage:
    python src/manage.py setup-db            # Create all tables
    python src/manage.py drop-db             # Drop all tables
    python src/manage.py sweep-flash-sales   # Persist expired / sold-out flash sales
"""

import argparse
import sys
from datetime import datetime


def _domain():
    from marketplace.domain import marketplace

    marketplace.init()
    return marketplace


def setup_database():
    from marketplace.utils.db import setup_db

    domain = _domain()
    print("Creating marketplace database schema...")
    setup_db(domain)
    print("Done.")


def drop_database():
    from marketplace.utils.db import drop_db

    domain = _domain()
    print("Dropping marketplace database schema...")
    drop_db(domain)
    print("Done.")


def sweep_flash_sales(as_of=None):
    from marketplace.flash_sale.management import SweepFlashSales

    domain = _domain()
    with domain.domain_context():
        updated = domain.process(SweepFlashSales(as_of=as_of), asynchronous=False)
    print(f"Flash sales updated: {updated}")
    return updated


def main():
    from marketplace.utils.logging import configure_logging

    configure_logging()

    parser = argparse.ArgumentParser(description="Marketplace management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    sweep_parser = subparsers.add_parser("sweep-flash-sales", help="Expire or sell out flash sales")
    sweep_parser.add_argument(
        "--as-of",
        type=datetime.fromisoformat,
        default=None,
        help="ISO timestamp to evaluate sales at (default: now)",
    )

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "sweep-flash-sales":
        sweep_flash_sales(args.as_of)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
