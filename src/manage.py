"""BotStore management CLI.

Creates or drops every table for the configured ``BOTSTORE_DATABASE_URL``, and
watches a custom order's payment on a running instance.

Usage:
    python src/manage.py setup-db          # Create all tables
    python src/manage.py drop-db           # Drop all tables
    python src/manage.py wait-payment REF  # Poll a custom order until paid or failed
"""

import argparse
import sys

import httpx
from sqlalchemy import create_engine

from payments.poller import PaymentStatusPoller, http_fetcher
from shared.config import get_settings
from store import MEMORY_URL
from store.schema import drop_db, metadata, setup_db


def _engine(database_url: str | None):
    url = database_url or get_settings().database_url
    if url == MEMORY_URL:
        print("The in-memory store has no schema to manage.")
        sys.exit(1)
    return create_engine(url)


def setup_database(database_url: str | None = None) -> None:
    engine = _engine(database_url)
    print(f"Creating schema on {engine.url.render_as_string(hide_password=True)}...")
    setup_db(engine)
    for table in metadata.sorted_tables:
        print(f"  {table.name} ready.")
    print("Done.")


def drop_database(database_url: str | None = None) -> None:
    engine = _engine(database_url)
    print(f"Dropping schema on {engine.url.render_as_string(hide_password=True)}...")
    drop_db(engine)
    print("Done.")


def wait_for_payment(ref_code: str, base_url: str, client: httpx.Client | None = None) -> bool:
    """Poll a running BotStore until the custom order's payment settles."""
    client = client or httpx.Client(base_url=base_url, timeout=10.0)
    with client:
        poller = PaymentStatusPoller.from_settings(http_fetcher(client), get_settings())
        print(f"Waiting for payment on {ref_code} (up to {poller.max_attempts} checks)...")
        result = poller.poll(ref_code)
    if result.timed_out:
        print(f"Still pending after {result.attempts} checks.")
        return False
    print(f"Settled: payment {result.status['payment_status']}, order {result.status['status']}.")
    return True


def main():
    parser = argparse.ArgumentParser(description="BotStore management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (("setup-db", "Create all database tables"), ("drop-db", "Drop all database tables")):
        subparser = subparsers.add_parser(name, help=help_text)
        subparser.add_argument(
            "--database-url",
            default=None,
            help="SQLAlchemy URL (default: BOTSTORE_DATABASE_URL)",
        )

    wait = subparsers.add_parser("wait-payment", help="Poll a custom order until its payment settles")
    wait.add_argument("ref_code")
    wait.add_argument("--base-url", default="http://localhost:8000", help="Running BotStore API")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database(args.database_url)
    elif args.command == "drop-db":
        drop_database(args.database_url)
    elif args.command == "wait-payment":
        sys.exit(0 if wait_for_payment(args.ref_code, args.base_url) else 1)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
