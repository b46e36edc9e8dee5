#!/usr/bin/env python3
"""Create or reset an admin account for POST /signin.

Usage:
    # Prompt for the password (never echoed, never in shell history):
    python scripts/create_admin.py --username admin

    # Against a specific database (defaults to DATABASE_URL / settings):
    python scripts/create_admin.py --username admin --database-url postgresql+psycopg://...

Stores a bcrypt hash in the auth table. Re-running for an existing user
replaces the password.
"""

from __future__ import annotations

import argparse
import getpass
import sys

from storefront.auth import hash_password
from storefront.config import get_settings
from storefront.db.store import Store


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--username", required=True)
    parser.add_argument("--database-url", default=None)
    args = parser.parse_args()

    password = getpass.getpass("Password: ")
    if not password:
        print("ERROR: empty password", file=sys.stderr)
        return 1
    if getpass.getpass("Repeat password: ") != password:
        print("ERROR: passwords do not match", file=sys.stderr)
        return 1

    store = Store(args.database_url or get_settings().database_url)
    try:
        store.upsert_admin(args.username, hash_password(password))
    finally:
        store.close()

    print(f"Admin '{args.username}' saved.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
