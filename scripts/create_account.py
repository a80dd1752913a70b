"""Create an account directly in the configured DB.

Usage:
  python scripts/create_account.py --email alice@example.com --password '...' --role lecturer

NOTE: This is intended for local/dev (e.g. the first admin).
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from academic_records.auth.crud import register
from academic_records.auth.security import PasswordHasher
from academic_records.config import load_config
from academic_records.db import connect, init_db
from academic_records.errors import RecordsError
from academic_records.schema import ROLES


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--email", required=True)
    ap.add_argument("--password", required=True)
    ap.add_argument("--role", choices=list(ROLES), default="student")
    args = ap.parse_args()

    cfg = load_config()
    init_db(cfg.DB_DSN)

    hasher = PasswordHasher(rounds=cfg.AUTH_HASH_ROUNDS)
    try:
        with connect(cfg.DB_DSN) as conn:
            account = register(conn, email=args.email, password=args.password, role=args.role, hasher=hasher)
    except RecordsError as e:
        print(f"Could not create account: {e.code}")
        sys.exit(1)

    print("Created account:")
    print(account)


if __name__ == "__main__":
    main()
