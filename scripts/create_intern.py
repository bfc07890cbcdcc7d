"""Create an intern account.

Usage:
  python scripts/create_intern.py --name "Ada Lovelace" --email ada@example.com --password '...'

NOTE: This is intended for local/dev.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from intern_portal.config import load_config
from intern_portal.db import init_db, connect
from intern_portal.auth.crud import create_intern


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--name", required=True)
    ap.add_argument("--email", required=True)
    ap.add_argument("--password", required=True)
    args = ap.parse_args()

    cfg = load_config()
    init_db(cfg.DB_DSN)

    with connect(cfg.DB_DSN) as conn:
        intern = create_intern(conn, name=args.name, email=args.email, password=args.password)

    print("Created intern:")
    print(intern)


if __name__ == "__main__":
    main()
