"""Load holidays from a JSON file into the holidays table.

Usage:
  python scripts/import_holidays.py holidays.json

The file is a list of objects: {"date": "YYYY-MM-DD", "name": "...", "country": "IN"}.
Re-importing the same file is harmless (upsert on date + name).
"""

import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from intern_portal.config import load_config
from intern_portal.db import connect, init_db
from intern_portal.holidays.crud import upsert_holiday


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("path", help="JSON file with a list of holidays")
    args = ap.parse_args()

    items = json.loads(Path(args.path).read_text(encoding="utf-8"))
    if not isinstance(items, list):
        raise SystemExit("Expected a JSON list of holidays")

    cfg = load_config()
    init_db(cfg.DB_DSN)

    n = 0
    with connect(cfg.DB_DSN) as conn:
        for item in items:
            upsert_holiday(
                conn,
                holiday_date=str(item.get("date") or ""),
                name=str(item.get("name") or ""),
                country=item.get("country"),
            )
            n += 1

    print(f"Imported {n} holidays into {cfg.DB_DSN}")


if __name__ == "__main__":
    main()
