# File: lifeplan/tools/migrate.py
# Usage examples:
#   python -m lifeplan.tools.migrate up
#   python -m lifeplan.tools.migrate status
#   python -m lifeplan.tools.migrate up --db /path/to/lifeplan.db
#   python -m lifeplan.tools.migrate verify
#
# Notes:
# - DB path defaults to env LIFEPLAN_DB or $XDG_DATA_HOME/lifeplan/lifeplan.db
# - Applies lifeplan/migrations/*.sql in lexicographic order via Database.run_migrations

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from lifeplan.repositories.db import Database
from lifeplan.utils.paths import DB_PATH, MIGRATIONS_DIR

log = logging.getLogger(__name__)

REQUIRED_TABLES = ("roadmap_projects", "roadmap_tasks", "roadmap_subtasks", "schema_migrations")


def cmd_status(db_path: Path, migrations_dir: Path) -> int:
    db = Database(db_path)
    try:
        applied = sorted(db.applied())
        pending = db.pending(migrations_dir)
        print(f"DB: {db_path}")
        print(f"Migrations dir: {migrations_dir}")
        print(f"Applied count: {len(applied)}")
        for name in applied:
            print(f"  + {name}")
        print(f"Pending count: {len(pending)}")
        for name in pending:
            print(f"  ~ {name}")
        return 0
    finally:
        db.close()


def cmd_up(db_path: Path, migrations_dir: Path) -> int:
    db = Database(db_path)
    try:
        applied = db.run_migrations(migrations_dir)
        if applied:
            print(f"Applied {len(applied)} migration(s). Database is up to date.")
        else:
            print("No changes. Database already up to date.")
        return 0
    finally:
        db.close()


def cmd_verify(db_path: Path) -> int:
    db = Database(db_path)
    try:
        names = {
            r[0] for r in db.conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%';"
            )
        }
        missing = [t for t in REQUIRED_TABLES if t not in names]
        if missing:
            print("Missing tables:", ", ".join(missing))
            return 2
        (mode,) = db.conn.execute("PRAGMA journal_mode;").fetchone()
        if str(mode).lower() != "wal":
            print(f"journal_mode is not WAL (got {mode})")
            return 3
        print("Verification passed.")
        return 0
    finally:
        db.close()


def parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="lifeplan-migrate", description="SQLite migration runner for lifeplan")
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_common(sp: argparse.ArgumentParser):
        sp.add_argument("--db", type=Path, default=DB_PATH, help=f"Path to SQLite DB (default: {DB_PATH})")
        sp.add_argument("--migrations-dir", type=Path, default=MIGRATIONS_DIR,
                        help=f"Migrations directory (default: {MIGRATIONS_DIR})")

    add_common(sub.add_parser("up", help="Run pending migrations"))
    add_common(sub.add_parser("status", help="Show applied and pending migrations"))
    s_verify = sub.add_parser("verify", help="Lightweight structural verification")
    s_verify.add_argument("--db", type=Path, default=DB_PATH, help=f"Path to SQLite DB (default: {DB_PATH})")
    return p.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    ns = parse_args(sys.argv[1:] if argv is None else argv)
    if ns.cmd == "status":
        return cmd_status(ns.db, ns.migrations_dir)
    if ns.cmd == "up":
        return cmd_up(ns.db, ns.migrations_dir)
    if ns.cmd == "verify":
        return cmd_verify(ns.db)
    raise SystemExit(1)


if __name__ == "__main__":
    raise SystemExit(main())
