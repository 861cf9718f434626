# Rev 0.1.1

# lifeplan/main.py  (Rev 0.1.1)
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from PySide6.QtCore import QCoreApplication

from lifeplan.repositories.db import Database
from lifeplan.repositories.sqlite_roadmap_repository import SQLiteRoadmapRepository
from lifeplan.services.timeline_projection import TimelineConfig, ZoomLevel
from lifeplan.services.tree_store import TreeStore
from lifeplan.utils.config import load_settings
from lifeplan.utils.logging_setup import get_logger, setup_logging
from lifeplan.utils.paths import APP_NAME, DB_PATH
from lifeplan.viewmodels.timeline_viewmodel import TimelineViewModel

log = get_logger(__name__)


def _parse_args(argv: List[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="lifeplan", description="Roadmap timeline (headless outline)")
    p.add_argument("--db", type=Path, default=None, help=f"Path to SQLite DB (default: {DB_PATH})")
    p.add_argument("--zoom", choices=[z.value for z in ZoomLevel], default=None)
    p.add_argument("--expand", action="store_true", help="Show tasks and subtasks")
    return p.parse_args(argv)


def format_outline(rows: List[dict]) -> List[str]:
    lines = []
    for r in rows:
        dates = f"{r['start']}..{r['end']}" if r["start"] else "(no dates)"
        mark = "v" if r["verified"] else " "
        lines.append(f"{'  ' * r['level']}[{mark}] {r['name'] or r['id']}  {dates}")
    return lines


def main(argv: Optional[List[str]] = None) -> int:
    ns = _parse_args(sys.argv[1:] if argv is None else argv)
    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])  # noqa: F841
    QCoreApplication.setApplicationName(APP_NAME)

    logfile = setup_logging(APP_NAME)
    print(f"[logging] Writing to: {logfile}")

    settings = load_settings()
    config = TimelineConfig.from_settings(settings)
    db_path = ns.db or settings["persistence"].get("db_path") or DB_PATH

    # --- DI wiring ---
    db = Database(db_path)
    db.run_migrations()
    store = TreeStore.from_gateway(SQLiteRoadmapRepository(db))
    log.info("Loaded %d project(s) from %s", len(store.projects), db_path)
    vm = TimelineViewModel(store, config=config)
    try:
        if ns.zoom:
            vm.set_zoom(ns.zoom)
        if ns.expand:
            vm.expand_all()
        rng = vm.visible_range
        print(f"{len(store.projects)} project(s); zoom {vm.zoom.value}; window {rng}")
        for line in format_outline(vm.rows()):
            print(line)
    finally:
        store.close()
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
