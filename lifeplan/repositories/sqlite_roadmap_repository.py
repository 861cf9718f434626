# Rev 0.1.3
from __future__ import annotations

import logging
import sqlite3
import threading
from typing import Any, Dict, List, Sequence, Union

from lifeplan.models.entities import Tree
from lifeplan.models.records import Record, Records, tree_from_records, tree_to_records

log = logging.getLogger(__name__)

_PROJECT_COLS = ("id", "name", "start_date", "end_date", "status", "priority", "category", "verified", "sort_order")
_TASK_COLS = _PROJECT_COLS + (
    "project_id", "own_start_date", "own_end_date", "own_verified", "points", "total_points",
)
_SUBTASK_COLS = _PROJECT_COLS + ("project_id", "task_id", "points")


def _insert_sql(table: str, cols: Sequence[str]) -> str:
    return f"INSERT INTO {table}({', '.join(cols)}) VALUES ({', '.join('?' * len(cols))})"


def _to_row(rec: Record, cols: Sequence[str]) -> tuple:
    return tuple(rec["order"] if c == "sort_order" else rec.get(c) for c in cols)


def _from_row(row: sqlite3.Row) -> Record:
    rec: Dict[str, Any] = dict(row)
    rec["order"] = rec.pop("sort_order", 0)
    return rec


class SQLiteRoadmapRepository:
    """
    Persistence gateway for the whole roadmap tree.
    load() reads all three tables; save() replaces them in one transaction.
    Failures are logged and reported, never raised to the store.
    """

    def __init__(self, db_or_conn: Union[sqlite3.Connection, Any]):
        self._db_or_conn = db_or_conn
        self._lock = threading.Lock()

    # -------------------------
    # Connection handling
    # -------------------------
    def _conn(self) -> sqlite3.Connection:
        if isinstance(self._db_or_conn, sqlite3.Connection):
            c = self._db_or_conn
        elif isinstance(getattr(self._db_or_conn, "conn", None), sqlite3.Connection):
            c = self._db_or_conn.conn
        else:
            raise RuntimeError(
                "SQLiteRoadmapRepository: could not obtain sqlite3.Connection "
                "(expected .conn on wrapper, or a raw Connection)."
            )
        c.row_factory = sqlite3.Row
        return c

    # -------------------------
    # Gateway
    # -------------------------
    def load(self) -> Tree:
        with self._lock:
            try:
                return tree_from_records(self.load_records())
            except (sqlite3.Error, KeyError, ValueError):
                log.exception("Loading roadmap failed; starting empty")
                return Tree()

    def load_records(self) -> Records:
        con = self._conn()

        def fetch(table: str) -> List[Record]:
            rows = con.execute(f"SELECT * FROM {table} ORDER BY sort_order, id").fetchall()
            return [_from_row(r) for r in rows]

        return Records(
            projects=fetch("roadmap_projects"),
            tasks=fetch("roadmap_tasks"),
            subtasks=fetch("roadmap_subtasks"),
        )

    def save(self, tree: Tree) -> bool:
        records = tree_to_records(tree)
        with self._lock:
            con = self._conn()
            try:
                con.execute("BEGIN")
                # children first
                con.execute("DELETE FROM roadmap_subtasks")
                con.execute("DELETE FROM roadmap_tasks")
                con.execute("DELETE FROM roadmap_projects")
                con.executemany(_insert_sql("roadmap_projects", _PROJECT_COLS),
                                [_to_row(r, _PROJECT_COLS) for r in records.projects])
                con.executemany(_insert_sql("roadmap_tasks", _TASK_COLS),
                                [_to_row(r, _TASK_COLS) for r in records.tasks])
                con.executemany(_insert_sql("roadmap_subtasks", _SUBTASK_COLS),
                                [_to_row(r, _SUBTASK_COLS) for r in records.subtasks])
                con.execute("COMMIT")
            except sqlite3.Error:
                if con.in_transaction:
                    con.execute("ROLLBACK")
                log.exception("Saving roadmap failed")
                return False
        log.debug("Saved %d project(s), %d task(s), %d subtask(s)",
                  len(records.projects), len(records.tasks), len(records.subtasks))
        return True
