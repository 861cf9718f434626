# Rev 0.2.0

"""Pytest fixtures for lifeplan (Rev 0.2.0)"""
from __future__ import annotations
import itertools
from datetime import date
from pathlib import Path
from typing import List

import pytest

from lifeplan.models.entities import Interval, Project, Subtask, Task, Tree
from lifeplan.repositories.db import Database
from lifeplan.services.tree_store import TreeStore

TODAY = date(2024, 1, 15)


def d(text: str) -> date:
    return date.fromisoformat(text)


def iv(start: str, end: str) -> Interval:
    return Interval(d(start), d(end))


class MemoryGateway:
    """In-memory persistence stub; records every saved tree."""

    def __init__(self, tree: Tree = Tree(), fail: bool = False):
        self.tree = tree
        self.fail = fail
        self.saved: List[Tree] = []

    def load(self) -> Tree:
        return self.tree

    def save(self, tree: Tree) -> bool:
        if self.fail:
            raise RuntimeError("disk full")
        self.saved.append(tree)
        self.tree = tree
        return True


def sequential_ids():
    counter = itertools.count(1)
    return lambda kind: f"{kind[0]}{next(counter)}"


def sample_tree() -> Tree:
    """P: T1 (2024-01-01..2024-01-05, no subtasks), T2 with S1 (2024-02-01..2024-02-03)."""
    s1 = Subtask(id="S1", project_id="P", task_id="T2", name="s1", interval=iv("2024-02-01", "2024-02-03"))
    t1 = Task(id="T1", project_id="P", name="t1", own_interval=iv("2024-01-01", "2024-01-05"))
    t2 = Task(id="T2", project_id="P", name="t2", order=1, children=(s1,))
    return Tree((Project(id="P", name="p", children=(t1, t2)),))


@pytest.fixture()
def db(tmp_path: Path):
    db = Database(path=tmp_path / "test.db")
    try:
        db.run_migrations()
        yield db
    finally:
        db.close()


@pytest.fixture()
def db_conn(db):
    return db.conn


@pytest.fixture()
def gateway():
    return MemoryGateway()


@pytest.fixture()
def store(gateway):
    s = TreeStore(sample_tree(), gateway=gateway, id_factory=sequential_ids(), today=lambda: TODAY)
    yield s
    s.close()


@pytest.fixture()
def empty_store():
    s = TreeStore(id_factory=sequential_ids(), today=lambda: TODAY)
    yield s
    s.close()


@pytest.fixture(scope="session")
def qapp():
    from PySide6.QtCore import QCoreApplication
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app
