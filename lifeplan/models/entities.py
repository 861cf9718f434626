# Rev 0.1.2
"""Roadmap entities: Project → Task → Subtask.

Nodes are frozen dataclasses and children are tuples, so every mutation
produces a new tree that shares all untouched subtrees with the old one.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import ClassVar, Optional, Tuple, Union

from .types import EntityType, Priority, Status


class Unset(Enum):
    """No date chosen yet. Distinct from every concrete date."""

    UNSET = "unset"

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNSET"


UNSET = Unset.UNSET

DateOrUnset = Union[date, Unset]


@dataclass(frozen=True)
class Interval:
    start: DateOrUnset = UNSET
    end: DateOrUnset = UNSET

    @property
    def is_unset(self) -> bool:
        return self.start is UNSET and self.end is UNSET

    @property
    def is_complete(self) -> bool:
        return self.start is not UNSET and self.end is not UNSET

    @property
    def days(self) -> int:
        """Inclusive length in days; 0 for an undated interval."""
        if not self.is_complete:
            return 0
        return (self.end - self.start).days + 1

    def contains(self, other: "Interval") -> bool:
        if not (self.is_complete and other.is_complete):
            return False
        return self.start <= other.start and other.end <= self.end

    def __str__(self) -> str:
        s = self.start.isoformat() if self.start is not UNSET else ""
        e = self.end.isoformat() if self.end is not UNSET else ""
        return f"{s}..{e}"


@dataclass(frozen=True)
class Subtask:
    id: str
    project_id: str
    task_id: str
    name: str = ""
    interval: Interval = Interval()
    order: int = 0
    status: Status = Status.BACKLOG
    priority: Optional[Priority] = None
    category: Optional[str] = None
    verified: bool = False
    points: Optional[float] = None

    kind: ClassVar[EntityType] = "subtask"


@dataclass(frozen=True)
class Task:
    id: str
    project_id: str
    name: str = ""
    interval: Interval = Interval()       # effective (derived when children are dated)
    own_interval: Interval = Interval()   # last explicit value, kept while derived
    order: int = 0
    status: Status = Status.BACKLOG
    priority: Optional[Priority] = None
    category: Optional[str] = None
    own_verified: bool = False
    verified: bool = False
    own_points: Optional[float] = None
    points: Optional[float] = None
    children: Tuple[Subtask, ...] = ()

    kind: ClassVar[EntityType] = "task"

    @property
    def has_children(self) -> bool:
        return bool(self.children)


@dataclass(frozen=True)
class Project:
    id: str
    name: str = ""
    interval: Interval = Interval()
    order: int = 0
    status: Status = Status.BACKLOG
    priority: Optional[Priority] = None
    category: Optional[str] = None
    verified: bool = False
    children: Tuple[Task, ...] = ()

    kind: ClassVar[EntityType] = "project"


Node = Union[Project, Task, Subtask]


@dataclass(frozen=True)
class Tree:
    projects: Tuple[Project, ...] = ()

    def iter_nodes(self):
        for p in self.projects:
            yield p
            for t in p.children:
                yield t
                yield from t.children
