# Rev 0.1.1
"""Flat record shape for persisting the roadmap tree.

One dict per node, in three collections (projects, tasks, subtasks).
Dates are ISO strings, '' for unset. Parent links (project_id, task_id)
are enough to rebuild the tree.
"""
from __future__ import annotations
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from lifeplan.services.interval_math import format_date, parse_date
from .entities import Interval, Project, Subtask, Task, Tree
from .types import Priority, Status

log = logging.getLogger(__name__)

Record = Dict[str, Any]


@dataclass
class Records:
    projects: List[Record] = field(default_factory=list)
    tasks: List[Record] = field(default_factory=list)
    subtasks: List[Record] = field(default_factory=list)


def _interval(start: Any, end: Any) -> Interval:
    return Interval(parse_date(start), parse_date(end))


def _status(value: Any) -> Status:
    try:
        return Status(value) if value else Status.BACKLOG
    except ValueError:
        log.warning("Unknown status %r; using backlog", value)
        return Status.BACKLOG


def _priority(value: Any) -> Optional[Priority]:
    if not value:
        return None
    try:
        return Priority(value)
    except ValueError:
        log.warning("Unknown priority %r dropped", value)
        return None


def _points(value: Any) -> Optional[float]:
    return float(value) if value is not None and value != "" else None


def _common(node) -> Record:
    return {
        "id": node.id,
        "name": node.name,
        "start_date": format_date(node.interval.start),
        "end_date": format_date(node.interval.end),
        "status": node.status.value,
        "priority": node.priority.value if node.priority else None,
        "category": node.category,
        "verified": bool(node.verified),
        "order": node.order,
    }


def tree_to_records(tree: Tree) -> Records:
    out = Records()
    for p in tree.projects:
        out.projects.append(_common(p))
        for t in p.children:
            rec = _common(t)
            rec.update(
                project_id=p.id,
                points=t.own_points,
                total_points=t.points,
                own_start_date=format_date(t.own_interval.start),
                own_end_date=format_date(t.own_interval.end),
                own_verified=bool(t.own_verified),
            )
            out.tasks.append(rec)
            for s in t.children:
                rec = _common(s)
                rec.update(project_id=p.id, task_id=t.id, points=s.points)
                out.subtasks.append(rec)
    return out


def _by_order(records: Iterable[Record]) -> List[Record]:
    return sorted(records, key=lambda r: int(r.get("order") or 0))


def tree_from_records(records: Records) -> Tree:
    """Rebuild the tree; orphans are dropped with a warning. Rollups are left to normalization."""
    subtasks_by_task: Dict[str, List[Subtask]] = defaultdict(list)
    for r in _by_order(records.subtasks):
        subtasks_by_task[r["task_id"]].append(Subtask(
            id=r["id"],
            project_id=r.get("project_id") or "",
            task_id=r["task_id"],
            name=r.get("name") or "",
            interval=_interval(r.get("start_date"), r.get("end_date")),
            order=int(r.get("order") or 0),
            status=_status(r.get("status")),
            priority=_priority(r.get("priority")),
            category=r.get("category") or None,
            verified=bool(r.get("verified")),
            points=_points(r.get("points")),
        ))

    tasks_by_project: Dict[str, List[Task]] = defaultdict(list)
    for r in _by_order(records.tasks):
        shown = _interval(r.get("start_date"), r.get("end_date"))
        own = _interval(r.get("own_start_date"), r.get("own_end_date"))
        tasks_by_project[r["project_id"]].append(Task(
            id=r["id"],
            project_id=r["project_id"],
            name=r.get("name") or "",
            interval=shown,
            own_interval=own if not own.is_unset else shown,
            order=int(r.get("order") or 0),
            status=_status(r.get("status")),
            priority=_priority(r.get("priority")),
            category=r.get("category") or None,
            own_verified=bool(r.get("own_verified", r.get("verified"))),
            own_points=_points(r.get("points")),
            children=tuple(subtasks_by_task.pop(r["id"], ())),
        ))

    projects = []
    for r in _by_order(records.projects):
        projects.append(Project(
            id=r["id"],
            name=r.get("name") or "",
            interval=_interval(r.get("start_date"), r.get("end_date")),
            order=int(r.get("order") or 0),
            status=_status(r.get("status")),
            priority=_priority(r.get("priority")),
            category=r.get("category") or None,
            verified=bool(r.get("verified")),
            children=tuple(tasks_by_project.pop(r["id"], ())),
        ))

    orphans = sum(len(v) for v in subtasks_by_task.values()) + sum(len(v) for v in tasks_by_project.values())
    if orphans:
        log.warning("Dropped %d record(s) whose parent is missing", orphans)
    return Tree(tuple(projects))
