# Rev 0.2.1

"""Constraint engine (Rev 0.2.1)

Pure propagation rules for the roadmap tree. Every function takes nodes
and returns new nodes; nothing is mutated in place.

Rule of thumb: the node the caller edited explicitly keeps its interval
and everything else moves around it.
  - downward: a Project (or a Task with subtasks) edited directly clamps
    its descendants into the new bounds
  - upward: a Subtask (or a childless Task) edited directly widens its
    ancestors until they contain it
  - rollups: Task interval/points/verified derive from subtasks, Project
    verified derives from tasks
"""
from __future__ import annotations
import logging
from dataclasses import replace
from datetime import date
from typing import Callable, Optional, Sequence, Tuple, TypeVar

from lifeplan.models.entities import Interval, Project, Subtask, Task, Tree
from lifeplan.services.interval_math import clamp_into, ensure, span, union

log = logging.getLogger(__name__)

N = TypeVar("N", Project, Task, Subtask)


# ---- rollups ----------------------------------------------------------------

def derive_task(task: Task) -> Task:
    """Recompute a task's effective interval, points and verified flag."""
    if not task.children:
        return replace(
            task,
            interval=task.own_interval,
            points=task.own_points,
            verified=task.own_verified,
        )
    derived = span(s.interval for s in task.children)
    own = task.own_interval
    if own.is_unset and derived is not None:
        # an undated task adopts its first derived span as the fallback
        own = derived
    return replace(
        task,
        interval=derived if derived is not None else own,
        own_interval=own,
        points=float(sum(s.points or 0 for s in task.children)),
        verified=all(s.verified for s in task.children),
    )


def contain_tasks(project: Project) -> Project:
    """Upward extension: widen the project to the union of its tasks and roll up verified."""
    interval = project.interval
    for task in project.children:
        interval = union(interval, task.interval)
    if interval != project.interval:
        log.debug("Project %s extended %s -> %s", project.id, project.interval, interval)
    verified = bool(project.children) and all(t.verified for t in project.children)
    return replace(project, interval=interval, verified=verified)


def renumber(nodes: Sequence[N]) -> Tuple[N, ...]:
    """Dense 0..n-1 order in sequence order; untouched nodes are reused."""
    return tuple(n if n.order == i else replace(n, order=i) for i, n in enumerate(nodes))


# ---- downward clamp ---------------------------------------------------------

def clamp_task(task: Task, bounds: Interval) -> Task:
    children = tuple(replace(s, interval=clamp_into(s.interval, bounds)) for s in task.children)
    return derive_task(replace(task, children=children, own_interval=clamp_into(task.own_interval, bounds)))


def clamp_project(project: Project) -> Project:
    if not project.interval.is_complete:
        return project
    return replace(project, children=tuple(clamp_task(t, project.interval) for t in project.children))


# ---- edits ------------------------------------------------------------------

def edit_project_interval(project: Project, interval: Interval) -> Project:
    """Explicit project edit: the new bounds win, descendants are clamped."""
    project = clamp_project(replace(project, interval=interval))
    return contain_tasks(project)


def edit_task_interval(project: Project, task_id: str, interval: Interval) -> Project:
    """Explicit task edit: clamp its subtasks (if any), then extend the project."""
    def apply(task: Task) -> Task:
        task = replace(task, own_interval=interval)
        if task.children and interval.is_complete:
            return clamp_task(task, interval)
        return derive_task(task)
    return contain_tasks(_map_task(project, task_id, apply))


def replace_task(project: Project, task: Task) -> Project:
    """Commit a task whose child list or own fields changed; re-derive and extend."""
    return contain_tasks(_map_task(project, task.id, lambda _: derive_task(task)))


def replace_subtask(project: Project, subtask: Subtask) -> Project:
    """Commit an edited subtask: re-derive its task, extend the project."""
    def apply(task: Task) -> Task:
        children = tuple(subtask if s.id == subtask.id else s for s in task.children)
        return derive_task(replace(task, children=children))
    return contain_tasks(_map_task(project, subtask.task_id, apply))


def _map_task(project: Project, task_id: str, fn: Callable[[Task], Task]) -> Project:
    return replace(project, children=tuple(fn(t) if t.id == task_id else t for t in project.children))


# ---- normalization ----------------------------------------------------------

def normalize_project(project: Project, *, today: Optional[Callable[[], date]] = None) -> Project:
    """Bring a loaded project back in line with every invariant without dropping stored dates."""
    tasks = []
    for task in project.children:
        subtasks = tuple(
            replace(s, project_id=project.id, task_id=task.id,
                    interval=ensure(s.interval.start, s.interval.end, today=today))
            for s in task.children
        )
        own = ensure(task.own_interval.start, task.own_interval.end, today=today)
        tasks.append(derive_task(replace(task, project_id=project.id, own_interval=own,
                                         children=renumber(subtasks))))
    interval = ensure(project.interval.start, project.interval.end, today=today)
    return contain_tasks(replace(project, interval=interval, children=renumber(tasks)))


def normalize_tree(tree: Tree, *, today: Optional[Callable[[], date]] = None) -> Tree:
    return Tree(projects=renumber([normalize_project(p, today=today) for p in tree.projects]))
