# Rev 0.2.2

"""In-memory roadmap tree + mutation API (Rev 0.2.2)

Every mutation is synchronous: fields are applied, the constraint engine
restores the tree invariants, listeners are told about the new tree and
the tree is handed to the persistence gateway on a background worker.
Saving is fire-and-forget; the in-memory tree is the source of truth.

Unknown ids are reported as None/False rather than raised.
"""
from __future__ import annotations

import logging
import uuid
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple

from lifeplan.models.entities import UNSET, Interval, Node, Project, Subtask, Task, Tree
from lifeplan.models.types import EntityType, Priority, Status
from lifeplan.services import constraint_engine as engine
from lifeplan.services.interval_math import ensure, parse_date

log = logging.getLogger(__name__)


class PersistenceGateway(Protocol):
    def load(self) -> Tree: ...
    def save(self, tree: Tree) -> bool: ...


@dataclass(frozen=True)
class NodeRef:
    kind: EntityType
    node: Node
    project_id: str
    task_id: Optional[str] = None


@dataclass(frozen=True)
class ReorderScope:
    """Sibling list a reorder applies to: top-level projects, a project's tasks or a task's subtasks."""

    kind: EntityType
    parent_id: Optional[str] = None

    @classmethod
    def of(cls, node: Node) -> "ReorderScope":
        if isinstance(node, Project):
            return cls("project")
        if isinstance(node, Task):
            return cls("task", node.project_id)
        return cls("subtask", node.task_id)


_COMMON_FIELDS = frozenset({"name", "start", "end", "status", "priority", "category"})
_FIELDS: Dict[str, frozenset] = {
    "project": _COMMON_FIELDS,
    "task": _COMMON_FIELDS | {"verified", "points"},
    "subtask": _COMMON_FIELDS | {"verified", "points"},
}
_DATE_FIELDS = frozenset({"start", "end"})


def _has_text(value: Any) -> bool:
    if value is None or value is UNSET:
        return False
    return not (isinstance(value, str) and not value.strip())


def _coerce(kind: EntityType, fields: Mapping[str, Any]) -> Dict[str, Any]:
    unknown = set(fields) - _FIELDS[kind]
    if unknown:
        raise ValueError(f"Unknown {kind} field(s): {', '.join(sorted(unknown))}")
    out: Dict[str, Any] = {}
    for key, value in fields.items():
        if key in _DATE_FIELDS:
            parsed = parse_date(value)
            if parsed is UNSET and _has_text(value):
                # unparseable input leaves the stored endpoint alone
                continue
            out[key] = parsed
        elif key == "name":
            out[key] = str(value or "")
        elif key == "status":
            out[key] = Status(value)
        elif key == "priority":
            out[key] = Priority(value) if value is not None else None
        elif key == "category":
            out[key] = str(value) if value else None
        elif key == "verified":
            out[key] = bool(value)
        elif key == "points":
            out[key] = float(value) if value is not None else None
    return out


def _build_index(tree: Tree) -> Dict[str, NodeRef]:
    index: Dict[str, NodeRef] = {}
    for p in tree.projects:
        index[p.id] = NodeRef("project", p, p.id)
        for t in p.children:
            index[t.id] = NodeRef("task", t, p.id)
            for s in t.children:
                index[s.id] = NodeRef("subtask", s, p.id, t.id)
    return index


def _swap_project(tree: Tree, project: Project) -> Tree:
    return Tree(tuple(project if p.id == project.id else p for p in tree.projects))


def _default_id(kind: EntityType) -> str:
    return f"{kind}-{uuid.uuid4().hex}"


class TreeStore:
    def __init__(
        self,
        tree: Optional[Tree] = None,
        *,
        gateway: Optional[PersistenceGateway] = None,
        executor: Optional[Executor] = None,
        id_factory: Callable[[EntityType], str] = _default_id,
        today: Optional[Callable[[], date]] = None,
    ):
        self._today = today
        self._tree = engine.normalize_tree(tree or Tree(), today=today)
        self._index = _build_index(self._tree)
        self._gateway = gateway
        self._executor = executor
        self._owns_executor = False
        self._pending: Optional[Future] = None
        self._new_id = id_factory
        self._listeners: List[Callable[[Tree], None]] = []

    @classmethod
    def from_gateway(cls, gateway: PersistenceGateway, **kwargs) -> "TreeStore":
        return cls(gateway.load(), gateway=gateway, **kwargs)

    # ---- queries ----
    @property
    def tree(self) -> Tree:
        return self._tree

    @property
    def projects(self) -> Tuple[Project, ...]:
        return self._tree.projects

    def find(self, node_id: str) -> Optional[NodeRef]:
        return self._index.get(node_id)

    def get_project(self, project_id: str) -> Optional[Project]:
        return self._get("project", project_id)

    def get_task(self, task_id: str) -> Optional[Task]:
        return self._get("task", task_id)

    def get_subtask(self, subtask_id: str) -> Optional[Subtask]:
        return self._get("subtask", subtask_id)

    def add_listener(self, callback: Callable[[Tree], None]) -> None:
        self._listeners.append(callback)

    # ---- create ----
    def add_project(self, name: str = "") -> Project:
        project = Project(id=self._new_id("project"), name=name, order=len(self._tree.projects))
        self._commit(Tree(self._tree.projects + (project,)), "add project %s" % project.id)
        return project

    def add_task(self, project_id: str, name: str = "") -> Optional[Task]:
        project = self.get_project(project_id)
        if project is None:
            log.warning("add_task: project %s not found", project_id)
            return None
        task = Task(id=self._new_id("task"), project_id=project_id, name=name, order=len(project.children))
        project = engine.contain_tasks(replace(project, children=project.children + (task,)))
        self._commit(_swap_project(self._tree, project), "add task %s" % task.id)
        return self.get_task(task.id)

    def add_subtask(self, project_id: str, task_id: str, name: str = "") -> Optional[Subtask]:
        ref = self.find(task_id)
        if ref is None or ref.kind != "task" or ref.project_id != project_id:
            log.warning("add_subtask: task %s not found in project %s", task_id, project_id)
            return None
        task: Task = ref.node
        subtask = Subtask(
            id=self._new_id("subtask"),
            project_id=project_id,
            task_id=task_id,
            name=name,
            order=len(task.children),
        )
        project = engine.replace_task(self._project_of(ref), replace(task, children=task.children + (subtask,)))
        self._commit(_swap_project(self._tree, project), "add subtask %s" % subtask.id)
        return self.get_subtask(subtask.id)

    # ---- update ----
    def update_project(self, project_id: str, **fields: Any) -> Optional[Project]:
        return self._update_kind("project", project_id, fields)

    def update_task(self, task_id: str, **fields: Any) -> Optional[Task]:
        return self._update_kind("task", task_id, fields)

    def update_subtask(self, subtask_id: str, **fields: Any) -> Optional[Subtask]:
        return self._update_kind("subtask", subtask_id, fields)

    def update_node(self, node_id: str, **fields: Any) -> Optional[Node]:
        tree = self._apply_update(self._tree, self._index, node_id, fields)
        if tree is None:
            return None
        self._commit(tree, "update %s" % node_id)
        return self.find(node_id).node

    def apply_batch(self, edits: Iterable[Tuple[str, Mapping[str, Any]]]) -> List[Optional[Node]]:
        """Apply several updates as one logical change with a single save.

        All upward edits (subtasks, childless tasks, non-date fields) run
        before any downward clamp (project or parent-task dates), so an
        explicit shrink in the batch always has the last word.
        """
        edits = list(edits)
        upward, downward = [], []
        for node_id, fields in edits:
            (downward if self._is_downward(node_id, fields) else upward).append((node_id, fields))

        tree, index = self._tree, self._index
        applied: Dict[str, bool] = {}
        for node_id, fields in upward + downward:
            new_tree = self._apply_update(tree, index, node_id, fields)
            applied[node_id] = applied.get(node_id, False) or new_tree is not None
            if new_tree is not None:
                tree, index = new_tree, _build_index(new_tree)
        if any(applied.values()):
            self._commit(tree, "batch of %d edits" % len(edits))
        return [self.find(node_id).node if applied.get(node_id) else None for node_id, _ in edits]

    # ---- delete ----
    def delete_project(self, project_id: str) -> bool:
        if self.get_project(project_id) is None:
            log.warning("delete_project: %s not found", project_id)
            return False
        remaining = [p for p in self._tree.projects if p.id != project_id]
        self._commit(Tree(engine.renumber(remaining)), "delete project %s" % project_id)
        return True

    def delete_task(self, task_id: str) -> bool:
        ref = self.find(task_id)
        if ref is None or ref.kind != "task":
            log.warning("delete_task: %s not found", task_id)
            return False
        project = self._project_of(ref)
        remaining = engine.renumber([t for t in project.children if t.id != task_id])
        project = engine.contain_tasks(replace(project, children=remaining))
        self._commit(_swap_project(self._tree, project), "delete task %s" % task_id)
        return True

    def delete_subtask(self, subtask_id: str) -> bool:
        ref = self.find(subtask_id)
        if ref is None or ref.kind != "subtask":
            log.warning("delete_subtask: %s not found", subtask_id)
            return False
        task: Task = self._index[ref.task_id].node
        remaining = engine.renumber([s for s in task.children if s.id != subtask_id])
        project = engine.replace_task(self._project_of(ref), replace(task, children=remaining))
        self._commit(_swap_project(self._tree, project), "delete subtask %s" % subtask_id)
        return True

    # ---- reorder ----
    def reorder(self, scope: ReorderScope, from_index: int, to_index: int) -> bool:
        """Move the sibling at from_index so it ends up at to_index of the resulting list."""
        siblings = self._siblings(scope)
        if siblings is None:
            log.warning("reorder: no sibling list for %s", scope)
            return False
        n = len(siblings)
        if not (0 <= from_index < n and 0 <= to_index < n):
            log.warning("reorder: indices %d -> %d out of range for %d %s(s)", from_index, to_index, n, scope.kind)
            return False
        if from_index == to_index:
            return True
        items = list(siblings)
        items.insert(to_index, items.pop(from_index))
        ordered = engine.renumber(items)

        if scope.kind == "project":
            tree = Tree(ordered)
        elif scope.kind == "task":
            project = self.get_project(scope.parent_id)
            tree = _swap_project(self._tree, replace(project, children=ordered))
        else:
            ref = self.find(scope.parent_id)
            task: Task = ref.node
            project = engine.replace_task(self._project_of(ref), replace(task, children=ordered))
            tree = _swap_project(self._tree, project)
        self._commit(tree, "reorder %s %d -> %d" % (scope.kind, from_index, to_index))
        return True

    def reorder_node(self, node_id: str, target_id: str) -> bool:
        """Drop node_id onto target_id's row; only siblings of the same kind and parent qualify."""
        moved, target = self.find(node_id), self.find(target_id)
        if moved is None or target is None:
            log.warning("reorder_node: %s or %s not found", node_id, target_id)
            return False
        scope = ReorderScope.of(moved.node)
        if scope != ReorderScope.of(target.node):
            log.warning("reorder_node: %s and %s are not siblings of the same kind", node_id, target_id)
            return False
        return self.reorder(scope, moved.node.order, target.node.order)

    # ---- persistence ----
    def flush(self, timeout: Optional[float] = None) -> None:
        """Block until the last submitted save has finished."""
        if self._pending is not None:
            self._pending.result(timeout)

    def close(self) -> None:
        self.flush()
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
            self._owns_executor = False

    # ---- internals ----
    def _get(self, kind: EntityType, node_id: str):
        ref = self._index.get(node_id)
        return ref.node if ref is not None and ref.kind == kind else None

    def _project_of(self, ref: NodeRef, index: Optional[Dict[str, NodeRef]] = None) -> Project:
        return (index or self._index)[ref.project_id].node

    def _siblings(self, scope: ReorderScope) -> Optional[Tuple[Node, ...]]:
        if scope.kind == "project":
            return self._tree.projects if scope.parent_id is None else None
        parent = self.find(scope.parent_id) if scope.parent_id else None
        if parent is None:
            return None
        if (scope.kind, parent.kind) in (("task", "project"), ("subtask", "task")):
            return parent.node.children
        return None

    def _is_downward(self, node_id: str, fields: Mapping[str, Any]) -> bool:
        ref = self.find(node_id)
        if ref is None or not (_DATE_FIELDS & set(fields)):
            return False
        return ref.kind == "project" or (ref.kind == "task" and ref.node.has_children)

    def _update_kind(self, kind: EntityType, node_id: str, fields: Mapping[str, Any]):
        ref = self.find(node_id)
        if ref is None or ref.kind != kind:
            log.warning("update_%s: %s not found", kind, node_id)
            return None
        return self.update_node(node_id, **fields)

    def _apply_update(
        self, tree: Tree, index: Dict[str, NodeRef], node_id: str, fields: Mapping[str, Any]
    ) -> Optional[Tree]:
        ref = index.get(node_id)
        if ref is None:
            log.warning("update: %s not found", node_id)
            return None
        values = _coerce(ref.kind, fields)
        project = self._project_of(ref, index)
        node = ref.node

        interval: Optional[Interval] = None
        if _DATE_FIELDS & set(values):
            base = node.interval
            interval = ensure(values.get("start", base.start), values.get("end", base.end), today=self._today)

        plain = {k: v for k, v in values.items() if k in ("name", "status", "priority", "category")}
        if ref.kind == "project":
            project = replace(project, **plain)
            if interval is not None:
                project = engine.edit_project_interval(project, interval)
            else:
                project = engine.contain_tasks(project)
        elif ref.kind == "task":
            if "verified" in values:
                plain["own_verified"] = values["verified"]
            if "points" in values:
                plain["own_points"] = values["points"]
            project = engine.replace_task(project, replace(node, **plain))
            if interval is not None:
                project = engine.edit_task_interval(project, node.id, interval)
        else:
            for key in ("verified", "points"):
                if key in values:
                    plain[key] = values[key]
            if interval is not None:
                plain["interval"] = interval
            project = engine.replace_subtask(project, replace(node, **plain))
        return _swap_project(tree, project)

    def _commit(self, tree: Tree, reason: str) -> None:
        self._tree = tree
        self._index = _build_index(tree)
        log.debug("Committed: %s", reason)
        for callback in list(self._listeners):
            callback(tree)
        self._persist(tree)

    def _persist(self, tree: Tree) -> None:
        if self._gateway is None:
            return
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="lifeplan-save")
            self._owns_executor = True
        self._pending = self._executor.submit(self._save, tree)

    def _save(self, tree: Tree) -> bool:
        try:
            ok = bool(self._gateway.save(tree))
        except Exception:
            log.exception("Saving roadmap raised; in-memory tree kept")
            return False
        if not ok:
            log.warning("Saving roadmap failed; in-memory tree kept")
        return ok
