# Rev 0.1.3
from __future__ import annotations

import logging
import time
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Set

from PySide6.QtCore import QObject, Signal

from lifeplan.models.entities import Interval, Node, Project, Subtask, Task, Tree
from lifeplan.services.drag_controller import DragController, DragMode
from lifeplan.services.interval_math import format_date
from lifeplan.services.timeline_projection import (
    HeaderBands,
    TimelineConfig,
    TimelineProjection,
    ZoomLevel,
    visible_range,
)
from lifeplan.services.tree_store import TreeStore

log = logging.getLogger(__name__)


class TimelineViewModel(QObject):
    """
    Roadmap rows for the timeline: tree -> visible rows -> pixels.
    Owns zoom and expand/collapse state and routes bar gestures to a DragController.
    """

    rowsChanged = Signal(list)
    zoomChanged = Signal(str)
    dragStateChanged = Signal(str)

    def __init__(
        self,
        store: TreeStore,
        *,
        config: Optional[TimelineConfig] = None,
        today: Callable[[], date] = date.today,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__()
        self._store = store
        self._config = config or TimelineConfig()
        self._today = today
        self._clock = clock
        self._zoom = self._config.default_zoom
        self._day_width = self._config.day_widths[self._zoom]
        self._expanded: Set[str] = set()
        self._drag: Optional[DragController] = None
        self._range = self._compute_range()
        self._projection = TimelineProjection(self._range.start, self._day_width)
        store.add_listener(self._on_tree_changed)

    # ---- state
    @property
    def zoom(self) -> ZoomLevel:
        return self._zoom

    @property
    def day_width(self) -> float:
        return self._day_width

    @property
    def projection(self) -> TimelineProjection:
        return self._projection

    @property
    def visible_range(self) -> Interval:
        return self._range

    @property
    def drag_state(self) -> DragMode:
        return self._drag.state if self._drag else DragMode.IDLE

    def is_expanded(self, node_id: str) -> bool:
        return node_id in self._expanded

    # ---- zoom
    def set_zoom(self, zoom: ZoomLevel | str) -> bool:
        zoom = ZoomLevel(zoom)
        return self._set_scale(self._config.day_widths[zoom], zoom)

    def zoom_in(self) -> bool:
        width = min(self._day_width * self._config.zoom_step, self._config.max_day_width)
        return self._set_scale(width, self._config.zoom_for_day_width(width))

    def zoom_out(self) -> bool:
        width = max(self._day_width / self._config.zoom_step, self._config.min_day_width)
        return self._set_scale(width, self._config.zoom_for_day_width(width))

    def _set_scale(self, day_width: float, zoom: ZoomLevel) -> bool:
        if self._drag is not None:
            log.debug("Zoom ignored while dragging")
            return False
        level_changed = zoom != self._zoom
        self._day_width, self._zoom = day_width, zoom
        self._refresh_projection()
        if level_changed:
            self.zoomChanged.emit(zoom.value)
        self.rowsChanged.emit(self.rows())
        return True

    # ---- expand / collapse
    def toggle_expand(self, node_id: str) -> bool:
        ref = self._store.find(node_id)
        if ref is None or ref.kind == "subtask":
            return False
        if node_id in self._expanded:
            self._expanded.discard(node_id)
        else:
            self._expanded.add(node_id)
        self.rowsChanged.emit(self.rows())
        return node_id in self._expanded

    def expand_all(self) -> None:
        for p in self._store.projects:
            self._expanded.add(p.id)
            self._expanded.update(t.id for t in p.children if t.has_children)
        self.rowsChanged.emit(self.rows())

    def collapse_all(self) -> None:
        self._expanded.clear()
        self.rowsChanged.emit(self.rows())

    # ---- queries
    def reload(self) -> None:
        if self._drag is None:
            self._refresh_projection()
        self.rowsChanged.emit(self.rows())

    def rows(self) -> List[Dict[str, Any]]:
        out: List[Dict[str, Any]] = []
        for p in self._store.projects:
            out.append(self._row(p, 0))
            if p.id not in self._expanded:
                continue
            for t in p.children:
                out.append(self._row(t, 1))
                if t.id in self._expanded:
                    out.extend(self._row(s, 2) for s in t.children)
        return out

    def header_bands(self) -> HeaderBands:
        return self._projection.header_bands(self._zoom, self._range.start, self._range.end)

    # ---- bar gestures
    def press_bar(self, node_id: str, x: float, edge: Optional[str] = None) -> bool:
        """edge None grabs the whole bar, 'left'/'right' grabs a resize handle."""
        if self._drag is not None:
            return False
        drag = DragController(
            self._store,
            self._projection,
            throttle_ms=self._config.drag_throttle_ms,
            click_slop_px=self._config.click_slop_px,
            clock=self._clock,
        )
        ok = drag.begin_move(node_id, x) if edge is None else drag.begin_resize(node_id, x, edge)
        if not ok:
            return False
        self._drag = drag
        self.dragStateChanged.emit(drag.state.value)
        return True

    def drag_to(self, x: float) -> Optional[Interval]:
        if self._drag is None:
            return None
        return self._drag.drag_to(x)

    def release_bar(self, x: Optional[float] = None) -> Optional[Interval]:
        if self._drag is None:
            return None
        result = self._drag.release(x)
        self._drag = None
        self.dragStateChanged.emit(DragMode.IDLE.value)
        self.reload()
        return result

    # ---- internals
    def _on_tree_changed(self, tree: Tree) -> None:
        known = {n.id for n in tree.iter_nodes()}
        self._expanded &= known
        if self._drag is None:
            self._refresh_projection()
        self.rowsChanged.emit(self.rows())

    def _compute_range(self) -> Interval:
        intervals = (n.interval for n in self._store.tree.iter_nodes())
        return visible_range(intervals, self._zoom, self._today(), self._config)

    def _refresh_projection(self) -> None:
        self._range = self._compute_range()
        self._projection = TimelineProjection(self._range.start, self._day_width)

    def _row(self, node: Node, level: int) -> Dict[str, Any]:
        interval = node.interval
        dated = interval.is_complete
        row: Dict[str, Any] = {
            "id": node.id,
            "kind": node.kind,
            "level": level,
            "name": node.name,
            "project_id": node.id if isinstance(node, Project) else node.project_id,
            "task_id": node.id if isinstance(node, Task) else getattr(node, "task_id", None),
            "start": format_date(interval.start),
            "end": format_date(interval.end),
            "x": self._projection.to_pixel(interval.start) if dated else None,
            "width": self._projection.bar_width(interval.start, interval.end) if dated else None,
            "expanded": node.id in self._expanded,
            "status": node.status.value,
            "points": node.points if not isinstance(node, Project) else None,
            "verified": node.verified,
            "derived": isinstance(node, Task) and node.has_children,
        }
        if isinstance(node, Subtask):
            row["expanded"] = False
        return row
