# Rev 0.1.3

"""Bar drag/resize gestures (Rev 0.1.3)

idle -> moving_bar | resizing_left | resizing_right -> idle

Pointer positions are timeline pixels. Every computed interval is
expressed in whole days relative to the interval captured when the drag
began, so repeated moves never accumulate rounding error. Updates to the
store are throttled; release always commits the latest interval. Pointer
moves closer than the click slop to the press point are ignored until the
pointer first leaves that dead zone.
"""
from __future__ import annotations
import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Callable, Literal, Optional

from lifeplan.models.entities import Interval
from lifeplan.services.timeline_projection import TimelineProjection
from lifeplan.services.tree_store import TreeStore

log = logging.getLogger(__name__)


class DragMode(str, Enum):
    IDLE = "idle"
    MOVING_BAR = "moving_bar"
    RESIZING_LEFT = "resizing_left"
    RESIZING_RIGHT = "resizing_right"


@dataclass(frozen=True)
class DragSession:
    node_id: str
    mode: DragMode
    original: Interval
    origin_x: float
    grab_offset: float   # pointer distance from the bar's left edge at press time


class DragController:
    def __init__(
        self,
        store: TreeStore,
        projection: TimelineProjection,
        *,
        throttle_ms: int = 50,
        click_slop_px: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store = store
        self.projection = projection
        self._throttle = throttle_ms / 1000.0
        self._slop = click_slop_px
        self._clock = clock
        self._session: Optional[DragSession] = None
        self._latest: Optional[Interval] = None
        self._last_sent: Optional[Interval] = None
        self._last_applied_at: Optional[float] = None
        self._moved = False

    @property
    def state(self) -> DragMode:
        return self._session.mode if self._session else DragMode.IDLE

    @property
    def session(self) -> Optional[DragSession]:
        return self._session

    # ---- gestures ----
    def begin_move(self, node_id: str, pointer_x: float) -> bool:
        return self._begin(node_id, pointer_x, DragMode.MOVING_BAR)

    def begin_resize(self, node_id: str, pointer_x: float, side: Literal["left", "right"]) -> bool:
        mode = DragMode.RESIZING_LEFT if side == "left" else DragMode.RESIZING_RIGHT
        return self._begin(node_id, pointer_x, mode)

    def drag_to(self, pointer_x: float) -> Optional[Interval]:
        if self._session is None:
            return None
        if not self._left_dead_zone(pointer_x):
            return self._latest
        self._latest = self._compute(pointer_x)
        now = self._clock()
        if self._last_applied_at is None or now - self._last_applied_at >= self._throttle:
            self._apply(self._latest, now)
        return self._latest

    def release(self, pointer_x: Optional[float] = None) -> Optional[Interval]:
        """End the gesture, committing the last computed interval."""
        if self._session is None:
            return None
        if pointer_x is not None and self._left_dead_zone(pointer_x):
            self._latest = self._compute(pointer_x)
        latest = self._latest
        if latest is not None:
            self._apply(latest, self._clock())
        log.debug("Drag on %s released at %s", self._session.node_id, latest)
        self._reset()
        return latest

    # ---- internals ----
    def _begin(self, node_id: str, pointer_x: float, mode: DragMode) -> bool:
        if self._session is not None:
            log.warning("Drag already in progress on %s; ignoring press on %s", self._session.node_id, node_id)
            return False
        ref = self._store.find(node_id)
        if ref is None:
            log.warning("Drag target %s not found", node_id)
            return False
        original = ref.node.interval
        if not original.is_complete:
            log.debug("Drag target %s has no dates yet", node_id)
            return False
        bar_left = self.projection.to_pixel(original.start)
        self._session = DragSession(node_id, mode, original, pointer_x, pointer_x - bar_left)
        self._last_sent = original
        return True

    def _left_dead_zone(self, pointer_x: float) -> bool:
        if not self._moved and abs(pointer_x - self._session.origin_x) >= self._slop:
            self._moved = True
        return self._moved

    def _compute(self, pointer_x: float) -> Interval:
        s = self._session
        start, end = s.original.start, s.original.end
        if s.mode is DragMode.MOVING_BAR:
            new_start = self.projection.to_date(pointer_x - s.grab_offset)
            return Interval(new_start, new_start + (end - start))
        delta = timedelta(days=self.projection.day_delta(pointer_x - s.origin_x))
        if s.mode is DragMode.RESIZING_LEFT:
            return Interval(min(start + delta, end), end)
        return Interval(start, max(end + delta, start))

    def _apply(self, interval: Interval, now: float) -> None:
        if interval == self._last_sent:
            return
        node = self._store.update_node(self._session.node_id, start=interval.start, end=interval.end)
        if node is None:
            log.warning("Drag target %s disappeared mid-gesture", self._session.node_id)
        self._last_sent = interval
        self._last_applied_at = now

    def _reset(self) -> None:
        self._session = None
        self._latest = None
        self._last_sent = None
        self._last_applied_at = None
        self._moved = False
