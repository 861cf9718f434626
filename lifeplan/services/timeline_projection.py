# Rev 0.1.4

"""Timeline projection (Rev 0.1.4)
Date <-> pixel mapping for the roadmap, zoom levels and header bands.

Header bands per zoom level:
  day   -> weeks over days
  month -> months over weeks
  year  -> years over months
Lower-band segments never cross an upper-band boundary, and both bands
are cut at the edges of the visible range.
"""
from __future__ import annotations
import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from lifeplan.models.entities import Interval
from lifeplan.services.interval_math import days_between, span


class ZoomLevel(str, Enum):
    DAY = "day"
    MONTH = "month"
    YEAR = "year"


_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


@dataclass(frozen=True)
class TimelineConfig:
    day_widths: Mapping[ZoomLevel, float] = field(default_factory=lambda: {
        ZoomLevel.DAY: 40.0, ZoomLevel.MONTH: 8.0, ZoomLevel.YEAR: 2.0,
    })
    default_zoom: ZoomLevel = ZoomLevel.MONTH
    month_view_threshold: float = 35.0   # px/day at or below -> month headers
    year_view_threshold: float = 10.0    # px/day at or below -> year headers
    zoom_step: float = 1.2
    min_day_width: float = 1.0
    max_day_width: float = 200.0
    drag_throttle_ms: int = 50
    click_slop_px: float = 3.0
    range_buffers: Mapping[ZoomLevel, Tuple[int, int]] = field(default_factory=lambda: {
        ZoomLevel.DAY: (30, 90), ZoomLevel.MONTH: (180, 365), ZoomLevel.YEAR: (730, 1095),
    })
    range_margin_days: int = 30

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any]) -> "TimelineConfig":
        t = settings.get("timeline", {})
        base = cls()
        widths = {ZoomLevel(k): float(v) for k, v in t.get("day_widths", {}).items()}
        buffers = {ZoomLevel(k): (int(v[0]), int(v[1])) for k, v in t.get("range_buffers", {}).items()}
        return cls(
            day_widths={**base.day_widths, **widths},
            default_zoom=ZoomLevel(t.get("default_zoom", base.default_zoom)),
            month_view_threshold=float(t.get("month_view_threshold", base.month_view_threshold)),
            year_view_threshold=float(t.get("year_view_threshold", base.year_view_threshold)),
            zoom_step=float(t.get("zoom_step", base.zoom_step)),
            min_day_width=float(t.get("min_day_width", base.min_day_width)),
            max_day_width=float(t.get("max_day_width", base.max_day_width)),
            drag_throttle_ms=int(t.get("drag_throttle_ms", base.drag_throttle_ms)),
            click_slop_px=float(t.get("click_slop_px", base.click_slop_px)),
            range_buffers={**base.range_buffers, **buffers},
            range_margin_days=int(t.get("range_margin_days", base.range_margin_days)),
        )

    def zoom_for_day_width(self, day_width: float) -> ZoomLevel:
        if day_width <= self.year_view_threshold:
            return ZoomLevel.YEAR
        if day_width <= self.month_view_threshold:
            return ZoomLevel.MONTH
        return ZoomLevel.DAY


@dataclass(frozen=True)
class HeaderSegment:
    label: str
    start: date
    days: int
    x: float
    width: float


@dataclass(frozen=True)
class HeaderBands:
    top: List[HeaderSegment]
    bottom: List[HeaderSegment]


# ---- period boundaries ------------------------------------------------------

def _next_day(d: date) -> date:
    return d + timedelta(days=1)


def _next_week(d: date) -> date:
    # weeks start on Monday
    return d + timedelta(days=7 - d.weekday())


def _next_month(d: date) -> date:
    return date(d.year + 1, 1, 1) if d.month == 12 else date(d.year, d.month + 1, 1)


def _next_year(d: date) -> date:
    return date(d.year + 1, 1, 1)


def _day_label(d: date) -> str:
    return f"{_WEEKDAYS[d.weekday()]} {d.day}"


def _week_label(d: date) -> str:
    return f"W{d.isocalendar()[1]}"


def _month_label(d: date) -> str:
    return _MONTHS[d.month - 1]


def _month_year_label(d: date) -> str:
    return f"{_MONTHS[d.month - 1]} {d.year}"


def _year_label(d: date) -> str:
    return str(d.year)


Boundary = Callable[[date], date]
Label = Callable[[date], str]

_BANDS: Dict[ZoomLevel, Tuple[Tuple[Boundary, Label], Tuple[Boundary, Label]]] = {
    ZoomLevel.DAY: ((_next_week, _week_label), (_next_day, _day_label)),
    ZoomLevel.MONTH: ((_next_month, _month_year_label), (_next_week, _week_label)),
    ZoomLevel.YEAR: ((_next_year, _year_label), (_next_month, _month_label)),
}


def _round_half_up(x: float) -> int:
    return math.floor(x + 0.5)


class TimelineProjection:
    def __init__(self, origin: date, day_width: float):
        if day_width <= 0:
            raise ValueError("day_width must be positive")
        self.origin = origin
        self.day_width = float(day_width)

    @classmethod
    def for_zoom(cls, origin: date, zoom: ZoomLevel, config: Optional[TimelineConfig] = None) -> "TimelineProjection":
        config = config or TimelineConfig()
        return cls(origin, config.day_widths[ZoomLevel(zoom)])

    def to_pixel(self, d: date) -> float:
        return days_between(self.origin, d) * self.day_width

    def to_date(self, pixel: float) -> date:
        return self.origin + timedelta(days=_round_half_up(pixel / self.day_width))

    def day_delta(self, pixel_delta: float) -> int:
        return _round_half_up(pixel_delta / self.day_width)

    def bar_width(self, start: date, end: date) -> float:
        return max(1, days_between(start, end) + 1) * self.day_width

    def header_bands(self, zoom: ZoomLevel, first_day: date, last_day: date) -> HeaderBands:
        """Segments covering first_day..last_day (inclusive) for both header rows."""
        (top_next, top_label), (sub_next, sub_label) = _BANDS[ZoomLevel(zoom)]
        stop = last_day + timedelta(days=1)
        top = self._segments(first_day, stop, top_next, top_label)
        bottom = self._segments(first_day, stop, lambda d: min(sub_next(d), top_next(d)), sub_label)
        return HeaderBands(top=top, bottom=bottom)

    def _segments(self, cursor: date, stop: date, boundary: Boundary, label: Label) -> List[HeaderSegment]:
        out: List[HeaderSegment] = []
        while cursor < stop:
            seg_end = min(boundary(cursor), stop)
            days = (seg_end - cursor).days
            out.append(HeaderSegment(label(cursor), cursor, days, self.to_pixel(cursor), days * self.day_width))
            cursor = seg_end
        return out


def visible_range(
    intervals: Iterable[Interval],
    zoom: ZoomLevel,
    today: date,
    config: Optional[TimelineConfig] = None,
) -> Interval:
    """Window around today, widened so every dated node fits with a margin."""
    config = config or TimelineConfig()
    before, after = config.range_buffers[ZoomLevel(zoom)]
    data = span(intervals)
    if data is not None:
        before = max(before, days_between(data.start, today) + config.range_margin_days)
        after = max(after, days_between(today, data.end) + config.range_margin_days)
    return Interval(today - timedelta(days=before), today + timedelta(days=after))
