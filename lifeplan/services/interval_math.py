# Rev 0.1.1

"""Interval math (Rev 0.1.1)
Pure helpers for day-granular, inclusive date intervals. Nothing here
raises on bad input: inverted intervals are corrected, malformed dates
degrade to UNSET.
"""
from __future__ import annotations
import logging
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, Optional

from lifeplan.models.entities import UNSET, DateOrUnset, Interval, Unset

log = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


def validate(start: DateOrUnset, end: DateOrUnset) -> Interval:
    if start is not UNSET and end is not UNSET and start > end:
        start, end = end, start
    return Interval(start, end)


def ensure(start: DateOrUnset, end: DateOrUnset, *, today: Optional[Callable[[], date]] = None) -> Interval:
    """Fill a half-set interval; a fully unset one stays pending."""
    if start is UNSET and end is UNSET:
        return Interval()
    if start is UNSET:
        start = (today or date.today)()
    if end is UNSET:
        end = start + ONE_DAY
    return validate(start, end)


def clamp_into(child: Interval, bounds: Interval) -> Interval:
    if not bounds.is_complete:
        return child
    lo, hi = bounds.start, bounds.end
    start, end = child.start, child.end
    if start is not UNSET:
        start = min(max(start, lo), hi)
    if end is not UNSET:
        end = min(max(end, lo), hi)
    return validate(start, end)


def union(a: Interval, b: Interval) -> Interval:
    if not b.is_complete:
        return a
    if not a.is_complete:
        return b
    return Interval(min(a.start, b.start), max(a.end, b.end))


def span(intervals: Iterable[Interval]) -> Optional[Interval]:
    """Earliest start / latest end over the dated intervals, None if there are none."""
    result: Optional[Interval] = None
    for iv in intervals:
        if not iv.is_complete:
            continue
        result = iv if result is None else union(result, iv)
    return result


def days_between(a: date, b: date) -> int:
    return (b - a).days


def shift(interval: Interval, days: int) -> Interval:
    if not interval.is_complete:
        return interval
    delta = timedelta(days=days)
    return Interval(interval.start + delta, interval.end + delta)


def parse_date(value: object) -> DateOrUnset:
    if value is None or isinstance(value, Unset):
        return UNSET
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return UNSET
        if "T" in text:
            text = text.split("T", 1)[0]
        try:
            return date.fromisoformat(text)
        except ValueError:
            log.warning("Unparseable date %r treated as unset", value)
            return UNSET
    log.warning("Unsupported date value %r (%s) treated as unset", value, type(value).__name__)
    return UNSET


def format_date(value: DateOrUnset) -> str:
    return "" if value is UNSET else value.isoformat()
