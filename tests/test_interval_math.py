# Rev 0.1.1
from __future__ import annotations

from datetime import date, datetime

import pytest

from lifeplan.models.entities import UNSET, Interval
from lifeplan.services.interval_math import (
    clamp_into,
    ensure,
    format_date,
    parse_date,
    shift,
    span,
    union,
    validate,
)

from conftest import d, iv


def test_validate_swaps_inverted_bounds():
    assert validate(d("2024-03-10"), d("2024-03-01")) == iv("2024-03-01", "2024-03-10")


def test_validate_keeps_partial_intervals():
    assert validate(d("2024-03-10"), UNSET) == Interval(d("2024-03-10"), UNSET)


def test_ensure_fills_missing_end_with_next_day():
    assert ensure(d("2024-03-10"), UNSET) == iv("2024-03-10", "2024-03-11")


def test_ensure_uses_today_for_missing_start():
    got = ensure(UNSET, d("2024-03-10"), today=lambda: date(2024, 3, 1))
    assert got == iv("2024-03-01", "2024-03-10")


def test_ensure_missing_start_after_end_still_ordered():
    got = ensure(UNSET, d("2024-01-02"), today=lambda: date(2024, 3, 1))
    assert got == iv("2024-01-02", "2024-03-01")


def test_ensure_leaves_fully_unset_pending():
    assert ensure(UNSET, UNSET).is_unset


def test_single_day_interval_is_valid():
    one = ensure(d("2024-03-10"), d("2024-03-10"))
    assert one.days == 1


@pytest.mark.parametrize(
    "child, expected",
    [
        (("2024-01-05", "2024-01-10"), ("2024-01-05", "2024-01-10")),   # inside
        (("2023-12-01", "2024-01-10"), ("2024-01-01", "2024-01-10")),   # sticks out left
        (("2024-01-20", "2024-02-20"), ("2024-01-20", "2024-01-31")),   # sticks out right
        (("2023-11-01", "2023-11-30"), ("2024-01-01", "2024-01-01")),   # fully before
        (("2024-03-01", "2024-03-05"), ("2024-01-31", "2024-01-31")),   # fully after
    ],
)
def test_clamp_into(child, expected):
    bounds = iv("2024-01-01", "2024-01-31")
    got = clamp_into(iv(*child), bounds)
    assert got == iv(*expected)
    assert bounds.contains(got)


def test_clamp_into_ignores_undated_bounds():
    child = iv("2024-01-05", "2024-01-10")
    assert clamp_into(child, Interval()) == child


def test_union_and_span():
    a, b = iv("2024-01-05", "2024-01-10"), iv("2024-01-01", "2024-01-07")
    assert union(a, b) == iv("2024-01-01", "2024-01-10")
    assert union(Interval(), a) == a
    assert union(a, Interval()) == a
    assert span([Interval(), a, b]) == iv("2024-01-01", "2024-01-10")
    assert span([Interval(), Interval()]) is None


def test_shift_keeps_duration():
    moved = shift(iv("2024-01-30", "2024-02-02"), 3)
    assert moved == iv("2024-02-02", "2024-02-05")
    assert shift(Interval(), 3) == Interval()


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("2024-02-29", date(2024, 2, 29)),
        ("2024-02-29T10:30:00Z", date(2024, 2, 29)),
        (" 2024-02-29 ", date(2024, 2, 29)),
        (datetime(2024, 2, 29, 8, 0), date(2024, 2, 29)),
        (date(2024, 2, 29), date(2024, 2, 29)),
        ("", UNSET),
        (None, UNSET),
        (UNSET, UNSET),
    ],
)
def test_parse_date(raw, expected):
    assert parse_date(raw) == expected


@pytest.mark.parametrize("raw", ["not a date", "2024-13-01", "2023-02-29", 42])
def test_parse_date_malformed_becomes_unset(raw, caplog):
    assert parse_date(raw) is UNSET
    assert "unset" in caplog.text


def test_format_date():
    assert format_date(UNSET) == ""
    assert format_date(date(2024, 1, 2)) == "2024-01-02"
