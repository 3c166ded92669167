import json
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from foodroulette.meal_periods import (
    MEAL_PERIODS,
    current_meal_periods,
    filter_open_restaurants,
    is_restaurant_open,
    meal_period_label,
    primary_meal_period,
    taipei_clock,
)

TPE = timezone(timedelta(hours=8))


def tpe(hour, minute=0, day=1):
    # 2025-12-01 is a Monday
    return datetime(2025, 12, day, hour, minute, tzinfo=TPE)


def test_schedule_order_and_windows():
    assert [p.id for p in MEAL_PERIODS] == ["breakfast", "lunch", "afternoon_tea", "dinner", "late_night"]
    assert [(p.start, p.end) for p in MEAL_PERIODS] == [
        ("05:00", "10:00"),
        ("11:00", "14:00"),
        ("14:00", "16:00"),
        ("16:00", "21:00"),
        ("20:00", "24:00"),
    ]


@pytest.mark.parametrize("hour,minute,expected", [
    (5, 0, "breakfast"),
    (9, 59, "breakfast"),
    (11, 0, "lunch"),
    (13, 59, "lunch"),
    (14, 0, "afternoon_tea"),
    (16, 0, "dinner"),
    (20, 30, "dinner"),
    (21, 0, "late_night"),
    (23, 59, "late_night"),
])
def test_primary_period(hour, minute, expected):
    assert primary_meal_period(tpe(hour, minute)).id == expected


def test_overlap_lists_both_but_dinner_wins():
    at = tpe(20, 30)
    assert [p.id for p in current_meal_periods(at)] == ["dinner", "late_night"]
    assert primary_meal_period(at).id == "dinner"


@pytest.mark.parametrize("hour,minute", [(0, 30), (4, 59), (10, 0), (10, 30)])
def test_gaps_have_no_active_period(hour, minute):
    at = tpe(hour, minute)
    assert primary_meal_period(at) is None
    assert meal_period_label(at) == ("用餐", "🍴")


def test_label_for_active_period():
    assert meal_period_label(tpe(12)) == ("午餐", "🍱")


def test_host_zone_does_not_matter():
    # 04:30 UTC is 12:30 in Taipei
    at = datetime(2025, 12, 1, 4, 30, tzinfo=timezone.utc)
    assert primary_meal_period(at).id == "lunch"
    assert taipei_clock(at) == "12:30:00"


def test_naive_instant_is_host_local():
    local = datetime(2025, 12, 1, 12, 0)
    assert taipei_clock(local) == local.astimezone(TPE).strftime("%H:%M:%S")


class TestOperatingHours:
    def test_shifts(self):
        hours = json.dumps({"monday": {"closed": False, "shifts": [
            {"start": "10:00", "end": "14:00"},
            {"start": "17:00", "end": "21:00"},
        ]}})
        assert is_restaurant_open(hours, tpe(12)) is True
        assert is_restaurant_open(hours, tpe(15)) is False
        assert is_restaurant_open(hours, tpe(20, 59)) is True

    def test_closed_flag_and_closed_string(self):
        assert is_restaurant_open('{"monday": {"closed": true}}', tpe(12)) is False
        assert is_restaurant_open('{"monday": "closed"}', tpe(12)) is False
        assert is_restaurant_open('{"tuesday": "00:00-23:59"}', tpe(12)) is False

    def test_single_range_across_midnight(self):
        hours = '{"monday": {"start": "20:00", "end": "05:00"}}'
        assert is_restaurant_open(hours, tpe(1)) is True
        assert is_restaurant_open(hours, tpe(22)) is True
        assert is_restaurant_open(hours, tpe(12)) is False

    def test_string_slots(self):
        hours = '{"monday": "10:00-14:00, 17:00-22:00"}'
        assert is_restaurant_open(hours, tpe(18)) is True
        assert is_restaurant_open(hours, tpe(15)) is False

    def test_object_without_times_is_open(self):
        assert is_restaurant_open('{"monday": {"closed": false}}', tpe(3)) is True

    def test_weekday_uses_taipei_time(self):
        # Sunday 17:00 UTC is Monday 01:00 in Taipei
        at = datetime(2025, 11, 30, 17, 0, tzinfo=timezone.utc)
        assert is_restaurant_open('{"monday": "00:00-02:00"}', at) is True
        assert is_restaurant_open('{"sunday": "00:00-23:59"}', at) is False

    def test_bad_json_is_closed(self):
        assert is_restaurant_open("not json", tpe(12)) is False

    def test_filter_open_restaurants(self):
        rows = [
            SimpleNamespace(name="a", is_active=True, operating_hours='{"monday": "10:00-22:00"}'),
            SimpleNamespace(name="b", is_active=False, operating_hours='{"monday": "10:00-22:00"}'),
            SimpleNamespace(name="c", is_active=True, operating_hours='{"monday": "closed"}'),
        ]
        assert [r.name for r in filter_open_restaurants(rows, tpe(12))] == ["a"]
