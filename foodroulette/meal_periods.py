"""
Meal periods and restaurant opening hours, evaluated on Taiwan time (UTC+8)
regardless of the host's zone.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from .utils import minutes_in_window, time_to_minutes

logger = logging.getLogger(__name__)

TAIPEI = timezone(timedelta(hours=8), "Asia/Taipei")

FALLBACK_LABEL = "用餐"
FALLBACK_ICON = "🍴"

DAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


@dataclass(frozen=True)
class MealPeriod:
    id: str
    name: str
    icon: str
    start_minute: int
    end_minute: int

    def contains(self, minute_of_day):
        return minutes_in_window(minute_of_day, self.start_minute, self.end_minute)

    @property
    def start(self):
        return "%02d:%02d" % divmod(self.start_minute, 60)

    @property
    def end(self):
        return "%02d:%02d" % divmod(self.end_minute, 60)


def _period(id, name, icon, start, end):
    return MealPeriod(id, name, icon, time_to_minutes(start), time_to_minutes(end))


# Listed order is the tie-break: dinner wins over late night between 20:00 and 21:00.
MEAL_PERIODS = (
    _period("breakfast", "早餐", "🌅", "05:00", "10:00"),
    _period("lunch", "午餐", "🍱", "11:00", "14:00"),
    _period("afternoon_tea", "下午茶", "☕", "14:00", "16:00"),
    _period("dinner", "晚餐", "🍽️", "16:00", "21:00"),
    _period("late_night", "消夜", "🌙", "20:00", "24:00"),
)


def to_taipei(at=None):
    """Convert an instant to Taiwan wall time. Naive values are read as host-local."""
    if at is None:
        return datetime.now(TAIPEI)
    return at.astimezone(TAIPEI)


def minute_of_day(at=None):
    local = to_taipei(at)
    return local.hour * 60 + local.minute


def current_meal_periods(at=None):
    minute = minute_of_day(at)
    return [period for period in MEAL_PERIODS if period.contains(minute)]


def primary_meal_period(at=None):
    periods = current_meal_periods(at)
    return periods[0] if periods else None


def meal_period_label(at=None):
    """Return (name, icon) for the active period, or the generic dining label."""
    period = primary_meal_period(at)
    if period is None:
        return FALLBACK_LABEL, FALLBACK_ICON
    return period.name, period.icon


def taipei_clock(at=None):
    return to_taipei(at).strftime("%H:%M:%S")


# --------------------
# Operating hours
# --------------------
def _slot_open(minute, start, end):
    return minutes_in_window(minute, time_to_minutes(start), time_to_minutes(end))


def _day_open(day_hours, minute):
    if not day_hours or day_hours == "closed":
        return False

    if isinstance(day_hours, dict):
        if day_hours.get("closed") is True:
            return False
        shifts = day_hours.get("shifts")
        if isinstance(shifts, list):
            return any(_slot_open(minute, s["start"], s["end"]) for s in shifts)
        if day_hours.get("start") and day_hours.get("end"):
            return _slot_open(minute, day_hours["start"], day_hours["end"])
        # an object with no shifts and no start/end means open all day
        return True

    if isinstance(day_hours, str):
        for slot in day_hours.split(","):
            start, _, end = slot.strip().partition("-")
            if not start.strip() or not end.strip():
                continue
            if _slot_open(minute, start.strip(), end.strip()):
                return True

    return False


def is_restaurant_open(operating_hours, at=None):
    """
    operating_hours is a JSON object keyed by weekday name, e.g.
    {"monday": {"closed": false, "shifts": [{"start": "10:00", "end": "14:00"}]},
     "tuesday": "11:00-14:00,17:00-21:00", "sunday": "closed"}
    """
    local = to_taipei(at)
    try:
        hours = json.loads(operating_hours) if isinstance(operating_hours, str) else operating_hours
        day_hours = (hours or {}).get(DAY_NAMES[local.weekday()])
        return _day_open(day_hours, local.hour * 60 + local.minute)
    except (ValueError, TypeError, KeyError, AttributeError) as exc:
        logger.warning("Error parsing operating hours %r: %s", operating_hours, exc)
        return False


def filter_open_restaurants(restaurants, at=None):
    """Keep active restaurants whose operating hours cover the given instant."""
    return [
        r for r in restaurants
        if r.is_active and is_restaurant_open(r.operating_hours, at)
    ]
