"""
Coupon expiry and visibility rules.

A regular coupon is good through the end of the calendar day it was won on.
A check-in reward is good through the end of the seventh calendar day after
that, and expires from the eighth day on. Expired coupons stay in the user's
list for a grace period (``DEFAULT_HIDE_AFTER_DAYS``) before being hidden.

Dates are evaluated on the wall clock of ``created_at``: naive datetimes are
host-local, aware ones use their own zone. These rules are intentionally not
pinned to UTC+8 the way the meal periods are.
"""

from datetime import datetime, time, timedelta

CHECK_IN_REWARD_DAYS = 7
DEFAULT_HIDE_AFTER_DAYS = 2

_END_OF_DAY = time(23, 59, 59, 999000)
_ONE_DAY = timedelta(days=1)


def _now_for(created_at, now):
    if now is not None:
        return now
    # re-read on every call, never cached
    return datetime.now(created_at.tzinfo)


def coupon_expiry(created_at, is_check_in_reward=False):
    """Return the last valid instant (23:59:59.999) of the coupon."""
    day = created_at.date()
    if is_check_in_reward:
        day = day + timedelta(days=CHECK_IN_REWARD_DAYS)
    return datetime.combine(day, _END_OF_DAY, tzinfo=created_at.tzinfo)


def is_coupon_expired(created_at, is_check_in_reward=False, now=None):
    now = _now_for(created_at, now)
    return now > coupon_expiry(created_at, is_check_in_reward)


def get_days_expired(created_at, is_check_in_reward=False, now=None):
    """
    Whole days elapsed since the expiry instant.

    Returns 0 while the coupon is still valid. An expired coupon always counts
    at least one day, so 0 means "not expired" and nothing else.
    """
    now = _now_for(created_at, now)
    expiry = coupon_expiry(created_at, is_check_in_reward)
    if now <= expiry:
        return 0
    return max(1, (now - expiry) // _ONE_DAY)


def should_hide_coupon(created_at, max_days=DEFAULT_HIDE_AFTER_DAYS, is_check_in_reward=False, now=None):
    return get_days_expired(created_at, is_check_in_reward, now) > max_days
