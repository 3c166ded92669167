from datetime import datetime, timedelta, timezone

import pytest

from foodroulette.coupon_rules import (
    coupon_expiry,
    get_days_expired,
    is_coupon_expired,
    should_hide_coupon,
)

NOW = datetime(2025, 11, 30, 12, 0, 0)


def days_ago(n, hour=12):
    return datetime(2025, 11, 30, hour) - timedelta(days=n)


class TestIsCouponExpired:
    def test_regular_coupon_created_today(self):
        assert is_coupon_expired(days_ago(0), False, now=NOW) is False

    def test_regular_coupon_created_yesterday(self):
        assert is_coupon_expired(days_ago(1), False, now=NOW) is True

    def test_regular_coupon_valid_until_last_millisecond(self):
        created = datetime(2025, 11, 30, 0, 0, 1)
        assert is_coupon_expired(created, now=datetime(2025, 11, 30, 23, 59, 59, 999000)) is False
        assert is_coupon_expired(created, now=datetime(2025, 11, 30, 23, 59, 59, 999001)) is True
        assert is_coupon_expired(created, now=datetime(2025, 12, 1)) is True

    def test_created_late_checked_same_day(self):
        created = datetime(2025, 11, 30, 23, 50)
        assert is_coupon_expired(created, now=datetime(2025, 11, 30, 23, 59)) is False

    @pytest.mark.parametrize("age", [0, 3, 7])
    def test_check_in_reward_within_seven_days(self, age):
        assert is_coupon_expired(days_ago(age), True, now=NOW) is False

    def test_check_in_reward_eighth_day(self):
        assert is_coupon_expired(days_ago(8), True, now=NOW) is True

    def test_check_in_reward_boundary(self):
        created = datetime(2025, 11, 23, 8, 0)
        assert is_coupon_expired(created, True, now=datetime(2025, 11, 30, 23, 59, 59)) is False
        assert is_coupon_expired(created, True, now=datetime(2025, 12, 1, 0, 0)) is True

    def test_future_created_at_is_not_expired(self):
        assert is_coupon_expired(datetime(2026, 1, 1), now=NOW) is False

    def test_aware_timestamps_use_their_own_zone(self):
        tz = timezone(timedelta(hours=8))
        created = datetime(2025, 11, 30, 1, 0, tzinfo=tz)
        assert coupon_expiry(created) == datetime(2025, 11, 30, 23, 59, 59, 999000, tzinfo=tz)
        # 2025-11-30 15:00 UTC is 23:00 in +08:00
        assert is_coupon_expired(created, now=datetime(2025, 11, 30, 15, 0, tzinfo=timezone.utc)) is False

    def test_reads_clock_when_now_omitted(self):
        assert is_coupon_expired(datetime.now()) is False
        assert is_coupon_expired(datetime.now() - timedelta(days=2)) is True


class TestGetDaysExpired:
    def test_zero_when_not_expired(self):
        assert get_days_expired(days_ago(0), False, now=NOW) == 0
        assert get_days_expired(days_ago(3), True, now=NOW) == 0
        assert get_days_expired(days_ago(7), True, now=NOW) == 0

    def test_one_for_yesterday(self):
        assert get_days_expired(days_ago(1), False, now=NOW) == 1

    def test_one_for_check_in_reward_on_eighth_day(self):
        assert get_days_expired(days_ago(8), True, now=NOW) == 1

    def test_just_expired_counts_one_day(self):
        created = datetime(2025, 11, 29, 12, 0)
        assert get_days_expired(created, now=datetime(2025, 11, 30, 0, 0, 1)) == 1

    def test_counts_whole_days_past_expiry(self):
        created = datetime(2025, 11, 25, 9, 0)
        # expiry 11-25 23:59:59.999, 4 days and 12 hours later
        assert get_days_expired(created, now=datetime(2025, 11, 30, 12, 0)) == 4

    @pytest.mark.parametrize("reward", [False, True])
    @pytest.mark.parametrize("age", range(0, 14))
    def test_zero_exactly_when_not_expired(self, age, reward):
        created = days_ago(age, hour=18)
        expired = is_coupon_expired(created, reward, now=NOW)
        assert (get_days_expired(created, reward, now=NOW) == 0) is (not expired)


class TestShouldHideCoupon:
    def test_not_expired(self):
        assert should_hide_coupon(days_ago(0), 2, False, now=NOW) is False

    def test_within_grace_period(self):
        assert should_hide_coupon(days_ago(1), 2, False, now=NOW) is False

    def test_beyond_grace_period(self):
        assert should_hide_coupon(days_ago(3), 2, False, now=NOW) is False
        assert should_hide_coupon(days_ago(4), 2, False, now=NOW) is True

    def test_check_in_reward(self):
        assert should_hide_coupon(days_ago(7), 2, True, now=NOW) is False
        assert should_hide_coupon(days_ago(8), 2, True, now=NOW) is False
        assert should_hide_coupon(days_ago(11), 2, True, now=NOW) is True

    def test_default_max_days_is_two(self):
        assert should_hide_coupon(days_ago(3), now=NOW) is should_hide_coupon(days_ago(3), 2, now=NOW)

    @pytest.mark.parametrize("max_days", [0, 1, 2, 5])
    @pytest.mark.parametrize("age", [0, 1, 2, 3, 6, 10])
    def test_matches_days_expired(self, age, max_days):
        created = days_ago(age)
        assert should_hide_coupon(created, max_days, now=NOW) is (get_days_expired(created, now=NOW) > max_days)
