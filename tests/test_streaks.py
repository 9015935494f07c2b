"""
tests/test_streaks.py — Streak Continuation Unit Tests
=======================================================

Pure tests for the continuation rule, replay and longest-streak helpers.
"""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from wellspring.database.models import ActivityKind
from wellspring.engine.streaks import (
    StreakOutcome,
    continue_streak,
    is_streak_active,
    longest_streak,
    replay,
)

MON = date(2026, 3, 2)


def _day(n: int) -> date:
    return MON + timedelta(days=n)


class TestContinueStreak:
    def test_first_event_starts_at_one(self):
        update = continue_streak(ActivityKind.MOOD, 0, None, MON)
        assert update.current == 1
        assert update.outcome is StreakOutcome.STARTED
        assert update.last_on == MON

    def test_same_day_is_noop(self):
        update = continue_streak(ActivityKind.MOOD, 4, MON, MON)
        assert update.current == 4
        assert update.outcome is StreakOutcome.SAME_DAY
        assert not update.advanced

    def test_next_day_continues(self):
        update = continue_streak(ActivityKind.EXERCISE, 4, MON, _day(1))
        assert update.current == 5
        assert update.outcome is StreakOutcome.CONTINUED
        assert update.last_on == _day(1)

    def test_gap_resets(self):
        update = continue_streak(ActivityKind.CHECKIN, 3, MON, _day(2))
        assert update.current == 1
        assert update.outcome is StreakOutcome.RESET
        assert update.advanced
        assert not update.backdated

    def test_backdated_event_resets_without_moving_last_day(self):
        update = continue_streak(ActivityKind.MOOD, 6, _day(5), _day(4))
        assert update.current == 1
        assert update.outcome is StreakOutcome.RESET
        assert update.backdated
        assert update.last_on == _day(5)

    def test_to_dict(self):
        d = continue_streak(ActivityKind.MOOD, 1, MON, _day(1)).to_dict()
        assert d == {
            "kind": "MOOD",
            "previous": 1,
            "current": 2,
            "outcome": "continued",
            "last_active_on": "2026-03-03",
        }


class TestReplay:
    def test_three_consecutive_days_then_gap(self):
        streak, last_on = replay(ActivityKind.CHECKIN, [_day(0), _day(1), _day(2)])
        assert (streak, last_on) == (3, _day(2))

        streak, last_on = replay(
            ActivityKind.CHECKIN, [_day(0), _day(1), _day(2), _day(4)],
        )
        assert (streak, last_on) == (1, _day(4))

    def test_same_day_repeats_count_once(self):
        assert replay(ActivityKind.MOOD, [_day(0), _day(0), _day(1)]) == (2, _day(1))

    def test_arrival_order_matters(self):
        # A late event for an earlier day resets the streak it lands on
        assert replay(ActivityKind.MOOD, [_day(0), _day(2), _day(1)]) == (1, _day(2))

    def test_empty(self):
        assert replay(ActivityKind.MOOD, []) == (0, None)


class TestLongestStreak:
    @pytest.mark.parametrize(
        "offsets, expected",
        [
            ([], 0),
            ([0], 1),
            ([0, 1, 2, 4, 5], 3),
            ([5, 4, 3, 0], 3),
            ([0, 0, 1], 2),
        ],
    )
    def test_longest_run(self, offsets, expected):
        assert longest_streak(_day(n) for n in offsets) == expected


class TestStreakActive:
    def test_today_and_yesterday_are_active(self):
        assert is_streak_active(_day(3), _day(3))
        assert is_streak_active(_day(2), _day(3))

    def test_missed_day_is_inactive(self):
        assert not is_streak_active(_day(1), _day(3))

    def test_never_started(self):
        assert not is_streak_active(None, _day(3))
