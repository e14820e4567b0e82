"""
tests/test_goals.py — Goal Progress Math & Availability Windows
=================================================================
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from orgsync.engine.goals import is_reached, measure_progress, progress_percent
from orgsync.engine.windows import as_utc, in_window, validate_window


class TestProgressPercent:
    def test_partial(self):
        assert progress_percent(25, 200) == 12.5

    def test_rounded_to_one_decimal(self):
        assert progress_percent(1, 3) == 33.3

    def test_capped_at_hundred(self):
        assert progress_percent(500, 100) == 100.0

    @pytest.mark.parametrize("target", [0, -5])
    def test_non_positive_target(self, target):
        assert progress_percent(10, target) == 0.0


class TestMeasureProgress:
    SCORES = [("u1", 40), ("u2", 10), ("u3", 0)]

    def test_score_goal_sums_best_scores(self):
        assert measure_progress("score", self.SCORES) == 50

    def test_participants_goal_counts_players(self):
        assert measure_progress("participants", self.SCORES) == 3

    def test_no_scores(self):
        assert measure_progress("score", []) == 0
        assert measure_progress("participants", []) == 0

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="Unknown goal type"):
            measure_progress("streak", self.SCORES)


class TestIsReached:
    def test_reached_at_target(self):
        assert is_reached(100, 100)

    def test_below_target(self):
        assert not is_reached(99, 100)

    def test_zero_target_never_reached(self):
        assert not is_reached(5, 0)


# ===========================================================================
# Windows
# ===========================================================================
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class TestInWindow:
    def test_open_bounds(self):
        assert in_window(NOW, None, None)

    def test_before_start(self):
        assert not in_window(NOW, NOW + timedelta(minutes=1), None)

    def test_start_is_inclusive(self):
        assert in_window(NOW, NOW, None)

    def test_end_is_exclusive(self):
        assert not in_window(NOW, None, NOW)

    def test_naive_bounds_treated_as_utc(self):
        naive_start = datetime(2026, 3, 1, 11, 0)
        naive_end = datetime(2026, 3, 1, 13, 0)
        assert in_window(NOW, naive_start, naive_end)

    def test_as_utc_converts_offsets(self):
        from datetime import timezone

        manila = timezone(timedelta(hours=8))
        assert as_utc(datetime(2026, 3, 1, 20, 0, tzinfo=manila)) == NOW


class TestValidateWindow:
    def test_start_before_end_ok(self):
        validate_window(NOW, NOW + timedelta(hours=1))

    def test_missing_bound_ok(self):
        validate_window(None, NOW)
        validate_window(NOW, None)

    @pytest.mark.parametrize("delta", [timedelta(0), timedelta(hours=-1)])
    def test_start_not_before_end(self, delta):
        with pytest.raises(ValueError, match="before end"):
            validate_window(NOW, NOW + delta)
