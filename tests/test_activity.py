"""
Tests for the activity tracker: check-ins and inactivity evaluation.
"""
from datetime import timedelta

import pytest

from finalmessage.activity import ActivityTracker


class TestInactivityEvaluation:

    def test_unknown_user_is_never_triggered(self, repo, clock):
        tracker = ActivityTracker(repo, clock=clock)
        result = tracker.evaluate("ghost", 1)
        assert result.is_triggered is False
        assert result.last_activity == clock.now
        assert result.trigger_date is None

    def test_exact_threshold_counts_as_triggered(self, repo, clock):
        tracker = ActivityTracker(repo, clock=clock)
        tracker.record_check_in("alice")
        clock.advance(days=365)

        result = tracker.evaluate("alice", 365)
        assert result.is_triggered is True
        assert result.trigger_date == clock.now

    def test_just_below_threshold_is_not_triggered(self, repo, clock):
        tracker = ActivityTracker(repo, clock=clock)
        tracker.record_check_in("alice")
        clock.advance(days=365, seconds=-1)

        assert tracker.evaluate("alice", 365).is_triggered is False

    @pytest.mark.parametrize("threshold,elapsed,expected", [
        (1, 0, False),
        (1, 1, True),
        (30, 29, False),
        (30, 45, True),
        (365, 400, True),
    ])
    def test_triggered_iff_elapsed_reaches_threshold(self, repo, clock, threshold, elapsed, expected):
        tracker = ActivityTracker(repo, clock=clock)
        tracker.record_check_in("bob")
        clock.advance(days=elapsed)
        assert tracker.evaluate("bob", threshold).is_triggered is expected

    def test_default_threshold_applies(self, repo, clock):
        tracker = ActivityTracker(repo, clock=clock, default_threshold_days=10)
        tracker.record_check_in("carol")
        clock.advance(days=10)

        result = tracker.evaluate("carol")
        assert result.inactivity_threshold_days == 10
        assert result.is_triggered is True

    def test_stored_user_threshold_beats_default(self, repo, clock):
        tracker = ActivityTracker(repo, clock=clock, default_threshold_days=365)
        tracker.record_check_in("dave", threshold_days=30)
        clock.advance(days=31)

        assert tracker.evaluate("dave").is_triggered is True
        # explicit argument beats both
        assert tracker.evaluate("dave", 60).is_triggered is False

    def test_evaluate_does_not_mutate(self, repo, clock):
        tracker = ActivityTracker(repo, clock=clock)
        tracker.evaluate("erin", 5)
        assert repo.get_activity("erin") is None

    def test_non_positive_threshold_rejected(self, repo, clock):
        tracker = ActivityTracker(repo, clock=clock)
        with pytest.raises(ValueError):
            tracker.evaluate("alice", 0)
        with pytest.raises(ValueError):
            tracker.record_check_in("alice", threshold_days=-3)


class TestCheckIn:

    def test_check_in_resets_inactivity(self, repo, clock):
        tracker = ActivityTracker(repo, clock=clock)
        tracker.record_check_in("alice")
        clock.advance(days=400)
        assert tracker.evaluate("alice", 365).is_triggered is True

        tracker.record_check_in("alice")
        assert tracker.evaluate("alice", 365).is_triggered is False

    def test_repeated_check_ins_keep_one_record(self, repo, clock):
        tracker = ActivityTracker(repo, clock=clock)
        for _ in range(3):
            tracker.record_check_in("alice")
            clock.advance(hours=1)

        rec = repo.get_activity("alice")
        assert rec.last_activity_seen == clock.now - timedelta(hours=1)
