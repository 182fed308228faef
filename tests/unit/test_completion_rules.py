"""Tests for the habit completion state table and point arithmetic."""

import pytest

from heroes.errors import StateConflictError
from heroes.habits.completion_service import (
    VALID_TRANSITIONS,
    progress_status,
    reward_points_for,
    validate_transition,
)


class TestCompletionTransitions:
    def test_pending_can_be_approved(self):
        validate_transition("pending", "approved")

    def test_pending_can_be_rejected(self):
        validate_transition("pending", "rejected")

    @pytest.mark.parametrize("current", ["approved", "rejected"])
    @pytest.mark.parametrize("target", ["pending", "approved", "rejected"])
    def test_reviewed_states_are_final(self, current, target):
        with pytest.raises(StateConflictError, match="already reviewed"):
            validate_transition(current, target)

    def test_pending_cannot_go_back_to_pending(self):
        with pytest.raises(StateConflictError):
            validate_transition("pending", "pending")

    def test_unknown_state_rejected(self):
        with pytest.raises(StateConflictError):
            validate_transition("archived", "approved")

    def test_table_has_no_edge_back_to_pending(self):
        assert all("pending" not in targets for targets in VALID_TRANSITIONS.values())


class TestRewardPoints:
    @pytest.mark.parametrize(
        ("xp", "points"),
        [(0, 0), (9, 0), (10, 1), (15, 1), (50, 5), (99, 9), (100, 10)],
    )
    def test_one_point_per_ten_xp_rounded_down(self, xp, points):
        assert reward_points_for(xp) == points


class TestProgressStatus:
    def test_full_week_is_green(self):
        assert progress_status(14, 14) == "green"

    def test_over_target_is_green(self):
        assert progress_status(15, 14) == "green"

    def test_half_is_yellow(self):
        assert progress_status(7, 14) == "yellow"

    def test_below_half_is_red(self):
        assert progress_status(6, 14) == "red"

    def test_no_habits_is_red(self):
        assert progress_status(0, 0) == "red"
