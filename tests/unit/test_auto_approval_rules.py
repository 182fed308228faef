"""Tests for auto-approval deadline arithmetic and rule resolution."""

from datetime import datetime, timedelta, timezone

import pytest

from heroes.db.models import AutoApprovalSettings, HabitCompletion, User
from heroes.errors import DomainValidationError
from heroes.habits.auto_approval import (
    auto_approve_at,
    compute_auto_approval_deadline,
    effective_delay,
    is_premium,
    time_remaining,
    validate_delay,
)

COMPLETED = datetime(2026, 3, 11, 9, 0, tzinfo=timezone.utc)


def _settings(**kwargs) -> AutoApprovalSettings:
    values = {
        "user_id": "parent-1",
        "enabled": True,
        "time_value": 24,
        "time_unit": "hours",
        "apply_to_all_children": True,
        "child_specific_settings": {},
    }
    values.update(kwargs)
    return AutoApprovalSettings(**values)


class TestDeadline:
    def test_hours(self):
        assert compute_auto_approval_deadline(COMPLETED, 2, "hours") == COMPLETED + timedelta(hours=2)

    def test_days(self):
        assert compute_auto_approval_deadline(COMPLETED, 3, "days") == COMPLETED + timedelta(days=3)

    def test_weeks(self):
        assert compute_auto_approval_deadline(COMPLETED, 1, "weeks") == COMPLETED + timedelta(weeks=1)

    def test_naive_timestamp_treated_as_utc(self):
        naive = COMPLETED.replace(tzinfo=None)
        assert compute_auto_approval_deadline(naive, 1, "hours") == COMPLETED + timedelta(hours=1)

    @pytest.mark.parametrize(("value", "unit"), [(0, "hours"), (-1, "days"), (1, "minutes")])
    def test_invalid_delay_rejected(self, value, unit):
        with pytest.raises(DomainValidationError):
            validate_delay(value, unit)

    def test_time_remaining_counts_down(self):
        now = COMPLETED + timedelta(hours=1)
        assert time_remaining(COMPLETED, 3, "hours", now=now) == timedelta(hours=2)

    def test_time_remaining_never_negative(self):
        now = COMPLETED + timedelta(days=2)
        assert time_remaining(COMPLETED, 3, "hours", now=now) == timedelta(0)


class TestEffectiveDelay:
    def test_disabled_settings_never_apply(self):
        settings = _settings(enabled=False, child_specific_settings={"c1": {"time_value": 1, "time_unit": "hours"}})
        assert effective_delay(settings, "c1") is None

    def test_global_delay_applies_to_all_children(self):
        assert effective_delay(_settings(), "c1") == (24, "hours")

    def test_child_rule_overrides_global(self):
        settings = _settings(child_specific_settings={"c1": {"enabled": True, "time_value": 2, "time_unit": "days"}})
        assert effective_delay(settings, "c1") == (2, "days")
        assert effective_delay(settings, "c2") == (24, "hours")

    def test_child_rule_can_opt_out(self):
        settings = _settings(child_specific_settings={"c1": {"enabled": False, "time_value": 2, "time_unit": "days"}})
        assert effective_delay(settings, "c1") is None

    def test_without_apply_to_all_only_listed_children(self):
        settings = _settings(
            apply_to_all_children=False,
            child_specific_settings={"c1": {"time_value": 6, "time_unit": "hours"}},
        )
        assert effective_delay(settings, "c1") == (6, "hours")
        assert effective_delay(settings, "c2") is None

    def test_auto_approve_at(self):
        completion = HabitCompletion(child_id="c1", completed_at=COMPLETED)
        assert auto_approve_at(_settings(time_value=12), completion) == COMPLETED + timedelta(hours=12)


class TestPremium:
    @pytest.mark.parametrize(
        ("status", "expected"),
        [("trial", True), ("active", True), ("cancelled", False), ("expired", False), ("free", False)],
    )
    def test_subscription_statuses(self, status, expected):
        assert is_premium(User(subscription_status=status)) is expected
