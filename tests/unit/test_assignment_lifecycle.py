"""Unit tests for the assignment state machine and guard predicates."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from writerhub.assignments.lifecycle import (
    VALID_TRANSITIONS,
    WRITER_TRANSITIONS,
    compute_amount,
    is_ineligible,
    is_on_job_board,
    is_overdue,
    matches_domains,
    reopen,
    respects_buffer,
    validate_transition,
)
from writerhub.db.models import Assignment

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def _assignment(**fields: object) -> Assignment:
    values: dict[str, object] = {
        "title": "Care plan essay",
        "domain": "Nursing",
        "word_count": 1000,
        "deadline": NOW + timedelta(days=2),
        "status": "pending",
        "writer_id": None,
        "writer_deadline": None,
        "ineligible_writers": [],
        "extension_requested": False,
    }
    values.update(fields)
    return Assignment(**values)


class TestStateMachine:
    """Admin and writer transition tables."""

    def test_every_status_has_an_entry(self):
        assert set(VALID_TRANSITIONS) == {"pending", "in_progress", "completed", "paid", "revision", "cancelled"}

    def test_main_path_is_valid(self):
        validate_transition("pending", "in_progress")
        validate_transition("in_progress", "completed")
        validate_transition("completed", "paid")

    def test_same_status_is_a_noop(self):
        validate_transition("paid", "paid")
        validate_transition("pending", "pending", writer=True)

    def test_cannot_skip_to_paid(self):
        with pytest.raises(ValueError, match="Invalid transition"):
            validate_transition("pending", "paid")

    def test_unknown_status_rejected(self):
        with pytest.raises(ValueError, match="Unknown status"):
            validate_transition("pending", "archived")

    def test_cancelled_job_can_be_reposted(self):
        assert VALID_TRANSITIONS["cancelled"] == ["pending"]
        validate_transition("cancelled", "pending")

    def test_writer_can_complete_own_work(self):
        validate_transition("in_progress", "completed", writer=True)
        validate_transition("revision", "in_progress", writer=True)

    def test_writer_cannot_mark_paid(self):
        with pytest.raises(ValueError, match="Invalid transition"):
            validate_transition("completed", "paid", writer=True)

    def test_writer_cannot_cancel(self):
        with pytest.raises(ValueError):
            validate_transition("in_progress", "cancelled", writer=True)

    def test_writer_table_is_a_subset(self):
        for source, targets in WRITER_TRANSITIONS.items():
            assert set(targets) <= set(VALID_TRANSITIONS[source])


class TestGuards:
    def test_job_board_membership(self):
        assert is_on_job_board(_assignment())
        assert not is_on_job_board(_assignment(writer_id=7, status="in_progress"))
        assert not is_on_job_board(_assignment(status="cancelled"))

    def test_ineligible_writer(self):
        assignment = _assignment(ineligible_writers=[3, 9])
        assert is_ineligible(assignment, 9)
        assert not is_ineligible(assignment, 4)

    def test_domain_match_is_case_insensitive(self):
        assert matches_domains(_assignment(domain="nursing"), ["History", "Nursing"])
        assert not matches_domains(_assignment(domain="Law"), ["History", "Nursing"])

    def test_unscoped_job_matches_everyone(self):
        assert matches_domains(_assignment(domain=""), [])
        assert matches_domains(_assignment(domain=None), ["Law"])


class TestDeadlineBuffer:
    def test_exactly_thirty_minutes_is_allowed(self):
        client = NOW + timedelta(hours=5)
        assert respects_buffer(client - timedelta(minutes=30), client)

    def test_inside_buffer_is_rejected(self):
        client = NOW + timedelta(hours=5)
        assert not respects_buffer(client - timedelta(minutes=29), client)
        assert not respects_buffer(client + timedelta(minutes=1), client)

    def test_custom_buffer(self):
        client = NOW + timedelta(hours=5)
        assert respects_buffer(client - timedelta(hours=2), client, timedelta(hours=2))
        assert not respects_buffer(client - timedelta(hours=1), client, timedelta(hours=2))


class TestOverdue:
    def test_missed_writer_deadline_with_client_deadline_ahead(self):
        assignment = _assignment(writer_id=5, status="in_progress", writer_deadline=NOW - timedelta(minutes=1))
        assert is_overdue(assignment, NOW)

    def test_client_deadline_passed_is_not_reopened(self):
        assignment = _assignment(
            writer_id=5,
            status="in_progress",
            writer_deadline=NOW - timedelta(hours=2),
            deadline=NOW - timedelta(hours=1),
        )
        assert not is_overdue(assignment, NOW)

    def test_completed_work_is_never_overdue(self):
        assignment = _assignment(writer_id=5, status="completed", writer_deadline=NOW - timedelta(hours=1))
        assert not is_overdue(assignment, NOW)

    def test_unassigned_job_is_not_overdue(self):
        assert not is_overdue(_assignment(writer_deadline=NOW - timedelta(hours=1)), NOW)

    def test_reopen_bars_the_writer(self):
        assignment = _assignment(
            writer_id=5,
            status="in_progress",
            writer_deadline=NOW - timedelta(hours=1),
            picked_at=NOW - timedelta(days=1),
            extension_requested=True,
            extension_reason="sick",
        )
        displaced = reopen(assignment)
        assert displaced == 5
        assert assignment.writer_id is None
        assert assignment.status == "pending"
        assert assignment.writer_deadline is None
        assert assignment.picked_at is None
        assert assignment.extension_requested is False
        assert assignment.ineligible_writers == [5]

    def test_reopen_does_not_duplicate_ineligible_entry(self):
        assignment = _assignment(writer_id=5, status="in_progress", ineligible_writers=[5])
        reopen(assignment)
        assert assignment.ineligible_writers == [5]


class TestComputeAmount:
    def test_word_count_times_rate(self):
        assert compute_amount(1000, Decimal("0.01")) == Decimal("10.00")

    def test_rounds_half_up_to_cents(self):
        assert compute_amount(333, Decimal("0.015")) == Decimal("5.00")
        assert compute_amount(1, Decimal("0.005")) == Decimal("0.01")

    def test_missing_values_count_as_zero(self):
        assert compute_amount(None, Decimal("0.02")) == Decimal("0.00")
        assert compute_amount(500, None) == Decimal("0.00")
