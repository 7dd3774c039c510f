"""Unit tests for FormState transitions and the StateCell.

Tests cover:
- Lifecycle transitions (valid and invalid)
- Submitting flag handling
- Ordered, synchronous change notification
- Subscription removal
"""

import pytest

from formstate.errors import ValidationErrors
from formstate.state import (
    FormState,
    FormStatus,
    InvalidStateTransitionError,
    StateCell,
    can_transition,
)


class TestTransitions:

    def test_pristine_to_dirty(self):
        state = FormState.pristine("v").mark_dirty()
        assert state.status == FormStatus.DIRTY
        assert state.dirty is True

    def test_validation_sets_valid_or_invalid(self):
        state = FormState.pristine("v")
        assert state.with_errors(ValidationErrors()).status == FormStatus.VALID
        invalid = state.with_errors(ValidationErrors({"a": "x"}))
        assert invalid.status == FormStatus.INVALID
        assert not invalid.is_valid()

    def test_submitting_requires_valid(self):
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            FormState.pristine("v").mark_dirty().mark_submitting()
        assert exc_info.value.current_state == FormStatus.DIRTY
        assert exc_info.value.operation == "submit"

    def test_successful_submission(self):
        state = FormState.pristine("v").with_errors(ValidationErrors()).mark_submitting()
        assert state.submitting is True

        done = state.finish_submission()
        assert done.status == FormStatus.SUBMITTED
        assert done.submitting is False

    def test_failed_submission_appends_form_error(self):
        errors = ValidationErrors()
        state = FormState.pristine("v").with_errors(errors).mark_submitting()

        failed = state.finish_submission("Server unavailable")

        assert failed.status == FormStatus.SUBMISSION_FAILED
        assert failed.errors.form_errors == ["Server unavailable"]
        assert errors.form_errors == []

    def test_mutation_while_submitting_keeps_status(self):
        state = FormState.pristine("v").with_errors(ValidationErrors()).mark_submitting()
        assert state.mark_dirty().status == FormStatus.SUBMITTING

    def test_submitted_form_can_be_edited(self):
        assert can_transition(FormStatus.SUBMITTED, FormStatus.DIRTY)
        assert not can_transition(FormStatus.SUBMITTED, FormStatus.SUBMITTING)

    def test_version_is_ignored_by_equality(self):
        assert FormState("v", version=1) == FormState("v", version=2)

    def test_to_dict(self):
        data = FormState.pristine("v").to_dict()
        assert data["status"] == "pristine"
        assert data["valid"] is True


class TestStateCell:
    """Subscribers observe every committed value, in order."""

    def test_subscribers_see_each_commit(self):
        cell = StateCell(0)
        seen = []
        cell.subscribe(seen.append)

        cell.set(1)
        cell.set(2)

        assert seen == [1, 2]
        assert cell.get() == 2

    def test_reentrant_commits_are_delivered_in_order(self):
        cell = StateCell(0)
        first, second = [], []

        def bump(value):
            first.append(value)
            if value == 1:
                cell.set(2)

        cell.subscribe(bump)
        cell.subscribe(second.append)
        cell.set(1)

        assert first == [1, 2]
        assert second == [1, 2]
        assert cell.get() == 2

    def test_unsubscribe_stops_delivery(self):
        cell = StateCell(0)
        seen = []
        subscription = cell.subscribe(seen.append)

        subscription.unsubscribe()
        subscription.unsubscribe()
        cell.set(1)

        assert seen == []
        assert subscription.active is False
        assert cell.subscriber_count == 0

    def test_failing_subscriber_does_not_block_others(self):
        cell = StateCell(0)
        seen = []

        def broken(value):
            raise ValueError("listener bug")

        cell.subscribe(broken)
        cell.subscribe(seen.append)
        cell.set(1)

        assert seen == [1]
