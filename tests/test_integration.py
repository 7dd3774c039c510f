"""Integration tests for complete form lifecycles.

Tests cover end-to-end scenarios combining:
- FormHandle orchestration
- Validation engine and cross-field rules
- Array operations
- Submission, reset and persistence
- Telemetry events
"""

import asyncio

import pytest

from formstate import (
    FieldValue,
    FormConfig,
    FormHandle,
    FormPersistence,
    FormValidationError,
    MemoryStorage,
    PersistenceOptions,
    StateError,
    SubmissionError,
    TelemetryOptions,
    ValidationErrors,
)
from formstate.events import EventEmitter, EventType
from formstate.state import FormState, FormStatus
from formstate.validation import REQUIRED_MESSAGE

from tests.forms import ContactForm, PasswordForm


class TestHappyPath:

    def test_fill_validate_submit(self):
        """Create, fill the required fields, validate and submit.

        1. Initial validation reports both required fields
        2. Filling them in makes the form valid
        3. The handler receives the filled values
        4. The form ends up submitted and not submitting
        """
        handle = FormHandle.create(ContactForm)

        errors = handle.validate_form()
        assert set(errors.field_errors) == {"name", "email"}

        handle.set_field_value("name", FieldValue.text("Ada"))
        handle.set_field_value("email", FieldValue.text("ada@example.com"))
        assert handle.validate_form().is_empty()
        assert handle.is_valid()

        received = []
        asyncio.run(handle.submit(received.append))

        assert received[0].get_field("name") == FieldValue.text("Ada")
        assert handle.status == FormStatus.SUBMITTED
        assert handle.is_submitting() is False


class TestInitialState:

    def test_fresh_handles_are_clean_and_deterministic(self):
        first = FormHandle.create(ContactForm)
        second = FormHandle.create(ContactForm)

        assert first.is_dirty() is False
        assert first.is_submitting() is False
        assert first.validate_form() == second.validate_form()
        assert first.validate_form() == first.validate_form()


class TestReset:

    def test_reset_after_any_mutation_sequence(self):
        """Reset restores values, errors and flags regardless of history."""
        pristine = FormState.pristine(ContactForm.default())
        handle = FormHandle.create(ContactForm)

        handle.set_field_value("name", "Ada")
        handle.batch_add_array_items("tags", ["a", "b"])
        handle.swap_array_items("tags", 0, 1)
        handle.validate_form()
        handle.reset()
        handle.reset()

        assert handle.state == pristine


class TestRequiredField:

    def test_empty_then_filled(self, handle):
        handle.set_field_value("name", "")
        assert handle.validate_field("name") == REQUIRED_MESSAGE

        handle.set_field_value("name", "x")
        assert handle.validate_field("name") is None


class TestArrayScenario:

    def test_tags_scenario(self, handle):
        handle.add_array_item("tags", FieldValue.text("a"))
        handle.add_array_item("tags", FieldValue.text("b"))
        handle.insert_array_item("tags", 1, FieldValue.text("x"))

        order = [item.as_text() for item in handle.get_field_value("tags").as_array()]
        assert order == ["a", "x", "b"]

        with pytest.raises(StateError):
            handle.remove_array_item("tags", 5)
        assert handle.get_array_length("tags") == 3

    def test_move_round_trip(self, handle):
        handle.batch_add_array_items("tags", ["a", "b", "c", "d"])
        original = handle.get_field_value("tags")

        handle.move_array_item("tags", 1, 3)
        handle.move_array_item("tags", 3, 1)

        assert handle.get_field_value("tags") == original

    def test_duplicate_grows_by_one(self, handle):
        handle.batch_add_array_items("tags", ["a", "b"])
        item = handle.get_array_item("tags", 1)

        handle.duplicate_array_item("tags", 1)

        assert handle.get_array_length("tags") == 3
        assert handle.get_array_item("tags", 2) == item


class TestFailingSubmission:

    def test_always_failing_handler(self, filled_handle):
        def handler(values):
            raise SubmissionError("Service unavailable", status_code=503)

        before = len(filled_handle.errors.form_errors)
        assert filled_handle.is_submitting() is False

        with pytest.raises(SubmissionError):
            asyncio.run(filled_handle.submit(handler))

        assert filled_handle.is_submitting() is False
        assert len(filled_handle.errors.form_errors) == before + 1


class TestMerge:

    def test_overwrite_and_additive_counts(self):
        a = ValidationErrors({"x": "from a", "y": "only a"})
        b = ValidationErrors({"x": "from b", "z": "only b"})

        merged = a.merge(b)

        assert merged.get_field_error("x") == "from b"
        assert len(merged.field_errors) == 3


class TestPasswordSignup:

    def test_cross_field_rule_blocks_submission(self):
        handle = FormHandle.create(PasswordForm)
        handle.set_field_value("password", "correct horse")
        handle.set_field_value("confirm", "battery staple")

        with pytest.raises(FormValidationError) as exc_info:
            asyncio.run(handle.submit(lambda values: None))

        assert exc_info.value.errors.get_field_error("confirm") == "Passwords do not match"
        assert handle.status == FormStatus.INVALID

        handle.set_field_value("confirm", "correct horse")
        asyncio.run(handle.submit(lambda values: None))
        assert handle.status == FormStatus.SUBMITTED


class TestDraftLifecycle:

    def test_autosaved_draft_survives_a_new_handle(self):
        """Draft values auto-saved by one handle are restored by the next."""
        storage = MemoryStorage()
        emitter = EventEmitter()
        events = []
        emitter.on_any(events.append)
        config = FormConfig(
            persistence=PersistenceOptions(enabled=True, auto_save=True),
            telemetry=TelemetryOptions(enabled=True),
        )

        first = FormHandle.create(
            ContactForm,
            config=config,
            persistence=FormPersistence(ContactForm, storage),
            events=emitter,
        )
        first.set_field_value("name", "Ada")
        first.add_array_item("tags", "math")

        second = FormHandle.create(
            ContactForm,
            config=FormConfig(persistence=PersistenceOptions(enabled=True)),
            persistence=FormPersistence(ContactForm, storage),
        )
        assert second.restore()
        assert second.get_array_item("tags", 0) == FieldValue.text("math")

        types = [event.type for event in events]
        assert types == [
            EventType.FORM_CREATED,
            EventType.FIELD_UPDATED,
            EventType.ARRAY_UPDATED,
        ]
