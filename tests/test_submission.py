"""Tests for the async submission workflow.

The submitting flag is cleared on every exit path: success, handler
failure, rejection by validation, timeout and cancellation.
"""

import asyncio

import pytest

from formstate.config import FormConfig, PersistenceOptions, SubmissionMode
from formstate.errors import FormValidationError, StateError, SubmissionError
from formstate.handle import FormHandle
from formstate.persistence import FormPersistence, MemoryStorage
from formstate.state import FormStatus
from formstate.values import FieldValue

from tests.forms import ContactForm, fill_contact


class TestSubmit:

    def test_successful_async_handler(self, filled_handle):
        received = []
        seen_submitting = []

        async def handler(values):
            seen_submitting.append(filled_handle.is_submitting())
            received.append(values.get_field("name"))

        snapshot = asyncio.run(filled_handle.submit(handler))

        assert received == [FieldValue.text("Ada Lovelace")]
        assert seen_submitting == [True]
        assert snapshot.get_field("email") == FieldValue.text("ada@example.com")
        assert filled_handle.is_submitting() is False
        assert filled_handle.status == FormStatus.SUBMITTED

    def test_sync_handler(self, filled_handle):
        calls = []
        asyncio.run(filled_handle.submit(calls.append))
        assert len(calls) == 1
        assert filled_handle.status == FormStatus.SUBMITTED

    def test_invalid_form_is_rejected_before_submitting(self, handle):
        called = []

        with pytest.raises(FormValidationError) as exc_info:
            asyncio.run(handle.submit(called.append))

        assert called == []
        assert set(exc_info.value.errors.field_errors) == {"name", "email"}
        assert handle.is_submitting() is False
        assert handle.status == FormStatus.INVALID

    def test_handler_failure_adds_one_form_error(self, filled_handle):
        async def handler(values):
            raise ConnectionError("Server unavailable")

        with pytest.raises(SubmissionError) as exc_info:
            asyncio.run(filled_handle.submit(handler))

        assert exc_info.value.message == "Server unavailable"
        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert filled_handle.errors.form_errors == ["Server unavailable"]
        assert filled_handle.errors.field_errors == {}
        assert filled_handle.is_submitting() is False
        assert filled_handle.status == FormStatus.SUBMISSION_FAILED

    def test_handler_returning_false_fails(self, filled_handle):
        with pytest.raises(SubmissionError):
            asyncio.run(filled_handle.submit(lambda values: False))
        assert filled_handle.errors.form_errors == ["Submission was rejected by the handler"]

    def test_handler_submission_error_is_kept(self, filled_handle):
        def handler(values):
            raise SubmissionError("Email taken", status_code=409)

        with pytest.raises(SubmissionError) as exc_info:
            asyncio.run(filled_handle.submit(handler))
        assert exc_info.value.status_code == 409

    def test_timeout(self, filled_handle):
        async def slow(values):
            await asyncio.sleep(1)

        with pytest.raises(SubmissionError) as exc_info:
            asyncio.run(filled_handle.submit(slow, timeout=0.01))

        assert "timed out" in exc_info.value.message
        assert filled_handle.is_submitting() is False

    def test_cancellation_clears_submitting(self, filled_handle):
        async def scenario():
            started = asyncio.Event()

            async def handler(values):
                started.set()
                await asyncio.sleep(10)

            task = asyncio.create_task(filled_handle.submit(handler))
            await started.wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())

        assert filled_handle.is_submitting() is False
        assert filled_handle.status == FormStatus.SUBMISSION_FAILED
        assert filled_handle.errors.form_errors == ["Submission was cancelled"]

    def test_concurrent_submit_is_rejected(self, filled_handle):
        async def scenario():
            release = asyncio.Event()

            async def handler(values):
                await release.wait()

            first = asyncio.create_task(filled_handle.submit(handler))
            await asyncio.sleep(0)
            with pytest.raises(StateError) as exc_info:
                await filled_handle.submit(handler)
            release.set()
            await first
            return exc_info.value

        error = asyncio.run(scenario())

        assert error.operation == "submit"
        assert filled_handle.status == FormStatus.SUBMITTED

    def test_edits_during_submission_keep_submitting(self, filled_handle):
        async def handler(values):
            filled_handle.set_field_value("name", "Grace Hopper")
            assert filled_handle.status == FormStatus.SUBMITTING

        snapshot = asyncio.run(filled_handle.submit(handler))

        assert snapshot.get_field("name") == FieldValue.text("Ada Lovelace")
        assert filled_handle.get_field_value("name") == FieldValue.text("Grace Hopper")
        assert filled_handle.status == FormStatus.SUBMITTED

    def test_reset_during_submission(self, filled_handle):
        async def handler(values):
            filled_handle.reset()

        asyncio.run(filled_handle.submit(handler))

        assert filled_handle.status == FormStatus.PRISTINE
        assert filled_handle.is_submitting() is False

    def test_resubmit_after_failure(self, filled_handle):
        attempts = []

        def flaky(values):
            attempts.append(values)
            if len(attempts) == 1:
                raise RuntimeError("try again")

        with pytest.raises(SubmissionError):
            asyncio.run(filled_handle.submit(flaky))
        asyncio.run(filled_handle.submit(flaky))

        assert len(attempts) == 2
        assert filled_handle.status == FormStatus.SUBMITTED
        assert filled_handle.errors.is_empty()


class TestAfterSubmit:

    def test_reset_on_submit(self):
        storage = MemoryStorage()
        config = FormConfig(persistence=PersistenceOptions(enabled=True, reset_on_submit=True))
        handle = FormHandle.create(
            ContactForm, config=config, persistence=FormPersistence(ContactForm, storage)
        )
        fill_contact(handle)

        asyncio.run(handle.submit(lambda values: None))

        assert handle.status == FormStatus.PRISTINE
        assert handle.get_field_value("name") == FieldValue.text("")

    def test_clear_on_submit_removes_saved_values(self):
        storage = MemoryStorage()
        persistence = FormPersistence(ContactForm, storage)
        config = FormConfig(persistence=PersistenceOptions(enabled=True, auto_save=True))
        handle = FormHandle.create(ContactForm, config=config, persistence=persistence)
        fill_contact(handle)
        assert persistence.exists()

        handle.set_persistence_options(PersistenceOptions(enabled=True, clear_on_submit=True))
        asyncio.run(handle.submit(lambda values: None))

        assert not persistence.exists()


class TestScheduleSubmit:

    def test_manual_mode_schedules_nothing(self, filled_handle):
        async def scenario():
            return filled_handle.schedule_submit(lambda values: None)

        assert asyncio.run(scenario()) is None

    def test_requires_running_loop(self, filled_handle):
        filled_handle.set_submission_mode(SubmissionMode.immediate())
        with pytest.raises(StateError):
            filled_handle.schedule_submit(lambda values: None)

    def test_immediate_mode(self, filled_handle):
        filled_handle.set_submission_mode(SubmissionMode.immediate())
        calls = []

        async def scenario():
            task = filled_handle.schedule_submit(calls.append)
            await task

        asyncio.run(scenario())
        assert len(calls) == 1

    def test_debounced_mode_keeps_only_the_last_request(self, filled_handle):
        filled_handle.set_submission_mode(SubmissionMode.debounced(0.05))
        calls = []

        async def scenario():
            first = filled_handle.schedule_submit(lambda values: calls.append("first"))
            second = filled_handle.schedule_submit(lambda values: calls.append("second"))
            await second
            return first

        first = asyncio.run(scenario())

        assert calls == ["second"]
        assert first.cancelled()
