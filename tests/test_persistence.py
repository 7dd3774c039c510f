"""Tests for saving and restoring form values."""

import json

import pytest

from formstate.config import FormConfig, PersistenceOptions, TelemetryOptions
from formstate.errors import ConfigurationError, PersistenceError, SerializationError
from formstate.events import EventType
from formstate.handle import FormHandle
from formstate.persistence import (
    FileStorage,
    FormPersistence,
    MemoryStorage,
    Storage,
    deserialize_form,
    serialize_form,
)
from formstate.state import FormStatus
from formstate.values import FieldValue

from tests.forms import ContactForm, fill_contact


class BrokenStorage:
    storage_type = "broken"

    def get_item(self, key):
        raise OSError("disk on fire")

    def set_item(self, key, value):
        raise OSError("disk on fire")

    def remove_item(self, key):
        raise OSError("disk on fire")


class TestSerialization:

    def test_round_trip(self):
        form = ContactForm({"name": "Ada", "age": 36, "tags": ["math"]})
        assert deserialize_form(ContactForm, serialize_form(form)) == form

    def test_invalid_json(self):
        with pytest.raises(SerializationError):
            deserialize_form(ContactForm, "{not json")

    def test_unknown_field_rejected_by_schema(self):
        payload = json.dumps({"nickname": {"kind": "text", "value": "Ace"}})
        with pytest.raises(SerializationError) as exc_info:
            deserialize_form(ContactForm, payload)
        assert "does not match form schema" in exc_info.value.message

    def test_wrong_value_kind_rejected(self):
        payload = json.dumps({"age": {"kind": "text", "value": "old"}})
        with pytest.raises(SerializationError) as exc_info:
            deserialize_form(ContactForm, payload)
        assert exc_info.value.field == "age"

    def test_null_text_payload_rejected(self):
        payload = json.dumps({"name": {"kind": "text", "value": None}})
        with pytest.raises(SerializationError):
            deserialize_form(ContactForm, payload)


class TestFormPersistence:

    def test_key_and_storage_type(self):
        persistence = FormPersistence(ContactForm, MemoryStorage(), discriminator="draft")
        assert persistence.key == "formstate:ContactForm:draft"
        assert persistence.storage_type == "memory"

    def test_save_load_clear(self):
        persistence = FormPersistence(ContactForm, MemoryStorage())
        form = ContactForm({"name": "Ada"})

        persistence.save(form)
        assert persistence.exists()
        assert persistence.load() == form

        persistence.clear()
        assert persistence.load() is None

    def test_missing_storage(self):
        persistence = FormPersistence(ContactForm, None)
        assert persistence.storage_type == "unavailable"
        assert persistence.exists() is False
        with pytest.raises(PersistenceError):
            persistence.save(ContactForm())

    def test_failing_storage(self):
        persistence = FormPersistence(ContactForm, BrokenStorage())
        with pytest.raises(PersistenceError) as exc_info:
            persistence.load()
        assert exc_info.value.storage_type == "broken"
        assert persistence.exists() is False

    def test_file_storage(self, tmp_path):
        storage = FileStorage(tmp_path / "drafts")
        assert isinstance(storage, Storage)
        persistence = FormPersistence(ContactForm, storage)

        persistence.save(ContactForm({"name": "Ada"}))

        assert len(list((tmp_path / "drafts").iterdir())) == 1
        assert persistence.load().get_field("name") == FieldValue.text("Ada")


class TestHandlePersistence:

    def _handle(self, storage, **options):
        config = FormConfig(
            persistence=PersistenceOptions(enabled=True, **options),
            telemetry=TelemetryOptions(enabled=True),
        )
        return FormHandle.create(
            ContactForm, config=config, persistence=FormPersistence(ContactForm, storage)
        )

    def test_restore_applies_saved_values(self):
        storage = MemoryStorage()
        first = self._handle(storage)
        fill_contact(first)
        first.save()

        second = self._handle(storage)
        assert second.restore() is True
        assert second.get_field_value("email") == FieldValue.text("ada@example.com")
        assert second.is_dirty()

    def test_restore_without_saved_values(self):
        handle = self._handle(MemoryStorage())
        assert handle.restore() is False
        assert handle.status == FormStatus.PRISTINE

    def test_auto_save_failure_does_not_corrupt_state(self):
        handle = self._handle(BrokenStorage(), auto_save=True)
        failures = []
        handle.events.on(EventType.PERSISTENCE_FAILED, failures.append)

        handle.set_field_value("name", "Ada")

        assert handle.get_field_value("name") == FieldValue.text("Ada")
        assert failures[0].payload["operation"] == "save"

    def test_save_without_collaborator(self, handle):
        with pytest.raises(ConfigurationError):
            handle.save()

    def test_storage_key_sets_the_key_discriminator(self):
        """Drafts saved under different storage keys stay separate."""
        storage = MemoryStorage()
        work = self._handle(storage, storage_key="work")
        assert work.persistence.key == "formstate:ContactForm:work"
        fill_contact(work)
        work.save()

        assert storage.get_item("formstate:ContactForm:work") is not None
        assert storage.get_item("formstate:ContactForm:default") is None
        assert self._handle(storage).restore() is False
        assert self._handle(storage, storage_key="work").restore() is True

    def test_storage_key_applies_when_options_change(self):
        handle = self._handle(MemoryStorage())
        handle.set_persistence_options(PersistenceOptions(enabled=True, storage_key="home"))
        assert handle.persistence.key == "formstate:ContactForm:home"
