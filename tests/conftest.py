"""Shared fixtures."""

import pytest

from formstate.config import FormConfig, TelemetryOptions
from formstate.events import EventEmitter
from formstate.handle import FormHandle

from tests.forms import ContactForm, fill_contact


@pytest.fixture
def handle():
    """Contact form handle with the default configuration."""
    return FormHandle.create(ContactForm)


@pytest.fixture
def filled_handle(handle):
    """Contact form handle that passes validation."""
    fill_contact(handle)
    return handle


@pytest.fixture
def emitter():
    return EventEmitter()


@pytest.fixture
def tracked_handle(emitter):
    """Contact form handle with telemetry enabled, plus the captured events."""
    events = []
    emitter.on_any(events.append)
    config = FormConfig(telemetry=TelemetryOptions(enabled=True))
    tracked = FormHandle.create(ContactForm, config=config, events=emitter)
    return tracked, events
