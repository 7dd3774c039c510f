"""FormHandle orchestrator for the formstate engine.

The FormHandle owns a form's schema, its configuration and the StateCell
holding the current FormState. It exposes every field, array, validation and
submission operation, and it is the only writer of its cell.

Every mutator is synchronous and commits exactly one new FormState version.
The only suspension point is ``submit``, while it awaits the caller's
handler; a second ``submit`` on the same handle during that window is
rejected.

Array operations follow one policy for positions: mutators that address an
existing element (remove, move, swap, duplicate, set_array_item) raise
StateError for an out-of-range index, ``insert_array_item`` appends when the
index is past the end, and the read accessors ``get_array_item`` /
``get_array_length`` answer None instead of raising.

Usage:
    >>> from formstate.form import RecordForm
    >>> from formstate.schema import FieldMetadata, FieldType
    >>> from formstate.validation import Validator
    >>> class Signup(RecordForm):
    ...     FIELDS = [
    ...         FieldMetadata("name", required=True),
    ...         FieldMetadata("email", FieldType.email(), required=True,
    ...                       validators=[Validator.email()]),
    ...     ]
    >>> handle = FormHandle.create(Signup)
    >>> handle.set_field_value("name", FieldValue.text("Ada"))
    >>> handle.is_dirty()
    True
    >>> sorted(handle.validate_form().field_errors)
    ['email']
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, Type, TypeVar, Union

from formstate.config import (
    FormConfig,
    PersistenceOptions,
    SubmissionKind,
    SubmissionMode,
    TelemetryOptions,
    ValidationMode,
)
from formstate.errors import (
    ConfigurationError,
    FieldUpdateError,
    FormError,
    FormValidationError,
    StateError,
    SubmissionError,
    UnknownFormError,
    ValidationErrors,
)
from formstate.events import EventEmitter, EventType, FormEvent
from formstate.form import Form
from formstate.logging import get_logger
from formstate.persistence import FormPersistence
from formstate.schema import FieldMetadata, FieldType, FormSchema
from formstate.state import FormState, FormStatus, StateCell, Subscriber, Subscription
from formstate.validation import ValidationEngine, ValidatorKind, ValidatorRegistry
from formstate.values import FieldValue


logger = get_logger(__name__)

F = TypeVar("F", bound=Form)

SubmitHandler = Callable[[Any], Union[Awaitable[Any], Any]]
"""Submission handler: receives a snapshot of the form values.

May be sync or async. Raising, returning False or returning an error
message string marks the submission as failed; anything else is success.
"""

FieldListener = Callable[[FieldValue, Optional[str]], None]

_FIELD_EVENTS = {EventType.FIELD_UPDATED, EventType.FIELD_BLURRED, EventType.ARRAY_UPDATED}
_VALIDATION_EVENTS = {EventType.VALIDATION_PASSED, EventType.VALIDATION_FAILED}
_SUBMISSION_EVENTS = {
    EventType.SUBMISSION_STARTED,
    EventType.SUBMISSION_SUCCEEDED,
    EventType.SUBMISSION_FAILED,
    EventType.SUBMISSION_REJECTED,
}


class FieldObservable:
    """Derived view of one field that notifies only when that field changes.

    Listeners receive ``(value, error)`` whenever the field's value or its
    error message differs from the previously observed one. Closing the
    observable detaches it from the handle; the next ``FormHandle.field``
    call for the same name returns a fresh one.
    """

    def __init__(self, handle: "FormHandle", name: str):
        self.name = name
        self._handle = handle
        state = handle.state
        self._value = state.values.get_field(name)
        self._error = state.errors.get_field_error(name)
        self._listeners: List[FieldListener] = []
        self._closed = False
        self._subscription = handle.subscribe(self._on_state)

    @property
    def value(self) -> FieldValue:
        """Last observed value of the field."""
        return self._value

    @property
    def error(self) -> Optional[str]:
        """Last observed error message, or None."""
        return self._error

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, listener: FieldListener) -> Subscription:
        """Register ``listener(value, error)`` for changes to this field.

        Raises:
            StateError: If the observable has been closed
        """
        if self._closed:
            raise StateError(f"Observable for field '{self.name}' is closed", operation="field")
        self._listeners.append(listener)
        return Subscription(lambda: self._listeners.remove(listener))

    def close(self) -> None:
        """Stop tracking the handle and drop every listener. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._subscription.unsubscribe()
        self._listeners.clear()
        self._handle._forget_field_observable(self)

    def _on_state(self, state: FormState) -> None:
        value = state.values.get_field(self.name)
        error = state.errors.get_field_error(self.name)
        if value == self._value and error == self._error:
            return
        self._value = value
        self._error = error
        for listener in list(self._listeners):
            listener(value, error)


class FormHandle(Generic[F]):
    """Stateful orchestrator for one live form.

    Attributes:
        form_cls: The concrete Form type
        config: Validation, submission, persistence and telemetry policy
        registry: Custom validators available to this form
        persistence: Optional persistence collaborator
        events: Telemetry event emitter
    """

    def __init__(
        self,
        form_cls: Type[F],
        initial: Optional[F] = None,
        config: Optional[FormConfig] = None,
        registry: Optional[ValidatorRegistry] = None,
        persistence: Optional[FormPersistence] = None,
        events: Optional[EventEmitter] = None,
    ) -> None:
        """Initialize the handle.

        Args:
            form_cls: The concrete Form type
            initial: Starting value; defaults to ``form_cls.default()``
            config: Handle configuration; defaults to FormConfig()
            registry: Custom validator registry; defaults to an empty one
            persistence: Collaborator used when persistence is enabled
            events: Emitter receiving telemetry events

        Raises:
            ConfigurationError: If the configuration is inconsistent
        """
        self.form_cls = form_cls
        self._schema: FormSchema = form_cls.schema()
        self.config = config if config is not None else FormConfig()
        self.config.validate()
        self.registry = registry if registry is not None else ValidatorRegistry()
        self._engine = ValidationEngine(self._schema, self.registry)
        self.persistence = persistence
        self._check_persistence(self.config.persistence)
        self._bind_storage_key(self.config.persistence)
        self.events = events if events is not None else EventEmitter()

        values = initial.copy() if initial is not None else form_cls.default()
        self._cell: StateCell[FormState[F]] = StateCell(FormState.pristine(values))
        self._field_observables: Dict[str, FieldObservable] = {}
        self._submit_in_flight = False
        self._scheduled: Optional["asyncio.Task[Any]"] = None

        self._track(EventType.FORM_CREATED, {"fields": len(self._schema)})

    @classmethod
    def create(cls, form_cls: Type[F], **kwargs: Any) -> "FormHandle[F]":
        """Create a handle starting from the type's default value."""
        return cls(form_cls, None, **kwargs)

    @classmethod
    def with_values(cls, form_cls: Type[F], initial: F, **kwargs: Any) -> "FormHandle[F]":
        """Create a handle starting from an explicit value."""
        return cls(form_cls, initial, **kwargs)

    # Reads

    @property
    def state(self) -> FormState[F]:
        """Current committed FormState. Treat it as read-only."""
        return self._cell.get()

    @property
    def values(self) -> F:
        """Independent snapshot of the current form value."""
        return self.state.values.copy()

    @property
    def errors(self) -> ValidationErrors:
        """Copy of the current validation errors."""
        return self.state.errors.copy()

    @property
    def status(self) -> FormStatus:
        """Lifecycle status of the current state."""
        return self.state.status

    @property
    def schema(self) -> FormSchema:
        """Schema of the handled form type."""
        return self._schema

    def is_valid(self) -> bool:
        """True when no field or form-level error is recorded."""
        return self.state.is_valid()

    def is_dirty(self) -> bool:
        """True once any field has been written since creation or reset."""
        return self.state.dirty

    def is_submitting(self) -> bool:
        """True while a submission is awaiting its handler."""
        return self.state.submitting

    def get_field_value(self, name: str) -> Optional[FieldValue]:
        """Current value of ``name``, or None if the schema has no such field."""
        if name not in self._schema:
            return None
        return self.state.values.get_field(name)

    def get_field_metadata(self, name: str) -> Optional[FieldMetadata]:
        """Schema metadata for ``name``, or None for unknown fields."""
        return self._schema.get_field(name)

    def is_field_required(self, name: str) -> bool:
        """Whether blanks are rejected, through the required flag or a Required validator.

        Unknown fields are not required.
        """
        metadata = self._schema.get_field(name)
        if metadata is None:
            return False
        return metadata.required or any(
            validator.kind == ValidatorKind.REQUIRED for validator in metadata.validators
        )

    def get_field_type(self, name: str) -> Optional[FieldType]:
        """Declared type of ``name``, or None for unknown fields."""
        metadata = self._schema.get_field(name)
        return metadata.field_type if metadata is not None else None

    def field(self, name: str) -> FieldObservable:
        """Cached per-field observable.

        A closed observable is never returned; a new one replaces it.

        Raises:
            FieldUpdateError: If the schema has no such field
        """
        self._require_field(name, "field")
        observable = self._field_observables.get(name)
        if observable is None or observable.closed:
            observable = FieldObservable(self, name)
            self._field_observables[name] = observable
        return observable

    def _forget_field_observable(self, observable: FieldObservable) -> None:
        if self._field_observables.get(observable.name) is observable:
            del self._field_observables[observable.name]

    def subscribe(self, callback: Subscriber) -> Subscription:
        """Receive every committed FormState, synchronously and in order."""
        return self._cell.subscribe(callback)

    # Configuration

    def set_validation_mode(self, mode: ValidationMode) -> None:
        if not isinstance(mode, ValidationMode):
            raise ConfigurationError(f"Unsupported validation mode: {mode!r}", component="validation_mode")
        self.config.validation_mode = mode

    def set_submission_mode(self, mode: SubmissionMode) -> None:
        if not isinstance(mode, SubmissionMode):
            raise ConfigurationError(f"Unsupported submission mode: {mode!r}", component="submission_mode")
        self.config.submission_mode = mode

    def set_persistence_options(self, options: PersistenceOptions) -> None:
        self._check_persistence(options)
        self.config.persistence = options
        self._bind_storage_key(options)

    def set_telemetry_options(self, options: TelemetryOptions) -> None:
        if not isinstance(options, TelemetryOptions):
            raise ConfigurationError(
                "Telemetry options must be a TelemetryOptions instance", component="telemetry"
            )
        self.config.telemetry = options

    def _check_persistence(self, options: PersistenceOptions) -> None:
        if not isinstance(options, PersistenceOptions):
            raise ConfigurationError(
                "Persistence options must be a PersistenceOptions instance", component="persistence"
            )
        if options.enabled and self.persistence is None:
            raise ConfigurationError(
                "Persistence is enabled but no persistence collaborator was provided",
                component="persistence",
            )

    def _bind_storage_key(self, options: PersistenceOptions) -> None:
        if options.storage_key and self.persistence is not None:
            self.persistence.discriminator = options.storage_key

    # Field operations

    def set_field_value(self, name: str, value: Any) -> None:
        """Write one field, mark the form dirty and validate per the mode.

        Args:
            name: Field name
            value: A FieldValue, or a plain Python value to wrap

        Raises:
            FieldUpdateError: If the field is unknown or rejects the value;
                the state is left unchanged
        """
        metadata = self._require_field(name, "set_field_value")
        value = FieldValue.from_python(value)
        state = self.state
        values = state.values.copy()
        values.set_field(name, value)

        new_state = state.with_values(values).mark_dirty()
        if self.config.validation_mode.validates_on_change:
            new_state = self._with_field_validated(new_state, metadata)
        self._commit(new_state, "set_field_value")
        self._track(EventType.FIELD_UPDATED, {"field": name}, subject=name, action="change")

    def blur_field(self, name: str) -> Optional[str]:
        """Signal that a field lost focus; validates it in blur modes.

        Returns:
            The field's error message after validation, or None
        """
        self._require_field(name, "blur_field")
        self._track(EventType.FIELD_BLURRED, {"field": name}, subject=name, action="blur")
        if self.config.validation_mode.validates_on_blur:
            return self.validate_field(name)
        return self.state.errors.get_field_error(name)

    def validate_field(self, name: str) -> Optional[str]:
        """Validate one field and merge the result into the error map.

        Returns:
            The error message, or None if the field is valid

        Raises:
            FieldUpdateError: If the schema has no such field
        """
        metadata = self._require_field(name, "validate_field")
        new_state = self._with_field_validated(self.state, metadata)
        self._commit(new_state, "validate_field")
        message = new_state.errors.get_field_error(name)
        self._track_validation(new_state.errors, {"field": name})
        return message

    def validate_form(self) -> ValidationErrors:
        """Run every field validator plus the form's own cross-field rules.

        The result replaces the whole error set.

        Returns:
            A copy of the new error set (empty when the form is valid)
        """
        values = self.state.values
        try:
            errors = self._engine.validate_form(values)
        except FormError:
            raise
        except Exception as exc:
            raise UnknownFormError(
                f"Form validation raised {type(exc).__name__}: {exc}", source="validate"
            ) from exc
        new_state = self.state.with_errors(errors)
        self._commit(new_state, "validate_form")
        self._track_validation(errors, {"errors": len(errors)})
        return errors.copy()

    def clear_errors(self) -> None:
        self._commit(self.state.with_errors(ValidationErrors()), "clear_errors")

    def clear_field_error(self, name: str) -> None:
        errors = self.state.errors.copy()
        errors.remove_field_error(name)
        self._commit(self.state.with_errors(errors), "clear_field_error")

    # Array operations

    def add_array_item(self, name: str, value: Any) -> None:
        """Append ``value`` to array field ``name``."""
        item = FieldValue.from_python(value)
        self._update_array(name, "add_array_item", lambda items: items.append(item))

    def insert_array_item(self, name: str, index: int, value: Any) -> None:
        """Insert before ``index``; an index past the end appends.

        Raises:
            StateError: If ``index`` is negative
        """
        item = FieldValue.from_python(value)

        def insert(items: List[FieldValue]) -> None:
            if index < 0:
                raise StateError(
                    f"Index {index} is negative for array '{name}'", operation="insert_array_item"
                )
            items.insert(min(index, len(items)), item)

        self._update_array(name, "insert_array_item", insert)

    def remove_array_item(self, name: str, index: int) -> FieldValue:
        """Remove and return the element at ``index``.

        Raises:
            StateError: If ``index`` is out of range; the array is unchanged
        """
        removed: List[FieldValue] = []

        def remove(items: List[FieldValue]) -> None:
            self._check_index(name, index, items, "remove_array_item")
            removed.append(items.pop(index))

        self._update_array(name, "remove_array_item", remove)
        return removed[0]

    def move_array_item(self, name: str, from_index: int, to_index: int) -> None:
        """Move one element, preserving the order of the others.

        Raises:
            StateError: If either index is out of range
        """

        def move(items: List[FieldValue]) -> None:
            self._check_index(name, from_index, items, "move_array_item")
            self._check_index(name, to_index, items, "move_array_item")
            if from_index != to_index:
                items.insert(to_index, items.pop(from_index))

        self._update_array(name, "move_array_item", move)

    def swap_array_items(self, name: str, first: int, second: int) -> None:
        """Exchange two elements.

        Raises:
            StateError: If either index is out of range
        """

        def swap(items: List[FieldValue]) -> None:
            self._check_index(name, first, items, "swap_array_items")
            self._check_index(name, second, items, "swap_array_items")
            items[first], items[second] = items[second], items[first]

        self._update_array(name, "swap_array_items", swap)

    def duplicate_array_item(self, name: str, index: int) -> None:
        """Insert a copy of the element at ``index`` right after it.

        Raises:
            StateError: If ``index`` is out of range
        """

        def duplicate(items: List[FieldValue]) -> None:
            self._check_index(name, index, items, "duplicate_array_item")
            items.insert(index + 1, items[index])

        self._update_array(name, "duplicate_array_item", duplicate)

    def clear_array(self, name: str) -> None:
        self._update_array(name, "clear_array", lambda items: items.clear())

    def batch_add_array_items(self, name: str, values: List[Any]) -> None:
        """Append several elements as a single state version."""
        new_items = [FieldValue.from_python(value) for value in values]
        self._update_array(name, "batch_add_array_items", lambda items: items.extend(new_items))

    def set_array_item(self, name: str, index: int, value: Any) -> None:
        """Replace the element at ``index``.

        Raises:
            StateError: If ``index`` is out of range
        """
        item = FieldValue.from_python(value)

        def assign(items: List[FieldValue]) -> None:
            self._check_index(name, index, items, "set_array_item")
            items[index] = item

        self._update_array(name, "set_array_item", assign)

    def get_array_length(self, name: str) -> Optional[int]:
        """Length of an array field; None for unknown or non-array fields."""
        items = self._read_array(name)
        return len(items) if items is not None else None

    def get_array_item(self, name: str, index: int) -> Optional[FieldValue]:
        """Element at ``index``; None when out of range or not an array."""
        items = self._read_array(name)
        if items is None or not 0 <= index < len(items):
            return None
        return items[index]

    # Lifecycle

    def reset(self) -> None:
        """Replace the state with a pristine one built from the type default."""
        self._commit(FormState.pristine(self.form_cls.default()), "reset")
        logger.info("form_reset", form=self._schema.name)
        self._track(EventType.FORM_RESET)

    async def submit(self, handler: SubmitHandler, timeout: Optional[float] = None) -> F:
        """Validate, then hand a snapshot of the values to ``handler``.

        The form is validated first; an invalid form is rejected without
        entering the submitting state. The submitting flag is cleared on
        every exit path, including handler failure and cancellation.

        Args:
            handler: Sync or async callable receiving the values snapshot
            timeout: Optional limit in seconds for an async handler

        Returns:
            The snapshot that was submitted

        Raises:
            StateError: If another submission on this handle is in flight
            FormValidationError: If the form is invalid
            SubmissionError: If the handler failed; its message is also
                appended to the form-level errors
        """
        if self._submit_in_flight:
            logger.warning("submit_rejected_in_flight", form=self._schema.name)
            raise StateError("A submission is already in progress", operation="submit")

        self._submit_in_flight = True
        try:
            errors = self.validate_form()
            if errors.has_errors():
                logger.info("submit_rejected_invalid", form=self._schema.name, errors=len(errors))
                self._track(
                    EventType.SUBMISSION_REJECTED,
                    {"errors": len(errors)},
                    subject="form",
                    action="submit_rejected",
                )
                raise FormValidationError(errors)

            self._commit(self.state.mark_submitting(), "submit")
            self._track(EventType.SUBMISSION_STARTED, subject="form", action="submit")
            snapshot = self.state.values.copy()

            failure: Optional[SubmissionError] = SubmissionError("Submission was cancelled")
            try:
                failure = await self._call_handler(handler, snapshot, timeout)
            finally:
                self._finish_submission(failure)

            if failure is not None:
                logger.info("submit_failed", form=self._schema.name, error=failure.message)
                self._track(
                    EventType.SUBMISSION_FAILED,
                    {"message": failure.message},
                    subject="form",
                    action="submit_failed",
                )
                raise failure

            logger.info("submit_succeeded", form=self._schema.name)
            self._track(EventType.SUBMISSION_SUCCEEDED, subject="form", action="submit_succeeded")
            self._after_successful_submit()
            return snapshot
        finally:
            self._submit_in_flight = False

    def schedule_submit(
        self, handler: SubmitHandler, timeout: Optional[float] = None
    ) -> Optional["asyncio.Task[Any]"]:
        """Dispatch a submission according to the submission mode.

        Manual mode schedules nothing. Immediate mode starts a task right
        away. Debounced mode cancels a pending, not yet started submission
        and schedules a new one after the configured delay.

        Returns:
            The scheduled task, or None in manual mode

        Raises:
            StateError: If there is no running event loop
        """
        mode = self.config.submission_mode
        if mode.kind == SubmissionKind.MANUAL:
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as exc:
            raise StateError("schedule_submit requires a running event loop", operation="schedule_submit") from exc

        if mode.kind == SubmissionKind.IMMEDIATE:
            return loop.create_task(self.submit(handler, timeout))

        if self._scheduled is not None and not self._scheduled.done():
            self._scheduled.cancel()
            logger.debug("debounced_submit_cancelled", form=self._schema.name)
        task = loop.create_task(self._debounced_submit(handler, mode.delay, timeout))
        self._scheduled = task
        return task

    async def _debounced_submit(self, handler: SubmitHandler, delay: float, timeout: Optional[float]) -> F:
        await asyncio.sleep(delay)
        # Started submissions are never cancelled by a later schedule_submit.
        self._scheduled = None
        return await self.submit(handler, timeout)

    async def _call_handler(
        self, handler: SubmitHandler, snapshot: F, timeout: Optional[float]
    ) -> Optional[SubmissionError]:
        try:
            result = handler(snapshot)
            if inspect.isawaitable(result):
                if timeout is not None:
                    result = await asyncio.wait_for(result, timeout)
                else:
                    result = await result
        except SubmissionError as exc:
            return exc
        except asyncio.TimeoutError:
            return SubmissionError(f"Submission timed out after {timeout} seconds")
        except Exception as exc:
            logger.warning("submit_handler_raised", form=self._schema.name, error=repr(exc))
            error = SubmissionError(str(exc) or type(exc).__name__)
            error.__cause__ = exc
            return error
        if result is False:
            return SubmissionError("Submission was rejected by the handler")
        if isinstance(result, str):
            return SubmissionError(result)
        return None

    def _finish_submission(self, failure: Optional[SubmissionError]) -> None:
        state = self.state
        if not state.submitting:
            # reset() ran while the handler was in flight
            return
        message = failure.message if failure is not None else None
        self._commit(state.finish_submission(message), "submit")

    def _after_successful_submit(self) -> None:
        options = self.config.persistence
        if options.enabled and options.clear_on_submit and self.persistence is not None:
            try:
                self.persistence.clear()
            except FormError as exc:
                self._report_persistence_failure(exc, "clear")
        if options.reset_on_submit:
            self.reset()

    # Persistence

    def save(self) -> None:
        """Save the current values through the persistence collaborator.

        Raises:
            ConfigurationError: If there is no persistence collaborator
            PersistenceError: If storage is unavailable or fails
        """
        self._persistence_or_raise().save(self.state.values)

    def restore(self) -> bool:
        """Load saved values into the form.

        Returns:
            True if saved values were applied, False if nothing was saved

        Raises:
            ConfigurationError: If there is no persistence collaborator
            PersistenceError: If storage is unavailable or fails
            SerializationError: If the saved payload is invalid
        """
        loaded = self._persistence_or_raise().load()
        if loaded is None:
            return False
        self._commit(self.state.with_values(loaded).mark_dirty(), "restore")
        return True

    def _persistence_or_raise(self) -> FormPersistence:
        if self.persistence is None:
            raise ConfigurationError("No persistence collaborator configured", component="persistence")
        return self.persistence

    def _report_persistence_failure(self, exc: FormError, operation: str) -> None:
        logger.warning(
            "persistence_failed", form=self._schema.name, operation=operation, error=exc.message
        )
        self._track(EventType.PERSISTENCE_FAILED, {"operation": operation, "message": exc.message})

    # Internals

    def _commit(self, new_state: FormState[F], operation: str) -> FormState[F]:
        committed = FormState(
            values=new_state.values,
            errors=new_state.errors,
            dirty=new_state.dirty,
            submitting=new_state.submitting,
            status=new_state.status,
            version=self.state.version + 1,
        )
        logger.debug(
            "state_committed",
            form=self._schema.name,
            operation=operation,
            version=committed.version,
            status=committed.status.value,
        )
        self._cell.set(committed)
        options = self.config.persistence
        if options.enabled and options.auto_save and self.persistence is not None:
            try:
                self.persistence.save(committed.values)
            except FormError as exc:
                self._report_persistence_failure(exc, "save")
        return committed

    def _require_field(self, name: str, operation: str) -> FieldMetadata:
        metadata = self._schema.get_field(name)
        if metadata is None:
            logger.warning("unknown_field", form=self._schema.name, field=name, operation=operation)
            raise FieldUpdateError(name, f"Unknown field '{name}'", code="unknown_field")
        return metadata

    def _require_array(self, name: str, operation: str) -> List[FieldValue]:
        metadata = self._require_field(name, operation)
        current = self.state.values.get_field(name)
        items = current.as_array()
        if not metadata.field_type.is_array or (items is None and not current.is_null()):
            raise FieldUpdateError(
                name, f"Field '{name}' is not an array", code="not_an_array"
            )
        return items if items is not None else []

    def _read_array(self, name: str) -> Optional[List[FieldValue]]:
        metadata = self._schema.get_field(name)
        if metadata is None or not metadata.field_type.is_array:
            return None
        current = self.state.values.get_field(name)
        if current.is_null():
            return []
        return current.as_array()

    @staticmethod
    def _check_index(name: str, index: int, items: List[FieldValue], operation: str) -> None:
        if not 0 <= index < len(items):
            raise StateError(
                f"Index {index} is out of range for array '{name}' of length {len(items)}",
                operation=operation,
            )

    def _update_array(
        self, name: str, operation: str, mutate: Callable[[List[FieldValue]], None]
    ) -> None:
        items = self._require_array(name, operation)
        mutate(items)

        state = self.state
        values = state.values.copy()
        values.set_field(name, FieldValue.array(items))
        new_state = state.with_values(values).mark_dirty()
        if self.config.validation_mode.validates_on_change:
            new_state = self._with_field_validated(new_state, self._schema.get_field(name))
        self._commit(new_state, operation)
        self._track(
            EventType.ARRAY_UPDATED,
            {"field": name, "operation": operation, "length": len(items)},
            subject=name,
            action=operation,
        )

    def _with_field_validated(self, state: FormState[F], metadata: FieldMetadata) -> FormState[F]:
        message = self._engine.validate_value(metadata, state.values.get_field(metadata.name))
        errors = state.errors.copy()
        if message is None:
            errors.remove_field_error(metadata.name)
        else:
            errors.add_field_error(metadata.name, message)
        return state.with_errors(errors)

    def _track_validation(self, errors: ValidationErrors, payload: Dict[str, Any]) -> None:
        if errors.is_empty():
            self._track(EventType.VALIDATION_PASSED, payload, subject="form", action="validate")
        else:
            self._track(EventType.VALIDATION_FAILED, payload, subject="form", action="validate")

    def _track(
        self,
        event_type: EventType,
        payload: Optional[Dict[str, Any]] = None,
        subject: Optional[str] = None,
        action: Optional[str] = None,
    ) -> None:
        telemetry = self.config.telemetry
        if not telemetry.enabled:
            return
        if event_type in _FIELD_EVENTS and not telemetry.track_field_interactions:
            return
        if event_type in _VALIDATION_EVENTS and not telemetry.track_validation_errors:
            return
        if event_type in _SUBMISSION_EVENTS and not telemetry.track_submission_attempts:
            return

        self.events.emit(FormEvent.create(event_type, self._schema.name, self.state.status, payload))
        if telemetry.custom_tracking is not None:
            try:
                telemetry.custom_tracking(
                    self._schema.name, subject or "form", action or event_type.value
                )
            except Exception:
                logger.exception("custom_tracking_failed", event_type=event_type.value)

    def __repr__(self) -> str:
        state = self.state
        return (
            f"FormHandle(form={self._schema.name!r}, status={state.status.value!r}, "
            f"version={state.version})"
        )


__all__ = [
    "SubmitHandler",
    "FieldListener",
    "FieldObservable",
    "FormHandle",
]
