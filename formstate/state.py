"""Form state snapshots, lifecycle rules and the reactive state cell.

A FormState is one immutable version of a form: its values, the errors of
the last validation pass, the dirty/submitting flags and the lifecycle
status. Every change produces a new FormState; nothing is edited in place.

Lifecycle::

    pristine --mutation--> dirty --validation--> valid | invalid
    valid --submit--> submitting --> submitted | submission_failed
    any --reset--> pristine

Errors reflect the last validation pass and can go stale: a mutation that
does not trigger validation leaves the previous errors in place.

The StateCell is the single mutable holder of the current FormState. Every
write replaces the whole value and notifies subscribers synchronously, in
commit order.
"""

from collections import deque
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Deque, Dict, Generic, List, Optional, Set, TypeVar

from formstate.errors import StateError, ValidationErrors
from formstate.logging import get_logger


logger = get_logger(__name__)

T = TypeVar("T")


class FormStatus(str, Enum):
    """Lifecycle status of a form."""
    PRISTINE = "pristine"
    DIRTY = "dirty"
    VALID = "valid"
    INVALID = "invalid"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"
    SUBMISSION_FAILED = "submission_failed"


class InvalidStateTransitionError(StateError):
    """Raised when a lifecycle transition is not allowed.

    Attributes:
        current_state: The status before the attempted transition
        target_state: The status that was attempted
    """

    def __init__(self, current_state: FormStatus, target_state: FormStatus, operation: str):
        self.current_state = current_state
        self.target_state = target_state
        valid = VALID_TRANSITIONS[current_state]
        super().__init__(
            f"Invalid state transition: cannot transition from "
            f"'{current_state.value}' to '{target_state.value}'. "
            f"Valid transitions from '{current_state.value}' are: "
            f"{', '.join(sorted(s.value for s in valid))}",
            operation=operation,
        )


_SETTLED = {FormStatus.DIRTY, FormStatus.VALID, FormStatus.INVALID, FormStatus.PRISTINE}

# Maps each status to the statuses it can move to. Mutations and validation
# while a submission is in flight keep the SUBMITTING status.
VALID_TRANSITIONS: Dict[FormStatus, Set[FormStatus]] = {
    FormStatus.PRISTINE: set(_SETTLED),
    FormStatus.DIRTY: set(_SETTLED),
    FormStatus.VALID: _SETTLED | {FormStatus.SUBMITTING},
    FormStatus.INVALID: set(_SETTLED),
    FormStatus.SUBMITTING: {
        FormStatus.SUBMITTING,
        FormStatus.SUBMITTED,
        FormStatus.SUBMISSION_FAILED,
        FormStatus.PRISTINE,
    },
    FormStatus.SUBMITTED: set(_SETTLED),
    FormStatus.SUBMISSION_FAILED: set(_SETTLED),
}


def can_transition(current: FormStatus, target: FormStatus) -> bool:
    return target in VALID_TRANSITIONS.get(current, set())


def check_transition(current: FormStatus, target: FormStatus, operation: str) -> None:
    """Raise InvalidStateTransitionError unless ``current -> target`` is allowed."""
    if not can_transition(current, target):
        raise InvalidStateTransitionError(current, target, operation)


@dataclass(frozen=True)
class FormState(Generic[T]):
    """One immutable version of a form.

    Attributes:
        values: The concrete form value; treat as read-only
        errors: Result of the last validation pass
        dirty: True after the first mutation since creation or reset
        submitting: True only while a submission handler is running
        status: Lifecycle status
        version: Commit counter assigned by the StateCell

    Examples:
        >>> state = FormState.pristine("values")
        >>> state.status
        <FormStatus.PRISTINE: 'pristine'>
        >>> state.mark_dirty().status
        <FormStatus.DIRTY: 'dirty'>
    """
    values: T
    errors: ValidationErrors = field(default_factory=ValidationErrors)
    dirty: bool = False
    submitting: bool = False
    status: FormStatus = FormStatus.PRISTINE
    version: int = field(default=0, compare=False)

    @classmethod
    def pristine(cls, values: T) -> "FormState[T]":
        return cls(values=values)

    def is_valid(self) -> bool:
        return self.errors.is_empty()

    def _moved_to(self, target: FormStatus, operation: str, **changes: Any) -> "FormState[T]":
        # In-flight submissions keep their status until they finish.
        if self.submitting and target in _SETTLED and target != FormStatus.PRISTINE:
            target = FormStatus.SUBMITTING
        check_transition(self.status, target, operation)
        return replace(self, status=target, **changes)

    def with_values(self, values: T) -> "FormState[T]":
        return replace(self, values=values)

    def mark_dirty(self) -> "FormState[T]":
        return self._moved_to(FormStatus.DIRTY, "mutate", dirty=True)

    def with_errors(self, errors: ValidationErrors) -> "FormState[T]":
        """Record a validation result; status becomes valid or invalid."""
        target = FormStatus.VALID if errors.is_empty() else FormStatus.INVALID
        return self._moved_to(target, "validate", errors=errors.copy())

    def mark_submitting(self) -> "FormState[T]":
        return self._moved_to(FormStatus.SUBMITTING, "submit", submitting=True)

    def finish_submission(self, failure_message: Optional[str] = None) -> "FormState[T]":
        """Leave the submitting status.

        Args:
            failure_message: Handler failure to append to the form-level
                errors; None means the submission succeeded
        """
        if failure_message is None:
            return self._moved_to(FormStatus.SUBMITTED, "submit", submitting=False)
        errors = self.errors.copy()
        errors.add_form_error(failure_message)
        return self._moved_to(
            FormStatus.SUBMISSION_FAILED, "submit", submitting=False, errors=errors
        )

    def to_dict(self) -> Dict[str, Any]:
        """Summary of the flags and errors, without the values."""
        return {
            "status": self.status.value,
            "dirty": self.dirty,
            "submitting": self.submitting,
            "valid": self.is_valid(),
            "version": self.version,
            "errors": self.errors.to_dict(),
        }


Subscriber = Callable[[Any], None]
"""Type alias for state subscribers; called with each committed value."""


class Subscription:
    """Handle returned by ``subscribe``; ``unsubscribe`` removes the callback."""

    def __init__(self, remove: Callable[[], None]):
        self._remove = remove
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if self._active:
            self._remove()
            self._active = False


class StateCell(Generic[T]):
    """The single mutable holder of a form's current state.

    ``set`` replaces the whole value and notifies subscribers synchronously.
    A subscriber that commits a new value during notification has its commit
    queued, so every subscriber sees every version in commit order.
    Subscriber exceptions are logged and do not reach the writer.

    Examples:
        >>> cell = StateCell(1)
        >>> seen = []
        >>> subscription = cell.subscribe(seen.append)
        >>> cell.set(2)
        >>> subscription.unsubscribe()
        >>> cell.set(3)
        >>> seen
        [2]
    """

    def __init__(self, initial: T):
        self._value = initial
        self._subscribers: List[Subscriber] = []
        self._pending: Deque[T] = deque()
        self._notifying = False

    def get(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        self._value = value
        self._pending.append(value)
        if self._notifying:
            return
        self._notifying = True
        try:
            while self._pending:
                committed = self._pending.popleft()
                for subscriber in list(self._subscribers):
                    try:
                        subscriber(committed)
                    except Exception:
                        logger.exception("state_subscriber_failed")
        finally:
            self._notifying = False

    def subscribe(self, callback: Subscriber) -> Subscription:
        self._subscribers.append(callback)
        return Subscription(lambda: self._remove(callback))

    def _remove(self, callback: Subscriber) -> None:
        try:
            self._subscribers.remove(callback)
        except ValueError:
            pass

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


__all__ = [
    "FormStatus",
    "InvalidStateTransitionError",
    "VALID_TRANSITIONS",
    "can_transition",
    "check_transition",
    "FormState",
    "Subscriber",
    "Subscription",
    "StateCell",
]
