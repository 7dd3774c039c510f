"""FormHandle configuration: validation, submission, persistence, telemetry."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from formstate.errors import ConfigurationError


class ValidationMode(str, Enum):
    """When field validation runs automatically."""
    ON_BLUR = "on_blur"
    ON_CHANGE = "on_change"
    ON_SUBMIT = "on_submit"
    ON_BLUR_AND_CHANGE = "on_blur_and_change"

    @property
    def validates_on_change(self) -> bool:
        return self in (ValidationMode.ON_CHANGE, ValidationMode.ON_BLUR_AND_CHANGE)

    @property
    def validates_on_blur(self) -> bool:
        return self in (ValidationMode.ON_BLUR, ValidationMode.ON_BLUR_AND_CHANGE)


class SubmissionKind(str, Enum):
    IMMEDIATE = "immediate"
    MANUAL = "manual"
    DEBOUNCED = "debounced"


@dataclass(frozen=True)
class SubmissionMode:
    """How ``FormHandle.schedule_submit`` dispatches submissions.

    Attributes:
        kind: Immediate, manual or debounced
        delay: Debounce delay in seconds (debounced only)

    Examples:
        >>> SubmissionMode.debounced(0.3).delay
        0.3
        >>> SubmissionMode.debounced(-1)
        Traceback (most recent call last):
        ...
        formstate.errors.ConfigurationError: Configuration error in submission_mode: Debounce delay must not be negative
    """
    kind: SubmissionKind = SubmissionKind.MANUAL
    delay: float = 0.0

    def __post_init__(self):
        if self.delay < 0:
            raise ConfigurationError(
                "Debounce delay must not be negative", component="submission_mode"
            )

    @classmethod
    def immediate(cls) -> "SubmissionMode":
        return cls(SubmissionKind.IMMEDIATE)

    @classmethod
    def manual(cls) -> "SubmissionMode":
        return cls(SubmissionKind.MANUAL)

    @classmethod
    def debounced(cls, delay: float) -> "SubmissionMode":
        return cls(SubmissionKind.DEBOUNCED, delay)


@dataclass
class PersistenceOptions:
    """Persistence policy.

    Attributes:
        enabled: Whether the handle talks to its persistence collaborator
        storage_key: Replaces the discriminator (last segment) of the
            collaborator's storage key when set
        auto_save: Save the values after every committed state version
        clear_on_submit: Remove saved values after a successful submission
        reset_on_submit: Reset the form after a successful submission
    """
    enabled: bool = False
    storage_key: Optional[str] = None
    auto_save: bool = False
    clear_on_submit: bool = True
    reset_on_submit: bool = False


TrackingCallback = Callable[[str, str, str], None]
"""Called with (form name, subject, action) for every tracked interaction."""


@dataclass
class TelemetryOptions:
    """Telemetry policy for the handle's event stream."""
    enabled: bool = False
    track_field_interactions: bool = True
    track_validation_errors: bool = True
    track_submission_attempts: bool = True
    custom_tracking: Optional[TrackingCallback] = None


@dataclass
class FormConfig:
    """Everything a FormHandle can be configured with."""
    validation_mode: ValidationMode = ValidationMode.ON_CHANGE
    submission_mode: SubmissionMode = field(default_factory=SubmissionMode.manual)
    persistence: PersistenceOptions = field(default_factory=PersistenceOptions)
    telemetry: TelemetryOptions = field(default_factory=TelemetryOptions)

    def validate(self) -> None:
        """Check option types and combinations.

        Raises:
            ConfigurationError: If an option has the wrong type
        """
        if not isinstance(self.validation_mode, ValidationMode):
            raise ConfigurationError(
                f"Unsupported validation mode: {self.validation_mode!r}",
                component="validation_mode",
            )
        if not isinstance(self.submission_mode, SubmissionMode):
            raise ConfigurationError(
                f"Unsupported submission mode: {self.submission_mode!r}",
                component="submission_mode",
            )
        if not isinstance(self.persistence, PersistenceOptions):
            raise ConfigurationError(
                "Persistence options must be a PersistenceOptions instance",
                component="persistence",
            )
        if not isinstance(self.telemetry, TelemetryOptions):
            raise ConfigurationError(
                "Telemetry options must be a TelemetryOptions instance",
                component="telemetry",
            )


__all__ = [
    "ValidationMode",
    "SubmissionKind",
    "SubmissionMode",
    "PersistenceOptions",
    "TrackingCallback",
    "TelemetryOptions",
    "FormConfig",
]
