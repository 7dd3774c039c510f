"""Saving and restoring form values.

FormPersistence stores a form's values as JSON in a key-value Storage under
``"{prefix}:{form name}:{discriminator}"``. Payloads are checked against the
schema's JSON Schema export before they are turned back into a form, so a
stale or tampered payload is reported instead of half-applied.

Failures never touch in-memory form state: missing or failing storage raises
PersistenceError, malformed payloads raise SerializationError, and
``exists`` simply answers False.
"""

import json
import os
import re
from pathlib import Path
from typing import Dict, Generic, Optional, Type, TypeVar

from jsonschema import Draft7Validator
from typing_extensions import Protocol, runtime_checkable

from formstate.errors import FieldUpdateError, PersistenceError, SerializationError
from formstate.form import Form
from formstate.logging import get_logger
from formstate.values import FieldValue


logger = get_logger(__name__)

F = TypeVar("F", bound=Form)


@runtime_checkable
class Storage(Protocol):
    """Minimal key-value storage, shaped like the browser's localStorage."""

    storage_type: str

    def get_item(self, key: str) -> Optional[str]:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...

    def remove_item(self, key: str) -> None:
        ...


class MemoryStorage:
    """Process-local storage, mostly useful for tests."""

    storage_type = "memory"

    def __init__(self):
        self._items: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        """Return the stored string, or None when the key is absent."""
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        """Forget ``key``. Missing keys are ignored."""
        self._items.pop(key, None)

    def __len__(self) -> int:
        """Number of stored keys."""
        return len(self._items)


class FileStorage:
    """One JSON file per key inside ``directory``."""

    storage_type = "file"

    def __init__(self, directory: os.PathLike):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        """Map a key to a file name, replacing characters unsafe in paths."""
        safe = re.sub(r"[^A-Za-z0-9_.-]", "_", key)
        return self.directory / f"{safe}.json"

    def get_item(self, key: str) -> Optional[str]:
        """Read the key's file, or return None when it does not exist."""
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        """Write ``value`` to the key's file, creating the directory if needed."""
        self.directory.mkdir(parents=True, exist_ok=True)
        self._path(key).write_text(value, encoding="utf-8")

    def remove_item(self, key: str) -> None:
        """Delete the key's file. Missing keys are ignored."""
        path = self._path(key)
        if path.exists():
            path.unlink()


def serialize_form(form: Form) -> str:
    """Encode a form's values as a JSON object of tagged field values."""
    data = {name: value.to_json() for name, value in form.get_form_data().items()}
    try:
        return json.dumps(data, separators=(",", ":"), sort_keys=True)
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"Failed to serialize form: {exc}") from exc


def deserialize_form(form_cls: Type[F], payload: str) -> F:
    """Rebuild a form from ``serialize_form`` output.

    Raises:
        SerializationError: If the payload is not valid JSON, does not match
            the schema, or a field rejects its value
    """
    try:
        data = json.loads(payload)
    except ValueError as exc:
        raise SerializationError(f"Failed to deserialize form: {exc}") from exc

    validator = Draft7Validator(form_cls.schema().to_json_schema())
    problems = sorted(validator.iter_errors(data), key=lambda e: list(e.path))
    if problems:
        first = problems[0]
        field_name = str(first.path[0]) if first.path else None
        raise SerializationError(
            f"Stored payload does not match form schema: {first.message}",
            field=field_name,
        )

    form = form_cls.default()
    for name, encoded in data.items():
        try:
            form.set_field(name, FieldValue.from_json(encoded))
        except FieldUpdateError as exc:
            raise SerializationError(exc.message, field=name) from exc
    return form


class FormPersistence(Generic[F]):
    """Load, save, clear and check saved values of one form type.

    Attributes:
        form_cls: The concrete form type being persisted
        storage: Backing storage; None means storage is unavailable
        discriminator: Last key segment; FormHandle sets it from
            ``PersistenceOptions.storage_key`` when that is given
        prefix: First key segment

    Examples:
        >>> from formstate.schema import FieldMetadata
        >>> from formstate.form import RecordForm
        >>> class Profile(RecordForm):
        ...     FIELDS = [FieldMetadata("name")]
        >>> persistence = FormPersistence(Profile, MemoryStorage(), discriminator="draft")
        >>> persistence.key
        'formstate:Profile:draft'
        >>> persistence.exists()
        False
    """

    def __init__(
        self,
        form_cls: Type[F],
        storage: Optional[Storage],
        discriminator: str = "default",
        prefix: str = "formstate",
    ) -> None:
        self.form_cls = form_cls
        self.storage = storage
        self.discriminator = discriminator
        self.prefix = prefix

    @property
    def key(self) -> str:
        """Storage key: ``prefix:form_name:discriminator``."""
        return f"{self.prefix}:{self.form_cls.form_name()}:{self.discriminator}"

    @property
    def storage_type(self) -> str:
        if self.storage is None:
            return "unavailable"
        return getattr(self.storage, "storage_type", type(self.storage).__name__)

    def _require_storage(self, operation: str) -> Storage:
        if self.storage is None:
            raise PersistenceError(
                f"Cannot {operation} form '{self.form_cls.form_name()}': storage is not available",
                storage_type=self.storage_type,
            )
        return self.storage

    def save(self, form: F) -> None:
        storage = self._require_storage("save")
        payload = serialize_form(form)
        try:
            storage.set_item(self.key, payload)
        except Exception as exc:
            raise PersistenceError(
                f"Failed to save form: {exc}", storage_type=self.storage_type
            ) from exc
        logger.debug("form_saved", key=self.key, bytes=len(payload))

    def load(self) -> Optional[F]:
        """Return the saved form, or None if nothing is saved."""
        storage = self._require_storage("load")
        try:
            payload = storage.get_item(self.key)
        except Exception as exc:
            raise PersistenceError(
                f"Failed to load form: {exc}", storage_type=self.storage_type
            ) from exc
        if payload is None:
            return None
        return deserialize_form(self.form_cls, payload)

    def clear(self) -> None:
        storage = self._require_storage("clear")
        try:
            storage.remove_item(self.key)
        except Exception as exc:
            raise PersistenceError(
                f"Failed to clear form: {exc}", storage_type=self.storage_type
            ) from exc

    def exists(self) -> bool:
        if self.storage is None:
            return False
        try:
            return self.storage.get_item(self.key) is not None
        except Exception:
            logger.warning("storage_check_failed", key=self.key, exc_info=True)
            return False

    def __repr__(self) -> str:
        return f"FormPersistence(key={self.key!r}, storage={self.storage_type!r})"


__all__ = [
    "Storage",
    "MemoryStorage",
    "FileStorage",
    "serialize_form",
    "deserialize_form",
    "FormPersistence",
]
