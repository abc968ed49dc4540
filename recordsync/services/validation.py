"""Payload validation for sync operations.

Validators take the raw ``data`` dict of an operation and return the cleaned
column values to write, or raise ``PayloadValidationError``.
"""

from typing import Any, Callable

from pydantic import BaseModel, ValidationError

from recordsync.core.timestamps import to_naive_utc
from recordsync.schemas.records import RecordCreate, RecordUpdate
from recordsync.services.errors import PayloadValidationError

Validator = Callable[[dict[str, Any]], dict[str, Any]]

REQUIRED_FIELDS = ("name", "company", "interests", "capture_method", "captured_at")


def _format_errors(exc: ValidationError) -> list[str]:
    messages = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"])
        messages.append(f"{field}: {err['msg']}" if field else err["msg"])
    return messages


def _validate(model: type[BaseModel], data: dict[str, Any], exclude_unset: bool) -> dict[str, Any]:
    try:
        parsed = model.model_validate(data)
    except ValidationError as e:
        raise PayloadValidationError(_format_errors(e))

    values = parsed.model_dump(exclude_unset=exclude_unset)
    if values.get("captured_at") is not None:
        values["captured_at"] = to_naive_utc(values["captured_at"])
    return values


def validate_create(data: dict[str, Any]) -> dict[str, Any]:
    """Validate a create payload. The local id is supplied by the operation."""
    values = _validate(RecordCreate, data, exclude_unset=False)
    values.pop("local_id", None)
    return values


def validate_update(data: dict[str, Any]) -> dict[str, Any]:
    """Validate an update payload, keeping only fields the client sent."""
    values = _validate(RecordUpdate, data, exclude_unset=True)
    # Required columns can't be cleared by an update
    for field in REQUIRED_FIELDS:
        if field in values and values[field] is None:
            del values[field]
    return values
