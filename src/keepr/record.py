"""
Base record type shared by every keepr book.

Records are flat pydantic models. Type coercion happens every time a
record is built, but the user-input rules (required text, bounded
numbers, no future dates) only run when a record is *submitted*, i.e.
built through ``validate_record`` with a submit context. Loading a
stored collection never re-checks them.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo


def _now() -> datetime:
    return datetime.now()


def _new_id() -> str:
    return uuid.uuid4().hex


class Record(BaseModel):
    model_config = ConfigDict(extra="ignore", use_enum_values=False)

    id: str = Field(default_factory=_new_id)
    created: datetime = Field(default_factory=_now)
    modified: datetime = Field(default_factory=_now)

    def touched(self, **changes: Any) -> "Record":
        """Copy with ``changes`` applied and ``modified`` bumped, no re-validation."""
        return self.model_copy(update={**changes, "modified": _now()})

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: dict[str, Any]):
        return cls.model_validate(data)


R = TypeVar("R", bound=Record)


class RecordValidationError(ValueError):
    """User input that a record refuses; carries one message per bad field."""

    def __init__(self, messages: list[str]):
        self.messages = messages
        super().__init__("; ".join(messages))

    @classmethod
    def from_pydantic(cls, exc: ValidationError) -> "RecordValidationError":
        messages = []
        for err in exc.errors():
            field = ".".join(str(part) for part in err.get("loc", ())) or "record"
            msg = err.get("msg", "invalid")
            if msg.startswith("Value error, "):
                msg = msg[len("Value error, ") :]
            messages.append(f"{field}: {msg}")
        return cls(messages)


# ─── validation helpers ─────────────────────────────────────────


def submitting(info: ValidationInfo) -> bool:
    return bool(info.context and info.context.get("submit"))


def limit(info: ValidationInfo, name: str, default):
    if info.context and name in info.context:
        return info.context[name]
    return default


def required_text(value: Optional[str], info: ValidationInfo) -> str:
    text = (value or "").strip()
    if submitting(info) and not text:
        raise ValueError("must not be empty")
    return text


def optional_text(
    value: Optional[str], info: ValidationInfo, max_length: Optional[int] = None
) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if submitting(info) and max_length is not None and len(text) > max_length:
        raise ValueError(f"must be at most {max_length} characters")
    return text


def not_in_future(value: date, info: ValidationInfo) -> date:
    if submitting(info) and value > date.today():
        raise ValueError("must not be in the future")
    return value


def in_range(value, info: ValidationInfo, low, high):
    if submitting(info) and not (low <= value <= high):
        raise ValueError(f"must be between {low} and {high}")
    return value


def validate_record(
    cls: Type[R], data: dict[str, Any], limits: Optional[dict[str, Any]] = None
) -> R:
    """Build ``cls`` from ``data`` with the submit-time rules switched on."""
    context = {"submit": True, **(limits or {})}
    try:
        return cls.model_validate(data, context=context)
    except ValidationError as e:
        raise RecordValidationError.from_pydantic(e) from e
