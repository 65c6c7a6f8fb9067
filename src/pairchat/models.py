"""Data models for profiles, conversations and messages.

Each model maps one-to-one onto a stored document. Field names in the
stored form are camelCase and timestamps are epoch milliseconds.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def to_millis(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - _EPOCH) // timedelta(milliseconds=1)


def from_millis(value: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=value)


def utcnow() -> datetime:
    """Current UTC time at the millisecond precision documents keep."""
    return from_millis(to_millis(datetime.now(timezone.utc)))


def _coerce_timestamp(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return from_millis(int(value))
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class _Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class Profile(_Document):
    id: str
    display_name: str = Field("", alias="displayName")
    email: str = ""
    bio: str = ""
    avatar_data: str = Field("", alias="avatarData")
    updated_at: datetime | None = Field(None, alias="updatedAt")

    @field_validator("updated_at", mode="before")
    @classmethod
    def _parse_updated_at(cls, value: Any) -> Any:
        return _coerce_timestamp(value)

    @field_serializer("updated_at")
    def _dump_updated_at(self, value: datetime | None) -> int | None:
        return None if value is None else to_millis(value)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> Profile:
        return cls.model_validate(doc)


class ProfilePatch(_Document):
    """Fields to change on a profile; ``None`` means leave untouched."""

    display_name: str | None = Field(None, alias="displayName")
    bio: str | None = None
    avatar_data: str | None = Field(None, alias="avatarData")

    def to_update(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Conversation(_Document):
    id: str
    participants: list[str]
    last_message_text: str | None = Field(None, alias="lastMessageText")
    last_message_at: datetime | None = Field(None, alias="lastMessageAt")

    @field_validator("last_message_at", mode="before")
    @classmethod
    def _parse_last_message_at(cls, value: Any) -> Any:
        return _coerce_timestamp(value)

    @field_serializer("last_message_at")
    def _dump_last_message_at(self, value: datetime | None) -> int | None:
        return None if value is None else to_millis(value)

    def other_participant(self, self_id: str) -> str:
        others = [p for p in self.participants if p != self_id]
        return others[0] if others else self_id

    def to_document(self) -> dict[str, Any]:
        # The id is the document key, not a field
        return self.model_dump(by_alias=True, exclude_none=True, exclude={"id"})

    @classmethod
    def from_document(cls, doc: dict[str, Any], conversation_id: str) -> Conversation:
        return cls.model_validate({**doc, "id": conversation_id})


class Message(_Document):
    sender: str = Field("", alias="from")
    receiver: str = Field("", alias="to")
    content: str = ""
    sent_at: datetime = Field(alias="sentAt")

    @field_validator("sent_at", mode="before")
    @classmethod
    def _parse_sent_at(cls, value: Any) -> Any:
        return _coerce_timestamp(value)

    @field_serializer("sent_at")
    def _dump_sent_at(self, value: datetime) -> int:
        return to_millis(value)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> Message:
        return cls.model_validate(doc)
