"""
Pydantic schemas for the HTTP API.

Request bodies are validated with the ``*Request`` models; ORM rows are
rendered through the ``*Out`` models, which emit the camelCase keys the
single-page client expects.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from utils.dates import ensure_utc, parse_iso_datetime

UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


def dump(model: type[BaseModel], obj: Any) -> Dict[str, Any]:
    """Render an ORM object through an output schema as JSON-ready camelCase."""
    return model.model_validate(obj).model_dump(by_alias=True, mode="json")


class _ApiModel(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Requests
# ═══════════════════════════════════════════════════════════════════════════════


class RegisterRequest(_ApiModel):
    username: str = Field(..., min_length=2, max_length=64)
    password: str = Field(..., min_length=4, max_length=128)
    email: str = Field(..., min_length=5, max_length=255)
    display_name: Optional[str] = Field(default=None, max_length=128)
    profile_image: Optional[str] = None


class LoginRequest(_ApiModel):
    username: str
    password: str


class SendEmailRequest(_ApiModel):
    to: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)


class EventRequest(_ApiModel):
    title: str = Field(..., min_length=1)
    start_time: UtcDatetime
    end_time: UtcDatetime
    description: Optional[str] = None
    location: Optional[str] = None
    is_all_day: bool = False
    tags: List[str] = Field(default_factory=list)
    attendees: List[Dict[str, Any]] = Field(default_factory=list)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_timestamp(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_iso_datetime(value)
        return value

    @field_validator("end_time")
    @classmethod
    def end_after_start(cls, value: datetime, info) -> datetime:
        start = info.data.get("start_time")
        if start is not None and value < start:
            raise ValueError("endTime must not be before startTime")
        return value


# ═══════════════════════════════════════════════════════════════════════════════
# Responses
# ═══════════════════════════════════════════════════════════════════════════════


class UserOut(_ApiModel):
    id: int
    username: str
    email: str
    display_name: Optional[str] = None
    profile_image: Optional[str] = None
    preferences: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[UtcDatetime] = None

    @field_validator("preferences", mode="before")
    @classmethod
    def default_preferences(cls, value: Any) -> Any:
        return value or {}


class EmailOut(_ApiModel):
    id: int
    user_id: int
    message_id: str
    sender: str = Field(serialization_alias="from")
    recipient: str = Field(serialization_alias="to")
    subject: Optional[str] = None
    snippet: Optional[str] = None
    body: Optional[str] = None
    received_at: UtcDatetime
    is_read: bool = False
    is_priority: bool = False
    labels: List[str] = Field(default_factory=list)
    ai_summary: Optional[str] = None
    conversation_id: Optional[str] = None

    @field_validator("labels", mode="before")
    @classmethod
    def default_labels(cls, value: Any) -> Any:
        return value or []


class CalendarEventOut(_ApiModel):
    id: int
    user_id: int
    event_id: str
    title: str
    description: Optional[str] = None
    start_time: UtcDatetime
    end_time: UtcDatetime
    location: Optional[str] = None
    attendees: List[Dict[str, Any]] = Field(default_factory=list)
    is_all_day: bool = False
    tags: List[str] = Field(default_factory=list)

    @field_validator("attendees", "tags", mode="before")
    @classmethod
    def default_lists(cls, value: Any) -> Any:
        return value or []


class SmartReplyOut(_ApiModel):
    id: int
    user_id: int
    email_id: int
    reply_text: str
    reply_tone: Optional[str] = None
    status: Optional[str] = None
    created_at: Optional[UtcDatetime] = None


class FreeBlockOut(_ApiModel):
    start_time: UtcDatetime
    end_time: UtcDatetime
    duration_minutes: int
    description: str = "Free Time Block"
    is_free: bool = True
