from __future__ import annotations

import uuid
from typing import Literal, Optional

from pydantic import ConfigDict, Field, field_validator

from ...util.time import utc_now_iso
from .base import WireModel


MessageType = Literal["message", "completion", "system"]

# Reserved recipients that never resolve through the registry.
TO_ALL = "all"
TO_HUMAN = "human"

# deliveryMethod tag for records that bypass the terminal strategies.
METHOD_WEB_CHAT = "web-chat"


def require_content(v: str) -> str:
    """Message content must carry visible text; it is kept as sent."""
    if not str(v or "").strip():
        raise ValueError("content must not be empty")
    return v


class SendMessageRequest(WireModel):
    from_: str = Field(alias="from")
    to: Optional[str] = None
    content: str
    type: MessageType = "message"
    to_all: bool = Field(default=False, alias="toAll")

    @field_validator("from_")
    @classmethod
    def _sender_required(cls, v: str) -> str:
        s = str(v or "").strip()
        if not s:
            raise ValueError("must not be empty")
        return s

    @field_validator("content")
    @classmethod
    def _content_required(cls, v: str) -> str:
        return require_content(v)

    @field_validator("to")
    @classmethod
    def _strip_to(cls, v: Optional[str]) -> str:
        return str(v or "").strip()


class MessageRecord(WireModel):
    """One History entry. Immutable once appended."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    from_: str = Field(alias="from")
    to: str
    from_display_name: str = Field(alias="fromDisplayName")
    to_display_name: str = Field(alias="toDisplayName")
    content: str
    formatted_content: str = Field(alias="formattedContent")
    delivery_method: str = Field(alias="deliveryMethod")
    type: MessageType = "message"
    to_all: bool = Field(default=False, alias="toAll")
    timestamp: str = Field(default_factory=utc_now_iso)
    delivered: bool = True
    error: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)
