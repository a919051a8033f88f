from __future__ import annotations

from typing import List, Literal

from pydantic import Field, field_validator

from .base import WireModel
from .instance import Instance
from .message import TO_HUMAN, MessageRecord, MessageType, require_content


class RealtimeSendMessage(WireModel):
    """Client -> server frame on the realtime channel."""

    type: Literal["send_message"]
    from_: str = Field(default=TO_HUMAN, alias="from")
    to: str
    content: str
    message_type: MessageType = Field(default="message", alias="messageType")

    @field_validator("content")
    @classmethod
    def _content_required(cls, v: str) -> str:
        return require_content(v)


class InitEvent(WireModel):
    type: Literal["init"] = "init"
    instances: List[Instance] = Field(default_factory=list)
    messages: List[MessageRecord] = Field(default_factory=list)


class NewMessageEvent(WireModel):
    type: Literal["new_message"] = "new_message"
    message: MessageRecord


class ErrorEvent(WireModel):
    type: Literal["error"] = "error"
    message: str
