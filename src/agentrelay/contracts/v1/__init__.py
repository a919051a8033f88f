from __future__ import annotations

from .base import WireModel
from .instance import WINDOW_TYPE_ALIASES, Instance, RegisterRequest, TargetKind, target_kind_for
from .message import (
    METHOD_WEB_CHAT,
    TO_ALL,
    TO_HUMAN,
    MessageRecord,
    MessageType,
    SendMessageRequest,
)
from .realtime import ErrorEvent, InitEvent, NewMessageEvent, RealtimeSendMessage

__all__ = [
    "ErrorEvent",
    "InitEvent",
    "Instance",
    "METHOD_WEB_CHAT",
    "MessageRecord",
    "MessageType",
    "NewMessageEvent",
    "RealtimeSendMessage",
    "RegisterRequest",
    "SendMessageRequest",
    "TO_ALL",
    "TO_HUMAN",
    "TargetKind",
    "WINDOW_TYPE_ALIASES",
    "WireModel",
    "target_kind_for",
]
