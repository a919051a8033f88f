"""Message routing: registry lookups, delivery, history, realtime fan-out."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from ..contracts.v1 import (
    METHOD_WEB_CHAT,
    TO_ALL,
    TO_HUMAN,
    ErrorEvent,
    InitEvent,
    Instance,
    MessageRecord,
    MessageType,
    NewMessageEvent,
    RealtimeSendMessage,
    RegisterRequest,
    SendMessageRequest,
)
from ..kernel.errors import NotFoundError
from ..kernel.history import MESSAGES_PAGE_LIMIT, STATUS_RECENT_LIMIT, MessageHistory
from ..kernel.registry import InstanceRegistry
from ..util.time import to_utc_iso, utc_now
from .delivery import DeliverySelector, format_message
from .streaming import SubscriberSet


logger = logging.getLogger("agentrelay.router")


@dataclass(frozen=True)
class SendResult:
    success: bool
    message: str
    records: List[MessageRecord] = field(default_factory=list)
    broadcast: bool = False

    def to_wire(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"success": self.success, "message": self.message}
        if self.broadcast:
            out["results"] = [{"to": r.to, "delivered": r.delivered, "error": r.error} for r in self.records]
        return out


class MessageRouter:
    def __init__(
        self,
        *,
        registry: Optional[InstanceRegistry] = None,
        history: Optional[MessageHistory] = None,
        selector: Optional[DeliverySelector] = None,
        subscribers: Optional[SubscriberSet] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.registry = registry or InstanceRegistry()
        self.history = history or MessageHistory()
        self.selector = selector or DeliverySelector()
        self.subscribers = subscribers or SubscriberSet()
        self._clock = clock
        self._started = time.monotonic()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, req: RegisterRequest) -> Instance:
        inst = self.registry.register(req)
        logger.info(
            f"registered {inst.display_name} ({inst.role}) target={inst.any_target or 'unknown'} kind={inst.target_kind}",
            extra={"instance_id": inst.id, "target": inst.any_target or ""},
        )
        return inst

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def send(self, req: SendMessageRequest) -> SendResult:
        to = req.to or ""
        logger.info(f"routing message from {req.from_} to {to or 'main'}")
        if req.to_all or to == TO_ALL:
            return await self.broadcast(req.from_, req.content, msg_type=req.type)
        if to == TO_HUMAN:
            await self.record_for_human(req.from_, req.content, msg_type=req.type)
            return SendResult(success=True, message="Message delivered")

        target = self.registry.resolve(to)
        if target is None:
            raise NotFoundError("Target instance not found")
        record = await self.deliver_to(target, req.from_, req.content, msg_type=req.type)
        if record.delivered:
            return SendResult(success=True, message="Message delivered", records=[record])
        return SendResult(success=False, message="Message delivery failed", records=[record])

    async def broadcast(self, sender: str, content: str, *, msg_type: MessageType = "message") -> SendResult:
        """Deliver to every registered instance, one after another."""
        targets = self.registry.snapshot()
        if not targets:
            raise NotFoundError("No instances registered")
        records: List[MessageRecord] = []
        for inst in targets:
            records.append(await self.deliver_to(inst, sender, content, msg_type=msg_type, to_all=True))
        ok = sum(1 for r in records if r.delivered)
        return SendResult(
            success=ok == len(records),
            message=f"Broadcast delivered to {ok}/{len(records)} instances",
            records=records,
            broadcast=True,
        )

    async def deliver_to(
        self,
        target: Instance,
        sender: str,
        content: str,
        *,
        msg_type: MessageType = "message",
        to_all: bool = False,
    ) -> MessageRecord:
        formatted = format_message(sender, content, msg_type=msg_type, at=self._clock())
        result = await self.selector.attempt(target, formatted)
        # Stamped at append time: History order is timestamp order even with
        # several deliveries in flight.
        now = self._clock()
        record = MessageRecord(
            from_=sender,
            to=target.id,
            from_display_name=self.registry.display_name(sender),
            to_display_name=target.display_name,
            content=content,
            formatted_content=formatted,
            delivery_method=result.method,
            type=msg_type,
            to_all=to_all,
            timestamp=to_utc_iso(now),
            delivered=result.delivered,
            error=result.error,
        )
        await self._append(record)
        return record

    async def record_for_human(self, sender: str, content: str, *, msg_type: MessageType = "message") -> MessageRecord:
        now = self._clock()
        record = MessageRecord(
            from_=sender,
            to=TO_HUMAN,
            from_display_name=self.registry.display_name(sender),
            to_display_name=self.registry.display_name(TO_HUMAN),
            content=content,
            formatted_content=format_message(sender, content, msg_type=msg_type, at=now),
            delivery_method=METHOD_WEB_CHAT,
            type=msg_type,
            timestamp=to_utc_iso(now),
            delivered=True,
        )
        await self._append(record)
        return record

    async def _append(self, record: MessageRecord) -> None:
        self.history.append(record)
        logger.debug(
            f"history append delivered={record.delivered}",
            extra={"message_id": record.id, "instance_id": record.to, "delivery_method": record.delivery_method},
        )
        await self.subscribers.publish(NewMessageEvent(message=record).to_wire())

    # ------------------------------------------------------------------
    # Realtime channel
    # ------------------------------------------------------------------

    def init_event(self) -> InitEvent:
        return InitEvent(instances=self.registry.snapshot(), messages=self.history.recent(MESSAGES_PAGE_LIMIT))

    async def handle_realtime(self, frame: Any) -> Optional[ErrorEvent]:
        """Handle one client frame; returns an error event for the sender, if any."""
        if not isinstance(frame, dict) or frame.get("type") != "send_message":
            return ErrorEvent(message="Unsupported frame")
        try:
            msg = RealtimeSendMessage.model_validate(frame)
        except PydanticValidationError:
            return ErrorEvent(message="Invalid send_message frame")

        to = msg.to.strip()
        if to == TO_HUMAN:
            await self.record_for_human(msg.from_, msg.content, msg_type=msg.message_type)
            return None
        if to == TO_ALL:
            try:
                await self.broadcast(msg.from_, msg.content, msg_type=msg.message_type)
            except NotFoundError as e:
                return ErrorEvent(message=e.message)
            return None
        target = self.registry.resolve(to)
        if target is None:
            return ErrorEvent(message="Target instance not found")
        await self.deliver_to(target, msg.from_, msg.content, msg_type=msg.message_type)
        return None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_messages(
        self, *, instance: Optional[str] = None, since: Optional[datetime] = None
    ) -> Tuple[List[MessageRecord], int]:
        return self.history.query(instance=instance, since=since, limit=MESSAGES_PAGE_LIMIT)

    def status(self) -> Dict[str, Any]:
        return {
            "instances": [i.to_wire() for i in self.registry.snapshot()],
            "totalMessages": len(self.history),
            "recentMessages": [r.to_wire() for r in self.history.recent(STATUS_RECENT_LIMIT)],
        }

    def uptime(self) -> float:
        return time.monotonic() - self._started

    def health(self) -> Dict[str, Any]:
        return {"status": "healthy", "instances": len(self.registry), "uptime": round(self.uptime(), 3)}
