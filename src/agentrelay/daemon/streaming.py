from __future__ import annotations

import logging
from typing import Any, Dict, Protocol


logger = logging.getLogger("agentrelay.realtime")


class JsonSink(Protocol):
    async def send_json(self, data: Any) -> None: ...


class SubscriberSet:
    """Currently open realtime connections.

    Only touched from the event loop, so no lock. A subscriber whose send
    fails is dropped; the rest of the fan-out continues.
    """

    def __init__(self) -> None:
        self._subs: Dict[str, JsonSink] = {}
        self._seq = 0

    def __len__(self) -> int:
        return len(self._subs)

    def add(self, sink: JsonSink) -> str:
        self._seq += 1
        sub_id = f"s{self._seq:x}"
        self._subs[sub_id] = sink
        logger.info(f"subscriber connected ({len(self._subs)} open)", extra={"subscriber": sub_id})
        return sub_id

    def discard(self, sub_id: str) -> None:
        if self._subs.pop(sub_id, None) is not None:
            logger.info(f"subscriber closed ({len(self._subs)} open)", extra={"subscriber": sub_id})

    async def publish(self, payload: Dict[str, Any]) -> int:
        """Send `payload` to every subscriber; returns how many received it."""
        sent = 0
        for sub_id, sink in list(self._subs.items()):
            try:
                await sink.send_json(payload)
                sent += 1
            except Exception as e:
                logger.warning(f"dropping subscriber after failed send: {e}", extra={"subscriber": sub_id})
                self._subs.pop(sub_id, None)
        return sent
