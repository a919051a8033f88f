"""Message delivery into host terminals.

Each registered instance declares a target kind (via `windowType`); the kind
picks one strategy:

- simple-terminal: log only, nothing is injected.
- hybrid-terminal: clear the input line, type the text, submit.
- session-terminal: interrupt, type the text, submit, then submit a blank line.
- generic (default): tmux status-line banner, then a best-effort `# ...`
  comment line typed into the target.

Text is always typed with `send-keys -l`, and banner text goes through
`tmux.escape_format`, so message content is never expanded as a tmux format.

Strategies raise MissingTargetError / DeliveryIOError; `DeliverySelector.attempt`
turns those into a `DeliveryResult` so callers never see an exception.

Every tmux call and every pacing delay is an await point. Pacing delays sit
between steps because receiving shells drop keys that arrive too early.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from ..contracts.v1 import Instance, MessageType, TargetKind
from ..kernel.errors import DeliveryError, DeliveryIOError, MissingTargetError
from ..runners import tmux
from ..util.time import clock_label


logger = logging.getLogger("agentrelay.delivery")


# ============================================================================
# Rendering
# ============================================================================


def format_message(sender: str, content: str, *, msg_type: MessageType = "message", at: datetime) -> str:
    """Render the text that lands in the target terminal."""
    ts = clock_label(at)
    if msg_type == "completion":
        return f"🤖 [{ts}] {sender} completed work: {content}"
    if msg_type == "system":
        return f"🔔 [{ts}] {sender} (system): {content}"
    return f"💬 [{ts}] {sender}: {content}"


def _single_line(text: str) -> str:
    # A literal newline typed into a shell would submit early.
    return " ".join(part.strip() for part in text.splitlines() if part.strip())


# ============================================================================
# Terminal control surface
# ============================================================================


class TmuxSurface:
    """Async wrapper over the tmux CLI.

    Commands run in a worker thread so the event loop keeps serving other
    requests while tmux works.
    """

    def __init__(self, *, timeout_s: float = 3.0):
        self.timeout_s = timeout_s

    async def _run(self, args: List[str]) -> None:
        try:
            await asyncio.to_thread(tmux.run_checked, args, timeout_s=self.timeout_s)
        except tmux.TmuxCommandError as e:
            raise DeliveryIOError(str(e)) from e

    async def send_keys(self, target: str, *keys: str, literal: bool = False) -> None:
        await self._run(tmux.send_keys_args(target, *keys, literal=literal))

    async def display_message(self, target: str, text: str) -> None:
        await self._run(tmux.display_message_args(target, text))

    async def interrupt(self, target: str) -> None:
        await self._run(tmux.send_keys_args(target, "C-c"))

    async def pause(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)


@dataclass(frozen=True)
class Pacing:
    """Delays (seconds) between terminal steps."""

    step: float = 0.3
    after_interrupt: float = 0.5
    after_comment: float = 0.1


# ============================================================================
# Strategies
# ============================================================================


class DeliveryStrategy:
    kind: TargetKind = "generic"

    async def deliver(self, surface: TmuxSurface, instance: Instance, text: str, *, pacing: Pacing) -> None:
        raise NotImplementedError

    def _log_sent(self, instance: Instance, target: Optional[str]) -> None:
        logger.info(
            f"delivered to {instance.display_name} via {self.kind}",
            extra={"instance_id": instance.id, "delivery_method": self.kind, "target": target or ""},
        )


class SimpleTerminalStrategy(DeliveryStrategy):
    kind: TargetKind = "simple-terminal"

    async def deliver(self, surface: TmuxSurface, instance: Instance, text: str, *, pacing: Pacing) -> None:
        logger.info(
            f"simple terminal {instance.display_name}: {text}",
            extra={"instance_id": instance.id, "delivery_method": self.kind},
        )


class HybridTerminalStrategy(DeliveryStrategy):
    kind: TargetKind = "hybrid-terminal"

    async def deliver(self, surface: TmuxSurface, instance: Instance, text: str, *, pacing: Pacing) -> None:
        target = instance.tmux_session
        if not target:
            raise MissingTargetError(f"{instance.id}: hybrid terminal needs a tmux session")
        await surface.send_keys(target, "C-u")
        await surface.pause(pacing.step)
        line = _single_line(text)
        if line:
            await surface.send_keys(target, line, literal=True)
            await surface.pause(pacing.step)
        await surface.send_keys(target, "Enter")
        self._log_sent(instance, target)


class SessionTerminalStrategy(DeliveryStrategy):
    kind: TargetKind = "session-terminal"

    async def deliver(self, surface: TmuxSurface, instance: Instance, text: str, *, pacing: Pacing) -> None:
        target = instance.tmux_session
        if not target:
            raise MissingTargetError(f"{instance.id}: session terminal needs a tmux session")
        await surface.interrupt(target)
        await surface.pause(pacing.after_interrupt)
        line = _single_line(text)
        if line:
            await surface.send_keys(target, line, literal=True)
            await surface.pause(pacing.step)
        await surface.send_keys(target, "Enter")
        await surface.pause(pacing.step)
        await surface.send_keys(target, "Enter")
        self._log_sent(instance, target)


class GenericStrategy(DeliveryStrategy):
    kind: TargetKind = "generic"

    async def deliver(self, surface: TmuxSurface, instance: Instance, text: str, *, pacing: Pacing) -> None:
        target = instance.any_target
        if not target:
            raise MissingTargetError(f"{instance.id}: no tmux session, window or pane registered")

        try:
            await surface.display_message(target, text)
        except DeliveryIOError as e:
            logger.warning(f"display-message failed: {e}", extra={"instance_id": instance.id, "target": target})

        line = _single_line(text)
        if line:
            try:
                await surface.send_keys(target, f"# {line}", literal=True)
                await surface.pause(pacing.after_comment)
                await surface.send_keys(target, "Enter")
            except DeliveryIOError as e:
                # The banner already showed the message.
                logger.debug(f"comment line not typed: {e}", extra={"instance_id": instance.id, "target": target})

        self._log_sent(instance, target)


STRATEGIES: Dict[TargetKind, DeliveryStrategy] = {
    "simple-terminal": SimpleTerminalStrategy(),
    "hybrid-terminal": HybridTerminalStrategy(),
    "session-terminal": SessionTerminalStrategy(),
    "generic": GenericStrategy(),
}


# ============================================================================
# Selector
# ============================================================================


@dataclass(frozen=True)
class DeliveryResult:
    method: str
    delivered: bool
    error: Optional[str] = None


@dataclass
class DeliverySelector:
    surface: TmuxSurface = field(default_factory=TmuxSurface)
    pacing: Pacing = field(default_factory=Pacing)

    def strategy_for(self, instance: Instance) -> DeliveryStrategy:
        return STRATEGIES.get(instance.target_kind, STRATEGIES["generic"])

    async def deliver(self, instance: Instance, text: str) -> str:
        """Run the instance's strategy; raises DeliveryError. Returns the method tag."""
        strategy = self.strategy_for(instance)
        await strategy.deliver(self.surface, instance, text, pacing=self.pacing)
        return strategy.kind

    async def attempt(self, instance: Instance, text: str) -> DeliveryResult:
        strategy = self.strategy_for(instance)
        try:
            await self.deliver(instance, text)
        except DeliveryError as e:
            logger.error(
                f"delivery to {instance.display_name} failed: {e.message}",
                extra={"instance_id": instance.id, "delivery_method": strategy.kind},
            )
            return DeliveryResult(method=strategy.kind, delivered=False, error=e.message)
        return DeliveryResult(method=strategy.kind, delivered=True)
