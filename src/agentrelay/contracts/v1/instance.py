from __future__ import annotations

from typing import Dict, Literal, Optional

from pydantic import ConfigDict, Field, computed_field, field_validator

from ...util.time import utc_now_iso
from .base import WireModel


TargetKind = Literal["simple-terminal", "hybrid-terminal", "session-terminal", "generic"]

# windowType values sent by existing registration clients.
WINDOW_TYPE_ALIASES: Dict[str, TargetKind] = {
    "simple-terminal": "simple-terminal",
    "vscode-terminal-simple": "simple-terminal",
    "hybrid-terminal": "hybrid-terminal",
    "vscode-terminal-hybrid": "hybrid-terminal",
    "session-terminal": "session-terminal",
    "tmux-session": "session-terminal",
}


def target_kind_for(window_type: Optional[str]) -> TargetKind:
    key = str(window_type or "").strip().lower()
    return WINDOW_TYPE_ALIASES.get(key, "generic")


def _blank_to_none(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


class RegisterRequest(WireModel):
    id: str
    name: Optional[str] = None
    role: str
    tmux_pane: Optional[str] = Field(default=None, alias="tmuxPane")
    tmux_session: Optional[str] = Field(default=None, alias="tmuxSession")
    tmux_window: Optional[str] = Field(default=None, alias="tmuxWindow")
    window_type: Optional[str] = Field(default=None, alias="windowType")

    @field_validator("id", "role")
    @classmethod
    def _required_text(cls, v: str) -> str:
        s = str(v or "").strip()
        if not s:
            raise ValueError("must not be empty")
        return s

    @field_validator("tmux_pane", "tmux_session", "tmux_window", "window_type")
    @classmethod
    def _optional_text(cls, v: Optional[str]) -> Optional[str]:
        return _blank_to_none(v)


class Instance(WireModel):
    id: str
    name: str = ""
    role: str
    tmux_pane: Optional[str] = Field(default=None, alias="tmuxPane")
    tmux_session: Optional[str] = Field(default=None, alias="tmuxSession")
    tmux_window: Optional[str] = Field(default=None, alias="tmuxWindow")
    window_type: Optional[str] = Field(default=None, alias="windowType")
    last_active: str = Field(default_factory=utc_now_iso, alias="lastActive")

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    @computed_field(alias="targetKind")  # type: ignore[prop-decorator]
    @property
    def target_kind(self) -> TargetKind:
        return target_kind_for(self.window_type)

    @property
    def display_name(self) -> str:
        return self.name or self.id

    @property
    def any_target(self) -> Optional[str]:
        """First usable handle, in session > window > pane order."""
        return self.tmux_session or self.tmux_window or self.tmux_pane

    @classmethod
    def from_registration(cls, req: RegisterRequest) -> "Instance":
        return cls(
            id=req.id,
            name=(req.name or "").strip(),
            role=req.role,
            tmux_pane=req.tmux_pane,
            tmux_session=req.tmux_session,
            tmux_window=req.tmux_window,
            window_type=req.window_type,
        )
