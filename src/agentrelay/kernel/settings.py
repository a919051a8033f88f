"""Router configuration.

Stored in <home>/config.yaml:

    router:
      host: localhost
      port: 3333
    defaults:
      instance_role: main
      message_target: main

AGENTRELAY_HOST / AGENTRELAY_PORT override the file.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml  # type: ignore

from ..paths import config_path
from ..util.fs import atomic_write_text


logger = logging.getLogger("agentrelay.settings")

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 3333


@dataclass
class RouterSettings:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT


@dataclass
class DefaultSettings:
    instance_role: str = "main"
    message_target: str = "main"


@dataclass
class Settings:
    router: RouterSettings = field(default_factory=RouterSettings)
    defaults: DefaultSettings = field(default_factory=DefaultSettings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "router": {"host": self.router.host, "port": self.router.port},
            "defaults": {
                "instance_role": self.defaults.instance_role,
                "message_target": self.defaults.message_target,
            },
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Settings":
        s = cls()
        router = d.get("router") if isinstance(d.get("router"), dict) else {}
        defaults = d.get("defaults") if isinstance(d.get("defaults"), dict) else {}
        if router.get("host"):
            s.router.host = str(router["host"]).strip() or DEFAULT_HOST
        if router.get("port") is not None:
            s.router.port = int(router["port"])
        if defaults.get("instance_role"):
            s.defaults.instance_role = str(defaults["instance_role"])
        if defaults.get("message_target"):
            s.defaults.message_target = str(defaults["message_target"])
        return s

    def effective_host(self) -> str:
        env = os.environ.get("AGENTRELAY_HOST", "").strip()
        return env or self.router.host

    def effective_port(self) -> int:
        env = os.environ.get("AGENTRELAY_PORT", "").strip()
        if env:
            try:
                return int(env)
            except ValueError:
                logger.warning(f"ignoring non-integer AGENTRELAY_PORT={env!r}")
        return self.router.port

    def router_url(self) -> str:
        return f"http://{self.effective_host()}:{self.effective_port()}"


def load_settings(path: Optional[Path] = None) -> Settings:
    p = path or config_path()
    if not p.exists():
        return Settings()
    try:
        doc = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        if not isinstance(doc, dict):
            raise ValueError("config root must be a mapping")
        return Settings.from_dict(doc)
    except (OSError, ValueError, TypeError, yaml.YAMLError) as e:
        logger.warning(f"could not load config from {p}, using defaults: {e}")
        return Settings()


def save_settings(settings: Settings, path: Optional[Path] = None) -> Path:
    p = path or config_path()
    atomic_write_text(p, yaml.safe_dump(settings.to_dict(), sort_keys=False, allow_unicode=True))
    return p
