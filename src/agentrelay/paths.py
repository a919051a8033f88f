from __future__ import annotations

import os
from pathlib import Path


def relay_home() -> Path:
    env = os.environ.get("AGENTRELAY_HOME", "").strip()
    if env:
        return Path(env).expanduser().resolve()
    return (Path.home() / ".agentrelay").resolve()


def ensure_home() -> Path:
    home = relay_home()
    home.mkdir(parents=True, exist_ok=True)
    return home


def config_path() -> Path:
    return relay_home() / "config.yaml"


def router_pid_path() -> Path:
    return relay_home() / "router.pid"


def router_log_path() -> Path:
    return relay_home() / "router.log"
