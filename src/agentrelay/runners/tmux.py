from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Tuple


logger = logging.getLogger("agentrelay.tmux")


class TmuxCommandError(RuntimeError):
    def __init__(self, args: List[str], code: int, stderr: str):
        self.args_list = list(args)
        self.code = code
        self.stderr = stderr
        detail = stderr.strip() or f"exit {code}"
        super().__init__(f"tmux {' '.join(args[:1])} failed: {detail}")


def _run_tmux(args: List[str], *, timeout_s: float = 3.0) -> Tuple[int, str, str]:
    try:
        p = subprocess.run(
            ["tmux", *args],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            timeout=timeout_s,
            check=False,
        )
        return int(p.returncode), (p.stdout or ""), (p.stderr or "")
    except subprocess.TimeoutExpired:
        return 124, "", "tmux timeout"
    except OSError as e:
        return 127, "", str(e)


def run_checked(args: List[str], *, timeout_s: float = 3.0) -> str:
    code, out, err = _run_tmux(args, timeout_s=timeout_s)
    if code != 0:
        logger.debug(f"tmux {args!r} exited {code}: {err.strip()}")
        raise TmuxCommandError(args, code, err)
    return out


def send_keys_args(target: str, *keys: str, literal: bool = False) -> List[str]:
    args = ["send-keys", "-t", target]
    if literal:
        args.append("-l")
    if keys and keys[0].startswith("-"):
        args.append("--")
    args.extend(keys)
    return args


def escape_format(text: str) -> str:
    """Make `text` print as-is where tmux expects a format string.

    `#(...)` in a format runs a shell command and `#{...}` expands variables;
    doubling every `#` leaves only literal `#` characters.
    """
    return text.replace("#", "##")


def display_message_args(target: str, text: str) -> List[str]:
    msg = escape_format(text)
    args = ["display-message", "-t", target]
    if msg.startswith("-"):
        args.append("--")
    args.append(msg)
    return args


def has_session(session: str) -> bool:
    code, _, _ = _run_tmux(["has-session", "-t", session])
    return code == 0


def kill_session(session: str) -> None:
    _run_tmux(["kill-session", "-t", session])


def new_session(session: str, *, cwd: Path) -> None:
    """Create a detached session, replacing any session with the same name."""
    if has_session(session):
        kill_session(session)
    cwd_path = cwd.expanduser().resolve()
    if not cwd_path.exists():
        cwd_path = Path.cwd()
    run_checked(["new-session", "-d", "-s", session, "-c", str(cwd_path)])


def run_line(target: str, line: str) -> None:
    run_checked(send_keys_args(target, line, literal=True))
    run_checked(send_keys_args(target, "Enter"))


def export_env(target: str, env: Dict[str, str]) -> None:
    for k, v in env.items():
        if not k.strip():
            continue
        run_line(target, f"export {k.strip()}={shlex.quote(v)}")


def attach_session(session: str) -> int:
    return subprocess.call(["tmux", "attach", "-t", session])


def start_command(target: str, command: Optional[List[str]]) -> None:
    cmd = [c for c in (command or []) if c.strip()]
    if not cmd:
        return
    run_line(target, " ".join(shlex.quote(x) for x in cmd))
