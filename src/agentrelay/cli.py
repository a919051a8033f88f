from __future__ import annotations

import argparse
import json
import os
import signal
import subprocess
import sys
import time
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import httpx

from . import __version__
from .kernel.settings import Settings, load_settings, save_settings
from .paths import config_path, ensure_home, router_log_path, router_pid_path
from .runners import tmux


HEALTH_TIMEOUT_S = 2.0


def _print_json(obj: Any) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2))


def _router_url(args: argparse.Namespace) -> str:
    explicit = str(getattr(args, "router_url", "") or "").strip()
    return explicit.rstrip("/") if explicit else load_settings().router_url()


def _call(method: str, url: str, *, payload: Optional[Dict[str, Any]] = None, timeout: float = 10.0) -> Tuple[int, Dict[str, Any]]:
    """Returns (status, body); status 0 means the router could not be reached."""
    try:
        resp = httpx.request(method, url, json=payload, timeout=timeout)
    except httpx.HTTPError as e:
        return 0, {"success": False, "message": f"router unreachable: {e}"}
    try:
        body = resp.json()
    except ValueError:
        body = {"success": resp.is_success, "message": resp.text}
    return resp.status_code, body if isinstance(body, dict) else {"result": body}


def router_running(url: str) -> bool:
    try:
        resp = httpx.get(f"{url}/health", timeout=HEALTH_TIMEOUT_S)
    except httpx.HTTPError:
        return False
    return resp.is_success


def _read_pid() -> int:
    try:
        return int(router_pid_path().read_text(encoding="utf-8").strip())
    except (OSError, ValueError):
        return 0


def _pid_alive(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def _spawn_router() -> int:
    ensure_home()
    log_f = router_log_path().open("a", encoding="utf-8")
    p = subprocess.Popen(
        [sys.executable, "-m", "agentrelay.ports.web.main"],
        stdout=log_f,
        stderr=log_f,
        stdin=subprocess.DEVNULL,
        env=os.environ.copy(),
        start_new_session=True,
        cwd=str(Path.cwd()),
    )
    router_pid_path().write_text(str(p.pid), encoding="utf-8")
    return int(p.pid)


def _instance_defaults(role: str, args: argparse.Namespace) -> Dict[str, str]:
    return {
        "id": role,
        "name": str(args.name or "").strip() or f"{role[:1].upper()}{role[1:]} Instance",
        "session": str(args.session or "").strip() or f"{role}-session",
    }


# ----------------------------------------------------------------------------
# router
# ----------------------------------------------------------------------------


def cmd_router(args: argparse.Namespace) -> int:
    url = load_settings().router_url()

    if args.action == "run":
        from .ports.web.main import main as run_router

        return run_router(["--log-level", str(args.log_level)])

    if args.action == "status":
        if router_running(url):
            print(f"router: running at {url}")
            return 0
        print(f"router: not running at {url}")
        return 1

    if args.action == "start":
        if router_running(url):
            print(f"router: already running at {url}")
            return 0
        pid = _spawn_router()
        for _ in range(50):
            time.sleep(0.1)
            if router_running(url):
                print(f"router: started pid={pid} at {url}")
                return 0
        print(f"router: failed to start (see {router_log_path()})", file=sys.stderr)
        return 1

    if args.action == "stop":
        pid = _read_pid()
        if not _pid_alive(pid):
            print("router: not running")
            router_pid_path().unlink(missing_ok=True)
            return 0
        os.kill(pid, signal.SIGTERM)
        deadline = time.time() + 5.0
        while time.time() < deadline and _pid_alive(pid):
            time.sleep(0.1)
        if _pid_alive(pid):
            print(f"router: pid={pid} still running", file=sys.stderr)
            return 1
        router_pid_path().unlink(missing_ok=True)
        print("router: stopped")
        return 0

    return 2


# ----------------------------------------------------------------------------
# instances
# ----------------------------------------------------------------------------


def cmd_register(args: argparse.Namespace) -> int:
    work_dir = Path(args.path).expanduser().resolve()
    if not work_dir.exists():
        print(f"error: path does not exist: {work_dir}", file=sys.stderr)
        return 2

    url = _router_url(args)
    if not router_running(url):
        print(f"error: router is not running at {url} (start it with: agentrelay router start)", file=sys.stderr)
        return 1

    d = _instance_defaults(str(args.role), args)
    status, body = _call(
        "POST",
        f"{url}/register",
        payload={
            "id": d["id"],
            "name": d["name"],
            "role": str(args.role),
            "tmuxSession": d["session"],
            "windowType": str(args.type),
        },
    )
    _print_json(body)
    return 0 if status == 200 else 1


def cmd_start(args: argparse.Namespace) -> int:
    work_dir = Path(args.path).expanduser().resolve()
    if not work_dir.exists():
        print(f"error: path does not exist: {work_dir}", file=sys.stderr)
        return 2

    role = str(args.role)
    d = _instance_defaults(role, args)
    session = d["session"]

    try:
        tmux.new_session(session, cwd=work_dir)
        tmux.export_env(
            session,
            {
                "AGENTRELAY_INSTANCE_ID": d["id"],
                "AGENTRELAY_INSTANCE_NAME": d["name"],
                "AGENTRELAY_INSTANCE_ROLE": role,
            },
        )
        tmux.run_line(session, "clear")
    except tmux.TmuxCommandError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    print(f"tmux session '{session}' ready in {work_dir}")

    url = _router_url(args)
    if router_running(url):
        status, body = _call(
            "POST",
            f"{url}/register",
            payload={"id": d["id"], "name": d["name"], "role": role, "tmuxSession": session, "windowType": "session-terminal"},
        )
        print(body.get("message") or json.dumps(body))
        if status != 200:
            return 1
    else:
        print(f"warning: router is not running at {url}; instance not registered", file=sys.stderr)

    command = [c for c in str(args.command or "").split() if c]
    try:
        tmux.start_command(session, command)
    except tmux.TmuxCommandError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    if args.no_attach:
        print(f"attach with: tmux attach -t {session}")
        return 0
    return tmux.attach_session(session)


def cmd_send(args: argparse.Namespace) -> int:
    url = _router_url(args)
    status, body = _call(
        "POST",
        f"{url}/message",
        payload={"from": str(args.sender), "to": str(args.to), "content": str(args.content), "type": str(args.type)},
    )
    _print_json(body)
    return 0 if status == 200 else 1


def cmd_status(args: argparse.Namespace) -> int:
    url = _router_url(args)
    h_status, health = _call("GET", f"{url}/health", timeout=HEALTH_TIMEOUT_S)
    if h_status != 200:
        print(f"router: not running at {url}")
        return 1
    _, status = _call("GET", f"{url}/status")
    print(f"router: {health.get('status')} at {url} (uptime {float(health.get('uptime') or 0):.0f}s)")
    print(f"instances: {health.get('instances')}  messages: {status.get('totalMessages')}")
    for inst in status.get("instances") or []:
        target = inst.get("tmuxSession") or inst.get("tmuxWindow") or inst.get("tmuxPane") or "N/A"
        print(f"  - {inst.get('name') or inst.get('id')} [{inst.get('role')}] {inst.get('targetKind')} -> {target}")
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    url = _router_url(args)
    code, status = _call("GET", f"{url}/status")
    if code != 200:
        print(f"router: not running at {url}")
        return 1
    _print_json(status.get("instances") or [])
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    if args.reset:
        save_settings(Settings())
        print(f"config reset: {config_path()}")
        return 0

    settings = load_settings()
    changed = False
    if args.set_port is not None:
        settings.router.port = int(args.set_port)
        changed = True
    if args.set_host:
        settings.router.host = str(args.set_host).strip()
        changed = True
    if changed:
        path = save_settings(settings)
        print(f"config saved: {path}")

    if args.show or not changed:
        _print_json({"path": str(config_path()), "config": settings.to_dict(), "effective_url": settings.router_url()})
    return 0


def cmd_version(args: argparse.Namespace) -> int:
    print(__version__)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="agentrelay", description="agentrelay: message relay between tmux-hosted agents")
    sub = p.add_subparsers(dest="cmd", required=True)

    def _with_router_url(sp: argparse.ArgumentParser) -> None:
        sp.add_argument("--router-url", default="", help="Router URL (default: from config)")

    p_router = sub.add_parser("router", help="Run or manage the message router")
    p_router.add_argument("action", choices=["run", "start", "stop", "status"], help="Action")
    p_router.add_argument("--log-level", default="info", help="Log level for `run` (default: info)")
    p_router.set_defaults(func=cmd_router)

    p_register = sub.add_parser("register", help="Register an instance with the router")
    p_register.add_argument("path", help="Working directory of the instance")
    p_register.add_argument("role", help="Role (also used as the instance id): main, ui, api, ...")
    p_register.add_argument("-n", "--name", default="", help="Display name")
    p_register.add_argument("-s", "--session", default="", help="tmux session (default: <role>-session)")
    p_register.add_argument("-t", "--type", default="tmux-session", help="windowType (default: tmux-session)")
    _with_router_url(p_register)
    p_register.set_defaults(func=cmd_register)

    p_start = sub.add_parser("start", help="Create a tmux session for an instance and register it")
    p_start.add_argument("path", help="Working directory of the instance")
    p_start.add_argument("role", help="Role (also used as the instance id)")
    p_start.add_argument("-n", "--name", default="", help="Display name")
    p_start.add_argument("-s", "--session", default="", help="tmux session (default: <role>-session)")
    p_start.add_argument("--command", default="claude", help="Agent command to launch (default: claude)")
    p_start.add_argument("--no-attach", action="store_true", help="Do not attach to the session")
    _with_router_url(p_start)
    p_start.set_defaults(func=cmd_start)

    p_send = sub.add_parser("send", help="Send a message through the router")
    p_send.add_argument("to", help="Recipient id, 'main', 'all' or 'human'")
    p_send.add_argument("content", help="Message text")
    p_send.add_argument("--from", dest="sender", default=os.environ.get("AGENTRELAY_INSTANCE_ID", "cli"), help="Sender id")
    p_send.add_argument("--type", choices=["message", "completion", "system"], default="message")
    _with_router_url(p_send)
    p_send.set_defaults(func=cmd_send)

    p_status = sub.add_parser("status", help="Show router health and registered instances")
    _with_router_url(p_status)
    p_status.set_defaults(func=cmd_status)

    p_list = sub.add_parser("list", help="List registered instances as JSON")
    _with_router_url(p_list)
    p_list.set_defaults(func=cmd_list)

    p_config = sub.add_parser("config", help="Show or change router configuration")
    p_config.add_argument("--show", action="store_true", help="Show current configuration")
    p_config.add_argument("--set-port", type=int, default=None, help="Set router port")
    p_config.add_argument("--set-host", default="", help="Set router host")
    p_config.add_argument("--reset", action="store_true", help="Reset to defaults")
    p_config.set_defaults(func=cmd_config)

    p_ver = sub.add_parser("version", help="Show version")
    p_ver.set_defaults(func=cmd_version)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
