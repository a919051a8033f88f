from __future__ import annotations

import argparse
from typing import Optional

import uvicorn

from ...kernel.settings import load_settings
from ...util.obslog import setup_root_json_logging


def main(argv: Optional[list[str]] = None) -> int:
    settings = load_settings()
    parser = argparse.ArgumentParser(prog="agentrelay router", description="agentrelay message router (FastAPI)")
    parser.add_argument("--host", default=settings.effective_host(), help="Bind host (default: from config)")
    parser.add_argument("--port", type=int, default=settings.effective_port(), help="Bind port (default: from config)")
    parser.add_argument("--reload", action="store_true", help="Enable autoreload (dev)")
    parser.add_argument("--log-level", default="info", help="Log level (default: info)")
    args = parser.parse_args(argv)

    setup_root_json_logging(component="router", level=str(args.log_level))

    try:
        uvicorn.run(
            "agentrelay.ports.web.app:create_app",
            factory=True,
            host=str(args.host),
            port=int(args.port),
            log_level=str(args.log_level).lower(),
            reload=bool(args.reload),
        )
    except (KeyboardInterrupt, SystemExit):
        pass

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
