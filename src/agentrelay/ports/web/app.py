from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse

from ... import __version__
from ...contracts.v1 import ErrorEvent, RegisterRequest, SendMessageRequest
from ...daemon.router import MessageRouter
from ...kernel.errors import RelayError, ValidationError
from ...kernel.settings import load_settings
from ...util.time import parse_since
from .chat_page import CHAT_PAGE


logger = logging.getLogger("agentrelay.router")


def _error_response(status_code: int, code: str, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message, "code": code, **extra})


def _failure_prefix(path: str) -> str:
    if path.rstrip("/") == "/register":
        return "Registration failed"
    if path.rstrip("/") == "/message":
        return "Message processing failed"
    return "Invalid request"


def create_app(router: Optional[MessageRouter] = None) -> FastAPI:
    relay = router or MessageRouter()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        settings = load_settings()
        url = settings.router_url()
        logger.info(f"message router started on {url}")
        logger.info(f"register instances: POST {url}/register; send: POST {url}/message; chat: {url}/chat")
        yield
        logger.info("message router stopped")

    app = FastAPI(title="agentrelay", version=__version__, lifespan=lifespan)
    app.state.router = relay

    @app.exception_handler(RelayError)
    async def _relay_error(request: Request, exc: RelayError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.url.path}: {exc.message}")
        else:
            logger.info(f"{request.url.path}: {exc.message}")
        return _error_response(exc.status_code, exc.code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def _invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [{"loc": [str(x) for x in e.get("loc", ())], "msg": str(e.get("msg", ""))} for e in exc.errors()]
        prefix = _failure_prefix(request.url.path)
        logger.warning(f"{prefix}: {errors}")
        return _error_response(400, ValidationError.code, prefix, errors=errors)

    @app.get("/", response_class=PlainTextResponse)
    async def index() -> str:
        return "agentrelay message router"

    @app.get("/chat", response_class=HTMLResponse)
    async def chat() -> str:
        return CHAT_PAGE

    @app.post("/register")
    async def register(req: RegisterRequest) -> Dict[str, Any]:
        inst = relay.register(req)
        return {"success": True, "message": f"{inst.display_name} registered successfully"}

    @app.post("/message")
    async def message(req: SendMessageRequest) -> JSONResponse:
        result = await relay.send(req)
        # Broadcast partial failures are reported per recipient in `results`.
        ok = result.success or result.broadcast
        return JSONResponse(status_code=200 if ok else 500, content=result.to_wire())

    @app.get("/messages")
    async def messages(instance: str = "", since: str = "") -> Dict[str, Any]:
        since_dt = None
        if since.strip():
            since_dt = parse_since(since)
            if since_dt is None:
                raise ValidationError(f"invalid since: {since!r}")
        page, total = relay.list_messages(instance=instance.strip() or None, since=since_dt)
        return {"messages": [r.to_wire() for r in page], "total": total}

    @app.get("/status")
    async def status() -> Dict[str, Any]:
        return relay.status()

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return relay.health()

    @app.websocket("/{path:path}")
    async def realtime(websocket: WebSocket, path: str) -> None:
        await websocket.accept()
        sub_id = relay.subscribers.add(websocket)
        try:
            await websocket.send_json(relay.init_event().to_wire())
            while True:
                raw = await websocket.receive_text()
                try:
                    frame = json.loads(raw)
                except ValueError:
                    await websocket.send_json(ErrorEvent(message="Frame is not valid JSON").to_wire())
                    continue
                reply = await relay.handle_realtime(frame)
                if reply is not None:
                    await websocket.send_json(reply.to_wire())
        except WebSocketDisconnect:
            pass
        finally:
            relay.subscribers.discard(sub_id)

    return app
