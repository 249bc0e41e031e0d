# app.py
# Figma Relay — HTTP/WebSocket bridge between agents and the Figma plugin (FastAPI)
#
# Endpoints:
#   GET  /                       (status probe, unauthenticated)
#   GET  /health                 (alias of /)
#   GET  /status                 (clients + pending requests + cache sizes)
#   POST /api/figma/create       (publish, don't wait)
#   GET  /api/figma/selection    (latest cached selection)
#   GET  /api/figma/selection/all
#   GET  /api/figma/variables    (latest cached variables)
#   GET  /api/figma/variables/all
#   POST /api/figma/selection/request  (ask the plugin, await reply)
#   POST /api/figma/update             (await reply)
#   POST /api/figma/replace-child      (await reply)
#   POST /api/figma/insert-child       (await reply)
#   POST /api/figma/delete             (await reply)
#   GET  /audit/ledger
#   POST /mcp                    (MCP over HTTP)
#   GET  /mcp                    (MCP info)
#
# WebSocket:
#   /  and  /ws                  (Figma plugin connections)
#
# Everything under /api, /audit and POST /mcp needs "Authorization: Bearer <key>".
# Note: keep the endpoint list above in sync with any new routes.

from __future__ import annotations

import asyncio
import logging
import secrets
from typing import Any, Dict, Optional, Set

from fastapi import APIRouter, Body, Depends, FastAPI, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from companion.service import AnalysisService
from mcp_common import MCP_SERVER_INFO, call_tool as mcp_call_tool, handle_request as mcp_handle_request, tool_list as mcp_tool_list
from relay import messages as m
from relay.config import RelayConfig
from relay.errors import NoClientsError, RelayError, RelayTimeoutError, RemoteRejectedError
from relay.hub import Relay
from relay.registry import Connection

APP_VERSION = "0.2.0"

logger = logging.getLogger("figma_relay")

# ----------------------------
# Models
# ----------------------------

class AwaitIn(BaseModel):
    timeoutSec: Optional[float] = None

class SelectionRequestIn(AwaitIn):
    includeChildren: Optional[bool] = None

class UpdateIn(AwaitIn):
    nodeId: str
    properties: Dict[str, Any]

class ReplaceChildIn(AwaitIn):
    parentId: str
    childId: str
    spec: Dict[str, Any]

class InsertChildIn(AwaitIn):
    parentId: str
    spec: Dict[str, Any]
    index: Optional[int] = None

class DeleteIn(AwaitIn):
    nodeId: str

# ----------------------------
# Helpers
# ----------------------------

_ERROR_STATUS = {
    NoClientsError: 503,
    RelayTimeoutError: 504,
    RemoteRejectedError: 502,
}

def _relay(request: Request) -> Relay:
    return request.app.state.relay

def _config(request: Request) -> RelayConfig:
    return request.app.state.config

def require_api_key(request: Request) -> None:
    header = request.headers.get("authorization")
    if not header or not header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing authorization")
    token = header[len("Bearer "):].strip()
    if not secrets.compare_digest(token.encode("utf-8"), _config(request).api_key.encode("utf-8")):
        raise HTTPException(status_code=401, detail="Invalid API key")

def relay_http_error(exc: RelayError) -> HTTPException:
    status = 500
    for cls, code in _ERROR_STATUS.items():
        if isinstance(exc, cls):
            status = code
            break
    return HTTPException(status_code=status, detail=exc.to_dict())

async def relay_command(relay: Relay, message: Dict[str, Any], timeout: Optional[float]) -> Dict[str, Any]:
    try:
        result = await relay.request(message, timeout=timeout)
    except RelayError as exc:
        raise relay_http_error(exc) from exc
    return {"success": True, "requestId": message.get(m.REQUEST_ID_FIELD), "result": result}

def _snapshot_or_404(snap: Any, detail: str) -> Dict[str, Any]:
    if not snap:
        raise HTTPException(status_code=404, detail=detail)
    return {"success": True, **snap.to_dict()}

# ----------------------------
# Analysis companion
# ----------------------------

class AnalysisBridge:
    """Runs `analyze` frames through the LLM companion off the event loop."""

    def __init__(self, config_path: str) -> None:
        self.config_path = config_path
        self._service: Optional[AnalysisService] = None
        self._tasks: Set[asyncio.Task] = set()

    def service(self) -> AnalysisService:
        if self._service is None:
            self._service = AnalysisService.from_path(self.config_path)
        return self._service

    async def __call__(self, conn: Connection, message: Dict[str, Any]) -> None:
        # Own task so the plugin's other frames keep flowing during the LLM call.
        task = asyncio.create_task(self._analyze(conn, message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _analyze(self, conn: Connection, message: Dict[str, Any]) -> None:
        reply: Dict[str, Any] = {m.TYPE_FIELD: m.ANALYSIS_RESULT}
        if message.get(m.REQUEST_ID_FIELD):
            reply[m.REQUEST_ID_FIELD] = message[m.REQUEST_ID_FIELD]
        try:
            summary = await run_in_threadpool(self.service().summarize, message)
            reply.update(success=True, summary=summary)
        except (RuntimeError, ValueError, OSError) as exc:
            logger.warning("analysis for %s failed: %s", conn.id, exc)
            reply.update(success=False, error=str(exc))
        except Exception as exc:
            # Every analyze frame gets exactly one reply.
            logger.exception("analysis for %s crashed", conn.id)
            reply.update(success=False, error=str(exc))
        if not conn.is_open:
            logger.info("analysis result for %s dropped: connection closed", conn.id)
            return
        try:
            await conn.send(m.stamp(reply))
        except (WebSocketDisconnect, RuntimeError) as exc:
            logger.info("analysis result for %s not delivered: %s", conn.id, exc)

# ----------------------------
# Routes
# ----------------------------

router = APIRouter()
authed = [Depends(require_api_key)]

@router.get("/")
@router.get("/health")
def health(request: Request):
    relay = _relay(request)
    return {
        "ok": True,
        "status": "Figma Relay Server is running",
        "version": APP_VERSION,
        "clients": relay.registry.open_count(),
    }

@router.get("/status")
def status(request: Request):
    relay = _relay(request)
    config = _config(request)
    return {
        "ok": True,
        "version": APP_VERSION,
        **relay.status(),
        "defaultTimeoutSec": config.request_timeout_sec,
        "maxTimeoutSec": config.max_timeout_sec,
    }

@router.post("/api/figma/create", dependencies=authed)
async def figma_create(request: Request, spec: Any = Body(None)):
    if not isinstance(spec, dict) or not spec.get("type"):
        raise HTTPException(status_code=400, detail="Invalid spec")
    sent = await _relay(request).publish(m.create(spec))
    return {"success": True, "message": "Spec sent to Figma", "clientCount": sent}

@router.get("/api/figma/selection", dependencies=authed)
def figma_selection(request: Request):
    return _snapshot_or_404(_relay(request).selection.latest(), "NoSelection")

@router.get("/api/figma/selection/all", dependencies=authed)
def figma_selection_all(request: Request):
    snaps = _relay(request).selection.all()
    return {"success": True, "count": len(snaps), "snapshots": [s.to_dict() for s in snaps]}

@router.get("/api/figma/variables", dependencies=authed)
def figma_variables(request: Request):
    return _snapshot_or_404(_relay(request).variables.latest(), "NoVariables")

@router.get("/api/figma/variables/all", dependencies=authed)
def figma_variables_all(request: Request):
    snaps = _relay(request).variables.all()
    return {"success": True, "count": len(snaps), "snapshots": [s.to_dict() for s in snaps]}

@router.post("/api/figma/selection/request", dependencies=authed)
async def figma_selection_request(request: Request, inp: Optional[SelectionRequestIn] = None):
    inp = inp or SelectionRequestIn()
    return await relay_command(_relay(request), m.get_selection(inp.includeChildren), inp.timeoutSec)

@router.post("/api/figma/update", dependencies=authed)
async def figma_update(request: Request, inp: UpdateIn):
    return await relay_command(_relay(request), m.update_node(inp.nodeId, inp.properties), inp.timeoutSec)

@router.post("/api/figma/replace-child", dependencies=authed)
async def figma_replace_child(request: Request, inp: ReplaceChildIn):
    message = m.replace_child(inp.parentId, inp.childId, inp.spec)
    return await relay_command(_relay(request), message, inp.timeoutSec)

@router.post("/api/figma/insert-child", dependencies=authed)
async def figma_insert_child(request: Request, inp: InsertChildIn):
    message = m.insert_child(inp.parentId, inp.spec, index=inp.index)
    return await relay_command(_relay(request), message, inp.timeoutSec)

@router.post("/api/figma/delete", dependencies=authed)
async def figma_delete(request: Request, inp: DeleteIn):
    return await relay_command(_relay(request), m.delete_node(inp.nodeId), inp.timeoutSec)

@router.get("/audit/ledger", dependencies=authed)
def audit_ledger(request: Request, limit: int = Query(50, ge=1, le=1000)):
    records = _relay(request).audit.tail(limit)
    return {"ok": True, "count": len(records), "records": records}

# ----------------------------
# MCP over HTTP
# ----------------------------

@router.post("/mcp", dependencies=authed)
async def mcp_http(request: Request, payload: Dict[str, Any] = Body(...)):
    relay = _relay(request)
    res = await mcp_handle_request(payload, lambda name, args: mcp_call_tool(relay, name, args))
    if res is None:
        return {"ok": True}
    return res

@router.get("/mcp")
def mcp_info():
    return {"ok": True, "serverInfo": MCP_SERVER_INFO, "tools": [t["name"] for t in mcp_tool_list()["tools"]]}

# ----------------------------
# WebSocket
# ----------------------------

@router.websocket("/")
@router.websocket("/ws")
async def plugin_socket(ws: WebSocket):
    relay: Relay = ws.app.state.relay
    await ws.accept()
    try:
        conn = await relay.connect(ws)
    except (WebSocketDisconnect, RuntimeError) as exc:
        logger.info("plugin left before greeting: %s", exc)
        return
    try:
        while True:
            frame = await ws.receive()
            if frame["type"] == "websocket.disconnect":
                break
            raw = frame.get("text")
            if raw is None:
                raw = frame.get("bytes")
            try:
                await relay.handle(conn, raw)
            except Exception:
                # A bad frame must not take the connection down with it.
                logger.exception("error handling message from %s", conn.id)
    except WebSocketDisconnect:
        pass
    finally:
        relay.disconnect(conn)

# ----------------------------
# App factory
# ----------------------------

def create_app(config: Optional[RelayConfig] = None) -> FastAPI:
    config = config or RelayConfig.from_env()
    application = FastAPI(title="Figma Relay Server", version=APP_VERSION)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.state.config = config
    application.state.analysis = AnalysisBridge(config.companion_config)
    application.state.relay = Relay(config, on_analysis=application.state.analysis)
    application.include_router(router)
    return application

app = create_app()

if __name__ == "__main__":
    from figma_relay_cli import main

    raise SystemExit(main(["serve"]))
