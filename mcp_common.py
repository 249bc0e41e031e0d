from __future__ import annotations

import json
from typing import Any, Awaitable, Callable, Dict, Optional

from relay import messages as m
from relay.errors import RelayError
from relay.hub import Relay

MCP_SERVER_INFO = {"name": "Figma Relay MCP", "version": "0.2.0"}

_NODE_ID = {"type": "string", "description": "Figma node id, e.g. \"1:23\"."}
_SPEC = {"type": "object", "description": "Node spec understood by the Figma plugin (needs a type)."}
_TIMEOUT = {"type": "number", "description": "Seconds to wait for the plugin's reply."}


def tool_list() -> Dict[str, Any]:
    return {
        "tools": [
            {
                "name": "publish_create",
                "description": "Send a create spec to every connected Figma plugin without waiting.",
                "inputSchema": {"type": "object", "properties": {"spec": _SPEC}, "required": ["spec"]},
            },
            {
                "name": "get_selection",
                "description": "Return the most recently cached Figma selection.",
                "inputSchema": {"type": "object", "properties": {}},
            },
            {
                "name": "get_variables",
                "description": "Return the most recently cached Figma variables.",
                "inputSchema": {"type": "object", "properties": {}},
            },
            {
                "name": "request_selection",
                "description": "Ask the plugin for its current selection and wait for it.",
                "inputSchema": {
                    "type": "object",
                    "properties": {"includeChildren": {"type": "boolean"}, "timeoutSec": _TIMEOUT},
                },
            },
            {
                "name": "update_node",
                "description": "Update properties of one node and wait for the plugin's result.",
                "inputSchema": {
                    "type": "object",
                    "properties": {"nodeId": _NODE_ID, "properties": {"type": "object"}, "timeoutSec": _TIMEOUT},
                    "required": ["nodeId", "properties"],
                },
            },
            {
                "name": "replace_child",
                "description": "Replace a child of a node with a new spec.",
                "inputSchema": {
                    "type": "object",
                    "properties": {"parentId": _NODE_ID, "childId": _NODE_ID, "spec": _SPEC, "timeoutSec": _TIMEOUT},
                    "required": ["parentId", "childId", "spec"],
                },
            },
            {
                "name": "insert_child",
                "description": "Insert a new child under a node, optionally at an index.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "parentId": _NODE_ID,
                        "spec": _SPEC,
                        "index": {"type": "integer"},
                        "timeoutSec": _TIMEOUT,
                    },
                    "required": ["parentId", "spec"],
                },
            },
            {
                "name": "delete_node",
                "description": "Delete a node and wait for the plugin's result.",
                "inputSchema": {
                    "type": "object",
                    "properties": {"nodeId": _NODE_ID, "timeoutSec": _TIMEOUT},
                    "required": ["nodeId"],
                },
            },
            {
                "name": "get_status",
                "description": "Connected plugins, pending requests and cache sizes.",
                "inputSchema": {"type": "object", "properties": {}},
            },
        ]
    }


def _text(payload: Any) -> Dict[str, Any]:
    return {"content": [{"type": "text", "text": json.dumps(payload, indent=2, default=str)}]}


def _error(message: str) -> Dict[str, Any]:
    return {"isError": True, "content": [{"type": "text", "text": message}]}


def _missing(args: Dict[str, Any], *names: str) -> Optional[str]:
    for name in names:
        if args.get(name) in (None, ""):
            return name
    return None


def _build_request(name: str, args: Dict[str, Any]) -> Dict[str, Any]:
    if name == "request_selection":
        return m.get_selection(args.get("includeChildren"))
    if name == "update_node":
        return m.update_node(args["nodeId"], args["properties"])
    if name == "replace_child":
        return m.replace_child(args["parentId"], args["childId"], args["spec"])
    if name == "insert_child":
        return m.insert_child(args["parentId"], args["spec"], index=args.get("index"))
    return m.delete_node(args["nodeId"])


_REQUIRED = {
    "request_selection": (),
    "update_node": ("nodeId", "properties"),
    "replace_child": ("parentId", "childId", "spec"),
    "insert_child": ("parentId", "spec"),
    "delete_node": ("nodeId",),
}


async def call_tool(relay: Relay, name: str, args: Dict[str, Any]) -> Dict[str, Any]:
    if name == "publish_create":
        spec = args.get("spec")
        if not isinstance(spec, dict) or not spec.get("type"):
            return _error("spec must be an object with a type")
        sent = await relay.publish(m.create(spec))
        return _text({"clientCount": sent})

    if name in ("get_selection", "get_variables"):
        cache = relay.selection if name == "get_selection" else relay.variables
        snap = cache.latest()
        if not snap:
            return _error(f"No {cache.name} cached yet")
        return _text(snap.to_dict())

    if name == "get_status":
        return _text(relay.status())

    if name in _REQUIRED:
        missing = _missing(args, *_REQUIRED[name])
        if missing:
            return _error(f"{missing} is required")
        message = _build_request(name, args)
        try:
            result = await relay.request(message, timeout=args.get("timeoutSec"))
        except RelayError as exc:
            return _error(f"{exc.reason}: {exc}")
        return _text({"requestId": message.get(m.REQUEST_ID_FIELD), "result": result})

    return _error(f"Unknown tool: {name}")


async def handle_request(
    req: Dict[str, Any],
    tool_call: Callable[[str, Dict[str, Any]], Awaitable[Dict[str, Any]]],
) -> Optional[Dict[str, Any]]:
    req_id = req.get("id")
    method = req.get("method")
    params = req.get("params") or {}

    if method == "initialize":
        protocol = params.get("protocolVersion") or "2024-11-05"
        return {
            "jsonrpc": "2.0",
            "id": req_id,
            "result": {
                "protocolVersion": protocol,
                "serverInfo": MCP_SERVER_INFO,
                "capabilities": {"tools": {"listChanged": False}},
            },
        }

    if method == "tools/list":
        return {"jsonrpc": "2.0", "id": req_id, "result": tool_list()}

    if method == "tools/call":
        name = params.get("name")
        args = params.get("arguments") or {}
        result = await tool_call(name, args)
        return {"jsonrpc": "2.0", "id": req_id, "result": result}

    if method == "resources/list":
        return {"jsonrpc": "2.0", "id": req_id, "result": {"resources": []}}

    if method == "prompts/list":
        return {"jsonrpc": "2.0", "id": req_id, "result": {"prompts": []}}

    if method == "ping":
        return {"jsonrpc": "2.0", "id": req_id, "result": {}}

    # Notifications (no id) get no response.
    if req_id is None:
        return None
    return {
        "jsonrpc": "2.0",
        "id": req_id,
        "error": {"code": -32601, "message": f"Method not found: {method}"},
    }
