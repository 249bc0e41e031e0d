from __future__ import annotations

import json
import time
from typing import Any, Dict, Optional

# Wire discriminator. The plugin speaks {"type": ...} objects.
TYPE_FIELD = "type"
REQUEST_ID_FIELD = "requestId"

# Server -> plugin
CONNECTED = "connected"
PONG = "pong"
CREATE = "create"
GET_SELECTION = "get-selection"
UPDATE_NODE = "update-node"
REPLACE_CHILD = "replace-child"
INSERT_CHILD = "insert-child"
DELETE_NODE = "delete-node"
ANALYSIS_RESULT = "analysis-result"

# Plugin -> server
PING = "ping"
SELECTION = "selection"
OPERATION_RESULT = "operation-result"
VARIABLES = "variables"
ANALYZE = "analyze"

CORRELATED_REQUESTS = (GET_SELECTION, UPDATE_NODE, REPLACE_CHILD, INSERT_CHILD, DELETE_NODE)

DEFAULT_OPERATION_ERROR = "Operation failed"


def now_ms() -> int:
    return int(time.time() * 1000)


def encode(message: Dict[str, Any]) -> str:
    return json.dumps(message, separators=(",", ":"), ensure_ascii=False)


def decode(raw: Any) -> Dict[str, Any]:
    """Parse an inbound frame. Raises ValueError unless it is a JSON object."""
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


def stamp(message: Dict[str, Any]) -> Dict[str, Any]:
    if message.get("timestamp") is None:
        message["timestamp"] = now_ms()
    return message


def _compact(message: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in message.items() if v is not None}


def create(spec: Dict[str, Any]) -> Dict[str, Any]:
    return {TYPE_FIELD: CREATE, "spec": spec}


def get_selection(include_children: Optional[bool] = None) -> Dict[str, Any]:
    return _compact({TYPE_FIELD: GET_SELECTION, "includeChildren": include_children})


def update_node(node_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
    return {TYPE_FIELD: UPDATE_NODE, "nodeId": node_id, "properties": properties}


def replace_child(parent_id: str, child_id: str, spec: Dict[str, Any]) -> Dict[str, Any]:
    return {TYPE_FIELD: REPLACE_CHILD, "parentId": parent_id, "childId": child_id, "spec": spec}


def insert_child(parent_id: str, spec: Dict[str, Any], index: Optional[int] = None) -> Dict[str, Any]:
    return _compact({TYPE_FIELD: INSERT_CHILD, "parentId": parent_id, "spec": spec, "index": index})


def delete_node(node_id: str) -> Dict[str, Any]:
    return {TYPE_FIELD: DELETE_NODE, "nodeId": node_id}
