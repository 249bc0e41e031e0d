#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, List, Optional
from urllib import error, request

DEFAULT_SERVER = os.environ.get("FIGMA_RELAY_URL", "http://127.0.0.1:3000")
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _headers(api_key: Optional[str]) -> dict:
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


def _http_json(url: str, api_key: Optional[str], payload: Optional[dict] = None, timeout: float = 6.0) -> dict:
    data = json.dumps(payload).encode("utf-8") if payload is not None else None
    method = "POST" if payload is not None else "GET"
    req = request.Request(url, data=data, headers=_headers(api_key), method=method)
    try:
        with request.urlopen(req, timeout=timeout) as resp:
            body = resp.read().decode("utf-8")
        return json.loads(body) if body else {"ok": True}
    except error.HTTPError as exc:
        body = exc.read().decode("utf-8") if exc.fp else ""
        try:
            detail: Any = json.loads(body).get("detail")
        except (ValueError, AttributeError):
            detail = body or str(exc)
        return {"ok": False, "status": exc.code, "error": detail}
    except (error.URLError, OSError) as exc:
        return {"ok": False, "error": str(exc)}


def _load_json_arg(value: str) -> Any:
    # Accept inline JSON or @path/to/file.json.
    if value.startswith("@"):
        return json.loads(Path(value[1:]).expanduser().read_text(encoding="utf-8"))
    return json.loads(value)


def _print(res: dict) -> int:
    print(json.dumps(res, indent=2, sort_keys=True))
    return 0 if res.get("ok", True) is not False and res.get("success", True) is not False else 1


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    from relay.config import RelayConfig

    config = RelayConfig.from_env()
    logging.basicConfig(level=getattr(logging, config.log_level, logging.INFO), format=LOG_FORMAT)
    uvicorn.run(
        "app:app",
        host=args.host or config.host,
        port=args.port or config.port,
        reload=args.reload,
        log_level=config.log_level.lower(),
    )
    return 0


def run(args: argparse.Namespace) -> int:
    if args.command == "serve":
        return _serve(args)

    base = args.server.rstrip("/")
    key = args.api_key
    timeout = float(args.wait) + 5.0 if getattr(args, "wait", None) else 45.0

    if args.command == "status":
        return _print(_http_json(f"{base}/status", None))
    if args.command == "create":
        return _print(_http_json(f"{base}/api/figma/create", key, _load_json_arg(args.spec)))
    if args.command == "selection":
        if args.refresh:
            payload = {"timeoutSec": args.wait} if args.wait else {}
            return _print(_http_json(f"{base}/api/figma/selection/request", key, payload, timeout=timeout))
        return _print(_http_json(f"{base}/api/figma/selection", key))
    if args.command == "variables":
        return _print(_http_json(f"{base}/api/figma/variables", key))
    if args.command == "update":
        payload = {"nodeId": args.node_id, "properties": _load_json_arg(args.properties)}
        if args.wait:
            payload["timeoutSec"] = args.wait
        return _print(_http_json(f"{base}/api/figma/update", key, payload, timeout=timeout))
    if args.command == "delete":
        payload = {"nodeId": args.node_id}
        if args.wait:
            payload["timeoutSec"] = args.wait
        return _print(_http_json(f"{base}/api/figma/delete", key, payload, timeout=timeout))
    raise ValueError(f"Unknown command: {args.command}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Figma relay server and client")
    parser.add_argument("--server", default=DEFAULT_SERVER, help="Relay base URL")
    parser.add_argument(
        "--api-key",
        default=os.environ.get("FIGMA_RELAY_API_KEY"),
        help="Bearer key (defaults to $FIGMA_RELAY_API_KEY)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the relay server")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.add_argument("--reload", action="store_true", help="Enable auto-reload (dev only)")

    sub.add_parser("status", help="Show server status")

    create = sub.add_parser("create", help="Publish a create spec")
    create.add_argument("spec", help="JSON spec or @file.json")

    selection = sub.add_parser("selection", help="Show the cached selection")
    selection.add_argument("--refresh", action="store_true", help="Ask the plugin instead of reading the cache")
    selection.add_argument("--wait", type=float, default=None, help="Seconds to wait for the plugin")

    sub.add_parser("variables", help="Show the cached variables")

    update = sub.add_parser("update", help="Update a node's properties")
    update.add_argument("node_id")
    update.add_argument("properties", help="JSON object or @file.json")
    update.add_argument("--wait", type=float, default=None)

    delete = sub.add_parser("delete", help="Delete a node")
    delete.add_argument("node_id")
    delete.add_argument("--wait", type=float, default=None)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return run(args)
    except (ValueError, OSError) as exc:
        print(f"figma-relay: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
