"""Line-delimited JSON-RPC server exposing a tool registry over a pair of streams."""

from __future__ import annotations

import json
from typing import IO, Any, Optional, Union

from lodestone.mcp.protocol import (
    ERR_INTERNAL,
    ERR_INVALID_PARAMS,
    ERR_INVALID_REQUEST,
    ERR_METHOD_NOT_FOUND,
    ERR_PARSE,
    JSONRPC_VERSION,
    PROTOCOL_VERSION,
    RPCError,
)
from lodestone.mcp.tools import ToolRegistry

MAX_LINE_BYTES = 4 * 1024 * 1024

_ABSENT = object()


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid character {name!r} looking for beginning of value")


def _decode_request(raw: Union[str, bytes]) -> dict[str, Any]:
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    data = json.loads(text, parse_constant=_reject_constant)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("request must be a JSON object")
    for key in ("jsonrpc", "method"):
        value = data.get(key)
        if value is not None and not isinstance(value, str):
            raise ValueError(f"field {key!r} must be a string")
    return data


def _decode_call_params(params: Any) -> tuple[str, Any]:
    if params is _ABSENT:
        raise ValueError("unexpected end of JSON input")
    if params is None:
        return "", None
    if not isinstance(params, dict):
        raise ValueError("params must be a JSON object")
    name = params.get("name")
    if name is None:
        name = ""
    if not isinstance(name, str):
        raise ValueError("field 'name' must be a string")
    return name, params.get("arguments")


def _reply(req_id: Any, result: Any = None, error: Optional[RPCError] = None) -> dict[str, Any]:
    out: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION}
    if req_id is not _ABSENT:
        out["id"] = req_id
    if result is not None:
        out["result"] = result
    if error is not None:
        out["error"] = error.to_dict()
    return out


class Server:
    """Answers one JSON-RPC request per input line, one response per output line."""

    def __init__(self, name: str, version: str, registry: ToolRegistry) -> None:
        self.name = name
        self.version = version
        self.registry = registry

    def serve(self, infile: IO[Any], outfile: IO[str]) -> None:
        """Read requests until end of input; notifications get no response."""
        for line in infile:
            if isinstance(line, bytes):
                line = line.decode("utf-8", errors="replace")
            line = line.removesuffix("\n").removesuffix("\r")
            if len(line) > MAX_LINE_BYTES // 4 and len(line.encode("utf-8")) > MAX_LINE_BYTES:
                raise ValueError("request line too long")
            if not line:
                continue
            response = self.handle(line)
            if response is None:
                continue
            outfile.write(json.dumps(response, ensure_ascii=False, separators=(",", ":")) + "\n")
            flush = getattr(outfile, "flush", None)
            if flush is not None:
                flush()

    def handle(self, raw: Union[str, bytes]) -> Optional[dict[str, Any]]:
        """Answer one request; returns None for notifications."""
        try:
            req = _decode_request(raw)
        except ValueError as exc:
            return _reply(_ABSENT, error=RPCError(ERR_PARSE, f"parse error: {exc}"))

        req_id = req.get("id", _ABSENT)
        if req.get("jsonrpc") != JSONRPC_VERSION:
            return _reply(
                req_id, error=RPCError(ERR_INVALID_REQUEST, 'jsonrpc must be "2.0"')
            )

        method = req.get("method") or ""
        match method:
            case "initialize":
                return _reply(
                    req_id,
                    result={
                        "protocolVersion": PROTOCOL_VERSION,
                        "serverInfo": {"name": self.name, "version": self.version},
                        "capabilities": {"tools": {}},
                    },
                )
            case "initialized" | "notifications/initialized":
                return None
            case "tools/list":
                return _reply(
                    req_id, result={"tools": [tool.to_dict() for tool in self.registry.list()]}
                )
            case "tools/call":
                try:
                    name, arguments = _decode_call_params(req.get("params", _ABSENT))
                except ValueError as exc:
                    return _reply(
                        req_id, error=RPCError(ERR_INVALID_PARAMS, f"invalid params: {exc}")
                    )
                try:
                    result = self.registry.call(name, arguments)
                except Exception as exc:
                    return _reply(req_id, error=RPCError(ERR_INTERNAL, str(exc)))
                return _reply(req_id, result=result.to_dict())
            case _:
                return _reply(
                    req_id,
                    error=RPCError(ERR_METHOD_NOT_FOUND, f"method not found: {method}"),
                )