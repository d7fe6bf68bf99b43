"""JSON-RPC message shapes and tool-call results for the stdio tool server."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

PROTOCOL_VERSION = "2024-11-05"
JSONRPC_VERSION = "2.0"

ERR_PARSE = -32700
ERR_INVALID_REQUEST = -32600
ERR_METHOD_NOT_FOUND = -32601
ERR_INVALID_PARAMS = -32602
ERR_INTERNAL = -32603


@dataclass
class RPCError:
    """A JSON-RPC error object."""

    code: int
    message: str
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            out["data"] = self.data
        return out


@dataclass
class Tool:
    """A tool definition as advertised by ``tools/list``."""

    name: str
    description: str
    input_schema: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


@dataclass
class ContentBlock:
    """One piece of content in a tool result."""

    type: str = "text"
    text: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type}
        if self.text:
            out["text"] = self.text
        return out


@dataclass
class CallToolResult:
    """The outcome of a tool call; ``is_error`` marks a failure reported to the caller."""

    content: list[ContentBlock] = field(default_factory=list)
    is_error: bool = False

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"content": [block.to_dict() for block in self.content]}
        if self.is_error:
            out["isError"] = True
        return out


def text_result(text: str) -> CallToolResult:
    """A successful result holding one text block."""
    return CallToolResult(content=[ContentBlock(type="text", text=text)])


def error_result(text: str) -> CallToolResult:
    """A failed result holding one text block with the error message."""
    return CallToolResult(content=[ContentBlock(type="text", text=text)], is_error=True)