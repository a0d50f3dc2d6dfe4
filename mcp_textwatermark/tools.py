#!/usr/bin/env python3
"""
MCP Tool Definitions - Single Source of Truth

Tool definitions shared between server.py (stdio) and server_http.py (SSE/HTTP).
Each tool kind carries its input schema, remote endpoint, payload mapping
and the response field holding the result. Define tools once, import everywhere.
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from mcp.types import Tool

STEALTH_LEVELS = ("standard", "high", "maximum")


class ToolKind(str, Enum):
    """Closed set of watermarking tools"""

    FAST_ENCODE = "fast_encode"
    FAST_DECODE = "fast_decode"
    ROBUST_ENCODE = "robust_encode"
    ROBUST_DECODE = "robust_decode"


@dataclass(frozen=True)
class ToolSpec:
    kind: ToolKind
    description: str
    input_schema: dict[str, Any]
    endpoint: str
    result_field: str
    build_payload: Callable[[dict[str, Any]], dict[str, Any]]

    @property
    def name(self) -> str:
        return self.kind.value

    def to_mcp_tool(self) -> Tool:
        return Tool(name=self.name, description=self.description, inputSchema=self.input_schema)


def fast_encode_payload(args: dict[str, Any]) -> dict[str, Any]:
    return {"text": args["visible_text"], "secret": args["hidden_text"]}


def decode_payload(args: dict[str, Any]) -> dict[str, Any]:
    return {"text": args["input_text"]}


def robust_encode_payload(args: dict[str, Any]) -> dict[str, Any]:
    """Optional keys are sent only when set - their presence changes remote behavior"""
    payload = {
        "visible_text": args["visible_text"],
        "hidden_text": args["hidden_text"],
    }
    for key in ("distribution", "stealth_level"):
        if args.get(key):
            payload[key] = args[key]
    return payload


_VISIBLE_TEXT = {"type": "string", "description": "Text shown to users"}
_HIDDEN_TEXT = {"type": "string", "description": "Secret text to embed"}


def _encode_schema(extra: dict[str, Any] | None = None) -> dict[str, Any]:
    properties = {"visible_text": _VISIBLE_TEXT, "hidden_text": _HIDDEN_TEXT}
    properties.update(extra or {})
    return {
        "type": "object",
        "properties": properties,
        "required": ["visible_text", "hidden_text"],
    }


def _decode_schema(description: str) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "input_text": {"type": "string", "description": description},
        },
        "required": ["input_text"],
    }


TOOL_SPECS: tuple[ToolSpec, ...] = (
    ToolSpec(
        kind=ToolKind.FAST_ENCODE,
        description="Embed hidden_text inside visible_text using the fast algorithm",
        input_schema=_encode_schema(),
        endpoint="/api/watermark/encode",
        result_field="encoded",
        build_payload=fast_encode_payload,
    ),
    ToolSpec(
        kind=ToolKind.FAST_DECODE,
        description="Extract a hidden watermark using the fast algorithm",
        input_schema=_decode_schema("Text that may contain a hidden watermark (fast)"),
        endpoint="/api/watermark/decode",
        result_field="decoded",
        build_payload=decode_payload,
    ),
    ToolSpec(
        kind=ToolKind.ROBUST_ENCODE,
        description="""Embed hidden_text inside visible_text using the robust algorithm

Optional: distribution (e.g. 'even', 'random'), stealth_level (standard/high/maximum).
Omitted options are left to the service's defaults.
""",
        input_schema=_encode_schema({
            "distribution": {
                "type": "string",
                "description": "Distribution strategy (e.g., 'even', 'random')",
            },
            "stealth_level": {
                "type": "string",
                "enum": list(STEALTH_LEVELS),
                "description": "Stealth level (must be one of: standard, high, maximum)",
            },
        }),
        endpoint="/api/watermark/encode-robust",
        result_field="watermarked",
        build_payload=robust_encode_payload,
    ),
    ToolSpec(
        kind=ToolKind.ROBUST_DECODE,
        description="Extract a hidden watermark using the robust algorithm",
        input_schema=_decode_schema("Text that may contain a hidden watermark (robust)"),
        endpoint="/api/watermark/decode-robust",
        result_field="decoded",
        build_payload=decode_payload,
    ),
)


def get_mcp_tools() -> list[Tool]:
    """
    Return list of MCP tools.

    Single source of truth for tool definitions.
    Both stdio and HTTP servers list tools through the registry, which
    is populated from TOOL_SPECS.
    """
    return [spec.to_mcp_tool() for spec in TOOL_SPECS]
