"""
Tool handlers - single source of truth for tool execution logic.

This module contains the dispatch layer that both server.py (stdio)
and server_http.py (HTTP/SSE) use.

Architecture:
- Protocol layer (server.py, server_http.py) handles MCP transport and
  converts ToolResult into the wire shape
- This module validates arguments, builds remote payloads and maps
  outcomes into ToolResult values
- textwatermark.client handles the actual HTTP call

Nothing raised while handling a single invocation escapes dispatch():
one failing call must not disturb calls running concurrently.
"""

from dataclasses import dataclass
from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.exceptions import best_match
from mcp.types import Tool

from mcp_textwatermark.logging_config import get_logger
from mcp_textwatermark.tools import TOOL_SPECS, ToolSpec
from textwatermark.client import WatermarkClient, read_field
from textwatermark.errors import (
    RemoteError,
    TransportError,
    UnknownToolError,
    ValidationError,
    WatermarkError,
)

logger = get_logger(__name__)

# JSON-RPC "server error" code used for every tool failure
TOOL_ERROR_CODE = -32000


@dataclass(frozen=True)
class ToolError:
    kind: str
    message: str
    code: int = TOOL_ERROR_CODE


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one invocation: exactly one of text / error is set"""

    text: str | None = None
    error: ToolError | None = None

    @classmethod
    def ok(cls, text: str) -> "ToolResult":
        return cls(text=text)

    @classmethod
    def fail(cls, kind: str, message: str) -> "ToolResult":
        return cls(error=ToolError(kind=kind, message=message))

    @property
    def is_error(self) -> bool:
        return self.error is not None


def validate_arguments(spec: ToolSpec, arguments: Any) -> dict[str, Any]:  # noqa: ANN401
    """Check arguments against the tool's input schema

    Raises ValidationError describing the most relevant violation.
    """
    validator = Draft202012Validator(spec.input_schema)
    error = best_match(validator.iter_errors(arguments))
    if error is not None:
        location = ".".join(str(p) for p in error.absolute_path)
        detail = f"{location}: {error.message}" if location else error.message
        msg = f"Invalid arguments: {detail}"
        raise ValidationError(msg)
    return dict(arguments)


def describe_failure(tool_name: str, exc: WatermarkError) -> str:
    """Render an error message that names the failing tool"""
    if isinstance(exc, RemoteError):
        cause = f"API Error for {tool_name} ({exc.status_code}): {exc.body}"
    elif isinstance(exc, TransportError):
        cause = f"API Error for {tool_name}: {exc}"
    else:
        cause = str(exc)
    return f"Tool '{tool_name}' failed: {cause}"


class ToolRegistry:
    """Registered tools bound to one API client"""

    def __init__(self, client: WatermarkClient) -> None:
        self.client = client
        self._specs: dict[str, ToolSpec] = {}

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._specs:
            msg = f"Tool already registered: {spec.name}"
            raise ValueError(msg)
        self._specs[spec.name] = spec

    def describe(self) -> list[Tool]:
        return [spec.to_mcp_tool() for spec in self._specs.values()]

    async def _execute(self, spec: ToolSpec, arguments: Any) -> str:  # noqa: ANN401
        args = validate_arguments(spec, arguments)
        payload = spec.build_payload(args)
        logger.debug(f"{spec.name}: POST {spec.endpoint} keys={sorted(payload)}")
        response = await self.client.call(spec.endpoint, payload)
        return read_field(response, spec.result_field)

    async def dispatch(self, name: str, arguments: Any) -> ToolResult:  # noqa: ANN401
        """Run one tool invocation and return its ToolResult (never raises)"""
        spec = self._specs.get(name)
        if spec is None:
            exc = UnknownToolError(f"Unknown tool: {name}")
            logger.warning(str(exc))
            return ToolResult.fail(exc.kind, str(exc))

        try:
            text = await self._execute(spec, arguments)
        except WatermarkError as e:
            message = describe_failure(name, e)
            logger.warning(message)
            return ToolResult.fail(e.kind, message)
        except Exception as e:
            logger.exception(f"Unexpected error in tool '{name}'")
            return ToolResult.fail("internal", f"Tool '{name}' failed: {e}")

        logger.info(f"{name}() returning {len(text)} chars")
        return ToolResult.ok(text)


def build_registry(client: WatermarkClient) -> ToolRegistry:
    """Registry holding the four watermarking tools"""
    registry = ToolRegistry(client)
    for spec in TOOL_SPECS:
        registry.register(spec)
    return registry
