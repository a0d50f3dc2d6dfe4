"""
Error taxonomy shared by the API client and the MCP dispatch layer.

Only ConfigurationError is fatal (raised before the server starts).
Everything else is per-invocation and gets turned into an error result.
"""


class WatermarkError(Exception):
    """Base class for all textwatermark errors"""

    kind = "error"


class ConfigurationError(WatermarkError):
    """Required token or base URL missing at startup"""

    kind = "configuration"


class ValidationError(WatermarkError):
    """Tool arguments do not match the tool's input schema"""

    kind = "validation"


class UnknownToolError(WatermarkError):
    """Invocation names a tool that is not registered"""

    kind = "unknown_tool"


class RemoteError(WatermarkError):
    """Remote API answered with a non-2xx status"""

    kind = "remote"

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"({status_code}): {body}")
        self.status_code = status_code
        self.body = body


class TransportError(WatermarkError):
    """Network failure, timeout, or malformed remote response"""

    kind = "transport"
