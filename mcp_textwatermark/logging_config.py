"""Async logging configuration using QueueHandler

Records are formatted and written on a background thread, so a slow
stderr or log file never stalls the event loop serving tool calls.
Output goes to stderr (never stdout - that is the MCP data stream).
All modules should use get_logger() instead of logging.getLogger() directly.
"""

import logging
import logging.handlers
import sys
from collections.abc import Mapping
from pathlib import Path
from queue import Queue

LOG_LEVEL_ENV = "WATERMARK_MCP_LOG_LEVEL"
LOG_FILE_ENV = "WATERMARK_MCP_LOG_FILE"

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"

# Third-party loggers that flood DEBUG output with per-request chatter
NOISY_LOGGERS = ("httpx", "httpcore", "mcp.server.lowlevel.server", "mcp.server.sse")


class AsyncLoggingManager:
    """Manages async logging state without using global variables"""

    def __init__(self) -> None:
        self.log_queue: Queue[logging.LogRecord] = Queue(-1)
        self.queue_handler: logging.handlers.QueueHandler | None = None
        self.listener: logging.handlers.QueueListener | None = None

    def setup(self, log_file: Path | None = None, level: int = logging.INFO) -> None:
        """Set up async logging with QueueHandler and QueueListener

        Call once at startup, before configuration is resolved, so the
        [Config] trace is captured.

        Args:
            log_file: Optional path to log file. If None, only logs to stderr.
            level: Logging level (default: INFO)
        """
        if self.listener is not None:
            self.shutdown()

        handlers: list[logging.Handler] = []

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handlers.append(console_handler)

        if log_file is not None:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            handlers.append(file_handler)

        self.listener = logging.handlers.QueueListener(
            self.log_queue, *handlers, respect_handler_level=True
        )
        self.listener.start()

        self.queue_handler = logging.handlers.QueueHandler(self.log_queue)

        root = logging.getLogger()
        root.setLevel(level)
        root.handlers.clear()
        root.addHandler(self.queue_handler)

        if level < logging.INFO:
            for name in NOISY_LOGGERS:
                logging.getLogger(name).setLevel(logging.INFO)

    def shutdown(self) -> None:
        """Shut down async logging (call on application exit)

        QueueListener.stop() drains whatever is still queued before returning.
        """
        if self.listener is not None:
            self.listener.stop()
            self.listener = None
        if self.queue_handler is not None:
            logging.getLogger().removeHandler(self.queue_handler)
            self.queue_handler = None


# Singleton instance
_manager = AsyncLoggingManager()


def level_from_env(environ: Mapping[str, str]) -> int:
    """Map WATERMARK_MCP_LOG_LEVEL (name or number) to a logging level"""
    raw = environ.get(LOG_LEVEL_ENV, "").strip()
    if not raw:
        return logging.INFO
    if raw.isdigit():
        return int(raw)
    level = logging.getLevelName(raw.upper())
    return level if isinstance(level, int) else logging.INFO


def log_file_from_env(environ: Mapping[str, str]) -> Path | None:
    raw = environ.get(LOG_FILE_ENV, "").strip()
    return Path(raw).expanduser() if raw else None


def setup_async_logging(log_file: Path | None = None, level: int = logging.INFO) -> None:
    """Set up async logging - convenience wrapper around manager.setup()"""
    _manager.setup(log_file, level)


def shutdown_async_logging() -> None:
    """Shut down async logging - convenience wrapper around manager.shutdown()"""
    _manager.shutdown()


def get_logger(name: str) -> logging.Logger:
    """Get a logger configured for async logging

    Use this instead of logging.getLogger() to ensure async behavior.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
