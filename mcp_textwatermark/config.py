"""
Configuration resolver - base URL and API token

Precedence (highest first), per field:
- base URL: --api-url/-u > API_BASE_URL > DEFAULT_API_URL
- token:    --token/-t   > USER_API_TOKEN > absent

Resolution is pure: argv and environ are passed in, nothing is read
from the network. The only side effect is the [Config] trace, which goes
through logging (stderr) so stdout stays clean for MCP frames.
"""

import argparse
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from mcp_textwatermark.logging_config import get_logger
from textwatermark.errors import ConfigurationError

logger = get_logger(__name__)

DEFAULT_API_URL = "https://api.textwatermarking.com"
TOKEN_ENV = "USER_API_TOKEN"
API_URL_ENV = "API_BASE_URL"

PROG = "textwatermark-mcp"

# Flags whose next argv item is always their value
VALUE_FLAGS = {
    "--token": "--token",
    "-t": "--token",
    "--api-url": "--api-url",
    "-u": "--api-url",
}

SOURCE_LABELS = {
    "argument": "command line argument",
    "environment": "environment variable",
}

ENV_HELP = f"""Environment Variables:
  {TOKEN_ENV}         API token (overridden by --token)
  {API_URL_ENV}           API base URL (overridden by --api-url)
"""


@dataclass(frozen=True)
class EffectiveConfig:
    """Resolved configuration, read-only after startup"""

    base_url: str
    token: str | None
    base_url_source: str = "default"
    token_source: str = "missing"


class _StderrHelpAction(argparse.Action):
    """--help that prints to stderr (stdout belongs to the MCP transport)"""

    def __init__(self, option_strings: Sequence[str], dest: str = argparse.SUPPRESS,
                 default: str = argparse.SUPPRESS, help: str | None = None) -> None:  # noqa: A002
        super().__init__(option_strings=option_strings, dest=dest, default=default,
                         nargs=0, help=help)

    def __call__(self, parser: argparse.ArgumentParser, namespace: argparse.Namespace,
                 values: Any, option_string: str | None = None) -> None:  # noqa: ANN401
        parser.print_help(sys.stderr)
        parser.exit(0)


def build_parser(prog: str = PROG) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=prog,
        description="MCP server for the text watermarking API",
        epilog=ENV_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
    )
    parser.add_argument("--token", "-t", metavar="<token>",
                        help="API token for authentication")
    parser.add_argument("--api-url", "-u", metavar="<url>", dest="api_url",
                        help=f"API base URL (default: {DEFAULT_API_URL})")
    parser.add_argument("--help", "-h", action=_StderrHelpAction,
                        help="Show this help message")
    return parser


def attach_flag_values(argv: Sequence[str]) -> list[str]:
    """Bind the item after --token/-t/--api-url/-u to that flag

    argparse reads a dash-leading value ("-abc123") as a new option;
    "--token=-abc123" keeps it a value.
    """
    result: list[str] = []
    items = iter(argv)
    for item in items:
        if item in VALUE_FLAGS:
            value = next(items, None)
            if value is None:
                result.append(item)
                break
            result.append(f"{VALUE_FLAGS[item]}={value}")
        else:
            result.append(item)
    return result


def log_config_sources(config: EffectiveConfig) -> None:
    """Trace which source supplied each field; the token itself is never logged"""
    if config.token_source == "missing":
        logger.warning("[Config] No API token provided")
    else:
        logger.info(f"[Config] Using API token from {SOURCE_LABELS[config.token_source]}")

    if config.base_url_source == "default":
        logger.info(f"[Config] Using default API URL: {config.base_url}")
    else:
        label = SOURCE_LABELS[config.base_url_source]
        logger.info(f"[Config] Using API URL from {label}: {config.base_url}")


def resolve_config(
    argv: Sequence[str] | None,
    environ: Mapping[str, str],
    prog: str = PROG,
) -> EffectiveConfig:
    """Build EffectiveConfig from command-line args and environment

    --help exits the process (code 0) from inside the parser, before any
    other resolution happens. Empty values count as not supplied.
    """
    if argv is None:
        argv = sys.argv[1:]
    args, unknown = build_parser(prog).parse_known_args(attach_flag_values(argv))
    if unknown:
        logger.warning(f"[Config] Ignoring unrecognized arguments: {' '.join(unknown)}")

    if args.token:
        token, token_source = args.token, "argument"
    elif environ.get(TOKEN_ENV):
        token, token_source = environ[TOKEN_ENV], "environment"
    else:
        token, token_source = None, "missing"

    if args.api_url:
        base_url, url_source = args.api_url, "argument"
    elif environ.get(API_URL_ENV):
        base_url, url_source = environ[API_URL_ENV], "environment"
    else:
        base_url, url_source = DEFAULT_API_URL, "default"

    config = EffectiveConfig(
        base_url=base_url,
        token=token,
        base_url_source=url_source,
        token_source=token_source,
    )
    log_config_sources(config)
    return config



def validate_config(config: EffectiveConfig) -> None:
    """Refuse to serve without a usable base URL and token"""
    if not config.base_url:
        msg = f"Missing {API_URL_ENV}. Please set the environment variable or use --api-url"
        raise ConfigurationError(msg)

    if not config.token:
        msg = (
            f"Missing {TOKEN_ENV}. Please provide it via:\n"
            f"  1. Command line: --token <your-token>\n"
            f"  2. Environment variable: {TOKEN_ENV}=<your-token>\n"
            f"  3. MCP client config with args: ['--token', '<your-token>']"
        )
        raise ConfigurationError(msg)
