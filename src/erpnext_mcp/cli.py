"""CLI entry point for ``erpnext-mcp``.

Subcommands
-----------
``erpnext-mcp``              – (default) run the MCP server over stdio.
``erpnext-mcp stdio``        – same, explicitly.
``erpnext-mcp http``         – run the streamable HTTP server (MCP_PORT, default 3000).
``erpnext-mcp --version``    – print the package version.
"""

from __future__ import annotations

import argparse
import logging
import sys

import anyio

from erpnext_mcp.app import _server_version
from erpnext_mcp.settings import ConfigurationError, Settings, get_settings

logger = logging.getLogger(__name__)

# Loggers kept at the same level as the root logger.
_LOG_NAMES_TO_SYNC = ("erpnext_mcp", "mcp", "uvicorn", "uvicorn.error", "uvicorn.access")


# ── Helpers ─────────────────────────────────────────────────────────────────


def configure_logging(debug: bool) -> None:
    """Log to stderr; stdout carries the protocol when serving over stdio."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="[%(levelname)s] %(name)s: %(message)s",
    )
    for name in _LOG_NAMES_TO_SYNC:
        logging.getLogger(name).setLevel(level)


def _load_settings(args: argparse.Namespace) -> Settings:
    """Load settings from the environment, applying command-line overrides."""
    settings = get_settings()
    overrides = {
        key: value
        for key, value in (
            ("host", getattr(args, "host", None)),
            ("port", getattr(args, "port", None)),
        )
        if value is not None
    }
    if overrides:
        settings = settings.model_copy(update=overrides)
    return settings


# ── Subcommands ─────────────────────────────────────────────────────────────


def _run_stdio(settings: Settings) -> None:
    """Handle ``erpnext-mcp [stdio]``."""
    from erpnext_mcp.server import serve_stdio

    anyio.run(serve_stdio, settings)


def _run_http(settings: Settings) -> None:
    """Handle ``erpnext-mcp http``."""
    from erpnext_mcp.http_server import serve_http

    anyio.run(serve_http, settings)


# ── Argument parser ─────────────────────────────────────────────────────────


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="erpnext-mcp",
        description="ERPNext MCP server",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_server_version()}",
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("stdio", help="Serve MCP over stdin/stdout (default).")

    # ``erpnext-mcp http``
    http_parser = subparsers.add_parser(
        "http",
        help="Serve MCP over streamable HTTP.",
    )
    http_parser.add_argument(
        "--host",
        default=None,
        help="Interface to bind (default: MCP_HOST or 0.0.0.0).",
    )
    http_parser.add_argument(
        "--port",
        "-p",
        type=int,
        default=None,
        help="Port to listen on (default: MCP_PORT or 3000).",
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``erpnext-mcp``."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        settings = _load_settings(args)
    except ConfigurationError as exc:
        print(f"Failed to initialize configuration: {exc}", file=sys.stderr)
        sys.exit(1)

    configure_logging(settings.debug)

    try:
        if args.command == "http":
            _run_http(settings)
        else:
            # Default: stdio.
            _run_stdio(settings)
    except KeyboardInterrupt:
        logger.info("Shutting down...")
