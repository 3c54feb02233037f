"""MCP Server for docsync using stdio transport.

This module implements the Model Context Protocol server that lets AI
agents sync linked repositories and browse document history via
standardized tools.

Transport: stdio
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..logger import DEFAULT_MCP_LOG_FILE, setup_logging
from .lifespan import ServerContext, server_lifespan
from .tools import ALL_SPECS, ToolRegistry, build_error_response
from .tools.registry import ToolSpec

logger = logging.getLogger(__name__)

# Initialize server instance
server = Server("docsync-mcp")

# Global context instance (initialized in lifespan)
_context: ServerContext | None = None

# Global registry instance (initialized in main)
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Ping tool (always available, even in read-only mode)
# ---------------------------------------------------------------------------


async def _handle_ping(
    ctx: ServerContext, args: dict
) -> types.CallToolResult:
    """Handle ping tool -- report configured sources and repositories."""
    sources = ", ".join(sorted(kind.value for kind in ctx.adapters))
    repositories = len(ctx.repositories.list_all())
    storage = ctx.config.state_dir or "in-memory"
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text",
                text=(
                    f"docsync MCP server {__version__} ready. "
                    f"Sources: {sources}. Linked repositories: "
                    f"{repositories}. Storage: {storage}."
                ),
            )
        ],
        structuredContent={
            "version": __version__,
            "sources": sorted(kind.value for kind in ctx.adapters),
            "repositories": repositories,
            "storage": storage,
        },
    )


PING_SPEC = ToolSpec(
    tool=types.Tool(
        name="ping",
        description="Check that the docsync MCP server is running and list its sources",
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    handler=_handle_ping,
)


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_context() -> ServerContext:
    """Get the global ServerContext instance.

    Raises:
        RuntimeError: If the context is not initialized
    """
    if _context is None:
        raise RuntimeError(
            "ServerContext not initialized. Server lifespan not started."
        )
    return _context


def set_context(context: ServerContext | None) -> None:
    """Set the global ServerContext instance, or None to clear."""
    global _context
    _context = context


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry instance.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    """Set the global ToolRegistry instance, or None to clear."""
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List available docsync tools from the ToolRegistry."""
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution via ToolRegistry dispatch.

    Args:
        name: The name of the tool to execute.
        arguments: Tool arguments (optional).

    Returns:
        CallToolResult with tool output content and optional isError flag.
    """
    context = get_context()
    try:
        return await get_registry().call_tool(name, arguments, context)
    except ValueError as e:
        # Unknown or filtered-out tool name
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Sets up logging for MCP mode (file only, never stdout), builds the
    service context via the lifespan manager, and starts the server with
    stdio transport for JSON-RPC communication.

    Args:
        config_overrides: Optional dict with config values to override
            (github_token, vault_root, state_dir, max_parallel,
            default_language, debug, read_only, log_file)
    """
    overrides = dict(config_overrides or {})
    log_file = overrides.pop("log_file", None)
    read_only = bool(overrides.pop("read_only", False))

    # Must run BEFORE stdio_server so nothing reaches stdout during
    # protocol negotiation
    setup_logging(
        mode="mcp", debug=bool(overrides.get("debug")), log_file=log_file
    )

    async with server_lifespan(config_overrides=overrides) as ctx:
        context: ServerContext = ctx["context"]
        config = context.config
        read_only = read_only or config.read_only

        if (
            config.debug
            or config.log_level
            or config.log_format != "text"
            or (config.log_file and not log_file)
        ):
            setup_logging(
                mode="mcp",
                debug=config.debug,
                log_file=log_file or config.log_file,
                debug_format=config.log_format,
                level=config.log_level,
            )

        all_specs = [PING_SPEC] + ALL_SPECS
        registry = ToolRegistry(all_specs, read_only=read_only)
        logger.info(
            "Registered %d tools (of %d total)%s",
            registry.tool_count(),
            len(all_specs),
            " in read-only mode" if read_only else "",
        )
        if read_only:
            print(
                f"Read-only mode ({registry.tool_count()} of "
                f"{len(all_specs)} tools enabled)",
                file=sys.stderr,
            )

        # Installed here rather than in the lifespan: under
        # `python -m docsync.mcp.server` this module is __main__, and a
        # relative import from lifespan.py would set a second copy's globals.
        set_registry(registry)
        set_context(context)
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="docsync-mcp",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(
                    read_stream, write_stream, init_options
                )
        finally:
            set_context(None)
            set_registry(None)


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    parser = argparse.ArgumentParser(
        description="docsync MCP Server - sync markdown repositories into versioned documents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (from .env or .docsync/config.yml)
  docsync-mcp

  # Persist documents as JSON files
  docsync-mcp --state-dir ~/.local/share/docsync

  # Serve local notes vaults
  docsync-mcp --vault-root ~/vaults

  # Only expose listing and history tools
  docsync-mcp --read-only

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr. Do not pipe stdin/stdout manually.
        """,
    )

    parser.add_argument(
        "--github-token",
        help="Default GitHub token (takes precedence over GITHUB_TOKEN env var and config files)"
        " (visible in process list -- prefer GITHUB_TOKEN env var for security)",
    )
    parser.add_argument(
        "--vault-root",
        help="Directory holding one folder per notes vault (overrides DOCSYNC_VAULT_ROOT)",
    )
    parser.add_argument(
        "--state-dir",
        help="Directory for the JSON content store (overrides DOCSYNC_STATE_DIR; default: in-memory)",
    )
    parser.add_argument(
        "--max-parallel",
        type=int,
        help="Maximum concurrent source requests, 1-64 (overrides DOCSYNC_MAX_PARALLEL)",
    )
    parser.add_argument(
        "--default-language",
        help="Language of documents that name none (overrides DOCSYNC_DEFAULT_LANGUAGE)",
    )
    parser.add_argument(
        "--read-only",
        action="store_true",
        help="Only expose tools that do not write documents or sources",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-file",
        help=f"Log file path (default: {DEFAULT_MCP_LOG_FILE})",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"docsync-mcp version {__version__}",
    )

    args = parser.parse_args()

    # Build config overrides dict from CLI args
    config_overrides: dict = {}
    for key in (
        "github_token",
        "vault_root",
        "state_dir",
        "max_parallel",
        "default_language",
        "log_file",
    ):
        value = getattr(args, key)
        if value is not None:
            config_overrides[key] = value
    if args.read_only:
        config_overrides["read_only"] = True
    if args.debug:
        config_overrides["debug"] = True

    override_keys = [
        k
        for k in config_overrides
        if k not in ("github_token", "log_file")
    ]
    if override_keys:
        print(
            f"Config overrides from CLI: {', '.join(override_keys)}",
            file=sys.stderr,
        )

    try:
        asyncio.run(main(config_overrides=config_overrides or None))
    except RuntimeError:
        # Error already printed to stderr by lifespan manager
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
