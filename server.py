#!/usr/bin/env python3
"""tmux MCP Server - Read logs, restart servers and send commands in tmux panes."""

import argparse
import asyncio
import logging
import sys
from typing import Any, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

import tmux_client
from tmux_client import Session, Target, Window
from tmux_config import DEFAULT_LOG_LINES, DEFAULT_RESTART_COMMAND, LOG_LEVEL
from tmux_context import count_error_lines, generate_context, highlight_errors, is_server_process

logger = logging.getLogger(__name__)

server = Server("tmux-mcp")

NO_SESSION_MESSAGE = "Error: Could not determine tmux session. Specify session parameter."
NOT_IN_TMUX_MESSAGE = "Not in a tmux session. Use scope='all' to list all sessions."

# Host lifecycle events that refresh the context block
SESSION_CREATED = "session.created"
SESSION_COMPACTED = "session.compacted"
CONTEXT_EVENTS = {SESSION_CREATED, SESSION_COMPACTED}


class ArgumentError(ValueError):
    """Tool called with missing or malformed arguments."""


# =============================================================================
# TOOL SCHEMAS
# =============================================================================

# Common schema for pane targeting
TARGET_PARAMS = {
    "session": {"type": "string", "description": "Tmux session name. Defaults to current session."},
    "window": {"type": "integer", "minimum": 0, "description": "Window index (as shown by tmux_list)"},
    "pane": {
        "type": "integer", "minimum": 0, "default": 0,
        "description": "Pane index within the window. Defaults to 0.",
    },
}


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List tmux tools. Nothing is offered when tmux is not installed."""
    if not tmux_client.is_tmux_available():
        return []

    return [
        Tool(
            name="tmux_read_logs",
            description=(
                "Read the last N lines of output from a tmux pane. Useful for checking server "
                "logs, errors, and output. Error patterns are automatically highlighted."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    **TARGET_PARAMS,
                    "lines": {
                        "type": "integer", "minimum": 1, "default": DEFAULT_LOG_LINES,
                        "description": f"Number of lines to capture. Defaults to {DEFAULT_LOG_LINES}.",
                    },
                },
                "required": ["window"],
            },
        ),
        Tool(
            name="tmux_restart_server",
            description=(
                "Restart a server running in a tmux pane by sending Ctrl-C and then the "
                "specified command."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    **TARGET_PARAMS,
                    "command": {
                        "type": "string",
                        "description": (
                            f"Command to run after stopping. Defaults to '{DEFAULT_RESTART_COMMAND}'."
                        ),
                    },
                },
                "required": ["window"],
            },
        ),
        Tool(
            name="tmux_send_command",
            description="Send a command to a tmux pane. The command is typed and executed with Enter.",
            inputSchema={
                "type": "object",
                "properties": {
                    **TARGET_PARAMS,
                    "command": {"type": "string", "description": "Command to send to the pane"},
                    "enter": {
                        "type": "boolean", "default": True,
                        "description": "Whether to press Enter after the command. Defaults to true.",
                    },
                },
                "required": ["window", "command"],
            },
        ),
        Tool(
            name="tmux_list",
            description=(
                "List tmux sessions, windows, and panes. Useful for discovering available "
                "targets for other tmux commands."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "scope": {
                        "type": "string", "enum": ["current", "all"], "default": "current",
                        "description": "'current' for current session only, 'all' for all sessions.",
                    },
                    "servers_only": {
                        "type": "boolean", "default": False,
                        "description": "Only show panes running server processes (bun, node, docker, etc.)",
                    },
                },
            },
        ),
    ]


# =============================================================================
# ARGUMENTS
# =============================================================================

def _int_arg(arguments: dict[str, Any], name: str, default: int = None, minimum: int = 0) -> int:
    value = arguments.get(name)
    if value is None:
        if default is None:
            raise ArgumentError(f"{name} is required")
        return default
    # bool is an int subclass; JSON clients may also send 2.0
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ArgumentError(f"{name} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ArgumentError(f"{name} must be an integer") from None
    if number < minimum:
        raise ArgumentError(f"{name} must be >= {minimum}")
    return number


def _bool_arg(arguments: dict[str, Any], name: str, default: bool) -> bool:
    value = arguments.get(name)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ArgumentError(f"{name} must be a boolean")
    return value


async def resolve_target(arguments: dict[str, Any]) -> Optional[Target]:
    """Build the pane target, defaulting to the current session. None if no session."""
    window = _int_arg(arguments, "window")
    pane = _int_arg(arguments, "pane", default=0)
    session = arguments.get("session") or await tmux_client.get_current_session()
    if not session:
        return None
    return Target(session=session, window=window, pane=pane)


# =============================================================================
# TOOLS
# =============================================================================

async def read_logs(arguments: dict[str, Any]) -> str:
    lines = _int_arg(arguments, "lines", default=DEFAULT_LOG_LINES, minimum=1)
    target = await resolve_target(arguments)
    if target is None:
        return NO_SESSION_MESSAGE

    captured = await tmux_client.capture_pane(target, lines)
    if not captured.success:
        return captured.message

    highlighted = highlight_errors(captured.output)
    header = f"=== Logs from {target} (last {lines} lines) ===\n"
    header += f"Found {count_error_lines(captured.output)} potential error(s)\n"
    header += "---\n"
    return header + highlighted


async def restart_server(arguments: dict[str, Any]) -> str:
    target = await resolve_target(arguments)
    if target is None:
        return NO_SESSION_MESSAGE
    result = await tmux_client.restart(target, arguments.get("command") or None)
    return result.message


async def send_command(arguments: dict[str, Any]) -> str:
    command = arguments.get("command")
    if not isinstance(command, str) or not command:
        raise ArgumentError("command is required")
    enter = _bool_arg(arguments, "enter", default=True)
    target = await resolve_target(arguments)
    if target is None:
        return NO_SESSION_MESSAGE
    result = await tmux_client.send_keys(target, command, enter=enter)
    return result.message


def format_session(session: str, windows: list[Window], servers_only: bool = False) -> str:
    """Render one session's windows and panes (scope='current')."""
    output = f"## Session: {session}\n\n"
    for win in windows:
        output += f"### Window {win.index}: {win.name}\n"
        for pane in win.panes:
            is_server = is_server_process(pane.command)
            if servers_only and not is_server:
                continue
            tag = " [SERVER]" if is_server else ""
            output += f"  - Pane {pane.pane}: {pane.command}{tag}\n"
            output += f"    Path: {pane.path}\n"
    return output


def format_sessions(sessions: list[Session], current: str = None, servers_only: bool = False) -> str:
    """Render every session (scope='all'), marking the current one."""
    output = "## All tmux sessions\n\n"
    for session in sessions:
        marker = " (current)" if session.name == current else ""
        output += f"### Session: {session.name}{marker}\n"
        for win in session.windows:
            output += f"  Window {win.index}: {win.name}\n"
            for pane in win.panes:
                is_server = is_server_process(pane.command)
                if servers_only and not is_server:
                    continue
                tag = " [SERVER]" if is_server else ""
                output += f"    - Pane {pane.pane}: {pane.command}{tag}\n"
        output += "\n"
    return output


async def list_targets(arguments: dict[str, Any]) -> str:
    scope = arguments.get("scope") or "current"
    servers_only = _bool_arg(arguments, "servers_only", default=False)
    if scope not in ("current", "all"):
        raise ArgumentError(f"scope must be 'current' or 'all', got {scope!r}")

    current = await tmux_client.get_current_session()

    if scope == "current":
        if not current:
            return NOT_IN_TMUX_MESSAGE
        windows = await tmux_client.get_windows(current)
        return format_session(current, windows, servers_only)

    sessions = await tmux_client.get_sessions()
    return format_sessions(sessions, current, servers_only)


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Execute a tmux tool."""
    arguments = arguments or {}
    try:
        if name == "tmux_read_logs":
            text = await read_logs(arguments)
        elif name == "tmux_restart_server":
            text = await restart_server(arguments)
        elif name == "tmux_send_command":
            text = await send_command(arguments)
        elif name == "tmux_list":
            text = await list_targets(arguments)
        else:
            text = f"Error: Unknown tool: {name}"
    except ArgumentError as e:
        text = f"Error: {e}"

    return [TextContent(type="text", text=text)]


# =============================================================================
# LIFECYCLE HOOKS
# =============================================================================

async def inject_context() -> Optional[str]:
    """Context block for the current session, or None outside tmux."""
    if not tmux_client.is_in_tmux_session():
        return None

    current = await tmux_client.get_current_session()
    if not current:
        return None

    windows = await tmux_client.get_windows(current)
    panes = await tmux_client.get_panes(current)
    return generate_context(current, windows, panes)


async def handle_event(event_type: str) -> Optional[str]:
    """Refresh the context block on session created/compacted events.

    The block is returned but not delivered anywhere; compaction delivery goes
    through handle_compacting.
    """
    if event_type not in CONTEXT_EVENTS:
        return None
    context = await inject_context()
    if context:
        logger.debug(f"tmux context refreshed on {event_type}")
    return context


async def handle_compacting(context: list[str]) -> None:
    """Pre-compaction hook: append the context block to the host's list."""
    block = await inject_context()
    if block:
        context.append(block)


# =============================================================================
# ENTRY POINTS
# =============================================================================

async def main():
    """Run the MCP server."""
    await handle_event(SESSION_CREATED)
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


async def print_context(event: str = SESSION_COMPACTED):
    """Print the context block for host hooks that read stdout."""
    if event == SESSION_CREATED:
        block = await handle_event(event)
        if block:
            print(block, end="")
        return

    context: list[str] = []
    await handle_compacting(context)
    for block in context:
        print(block, end="")


def run(argv: list[str] = None):
    parser = argparse.ArgumentParser(prog="tmux-mcp", description="tmux MCP Server")
    parser.add_argument(
        "command", nargs="?", default="serve", choices=["serve", "context"],
        help="'serve' runs the MCP server on stdio, 'context' prints the tmux context block",
    )
    parser.add_argument(
        "--event", choices=sorted(CONTEXT_EVENTS), default=SESSION_COMPACTED,
        help="Lifecycle event the context block is printed for (context only)",
    )
    args = parser.parse_args(argv)

    # stdout belongs to the MCP protocol
    level = logging.getLevelName(LOG_LEVEL)
    logging.basicConfig(
        stream=sys.stderr,
        level=level if isinstance(level, int) else logging.WARNING,
        format="%(asctime)s [%(name)s] %(levelname)s %(message)s",
    )

    if args.command == "context":
        asyncio.run(print_context(args.event))
    else:
        asyncio.run(main())


if __name__ == "__main__":
    run()
