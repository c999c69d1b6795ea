"""Server detection, error highlighting and the tmux context block."""

import re
from typing import TYPE_CHECKING

from tmux_config import EXTRA_SERVER_PROCESSES

if TYPE_CHECKING:
    from tmux_client import Pane, Window


# =============================================================================
# SERVER DETECTION
# =============================================================================

SERVER_PROCESSES = frozenset({
    # JS runtimes / package managers
    "bun", "node", "npm", "pnpm", "yarn",
    # Containers / tunnels
    "docker", "docker-compose", "ngrok",
    # Python
    "python", "python3", "uvicorn", "gunicorn", "flask", "django",
    # Compiled toolchains
    "cargo", "rustc", "go",
    # Other runtimes
    "ruby", "rails", "php", "java", "gradle", "mvn", "dotnet",
    # Web servers / databases
    "nginx", "apache", "redis-server", "postgres", "mysql", "mongod",
}) | frozenset(EXTRA_SERVER_PROCESSES)


def is_server_process(command: str) -> bool:
    """Check if a pane command is a known long-running server process (exact match)."""
    return command in SERVER_PROCESSES


# =============================================================================
# ERROR HIGHLIGHTING
# =============================================================================

ERROR_MARKER = "[ERROR]"

ERROR_PATTERNS = (
    re.compile(r"error", re.IGNORECASE),
    re.compile(r"failed", re.IGNORECASE),
    re.compile(r"exception", re.IGNORECASE),
    re.compile(r"fatal", re.IGNORECASE),
    re.compile(r"panic", re.IGNORECASE),
    re.compile(r"cannot", re.IGNORECASE),
    re.compile(r"undefined", re.IGNORECASE),
    re.compile(r"not found", re.IGNORECASE),
    # Errno names and JS exception classes are matched as written
    re.compile(r"ENOENT"),
    re.compile(r"EACCES"),
    re.compile(r"ECONNREFUSED"),
    re.compile(r"TypeError"),
    re.compile(r"ReferenceError"),
    re.compile(r"SyntaxError"),
)


def is_error_line(line: str) -> bool:
    return any(pattern.search(line) for pattern in ERROR_PATTERNS)


def highlight_errors(text: str) -> str:
    """Prefix every line that looks like an error with [ERROR].

    Heuristic only. Line count and order are preserved.
    """
    highlighted = []
    for line in text.split("\n"):
        if is_error_line(line):
            highlighted.append(f"{ERROR_MARKER} {line}")
        else:
            highlighted.append(line)
    return "\n".join(highlighted)


def count_error_lines(text: str) -> int:
    """Number of lines highlight_errors would flag."""
    return sum(1 for line in text.split("\n") if is_error_line(line))


# =============================================================================
# CONTEXT BLOCK
# =============================================================================

TOOL_NAMES = ("tmux_read_logs", "tmux_restart_server", "tmux_send_command", "tmux_list")


def generate_context(current_session: str, windows: list["Window"], panes: list["Pane"]) -> str:
    """Summarize a session's windows and running servers for the assistant."""
    server_panes = [
        p for p in panes
        if p.session == current_session and is_server_process(p.command)
    ]
    window_names = {w.index: w.name for w in windows}

    context = "## tmux Context\n"
    context += f"**Session:** {current_session}\n\n"

    context += "**Windows:**\n"
    for win in windows:
        command = win.panes[0].command if win.panes else "unknown"
        context += f"{win.index}. {win.name} - {command}\n"

    if server_panes:
        context += "\n**Running Servers:**\n"
        for pane in server_panes:
            win_name = window_names.get(pane.window) or f"window-{pane.window}"
            context += f"- Window {pane.window} ({win_name}): {pane.command} (path: {pane.path})\n"

    context += f"\n**Available tmux tools:** {', '.join(TOOL_NAMES)}\n"
    return context
