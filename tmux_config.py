"""tmux-mcp configuration.

Every value can be overridden through an environment variable; malformed
numbers fall back to the default.
"""

import os
from typing import Optional


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str) -> list[str]:
    raw = os.environ.get(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


# === tmux binary ===
TMUX_BIN = os.environ.get("TMUX_MCP_BIN", "").strip() or "tmux"
COMMAND_TIMEOUT = _env_float("TMUX_MCP_COMMAND_TIMEOUT", None)  # None: wait for tmux

# === Restart ===
DEFAULT_RESTART_COMMAND = os.environ.get("TMUX_MCP_RESTART_COMMAND", "").strip() or "bun dev"
SETTLE_DELAY_SECONDS = _env_float("TMUX_MCP_SETTLE_DELAY", 1.0)  # Ctrl-C -> new command

# === Logs ===
DEFAULT_LOG_LINES = 50

# === Server detection ===
EXTRA_SERVER_PROCESSES = _env_list("TMUX_MCP_EXTRA_SERVERS")

# === Logging ===
LOG_LEVEL = os.environ.get("TMUX_MCP_LOG_LEVEL", "").strip().upper() or "WARNING"
