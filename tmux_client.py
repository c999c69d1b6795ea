"""tmux subprocess layer - query and control sessions, windows and panes.

Queries degrade to empty results (False / None / []) when tmux is missing or
a command fails. Commands that change pane state return a CommandResult whose
message embeds the target and the tmux error, so the caller can show it
verbatim.
"""

import asyncio
import logging
import os
import re
import shutil
from dataclasses import dataclass, field
from typing import Any, Optional

from tmux_config import COMMAND_TIMEOUT, DEFAULT_RESTART_COMMAND, SETTLE_DELAY_SECONDS, TMUX_BIN

logger = logging.getLogger(__name__)


# =============================================================================
# MODEL
# =============================================================================

@dataclass
class Pane:
    """One pane as reported by list-panes."""
    session: str
    window: int
    pane: int
    command: str
    path: str
    window_name: Optional[str] = None


@dataclass
class Window:
    """A window and its panes, in tmux order (first pane is the main pane)."""
    index: int
    name: str
    panes: list[Pane] = field(default_factory=list)


@dataclass
class Session:
    name: str
    windows: list[Window] = field(default_factory=list)


@dataclass(frozen=True)
class Target:
    """Address of a pane: session:window.pane"""
    session: str
    window: int
    pane: int = 0

    def __str__(self) -> str:
        return f"{self.session}:{self.window}.{self.pane}"


@dataclass
class CommandResult:
    """Outcome of a tmux command whose failure is reported to the user."""
    success: bool
    message: str
    output: str = ""
    error: str = ""


# =============================================================================
# SUBPROCESS
# =============================================================================

async def run_tmux(*args: str) -> dict[str, Any]:
    """Run a tmux command. Never raises.

    Returns dict with success, stdout and error fields.
    """
    cmd = [TMUX_BIN, *args]
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        if COMMAND_TIMEOUT:
            try:
                stdout, stderr = await asyncio.wait_for(proc.communicate(), COMMAND_TIMEOUT)
            except asyncio.TimeoutError:
                proc.kill()
                await proc.wait()
                logger.warning(f"tmux command timed out: {' '.join(cmd)}")
                return {"success": False, "stdout": "", "error": "Command timed out"}
        else:
            stdout, stderr = await proc.communicate()
    except Exception as e:
        logger.warning(f"tmux subprocess error: {' '.join(cmd)}: {e}")
        return {"success": False, "stdout": "", "error": str(e)}

    out = stdout.decode(errors="replace")
    if proc.returncode != 0:
        error = stderr.decode(errors="replace").strip() or f"exit status {proc.returncode}"
        logger.warning(f"tmux command failed: {' '.join(cmd)}: {error}")
        return {"success": False, "stdout": out, "error": error}
    return {"success": True, "stdout": out, "error": ""}


def _lines(output: str) -> list[str]:
    return [line for line in output.strip().split("\n") if line]


# =============================================================================
# QUERIES
# =============================================================================

def is_tmux_available() -> bool:
    """Check if the tmux binary is installed and on PATH."""
    try:
        return shutil.which(TMUX_BIN) is not None
    except OSError:
        return False


def is_in_tmux_session() -> bool:
    """Check if this process runs inside a tmux client."""
    return bool(os.environ.get("TMUX"))


async def get_current_session() -> Optional[str]:
    """Name of the session this process is attached to, or None."""
    if not is_in_tmux_session():
        return None

    args = ["display-message"]
    pane_id = os.environ.get("TMUX_PANE")
    if pane_id:
        args.extend(["-t", pane_id])
    args.extend(["-p", "#S"])

    result = await run_tmux(*args)
    if not result["success"]:
        return None
    return result["stdout"].strip() or None


PANE_FORMAT = (
    "#{session_name}:#{window_index}.#{pane_index} "
    "#{pane_current_command} #{pane_current_path} #{window_name}"
)
_PANE_LINE_RE = re.compile(r"^(.+):(\d+)\.(\d+)\s+(\S+)\s+(\S+)\s*(.*)$")


def parse_pane_line(line: str) -> Optional[Pane]:
    """Parse one PANE_FORMAT line. Returns None if the line does not match."""
    match = _PANE_LINE_RE.match(line)
    if not match:
        logger.debug(f"Skipping unparseable pane line: {line!r}")
        return None
    return Pane(
        session=match.group(1),
        window=int(match.group(2)),
        pane=int(match.group(3)),
        command=match.group(4),
        path=match.group(5),
        window_name=match.group(6) or None,
    )


async def get_panes(session: str = None) -> list[Pane]:
    """List panes of all sessions, or of one session."""
    if session:
        result = await run_tmux("list-panes", "-s", "-t", session, "-F", PANE_FORMAT)
    else:
        result = await run_tmux("list-panes", "-a", "-F", PANE_FORMAT)
    if not result["success"]:
        return []

    panes = []
    for line in _lines(result["stdout"]):
        pane = parse_pane_line(line)
        if pane is None:
            continue
        if session and pane.session != session:
            continue
        panes.append(pane)
    return panes


async def get_windows(session: str) -> list[Window]:
    """List a session's windows, each with its own panes attached."""
    result = await run_tmux("list-windows", "-t", session, "-F", "#{window_index}:#{window_name}")
    if not result["success"]:
        return []
    panes = await get_panes(session)

    windows = []
    for line in _lines(result["stdout"]):
        index_str, _, name = line.partition(":")
        try:
            index = int(index_str)
        except ValueError:
            logger.debug(f"Skipping unparseable window line: {line!r}")
            continue
        windows.append(Window(
            index=index,
            name=name or f"window-{index}",
            panes=[p for p in panes if p.session == session and p.window == index],
        ))
    return windows


async def get_sessions() -> list[Session]:
    """List every session with its windows and panes."""
    result = await run_tmux("list-sessions", "-F", "#{session_name}")
    if not result["success"]:
        return []

    sessions = []
    for name in _lines(result["stdout"]):
        sessions.append(Session(name=name, windows=await get_windows(name)))
    return sessions


async def capture_pane(target: Target, lines: int) -> CommandResult:
    """Capture the last `lines` lines of a pane's scrollback."""
    result = await run_tmux("capture-pane", "-t", str(target), "-p", "-S", f"-{lines}")
    if not result["success"]:
        return CommandResult(
            False, f"Error reading logs from {target}: {result['error']}", error=result["error"]
        )
    return CommandResult(True, f"Captured {target}", output=result["stdout"])


# =============================================================================
# CONTROL
# =============================================================================

async def send_keys(target: Target, text: str, enter: bool = True) -> CommandResult:
    """Type text into a pane literally, optionally followed by Enter."""
    result = await run_tmux("send-keys", "-t", str(target), "-l", text)
    if result["success"] and enter:
        result = await run_tmux("send-keys", "-t", str(target), "Enter")
    if not result["success"]:
        return CommandResult(
            False, f"Error sending command to {target}: {result['error']}", error=result["error"]
        )
    return CommandResult(True, f"Sent command to {target}: {text}")


async def interrupt(target: Target) -> CommandResult:
    """Send Ctrl-C to a pane."""
    result = await run_tmux("send-keys", "-t", str(target), "C-c")
    if not result["success"]:
        return CommandResult(
            False, f"Error interrupting {target}: {result['error']}", error=result["error"]
        )
    return CommandResult(True, f"Interrupted {target}")


async def restart(target: Target, command: str = None) -> CommandResult:
    """Stop whatever runs in a pane and start `command` in its place.

    Sends Ctrl-C, waits SETTLE_DELAY_SECONDS for the shell prompt to come
    back, then types the command and Enter. A failed interrupt aborts before
    anything is typed.
    """
    restart_cmd = command or DEFAULT_RESTART_COMMAND

    result = await interrupt(target)
    if result.success:
        await asyncio.sleep(SETTLE_DELAY_SECONDS)
        result = await send_keys(target, restart_cmd, enter=True)

    if not result.success:
        return CommandResult(
            False, f"Error restarting server in {target}: {result.error}", error=result.error
        )
    logger.info(f"Restarted {target} with: {restart_cmd}")
    return CommandResult(True, f"Server in {target} restarted with command: {restart_cmd}")
