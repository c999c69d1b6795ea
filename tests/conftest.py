"""Pytest configuration and a fake tmux for the subprocess layer."""

import pytest

import tmux_client


class FakeTmux:
    """Stands in for tmux_client.run_tmux, answering by subcommand.

    Responses are looked up by (subcommand, target) first, then by subcommand.
    Unknown commands succeed with empty output.
    """

    def __init__(self):
        self.calls: list[tuple] = []
        self.responses: dict = {}

    def set(self, key, stdout: str = "", success: bool = True, error: str = ""):
        self.responses[key] = {"success": success, "stdout": stdout, "error": error}

    async def __call__(self, *args: str) -> dict:
        self.calls.append(args)
        target = args[args.index("-t") + 1] if "-t" in args else None
        response = self.responses.get((args[0], target)) or self.responses.get(args[0])
        if response is None:
            response = {"success": True, "stdout": "", "error": ""}
        return dict(response)

    def commands(self, subcommand: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == subcommand]


@pytest.fixture(autouse=True)
def outside_tmux(monkeypatch):
    """Tests start outside tmux regardless of the shell running them."""
    monkeypatch.delenv("TMUX", raising=False)
    monkeypatch.delenv("TMUX_PANE", raising=False)


@pytest.fixture
def inside_tmux(monkeypatch):
    monkeypatch.setenv("TMUX", "/tmp/tmux-1000/default,4242,0")


@pytest.fixture
def fake_tmux(monkeypatch):
    fake = FakeTmux()
    monkeypatch.setattr(tmux_client, "run_tmux", fake)
    return fake


# Output of a "dev" session with an editor, a server window and a database
DEV_WINDOWS = "0:editor\n1:server\n2:db\n"
DEV_PANES = (
    "dev:0.0 nvim /home/user/app editor\n"
    "dev:1.0 node /home/user/app server\n"
    "dev:1.1 zsh /home/user/app/logs server\n"
    "dev:2.0 postgres /var/lib/postgres db\n"
)


@pytest.fixture
def dev_session(fake_tmux, inside_tmux):
    """Inside tmux, attached to "dev"."""
    fake_tmux.set("display-message", "dev\n")
    fake_tmux.set("list-windows", DEV_WINDOWS)
    fake_tmux.set("list-panes", DEV_PANES)
    return fake_tmux
