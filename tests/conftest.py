"""Shared test fixtures."""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

from usage_probe.credentials.store import CredentialStore

SAMPLE_USAGE_SCREEN = """\
\x1b[?25l\x1b[2J\x1b[H Settings:  Status   Config   \x1b[1mUsage\x1b[0m

 Current session
 \x1b[38;5;75m████████████████\x1b[39m                                   32% used
 Resets 7pm (America/New_York)
 Session usage covers all models
 Shared with claude.ai

 Current week (all models)
 ███                                                 6% used
 Resets Jan 15, 3:30pm (America/New_York)
 Weekly usage covers all models
 Shared with claude.ai

 Current week (Opus)
 ██████████                                         21% used
 Resets Jan 15, 3:30pm (America/New_York)

 Esc to cancel
"""


@pytest.fixture
def usage_screen() -> str:
    return SAMPLE_USAGE_SCREEN


@pytest.fixture
def fixed_now() -> datetime:
    """A Wednesday morning in UTC."""
    return datetime(2024, 1, 10, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def key_path(tmp_path: Path) -> Path:
    return tmp_path / ".claude-session-key"


@pytest.fixture
def store(key_path: Path) -> CredentialStore:
    return CredentialStore(path=key_path, prefix="sk-ant-")


@pytest.fixture
def saved_store(store: CredentialStore) -> CredentialStore:
    store.save("sk-ant-test-key")
    return store


class FakeChild:
    """Stand-in for ``pexpect.spawn``.

    ``marker_index`` is what the first expect() returns (0 primary, 1
    secondary, 2 timeout, 3 EOF). ``drain_index`` is what the drain wait
    returns (0 EOF, 1 still running). With ``hang=True`` the drain blocks
    until the child is killed.
    """

    def __init__(
        self,
        output: str = "",
        marker_index: int = 0,
        exitstatus: int | None = 0,
        hang: bool = False,
        drain_index: int = 0,
    ) -> None:
        self.pid = 0  # never a process group leader, so kills go through kill()
        self.output = output
        self.marker_index = marker_index
        self.exitstatus = exitstatus
        self.signalstatus: int | None = None
        self.hang = hang
        self.drain_index = drain_index
        self.logfile_read: Any = None
        self.after: Any = None
        self.sent: list[str] = []
        self.closed = False
        self.killed = threading.Event()
        self.expect_calls: list[Any] = []

    def expect(self, pattern: Any, timeout: float | None = None) -> int:
        self.expect_calls.append((pattern, timeout))
        if len(self.expect_calls) == 1:
            if self.logfile_read is not None and self.output:
                self.logfile_read.write(self.output)
            self.after = "Current session" if self.marker_index == 0 else None
            return self.marker_index
        if self.hang:
            self.killed.wait(timeout=5)
            return 0
        return self.drain_index

    def send(self, data: str) -> int:
        self.sent.append(data)
        return len(data)

    def isalive(self) -> bool:
        return self.hang and not self.killed.is_set()

    def kill(self, sig: int) -> None:
        self.signalstatus = sig
        self.exitstatus = None
        self.killed.set()

    def close(self, force: bool = True) -> None:
        self.closed = True


@pytest.fixture
def make_child() -> type[FakeChild]:
    return FakeChild
