"""Owned pseudo-terminal child process with a hard wall-clock timeout.

``claude /usage`` refuses to run without a terminal, so it is spawned under
pexpect. The session is driven like an expect script:

- wait (inner timeout) for the primary or secondary marker
- primary seen: short pause, send the cancel key
- secondary seen: longer pause, send the cancel key
- inner timeout: carry on without cancelling
- drain output for a short window; a child still running after that
  (the TUI usually stays open) is killed with its process group

The blocking drive runs in a worker thread; ``run()`` wraps it with the
outer hard timeout and kills the child on every exit path (success,
timeout, or cancellation of the awaiting task).
"""

from __future__ import annotations

import asyncio
import io
import logging
import os
import re
import signal
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path

import pexpect

from usage_probe.errors import ProcessSpawnFailure, UsageTimeout

logger = logging.getLogger(__name__)

CANCEL_KEY = "\x1b"  # Esc


@dataclass
class ProcessResult:
    """What the child left behind. A pty merges stdout and stderr."""

    exit_code: int
    output: str
    stderr: str = ""


def default_working_dir() -> str:
    """User home, or the temp dir when home is unavailable."""
    try:
        home = Path.home()
        if home.is_dir():
            return str(home)
    except RuntimeError:
        pass
    return tempfile.gettempdir()


class PtySupervisor:
    """Spawn / wait-with-timeout / terminate for one pty child."""

    def __init__(
        self,
        command: str,
        args: list[str],
        *,
        primary_marker: str,
        secondary_marker: str,
        marker_timeout: float,
        primary_delay: float,
        secondary_delay: float,
        drain_timeout: float = 5.0,
        cancel_key: str = CANCEL_KEY,
        cwd: str | None = None,
        dimensions: tuple[int, int] = (50, 120),
    ) -> None:
        self.command = command
        self.args = args
        self.primary_marker = primary_marker
        self.secondary_marker = secondary_marker
        self.marker_timeout = marker_timeout
        self.primary_delay = primary_delay
        self.secondary_delay = secondary_delay
        self.drain_timeout = drain_timeout
        self.cancel_key = cancel_key
        self.cwd = cwd or default_working_dir()
        self.dimensions = dimensions
        self._child: pexpect.spawn | None = None
        self._buffer = io.StringIO()
        self._driving = threading.Event()

    # -- lifecycle ---------------------------------------------------------------

    def spawn(self) -> None:
        env = {**os.environ, "TERM": "xterm-256color"}
        try:
            self._child = pexpect.spawn(
                self.command,
                self.args,
                cwd=self.cwd,
                env=env,
                encoding="utf-8",
                codec_errors="replace",
                dimensions=self.dimensions,
                timeout=self.marker_timeout,
            )
        except (pexpect.ExceptionPexpect, OSError) as e:
            raise ProcessSpawnFailure(f"Failed to start {self.command}: {e}") from e
        self._child.logfile_read = self._buffer
        logger.debug("Spawned %s %s (pid %s) in %s", self.command, " ".join(self.args), self._child.pid, self.cwd)

    def terminate(self) -> None:
        """Kill the child if it is still running. Safe to call repeatedly."""
        child = self._child
        if child is None:
            return
        if child.isalive():
            self._kill(child)
        # A running drive thread closes the child itself once it sees EOF
        if not self._driving.is_set():
            child.close(force=True)

    @staticmethod
    def _kill(child: pexpect.spawn) -> None:
        """SIGKILL the child's process group, or just the child when it leads none.

        pexpect starts the child as a session leader, so grandchildren that
        still hold the pty go down with it.
        """
        logger.debug("Killing pid %s", child.pid)
        try:
            if os.getpgid(child.pid) == child.pid:
                os.killpg(child.pid, signal.SIGKILL)
            else:
                child.kill(signal.SIGKILL)
        except OSError:
            pass  # exited in between

    async def run(self, hard_timeout: float) -> ProcessResult:
        """Spawn, drive, and reap the child within ``hard_timeout`` seconds."""
        self.spawn()
        try:
            return await asyncio.wait_for(asyncio.to_thread(self._drive), timeout=hard_timeout)
        except asyncio.TimeoutError:
            logger.warning("%s %s timed out after %ss", self.command, " ".join(self.args), hard_timeout)
            raise UsageTimeout(hard_timeout)
        finally:
            self.terminate()

    # -- driving -----------------------------------------------------------------

    def _drive(self) -> ProcessResult:
        child = self._child
        assert child is not None
        self._driving.set()
        try:
            index = child.expect(
                [re.escape(self.primary_marker), re.escape(self.secondary_marker), pexpect.TIMEOUT, pexpect.EOF],
                timeout=self.marker_timeout,
            )
            if index in (0, 1):
                delay = self.primary_delay if index == 0 else self.secondary_delay
                logger.debug("Saw %r, cancelling in %ss", child.after, delay)
                time.sleep(delay)
                child.send(self.cancel_key)
            elif index == 2:
                logger.debug("No usage marker within %ss", self.marker_timeout)

            if index != 3 and not self._drain(child):
                logger.debug("%s still running after %ss, killing", self.command, self.drain_timeout)
                self._kill(child)
            child.close(force=True)
            return ProcessResult(exit_code=self._exit_code(child), output=self._buffer.getvalue())
        finally:
            if not child.closed:
                child.close(force=True)
            self._driving.clear()

    def _drain(self, child: pexpect.spawn) -> bool:
        """Read until EOF or ``drain_timeout``; True when the child exited."""
        return child.expect([pexpect.EOF, pexpect.TIMEOUT], timeout=self.drain_timeout) == 0

    @staticmethod
    def _exit_code(child: pexpect.spawn) -> int:
        if child.exitstatus is not None:
            return child.exitstatus
        if child.signalstatus is not None:
            return -child.signalstatus
        return -1
