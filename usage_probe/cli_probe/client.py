"""Usage data from the Claude Code CLI's interactive ``/usage`` screen."""

from __future__ import annotations

import logging
import subprocess
import sys
from datetime import datetime

from usage_probe.cli_probe.supervisor import PtySupervisor, ProcessResult
from usage_probe.config import settings
from usage_probe.errors import AuthenticationFailed, NoOutput, ProcessError
from usage_probe.localzone import local_timezone_name
from usage_probe.models import UsageCategory, UsageSnapshot
from usage_probe.parsing.reset_time import resolve_reset_time
from usage_probe.parsing.terminal import parse_usage_output

logger = logging.getLogger(__name__)

PRIMARY_MARKER = "Current session"
SECONDARY_MARKER = "Esc to cancel"

AUTH_FAILURE_MARKERS = (
    "token_expired",
    "authentication_error",
    "OAuth token has expired",
    "Invalid API key",
    "Please run /login",
)


class ProcessUsageClient:
    """Runs ``claude /usage`` in a pty and scrapes the result."""

    def __init__(
        self,
        cli_path: str | None = None,
        hard_timeout: float | None = None,
        marker_timeout: float | None = None,
        cwd: str | None = None,
    ) -> None:
        self.cli_path = cli_path or settings.claude_cli_path
        self.hard_timeout = hard_timeout if hard_timeout is not None else settings.cli_hard_timeout
        self.marker_timeout = marker_timeout if marker_timeout is not None else settings.cli_marker_timeout
        self.cwd = cwd

    def is_available(self) -> bool:
        """Whether the CLI is on PATH. Never raises."""
        probe = "where" if sys.platform == "win32" else "which"
        try:
            result = subprocess.run(
                [probe, self.cli_path],
                capture_output=True,
                text=True,
                timeout=5,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug("Availability probe failed: %s", e)
            return False
        return result.returncode == 0

    def _supervisor(self) -> PtySupervisor:
        return PtySupervisor(
            self.cli_path,
            [settings.usage_command],
            primary_marker=PRIMARY_MARKER,
            secondary_marker=SECONDARY_MARKER,
            marker_timeout=self.marker_timeout,
            primary_delay=settings.cli_primary_delay,
            secondary_delay=settings.cli_secondary_delay,
            drain_timeout=settings.cli_drain_timeout,
            cwd=self.cwd,
        )

    async def fetch_raw_output(self) -> str:
        """Run the usage screen once and return its captured text.

        Raises AuthenticationFailed, ProcessError, NoOutput, UsageTimeout or
        ProcessSpawnFailure.
        """
        result = await self._supervisor().run(self.hard_timeout)
        return check_process_result(result)

    async def fetch_usage_data(self, now: datetime | None = None) -> UsageSnapshot:
        output = await self.fetch_raw_output()
        return build_snapshot(output, now=now)


def check_process_result(result: ProcessResult) -> str:
    """Classify a finished run; returns the output to parse."""
    combined = result.output + result.stderr
    for marker in AUTH_FAILURE_MARKERS:
        if marker in combined:
            logger.warning("Claude CLI reported an authentication problem (%s)", marker)
            raise AuthenticationFailed("Authentication required - please run 'claude login'")

    # The TUI often exits non-zero after being cancelled; output still counts
    if result.output.strip():
        if result.exit_code != 0:
            logger.debug("Usage command exited %d with output, parsing anyway", result.exit_code)
        return result.output
    if result.exit_code != 0:
        raise ProcessError(result.exit_code, result.stderr)
    raise NoOutput()


def build_snapshot(output: str, now: datetime | None = None) -> UsageSnapshot:
    now = now or datetime.now().astimezone()
    parsed = parse_usage_output(output)
    return UsageSnapshot(
        source="cli",
        session_percentage=parsed.session.percentage,
        session_reset_time=resolve_reset_time(parsed.session.reset_text, UsageCategory.SESSION, now),
        session_reset_text=parsed.session.display_reset_text or None,
        weekly_percentage=parsed.weekly.percentage,
        weekly_reset_time=resolve_reset_time(parsed.weekly.reset_text, UsageCategory.WEEKLY, now),
        weekly_reset_text=parsed.weekly.display_reset_text or None,
        opus_weekly_percentage=parsed.model.percentage,
        opus_reset_text=parsed.model.display_reset_text or None,
        last_updated=now,
        user_timezone=local_timezone_name(),
    )
