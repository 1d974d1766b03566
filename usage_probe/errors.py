"""Typed failure reasons surfaced by both usage clients.

Every error carries a stable ``kind`` string so callers can branch on it
without importing the classes. ``requires_reauth`` marks the kinds that
should make the caller drop its cached "credential exists" flag and prompt
for a new key; everything else is transient and safe to retry on the normal
polling cadence.
"""

from __future__ import annotations


class UsageError(Exception):
    """Base class for all usage fetch failures."""

    kind: str = "Unknown"
    requires_reauth: bool = False


class NoCredential(UsageError):
    kind = "NoCredential"

    def __init__(self, message: str = "No session key found") -> None:
        super().__init__(message)


class InvalidCredentialFormat(UsageError):
    kind = "InvalidCredentialFormat"
    requires_reauth = True

    def __init__(self, message: str = "Invalid session key format") -> None:
        super().__init__(message)


class AuthenticationFailed(UsageError):
    kind = "AuthenticationFailed"
    requires_reauth = True

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class ServerError(UsageError):
    """Raised when the web API answers with a non-2xx (other than 401/403)."""

    kind = "ServerError"

    def __init__(self, status: int, detail: str = "") -> None:
        self.status = status
        self.detail = detail
        super().__init__(f"Server error: {status}")


class NoOrganization(UsageError):
    kind = "NoOrganization"

    def __init__(self, message: str = "No organizations found") -> None:
        super().__init__(message)


class NetworkError(UsageError):
    """Raised when the web API is unreachable (connect, DNS, read timeout)."""

    kind = "NetworkError"


class UsageTimeout(UsageError):
    kind = "Timeout"

    def __init__(self, seconds: float) -> None:
        self.seconds = seconds
        super().__init__(f"Usage command timed out after {seconds:g}s")


class ProcessSpawnFailure(UsageError):
    kind = "ProcessSpawnFailure"


class ProcessError(UsageError):
    kind = "ProcessError"

    def __init__(self, exit_code: int, stderr: str = "") -> None:
        self.exit_code = exit_code
        self.stderr = stderr
        msg = f"Usage command exited with code {exit_code}"
        if stderr:
            msg += f": {stderr.strip()[:200]}"
        super().__init__(msg)


class NoOutput(UsageError):
    kind = "NoOutput"

    def __init__(self, message: str = "Usage command produced no output") -> None:
        super().__init__(message)
