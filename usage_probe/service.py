"""The narrow interface the polling UI talks to.

One strategy is chosen from configuration ("web" or "cli"); the two clients
are never raced against each other. Errors come back as values so the
caller can decide when to retry or prompt for a new key.
"""

from __future__ import annotations

import logging
from datetime import datetime

from usage_probe.cli_probe.client import ProcessUsageClient
from usage_probe.config import settings
from usage_probe.credentials.store import CredentialStore
from usage_probe.errors import UsageError
from usage_probe.models import FetchFailure, SaveResult, UsageSnapshot
from usage_probe.web_api.client import HttpUsageClient

logger = logging.getLogger(__name__)


class UsageService:
    """check_credential / save_credential / fetch_usage_data."""

    def __init__(
        self,
        strategy: str | None = None,
        store: CredentialStore | None = None,
        web_client: HttpUsageClient | None = None,
        cli_client: ProcessUsageClient | None = None,
    ) -> None:
        self.strategy = strategy or settings.usage_strategy
        if self.strategy not in ("web", "cli"):
            raise ValueError(f"Unknown usage strategy: {self.strategy!r}")
        self.store = store or CredentialStore()
        self._web_client = web_client
        self._cli_client = cli_client

    @property
    def web_client(self) -> HttpUsageClient:
        if self._web_client is None:
            self._web_client = HttpUsageClient(store=self.store)
        return self._web_client

    @property
    def cli_client(self) -> ProcessUsageClient:
        if self._cli_client is None:
            self._cli_client = ProcessUsageClient()
        return self._cli_client

    def check_credential(self) -> bool:
        """Whether a usable credential exists for the active strategy."""
        if self.strategy == "cli":
            return self.cli_client.is_available()
        if not self.store.exists():
            return False
        try:
            self.store.load()
        except UsageError:
            return False
        return True

    def save_credential(self, raw: str) -> SaveResult:
        if not raw or not raw.strip():
            return SaveResult(success=False, error="Key is required")
        try:
            self.store.save(raw)
        except OSError as e:
            logger.error("Error saving key: %s", e)
            return SaveResult(success=False, error=str(e))
        return SaveResult(success=True)

    async def fetch_usage_data(self, now: datetime | None = None) -> UsageSnapshot | FetchFailure:
        """One attempt with the configured strategy. Never raises UsageError."""
        try:
            if self.strategy == "cli":
                return await self.cli_client.fetch_usage_data(now=now)
            return await self.web_client.fetch_usage_data(now=now)
        except UsageError as e:
            if e.requires_reauth:
                logger.warning("Usage fetch needs a new credential: %s", e)
            else:
                logger.info("Usage fetch failed (%s): %s", e.kind, e)
            return FetchFailure(error=str(e), kind=e.kind, requires_reauth=e.requires_reauth)
