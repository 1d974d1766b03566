"""httpx-based client for the claude.ai web usage endpoints.

Authenticates with the stored ``sessionKey`` cookie. All methods return
typed responses or raise one of the usage errors.
"""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import datetime
from typing import Any

import httpx
from pydantic import ValidationError

from usage_probe.config import settings
from usage_probe.credentials.store import CredentialStore
from usage_probe.errors import AuthenticationFailed, NetworkError, NoOrganization, ServerError
from usage_probe.localzone import local_timezone_name
from usage_probe.models import (
    Organization,
    OverageSpendLimit,
    UsageCategory,
    UsageResponse,
    UsageSnapshot,
    clamp_percentage,
)
from usage_probe.parsing.reset_time import default_reset_time

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def tokens_from_percentage(percentage: float, reference_limit: int) -> int:
    """Display-only approximation of tokens used."""
    return math.floor(reference_limit * percentage / 100)


class HttpUsageClient:
    """Async httpx client for claude.ai usage data."""

    def __init__(
        self,
        store: CredentialStore | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        reference_limit: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.store = store or CredentialStore()
        self._base_url = (base_url or settings.claude_api_base_url).rstrip("/")
        self._timeout = timeout or settings.http_timeout
        self._reference_limit = reference_limit or settings.reference_token_limit
        self._transport = transport

    def _headers(self, token: str) -> dict[str, str]:
        origin = settings.claude_web_origin
        return {
            "Cookie": f"sessionKey={token}",
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
            "Origin": origin,
            "Referer": f"{origin}/",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    async def _get(self, client: httpx.AsyncClient, path: str, token: str) -> Any:
        """GET ``path`` and return decoded JSON."""
        try:
            resp = await client.get(f"{self._base_url}{path}", headers=self._headers(token))
        except httpx.TimeoutException:
            raise NetworkError(f"Request to {path} timed out")
        except httpx.TransportError as e:
            raise NetworkError(f"Request to {path} failed: {e}")

        if resp.status_code in (401, 403):
            logger.warning("Request to %s rejected: %d", path, resp.status_code)
            raise AuthenticationFailed()
        if not resp.is_success:
            logger.error("Request to %s failed: %d %s", path, resp.status_code, resp.text[:200])
            raise ServerError(resp.status_code, resp.text)
        try:
            return resp.json()
        except ValueError:
            logger.error("Request to %s returned non-JSON body", path)
            raise ServerError(resp.status_code, "invalid JSON")

    # ── High-level methods ───────────────────────────────────────────────

    async def resolve_organization_id(self, token: str, client: httpx.AsyncClient | None = None) -> str:
        """GET /organizations, returning the first organization's uuid."""
        if client is None:
            async with self._client() as own:
                return await self.resolve_organization_id(token, own)

        data = await self._get(client, "/organizations", token)
        try:
            orgs = [Organization.model_validate(o) for o in data or []]
        except (ValidationError, TypeError):
            raise ServerError(200, "unexpected organizations payload")
        if not orgs:
            raise NoOrganization()
        return orgs[0].uuid

    async def _fetch_overage(self, client: httpx.AsyncClient, org_id: str, token: str) -> OverageSpendLimit | None:
        """GET /organizations/{id}/overage_spend_limit; any failure means no data."""
        try:
            data = await self._get(client, f"/organizations/{org_id}/overage_spend_limit", token)
            return OverageSpendLimit.model_validate(data)
        except Exception as e:
            logger.debug("Overage data unavailable: %s", e)
            return None

    async def fetch_usage_data(self, token: str | None = None, now: datetime | None = None) -> UsageSnapshot:
        """Resolve the org, then fetch usage and overage concurrently.

        ``token`` defaults to the stored session key.
        """
        if token is None:
            token = self.store.load()

        async with self._client() as client:
            org_id = await self.resolve_organization_id(token, client)
            usage_data, overage = await asyncio.gather(
                self._get(client, f"/organizations/{org_id}/usage", token),
                self._fetch_overage(client, org_id, token),
            )

        try:
            usage = UsageResponse.model_validate(usage_data)
        except ValidationError:
            raise ServerError(200, "unexpected usage payload")
        return self.build_snapshot(usage, overage, now=now)

    def build_snapshot(
        self,
        usage: UsageResponse,
        overage: OverageSpendLimit | None,
        now: datetime | None = None,
    ) -> UsageSnapshot:
        now = now or datetime.now().astimezone()

        session_pct = 0.0
        session_reset = default_reset_time(UsageCategory.SESSION, now)
        if usage.five_hour:
            if usage.five_hour.utilization is not None:
                session_pct = usage.five_hour.utilization
            if usage.five_hour.resets_at:
                session_reset = usage.five_hour.resets_at

        weekly_pct = 0.0
        weekly_reset = default_reset_time(UsageCategory.WEEKLY, now)
        if usage.seven_day:
            if usage.seven_day.utilization is not None:
                weekly_pct = usage.seven_day.utilization
            if usage.seven_day.resets_at:
                weekly_reset = usage.seven_day.resets_at

        opus_pct = 0.0
        if usage.seven_day_opus and usage.seven_day_opus.utilization is not None:
            opus_pct = usage.seven_day_opus.utilization

        cost_used = cost_limit = cost_currency = None
        if (
            overage is not None
            and overage.is_enabled
            and None not in (overage.used_credits, overage.monthly_credit_limit, overage.currency)
        ):
            cost_used = overage.used_credits
            cost_limit = overage.monthly_credit_limit
            cost_currency = overage.currency

        limit = self._reference_limit
        weekly_pct = clamp_percentage(weekly_pct)
        opus_pct = clamp_percentage(opus_pct)
        return UsageSnapshot(
            source="web",
            session_percentage=session_pct,
            session_reset_time=session_reset,
            weekly_tokens_used=tokens_from_percentage(weekly_pct, limit),
            weekly_limit=limit,
            weekly_percentage=weekly_pct,
            weekly_reset_time=weekly_reset,
            opus_weekly_tokens_used=tokens_from_percentage(opus_pct, limit),
            opus_weekly_percentage=opus_pct,
            cost_used=cost_used,
            cost_limit=cost_limit,
            cost_currency=cost_currency,
            last_updated=now,
            user_timezone=local_timezone_name(),
        )
