"""FastAPI application exposing the usage service to the UI."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI

from usage_probe import __version__
from usage_probe.api.routes import router
from usage_probe.service import UsageService

logger = logging.getLogger(__name__)


def create_app(service: UsageService | None = None) -> FastAPI:
    """Create the usage API application."""
    app = FastAPI(title="Claude Usage Probe", version=__version__)
    app.state.usage_service = service or UsageService()
    app.include_router(router)

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "ok": True,
            "name": "claude-usage-probe",
            "version": __version__,
            "strategy": app.state.usage_service.strategy,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    logger.info("Usage API ready (strategy=%s)", app.state.usage_service.strategy)
    return app
