from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Which strategy fetch_usage_data uses: "web" (session key) or "cli" (claude /usage)
    usage_strategy: Literal["web", "cli"] = "web"

    # Stored credential (single slot, owner read/write only)
    session_key_path: Path = Path.home() / ".claude-session-key"
    session_key_prefix: str = "sk-ant-"

    # claude.ai web API
    claude_api_base_url: str = "https://claude.ai/api"
    claude_web_origin: str = "https://claude.ai"
    http_timeout: float = 15.0

    # Token figures are a display-only approximation
    reference_token_limit: int = 1_000_000

    # Claude Code CLI
    claude_cli_path: str = "claude"  # assumes `claude` is on PATH
    usage_command: str = "/usage"
    cli_hard_timeout: float = 45.0  # wall clock, kills the child on expiry
    cli_marker_timeout: float = 20.0  # inner wait for the usage screen
    cli_primary_delay: float = 2.0
    cli_secondary_delay: float = 3.0
    cli_drain_timeout: float = 5.0  # after cancel or inner timeout, before the child is killed

    # IANA name reported in snapshots; detected from the host when empty
    user_timezone: str = ""

    # API
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    # Logging
    log_level: str = "INFO"


settings = Settings()
