"""Entry point for the `claude-usage-probe` console script."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime

import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from usage_probe.config import settings
from usage_probe.models import FetchFailure, UsageSnapshot
from usage_probe.service import UsageService

console = Console()


def _status_style(percentage: float) -> str:
    if percentage >= 80:
        return "red"
    if percentage >= 50:
        return "dark_orange"
    return "green"


def _fmt_reset(ts: datetime) -> str:
    return ts.astimezone().strftime("%a %H:%M")


def render_snapshot(snapshot: UsageSnapshot) -> Table:
    """Build the rich table shown by `fetch`."""
    table = Table(title=f"Claude usage ({snapshot.source})", title_justify="left")
    table.add_column("Quota")
    table.add_column("Used", justify="right")
    table.add_column("Resets")

    rows = [
        ("Session (5h)", snapshot.session_percentage, _fmt_reset(snapshot.session_reset_time)),
        ("Weekly (all models)", snapshot.weekly_percentage, _fmt_reset(snapshot.weekly_reset_time)),
        ("Weekly (model)", snapshot.opus_weekly_percentage, snapshot.opus_reset_text or ""),
    ]
    for label, pct, reset in rows:
        style = _status_style(pct)
        table.add_row(label, f"[{style}]{pct:.0f}%[/{style}]", reset)

    if snapshot.cost_used is not None:
        table.add_row(
            "Extra usage",
            f"{snapshot.cost_used:.2f} / {snapshot.cost_limit:.2f} {snapshot.cost_currency}",
            "",
        )
    table.caption = f"Updated {snapshot.last_updated:%H:%M:%S} ({snapshot.user_timezone})"
    return table


def run_server() -> None:
    """Start the FastAPI server."""
    console.print(Panel(f"Claude usage API ({settings.usage_strategy})", style="bold green"))
    uvicorn.run(
        "usage_probe.api.app:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


def run_fetch(strategy: str | None, as_json: bool) -> int:
    service = UsageService(strategy=strategy)
    result = asyncio.run(service.fetch_usage_data())

    if isinstance(result, FetchFailure):
        if as_json:
            print(json.dumps(result.model_dump(), indent=2))
        else:
            console.print(f"[red]Error ({result.kind}):[/red] {result.error}")
        return 2 if result.requires_reauth else 1

    if as_json:
        print(json.dumps(result.model_dump(mode="json", by_alias=True), indent=2))
    else:
        console.print(render_snapshot(result))
    return 0


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    parser = argparse.ArgumentParser(description="Claude subscription usage probe")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Start the API server")

    fetch_parser = sub.add_parser("fetch", help="Fetch usage once")
    fetch_parser.add_argument("--strategy", choices=["web", "cli"], default=None)
    fetch_parser.add_argument("--json", action="store_true", help="Output in JSON format")

    key_parser = sub.add_parser("save-key", help="Store a claude.ai session key")
    key_parser.add_argument("key")

    sub.add_parser("check-key", help="Check whether a usable credential exists")

    args = parser.parse_args(argv)

    if args.command == "serve":
        run_server()
        return 0
    if args.command == "fetch":
        return run_fetch(args.strategy, args.json)
    if args.command == "save-key":
        result = UsageService(strategy="web").save_credential(args.key)
        if not result.success:
            console.print(f"[red]Error:[/red] {result.error}")
            return 1
        console.print("[green]Session key saved[/green]")
        return 0
    if args.command == "check-key":
        exists = UsageService().check_credential()
        console.print("[green]credential found[/green]" if exists else "[yellow]no usable credential[/yellow]")
        return 0 if exists else 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
