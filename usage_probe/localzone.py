"""Best-effort IANA name of the host timezone."""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path

from usage_probe.config import settings


def local_timezone_name() -> str:
    if settings.user_timezone:
        return settings.user_timezone

    tz = os.environ.get("TZ", "").lstrip(":")
    if tz and "/" in tz:
        return tz

    # /etc/localtime -> /usr/share/zoneinfo/Europe/Paris
    try:
        target = str(Path("/etc/localtime").resolve())
    except OSError:
        target = ""
    if "zoneinfo/" in target:
        return target.split("zoneinfo/", 1)[1]

    return datetime.now().astimezone().tzname() or "UTC"
