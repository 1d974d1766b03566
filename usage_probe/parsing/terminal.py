"""Parse the text Claude Code's ``/usage`` screen leaves in a pseudo-terminal.

The captured stream usually holds several full redraws of the same screen
(progress bars are repainted while data loads), e.g.::

    Current session
    ████████████████                                   32% used
    Resets 7pm (America/New_York)

    Current week (all models)
    ███                                                 6% used
    Resets Jan 15, 3:30pm (America/New_York)

Each section is located by its *last* header occurrence so the final redraw
wins. Inside the five-line window starting at that header every matching
line overwrites the previous one, so the last percentage and the last
"reset" line in the window are what we keep.
"""

from __future__ import annotations

import logging
import re

from usage_probe.models import SectionUsage, TerminalUsage

logger = logging.getLogger(__name__)

SESSION_LABEL = "Current session"
WEEKLY_LABEL = "Current week (all models)"
# Tried in order; a 0% result counts as "not found"
MODEL_LABELS = (
    "Current week (Opus)",
    "Current week (Sonnet only)",
    "Current week (Sonnet)",
)

SECTION_WINDOW = 5

# CSI (ESC [ ... final), OSC (ESC ] ... BEL / ST), and two-byte escapes
_ANSI_ESCAPE = re.compile(
    r"\x1b\[[0-?]*[ -/]*[@-~]"
    r"|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"
    r"|\x1b[@-Z\\-_]"
)
_PERCENTAGE = re.compile(r"(?<![\d.])(\d{1,3})\s*%\s*(left|used|remaining)", re.IGNORECASE)
_TRAILING_TIMEZONE = re.compile(r"\s*\([^)]*\)\s*$")


def strip_ansi(text: str) -> str:
    """Remove ANSI / VT escape sequences."""
    return _ANSI_ESCAPE.sub("", text)


def split_lines(text: str) -> list[str]:
    """Trimmed, non-empty lines in their original order."""
    return [line.strip() for line in re.split(r"\r\n|\r|\n", text) if line.strip()]


def find_last_header(lines: list[str], label: str) -> int:
    """Index of the last line containing ``label`` (case-insensitive), or -1."""
    needle = label.lower()
    for i in range(len(lines) - 1, -1, -1):
        if needle in lines[i].lower():
            return i
    return -1


def _match_percentage(line: str) -> float | None:
    m = _PERCENTAGE.search(line)
    if not m:
        return None
    value = min(int(m.group(1)), 100)
    if m.group(2).lower() == "used":
        return float(value)
    return float(100 - value)


def strip_timezone_suffix(text: str) -> str:
    """``Resets 7pm (America/New_York)`` -> ``Resets 7pm``."""
    return _TRAILING_TIMEZONE.sub("", text).strip()


def parse_section(lines: list[str], label: str) -> SectionUsage:
    start = find_last_header(lines, label)
    if start == -1:
        return SectionUsage()

    percentage = 0.0
    reset_text = ""
    for line in lines[start:start + SECTION_WINDOW]:
        value = _match_percentage(line)
        if value is not None:
            percentage = value
        if "reset" in line.lower():
            reset_text = line

    return SectionUsage(
        percentage=percentage,
        reset_text=reset_text,
        display_reset_text=strip_timezone_suffix(reset_text),
    )


def parse_model_section(lines: list[str]) -> SectionUsage:
    """First model-specific label with a nonzero percentage."""
    section = SectionUsage()
    for label in MODEL_LABELS:
        section = parse_section(lines, label)
        if section.percentage != 0:
            return section
    return section


def parse_usage_output(raw: str) -> TerminalUsage:
    """Parse raw captured terminal output into per-section usage."""
    lines = split_lines(strip_ansi(raw))
    logger.debug("Parsing %d lines of /usage output", len(lines))
    return TerminalUsage(
        session=parse_section(lines, SESSION_LABEL),
        weekly=parse_section(lines, WEEKLY_LABEL),
        model=parse_model_section(lines),
    )
