"""Timestamp parser — textual time/page references to numeric positions."""

from __future__ import annotations

import re

# Leading component is unbounded: "125:30" is 125 minutes, not 25.
_CLOCK_RE = re.compile(r"^[\s\[(]*(?:(\d+):)?(\d+):(\d{2})")
_NUMBER_RE = re.compile(r"\d+")


def parse_position(display: str) -> int:
    """Convert ``HH:MM:SS``, ``MM:SS`` or ``Pág N`` into a numeric position.

    Time forms give total seconds; page forms give the bare page number.
    The two are not comparable across documents of different kinds. Input
    with no digits at all yields 0.
    """
    match = _CLOCK_RE.match(display)
    if match:
        hours = int(match.group(1) or 0)
        return hours * 3600 + int(match.group(2)) * 60 + int(match.group(3))
    number = _NUMBER_RE.search(display)
    return int(number.group()) if number else 0


def format_clock(hours: int, minutes: int, seconds: int) -> str:
    """Canonical display: ``MM:SS``, or ``HH:MM:SS`` when hours are present."""
    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    return f"{minutes:02d}:{seconds:02d}"


def format_page(page: int) -> str:
    return f"Pág {page}"


def looks_like_time(value: str) -> bool:
    """True if ``value`` starts with a clock reference such as ``01:20``."""
    return _CLOCK_RE.match(value.strip()) is not None
