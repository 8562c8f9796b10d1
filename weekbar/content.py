"""Week progress text posted on the schedule."""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

FRIDAY = 4
SATURDAY = 5
SUNDAY = 6

WEEK_LENGTH_HOURS = 24 * 7
BAR_CELLS = 15
FILLED_GLYPH = "▓"
EMPTY_GLYPH = "░"


def _as_utc(now: datetime) -> datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def _floor_to(value: float, places: int) -> float:
    factor = 10**places
    return math.floor(value * factor) / factor


def _format_number(value: float) -> str:
    return f"{value:.2f}".rstrip("0").rstrip(".")


def end_of_week(now: datetime) -> datetime:
    """Friday 23:59:59 UTC at or after ``now``."""
    now = _as_utc(now)
    days_ahead = (FRIDAY - now.weekday()) % 7
    end = (now + timedelta(days=days_ahead)).replace(
        hour=23, minute=59, second=59, microsecond=0
    )
    if end < now:
        end += timedelta(days=7)
    return end


def render_bar(progress: float) -> str:
    filled = math.ceil(progress * 1.5 * 10)
    filled = min(max(filled, 0), BAR_CELLS)
    return FILLED_GLYPH * filled + EMPTY_GLYPH * (BAR_CELLS - filled)


def generate_scheduled_text(now: datetime) -> str:
    now = _as_utc(now)

    if now.weekday() == SUNDAY:
        return "It's Sunday!"
    if now.weekday() == SATURDAY:
        return "It's Saturday!"

    seconds_left = (end_of_week(now) - now).total_seconds()
    hours_left = _floor_to(seconds_left / 3600, 2)
    progress = abs(_floor_to(1 - hours_left / WEEK_LENGTH_HOURS, 4))
    percent = math.floor(progress * 10000) / 100

    return (
        f"{render_bar(progress)} {_format_number(percent)}%\n"
        f"{_format_number(hours_left)} hours left until the weekend."
    )
