"""
Date helpers shared by processes and pipelines.

Dates are stored as ``YYYY-MM-DD-HH-MM-SS`` strings so they survive both the
binary and the text encodings unchanged.
"""

from __future__ import annotations

import time
from datetime import datetime

DATE_FORMAT = "%Y-%m-%d-%H-%M-%S"
DISPLAY_FORMAT = "%Y-%m-%d %H:%M:%S"


def time_now() -> str:
    return time.strftime(DATE_FORMAT, time.localtime())


def parse_date(date: str) -> datetime:
    return datetime.strptime(date, DATE_FORMAT)


def format_date(date: str | None) -> str:
    """Human-readable form of a stored date; unparsable input is returned as-is."""
    if not date:
        return ""
    try:
        return parse_date(date).strftime(DISPLAY_FORMAT)
    except ValueError:
        return date
