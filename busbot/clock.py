"""
Helpers for "HH:MM" clock values expressed as minutes since midnight.
"""

from __future__ import annotations

import re
from typing import Optional

CLOCK_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


def parse_clock(text: str) -> Optional[int]:
    """Return minutes since midnight for ``H:MM``/``HH:MM``, ``None`` otherwise."""
    m = CLOCK_RE.match(text)
    if not m:
        return None
    return int(m.group(1)) * 60 + int(m.group(2))


def format_clock(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def is_valid_clock(text: str) -> bool:
    """Shape check plus a 24-hour range check (``25:00`` and ``7:60`` fail)."""
    m = CLOCK_RE.match(text)
    if not m:
        return False
    return int(m.group(1)) < 24 and int(m.group(2)) < 60


__all__ = ["parse_clock", "format_clock", "is_valid_clock"]
