"""Attendance durations and lecture time ranges, in minutes."""

import math
import re

from cohort_tracker.models import Cell

LECTURE_RANGE_RE = re.compile(
    r"(\d{1,2}:\d{2}\s*(?:AM|PM)?)\s*-\s*(\d{1,2}:\d{2}\s*(?:AM|PM)?)",
    re.IGNORECASE,
)
CLOCK_RE = re.compile(r"(\d{1,2}):(\d{2})\s*(AM|PM)?", re.IGNORECASE)


def _is_absent_text(text: str) -> bool:
    return not text or text == "-" or "not" in text.lower()


def parse_duration_minutes(cell: Cell) -> float:
    """
    Convert an attendance cell into minutes attended.

    Args:
        cell: "H:MM:SS", "H:MM", a bare number, or free text

    Returns:
        Minutes (e.g., '1:30:00' -> 90.0, '2' -> 120.0, '45' -> 45.0).
        '-', blanks and anything containing 'not' give 0.
    """
    if isinstance(cell, (int, float)) and not isinstance(cell, bool):
        # bare numbers up to 24 are hours, larger ones are minutes already
        return float(cell) * 60 if cell <= 24 else float(cell)

    text = str(cell).strip()
    if _is_absent_text(text):
        return 0.0

    if ":" in text:
        parts = text.split(":")
        try:
            numbers = [float(p) for p in parts]
        except ValueError:
            return 0.0
        if len(numbers) == 3:
            h, m, s = numbers
            return h * 60 + m + s / 60
        if len(numbers) == 2:
            h, m = numbers
            return h * 60 + m
        return 0.0

    try:
        n = float(text)
    except ValueError:
        return 0.0
    if not math.isfinite(n):
        return 0.0
    return n * 60 if n <= 24 else n


def _clock_minutes(text: str) -> int:
    match = CLOCK_RE.search(text)
    if not match:
        return 0
    h, m, meridiem = int(match.group(1)), int(match.group(2)), match.group(3)
    if meridiem:
        meridiem = meridiem.upper()
        if meridiem == "PM" and h != 12:
            h += 12
        elif meridiem == "AM" and h == 12:
            h = 0
    return h * 60 + m


def expected_minutes_from_header(header: str) -> int:
    """
    Read the scheduled length of a lecture from its column header.

    'Lecture 1 (2025-07-26, 09:58 AM - 12:52 PM)' -> 174. Headers without a
    parenthesised time range give 0.
    """
    inside = re.search(r"\(([^)]+)\)", str(header or ""))
    if not inside:
        return 0
    match = LECTURE_RANGE_RE.search(inside.group(1))
    if not match:
        return 0
    diff = _clock_minutes(match.group(2)) - _clock_minutes(match.group(1))
    return diff if diff > 0 else 0


def is_lecture_attended(cell: Cell, header: str, threshold: float = 1.0) -> bool:
    """
    Decide whether one attendance cell counts as present.

    With a known lecture length the student needs at least
    `expected * threshold` minutes; otherwise any positive time counts.
    """
    minutes = parse_duration_minutes(cell)
    expected = expected_minutes_from_header(header)
    if expected > 0:
        return minutes >= expected * threshold
    return minutes > 0
