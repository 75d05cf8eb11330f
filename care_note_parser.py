from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Dict, List, Optional, Tuple

from app_contract import BARE_NUMBER_MINUTES_THRESHOLD, PLACEHOLDER_CLIENT


Clock = Callable[[], date]

# "Susan Johnson 3/15/24" -> ("Susan Johnson", "3/15/24"); the date is optional.
HEADER_RE = re.compile(r"([^0-9]+?)(?:\s+(\d{1,2}/\d{1,2}/\d{2,4}))?")

# Numbered list marker, e.g. "3."
ENTRY_MARKER_RE = re.compile(r"^\d+\.")

# "<n>. <description> - <time token>"; the first hyphen/en-dash is the separator.
ENTRY_RE = re.compile(r"^\d+\.\s*(\S.*?)\s*[-–]\s*(.+)$")

BARE_NUMBER_RE = re.compile(r"^\d*\.?\d+$")
MINUTES_RE = re.compile(r"(\d+)\s*min")
HOURS_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)\s*hr")
LEADING_NUMBER_RE = re.compile(r"^\+?(\d+(?:\.\d*)?|\.\d+)")

_LINE_SPLIT_RE = re.compile(r"\r\n|\r|\n")
_TWO_PLACES = Decimal("0.01")


def format_hours(minutes: float) -> str:
    """
    minutes -> hours with exactly two decimals, rounding halves up.
    Example: 150 -> "2.50", 250 -> "4.17"
    """
    hours = Decimal(minutes) / Decimal(60)
    return str(hours.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))


def short_date(d: date) -> str:
    # Same shape as a US locale short date: no zero padding, 4-digit year.
    return f"{d.month}/{d.day}/{d.year}"


@dataclass(frozen=True)
class Activity:
    description: str
    time_str: str
    minutes: float

    @property
    def hours(self) -> str:
        return format_hours(self.minutes)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "time_str": self.time_str,
            "minutes": self.minutes,
        }


@dataclass(frozen=True)
class StructuredNote:
    client_name: str
    date: str
    activities: Tuple[Activity, ...] = field(default_factory=tuple)
    total_minutes: float = 0.0

    @property
    def total_hours(self) -> str:
        return format_hours(self.total_minutes)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "client_name": self.client_name,
            "date": self.date,
            "activities": [a.as_dict() for a in self.activities],
            "total_minutes": self.total_minutes,
            "total_hours": self.total_hours,
        }


def _to_minutes_number(text: str) -> float:
    value = float(text)
    # "9999...9" overflows to inf, which is not a duration.
    return value if math.isfinite(value) else 0.0


def _apply_threshold(value: float, threshold: float) -> float:
    # Big bare numbers are already minutes; small ones are hours.
    return value if value >= threshold else value * 60


def resolve_minutes(token: str, threshold: float = BARE_NUMBER_MINUTES_THRESHOLD) -> float:
    """
    Resolve a handwritten time token to minutes. First matching rule wins:

      1. bare number ("75", "1.25"): >= threshold is minutes, below is hours
      2. contains "min" ("45 min"): the number in front of it, as minutes
      3. contains "hr" ("1.5 hrs"): the number in front of it, as hours
      4. anything else: leading number under the same threshold rule as 1.

    Tokens with no usable number resolve to 0 instead of failing.
    """
    s = (token or "").strip()
    if not s:
        return 0.0

    if BARE_NUMBER_RE.match(s):
        return _apply_threshold(_to_minutes_number(s), threshold)

    if "min" in s:
        m = MINUTES_RE.search(s)
        return _to_minutes_number(m.group(1)) if m else 0.0

    if "hr" in s:
        m = HOURS_RE.search(s)
        return _to_minutes_number(m.group(1)) * 60 if m else 0.0

    m = LEADING_NUMBER_RE.match(s)
    if not m:
        return 0.0
    return _apply_threshold(_to_minutes_number(m.group(1)), threshold)


def extract_header(line: str, clock: Optional[Clock] = None) -> Tuple[str, str]:
    """
    First line of the note -> (client_name, date).
    Falls back to the placeholder client and today's date.
    """
    today = clock or date.today
    m = HEADER_RE.fullmatch((line or "").strip())
    if not m:
        return PLACEHOLDER_CLIENT, short_date(today())

    client_name = m.group(1).strip() or PLACEHOLDER_CLIENT
    found_date = m.group(2)
    return client_name, found_date if found_date else short_date(today())


def parse_activity(line: str, threshold: float = BARE_NUMBER_MINUTES_THRESHOLD) -> Optional[Activity]:
    """
    Return an Activity for a numbered "<n>. description - time" line, else None.
    """
    s = (line or "").strip()
    if not ENTRY_MARKER_RE.match(s):
        return None

    m = ENTRY_RE.match(s)
    if not m:
        return None

    description = m.group(1).strip()
    time_str = m.group(2).strip()
    return Activity(
        description=description,
        time_str=time_str,
        minutes=resolve_minutes(time_str, threshold),
    )


def parse_activities(
    lines: List[str], threshold: float = BARE_NUMBER_MINUTES_THRESHOLD
) -> Tuple[List[Activity], float]:
    activities: List[Activity] = []
    total_minutes = 0.0
    for line in lines:
        activity = parse_activity(line, threshold)
        if activity is None:
            continue
        activities.append(activity)
        total_minutes += activity.minutes
    return activities, total_minutes


def split_lines(raw_text: str) -> List[str]:
    if not isinstance(raw_text, str):
        return []
    stripped = (line.strip() for line in _LINE_SPLIT_RE.split(raw_text))
    return [line for line in stripped if line]


def parse(raw_text: str, clock: Optional[Clock] = None) -> StructuredNote:
    """
    Pure function: transcribed note text -> StructuredNote.
    No I/O, never raises; `clock` only feeds the fallback date.
    """
    lines = split_lines(raw_text)

    client_name, note_date = extract_header(lines[0] if lines else "", clock=clock)
    activities, total_minutes = parse_activities(lines[1:])

    return StructuredNote(
        client_name=client_name,
        date=note_date,
        activities=tuple(activities),
        total_minutes=total_minutes,
    )
