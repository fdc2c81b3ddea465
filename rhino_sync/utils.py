from __future__ import annotations

import hashlib
from datetime import date, datetime, time
from typing import Iterable, Optional, Union

ID_LENGTH = 40
KEY_DELIMITER = " | "


def external_id(natural_key: str) -> str:
    """Stable calendar event id for a natural key.

    Hex digits fall inside the Calendar API's base32hex id alphabet.
    """
    hasher = hashlib.sha256()
    hasher.update((natural_key or "").encode("utf-8"))
    return hasher.hexdigest()[:ID_LENGTH]


def build_natural_key(parts: Iterable[str]) -> str:
    return KEY_DELIMITER.join(parts)


def build_datetime(day: date, time_of_day: time) -> datetime:
    return datetime(day.year, day.month, day.day, time_of_day.hour, time_of_day.minute)


def format_time_for_title(value: Union[str, time]) -> str:
    if isinstance(value, str):
        hours, minutes = [int(x) for x in value.split(":", 1)]
    else:
        hours, minutes = value.hour, value.minute
    hour12 = hours % 12 or 12
    suffix = "am" if hours < 12 else "pm"
    if minutes == 0:
        return f"{hour12}{suffix}"
    return f"{hour12}:{minutes:02d}{suffix}"


def normalize_status(status: Optional[str]) -> str:
    # "called" means the office has offered the shift but it is not yet accepted
    lower = (status or "").strip().lower()
    if lower == "called":
        return "tentative"
    if lower in ("cancelled", "canceled"):
        return "cancelled"
    if lower == "tentative":
        return "tentative"
    return "confirmed"


def join_nonempty(parts: Iterable[Optional[str]], separator: str) -> str:
    return separator.join(part for part in parts if part)
