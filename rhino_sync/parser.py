from __future__ import annotations

import logging
import re
from datetime import date, datetime, time
from typing import Iterable, List, Optional
from zoneinfo import ZoneInfo

from bs4 import BeautifulSoup

from .models import RawRow, ScheduleEntry
from .utils import build_datetime

RESULTS_TABLE_SELECTOR = "table#dgResults"
MIN_CELLS = 12
CALL_CANCELLED_CELL = 14
CALL_CANCELLED_TEXT = "call cancelled"

WHITESPACE_REGEX = re.compile(r"\s+")


class ParseError(Exception):
    pass


def _clean_cell(text: str) -> str:
    # the portal leaks escaped tabs/newlines into some cells (mostly venue)
    text = text.replace("\\t", "").replace("\\n", " ")
    return WHITESPACE_REGEX.sub(" ", text).strip()


def parse_rows_from_html(html: str) -> List[RawRow]:
    soup = BeautifulSoup(html, "lxml")
    table = soup.select_one(RESULTS_TABLE_SELECTOR)
    if not table:
        raise ParseError("Results table not found")

    # skip rows of nested tables (the pager renders one inside the last row)
    rows = [tr for tr in table.find_all("tr") if tr.find_parent("table") is table]
    # first row is the header, last row is the pager
    rows = rows[1:-1]

    raw_rows: List[RawRow] = []
    for row in rows:
        cells = row.find_all("td", recursive=False)
        raw_rows.append([_clean_cell(cell.get_text(" ", strip=True)) for cell in cells])
    return raw_rows


def _cell(row: RawRow, idx: int) -> str:
    return row[idx].strip() if idx < len(row) else ""


def parse_us_date(s: str) -> date:
    return datetime.strptime(s.strip(), "%m/%d/%Y").date()


def parse_call_time(s: str) -> time:
    return datetime.strptime(s.strip(), "%H:%M").time()


def parse_entry(row: RawRow) -> Optional[ScheduleEntry]:
    if len(row) < MIN_CELLS:
        logging.debug("Skipping row with %d cells", len(row))
        return None
    raw_date = _cell(row, 0)
    raw_call_time = _cell(row, 1)
    try:
        entry_date = parse_us_date(raw_date)
        call_time = parse_call_time(raw_call_time)
    except ValueError:
        logging.debug("Skipping row with unparseable date/time %r %r", raw_date, raw_call_time)
        return None

    return ScheduleEntry(
        date=entry_date,
        call_time=call_time,
        raw_date=raw_date,
        raw_call_time=raw_call_time,
        show=_cell(row, 3),
        venue=_cell(row, 4),
        location=_cell(row, 5),
        client=_cell(row, 6),
        type=_cell(row, 7),
        position=_cell(row, 8),
        details=_cell(row, 9),
        status=_cell(row, 10),
        notes=_cell(row, 11),
        is_call_cancelled=_cell(row, CALL_CANCELLED_CELL).lower() == CALL_CANCELLED_TEXT,
    )


def is_event_cancelled(entry: ScheduleEntry) -> bool:
    if entry.is_call_cancelled:
        return True
    if "cancelled" in (entry.show or "").lower():
        return True
    if "called out" in (entry.status or "").lower():
        return True
    return False


def normalize_rows(raw_rows: Iterable[RawRow], tz: ZoneInfo, now: Optional[datetime] = None) -> List[ScheduleEntry]:
    """Typed, future, non-cancelled entries from scraped rows.

    ``now`` is naive wall-clock time in ``tz``; it defaults to the current
    time there. Malformed rows are dropped, never raised.
    """
    if now is None:
        now = datetime.now(tz).replace(tzinfo=None)

    entries: List[ScheduleEntry] = []
    dropped = cancelled = past = 0
    for row in raw_rows:
        entry = parse_entry(row)
        if entry is None:
            dropped += 1
            continue
        if is_event_cancelled(entry):
            cancelled += 1
            continue
        if build_datetime(entry.date, entry.call_time) <= now:
            past += 1
            continue
        entries.append(entry)

    logging.info(
        "Normalized %d entries (%d malformed, %d cancelled, %d past)",
        len(entries),
        dropped,
        cancelled,
        past,
    )
    return entries
