from __future__ import annotations

from datetime import timedelta

from .models import CalendarEvent, ScheduleEntry
from .utils import build_datetime, build_natural_key, format_time_for_title, join_nonempty, normalize_status

START_BUFFER = timedelta(minutes=30)
SHIFT_LENGTH = timedelta(hours=5)
UNCONFIRMED_PREFIX = "UNCONFIRMED => "


def natural_key_for(entry: ScheduleEntry) -> str:
    return build_natural_key(
        [
            entry.raw_date,
            entry.raw_call_time,
            entry.show,
            entry.venue,
            entry.position,
            entry.type,
        ]
    )


def to_calendar_event(entry: ScheduleEntry) -> CalendarEvent:
    call_at = build_datetime(entry.date, entry.call_time)
    start = call_at - START_BUFFER
    # end is measured from the call time, the arrival buffer does not extend it
    end = call_at + SHIFT_LENGTH

    if (entry.status or "").strip().lower() == "called":
        summary = f"{UNCONFIRMED_PREFIX}{entry.show}"
    else:
        summary = f"{format_time_for_title(start.time())} {entry.show}"

    return CalendarEvent(
        summary=summary,
        start=start,
        end=end,
        natural_key=natural_key_for(entry),
        location=join_nonempty([entry.venue, entry.location], " - "),
        description=join_nonempty([entry.details, entry.notes], " | "),
        status=normalize_status(entry.status),
    )
