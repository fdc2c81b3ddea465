from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Optional

from .utils import external_id

MANAGED_BY = "rhino_schedule_sync"
MANAGED_BY_PROPERTY = "managed_by"
NATURAL_KEY_PROPERTY = "natural_key"
LEGACY_KEY_PROPERTY = "rhinoRowId"

RawRow = list[str]


@dataclass(frozen=True)
class ScheduleEntry:
    date: date
    call_time: time
    raw_date: str
    raw_call_time: str
    show: str = ""
    venue: str = ""
    location: str = ""
    client: str = ""
    type: str = ""
    position: str = ""
    details: str = ""
    status: str = ""
    notes: str = ""
    is_call_cancelled: bool = False


@dataclass(frozen=True)
class CalendarEvent:
    summary: str
    start: datetime
    end: datetime
    natural_key: str
    location: str = ""
    description: str = ""
    status: str = "confirmed"

    @property
    def event_id(self) -> str:
        return external_id(self.natural_key)

    def to_gcal_body(self, timezone: str) -> dict:
        return {
            "id": self.event_id,
            "summary": self.summary,
            "location": self.location,
            "description": self.description,
            "start": {"dateTime": self.start.isoformat(), "timeZone": timezone},
            "end": {"dateTime": self.end.isoformat(), "timeZone": timezone},
            "status": self.status,
            "extendedProperties": {
                "private": {
                    MANAGED_BY_PROPERTY: MANAGED_BY,
                    NATURAL_KEY_PROPERTY: self.natural_key,
                }
            },
        }


def managed_key(remote_event: dict) -> Optional[str]:
    """Natural key of an event this tool owns, or None for foreign events."""
    props = remote_event.get("extendedProperties", {}).get("private", {})
    if props.get(MANAGED_BY_PROPERTY) == MANAGED_BY and props.get(NATURAL_KEY_PROPERTY):
        return props[NATURAL_KEY_PROPERTY]
    return props.get(LEGACY_KEY_PROPERTY) or None


@dataclass
class SyncResult:
    action: str
    event_id: str
    natural_key: str
    summary: str = ""
    error: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "action": self.action,
            "eventId": self.event_id,
            "naturalKey": self.natural_key,
            "summary": self.summary,
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class SyncReport:
    purged: int = 0
    results: list[SyncResult] = field(default_factory=list)

    def count(self, action: str) -> int:
        return sum(1 for result in self.results if result.action == action)

    @property
    def created(self) -> int:
        return self.count("created")

    @property
    def updated(self) -> int:
        return self.count("updated")

    @property
    def unchanged(self) -> int:
        return self.count("unchanged")

    @property
    def failures(self) -> list[SyncResult]:
        return [result for result in self.results if result.action == "error"]

    def summary(self) -> str:
        return (
            f"purged={self.purged} created={self.created} updated={self.updated} "
            f"unchanged={self.unchanged} failed={len(self.failures)}"
        )

    def to_dict(self) -> dict:
        return {
            "purged": self.purged,
            "created": self.created,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "failed": len(self.failures),
            "failures": [result.to_dict() for result in self.failures],
        }
