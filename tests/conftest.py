from __future__ import annotations

import copy
import datetime as dt
from typing import Optional
from zoneinfo import ZoneInfo

import pytest

from rhino_sync.config import EnvironmentProfile, Settings
from rhino_sync.gcal import NotFoundError, RemoteError
from rhino_sync.sync import parse_remote_datetime

TZ = ZoneInfo("America/New_York")


class FakeCalendarStore:
    """In-memory stand-in for CalendarStore with scriptable failures."""

    def __init__(self, events: Optional[list[dict]] = None) -> None:
        self.events: dict[str, dict] = {event["id"]: copy.deepcopy(event) for event in events or []}
        self.calls: list[tuple[str, Optional[str]]] = []
        self._failures: dict[tuple[str, Optional[str]], list[Exception]] = {}

    def fail(self, method: str, exc: Exception, event_id: Optional[str] = None, times: int = 1) -> None:
        self._failures.setdefault((method, event_id), []).extend([exc] * times)

    def _check(self, method: str, event_id: Optional[str]) -> None:
        self.calls.append((method, event_id))
        for key in ((method, event_id), (method, None)):
            pending = self._failures.get(key)
            if pending:
                raise pending.pop(0)

    def writes(self) -> list[tuple[str, Optional[str]]]:
        return [call for call in self.calls if call[0] in {"insert", "update", "delete"}]

    def get(self, event_id: str) -> dict:
        self._check("get", event_id)
        if event_id not in self.events:
            raise NotFoundError(event_id)
        return copy.deepcopy(self.events[event_id])

    def insert(self, body: dict) -> dict:
        self._check("insert", body.get("id"))
        if body["id"] in self.events:
            raise RemoteError("The requested identifier already exists", status=409)
        stored = copy.deepcopy(body)
        stored["updated"] = "2025-11-01T12:00:00Z"
        self.events[body["id"]] = stored
        return copy.deepcopy(stored)

    def update(self, event_id: str, body: dict) -> dict:
        self._check("update", event_id)
        if event_id not in self.events:
            raise NotFoundError(event_id)
        stored = copy.deepcopy(body)
        stored["id"] = event_id
        self.events[event_id] = stored
        return copy.deepcopy(stored)

    def delete(self, event_id: str) -> None:
        self._check("delete", event_id)
        if event_id not in self.events:
            raise NotFoundError(event_id)
        del self.events[event_id]

    def list_upcoming(self, time_min: dt.datetime) -> list[dict]:
        self._check("list", None)
        upcoming = [
            event
            for event in self.events.values()
            if parse_remote_datetime(event.get("end")) > time_min
        ]
        upcoming.sort(key=lambda event: parse_remote_datetime(event.get("start")))
        return copy.deepcopy(upcoming)


def remote_event(
    event_id: str,
    start: str,
    end: str,
    private: Optional[dict] = None,
    summary: str = "",
    updated: str = "2025-11-01T12:00:00Z",
) -> dict:
    event = {
        "id": event_id,
        "summary": summary,
        "start": {"dateTime": start, "timeZone": "America/New_York"},
        "end": {"dateTime": end, "timeZone": "America/New_York"},
        "status": "confirmed",
        "updated": updated,
    }
    if private is not None:
        event["extendedProperties"] = {"private": private}
    return event


@pytest.fixture
def tz() -> ZoneInfo:
    return TZ


@pytest.fixture
def now() -> dt.datetime:
    return dt.datetime(2025, 11, 1, 12, 0, tzinfo=dt.timezone.utc)


@pytest.fixture
def store() -> FakeCalendarStore:
    return FakeCalendarStore()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        rhino_email="worker@example.com",
        rhino_password="secret",
        calendar_id="primary",
        timezone=TZ,
        google_client_secrets=str(tmp_path / "credentials.json"),
        google_token_file=str(tmp_path / "token.json"),
        profile=EnvironmentProfile(serverless=False),
        artifacts_dir=str(tmp_path / "artifacts"),
    )
