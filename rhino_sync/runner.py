from __future__ import annotations

import datetime as dt
import logging
from typing import Callable, Optional

from .config import Settings
from .gcal import AuthExpiredError, CalendarStore, CredentialProvider, build_store
from .mapper import to_calendar_event
from .models import RawRow, SyncReport
from .parser import normalize_rows
from .schedule import scrape_schedule_rows
from .sync import dedupe_events, reconcile_with

EXPIRED_TOKEN_HELP = (
    "Google OAuth refresh token has expired or been revoked, and the stored "
    "GOOGLE_TOKEN can no longer be used. Run `python main.py` locally to "
    "re-authorize, then copy the new token file contents into the GOOGLE_TOKEN "
    "environment variable of the deployment."
)


class SyncError(RuntimeError):
    pass


class CalendarSession:
    """Calendar store plus the re-authorization policy for expired tokens.

    Interactive profiles discard the cached token, run the consent flow once
    and retry the failed operation once. Non-interactive profiles fail.
    """

    def __init__(
        self,
        settings: Settings,
        provider: Optional[CredentialProvider] = None,
        store_factory: Callable[..., CalendarStore] = build_store,
    ) -> None:
        self.settings = settings
        self.provider = provider or CredentialProvider(settings)
        self._store_factory = store_factory
        self.credentials = self.provider.authorize()
        self.store = self._store_factory(self.credentials, settings.calendar_id)

    def reauthorize(self) -> None:
        logging.warning("Refresh token expired or revoked; re-authorizing")
        self.provider.reset()
        self.credentials = self.provider.authorize()
        self.store = self._store_factory(self.credentials, self.settings.calendar_id)
        logging.info("New token obtained, retrying")

    def call(self, operation, *args, **kwargs):
        try:
            return operation(self.store, *args, **kwargs)
        except AuthExpiredError as exc:
            if not self.settings.profile.interactive:
                raise SyncError(EXPIRED_TOKEN_HELP) from exc
            self.reauthorize()
            return operation(self.store, *args, **kwargs)

    def close(self) -> None:
        self.provider.persist(self.credentials)


def run(
    settings: Settings,
    fetch_rows: Callable[[Settings], list[RawRow]] = scrape_schedule_rows,
    session_factory: Callable[[Settings], CalendarSession] = CalendarSession,
    now: Optional[dt.datetime] = None,
) -> SyncReport:
    """Scrape the schedule once and reconcile it into the calendar."""
    tz = settings.timezone
    rows = fetch_rows(settings)
    local_now = now.astimezone(tz).replace(tzinfo=None) if now else None
    entries = normalize_rows(rows, tz, now=local_now)
    events = [to_calendar_event(entry) for entry in entries]

    logging.info("Upcoming %d events:", len(events))
    for event in events:
        logging.info("  %s", event.summary)

    session = session_factory(settings)
    try:
        report = reconcile_with(session.call, events, tz, now=now)
    finally:
        session.close()

    for failure in report.failures:
        logging.warning("Not synced: %s (%s): %s", failure.summary, failure.event_id, failure.error)
    return report


def run_dedupe(
    settings: Settings,
    dry_run: bool = True,
    session_factory: Callable[[Settings], CalendarSession] = CalendarSession,
) -> list[str]:
    session = session_factory(settings)
    try:
        removed = session.call(dedupe_events, dry_run=dry_run)
    finally:
        session.close()
    logging.info("Dedupe %s %d events", "would remove" if dry_run else "removed", len(removed))
    return removed
