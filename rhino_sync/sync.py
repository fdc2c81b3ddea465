from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Callable, Iterable, Optional
from zoneinfo import ZoneInfo

from .gcal import AuthExpiredError, CalendarError, CalendarStore, NotFoundError
from .models import MANAGED_BY, MANAGED_BY_PROPERTY, CalendarEvent, SyncReport, SyncResult, managed_key
from .utils import external_id


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def parse_remote_datetime(value: Optional[dict]) -> Optional[dt.datetime]:
    raw = (value or {}).get("dateTime")
    if not raw:
        return None
    parsed = dt.datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=ZoneInfo(value.get("timeZone") or "UTC"))
    return parsed


def _local(value: Optional[dict], tz: ZoneInfo) -> Optional[dt.datetime]:
    parsed = parse_remote_datetime(value)
    return parsed.astimezone(tz).replace(tzinfo=None) if parsed else None


def events_equal(event: CalendarEvent, remote: dict, tz: ZoneInfo) -> bool:
    props = remote.get("extendedProperties", {}).get("private", {})
    return (
        remote.get("summary", "") == event.summary
        and (remote.get("location") or "") == event.location
        and (remote.get("description") or "") == event.description
        and _local(remote.get("start"), tz) == event.start
        and _local(remote.get("end"), tz) == event.end
        and remote.get("status", "confirmed") == event.status
        and props.get(MANAGED_BY_PROPERTY) == MANAGED_BY
        and managed_key(remote) == event.natural_key
    )


def partition_events_by_key(
    events: Iterable[CalendarEvent],
) -> tuple[dict[str, CalendarEvent], dict[str, list[CalendarEvent]]]:
    unique: dict[str, CalendarEvent] = {}
    duplicates: dict[str, list[CalendarEvent]] = {}
    for event in events:
        if event.natural_key in unique:
            duplicates.setdefault(event.natural_key, [unique[event.natural_key]]).append(event)
        else:
            unique[event.natural_key] = event
    return unique, duplicates


def unique_events(events: Iterable[CalendarEvent]) -> list[CalendarEvent]:
    unique, duplicates = partition_events_by_key(events)
    for key, group in duplicates.items():
        logging.warning("Scraped %d rows for the same shift %r; keeping the first", len(group), key)
    return list(unique.values())


def _owned_upcoming(store: CalendarStore, now: dt.datetime) -> list[tuple[str, dict]]:
    owned = []
    for remote in store.list_upcoming(now):
        key = managed_key(remote)
        if key is None:
            continue
        start = parse_remote_datetime(remote.get("start"))
        # timeMin matches on end time, so events already under way are listed too
        if start is not None and start <= now:
            continue
        owned.append((key, remote))
    return owned


def _delete_if_present(store: CalendarStore, event_id: str) -> bool:
    try:
        store.delete(event_id)
    except NotFoundError:
        logging.info("Event %s already gone", event_id)
        return False
    return True


def purge_managed_events(store: CalendarStore, now: Optional[dt.datetime] = None) -> int:
    """Delete every future event this tool owns; returns how many were removed.

    Each listed event is deleted by its deterministic id and, when it was
    created under an older id scheme, by its own id as well. Anything but a
    not-found error propagates and aborts the purge.
    """
    now = now or _utcnow()
    purged = 0
    for key, remote in _owned_upcoming(store, now):
        ids = [external_id(key)]
        if remote["id"] != ids[0]:
            ids.append(remote["id"])
        removed = sum(1 for event_id in ids if _delete_if_present(store, event_id))
        if removed:
            logging.info(
                "DELETE %s %s",
                remote.get("summary", ""),
                remote.get("start", {}).get("dateTime"),
            )
        purged += removed
    logging.info("Purged %d managed events", purged)
    return purged


def upsert_event(store: CalendarStore, event: CalendarEvent, tz: ZoneInfo) -> SyncResult:
    event_id = event.event_id
    body = event.to_gcal_body(tz.key)
    try:
        try:
            existing = store.get(event_id)
        except NotFoundError:
            store.insert(body)
            logging.info("CREATE %s %s-%s", event.summary, event.start, event.end)
            return SyncResult("created", event_id, event.natural_key, event.summary)

        if events_equal(event, existing, tz):
            logging.debug("UNCHANGED %s %s-%s", event.summary, event.start, event.end)
            return SyncResult("unchanged", event_id, event.natural_key, event.summary)

        store.update(event_id, body)
        logging.info("UPDATE %s %s-%s", event.summary, event.start, event.end)
        return SyncResult("updated", event_id, event.natural_key, event.summary)
    except AuthExpiredError:
        raise
    except CalendarError as exc:
        logging.error("Failed to sync %s (%s): %s", event.summary, event_id, exc)
        return SyncResult("error", event_id, event.natural_key, event.summary, error=str(exc))


def upsert_events(store: CalendarStore, events: Iterable[CalendarEvent], tz: ZoneInfo) -> SyncReport:
    report = SyncReport()
    for event in events:
        report.results.append(upsert_event(store, event, tz))
    return report


def reconcile_with(
    call: Callable[..., Any],
    desired: Iterable[CalendarEvent],
    tz: ZoneInfo,
    now: Optional[dt.datetime] = None,
) -> SyncReport:
    """Purge then upsert, running each store operation through ``call``.

    ``call(operation, *args, **kwargs)`` must return
    ``operation(store, *args, **kwargs)``; the driver's session uses this hook
    to re-authorize and retry.
    """
    events = unique_events(desired)
    report = SyncReport()
    report.purged = call(purge_managed_events, now=now)
    for event in events:
        report.results.append(call(upsert_event, event, tz))
    logging.info("Sync complete: %s", report.summary())
    return report


def reconcile(
    desired: Iterable[CalendarEvent],
    store: CalendarStore,
    tz: ZoneInfo,
    now: Optional[dt.datetime] = None,
) -> SyncReport:
    def direct(operation, *args, **kwargs):
        return operation(store, *args, **kwargs)

    return reconcile_with(direct, desired, tz, now=now)


def _updated_at(remote: dict) -> dt.datetime:
    raw = remote.get("updated")
    if not raw:
        return dt.datetime.min.replace(tzinfo=dt.timezone.utc)
    return dt.datetime.fromisoformat(raw.replace("Z", "+00:00"))


def dedupe_events(
    store: CalendarStore,
    dry_run: bool = True,
    now: Optional[dt.datetime] = None,
) -> list[str]:
    """Keep one upcoming event per natural key and delete the rest.

    The keeper is the event sitting on the deterministic id, otherwise the most
    recently updated one. Returns the ids deleted (or, in a dry run, the ids
    that would be).
    """
    now = now or _utcnow()
    groups: dict[str, list[dict]] = {}
    for key, remote in _owned_upcoming(store, now):
        groups.setdefault(key, []).append(remote)

    removed: list[str] = []
    for key, group in groups.items():
        if len(group) <= 1:
            continue
        desired_id = external_id(key)
        keeper = next((remote for remote in group if remote["id"] == desired_id), None)
        if keeper is None:
            keeper = max(group, key=_updated_at)
        logging.info("Dedupe key=%r count=%d keeper=%s", key, len(group), keeper["id"])
        for remote in group:
            if remote["id"] == keeper["id"]:
                continue
            if dry_run:
                logging.info("Dedupe (dry run): would delete %s", remote["id"])
                removed.append(remote["id"])
                continue
            try:
                store.delete(remote["id"])
            except AuthExpiredError:
                raise
            except CalendarError as exc:
                logging.error("Dedupe: failed to delete %s: %s", remote["id"], exc)
                continue
            logging.info("Dedupe: deleted %s", remote["id"])
            removed.append(remote["id"])
    return removed
