from __future__ import annotations

import datetime as dt
import json
import logging
import os
from pathlib import Path
from typing import List, Optional

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .config import Settings

SCOPES = ["https://www.googleapis.com/auth/calendar"]
NOT_FOUND_STATUSES = {404, 410}
TOKEN_PROBLEM_WORDS = ("expired", "revoked", "invalid")


class CalendarError(Exception):
    pass


class NotFoundError(CalendarError):
    pass


class AuthExpiredError(CalendarError):
    pass


class RemoteError(CalendarError):
    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class MissingCredentialsError(CalendarError):
    pass


def _http_error_text(exc: HttpError) -> str:
    content = exc.content
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    return f"{exc} {content or ''}".lower()


def is_expired_token_error(exc: BaseException) -> bool:
    if isinstance(exc, RefreshError):
        return True
    text = str(exc).lower()
    status = None
    if isinstance(exc, HttpError):
        status = exc.resp.status
        text = _http_error_text(exc)
    if "invalid_grant" in text:
        return True
    if status == 401:
        return True
    if status in (400, 403) and "token" in text and any(word in text for word in TOKEN_PROBLEM_WORDS):
        return True
    if "refresh token" in text and any(word in text for word in TOKEN_PROBLEM_WORDS):
        return True
    return False


def translate_error(exc: Exception) -> CalendarError:
    if isinstance(exc, HttpError) and exc.resp.status in NOT_FOUND_STATUSES:
        return NotFoundError(str(exc))
    if is_expired_token_error(exc):
        return AuthExpiredError(str(exc))
    status = exc.resp.status if isinstance(exc, HttpError) else None
    return RemoteError(str(exc), status=status)


class CredentialProvider:
    """Google OAuth credentials for the configured environment profile.

    The returned ``Credentials`` object is refreshed by the API client on
    demand; writing refreshed tokens back is done through :meth:`persist`.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def authorize(self) -> Credentials:
        if self.settings.profile.serverless:
            return self._from_environment()
        return self._from_token_file()

    def reset(self) -> None:
        token_path = Path(self.settings.google_token_file)
        if token_path.exists():
            logging.warning("Removing cached token %s", token_path)
            token_path.unlink()

    def persist(self, creds: Credentials) -> None:
        if self.settings.profile.serverless or not creds.valid:
            return
        Path(self.settings.google_token_file).write_text(creds.to_json(), encoding="utf-8")

    def _from_token_file(self) -> Credentials:
        token_file = self.settings.google_token_file
        creds = None
        if os.path.exists(token_file):
            try:
                creds = Credentials.from_authorized_user_file(token_file, SCOPES)
            except ValueError as exc:
                logging.warning("Ignoring unreadable token file %s: %s", token_file, exc)
                creds = None
        if creds and creds.valid:
            return creds
        if creds and creds.expired and creds.refresh_token:
            try:
                creds.refresh(Request())
            except RefreshError as exc:
                logging.warning("Stored refresh token rejected (%s); re-authorizing", exc)
                creds = None
        if not creds or not creds.valid:
            creds = self._run_consent_flow()
        self.persist(creds)
        return creds

    def _run_consent_flow(self) -> Credentials:
        secrets = self.settings.google_client_secrets
        if not os.path.exists(secrets):
            raise MissingCredentialsError(f"Client secrets file not found at {secrets}")
        logging.info("Starting OAuth consent flow in the browser")
        flow = InstalledAppFlow.from_client_secrets_file(secrets, SCOPES)
        return flow.run_local_server(port=0)

    def _from_environment(self) -> Credentials:
        if not self.settings.google_token:
            raise MissingCredentialsError(
                "Missing GOOGLE_TOKEN environment variable. Run locally to authorize first "
                "and set GOOGLE_TOKEN to the contents of the token file."
            )
        try:
            info = json.loads(self.settings.google_token)
        except json.JSONDecodeError as exc:
            raise MissingCredentialsError("Invalid GOOGLE_TOKEN environment variable, expected JSON") from exc

        info = dict(info)
        # tokens written by the older Node deployment only carry refresh_token/access_token
        info.pop("access_token", None)
        info.pop("expiry_date", None)
        if self.settings.google_client_id:
            info.setdefault("client_id", self.settings.google_client_id)
        if self.settings.google_client_secret:
            info.setdefault("client_secret", self.settings.google_client_secret)
        missing = [key for key in ("refresh_token", "client_id", "client_secret") if not info.get(key)]
        if missing:
            raise MissingCredentialsError(
                "Incomplete Google OAuth credentials, missing: %s. Set GOOGLE_CLIENT_ID, "
                "GOOGLE_CLIENT_SECRET and GOOGLE_TOKEN." % ", ".join(missing)
            )
        return Credentials.from_authorized_user_info(info, SCOPES)


class CalendarStore:
    """Events of one calendar with Calendar API failures mapped to CalendarError."""

    def __init__(self, service, calendar_id: str = "primary") -> None:
        self.service = service
        self.calendar_id = calendar_id

    def _execute(self, request):
        try:
            return request.execute()
        except (HttpError, RefreshError) as exc:
            raise translate_error(exc) from exc

    def get(self, event_id: str) -> dict:
        return self._execute(self.service.events().get(calendarId=self.calendar_id, eventId=event_id))

    def insert(self, body: dict) -> dict:
        return self._execute(self.service.events().insert(calendarId=self.calendar_id, body=body))

    def update(self, event_id: str, body: dict) -> dict:
        return self._execute(
            self.service.events().update(calendarId=self.calendar_id, eventId=event_id, body=body)
        )

    def delete(self, event_id: str) -> None:
        self._execute(self.service.events().delete(calendarId=self.calendar_id, eventId=event_id))

    def list_upcoming(self, time_min: dt.datetime) -> List[dict]:
        logging.info("Fetching calendar events from %s", time_min)
        events: List[dict] = []
        page_token = None
        while True:
            result = self._execute(
                self.service.events().list(
                    calendarId=self.calendar_id,
                    timeMin=time_min.isoformat(),
                    singleEvents=True,
                    orderBy="startTime",
                    maxResults=2500,
                    pageToken=page_token,
                )
            )
            events.extend(result.get("items", []))
            page_token = result.get("nextPageToken")
            if not page_token:
                break
        logging.info("Found %d upcoming events", len(events))
        return events


def build_store(creds: Credentials, calendar_id: str) -> CalendarStore:
    service = build("calendar", "v3", credentials=creds, cache_discovery=False)
    return CalendarStore(service, calendar_id)
