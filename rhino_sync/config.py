from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()

DEFAULT_TIMEZONE = "America/New_York"
LOGIN_URL = "https://thinkrhino.com/employee/georgia/Index.aspx?cookieCheck=true"

SERVERLESS_ENV_MARKERS = (
    "GOOGLE_CLOUD_PROJECT",
    "FUNCTION_TARGET",
    "K_SERVICE",
    "FUNCTION_NAME",
    "K_REVISION",
)


@dataclass(frozen=True)
class EnvironmentProfile:
    """Runtime mode resolved once at startup.

    Local runs can open a browser for OAuth consent and keep the token on
    disk. Serverless runs (Cloud Functions / Cloud Run) cannot interact with a
    user, read the token from the environment and launch a sandbox-free
    Chromium.
    """

    serverless: bool = False

    @property
    def interactive(self) -> bool:
        return not self.serverless

    @property
    def name(self) -> str:
        return "serverless" if self.serverless else "local"


@dataclass
class Settings:
    rhino_email: str
    rhino_password: str
    calendar_id: str
    timezone: ZoneInfo
    google_client_secrets: str
    google_token_file: str
    profile: EnvironmentProfile = field(default_factory=EnvironmentProfile)
    login_url: str = LOGIN_URL
    google_token: Optional[str] = None
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    chromium_executable: Optional[str] = None
    artifacts_dir: str = "artifacts"
    headful: bool = False


def detect_profile(environ: Optional[Mapping[str, str]] = None) -> EnvironmentProfile:
    env = os.environ if environ is None else environ
    if any(env.get(name) for name in SERVERLESS_ENV_MARKERS):
        return EnvironmentProfile(serverless=True)
    # Cloud Functions runs as www-data with this home directory
    for name in ("HOME", "PWD"):
        if "www-data-home" in env.get(name, ""):
            return EnvironmentProfile(serverless=True)
    return EnvironmentProfile(serverless=False)


def get_timezone() -> ZoneInfo:
    tz_name = os.getenv("TIMEZONE", DEFAULT_TIMEZONE)
    try:
        return ZoneInfo(tz_name)
    except Exception:  # pragma: no cover - invalid names depend on the host tzdata
        logging.warning("Invalid TIMEZONE %s, falling back to %s", tz_name, DEFAULT_TIMEZONE)
        return ZoneInfo(DEFAULT_TIMEZONE)


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "on"}


def get_settings() -> Settings:
    profile = detect_profile()
    settings = Settings(
        rhino_email=os.getenv("RHINO_EMAIL", ""),
        rhino_password=os.getenv("RHINO_PASSWORD", ""),
        calendar_id=os.getenv("CALENDAR_ID", "primary"),
        timezone=get_timezone(),
        google_client_secrets=os.getenv("GOOGLE_CLIENT_SECRETS", "credentials.json"),
        google_token_file=os.getenv("GOOGLE_TOKEN_FILE", "token.json"),
        profile=profile,
        login_url=os.getenv("RHINO_LOGIN_URL", LOGIN_URL),
        google_token=os.getenv("GOOGLE_TOKEN") or None,
        google_client_id=os.getenv("GOOGLE_CLIENT_ID") or None,
        google_client_secret=os.getenv("GOOGLE_CLIENT_SECRET") or None,
        chromium_executable=os.getenv("CHROMIUM_EXECUTABLE_PATH") or None,
        artifacts_dir=os.getenv("ARTIFACTS_DIR", "/tmp/artifacts" if profile.serverless else "artifacts"),
        headful=_env_flag("HEADFUL"),
    )
    if not settings.rhino_email:
        logging.warning("RHINO_EMAIL is not set")
    if not settings.rhino_password:
        logging.warning("RHINO_PASSWORD is not set")
    logging.debug("Resolved %s environment profile", profile.name)
    return settings
