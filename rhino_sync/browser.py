from __future__ import annotations

import logging
from typing import Tuple

from playwright.sync_api import Browser, BrowserContext, Page, Playwright, sync_playwright
from playwright.sync_api import Error as PlaywrightError

from .config import Settings

SERVERLESS_CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--single-process",
    "--disable-gpu",
]

EMAIL_SELECTOR = "#emailaddress"
PASSWORD_SELECTOR = "#mypassword"
LOGIN_BUTTON_SELECTOR = "#btnNewLogin"
SCHEDULE_BUTTON_SELECTOR = "#btnSchedule"
LOGIN_TIMEOUT_MS = 5_000


class ExtractionError(RuntimeError):
    pass


def launch_options(settings: Settings) -> dict:
    options: dict = {"headless": not settings.headful}
    if settings.profile.serverless:
        options["headless"] = True
        options["args"] = list(SERVERLESS_CHROMIUM_ARGS)
    if settings.chromium_executable:
        options["executable_path"] = settings.chromium_executable
    return options


def create_context(settings: Settings) -> Tuple[Playwright, Browser, BrowserContext]:
    playwright = sync_playwright().start()
    try:
        browser = playwright.chromium.launch(**launch_options(settings))
    except PlaywrightError:
        playwright.stop()
        raise
    context = browser.new_context(
        viewport={"width": 1280, "height": 720},
        timezone_id=settings.timezone.key,
    )
    return playwright, browser, context


def ensure_login(settings: Settings) -> Tuple[Playwright, Browser, BrowserContext, Page]:
    if not settings.rhino_email or not settings.rhino_password:
        raise ExtractionError("Missing RHINO_EMAIL or RHINO_PASSWORD in environment")

    playwright, browser, context = create_context(settings)
    page = context.new_page()
    try:
        page.goto(settings.login_url, wait_until="networkidle")
        logging.info("Logging in to %s", settings.login_url)
        page.fill(EMAIL_SELECTOR, settings.rhino_email)
        page.fill(PASSWORD_SELECTOR, settings.rhino_password)
        page.click(LOGIN_BUTTON_SELECTOR)
        page.wait_for_load_state("load", timeout=LOGIN_TIMEOUT_MS)
        page.wait_for_selector(SCHEDULE_BUTTON_SELECTOR, state="visible", timeout=LOGIN_TIMEOUT_MS)
    except PlaywrightError as exc:
        logging.error("Login failed; still on %s", page.url)
        close_session(playwright, browser, context)
        raise ExtractionError(f"Login failed: {exc}") from exc

    logging.info("Login successful")
    return playwright, browser, context, page


def close_session(playwright: Playwright, browser: Browser, context: BrowserContext) -> None:
    try:
        context.close()
        browser.close()
    finally:
        playwright.stop()
