from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import List

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page

from .browser import SCHEDULE_BUTTON_SELECTOR, ExtractionError, close_session, ensure_login
from .config import Settings
from .models import RawRow
from .parser import RESULTS_TABLE_SELECTOR, ParseError, parse_rows_from_html

RESULTS_TIMEOUT_MS = 10_000


def save_artifacts(page: Page, artifacts_dir: str, label: str) -> None:
    stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    base = Path(artifacts_dir)
    pages_dir = base / "pages"
    screenshots_dir = base / "screenshots"
    pages_dir.mkdir(parents=True, exist_ok=True)
    screenshots_dir.mkdir(parents=True, exist_ok=True)
    try:
        (pages_dir / f"{label}_{stamp}.html").write_text(page.content(), encoding="utf-8")
        screenshot_path = screenshots_dir / f"{label}_{stamp}.png"
        page.screenshot(path=str(screenshot_path), full_page=True)
        logging.info("Saved screenshot to %s", screenshot_path)
    except (PlaywrightError, OSError) as exc:
        logging.warning("Unable to capture artifacts: %s", exc)


def fetch_schedule_rows(page: Page, artifacts_dir: str) -> List[RawRow]:
    try:
        page.click(SCHEDULE_BUTTON_SELECTOR)
        page.wait_for_selector(RESULTS_TABLE_SELECTOR, timeout=RESULTS_TIMEOUT_MS)
        html = page.content()
    except PlaywrightError as exc:
        logging.error("Schedule table did not load: %s", exc)
        save_artifacts(page, artifacts_dir, "schedule")
        raise ExtractionError(f"Schedule table did not load: {exc}") from exc

    try:
        rows = parse_rows_from_html(html)
    except ParseError as exc:
        logging.error("Failed to parse schedule: %s", exc)
        save_artifacts(page, artifacts_dir, "schedule")
        raise ExtractionError(str(exc)) from exc

    logging.info("Scraped %d schedule rows", len(rows))
    return rows


def scrape_schedule_rows(settings: Settings) -> List[RawRow]:
    playwright, browser, context, page = ensure_login(settings)
    try:
        return fetch_schedule_rows(page, settings.artifacts_dir)
    finally:
        close_session(playwright, browser, context)
