from __future__ import annotations

import pytest
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from rhino_sync.browser import ExtractionError, ensure_login, launch_options
from rhino_sync.config import EnvironmentProfile
from rhino_sync.schedule import fetch_schedule_rows

TABLE_HTML = """
<table id="dgResults">
  <tr><td>Date</td><td>Call</td></tr>
  <tr><td>11/23/2025</td><td>08:00</td><td>Sun</td><td>Show</td><td>Venue</td><td>Atlanta</td>
      <td>Client</td><td>Load In</td><td>Stagehand</td><td></td><td>Confirmed</td><td></td></tr>
  <tr><td>1 2 3</td></tr>
</table>
"""


class FakePage:
    def __init__(self, html=TABLE_HTML, wait_error=None):
        self.html = html
        self.wait_error = wait_error
        self.clicked = []
        self.screenshots = []

    def click(self, selector):
        self.clicked.append(selector)

    def wait_for_selector(self, selector, timeout=None):
        if self.wait_error:
            raise self.wait_error

    def content(self):
        return self.html

    def screenshot(self, path, full_page=False):
        self.screenshots.append(path)


def test_fetch_schedule_rows_parses_results(tmp_path):
    page = FakePage()

    rows = fetch_schedule_rows(page, str(tmp_path))

    assert page.clicked == ["#btnSchedule"]
    assert len(rows) == 1
    assert rows[0][:2] == ["11/23/2025", "08:00"]


def test_fetch_schedule_rows_saves_artifacts_on_timeout(tmp_path):
    page = FakePage(html="<html>login page</html>", wait_error=PlaywrightTimeoutError("Timeout 10000ms exceeded"))

    with pytest.raises(ExtractionError):
        fetch_schedule_rows(page, str(tmp_path))

    assert len(page.screenshots) == 1
    saved = list((tmp_path / "pages").glob("schedule_*.html"))
    assert saved and saved[0].read_text() == "<html>login page</html>"


def test_fetch_schedule_rows_missing_table(tmp_path):
    page = FakePage(html="<html><body>maintenance</body></html>")

    with pytest.raises(ExtractionError, match="Results table not found"):
        fetch_schedule_rows(page, str(tmp_path))


def test_launch_options_local(settings):
    settings.headful = True

    assert launch_options(settings) == {"headless": False}


def test_launch_options_serverless(settings):
    settings.profile = EnvironmentProfile(serverless=True)
    settings.headful = True
    settings.chromium_executable = "/opt/chromium/chrome"

    options = launch_options(settings)

    assert options["headless"] is True
    assert "--no-sandbox" in options["args"]
    assert "--single-process" in options["args"]
    assert options["executable_path"] == "/opt/chromium/chrome"


def test_ensure_login_requires_site_credentials(settings):
    settings.rhino_password = ""

    with pytest.raises(ExtractionError, match="RHINO_PASSWORD"):
        ensure_login(settings)
