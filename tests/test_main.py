from __future__ import annotations

import pytest

import main
from rhino_sync.models import SyncReport


def test_main_runs_once(monkeypatch, settings):
    calls = []
    monkeypatch.setattr(main, "get_settings", lambda: settings)
    monkeypatch.setattr(main, "run", lambda s: calls.append(s) or SyncReport())

    assert main.main(["--headful"]) == 0
    assert calls == [settings]
    assert settings.headful is True


def test_main_exits_non_zero_on_failure(monkeypatch, settings):
    def _fail(s):
        raise RuntimeError("Schedule table did not load")

    monkeypatch.setattr(main, "get_settings", lambda: settings)
    monkeypatch.setattr(main, "run", _fail)

    assert main.main([]) == 1


def test_main_dedupe_dry_run(monkeypatch, settings):
    calls = []
    monkeypatch.setattr(main, "get_settings", lambda: settings)
    monkeypatch.setattr(main, "run_dedupe", lambda s, dry_run: calls.append(dry_run) or [])

    assert main.main(["--dedupe", "--dry-run"]) == 0
    assert calls == [True]


def test_dry_run_requires_dedupe(monkeypatch, settings):
    calls = []
    monkeypatch.setattr(main, "get_settings", lambda: settings)
    monkeypatch.setattr(main, "run", lambda s: calls.append(s) or SyncReport())

    with pytest.raises(SystemExit) as excinfo:
        main.main(["--dry-run"])

    assert excinfo.value.code == 2
    assert calls == []
