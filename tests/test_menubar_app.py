from pathlib import Path

import pytest

rumps = pytest.importorskip("rumps")

import menubar_care_notes as appmod  # noqa: E402


def _patch_rumps_headless(monkeypatch):
    # Keep macOS GUI out of the tests while satisfying what CareNotesMenuApp touches.
    monkeypatch.setattr(appmod.rumps.App, "__init__", lambda self, *a, **k: None)
    monkeypatch.setattr(appmod.rumps, "notification", lambda *a, **k: None)

    class DummyMenuItem:
        def __init__(self, title, callback=None):
            self.title = title
            self.callback = callback
            self.state = 0
            self.children = []

        def add(self, item):
            self.children.append(item)

    monkeypatch.setattr(appmod.rumps, "MenuItem", DummyMenuItem)

    class DummyMenu:
        def update(self, iterable):
            self.items = list(iterable)

    orig_init = appmod.CareNotesMenuApp.__init__

    def wrapped_init(self, *a, **k):
        self._menu = DummyMenu()
        return orig_init(self, *a, **k)

    monkeypatch.setattr(appmod.CareNotesMenuApp, "__init__", wrapped_init)
    monkeypatch.setattr(appmod, "log", lambda msg: None)


def test_autostart_schedules_timer_when_config_present(monkeypatch):
    _patch_rumps_headless(monkeypatch)
    created = {"timer": None, "started": False}

    class DummyTimer:
        def __init__(self, callback, interval):
            created["timer"] = {"callback": callback, "interval": interval}

        def start(self):
            created["started"] = True

    monkeypatch.setattr(appmod.rumps, "Timer", DummyTimer)
    monkeypatch.setattr(appmod.CareNotesMenuApp, "_ensure_config", lambda self: {"WATCH_FOLDER": "/tmp"})

    app = appmod.CareNotesMenuApp()

    assert created["timer"]["interval"] == 1
    assert created["timer"]["callback"].__self__ is app
    assert created["timer"]["callback"].__name__ == "_autostart_watch"
    assert created["started"] is True


def test_autostart_not_scheduled_when_config_missing(monkeypatch):
    _patch_rumps_headless(monkeypatch)
    created = {"timer": False}

    class DummyTimer:
        def __init__(self, callback, interval):
            created["timer"] = True

        def start(self):
            pass

    monkeypatch.setattr(appmod.rumps, "Timer", DummyTimer)
    monkeypatch.setattr(appmod.CareNotesMenuApp, "_ensure_config", lambda self: None)

    appmod.CareNotesMenuApp()

    assert created["timer"] is False


def test_demo_menu_lists_every_demo_note(monkeypatch):
    _patch_rumps_headless(monkeypatch)
    monkeypatch.setattr(appmod.CareNotesMenuApp, "_ensure_config", lambda self: None)

    app = appmod.CareNotesMenuApp()

    assert [c.title for c in app.mi_demo.children] == [d["name"] for d in appmod.DEMO_NOTES]


def test_open_last_report_opens_file(monkeypatch):
    opened = {"cmd": None}
    monkeypatch.setattr(appmod, "state_load", lambda: {"last_report_path": "/tmp/Susan_Johnson_3_15_24.pdf"})
    monkeypatch.setattr(appmod.subprocess, "run", lambda cmd: opened.__setitem__("cmd", cmd))
    monkeypatch.setattr(appmod.rumps, "alert", lambda *args: pytest.fail("unexpected alert"))

    app = appmod.CareNotesMenuApp.__new__(appmod.CareNotesMenuApp)
    app.open_last_report(None)

    assert opened["cmd"] == ["open", "/tmp/Susan_Johnson_3_15_24.pdf"]


def test_email_last_report_alerts_when_missing(monkeypatch):
    alerted = {"args": None}
    monkeypatch.setattr(appmod, "state_load", lambda: {"processed": {}})
    monkeypatch.setattr(appmod.subprocess, "run", lambda cmd: pytest.fail("nothing to open"))
    monkeypatch.setattr(appmod.rumps, "alert", lambda *args: alerted.__setitem__("args", args))

    app = appmod.CareNotesMenuApp.__new__(appmod.CareNotesMenuApp)
    app.email_last_report(None)

    assert alerted["args"] == ("No report yet", "No note has been processed yet")


def test_email_last_report_opens_mailto(monkeypatch):
    opened = {"cmd": None}
    monkeypatch.setattr(appmod, "state_load", lambda: {"last_report_mailto": "mailto:?subject=x&body=y"})
    monkeypatch.setattr(appmod.subprocess, "run", lambda cmd: opened.__setitem__("cmd", cmd))

    app = appmod.CareNotesMenuApp.__new__(appmod.CareNotesMenuApp)
    app.email_last_report(None)

    assert opened["cmd"] == ["open", "mailto:?subject=x&body=y"]


def test_run_demo_writes_report_through_pipeline(monkeypatch, tmp_path: Path):
    monkeypatch.setattr(appmod, "load_config", lambda: {"WATCH_FOLDER": str(tmp_path)})
    written = []

    class FakePipeline:
        def process_text(self, text, source_name):
            written.append((text, source_name))

    app = appmod.CareNotesMenuApp.__new__(appmod.CareNotesMenuApp)
    app.pipeline = FakePipeline()

    class Sender:
        title = "Robert C. - Hospital Discharge"

    app.run_demo(Sender())

    assert written[0][0].startswith("Robert Chen 3/18/24")
    assert written[0][1] == "demo: Robert C. - Hospital Discharge"
    assert "Robert C." in app.status_msg


def test_failure_notification_body_uses_first_line_and_is_trimmed(monkeypatch, tmp_path: Path):
    called = {}
    monkeypatch.setattr(
        appmod.rumps,
        "notification",
        lambda title, subtitle, message: called.update({"subtitle": subtitle, "message": message}),
    )

    exc = RuntimeError("A very long error message " * 10 + "\nsecond line")
    appmod.notify_failed_image(tmp_path / "IMG_LONG.HEIC", exc)

    assert called["subtitle"] == "Note failed"
    assert called["message"].startswith("IMG_LONG.HEIC - A very long")
    assert "second line" not in called["message"]
    assert len(called["message"]) <= 120


def test_run_demo_alerts_when_report_cannot_be_written(monkeypatch, tmp_path: Path):
    monkeypatch.setattr(appmod, "load_config", lambda: {"WATCH_FOLDER": str(tmp_path)})
    monkeypatch.setattr(appmod, "log", lambda msg: None)
    alerted = {"args": None}
    monkeypatch.setattr(appmod.rumps, "alert", lambda *args: alerted.__setitem__("args", args))

    class BrokenPipeline:
        def process_text(self, text, source_name):
            raise OSError("Read-only file system")

    app = appmod.CareNotesMenuApp.__new__(appmod.CareNotesMenuApp)
    app.pipeline = BrokenPipeline()
    app.status_msg = "Idle"

    class Sender:
        title = "Susan J. - Insurance & Visit"

    app.run_demo(Sender())

    assert alerted["args"] == ("Demo failed", "Read-only file system")
    assert app.status_msg == "Idle"
