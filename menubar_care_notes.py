import subprocess
from pathlib import Path
from typing import Optional

import rumps
from watchdog.observers import Observer

from app_contract import APP_NAME, DEFAULT_OPENAI_MODEL
from care_note_parser import StructuredNote
from care_pipeline import (
    REPORTS_DIRNAME,
    FolderHandler,
    Pipeline,
    keychain_get,
    keychain_set,
    load_config,
    log,
    save_config,
    state_load,
)
from demo_notes import DEMO_NOTES, demo_text


def reports_dir_for(cfg: dict) -> Path:
    return Path(cfg["WATCH_FOLDER"]).expanduser() / REPORTS_DIRNAME


def notify_report_ready(note: StructuredNote, pdf_path: Path) -> None:
    rumps.notification(
        APP_NAME,
        f"Report ready: {note.client_name}",
        f"{note.date} - {note.total_hours} hours ({pdf_path.name})",
    )


def notify_failed_image(path: Path, exc: Exception) -> None:
    first_line = (str(exc).splitlines() or [""])[0]
    body = f"{path.name} - {first_line}"
    if len(body) > 120:
        body = body[:119] + "…"
    rumps.notification(APP_NAME, "Note failed", body)


class CareNotesMenuApp(rumps.App):
    def __init__(self):
        super().__init__(APP_NAME, quit_button=None)
        self.title = "📷🩺"

        self.status_msg = "Idle"
        self.observer: Optional[Observer] = None
        self.pipeline: Optional[Pipeline] = None

        self.mi_start = rumps.MenuItem("Start Watching", callback=self.start_watching)
        self.mi_stop = rumps.MenuItem("Stop Watching", callback=self.stop_watching)
        self.mi_setup = rumps.MenuItem("Setup…", callback=self.setup)
        self.mi_demo = rumps.MenuItem("Try a Demo")
        for demo in DEMO_NOTES:
            self.mi_demo.add(rumps.MenuItem(demo["name"], callback=self.run_demo))
        self.mi_last = rumps.MenuItem("Open Last Report", callback=self.open_last_report)
        self.mi_email = rumps.MenuItem("Email Last Report", callback=self.email_last_report)
        self.mi_reports = rumps.MenuItem("Open Reports Folder", callback=self.open_reports_folder)
        self.mi_status = rumps.MenuItem("Status…", callback=self.show_status)
        self.mi_quit = rumps.MenuItem("Quit", callback=self.quit_app)

        self.menu = [
            self.mi_start,
            self.mi_stop,
            None,
            self.mi_setup,
            self.mi_demo,
            None,
            self.mi_last,
            self.mi_email,
            self.mi_reports,
            self.mi_status,
            None,
            self.mi_quit,
        ]

        self._refresh_menu_states()

        if self._ensure_config():
            log("Config present, autostarting watcher")
            rumps.Timer(self._autostart_watch, 1).start()

    def status_cb(self, msg: str):
        self.status_msg = msg
        self._refresh_menu_states()

    def _refresh_menu_states(self):
        running = self.observer is not None
        self.mi_start.state = 1 if running else 0
        self.mi_stop.state = 0

    def _ensure_config(self) -> Optional[dict]:
        cfg = load_config()
        if not cfg.get("WATCH_FOLDER") or not keychain_get("OPENAI_API_KEY"):
            return None
        return cfg

    def _autostart_watch(self, timer):
        timer.stop()
        if self.observer is None:
            self.start_watching(None)

    def _build_pipeline(self, cfg: dict) -> Pipeline:
        return Pipeline(
            openai_key=keychain_get("OPENAI_API_KEY") or "",
            model=cfg.get("OPENAI_MODEL", DEFAULT_OPENAI_MODEL),
            reports_dir=reports_dir_for(cfg),
            status_cb=self.status_cb,
            on_report=notify_report_ready,
            demo_fallback=bool(cfg.get("DEMO_FALLBACK", False)),
        )

    def setup(self, _):
        cfg = load_config()

        w = rumps.Window(
            title="Watch folder path",
            message="Drop photos of your notes here. Example: /Users/you/CareNotesDrop",
            default_text=cfg.get("WATCH_FOLDER", ""),
            ok="Next",
            cancel="Cancel"
        ).run()
        if not w.clicked:
            return

        openai = rumps.Window(
            title="OpenAI API key",
            message="Saved to Keychain. Leave blank to keep existing.",
            default_text="",
            ok="Save",
            cancel="Cancel"
        ).run()
        if not openai.clicked:
            return

        folder = w.text.strip()
        if not folder:
            rumps.alert("Missing folder", "Please enter a folder path.")
            return

        cfg["WATCH_FOLDER"] = folder
        cfg.setdefault("OPENAI_MODEL", DEFAULT_OPENAI_MODEL)
        cfg.setdefault("DEMO_FALLBACK", False)
        save_config(cfg)

        if openai.text.strip():
            keychain_set("OPENAI_API_KEY", openai.text.strip())

        self.status_msg = "Saved setup."
        rumps.alert("Saved", "Setup saved. Now click Start Watching.")

    def start_watching(self, _):
        if self.observer is not None:
            rumps.alert("Already running", "Watcher is already running.")
            return

        cfg = self._ensure_config()
        if not cfg:
            rumps.alert("Setup needed", "Click Setup… and enter a folder + OpenAI key.")
            return

        watch = Path(cfg["WATCH_FOLDER"]).expanduser()
        watch.mkdir(parents=True, exist_ok=True)

        try:
            self.pipeline = self._build_pipeline(cfg)
            handler = FolderHandler(self.pipeline, watch, self.status_cb, on_failure=notify_failed_image)

            pending = handler.process_pending()
            if pending:
                log(f"Processed {pending} image(s) waiting in {watch}")

            self.observer = Observer()
            self.observer.schedule(handler, str(watch), recursive=False)
            self.observer.start()

            self.status_msg = f"Watching: {watch}"
            log(self.status_msg)
            rumps.notification(APP_NAME, "Started", str(watch))
        except Exception as e:
            self.observer = None
            log(f"Could not start: {e}")
            rumps.alert("Could not start", str(e))
        finally:
            self._refresh_menu_states()

    def stop_watching(self, _):
        if self.observer is None:
            rumps.alert("Not running", "Watcher is not running.")
            return

        try:
            self.observer.stop()
            self.observer.join(timeout=5)
        finally:
            self.observer = None
            self.status_msg = "Stopped."
            rumps.notification(APP_NAME, "Stopped", "")
            self._refresh_menu_states()

    def run_demo(self, sender):
        cfg = load_config()
        if not cfg.get("WATCH_FOLDER"):
            rumps.alert("Setup needed", "Click Setup… and choose a folder for reports first.")
            return

        try:
            pipeline = self.pipeline or self._build_pipeline(cfg)
            pipeline.process_text(demo_text(sender.title), f"demo: {sender.title}")
        except Exception as e:
            log(f"Demo failed for {sender.title}: {e}")
            rumps.alert("Demo failed", str(e))
            return
        self.status_msg = f"Demo report written: {sender.title}"

    def open_last_report(self, _):
        path = state_load().get("last_report_path")
        if not path:
            rumps.alert("No report yet", "No note has been processed yet")
            return
        subprocess.run(["open", path])

    def email_last_report(self, _):
        url = state_load().get("last_report_mailto")
        if not url:
            rumps.alert("No report yet", "No note has been processed yet")
            return
        subprocess.run(["open", url])

    def open_reports_folder(self, _):
        cfg = load_config()
        if cfg.get("WATCH_FOLDER"):
            folder = reports_dir_for(cfg)
            folder.mkdir(parents=True, exist_ok=True)
            subprocess.run(["open", str(folder)])

    def show_status(self, _):
        rumps.alert("Status", self.status_msg or "—")

    def quit_app(self, _):
        try:
            if self.observer is not None:
                self.observer.stop()
                self.observer.join(timeout=2)
        finally:
            rumps.quit_application()


def main():
    CareNotesMenuApp().run()


if __name__ == "__main__":
    main()
