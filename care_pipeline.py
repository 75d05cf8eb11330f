import base64
import hashlib
import io
import json
import random
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

import keyring
from openai import OpenAI
from watchdog.events import FileSystemEventHandler

from PIL import Image
import pillow_heif
pillow_heif.register_heif_opener()

from app_contract import APP_NAME, DEFAULT_OPENAI_MODEL
from care_note_parser import StructuredNote, parse
from demo_notes import DEMO_NOTES
from pdf_report import write_report_pdf
from prompt_contract import PROMPT
from report_format import build_mailto_url

SERVICE_NAME = "com.care-notes"

CONFIG_DIR = Path.home() / "Library" / "Application Support" / APP_NAME
CONFIG_PATH = CONFIG_DIR / "config.json"
STATE_PATH = CONFIG_DIR / "processed.json"
LOG_PATH = CONFIG_DIR / "app.log"

SUPPORTED_EXTS = {".jpg", ".jpeg", ".png", ".webp", ".heic"}
MAX_IMAGE_SIDE = 1800
REPORTS_DIRNAME = "_reports"

_STATE_LOCK = threading.Lock()


def ensure_dirs():
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)


def log(msg: str) -> None:
    # In a packaged app print() goes nowhere; keep a plain log next to the config.
    try:
        ensure_dirs()
        stamp = datetime.now().isoformat(timespec="seconds")
        with LOG_PATH.open("a", encoding="utf-8") as fh:
            fh.write(f"{stamp} {msg}\n")
    except OSError:
        pass


def load_config() -> dict:
    if not CONFIG_PATH.exists():
        return {}
    try:
        return json.loads(CONFIG_PATH.read_text("utf-8"))
    except ValueError:
        log(f"Unreadable config at {CONFIG_PATH}, ignoring it")
        return {}


def save_config(cfg: dict) -> None:
    ensure_dirs()
    CONFIG_PATH.write_text(json.dumps(cfg, ensure_ascii=False, indent=2), "utf-8")


def state_load() -> dict:
    if STATE_PATH.exists():
        try:
            return json.loads(STATE_PATH.read_text("utf-8"))
        except ValueError:
            return {"processed": {}}
    return {"processed": {}}


def state_save(state: dict) -> None:
    ensure_dirs()
    with _STATE_LOCK:
        tmp = STATE_PATH.with_suffix(STATE_PATH.suffix + ".tmp")
        tmp.write_text(json.dumps(state, ensure_ascii=False, indent=2), "utf-8")
        tmp.replace(STATE_PATH)


def keychain_set(name: str, value: str) -> None:
    keyring.set_password(SERVICE_NAME, name, value)


def keychain_get(name: str) -> Optional[str]:
    return keyring.get_password(SERVICE_NAME, name)


def image_to_jpeg_bytes(path: Path) -> bytes:
    img = Image.open(path)
    if img.mode != "RGB":
        img = img.convert("RGB")
    # Phone photos are huge; the model does not need more than this.
    img.thumbnail((MAX_IMAGE_SIDE, MAX_IMAGE_SIDE))
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=92)
    return buf.getvalue()


def jpeg_to_data_url(b: bytes) -> str:
    return "data:image/jpeg;base64," + base64.b64encode(b).decode("utf-8")


def list_pending_images(folder: Path) -> List[Path]:
    """
    Supported, non-hidden image files directly in `folder`, oldest first.
    """
    out = []
    for p in folder.iterdir():
        if not p.is_file():
            continue
        if p.name.startswith("."):
            continue
        if p.suffix.lower() not in SUPPORTED_EXTS:
            continue
        out.append(p)
    return sorted(out, key=lambda p: p.stat().st_mtime)


def pick_demo_text() -> str:
    return random.choice(DEMO_NOTES)["text"]


class Pipeline:
    def __init__(
        self,
        openai_key: str,
        model: str,
        reports_dir: Path,
        status_cb: Callable[[str], None],
        on_report: Optional[Callable[[StructuredNote, Path], None]] = None,
        demo_fallback: bool = False,
    ):
        self.client = OpenAI(api_key=openai_key)
        self.model = model or DEFAULT_OPENAI_MODEL
        self.reports_dir = reports_dir
        self.status_cb = status_cb
        self.on_report = on_report
        self.demo_fallback = demo_fallback
        self.state = state_load()

    def fingerprint(self, path: Path) -> str:
        return hashlib.sha256(path.read_bytes()).hexdigest()

    def seen(self, fp: str) -> bool:
        return fp in self.state.get("processed", {})

    def mark(self, fp: str, name: str) -> None:
        self.state.setdefault("processed", {})[fp] = {"name": name, "ts": time.time()}
        state_save(self.state)

    def transcribe_from_jpeg(self, jpeg: bytes, filename: str) -> str:
        self.status_cb(f"Transcribing: {filename}")

        resp = self.client.responses.create(
            model=self.model,
            input=[{
                "role": "user",
                "content": [
                    {"type": "input_text", "text": PROMPT},
                    {"type": "input_image", "image_url": jpeg_to_data_url(jpeg)},
                ],
            }],
        )

        text = (resp.output_text or "").strip()
        if not text:
            raise RuntimeError("Model returned no text.")
        return text

    def transcribe(self, path: Path) -> str:
        jpeg = image_to_jpeg_bytes(path)
        try:
            return self.transcribe_from_jpeg(jpeg, path.name)
        except Exception as e:
            if not self.demo_fallback:
                raise
            log(f"Transcription failed for {path.name}, using demo note: {e}")
            self.status_cb(f"Transcription failed, using demo note: {path.name}")
            return pick_demo_text()

    def process_text(self, text: str, source_name: str) -> StructuredNote:
        note = parse(text)
        self.status_cb(f"Writing report: {source_name}")

        pdf_path = write_report_pdf(note, self.reports_dir)
        # Keep the transcript beside the PDF so a bad parse can be checked by hand.
        pdf_path.with_suffix(".txt").write_text(text, "utf-8")

        self.state["last_report_path"] = str(pdf_path)
        self.state["last_report_mailto"] = build_mailto_url(note)
        self.state["last_note"] = note.as_dict()
        self.state["last_report_ts"] = time.time()
        state_save(self.state)

        log(
            f"Report for {source_name}: {note.client_name} {note.date}, "
            f"{len(note.activities)} activities, {note.total_hours} hours"
        )
        if self.on_report is not None:
            self.on_report(note, pdf_path)
        return note

    def process(self, path: Path) -> Optional[StructuredNote]:
        fp = self.fingerprint(path)
        if self.seen(fp):
            self.status_cb(f"Already processed: {path.name}")
            return None

        text = self.transcribe(path)
        note = self.process_text(text, path.name)

        self.mark(fp, path.name)
        self.status_cb(f"Done: {path.name}")
        return note


class FolderHandler(FileSystemEventHandler):
    def __init__(
        self,
        pipeline: Pipeline,
        watch: Path,
        status_cb: Callable[[str], None],
        on_failure: Optional[Callable[[Path, Exception], None]] = None,
    ):
        self.pipeline = pipeline
        self.watch = watch
        self.status_cb = status_cb
        self.on_failure = on_failure
        self.proc = watch / "_processed"
        self.fail = watch / "_failed"
        self.proc.mkdir(exist_ok=True)
        self.fail.mkdir(exist_ok=True)

    def on_created(self, event):
        if event.is_directory:
            return
        path = Path(event.src_path)

        if path.name.startswith("."):
            return
        if path.suffix.lower() not in SUPPORTED_EXTS:
            return

        # wait for file to finish writing
        last = -1
        for _ in range(60):
            try:
                sz = path.stat().st_size
            except FileNotFoundError:
                return
            if sz > 0 and sz == last:
                break
            last = sz
            time.sleep(0.25)

        self.handle(path)

    def handle(self, path: Path) -> None:
        try:
            self.pipeline.process(path)
            path.replace(self.proc / path.name)
        except Exception as e:
            log(f"Failed {path.name}: {e}")
            self.status_cb(f"Error: {e}")
            if self.on_failure is not None:
                self.on_failure(path, e)
            try:
                path.replace(self.fail / path.name)
            except OSError as move_err:
                log(f"Could not move {path.name} to _failed: {move_err}")

    def process_pending(self) -> int:
        pending = list_pending_images(self.watch)
        for path in pending:
            self.handle(path)
        return len(pending)
