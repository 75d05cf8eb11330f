from __future__ import annotations

import re
from typing import List
from urllib.parse import quote

from app_contract import REPORT_SIGNATURE, REPORT_TITLE
from care_note_parser import Activity, StructuredNote


_WS_RE = re.compile(r"\s+")
# Characters encodeURIComponent leaves alone.
_URI_SAFE = "-_.!~*'()"


def activity_line(index: int, activity: Activity) -> str:
    return f"{index}. {activity.description} - {activity.hours} hours"


def build_report_lines(note: StructuredNote) -> List[str]:
    """
    Pure function: StructuredNote -> plain-text report lines.
    Same content the PDF shows, in the same order.
    """
    lines = [
        REPORT_TITLE,
        "",
        f"Client: {note.client_name}",
        f"Date: {note.date}",
        f"Total Time: {note.total_hours} hours",
        "",
        "Activities:",
    ]
    for idx, activity in enumerate(note.activities, start=1):
        lines.append(activity_line(idx, activity))
    return lines


def email_subject(note: StructuredNote) -> str:
    return f"{REPORT_TITLE} - {note.client_name} - {note.date}"


def email_body(note: StructuredNote, signature: str = REPORT_SIGNATURE) -> str:
    activities = "\n".join(
        activity_line(idx, a) for idx, a in enumerate(note.activities, start=1)
    )
    return (
        f"Please find the care advocacy report for {note.client_name}:\n"
        "\n"
        f"Date: {note.date}\n"
        f"Total Time: {note.total_hours} hours\n"
        "\n"
        "Activities:\n"
        f"{activities}\n"
        "\n"
        "Best regards,\n"
        f"{signature}"
    )


def build_mailto_url(note: StructuredNote, signature: str = REPORT_SIGNATURE) -> str:
    subject = quote(email_subject(note), safe=_URI_SAFE)
    body = quote(email_body(note, signature=signature), safe=_URI_SAFE)
    return f"mailto:?subject={subject}&body={body}"


def report_filename(note: StructuredNote, suffix: str = ".pdf") -> str:
    """
    "Susan Johnson" + "3/15/24" -> "Susan_Johnson_3_15_24.pdf"
    """
    client = _WS_RE.sub("_", note.client_name.strip()).replace("/", "_")
    when = note.date.replace("/", "_")
    return f"{client}_{when}{suffix}"
