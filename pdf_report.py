import io
from pathlib import Path
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from app_contract import REPORT_TITLE
from care_note_parser import StructuredNote
from report_format import report_filename


def build_report_pdf(note: StructuredNote) -> bytes:
    """
    StructuredNote -> PDF bytes (letter, one activities table).
    """
    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=letter,
        title=f"{REPORT_TITLE} - {note.client_name}",
        rightMargin=72,
        leftMargin=72,
        topMargin=72,
        bottomMargin=36,
    )
    styles = getSampleStyleSheet()
    story = []

    story.append(Paragraph(REPORT_TITLE, styles["Title"]))
    story.append(Spacer(1, 12))

    info = Table(
        [
            ["Client:", note.client_name],
            ["Date:", note.date],
            ["Total Time:", f"{note.total_hours} hours"],
        ],
        colWidths=[90, 378],
    )
    info.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
        ("ALIGN", (0, 0), (-1, -1), "LEFT"),
        ("LEFTPADDING", (0, 0), (-1, -1), 0),
    ]))
    story.append(info)
    story.append(Spacer(1, 18))

    story.append(Paragraph("Activities:", styles["Heading3"]))

    rows = [["#", "Activity", "Hours"]]
    for idx, activity in enumerate(note.activities, start=1):
        # Paragraph wraps long descriptions and parses markup.
        rows.append([str(idx), Paragraph(escape(activity.description), styles["BodyText"]), activity.hours])

    table = Table(rows, colWidths=[28, 370, 70], repeatRows=1)
    table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("LINEBELOW", (0, 0), (-1, 0), 0.75, colors.black),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("ALIGN", (2, 0), (2, -1), "RIGHT"),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.whitesmoke]),
    ]))
    story.append(table)

    doc.build(story)
    return buf.getvalue()


def unique_report_path(out_dir: Path, filename: str) -> Path:
    """
    out_dir/filename, or out_dir/<stem>_2<suffix>, _3, ... if taken.
    """
    path = out_dir / filename
    n = 2
    while path.exists():
        path = out_dir / f"{Path(filename).stem}_{n}{Path(filename).suffix}"
        n += 1
    return path


def write_report_pdf(note: StructuredNote, out_dir: Path) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    path = unique_report_path(out_dir, report_filename(note))
    path.write_bytes(build_report_pdf(note))
    return path
