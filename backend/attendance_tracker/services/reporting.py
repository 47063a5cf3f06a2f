"""
Reporting Formatter - renders report rows as CSV, PDF or DOCX bytes.

Rows come from aggregation.report_rows(); this module knows nothing about
the database. Each renderer returns a RenderedReport with the bytes,
media type and a download filename.
"""

import csv
import io
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import docx
from docx.shared import Pt
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from attendance_tracker.exceptions import ValidationError
from attendance_tracker.logging_config import get_logger, log_with_context
from attendance_tracker.models.attendance import STATUS_ABSENT

logger = get_logger("report")

# (row key, column title)
RANGE_COLUMNS = (
    ("register_number", "Register Number"),
    ("name", "Name"),
    ("date", "Date"),
    ("status", "Status"),
)
DAILY_COLUMNS = (
    ("register_number", "Register Number"),
    ("name", "Name"),
    ("year_of_study", "Year"),
    ("branch", "Branch"),
    ("status", "Status"),
)

FORMATS = ("csv", "pdf", "docx")
MEDIA_TYPES = {
    "csv": "text/csv",
    "pdf": "application/pdf",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


@dataclass
class RenderedReport:
    content: bytes
    media_type: str
    filename: str


def _cell(row: dict, key: str) -> str:
    value = row.get(key)
    if value is None:
        return STATUS_ABSENT if key == "status" else ""
    return str(value)


def render_csv(rows: List[dict], columns: Sequence[Tuple[str, str]]) -> bytes:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow([title for _, title in columns])
    for row in rows:
        writer.writerow([_cell(row, key) for key, _ in columns])
    return output.getvalue().encode("utf-8")


def render_pdf(title: str, rows: List[dict], columns: Sequence[Tuple[str, str]]) -> bytes:
    """One text line per row on A4 pages, new page when the current one fills up."""
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4
    margin = 50
    line_height = 16

    pdf.setTitle(title)
    pdf.setFont("Helvetica-Bold", 16)
    pdf.drawCentredString(width / 2, height - margin, title)
    y = height - margin - 2 * line_height
    pdf.setFont("Helvetica", 11)

    for row in rows:
        if y < margin:
            pdf.showPage()
            pdf.setFont("Helvetica", 11)
            y = height - margin
        text = ", ".join("{}: {}".format(label, _cell(row, key) or "N/A") for key, label in columns)
        pdf.drawString(margin, y, text)
        y -= line_height

    pdf.save()
    return buffer.getvalue()


def render_docx(title: str, rows: List[dict], columns: Sequence[Tuple[str, str]]) -> bytes:
    document = docx.Document()
    document.add_heading(title, level=0)

    table = document.add_table(rows=1, cols=len(columns))
    table.style = "Table Grid"
    for cell, (_, label) in zip(table.rows[0].cells, columns):
        cell.text = label
        for run in cell.paragraphs[0].runs:
            run.font.bold = True
            run.font.size = Pt(11)

    for row in rows:
        cells = table.add_row().cells
        for cell, (key, _) in zip(cells, columns):
            cell.text = _cell(row, key)

    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def render(fmt: str, title: str, basename: str, rows: List[dict],
           columns: Sequence[Tuple[str, str]] = RANGE_COLUMNS) -> RenderedReport:
    """Dispatch to the renderer for `fmt`. Raises ValidationError for unknown formats."""
    fmt = (fmt or "").lower()
    if fmt not in FORMATS:
        raise ValidationError('Invalid format. Use "csv", "pdf", or "docx"')

    if fmt == "csv":
        content = render_csv(rows, columns)
    elif fmt == "pdf":
        content = render_pdf(title, rows, columns)
    else:
        content = render_docx(title, rows, columns)

    log_with_context(logger, "INFO", "Rendered {} report: {}".format(fmt, title),
                     extra_data={"rows": len(rows), "bytes": len(content)})
    return RenderedReport(
        content=content,
        media_type=MEDIA_TYPES[fmt],
        filename="{}.{}".format(basename, fmt),
    )
