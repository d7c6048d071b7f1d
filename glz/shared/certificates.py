from __future__ import annotations

from datetime import date
from io import BytesIO
from typing import Optional

from reportlab.lib.colors import HexColor, black
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from ..constants import COURSE_INFO_LABELS, EVALUATION_LABELS, REFERENCE_LEVELS
from ..models import Certificate
from .time import fmt_date, now_utc

TITLE = "TEILNAHMEBESTÄTIGUNG / ATTESTATION"
ISSUE_PLACE = "Douala"
ACCENT = HexColor("#0066CC")

REGULAR = "Helvetica"
BOLD = "Helvetica-Bold"
BODY_SIZE = 11
NOTE_SIZE = 10
MARGIN = 20 * mm

FOOTNOTES = (
    "Diese Teilnahmebestätigung ist kein Zeugnis. Die Beurteilung der "
    "Kursleistungen erfolgte durch die Lehrerperson(en).",
    "Die Bewertungsskala umfasst folgende Einteilung: mit sehr gutem Erfolg, "
    "mit gutem Erfolg, mit Erfolg, Teilgenommen.",
    "",
    "This is a certificate of attendance only, not a formal qualification. "
    "Grades were awarded by the course tutor(s).",
    "The range of grades is: Outstanding, Good, Satisfactory, Participant.",
)


class _Writer:
    """Top-down cursor over a single reportlab page."""

    def __init__(self, c: canvas.Canvas, width: float, height: float):
        self.c = c
        self.width = width
        self.y = height - MARGIN

    def skip(self, points: float) -> None:
        self.y -= points

    def pairs(self, *parts: tuple[str, bool], size: float = BODY_SIZE) -> None:
        """Draw ``(text, bold)`` fragments on one line."""

        x = MARGIN
        for text, bold in parts:
            font = BOLD if bold else REGULAR
            self.c.setFont(font, size)
            self.c.drawString(x, self.y, text)
            x += stringWidth(text, font, size)
        self.skip(size * 1.6)

    def paragraph(self, text: str, size: float = NOTE_SIZE, font: str = REGULAR) -> None:
        if not text:
            self.skip(size)
            return
        self.c.setFont(font, size)
        for line in simpleSplit(text, font, size, self.width - 2 * MARGIN):
            self.c.drawString(MARGIN, self.y, line)
            self.skip(size * 1.3)


def _title(w: _Writer) -> None:
    w.skip(20 * mm)
    size = 14
    text_width = stringWidth(TITLE, BOLD, size)
    w.c.setFillColor(ACCENT)
    w.c.setStrokeColor(ACCENT)
    w.c.setFont(BOLD, size)
    w.c.drawCentredString(w.width / 2, w.y, TITLE)
    w.c.setLineWidth(1.5)
    left = (w.width - text_width) / 2 - 19
    w.c.line(left, w.y - 4, left + text_width + 38, w.y - 4)
    w.c.setFillColor(black)
    w.c.setStrokeColor(black)
    w.skip(40)


def _level_boxes(w: _Writer, selected: str) -> None:
    box = 11
    x = MARGIN
    for level in REFERENCE_LEVELS:
        w.c.setLineWidth(1)
        w.c.rect(x, w.y - 2, box, box)
        if level == selected:
            w.c.setFont(BOLD, 12)
            w.c.drawCentredString(x + box / 2, w.y, "X")
        w.c.setFont(REGULAR, BODY_SIZE)
        w.c.drawString(x + box + 5, w.y, level)
        x += 35
    w.skip(36)


def _signatures(w: _Writer, issued_on: date) -> None:
    rule = "________________________"
    rule_width = stringWidth(rule, REGULAR, BODY_SIZE)
    left = w.width / 2 - rule_width - 50
    right = w.width / 2 + 50
    c = w.c
    c.setFont(BOLD, BODY_SIZE)
    c.drawString(left + 20, w.y + 6, f"{ISSUE_PLACE}, {fmt_date(issued_on)}")
    c.setFont(REGULAR, BODY_SIZE)
    c.drawString(left, w.y, rule)
    c.drawString(right, w.y, rule)
    c.drawString(left, w.y - 16, "Ort und Datum / Place and date")
    c.drawString(right + 20, w.y - 16, "Leitung / Management")
    w.skip(40)


def render_certificate_pdf(cert: Certificate, issued_on: Optional[date] = None) -> bytes:
    """Render the attendance confirmation for ``cert`` and return PDF bytes."""

    issued_on = issued_on or now_utc().date()
    buffer = BytesIO()
    width, height = A4
    c = canvas.Canvas(buffer, pagesize=A4)
    c.setTitle(f"{TITLE} {cert.reference_number}")
    w = _Writer(c, width, height)

    _title(w)
    w.pairs(("Referenznummer / Reference number: ", False), (cert.reference_number, True))
    w.skip(6)
    w.pairs(("Name, Vorname / Surname, First name: ", False), (cert.full_name, True))
    w.pairs(
        ("geboren am / Date of birth: ", False),
        (fmt_date(cert.date_of_birth), True),
        ("   geboren in / Place of birth: ", False),
        (cert.place_of_birth, True),
    )
    w.skip(12)
    w.pairs(
        ("hat in der Zeit vom / attended from ", False),
        (fmt_date(cert.course_start_date), True),
        (" bis / to ", False),
        (fmt_date(cert.course_end_date), True),
    )
    w.paragraph(
        "an einem Deutschkurs im Sprachzentrum teilgenommen / a course in the german language.",
        size=BODY_SIZE,
    )
    w.skip(12)
    w.pairs(
        ("Der Kurs umfasste / The course consisted in ", False),
        (str(cert.lesson_units), True),
        (" Unterrichtseinheiten à 45 Minuten / lessons of 45 minutes.", False),
    )
    w.skip(8)
    w.pairs(("Referenzniveau des Kurses / Reference Level of the course:", False))
    _level_boxes(w, cert.reference_level)

    w.pairs(
        ("Kursinfo / Course Information: ", False),
        (COURSE_INFO_LABELS.get(cert.course_info, cert.course_info), True),
    )
    w.c.setFont(REGULAR, BODY_SIZE)
    label = "Bemerkungen / Comments on the course: "
    w.c.drawString(MARGIN, w.y, label)
    comments = (cert.comments or "").strip() or "-"
    indent = MARGIN + stringWidth(label, REGULAR, BODY_SIZE)
    lines = simpleSplit(comments, BOLD, BODY_SIZE, width - MARGIN - indent)
    w.c.setFont(BOLD, BODY_SIZE)
    for line in lines:
        w.c.drawString(indent, w.y, line)
        w.skip(BODY_SIZE * 1.3)
    w.skip(BODY_SIZE * 0.3)
    w.pairs(
        ("Besuchte Unterrichtseinheiten / Number of lessons attended: ", False),
        (str(cert.lessons_attended), True),
    )
    w.pairs(
        ("Bewertung / Evaluation: ", False),
        (EVALUATION_LABELS.get(cert.evaluation, cert.evaluation), True),
    )
    w.skip(10)
    for note in FOOTNOTES:
        w.paragraph(note)
    w.skip(40)
    _signatures(w, issued_on)

    c.setStrokeColor(ACCENT)
    c.setLineWidth(4)
    c.line(MARGIN, w.y, width - MARGIN, w.y)

    c.showPage()
    c.save()
    return buffer.getvalue()
