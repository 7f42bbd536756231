#!/usr/bin/env python3
"""PDF and Word export of audited resumes.

Both encoders read the same block sequence produced by
``resume_core.build_document``; neither looks at raw lines, so a line is bold
in the PDF exactly when it is bold in the Word document.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from io import BytesIO
import re

from docx import Document as WordDocument
from docx.shared import Pt
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from resume_core import BlockKind, Document


# === PDF LAYOUT ===
PAGE_SIZE = A4
PDF_MARGIN = 20 * mm
BLANK_ADVANCE = 4 * mm
HEADING_ADVANCE = 8 * mm
BODY_ADVANCE = 5 * mm
HEADING_FONT = "Helvetica-Bold"
HEADING_FONT_SIZE = 13
BODY_FONT = "Helvetica"
BODY_FONT_SIZE = 10

# === WORD LAYOUT ===
WORD_FONT_NAME = "Calibri"
WORD_BODY_SIZE = Pt(11)
WORD_HEADING_SIZE = Pt(12)
WORD_HEADING_SPACE_BEFORE = Pt(10)
WORD_HEADING_SPACE_AFTER = Pt(5)
WORD_BODY_SPACE_BEFORE = Pt(3)
WORD_BODY_SPACE_AFTER = Pt(3)

PDF_FILENAME = "ATS_Audited_Resume.pdf"
DOCX_FILENAME = "ATS_Audited_Resume.docx"

# Control characters and non-characters that XML 1.0 rejects. Tab, LF and CR are allowed.
XML_ILLEGAL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")


@dataclass(frozen=True)
class DrawOp:
    """One string drawn on a page. ``y`` is the baseline distance from the page top."""

    page: int
    x: float
    y: float
    text: str
    font: str
    size: float
    block_index: int

    @property
    def bold(self) -> bool:
        return self.font == HEADING_FONT


@dataclass
class PdfLayout:
    page_size: tuple[float, float] = PAGE_SIZE
    pages: int = 1
    ops: list[DrawOp] = field(default_factory=list)


def wrap_body_text(text: str, width: float) -> list[str]:
    """Wrap *text* in the body font to lines no wider than *width*.

    Lines break at whitespace first. A single token wider than the line (a long
    URL, say) is cut between characters.
    """
    lines: list[str] = []
    for fragment in simpleSplit(text, BODY_FONT, BODY_FONT_SIZE, width):
        if stringWidth(fragment, BODY_FONT, BODY_FONT_SIZE) <= width:
            lines.append(fragment)
            continue

        chunk = ""
        for char in fragment:
            if chunk and stringWidth(chunk + char, BODY_FONT, BODY_FONT_SIZE) > width:
                lines.append(chunk)
                chunk = ""
            chunk += char
        if chunk:
            lines.append(chunk)
    return lines


def layout_pdf(doc: Document, page_size: tuple[float, float] = PAGE_SIZE) -> PdfLayout:
    """Lay out *doc* on fixed-size pages without drawing anything.

    The cursor is checked against the bottom margin before every heading and
    every wrapped body line, so a new page starts before the line that would
    overflow, never after.
    """
    page_width, page_height = page_size
    usable_width = page_width - 2 * PDF_MARGIN
    bottom_limit = page_height - PDF_MARGIN
    layout = PdfLayout(page_size=page_size)
    y = PDF_MARGIN

    def ensure_new_page() -> None:
        nonlocal y
        if y > bottom_limit:
            layout.pages += 1
            y = PDF_MARGIN

    for index, block in enumerate(doc):
        if block.kind is BlockKind.BLANK:
            y += BLANK_ADVANCE
            continue

        if block.kind is BlockKind.HEADING:
            ensure_new_page()
            layout.ops.append(
                DrawOp(layout.pages, PDF_MARGIN, y, block.text, HEADING_FONT, HEADING_FONT_SIZE, index)
            )
            y += HEADING_ADVANCE
            continue

        for wrapped in wrap_body_text(block.text, usable_width):
            ensure_new_page()
            layout.ops.append(
                DrawOp(layout.pages, PDF_MARGIN, y, wrapped, BODY_FONT, BODY_FONT_SIZE, index)
            )
            y += BODY_ADVANCE

    return layout


def encode_to_pdf(doc: Document) -> bytes:
    """Render *doc* as a paginated PDF and return the file bytes."""
    layout = layout_pdf(doc)
    _, page_height = layout.page_size

    buffer = BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=layout.page_size)
    pdf.setTitle("ATS Audited Resume")

    current_page = 1
    for op in layout.ops:
        while current_page < op.page:
            pdf.showPage()
            current_page += 1
        pdf.setFont(op.font, op.size)
        pdf.drawString(op.x, page_height - op.y, op.text)

    pdf.showPage()
    pdf.save()
    return buffer.getvalue()


def encode_to_docx(doc: Document) -> bytes:
    """Render *doc* as a flat sequence of Word paragraphs and return the .docx bytes."""
    word = WordDocument()

    style = word.styles["Normal"]
    style.font.name = WORD_FONT_NAME
    style.font.size = WORD_BODY_SIZE

    for block in doc:
        paragraph = word.add_paragraph()
        if block.kind is BlockKind.BLANK:
            paragraph.add_run(" ")
            continue

        run = paragraph.add_run(XML_ILLEGAL_CHARS.sub("", block.text))
        if block.kind is BlockKind.HEADING:
            run.bold = True
            run.font.size = WORD_HEADING_SIZE
            paragraph.paragraph_format.space_before = WORD_HEADING_SPACE_BEFORE
            paragraph.paragraph_format.space_after = WORD_HEADING_SPACE_AFTER
        else:
            run.bold = False
            run.font.size = WORD_BODY_SIZE
            paragraph.paragraph_format.space_before = WORD_BODY_SPACE_BEFORE
            paragraph.paragraph_format.space_after = WORD_BODY_SPACE_AFTER

    buffer = BytesIO()
    word.save(buffer)
    return buffer.getvalue()
