"""
Word-processor document to PDF conversion.

Tiers, tried in order until one returns:
    render      python-docx -> HTML -> PNG (HTML renderer) -> image page
    text        plain text laid out on A4 pages in a fixed-width font
    diagnostic  single notice page with a preview of the extracted text

The diagnostic tier never raises, so conversion always yields a PDF.
"""
from __future__ import annotations

import io
import logging
import re
import textwrap
from html import escape
from typing import Callable, List, Optional, Tuple

from docx import Document as load_docx
from docx.oxml.ns import qn
from docx.table import Table
from docx.text.paragraph import Paragraph
from reportlab.lib.pagesizes import A4
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from .errors import ConversionError
from .images import image_to_pdf
from .raster import default_converter
from .utils import winansi

logger = logging.getLogger(__name__)

# A4 at 96 dpi, the canvas the HTML renderer lays out on
RENDER_WIDTH = 794
RENDER_HEIGHT = 1123

TEXT_FONT = "Courier"
TEXT_FONT_SIZE = 10
LINE_HEIGHT = 14
MARGIN = 50

PREVIEW_LINES = 15
PREVIEW_CHARS = 80

_HTML_SHELL = """<!DOCTYPE html>
<html><head><meta charset="utf-8"><style>
body {{ margin: 0; background: #ffffff; }}
.page {{ width: {width}px; min-height: {height}px; box-sizing: border-box; padding: 72px;
  font-family: 'Times New Roman', serif; font-size: 12pt; line-height: 1.4; color: #000000; }}
.page table {{ border-collapse: collapse; width: 100%; }}
.page td {{ border: 1px solid #999999; padding: 4px; vertical-align: top; }}
.page p {{ margin: 0 0 8px 0; }}
</style></head><body><div class="page">{body}</div></body></html>
"""


# ---- extraction ---- #

def _open_docx(data: bytes):
    try:
        return load_docx(io.BytesIO(data))
    except Exception as exc:  # python-docx raises zipfile, lxml and KeyError variants
        raise ConversionError(f"Unable to open DOCX: {exc}") from exc


def _iter_blocks(doc):
    for child in doc.element.body.iterchildren():
        if child.tag == qn("w:p"):
            yield Paragraph(child, doc)
        elif child.tag == qn("w:tbl"):
            yield Table(child, doc)


def _paragraph_html(paragraph: Paragraph) -> str:
    parts = []
    for run in paragraph.runs:
        if not run.text:
            continue
        chunk = escape(run.text)
        if run.bold:
            chunk = f"<strong>{chunk}</strong>"
        if run.italic:
            chunk = f"<em>{chunk}</em>"
        if run.underline:
            chunk = f"<u>{chunk}</u>"
        parts.append(chunk)
    inner = "".join(parts) or "&nbsp;"
    style = (paragraph.style.name if paragraph.style is not None else "") or ""
    if style == "Title":
        return f"<h1>{inner}</h1>"
    match = re.match(r"Heading (\d)", style)
    if match:
        level = min(int(match.group(1)), 6)
        return f"<h{level}>{inner}</h{level}>"
    if style.startswith("List"):
        return f"<p>&bull; {inner}</p>"
    return f"<p>{inner}</p>"


def _table_html(table: Table) -> str:
    rows = []
    for row in table.rows:
        cells = "".join(f"<td>{escape(cell.text)}</td>" for cell in row.cells)
        rows.append(f"<tr>{cells}</tr>")
    return "<table>" + "".join(rows) + "</table>"


def docx_to_html(data: bytes) -> str:
    doc = _open_docx(data)
    blocks = []
    for block in _iter_blocks(doc):
        if isinstance(block, Paragraph):
            blocks.append(_paragraph_html(block))
        else:
            blocks.append(_table_html(block))
    return "\n".join(blocks)


def _docx_text(data: bytes) -> str:
    doc = _open_docx(data)
    lines = []
    for block in _iter_blocks(doc):
        if isinstance(block, Paragraph):
            lines.append(block.text)
        else:
            for row in block.rows:
                lines.append("\t".join(cell.text for cell in row.cells))
    return "\n".join(lines)


_UTF16_RUN = re.compile(r"[\t\r\n\x20-\x7e\u00a0-\u024f]{4,}")
_ASCII_RUN = re.compile(r"[\t\r\n\x20-\x7e]{6,}")


def _legacy_doc_text(data: bytes) -> str:
    """Best-effort text from an OLE2 ``.doc``: printable runs in the stream."""
    runs = _UTF16_RUN.findall(data.decode("utf-16-le", "ignore"))
    if sum(len(r) for r in runs) < 20:
        runs = _ASCII_RUN.findall(data.decode("latin-1"))
    text = "\n".join(r.strip() for r in runs if r.strip())
    return text.replace("\r", "\n")


def extract_text(data: bytes, subformat: str = "docx") -> str:
    if subformat == "doc":
        return _legacy_doc_text(data)
    return _docx_text(data)


# ---- tiers ---- #

def _render_tier(data: bytes, subformat: str, raster) -> bytes:
    if subformat != "docx":
        raise ConversionError(f"No HTML extraction for {subformat!r} documents")
    html = _HTML_SHELL.format(width=RENDER_WIDTH, height=RENDER_HEIGHT, body=docx_to_html(data))
    png = (raster or default_converter()).convert(html.encode("utf-8"), "html")
    return image_to_pdf(png, "png")


def _wrap(text: str, width: int) -> List[str]:
    lines: List[str] = []
    for raw in text.splitlines():
        raw = raw.expandtabs(4)
        lines.extend(textwrap.wrap(raw, width=width) or [""])
    return lines


def _text_tier(data: bytes, subformat: str, raster) -> bytes:
    text = extract_text(data, subformat)
    if not text.strip():
        raise ConversionError("Document contains no extractable text")
    page_width, page_height = A4
    chars = int((page_width - 2 * MARGIN) / stringWidth("M", TEXT_FONT, TEXT_FONT_SIZE))
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    c.setFont(TEXT_FONT, TEXT_FONT_SIZE)
    y = page_height - MARGIN
    for line in _wrap(text, chars):
        if y < MARGIN:
            c.showPage()
            c.setFont(TEXT_FONT, TEXT_FONT_SIZE)
            y = page_height - MARGIN
        c.drawString(MARGIN, y, winansi(line))
        y -= LINE_HEIGHT
    c.showPage()
    c.save()
    return buf.getvalue()


def diagnostic_pdf(data: bytes, subformat: str = "docx", reason: Optional[str] = None) -> bytes:
    try:
        text = extract_text(data, subformat)
    except Exception as exc:  # last tier: any extraction failure just empties the preview
        logger.warning("Text extraction for diagnostic page failed: %s", exc)
        text = ""
    preview = [line[:PREVIEW_CHARS] for line in text.splitlines() if line.strip()][:PREVIEW_LINES]

    page_width, page_height = A4
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    c.setFont("Helvetica-Bold", 14)
    c.drawString(MARGIN, page_height - MARGIN - 14, "Document conversion could not be completed")
    c.setFont("Helvetica", 10)
    y = page_height - MARGIN - 40
    c.drawString(MARGIN, y, "The original file is retained. A partial text preview follows.")
    if reason:
        y -= LINE_HEIGHT
        c.drawString(MARGIN, y, winansi(f"Reason: {reason}")[:110])
    y -= 2 * LINE_HEIGHT
    c.setFont(TEXT_FONT, 9)
    for line in preview or ["(no text could be extracted)"]:
        c.drawString(MARGIN, y, winansi(line))
        y -= LINE_HEIGHT
    c.showPage()
    c.save()
    return buf.getvalue()


Tier = Callable[[bytes, str, object], bytes]
TIERS: Tuple[Tuple[str, Tier], ...] = (
    ("render", _render_tier),
    ("text", _text_tier),
)


def document_to_pdf(data: bytes, subformat: str = "docx", raster=None) -> bytes:
    reason = None
    for name, tier in TIERS:
        try:
            pdf = tier(data, subformat, raster)
            logger.info("Converted %s document with the %s tier", subformat, name)
            return pdf
        except Exception as exc:  # each tier may fail in library-specific ways; advance
            logger.warning("Document %s tier failed: %s", name, exc)
            reason = str(exc)
    logger.warning("Falling back to diagnostic page for %s document", subformat)
    return diagnostic_pdf(data, subformat, reason=reason)
