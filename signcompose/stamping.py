from __future__ import annotations

import io
import logging
from typing import Any, Dict, Iterable, List, Mapping, Tuple

from PIL import Image
from pypdf import PdfReader, PdfWriter, Transformation
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from .coordinates import Box, resolve
from .errors import NoValidCoordinates, SignatureDecodeError
from .merger import PageMap
from .schemas import TEXT_TYPES, Field
from .utils import is_image_data_uri, split_data_uri, winansi

logger = logging.getLogger(__name__)

FONT = "Helvetica"
SIGNATURE_MIME_TYPES = ("image/png", "image/jpeg", "image/jpg")
FALLBACK_TEXT = {"signature": "Signed", "initial": "Initialed"}

DrawOps = Dict[int, List[Dict[str, Any]]]


def _is_empty(value) -> bool:
    return value is None or value is False or (isinstance(value, str) and value == "")


def is_checked(value) -> bool:
    return value is True or value == "true"


def _as_text(value) -> str:
    if value is True:
        return "true"
    return " ".join(str(value).splitlines())


def fit_text(text: str, size: float, max_width: float, font: str = FONT) -> str:
    """Truncate *text* so it renders no wider than *max_width* points."""
    if stringWidth(text, font, size) <= max_width:
        return text
    lo, hi = 0, len(text)
    while lo < hi:
        mid = (lo + hi + 1) // 2
        if stringWidth(text[:mid], font, size) <= max_width:
            lo = mid
        else:
            hi = mid - 1
    return text[:lo]


def text_op(value, box: Box) -> Dict[str, Any] | None:
    size = max(8.0, min(box.height * 0.6, 14.0))
    text = fit_text(winansi(_as_text(value)), size, box.width - 4)
    if not text:
        return None
    return {"type": "text", "x": box.x + 2, "y": box.y + box.height / 2 - size / 2, "text": text, "size": size}


def checkbox_op(box: Box) -> Dict[str, Any]:
    size = min(box.width, box.height) * 0.8
    return {
        "type": "text",
        "x": box.x + (box.width - size) / 2,
        "y": box.y + (box.height - size) / 2,
        "text": "X",
        "size": size,
    }


def decode_signature(value: str) -> Image.Image:
    mime, payload = split_data_uri(value)
    if mime not in SIGNATURE_MIME_TYPES:
        raise SignatureDecodeError(f"unsupported signature image type {mime}")
    try:
        img = Image.open(io.BytesIO(payload))
        img.load()
    except Exception as exc:  # Pillow raises assorted errors on corrupt image data
        raise SignatureDecodeError(f"corrupt {mime} signature: {exc}") from exc
    if img.format not in ("PNG", "JPEG"):
        raise SignatureDecodeError(f"signature decoded as {img.format}, expected PNG or JPEG")
    if img.mode not in ("RGB", "RGBA", "L"):
        img = img.convert("RGBA")
    return img


def signature_op(field: Field, value, box: Box) -> Dict[str, Any] | None:
    if not is_image_data_uri(value):
        return text_op(value, box)
    try:
        image = decode_signature(value)
    except SignatureDecodeError as exc:
        fallback = FALLBACK_TEXT[field.type]
        logger.warning("Field %s: %s; drawing %r instead", field.id, exc, fallback)
        return {
            "type": "text",
            "x": box.x + 2,
            "y": box.y + box.height / 2,
            "text": fallback,
            "size": min(box.height * 0.6, 12.0),
        }
    return {"type": "image", "x": box.x, "y": box.y, "w": box.width, "h": box.height, "image": image}


def _page_size(writer: PdfWriter, page_index: int) -> Tuple[float, float]:
    box = writer.pages[page_index].mediabox
    return float(box.width), float(box.height)


def plan_draw_ops(
    writer: PdfWriter,
    page_map: PageMap,
    fields: Iterable[Tuple[int, Field]],
    values: Mapping[str, Any],
) -> DrawOps:
    """Work out what to draw for one signer, keyed by merged page index.

    Fields that cannot be placed are logged and left out.
    """
    draw_map: DrawOps = {}
    for file_index, field in fields:
        value = values.get(field.id)
        if _is_empty(value):
            continue
        pidx = page_map.lookup(file_index, field.page_number)
        if pidx is None:
            logger.warning("No merged page for field %s (file %s, page %s)", field.id, file_index, field.page_number)
            continue
        width, height = _page_size(writer, pidx)
        try:
            box = resolve(field, width, height)
        except NoValidCoordinates as exc:
            logger.warning("%s", exc)
            continue
        logger.debug("Field %s (%s) on page %d at %s", field.id, field.type, pidx, box)

        if field.type in TEXT_TYPES:
            op = text_op(value, box)
        elif field.type == "checkbox":
            op = checkbox_op(box) if is_checked(value) else None
        elif field.type in FALLBACK_TEXT:
            op = signature_op(field, value, box)
        else:
            logger.warning("Unknown field type %r for field %s", field.type, field.id)
            continue
        if op is not None:
            draw_map.setdefault(pidx, []).append(op)
    return draw_map


def _overlay_page(width, height, draw_ops):
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=(width, height))
    c.setFillColorRGB(0, 0, 0)
    for op in draw_ops:
        t = op.get("type")
        if t == "text":
            if op["size"] <= 0:
                continue
            c.setFont(FONT, op["size"])
            c.drawString(op["x"], op["y"], op["text"])
        elif t == "image":
            c.drawImage(ImageReader(op["image"]), op["x"], op["y"], width=op["w"], height=op["h"], mask="auto")
    c.showPage()
    c.save()
    return buf.getvalue()


def stamp_pages(writer: PdfWriter, draw_map: DrawOps) -> None:
    for pidx, ops in sorted(draw_map.items()):
        page = writer.pages[pidx]
        width, height = _page_size(writer, pidx)
        overlay_reader = PdfReader(io.BytesIO(_overlay_page(width, height, ops)))
        # overlay origin sits on the MediaBox lower-left corner
        offset = Transformation().translate(float(page.mediabox.left), float(page.mediabox.bottom))
        page.merge_transformed_page(overlay_reader.pages[0], offset)


def apply_signer_fields(
    writer: PdfWriter,
    page_map: PageMap,
    fields: Iterable[Tuple[int, Field]],
    values: Mapping[str, Any],
) -> int:
    """Draw one signer's values onto the merged PDF in place; returns the draw count."""
    draw_map = plan_draw_ops(writer, page_map, fields, values)
    stamp_pages(writer, draw_map)
    return sum(len(ops) for ops in draw_map.values())
