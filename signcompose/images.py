import io
import logging

from PIL import Image, UnidentifiedImageError
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from .errors import ConversionError, UnsupportedFormat
from .raster import default_converter

logger = logging.getLogger(__name__)

# A4 in points
MAX_PAGE_WIDTH = 595
MAX_PAGE_HEIGHT = 842

NATIVE_FORMATS = ("jpeg", "png")
TRANSCODED_FORMATS = ("gif", "webp", "bmp", "tiff")


def fit_page_size(width: float, height: float, max_width: float = MAX_PAGE_WIDTH, max_height: float = MAX_PAGE_HEIGHT):
    """Return the page size for an image of *width* x *height* pixels.

    Pixels map 1:1 to points; oversized images are scaled down uniformly so
    neither side exceeds the bound. Small images are never scaled up.
    """
    if width > max_width or height > max_height:
        scale = min(max_width / width, max_height / height)
        return width * scale, height * scale
    return float(width), float(height)


def image_to_pdf(data: bytes, subformat: str, raster=None) -> bytes:
    fmt = (subformat or "").lower()
    if fmt == "jpg":
        fmt = "jpeg"
    if fmt in TRANSCODED_FORMATS:
        raster = raster or default_converter()
        logger.debug("Transcoding %s image to PNG before embedding", fmt)
        data = raster.convert(data, fmt)
        fmt = "png"
    elif fmt not in NATIVE_FORMATS:
        raise UnsupportedFormat(f"Unsupported image format: {subformat!r}")

    try:
        with Image.open(io.BytesIO(data)) as probe:
            probe.load()
            width, height = probe.size
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise ConversionError(f"Failed to read {fmt} image: {exc}") from exc
    if not width or not height:
        raise ConversionError("Image has no pixels")

    page_width, page_height = fit_page_size(width, height)
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=(page_width, page_height))
    c.drawImage(ImageReader(io.BytesIO(data)), 0, 0, width=page_width, height=page_height, mask="auto")
    c.showPage()
    c.save()
    logger.info("Converted %dx%d %s image to a %.0fx%.0f pt page", width, height, fmt, page_width, page_height)
    return buf.getvalue()
