"""Raster conversion capability.

``RasterConverter.convert(data, from_format)`` always returns PNG bytes.
Image formats are transcoded with Pillow. ``"html"`` is rendered by an
external ``wkhtmltoimage`` binary when one is configured; without it the
call raises :class:`RasterConversionUnavailable` so callers can fall back.
"""

from __future__ import annotations

import io
import logging
import subprocess
from typing import Optional

from PIL import Image, UnidentifiedImageError

from .config import HTML_RENDERER, RENDER_TIMEOUT_SECONDS
from .errors import ConversionError, RasterConversionUnavailable

logger = logging.getLogger(__name__)

TRANSCODABLE = ("gif", "webp", "bmp", "tiff", "png", "jpeg")


def _to_png(data: bytes) -> bytes:
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.seek(0)  # first frame of animated GIF/WebP or multi-page TIFF
            frame = img.convert("RGBA" if "A" in img.getbands() or img.mode == "P" else "RGB")
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise ConversionError(f"Unable to decode image: {exc}") from exc
    out = io.BytesIO()
    frame.save(out, format="PNG")
    return out.getvalue()


class RasterConverter:
    def __init__(self, html_renderer: Optional[str] = None, timeout: Optional[float] = None) -> None:
        self.html_renderer = HTML_RENDERER if html_renderer is None else html_renderer
        self.timeout = RENDER_TIMEOUT_SECONDS if timeout is None else timeout

    def convert(self, data: bytes, from_format: str) -> bytes:
        fmt = (from_format or "").lower()
        if fmt == "html":
            return self._render_html(data)
        if fmt in TRANSCODABLE:
            return _to_png(data)
        raise ConversionError(f"Cannot rasterize format {from_format!r}")

    def _render_html(self, html: bytes, width: int = 794) -> bytes:
        if not self.html_renderer:
            raise RasterConversionUnavailable("No HTML renderer configured")
        cmd = [
            self.html_renderer,
            "--quiet",
            "--format", "png",
            "--width", str(width),
            "--encoding", "utf-8",
            "-", "-",
        ]
        try:
            proc = subprocess.run(
                cmd,
                input=html,
                capture_output=True,
                timeout=self.timeout,
                check=True,
            )
        except FileNotFoundError as exc:
            raise RasterConversionUnavailable(f"HTML renderer not found: {self.html_renderer}") from exc
        except subprocess.TimeoutExpired as exc:
            raise ConversionError(f"HTML rendering exceeded {self.timeout}s") from exc
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or b"").decode("utf-8", "replace").strip()
            raise ConversionError(f"HTML renderer failed: {stderr[:200]}") from exc
        if not proc.stdout:
            raise ConversionError("HTML renderer produced no output")
        logger.debug("Rendered %d bytes of HTML to %d bytes of PNG", len(html), len(proc.stdout))
        return proc.stdout


_default: Optional[RasterConverter] = None


def default_converter() -> RasterConverter:
    global _default
    if _default is None:
        _default = RasterConverter()
    return _default
