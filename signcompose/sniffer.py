"""Byte-signature classification of uploaded source files."""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass
from typing import Callable, Optional

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
OLE2_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"
ZIP_SIGNATURE = b"PK\x03\x04"
DOCX_PROBE_BYTES = 1000


class FileKind(str, enum.Enum):
    PDF = "pdf"
    IMAGE = "image"
    WORD = "word"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Classification:
    kind: FileKind
    subformat: Optional[str] = None

    @property
    def is_known(self) -> bool:
        return self.kind is not FileKind.UNKNOWN


UNKNOWN = Classification(FileKind.UNKNOWN)


def _is_docx(data: bytes) -> bool:
    if not data.startswith(ZIP_SIGNATURE):
        return False
    head = data[:DOCX_PROBE_BYTES]
    return b"word/" in head or b"[Content_Types].xml" in head


# evaluated top to bottom, first match wins
SIGNATURES: list[tuple[Callable[[bytes], bool], Classification]] = [
    (lambda b: b[:4] == b"%PDF", Classification(FileKind.PDF)),
    (lambda b: b[:2] == b"\xff\xd8", Classification(FileKind.IMAGE, "jpeg")),
    (lambda b: b[:8] == PNG_SIGNATURE, Classification(FileKind.IMAGE, "png")),
    (lambda b: b[:6] in (b"GIF87a", b"GIF89a"), Classification(FileKind.IMAGE, "gif")),
    (lambda b: b[:4] == b"RIFF" and b[8:12] == b"WEBP", Classification(FileKind.IMAGE, "webp")),
    (lambda b: b[:2] == b"BM", Classification(FileKind.IMAGE, "bmp")),
    (lambda b: b[:4] in (b"II*\x00", b"MM\x00*"), Classification(FileKind.IMAGE, "tiff")),
    (lambda b: b[:8] == OLE2_SIGNATURE, Classification(FileKind.WORD, "doc")),
    (_is_docx, Classification(FileKind.WORD, "docx")),
]

IMAGE_EXTENSIONS = {
    ".jpg": "jpeg",
    ".jpeg": "jpeg",
    ".png": "png",
    ".gif": "gif",
    ".webp": "webp",
    ".bmp": "bmp",
    ".tif": "tiff",
    ".tiff": "tiff",
}

IMAGE_MIME_TYPES = {
    "image/jpeg": "jpeg",
    "image/jpg": "jpeg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/bmp": "bmp",
    "image/tiff": "tiff",
}


def classify(data: bytes, filename: Optional[str] = None, mime_type: Optional[str] = None) -> Classification:
    """Classify *data* by magic bytes, then by *filename* extension.

    The extension and declared MIME type are only consulted for images and
    only when no signature matched.
    """
    data = bytes(data or b"")
    for matches, classification in SIGNATURES:
        if matches(data):
            return classification

    if filename:
        ext = os.path.splitext(filename)[1].lower()
        if ext in IMAGE_EXTENSIONS:
            return Classification(FileKind.IMAGE, IMAGE_EXTENSIONS[ext])
    if mime_type:
        subformat = IMAGE_MIME_TYPES.get(mime_type.split(";", 1)[0].strip().lower())
        if subformat:
            return Classification(FileKind.IMAGE, subformat)
    return UNKNOWN
