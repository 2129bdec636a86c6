"""Normalize source files to PDF and concatenate their pages."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from pypdf import PdfReader, PdfWriter

from .documents import document_to_pdf
from .errors import NoPagesProduced, UnsupportedFormat
from .images import image_to_pdf
from .sniffer import Classification, FileKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceBytes:
    """One fetched source file, ready to be normalized."""

    index: int
    data: bytes
    classification: Classification
    name: Optional[str] = None


@dataclass(frozen=True)
class PageSpan:
    file_index: int
    start: int
    page_count: int


@dataclass
class PageMap:
    """``(file_index, page_number)`` to zero-based page index in the merged PDF."""

    spans: List[PageSpan] = field(default_factory=list)
    _index: Dict[Tuple[int, int], int] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        spans, self.spans = list(self.spans), []
        for span in spans:
            self.add(span)

    @classmethod
    def from_spans(cls, spans: Iterable[PageSpan]) -> "PageMap":
        return cls(list(spans))

    def add(self, span: PageSpan) -> None:
        self.spans.append(span)
        for page_number in range(1, span.page_count + 1):
            self._index[(span.file_index, page_number)] = span.start + page_number - 1

    def lookup(self, file_index: int, page_number: int) -> Optional[int]:
        return self._index.get((file_index, page_number))

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, key) -> bool:
        return key in self._index


@dataclass
class MergeResult:
    writer: PdfWriter
    page_map: PageMap

    @property
    def page_count(self) -> int:
        return len(self.writer.pages)

    def pdf_bytes(self) -> bytes:
        out = io.BytesIO()
        self.writer.write(out)
        return out.getvalue()


def normalize(source: SourceBytes, raster=None) -> bytes:
    kind = source.classification.kind
    if kind is FileKind.PDF:
        return source.data
    if kind is FileKind.IMAGE:
        return image_to_pdf(source.data, source.classification.subformat, raster=raster)
    if kind is FileKind.WORD:
        return document_to_pdf(source.data, source.classification.subformat or "docx", raster=raster)
    raise UnsupportedFormat(f"Unrecognized file format for {source.name or f'file {source.index}'}")


def _load_reader(pdf_bytes: bytes, label: str) -> PdfReader:
    reader = PdfReader(io.BytesIO(pdf_bytes))
    if reader.is_encrypted:
        logger.debug("Attempting to decrypt encrypted PDF %s", label)
        reader.decrypt("")
    return reader


def _stage_pages(reader: PdfReader) -> list:
    """Copy every page of *reader* through a scratch writer.

    Damaged objects only surface when a page is copied or written, so the
    round trip makes a file fail as a whole before it touches the output.
    """
    staging = PdfWriter()
    for page in reader.pages:
        staging.add_page(page)
    buf = io.BytesIO()
    staging.write(buf)
    buf.seek(0)
    return list(PdfReader(buf).pages)


def merge(files: Iterable[Optional[SourceBytes]], raster=None) -> MergeResult:
    """Append the pages of every normalizable file, in input order.

    Files that cannot be normalized or read are logged and skipped; their
    fields will not resolve to a page later.

    Raises:
        NoPagesProduced: If no file contributed a single page.
    """
    writer = PdfWriter()
    page_map = PageMap()

    for source in files:
        if source is None:
            continue
        label = source.name or f"file {source.index}"
        try:
            pdf_bytes = normalize(source, raster=raster)
            reader = _load_reader(pdf_bytes, label)
            pages = _stage_pages(reader)
        except Exception as exc:  # pypdf raises a wide range of errors on damaged files
            logger.warning("Skipping %s: %s", label, exc)
            continue

        start = len(writer.pages)
        for page in pages:
            writer.add_page(page)
        page_map.add(PageSpan(source.index, start, len(pages)))
        logger.debug("Added %d page(s) from %s at index %d", len(pages), label, start)

    if len(writer.pages) == 0:
        raise NoPagesProduced("No input file produced any pages")

    logger.info("Merged %d file(s) into %d page(s)", len(page_map.spans), len(writer.pages))
    return MergeResult(writer=writer, page_map=page_map)
