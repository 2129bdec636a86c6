"""Completion orchestration: fetch, classify, merge, stamp, finalize."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, Tuple

from pypdf import PdfWriter

from . import storage
from .config import FETCH_WORKERS, PRODUCT_NAME
from .errors import NoSignedData, StorageFetchFailed
from .merger import SourceBytes, merge
from .schemas import ComposedDocument, Document, Field, Signer, SourceFile
from .sniffer import classify
from .stamping import apply_signer_fields
from .utils import pdf_date

logger = logging.getLogger(__name__)

Fetch = Callable[[str], bytes]


def collect_fields(files: Sequence[SourceFile]) -> List[Tuple[int, Field]]:
    """Every field of every file, tagged with the file's position."""
    return [(index, field) for index, source in enumerate(files) for field in source.fields]


def _fetch_one(fetch: Fetch, index: int, source: SourceFile) -> Optional[SourceBytes]:
    label = source.original_name or source.storage_ref or f"file {index}"
    try:
        data = fetch(source.storage_ref)
    except StorageFetchFailed as exc:
        logger.warning("Skipping %s: %s", label, exc)
        return None
    classification = classify(data, source.original_name or source.storage_ref, source.declared_mime_type)
    if not classification.is_known:
        logger.warning("Skipping %s: unrecognized file signature", label)
        return None
    logger.debug("Classified %s as %s/%s", label, classification.kind.value, classification.subformat)
    return SourceBytes(index=index, data=data, classification=classification, name=label)


def fetch_sources(files: Sequence[SourceFile], fetch: Fetch, workers: int = FETCH_WORKERS) -> List[Optional[SourceBytes]]:
    """Fetch and classify *files*; the result keeps the input order."""
    if workers <= 1 or len(files) <= 1:
        return [_fetch_one(fetch, i, f) for i, f in enumerate(files)]
    with ThreadPoolExecutor(max_workers=min(workers, len(files))) as pool:
        return list(pool.map(lambda item: _fetch_one(fetch, *item), enumerate(files)))


def stamp_metadata(writer: PdfWriter, title: str, now: Optional[datetime] = None) -> None:
    stamp = pdf_date(now or datetime.now(timezone.utc))
    writer.add_metadata(
        {
            "/Title": title,
            "/Subject": "Digitally Signed Document",
            "/Creator": PRODUCT_NAME,
            "/Producer": f"{PRODUCT_NAME} PDF Service",
            "/CreationDate": stamp,
            "/ModDate": stamp,
        }
    )


def compose_signed_document(
    document: Document,
    signers: Sequence[Signer],
    fetch: Optional[Fetch] = None,
    raster=None,
) -> ComposedDocument:
    """Build the final signed PDF for *document*.

    Raises:
        NoSignedData: If no signer in *signers* has signed.
        NoPagesProduced: If none of the document's files yielded a page.
    """
    signed = [s for s in signers if s.signed]
    if not signed:
        raise NoSignedData("No signed data available for PDF generation")
    fetch = fetch or storage.fetch_bytes

    files = document.source_files()
    logger.info(
        "Composing %s: %d file(s), %d of %d signer(s) signed",
        document.display_title or document.id,
        len(files),
        len(signed),
        len(signers),
    )
    merged = merge(fetch_sources(files, fetch), raster=raster)

    fields = collect_fields(files)
    for signer in signed:
        drawn = apply_signer_fields(merged.writer, merged.page_map, fields, signer.field_values)
        logger.info("Drew %d field value(s) for signer %s", drawn, signer.email)

    stamp_metadata(merged.writer, document.display_title or "Signed Document")
    content = merged.pdf_bytes()
    filename = f"{document.display_title or 'completed-document'}-signed.pdf"
    return ComposedDocument(content=content, filename=filename)
