"""Compose signed documents: merge mixed-format source files into one PDF
and draw every signer's field values onto its pages."""

from __future__ import annotations

from .composer import compose_signed_document
from .errors import (
    CompositionError,
    ConversionError,
    NoPagesProduced,
    NoSignedData,
    NoValidCoordinates,
    RasterConversionUnavailable,
    SignatureDecodeError,
    StorageFetchFailed,
    UnsupportedFormat,
)
from .schemas import ComposedDocument, Document, Field, PercentPosition, PixelPosition, Signer, SourceFile

__all__ = [
    "compose_signed_document",
    "ComposedDocument",
    "Document",
    "Field",
    "PercentPosition",
    "PixelPosition",
    "Signer",
    "SourceFile",
    "CompositionError",
    "ConversionError",
    "NoPagesProduced",
    "NoSignedData",
    "NoValidCoordinates",
    "RasterConversionUnavailable",
    "SignatureDecodeError",
    "StorageFetchFailed",
    "UnsupportedFormat",
]
