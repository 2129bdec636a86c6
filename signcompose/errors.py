"""Exception taxonomy for a composition run.

Only :class:`NoSignedData` and :class:`NoPagesProduced` escape
:func:`signcompose.compose_signed_document`. File-level and field-level
errors are caught where they happen, logged, and turned into a skip.
"""

from __future__ import annotations


class CompositionError(Exception):
    """Base class for every error raised by :mod:`signcompose`."""


# run level
class NoSignedData(CompositionError):
    """None of the supplied signers has signed."""


class NoPagesProduced(CompositionError):
    """Every source file failed to produce a page."""


# file level
class UnsupportedFormat(CompositionError):
    """The bytes could not be classified into a format we can normalize."""


class StorageFetchFailed(CompositionError):
    """The storage collaborator could not return the bytes for a file."""


class ConversionError(CompositionError):
    """A normalization step (image or document to PDF) failed."""


class RasterConversionUnavailable(ConversionError):
    """The raster capability needed for a conversion is not installed."""


# field level
class NoValidCoordinates(CompositionError):
    """A field carries neither a percentage nor a pixel position."""


class SignatureDecodeError(CompositionError):
    """A data-URI signature could not be decoded into an image."""
