"""Exception taxonomy for the ingestion pipeline.

Run-level errors (:class:`ResolutionError`, :class:`TreeListingError`,
:class:`PersistenceError`) abort a run.  Every other subclass describes why
a single file was skipped and never leaves the per-file boundary.
"""

from __future__ import annotations


class IngestError(Exception):
    """Base class for all ingestion failures."""

    #: Short machine-friendly label used in run summaries.
    reason = "error"


# -- run-level ---------------------------------------------------------------


class ResolutionError(IngestError):
    """The numeric project id could not be determined."""

    reason = "resolution_failed"


class TreeListingError(IngestError):
    """A repository tree page could not be retrieved."""

    reason = "tree_listing_failed"


class PersistenceError(IngestError):
    """A chunk artifact or run manifest could not be written."""

    reason = "persistence_failed"


# -- per-file ----------------------------------------------------------------


class FetchError(IngestError):
    reason = "fetch_failed"


class NotFoundError(FetchError):
    """No retrieval route is left for a path (no blob id known)."""

    reason = "not_found"


class SizeLimitExceeded(IngestError):
    reason = "too_big"


class UnsupportedFormat(IngestError):
    reason = "unsupported_format"


class EmptyContent(IngestError):
    reason = "empty"


class DecodeError(IngestError):
    """Bytes could not be turned into text (e.g. a corrupt PDF)."""

    reason = "decode_failed"


class Cancelled(IngestError):
    """File was never started because a stop was requested."""

    reason = "cancelled"
