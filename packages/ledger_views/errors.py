"""Exception taxonomy for ``ledger_views``.

Aggregation and trend errors are absorbed by the pure transforms (a malformed
record is skipped, never fatal). Import-job errors propagate to the caller so
the user learns that a bulk action did not complete.

An empty or all-zero aggregation is a valid result, not an error, so there is
no exception type for it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ImportJob


class LedgerViewsError(Exception):
    """Base class for all package-specific errors."""


class MalformedRecordError(LedgerViewsError, ValueError):
    """A transaction record lacks a usable date or amount.

    Raised by :func:`ledger_views.aggregation.parse_record`; the aggregator
    catches it per record and keeps going.
    """

    def __init__(self, message: str, *, record_id: object = None) -> None:
        super().__init__(message)
        self.record_id = record_id


class TransportError(LedgerViewsError):
    """An HTTP exchange failed (connection error, timeout or non-2xx status)."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class TransactionFetchError(LedgerViewsError):
    """Reading transactions for a date range failed."""


class JobSubmitError(LedgerViewsError):
    """Submitting a bulk import failed; no job exists and nothing is retained."""


class JobPollError(LedgerViewsError):
    """A single poll failed. Transient: retry later with the same ``job_id``."""

    def __init__(self, message: str, *, job_id: str) -> None:
        super().__init__(message)
        self.job_id = job_id


class JobFailedStatus(LedgerViewsError):
    """The server reported a terminal ``FAILED`` status for an import job."""

    def __init__(self, job: ImportJob) -> None:
        self.job = job
        self.message = job.message or "Import failed"
        super().__init__(self.message)


__all__ = [
    "JobFailedStatus",
    "JobPollError",
    "JobSubmitError",
    "LedgerViewsError",
    "MalformedRecordError",
    "TransactionFetchError",
    "TransportError",
]
