"""Lifecycle state machine for a bulk-import job.

``PENDING -> RUNNING -> {COMPLETED | FAILED}``. The state is driven only by
poll snapshots; it never performs I/O itself. Once a terminal status has been
observed every later snapshot is ignored, so redundant or late polls cannot
move a finished job backwards.
"""

from __future__ import annotations

from .logging_setup import get_logger
from .models import ImportJob, JobStatus, percent_of

_logger = get_logger("ledger_views.jobs")


class JobProgressState:
    """Holds the latest accepted :class:`ImportJob` snapshot for one job."""

    def __init__(self, job_id: str, *, submitted_count: int = 0) -> None:
        self._current = ImportJob(
            job_id=job_id, submitted_count=submitted_count, status=JobStatus.PENDING
        )

    @property
    def job_id(self) -> str:
        return self._current.job_id

    @property
    def current(self) -> ImportJob:
        return self._current

    @property
    def is_terminal(self) -> bool:
        return self._current.is_terminal

    def apply(self, snapshot: ImportJob) -> ImportJob:
        """Fold a poll snapshot into the state and return the accepted snapshot.

        - Terminal states are sticky: the stored terminal snapshot is returned.
        - A ``PENDING`` report after ``RUNNING`` does not move the job back.
        - ``percent`` and ``processed_count`` never decrease.
        - ``COMPLETED`` always reports 100 percent.
        """

        if snapshot.job_id != self.job_id:
            raise ValueError(
                f"snapshot for job {snapshot.job_id!r} applied to state of {self.job_id!r}"
            )

        prev = self._current
        if prev.is_terminal:
            _logger.debug(
                "job_state:ignored_after_terminal job_id=%s status=%s",
                self.job_id,
                snapshot.status.value,
            )
            return prev

        status = snapshot.status
        if status is JobStatus.PENDING and prev.status is JobStatus.RUNNING:
            status = JobStatus.RUNNING

        submitted = snapshot.submitted_count or prev.submitted_count
        processed = max(prev.processed_count, snapshot.processed_count)
        candidate = snapshot.percent or 0
        if not snapshot.percent_reported and submitted > 0:
            # Counts may span snapshots (total from submit, processed from poll).
            candidate = percent_of(processed, submitted)
        percent = max(prev.percent or 0, candidate)
        if status is JobStatus.COMPLETED:
            percent = 100

        accepted = snapshot.model_copy(
            update={
                "status": status,
                "percent": percent,
                "processed_count": processed,
                "submitted_count": submitted,
            }
        )

        if accepted.status is not prev.status:
            _logger.info(
                "job_state:transition job_id=%s from=%s to=%s percent=%d",
                self.job_id,
                prev.status.value,
                accepted.status.value,
                percent,
            )
        self._current = accepted
        return accepted


__all__ = ["JobProgressState"]
