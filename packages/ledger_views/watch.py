"""Caller-driven polling loop for bulk-import jobs.

The protocol itself has no timer: :class:`~ledger_views.client.BulkImportJobClient`
only exposes ``submit`` and ``poll``. This module packages the usual caller
pattern: poll on a fixed interval right after submit, retry transient poll
failures on a slower interval with the same job id, stop on the first terminal
status, and stop early when the owning view goes away.
"""

from __future__ import annotations

import os
import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from .client import BulkImportJobClient
from .errors import JobFailedStatus, JobPollError
from .jobs import JobProgressState
from .logging_setup import get_logger
from .models import ImportJob, JobStatus

_POLL_INTERVAL_SEC: float = 0.75
_ERROR_INTERVAL_SEC: float = 1.5

_logger = get_logger("ledger_views.watch")


def resolve_poll_interval(default: float = _POLL_INTERVAL_SEC) -> float:
    """Return the poll interval, honoring ``LEDGER_VIEWS_POLL_INTERVAL`` when valid."""

    env_val = os.getenv("LEDGER_VIEWS_POLL_INTERVAL")
    if not env_val:
        return default
    try:
        value = float(env_val)
    except ValueError:
        _logger.warning("watch:bad_poll_interval value=%r using=%.2f", env_val, default)
        return default
    return value if value > 0 else default


def watch_job(
    client: BulkImportJobClient,
    job_id: str,
    *,
    submitted_count: int = 0,
    interval: float | None = None,
    error_interval: float = _ERROR_INTERVAL_SEC,
    max_consecutive_errors: int | None = None,
    on_update: Callable[[ImportJob], None] | None = None,
    cancelled: Callable[[], bool] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> ImportJob:
    """Poll ``job_id`` until it reaches a terminal status.

    Returns the ``COMPLETED`` snapshot. Raises :class:`JobFailedStatus` when the
    server reports ``FAILED``. A :class:`JobPollError` is retried after
    ``error_interval``; when ``max_consecutive_errors`` is set, that many
    failures in a row re-raise the last one. When ``cancelled()`` turns true the
    loop stops and the latest (non-terminal) snapshot is returned.
    """

    interval = resolve_poll_interval() if interval is None else interval
    state = JobProgressState(job_id, submitted_count=submitted_count)
    failures = 0

    while not state.is_terminal:
        if cancelled is not None and cancelled():
            _logger.info("watch:cancelled job_id=%s percent=%d", job_id, state.current.percent)
            return state.current
        try:
            snapshot = client.poll(job_id)
        except JobPollError:
            failures += 1
            if max_consecutive_errors is not None and failures >= max_consecutive_errors:
                _logger.error("watch:giving_up job_id=%s failures=%d", job_id, failures)
                raise
            _logger.warning("watch:poll_retry job_id=%s failures=%d", job_id, failures)
            sleep(error_interval)
            continue

        failures = 0
        job = state.apply(snapshot)
        if on_update is not None:
            on_update(job)
        if not job.is_terminal:
            sleep(interval)

    final = state.current
    if final.status is JobStatus.FAILED:
        _logger.error("watch:job_failed job_id=%s message=%r", job_id, final.message)
        raise JobFailedStatus(final)
    _logger.info(
        "watch:job_completed job_id=%s processed=%d total=%d",
        job_id,
        final.processed_count,
        final.submitted_count,
    )
    return final


def run_import(
    client: BulkImportJobClient,
    records: Sequence[Mapping[str, Any]],
    *,
    target_id: str | None = None,
    **watch_kwargs: Any,
) -> ImportJob:
    """Submit ``records`` as one job and watch it to completion.

    Submit failures propagate as :class:`~ledger_views.errors.JobSubmitError`
    before any polling starts.
    """

    job_id = client.submit(records, target_id=target_id)
    return watch_job(client, job_id, submitted_count=len(records), **watch_kwargs)


__all__ = ["resolve_poll_interval", "run_import", "watch_job"]
