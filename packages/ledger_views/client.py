"""Thin HTTP client for the bulk-import job protocol and the transaction read.

Endpoints (relative to the API base URL):

- ``POST /api/expenses/add-multiple/tracked?targetId=<id>``: submit a whole
  batch, returns ``{"jobId": ...}``.
- ``GET /api/expenses/add-multiple/progress/<jobId>``: idempotent progress
  read, returns ``{jobId, total, processed, percent, status, message}``.
- ``GET /api/expenses/fetch-expenses-by-date?from&to&sortOrder&targetId``:
  transactions for a date range.

The base URL comes from the ``base_url`` argument or the
``LEDGER_VIEWS_API_URL`` environment variable; an optional bearer token from
``LEDGER_VIEWS_API_TOKEN``. Requests use ``urllib`` through a small transport
callable that tests replace with a stub.
"""

from __future__ import annotations

import json
import math
import os
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Callable, Mapping, Sequence
from datetime import date
from decimal import Decimal
from typing import Any, TypeAlias

from pydantic import ValidationError

from .errors import (
    JobPollError,
    JobSubmitError,
    TransactionFetchError,
    TransportError,
)
from .logging_setup import get_logger
from .models import ImportJob, JobSubmitResponse

_logger = get_logger("ledger_views.client")

BULK_CREATE_PATH = "/api/expenses/add-multiple/tracked"
PROGRESS_PATH = "/api/expenses/add-multiple/progress/{job_id}"
FETCH_BY_DATE_PATH = "/api/expenses/fetch-expenses-by-date"

_DEFAULT_TIMEOUT_SEC: float = 30.0

Transport: TypeAlias = Callable[[str, str, bytes | None, Mapping[str, str]], bytes]
"""``(method, url, body, headers) -> response body``; raises ``TransportError``."""


def urllib_transport(
    method: str,
    url: str,
    body: bytes | None,
    headers: Mapping[str, str],
    *,
    timeout: float = _DEFAULT_TIMEOUT_SEC,
) -> bytes:
    """Execute one request with ``urllib`` and return the raw response body."""

    req = urllib.request.Request(url, data=body, method=method)
    for name, value in headers.items():
        req.add_header(name, value)
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            return resp.read()
    except urllib.error.HTTPError as e:
        # Surface the server's error body when there is one.
        try:
            err_body = e.read().decode("utf-8", errors="replace")
        except OSError:
            err_body = ""
        raise TransportError(f"HTTP {e.code} {e.reason}: {err_body}", status=e.code) from e
    except (urllib.error.URLError, OSError) as e:
        raise TransportError(f"request to {url} failed: {e}") from e


def _json_default(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _unwrap_data(payload: Any) -> Any:
    # Some deployments wrap bodies under ``data``.
    if isinstance(payload, Mapping) and "data" in payload and payload["data"] is not None:
        return payload["data"]
    return payload


def _first_present(body: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        val = body.get(name)
        if val is not None:
            return val
    return None


def _coerce_percent(value: Any) -> int | float | None:
    # Non-numeric percents are dropped so the percent is derived from counts.
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip().rstrip("%"))
        except ValueError:
            return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return value
    return None


def normalize_progress_payload(payload: Any, *, job_id: str) -> ImportJob:
    """Convert a progress response body into an :class:`ImportJob`.

    Accepts the synonyms seen in the wild: ``percent``/``percentage``,
    ``processed``/``completed``, ``total``/``count`` and ``status``/``state``.
    Raises ``ValueError`` (including pydantic's ``ValidationError``) when the
    body is not an object or fails validation.
    """

    body = _unwrap_data(payload)
    if not isinstance(body, Mapping):
        raise ValueError("progress response must be a JSON object")

    percent = _coerce_percent(_first_present(body, "percent", "percentage"))

    return ImportJob(
        job_id=str(_first_present(body, "jobId", "job_id") or job_id),
        submitted_count=_first_present(body, "total", "count") or 0,
        processed_count=_first_present(body, "processed", "completed") or 0,
        percent=percent,
        status=_first_present(body, "status", "state") or "RUNNING",
        message=body.get("message"),
    )


class BulkImportJobClient:
    """Submit bulk imports, poll their progress and read transactions.

    Parameters
    ----------
    base_url:
        API root such as ``"https://api.example.com"``. Falls back to
        ``LEDGER_VIEWS_API_URL``.
    token:
        Optional bearer token. Falls back to ``LEDGER_VIEWS_API_TOKEN``.
    transport:
        Request executor; defaults to :func:`urllib_transport`.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        token: str | None = None,
        transport: Transport | None = None,
    ) -> None:
        url = base_url or os.getenv("LEDGER_VIEWS_API_URL")
        if not url or not url.strip():
            raise RuntimeError(
                "LEDGER_VIEWS_API_URL environment variable (or base_url) is required"
            )
        self.base_url = url.strip().rstrip("/")
        self._token = token if token is not None else os.getenv("LEDGER_VIEWS_API_TOKEN")
        self._transport: Transport = transport or urllib_transport

    # ---- internals -----------------------------------------------------------

    def _headers(self, *, has_body: bool) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if has_body:
            headers["Content-Type"] = "application/json"
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _url(self, path: str, params: Mapping[str, str] | None = None) -> str:
        url = f"{self.base_url}{path}"
        if params:
            url = f"{url}?{urllib.parse.urlencode(params)}"
        return url

    def _request_json(self, method: str, url: str, payload: Any = None) -> Any:
        body = None
        if payload is not None:
            body = json.dumps(payload, default=_json_default).encode("utf-8")
        raw = self._transport(method, url, body, self._headers(has_body=body is not None))
        if not raw:
            return None
        return json.loads(raw.decode("utf-8"))

    # ---- bulk import ---------------------------------------------------------

    def submit(self, records: Sequence[Mapping[str, Any]], target_id: str | None = None) -> str:
        """Post the whole batch in one request and return the opaque job id.

        Any failure raises :class:`JobSubmitError`: no job exists afterwards
        and the caller must re-submit from scratch.
        """

        batch = list(records)
        if not batch:
            raise ValueError("submit() needs at least one record")

        url = self._url(BULK_CREATE_PATH, {"targetId": target_id or ""})
        try:
            payload = self._request_json("POST", url, batch)
            job_id = JobSubmitResponse.model_validate(_unwrap_data(payload)).job_id
        except (TransportError, TypeError, ValueError) as e:
            _logger.error(
                "bulk_import:submit_failed count=%d error=%s", len(batch), e.__class__.__name__
            )
            raise JobSubmitError(f"failed to start bulk import: {e}") from e

        _logger.info("bulk_import:submitted job_id=%s count=%d", job_id, len(batch))
        return job_id

    def poll(self, job_id: str) -> ImportJob:
        """Read the job's progress. Safe to call redundantly.

        Failures raise :class:`JobPollError`; the job id stays valid.
        """

        if not job_id:
            raise ValueError("poll() needs a job id")
        url = self._url(PROGRESS_PATH.format(job_id=urllib.parse.quote(job_id, safe="")))
        try:
            job = normalize_progress_payload(self._request_json("GET", url), job_id=job_id)
        except (TransportError, ValidationError, ValueError) as e:
            _logger.warning(
                "bulk_import:poll_failed job_id=%s error=%s", job_id, e.__class__.__name__
            )
            raise JobPollError(f"progress poll failed for job {job_id}: {e}", job_id=job_id) from e

        _logger.debug(
            "bulk_import:polled job_id=%s status=%s percent=%d processed=%d total=%d",
            job_id,
            job.status.value,
            job.percent,
            job.processed_count,
            job.submitted_count,
        )
        return job

    # ---- transaction read ----------------------------------------------------

    def fetch_transactions(
        self,
        start: date,
        end: date,
        *,
        target_id: str | None = None,
        sort_order: str = "desc",
    ) -> list[dict[str, Any]]:
        """Return raw transaction mappings dated within ``[start, end]``."""

        if sort_order not in ("asc", "desc"):
            raise ValueError(f"sort_order must be 'asc' or 'desc', got {sort_order!r}")
        params = {
            "from": start.isoformat(),
            "to": end.isoformat(),
            "sortOrder": sort_order,
            "targetId": target_id or "",
        }
        try:
            payload = _unwrap_data(self._request_json("GET", self._url(FETCH_BY_DATE_PATH, params)))
        except (TransportError, ValueError) as e:
            raise TransactionFetchError(f"failed to fetch transactions {start}..{end}: {e}") from e
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise TransactionFetchError("transaction response must be a JSON array")
        return [dict(item) for item in payload if isinstance(item, Mapping)]


__all__ = [
    "BULK_CREATE_PATH",
    "BulkImportJobClient",
    "FETCH_BY_DATE_PATH",
    "PROGRESS_PATH",
    "Transport",
    "normalize_progress_payload",
    "urllib_transport",
]
