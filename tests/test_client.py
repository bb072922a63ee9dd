import io
import urllib.error
from datetime import date
from decimal import Decimal

import pytest

from ledger_views import client as client_mod
from ledger_views.client import (
    BULK_CREATE_PATH,
    FETCH_BY_DATE_PATH,
    BulkImportJobClient,
    normalize_progress_payload,
    urllib_transport,
)
from ledger_views.errors import (
    JobPollError,
    JobSubmitError,
    TransactionFetchError,
    TransportError,
)
from ledger_views.models import JobStatus
from tests.helpers.api_stub import StubTransport

BASE = "http://api.test"
PROGRESS_ABC = "/api/expenses/add-multiple/progress/abc"


def _mk_client(transport: StubTransport, **kwargs) -> BulkImportJobClient:
    return BulkImportJobClient(BASE, transport=transport, **kwargs)


def _mk_batch(n: int):
    return [
        {"date": date(2024, 3, 1), "expenseName": f"item {i}", "amount": Decimal("1.50"), "type": "loss"}
        for i in range(n)
    ]


# ---- Configuration -----------------------------------------------------------


def test_base_url_is_required(monkeypatch):
    with pytest.raises(RuntimeError):
        BulkImportJobClient(transport=StubTransport())
    monkeypatch.setenv("LEDGER_VIEWS_API_URL", "http://env.test/")
    assert BulkImportJobClient(transport=StubTransport()).base_url == "http://env.test"


# ---- submit ------------------------------------------------------------------


def test_submit_posts_whole_batch_once_and_returns_job_id():
    transport = StubTransport().queue("POST", BULK_CREATE_PATH, {"jobId": "abc"})
    client = _mk_client(transport, token="s3cret")

    assert client.submit(_mk_batch(100), target_id="t-9") == "abc"

    (call,) = transport.calls
    assert call["params"] == {"targetId": "t-9"}
    assert len(call["json"]) == 100
    assert call["json"][0]["date"] == "2024-03-01"
    assert call["json"][0]["amount"] == "1.50"
    assert call["headers"]["Authorization"] == "Bearer s3cret"
    assert call["headers"]["Content-Type"] == "application/json"


def test_submit_accepts_wrapped_and_numeric_job_ids():
    transport = StubTransport().queue("POST", BULK_CREATE_PATH, {"data": {"jobId": 42}})
    assert _mk_client(transport).submit(_mk_batch(1)) == "42"


@pytest.mark.parametrize(
    "response",
    [
        TransportError("HTTP 500 Internal Server Error: boom", status=500),
        {"message": "no job"},
        {"jobId": ""},
        b"not json",
    ],
)
def test_submit_failures_raise_job_submit_error(response):
    transport = StubTransport().queue("POST", BULK_CREATE_PATH, response)
    with pytest.raises(JobSubmitError):
        _mk_client(transport).submit(_mk_batch(3))


def test_submit_rejects_empty_batch_without_a_request():
    transport = StubTransport()
    with pytest.raises(ValueError):
        _mk_client(transport).submit([])
    assert transport.calls == []


# ---- poll --------------------------------------------------------------------


def test_poll_reads_progress_and_repeats_terminal_snapshot():
    transport = StubTransport().queue(
        "GET",
        PROGRESS_ABC,
        {"jobId": "abc", "total": 100, "processed": 60, "percent": 60, "status": "RUNNING"},
        {"jobId": "abc", "total": 100, "processed": 100, "percent": 100, "status": "COMPLETED"},
    )
    client = _mk_client(transport)

    running = client.poll("abc")
    assert (running.status, running.percent, running.processed_count) == (JobStatus.RUNNING, 60, 60)

    first = client.poll("abc")
    again = client.poll("abc")
    assert first == again
    assert first.status is JobStatus.COMPLETED
    assert first.percent == 100


def test_poll_failure_keeps_job_id_valid():
    transport = StubTransport().queue(
        "GET",
        PROGRESS_ABC,
        TransportError("request to progress failed: timed out"),
        {"jobId": "abc", "percent": 25, "status": "RUNNING"},
    )
    client = _mk_client(transport)

    with pytest.raises(JobPollError) as exc:
        client.poll("abc")
    assert exc.value.job_id == "abc"

    assert client.poll("abc").percent == 25
    assert len(transport.calls_to(PROGRESS_ABC)) == 2


def test_poll_rejects_non_object_bodies():
    transport = StubTransport().queue("GET", PROGRESS_ABC, ["nope"])
    with pytest.raises(JobPollError):
        _mk_client(transport).poll("abc")


def test_poll_quotes_job_id_in_path():
    transport = StubTransport().queue(
        "GET", "/api/expenses/add-multiple/progress/a%2Fb", {"status": "PENDING"}
    )
    assert _mk_client(transport).poll("a/b").job_id == "a/b"


# ---- progress payload normalization ------------------------------------------


def test_progress_payload_synonyms_and_data_wrapper():
    job = normalize_progress_payload(
        {"data": {"percentage": "40", "completed": 4, "count": 10, "state": "running"}},
        job_id="abc",
    )
    assert job.job_id == "abc"
    assert job.percent == 40
    assert job.processed_count == 4
    assert job.submitted_count == 10
    assert job.status is JobStatus.RUNNING


def test_progress_payload_derives_percent_from_counts():
    job = normalize_progress_payload({"processed": 1, "total": 8}, job_id="abc")
    assert job.percent == 13
    assert job.status is JobStatus.RUNNING


@pytest.mark.parametrize(
    ("percent", "expected"),
    [("25.5", 26), (" 12% ", 12), ("soon", 30), ("NaN", 30), (True, 30), (None, 30)],
)
def test_progress_payload_tolerates_odd_percent_values(percent, expected):
    job = normalize_progress_payload(
        {"percent": percent, "processed": 3, "total": 10, "status": "RUNNING"}, job_id="abc"
    )
    assert job.percent == expected


def test_poll_survives_fractional_string_percent():
    transport = StubTransport().queue("GET", PROGRESS_ABC, {"percent": "25.5", "status": "RUNNING"})
    assert _mk_client(transport).poll("abc").percent == 26


def test_progress_payload_failed_carries_message():
    job = normalize_progress_payload({"status": "FAILED", "message": "bad row"}, job_id="abc")
    assert job.is_terminal
    assert job.message == "bad row"


# ---- fetch_transactions ------------------------------------------------------


def test_fetch_transactions_sends_range_and_unwraps_data():
    rows = [{"id": 1, "date": "2024-03-01", "amount": 5, "type": "loss"}, "junk"]
    transport = StubTransport().queue("GET", FETCH_BY_DATE_PATH, {"data": rows})

    out = _mk_client(transport).fetch_transactions(
        date(2024, 3, 1), date(2024, 3, 31), target_id="t-1", sort_order="asc"
    )

    assert out == [rows[0]]
    assert transport.calls[0]["params"] == {
        "from": "2024-03-01",
        "to": "2024-03-31",
        "sortOrder": "asc",
        "targetId": "t-1",
    }


def test_fetch_transactions_empty_and_error_cases():
    empty = StubTransport().queue("GET", FETCH_BY_DATE_PATH, b"")
    assert _mk_client(empty).fetch_transactions(date(2024, 3, 1), date(2024, 3, 2)) == []

    wrong_shape = StubTransport().queue("GET", FETCH_BY_DATE_PATH, {"rows": []})
    with pytest.raises(TransactionFetchError):
        _mk_client(wrong_shape).fetch_transactions(date(2024, 3, 1), date(2024, 3, 2))

    down = StubTransport().queue("GET", FETCH_BY_DATE_PATH, TransportError("down"))
    with pytest.raises(TransactionFetchError):
        _mk_client(down).fetch_transactions(date(2024, 3, 1), date(2024, 3, 2))

    with pytest.raises(ValueError):
        _mk_client(StubTransport()).fetch_transactions(
            date(2024, 3, 1), date(2024, 3, 2), sort_order="sideways"
        )


# ---- urllib transport --------------------------------------------------------


class _FakeResponse:
    def __init__(self, body: bytes) -> None:
        self._body = body

    def read(self) -> bytes:
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def test_urllib_transport_returns_body_and_sends_headers(monkeypatch):
    seen = {}

    def fake_urlopen(req, timeout):
        seen["method"] = req.get_method()
        seen["auth"] = req.get_header("Authorization")
        seen["timeout"] = timeout
        return _FakeResponse(b'{"ok": true}')

    monkeypatch.setattr(client_mod.urllib.request, "urlopen", fake_urlopen)
    body = urllib_transport("GET", f"{BASE}/x", None, {"Authorization": "Bearer t"}, timeout=5)

    assert body == b'{"ok": true}'
    assert seen == {"method": "GET", "auth": "Bearer t", "timeout": 5}


def test_urllib_transport_maps_http_and_network_errors(monkeypatch):
    def http_error(req, timeout):
        raise urllib.error.HTTPError(req.full_url, 502, "Bad Gateway", {}, io.BytesIO(b"upstream"))

    monkeypatch.setattr(client_mod.urllib.request, "urlopen", http_error)
    with pytest.raises(TransportError) as exc:
        urllib_transport("GET", f"{BASE}/x", None, {})
    assert exc.value.status == 502
    assert "upstream" in str(exc.value)

    def url_error(req, timeout):
        raise urllib.error.URLError("connection refused")

    monkeypatch.setattr(client_mod.urllib.request, "urlopen", url_error)
    with pytest.raises(TransportError) as exc:
        urllib_transport("POST", f"{BASE}/x", b"{}", {})
    assert exc.value.status is None
