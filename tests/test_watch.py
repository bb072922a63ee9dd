from datetime import date

import pytest

from ledger_views.client import BULK_CREATE_PATH, BulkImportJobClient
from ledger_views.errors import JobFailedStatus, JobPollError, JobSubmitError, TransportError
from ledger_views.models import ImportJob, JobStatus
from ledger_views.watch import resolve_poll_interval, run_import, watch_job
from tests.helpers.api_stub import ScriptedPoller, StubTransport

PROGRESS_ABC = "/api/expenses/add-multiple/progress/abc"


class _SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def _mk_job(percent=None, status="RUNNING", **kwargs) -> ImportJob:
    return ImportJob(job_id="abc", percent=percent, status=status, **kwargs)


def _poll_error() -> JobPollError:
    return JobPollError("progress poll failed for job abc: timed out", job_id="abc")


def test_bulk_import_end_to_end_over_http():
    transport = (
        StubTransport()
        .queue("POST", BULK_CREATE_PATH, {"jobId": "abc"})
        .queue(
            "GET",
            PROGRESS_ABC,
            {"jobId": "abc", "percent": 0, "status": "RUNNING"},
            {"jobId": "abc", "percent": 25, "status": "RUNNING"},
            {"jobId": "abc", "percent": 60, "status": "RUNNING"},
            {"jobId": "abc", "total": 100, "processed": 100, "percent": 100, "status": "COMPLETED"},
        )
    )
    client = BulkImportJobClient("http://api.test", transport=transport)
    records = [{"date": date(2024, 3, 1), "amount": 1, "type": "loss"} for _ in range(100)]
    sleep = _SleepRecorder()
    seen: list[int] = []

    final = run_import(
        client, records, interval=0.75, sleep=sleep, on_update=lambda j: seen.append(j.percent)
    )

    assert final.status is JobStatus.COMPLETED
    assert final.percent == 100
    assert final.submitted_count == 100
    assert seen == [0, 25, 60, 100]
    assert len(transport.calls_to(BULK_CREATE_PATH)) == 1
    assert len(transport.calls_to(PROGRESS_ABC)) == 4
    # No sleep after the terminal snapshot.
    assert sleep.calls == [0.75, 0.75, 0.75]

    # Re-polling the finished job is harmless and returns the same snapshot.
    assert client.poll("abc") == client.poll("abc")


def test_transient_poll_errors_are_retried_with_same_job_id():
    poller = ScriptedPoller(
        [_mk_job(10), _poll_error(), _poll_error(), _mk_job(100, "COMPLETED")]
    )
    sleep = _SleepRecorder()

    final = watch_job(poller, "abc", interval=0.75, error_interval=1.5, sleep=sleep)

    assert final.status is JobStatus.COMPLETED
    assert poller.polls == 4
    assert sleep.calls == [0.75, 1.5, 1.5]


def test_failed_status_raises_with_server_message():
    poller = ScriptedPoller([_mk_job(30), _mk_job(status="FAILED", message="row 3 invalid")])

    with pytest.raises(JobFailedStatus) as exc:
        watch_job(poller, "abc", interval=0, sleep=_SleepRecorder())

    assert exc.value.message == "row 3 invalid"
    assert exc.value.job.status is JobStatus.FAILED
    assert exc.value.job.percent == 30


def test_failed_status_without_message_uses_generic_text():
    poller = ScriptedPoller([_mk_job(status="FAILED")])
    with pytest.raises(JobFailedStatus) as exc:
        watch_job(poller, "abc", interval=0, sleep=_SleepRecorder())
    assert exc.value.message == "Import failed"


def test_consecutive_error_limit_reraises_poll_error():
    poller = ScriptedPoller([_mk_job(5), _poll_error()])
    sleep = _SleepRecorder()

    with pytest.raises(JobPollError):
        watch_job(poller, "abc", interval=0.75, max_consecutive_errors=3, sleep=sleep)

    assert poller.polls == 4
    assert sleep.calls == [0.75, 1.5, 1.5]


def test_cancellation_stops_polling_and_returns_latest_snapshot():
    poller = ScriptedPoller([_mk_job(10), _mk_job(40), _mk_job(100, "COMPLETED")])
    checks = iter([False, False, True])

    latest = watch_job(
        poller, "abc", interval=0, sleep=_SleepRecorder(), cancelled=lambda: next(checks)
    )

    assert poller.polls == 2
    assert latest.status is JobStatus.RUNNING
    assert latest.percent == 40


def test_progress_regressions_never_reach_the_caller():
    poller = ScriptedPoller(
        [_mk_job(60), _mk_job(20, "PENDING"), _mk_job(100, "COMPLETED")]
    )
    seen: list[tuple[JobStatus, int]] = []

    watch_job(
        poller,
        "abc",
        interval=0,
        sleep=_SleepRecorder(),
        on_update=lambda j: seen.append((j.status, j.percent)),
    )

    assert seen == [
        (JobStatus.RUNNING, 60),
        (JobStatus.RUNNING, 60),
        (JobStatus.COMPLETED, 100),
    ]


def test_submit_failure_means_no_polling():
    transport = StubTransport().queue(
        "POST", BULK_CREATE_PATH, TransportError("HTTP 503 Service Unavailable: ", status=503)
    )
    client = BulkImportJobClient("http://api.test", transport=transport)

    with pytest.raises(JobSubmitError):
        run_import(client, [{"date": "2024-03-01", "amount": 1}], sleep=_SleepRecorder())

    assert transport.calls_to(PROGRESS_ABC) == []


def test_run_import_forwards_target_id():
    poller = ScriptedPoller([_mk_job(100, "COMPLETED")])
    run_import(poller, [{"date": "2024-03-01", "amount": 1}], target_id="t-2", interval=0)
    assert poller.submitted == [([{"date": "2024-03-01", "amount": 1}], "t-2")]


@pytest.mark.parametrize(
    ("env", "expected"),
    [(None, 0.75), ("2", 2.0), ("0.1", 0.1), ("-1", 0.75), ("soon", 0.75)],
)
def test_resolve_poll_interval(monkeypatch, env, expected):
    if env is not None:
        monkeypatch.setenv("LEDGER_VIEWS_POLL_INTERVAL", env)
    assert resolve_poll_interval() == expected
