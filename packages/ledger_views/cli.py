# ruff: noqa: I001
"""CLI for the ``ledger_views`` package.

Typer-based console interface over the aggregation, heatmap, trend and bulk
import APIs. Environment variables (``LEDGER_VIEWS_API_URL``,
``LEDGER_VIEWS_API_TOKEN``, ``LEDGER_VIEWS_POLL_INTERVAL``,
``LEDGER_VIEWS_LOG_LEVEL``) are loaded from a local ``.env`` using
``python-dotenv`` before any command runs. Output is rendered with Rich.
"""

from __future__ import annotations

import csv
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Annotated, Any

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn
from rich.table import Table

from .aggregation import aggregate_by_day, build_month_grid, month_bounds
from .errors import JobFailedStatus, JobPollError, JobSubmitError, LedgerViewsError
from .heatmap import scale_heatmap
from .ingest.csv_records import load_records_csv
from .logging_setup import configure_logging
from .models import Granularity, ImportJob, MagnitudeMode
from .trends import build_trend_series

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Calendar, heatmap and trend summaries of transactions, plus tracked bulk "
        "imports. Loads settings from a local .env before running."
    ),
)
console = Console()


# ---- Small module-level helpers ----------------------------------------------


def _fail(message: str) -> typer.Exit:
    console.print(f"[red]Error:[/red] {message}")
    return typer.Exit(1)


def _fmt(amount: Decimal) -> str:
    return f"{amount:,.2f}"


def _parse_month(value: str) -> tuple[int, int]:
    try:
        parsed = datetime.strptime(value.strip(), "%Y-%m")
    except ValueError as e:
        raise typer.BadParameter(f"expected YYYY-MM, got {value!r}") from e
    return parsed.year, parsed.month


def _parse_day(value: str) -> date:
    try:
        return date.fromisoformat(value.strip())
    except ValueError as e:
        raise typer.BadParameter(f"expected YYYY-MM-DD, got {value!r}") from e


def _load_csv(csv_path: Path) -> list[dict[str, Any]]:
    try:
        return load_records_csv(csv_path)
    except FileNotFoundError:
        raise _fail(f"File not found: {csv_path}") from None
    except PermissionError:
        raise _fail(f"Permission denied: {csv_path}") from None
    except csv.Error as e:
        raise _fail(f"Failed to parse CSV: {e}") from e


def _load_records(
    csv_path: Path | None, start: date, end: date, target_id: str | None
) -> list[dict[str, Any]]:
    """Records from a CSV file, or from the transaction read endpoint."""

    if csv_path is not None:
        return _load_csv(csv_path)

    from .client import BulkImportJobClient

    try:
        client = BulkImportJobClient()
        return client.fetch_transactions(start, end, target_id=target_id)
    except RuntimeError as e:
        raise _fail(str(e)) from e
    except LedgerViewsError as e:
        raise _fail(str(e)) from e


# ---- Commands ----------------------------------------------------------------

CsvPathOption = Annotated[
    Path | None,
    typer.Option(
        "--csv-path",
        help="CSV export to read. When omitted, transactions are fetched from the API.",
        dir_okay=False,
    ),
]
ModeOption = Annotated[
    MagnitudeMode, typer.Option(help="Which day total drives the colors/amounts.")
]
TargetOption = Annotated[
    str | None, typer.Option("--target-id", help="Shared context (friend) id.")
]


@app.command("calendar")
def calendar_cmd(
    month: Annotated[str, typer.Option(help="Month to show as YYYY-MM.")],
    csv_path: CsvPathOption = None,
    mode: ModeOption = MagnitudeMode.SPENDING,
    target_id: TargetOption = None,
) -> None:
    """Show one month as a zero-filled calendar with heatmap intensities."""

    year, month_no = _parse_month(month)
    start, end = month_bounds(year, month_no)
    records = _load_records(csv_path, start, end, target_id)

    grid = build_month_grid(aggregate_by_day(records), year, month_no)
    cells = scale_heatmap(grid.days, mode)
    today = date.today()

    table = Table(title=f"{start:%B %Y}")
    table.add_column("Day", justify="right")
    table.add_column("Out", justify="right")
    table.add_column("In", justify="right")
    table.add_column("Heat", justify="right")
    table.add_column("Color")
    table.add_column("Categories")
    for bucket in grid.days:
        marks = ""
        if bucket.date == grid.salary_day:
            marks += "$"
        if bucket.date == today:
            marks += "*"
        cell = cells[bucket.key]
        table.add_row(
            f"{bucket.date.day}{marks}",
            _fmt(bucket.outflow_total),
            _fmt(bucket.inflow_total),
            f"{cell.intensity:.2f}",
            f"[on {cell.color}] [/] {cell.color}",
            ", ".join(m.label for m in bucket.member_categories),
        )
    console.print(table)
    console.print(f"Total spending: {_fmt(grid.outflow_total)}")
    console.print(f"Total income: {_fmt(grid.inflow_total)}")
    console.print(f"Net: {_fmt(grid.net_total)}")
    console.print(f"Salary day: {grid.salary_day.isoformat()} (month offset {grid.month_offset})")


@app.command("trend")
def trend_cmd(
    start: Annotated[str, typer.Option(help="First day (YYYY-MM-DD), inclusive.")],
    end: Annotated[str, typer.Option(help="Last day (YYYY-MM-DD), inclusive.")],
    csv_path: CsvPathOption = None,
    granularity: Annotated[
        Granularity | None,
        typer.Option(help="daily or monthly; chosen from the range length when omitted."),
    ] = None,
    mode: ModeOption = MagnitudeMode.SPENDING,
    target_id: TargetOption = None,
) -> None:
    """Print a gap-free trend series with running averages."""

    start_day, end_day = _parse_day(start), _parse_day(end)
    if start_day > end_day:
        raise _fail(f"--start {start_day} is after --end {end_day}")
    records = _load_records(csv_path, start_day, end_day, target_id)

    points = build_trend_series(aggregate_by_day(records), start_day, end_day, granularity, mode=mode)

    table = Table(title=f"{mode.value} {start_day}..{end_day}")
    table.add_column("Period")
    table.add_column("Amount", justify="right")
    table.add_column("Running avg", justify="right")
    for p in points:
        table.add_row(p.period_key, _fmt(p.amount), _fmt(p.running_average))
    console.print(table)
    console.print(f"Points: {len(points)}")


@app.command("import")
def import_cmd(
    csv_path: Annotated[
        Path, typer.Option("--csv-path", help="CSV export to import.", dir_okay=False)
    ],
    target_id: TargetOption = None,
    interval: Annotated[
        float | None, typer.Option(help="Seconds between progress polls.")
    ] = None,
    max_poll_errors: Annotated[
        int, typer.Option(help="Give up after this many consecutive poll failures.")
    ] = 20,
) -> None:
    """Submit every row of a CSV as one tracked bulk import and follow progress."""

    from .client import BulkImportJobClient
    from .watch import run_import

    records = _load_csv(csv_path)
    if not records:
        raise _fail(f"No rows to import in {csv_path}")

    try:
        client = BulkImportJobClient()
    except RuntimeError as e:
        raise _fail(str(e)) from e

    with Progress(
        TextColumn("{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TextColumn("{task.fields[counts]}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Saving", total=100, counts=f"0/{len(records)}")

        def _on_update(job: ImportJob) -> None:
            progress.update(
                task,
                completed=job.percent,
                description=job.status.value.title(),
                counts=f"{job.processed_count}/{job.submitted_count or len(records)}",
            )

        try:
            job = run_import(
                client,
                records,
                target_id=target_id,
                interval=interval,
                max_consecutive_errors=max_poll_errors,
                on_update=_on_update,
            )
        except JobSubmitError as e:
            raise _fail(f"Failed to start import: {e}") from e
        except JobFailedStatus as e:
            raise _fail(f"Import failed: {e.message}") from e
        except JobPollError as e:
            raise _fail(f"Lost track of import job {e.job_id}: {e}") from e

    console.print(
        f"[green]Imported[/green] {job.processed_count}/{job.submitted_count} records "
        f"(job {job.job_id})"
    )


@app.callback()
def _root(
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="Log level; overrides LEDGER_VIEWS_LOG_LEVEL."),
    ] = None,
) -> None:
    """Load ``.env`` (without overriding the environment) and configure logging."""

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging(log_level, force=log_level is not None)


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
