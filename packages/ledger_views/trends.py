"""Gap-free trend series over an explicit date range.

Every calendar unit between ``start`` and ``end`` (inclusive) yields a point,
with zero for units that had no transactions, so the x-axis always represents
elapsed time. Each point also carries the running average of the produced
prefix, rounded to cents.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

from .aggregation import shift_month
from .models import ZERO, DayBucket, Granularity, MagnitudeMode, TrendPoint

# Ranges up to a month render per day; longer ranges roll up per month.
DAILY_MAX_SPAN_DAYS: int = 31

_CENT = Decimal("0.01")


def choose_granularity(start: date, end: date) -> Granularity:
    if (end - start).days + 1 <= DAILY_MAX_SPAN_DAYS:
        return Granularity.DAILY
    return Granularity.MONTHLY


def _iter_days(start: date, end: date) -> Iterator[date]:
    cursor = start
    while cursor <= end:
        yield cursor
        cursor += timedelta(days=1)


def _iter_months(start: date, end: date) -> Iterator[tuple[int, int]]:
    ym = (start.year, start.month)
    last = (end.year, end.month)
    while ym <= last:
        yield ym
        ym = shift_month(ym[0], ym[1], 1)


def _with_running_average(units: list[tuple[str, str, Decimal]]) -> list[TrendPoint]:
    points: list[TrendPoint] = []
    running = ZERO
    for i, (label, key, amount) in enumerate(units):
        running += amount
        avg = (running / (i + 1)).quantize(_CENT, rounding=ROUND_HALF_UP)
        points.append(
            TrendPoint(period_label=label, period_key=key, amount=amount, running_average=avg)
        )
    return points


def build_trend_series(
    buckets: Mapping[str, DayBucket],
    start: date,
    end: date,
    granularity: Granularity | None = None,
    *,
    mode: MagnitudeMode = MagnitudeMode.SPENDING,
) -> list[TrendPoint]:
    """Build an ordered, zero-filled :class:`TrendPoint` series.

    Parameters
    ----------
    buckets:
        Output of :func:`ledger_views.aggregation.aggregate_by_day`. Days
        outside ``[start, end]`` are ignored.
    start, end:
        Inclusive range. ``start > end`` raises ``ValueError``.
    granularity:
        ``DAILY`` walks one day at a time; ``MONTHLY`` first groups days into
        ``(year, month)`` sums. Defaults to :func:`choose_granularity`.
    mode:
        Which day total feeds ``amount`` (spending, income or net).
    """

    if start > end:
        raise ValueError(f"trend range start {start} is after end {end}")
    granularity = granularity or choose_granularity(start, end)

    units: list[tuple[str, str, Decimal]] = []
    if granularity is Granularity.DAILY:
        for day in _iter_days(start, end):
            key = day.isoformat()
            bucket = buckets.get(key)
            amount = mode.value_of(bucket) if bucket is not None else ZERO
            units.append((f"{day:%b} {day.day:02d}", key, amount))
    else:
        by_month: dict[tuple[int, int], Decimal] = {}
        for bucket in buckets.values():
            if start <= bucket.date <= end:
                ym = (bucket.date.year, bucket.date.month)
                by_month[ym] = by_month.get(ym, ZERO) + mode.value_of(bucket)
        for year, month in _iter_months(start, end):
            first = date(year, month, 1)
            units.append(
                (f"{first:%b} {year}", f"{year:04d}-{month:02d}", by_month.get((year, month), ZERO))
            )

    return _with_running_average(units)


__all__ = ["DAILY_MAX_SPAN_DAYS", "build_trend_series", "choose_granularity"]
