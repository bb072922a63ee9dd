"""Time-bucketing of transaction records into day and month aggregates.

Public API:
    - :func:`parse_record`
    - :func:`aggregate_by_day`
    - :func:`build_month_grid`
    - :func:`salary_day`, :func:`month_offset`, :func:`shift_month`,
      :func:`month_bounds`

Everything here is pure: no I/O, no clock reads except where ``today`` is
omitted, and identical input always produces an identical bucket map.

Amount convention: a record's ``amount`` is a magnitude and its ``direction``
supplies the sign. Inflows add ``|amount|`` to ``inflow_total``, outflows add
``|amount|`` to ``outflow_total``, and neutral records add to neither (they
still register category/payment-method membership).
"""

from __future__ import annotations

import calendar
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from .errors import MalformedRecordError
from .logging_setup import get_logger
from .models import (
    ZERO,
    DayBucket,
    Direction,
    Member,
    MonthGrid,
    TransactionRecord,
    normalize_direction,
)

_logger = get_logger("ledger_views.aggregation")


# ---- Record parsing ----------------------------------------------------------


def _field(raw: Mapping[str, Any], *names: str) -> Any:
    """Return the first non-empty value among ``names``.

    Looks at the top level first, then inside a nested ``expense`` mapping
    (the shape returned by the transaction read endpoint).
    """

    nested = raw.get("expense")
    sources: list[Mapping[str, Any]] = [raw]
    if isinstance(nested, Mapping):
        sources.append(nested)
    for src in sources:
        for name in names:
            val = src.get(name)
            if val is not None and val != "":
                return val
    return None


def _parse_date(value: Any) -> date | None:
    # datetime is a subclass of date; check it first and keep its own calendar day.
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        s = value.strip()
        # Only the calendar-day prefix matters; any time/offset suffix is ignored.
        try:
            return date.fromisoformat(s[:10])
        except ValueError:
            return None
    return None


def _parse_amount(value: Any) -> Decimal | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, Decimal):
        amt = value
    elif isinstance(value, int):
        amt = Decimal(value)
    elif isinstance(value, float):
        amt = Decimal(repr(value))
    elif isinstance(value, str):
        s = value.strip().replace(",", "")
        if not s:
            return None
        try:
            amt = Decimal(s)
        except InvalidOperation:
            return None
    else:
        return None
    if not amt.is_finite():
        return None
    return amt


def _parse_member(value: Any, *, icon: Any = None) -> Member | None:
    if value is None:
        return None
    if isinstance(value, Mapping):
        label = value.get("name") or value.get("label") or ""
        icon_key = value.get("icon") or value.get("iconKey") or value.get("icon_key")
        member_id = value.get("id")
        if not (label or icon_key or member_id is not None):
            return None
        return Member(
            label=str(label).strip(),
            icon_key=str(icon_key).strip() if icon_key else None,
            member_id=str(member_id) if member_id is not None else None,
        )
    label = str(value).strip()
    if not label:
        return None
    return Member(label=label, icon_key=str(icon).strip() if icon else None)


def parse_record(raw: Mapping[str, Any] | TransactionRecord) -> TransactionRecord:
    """Validate one raw transaction mapping into a :class:`TransactionRecord`.

    Raises :class:`~ledger_views.errors.MalformedRecordError` when the date is
    missing or unparseable, or when an amount is present but unparseable. A
    missing amount counts as zero. Already-parsed records pass through.
    """

    if isinstance(raw, TransactionRecord):
        return raw
    if not isinstance(raw, Mapping):
        raise MalformedRecordError(f"record must be a mapping, got {type(raw).__name__}")

    rid = _field(raw, "id")
    record_id = str(rid) if rid is not None else None

    day = _parse_date(_field(raw, "date"))
    if day is None:
        raise MalformedRecordError(
            f"missing or unparseable date for record id={record_id!r}", record_id=record_id
        )
    # An absent amount counts as zero; a present but unparseable one is malformed.
    amount_raw = _field(raw, "amount")
    if amount_raw is None or (isinstance(amount_raw, str) and not amount_raw.strip()):
        amount: Decimal | None = ZERO
    else:
        amount = _parse_amount(amount_raw)
    if amount is None:
        raise MalformedRecordError(
            f"unparseable amount {amount_raw!r} for record id={record_id!r}", record_id=record_id
        )

    return TransactionRecord(
        id=record_id,
        date=day,
        amount=amount,
        direction=normalize_direction(_field(raw, "type", "direction")),
        category=_parse_member(
            _field(raw, "category", "categoryName"), icon=_field(raw, "categoryIcon")
        ),
        payment_method=_parse_member(
            _field(raw, "paymentMethod", "payment_method"), icon=_field(raw, "paymentMethodIcon")
        ),
    )


def signed_amount(record: TransactionRecord) -> Decimal:
    """Return the record's contribution to a net total."""

    if record.direction is Direction.INFLOW:
        return abs(record.amount)
    if record.direction is Direction.OUTFLOW:
        return -abs(record.amount)
    return ZERO


# ---- Day aggregation ---------------------------------------------------------


class _DayAccumulator:
    __slots__ = ("day", "inflow", "outflow", "categories", "payment_methods")

    def __init__(self, day: date) -> None:
        self.day = day
        self.inflow = ZERO
        self.outflow = ZERO
        self.categories: dict[str, Member] = {}
        self.payment_methods: dict[str, Member] = {}

    def add(self, record: TransactionRecord) -> None:
        if record.direction is Direction.INFLOW:
            self.inflow += abs(record.amount)
        elif record.direction is Direction.OUTFLOW:
            self.outflow += abs(record.amount)
        if record.category is not None:
            self.categories.setdefault(record.category.dedup_key, record.category)
        if record.payment_method is not None:
            self.payment_methods.setdefault(
                record.payment_method.dedup_key, record.payment_method
            )

    def freeze(self) -> DayBucket:
        return DayBucket(
            date=self.day,
            inflow_total=self.inflow,
            outflow_total=self.outflow,
            member_categories=tuple(self.categories.values()),
            member_payment_methods=tuple(self.payment_methods.values()),
        )


def aggregate_by_day(
    records: Iterable[Mapping[str, Any] | TransactionRecord],
) -> dict[str, DayBucket]:
    """Bucket ``records`` by calendar day in a single pass.

    Returns a mapping of ISO date key (``YYYY-MM-DD``) to :class:`DayBucket`,
    sorted by key. Records that fail :func:`parse_record` are skipped and
    logged; they never abort the pass. An empty input yields an empty map.
    """

    acc: dict[str, _DayAccumulator] = {}
    skipped = 0
    for pos, raw in enumerate(records):
        try:
            record = parse_record(raw)
        except MalformedRecordError as e:
            skipped += 1
            _logger.debug(
                "aggregate_by_day:skip_record pos=%d id=%r reason=%s", pos, e.record_id, e
            )
            continue
        key = record.date.isoformat()
        slot = acc.get(key)
        if slot is None:
            slot = acc[key] = _DayAccumulator(record.date)
        slot.add(record)

    if skipped:
        _logger.info("aggregate_by_day:skipped count=%d days=%d", skipped, len(acc))
    return {key: acc[key].freeze() for key in sorted(acc)}


# ---- Month helpers -----------------------------------------------------------


def _check_month(year: int, month: int) -> None:
    if not 1 <= month <= 12:
        raise ValueError(f"month must be within 1..12, got {month}")
    if not 1 <= year <= 9999:
        raise ValueError(f"year out of range: {year}")


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """Return the first and last day of a month."""

    _check_month(year, month)
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    """Move ``delta`` months forward (or backward when negative)."""

    _check_month(year, month)
    idx = year * 12 + (month - 1) + delta
    return idx // 12, idx % 12 + 1


def month_offset(year: int, month: int, today: date) -> int:
    return (year - today.year) * 12 + (month - today.month)


def salary_day(year: int, month: int) -> date:
    """Last working day of the month: a weekend month-end moves back to Friday."""

    last = month_bounds(year, month)[1]
    weekday = last.weekday()
    if weekday == 5:
        return last.replace(day=last.day - 1)
    if weekday == 6:
        return last.replace(day=last.day - 2)
    return last


def build_month_grid(
    buckets: Mapping[str, DayBucket],
    year: int,
    month: int,
    *,
    today: date | None = None,
) -> MonthGrid:
    """Walk every day of ``year``/``month`` and zero-fill missing days.

    ``buckets`` may span any window; days outside the month are ignored.
    """

    first, last = month_bounds(year, month)
    days = tuple(
        buckets.get(first.replace(day=d).isoformat()) or DayBucket(date=first.replace(day=d))
        for d in range(1, last.day + 1)
    )
    return MonthGrid(
        year=year,
        month=month,
        days=days,
        month_offset=month_offset(year, month, today or date.today()),
        salary_day=salary_day(year, month),
    )


__all__ = [
    "aggregate_by_day",
    "build_month_grid",
    "month_bounds",
    "month_offset",
    "parse_record",
    "salary_day",
    "shift_month",
    "signed_amount",
]
