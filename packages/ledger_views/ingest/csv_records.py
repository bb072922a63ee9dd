"""Adapter mapping a spreadsheet export to transaction payload dicts.

Header names are matched case-insensitively against a few aliases:

=============== ==========================================
Field           Accepted headers
=============== ==========================================
``id``          Id, Reference
``date``        Date
``expenseName`` Name, Expense Name, Description
``amount``      Amount
``type``        Type, Direction
``category``    Category
``paymentMethod`` Payment Method, PaymentMethod
``comments``    Comments, Memo, Notes
=============== ==========================================

``date`` and ``amount`` columns are required. Rows are never dropped here: a
date that cannot be normalized is emitted as ``None`` so the aggregator skips
the row while a bulk import still reports it back from the server.
"""

from __future__ import annotations

import csv
import re
from collections.abc import Iterable, Iterator, Mapping
from datetime import datetime
from os import PathLike
from pathlib import Path
from typing import Any

_HEADER_ALIASES: dict[str, tuple[str, ...]] = {
    "id": ("id", "reference"),
    "date": ("date",),
    "expenseName": ("name", "expense name", "description"),
    "amount": ("amount",),
    "type": ("type", "direction"),
    "category": ("category",),
    "paymentMethod": ("payment method", "paymentmethod"),
    "comments": ("comments", "memo", "notes"),
}
_REQUIRED_FIELDS = ("date", "amount")

_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y", "%d-%m-%Y")


def _clean_text(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = re.sub(r"\s+", " ", value.replace("\r", " ").replace("\n", " ")).strip()
    return cleaned or None


def _normalize_date(value: str | None) -> str | None:
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt).date().isoformat()
        except ValueError:
            continue
    return None


def _resolve_columns(fieldnames: Iterable[str]) -> dict[str, str]:
    """Map payload field -> actual CSV header for the headers present."""

    by_lower = {h.strip().lower(): h for h in fieldnames if h}
    resolved: dict[str, str] = {}
    for field, aliases in _HEADER_ALIASES.items():
        for alias in aliases:
            if alias in by_lower:
                resolved[field] = by_lower[alias]
                break
    return resolved


def to_records(
    rows: Iterable[Mapping[str, str]], columns: Mapping[str, str]
) -> Iterator[dict[str, Any]]:
    """Convert CSV rows to transaction payload dicts using resolved ``columns``."""

    def _get(row: Mapping[str, str], field: str) -> str | None:
        header = columns.get(field)
        return row.get(header) if header else None

    for row in rows:
        amount_raw = _get(row, "amount")
        type_raw = _clean_text(_get(row, "type"))
        yield {
            "id": _clean_text(_get(row, "id")),
            "date": _normalize_date(_get(row, "date")),
            "expenseName": _clean_text(_get(row, "expenseName")),
            "amount": amount_raw.strip() if amount_raw is not None else None,
            "type": type_raw.lower() if type_raw else None,
            "category": _clean_text(_get(row, "category")),
            "paymentMethod": _clean_text(_get(row, "paymentMethod")),
            "comments": _clean_text(_get(row, "comments")),
        }


def load_records_csv(csv_path: str | PathLike[str]) -> list[dict[str, Any]]:
    """Read a CSV export into payload dicts.

    Raises ``csv.Error`` when the header row is missing or lacks the required
    ``Date``/``Amount`` columns.
    """

    p = Path(csv_path)
    with p.open(encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)
        if not reader.fieldnames:
            raise csv.Error(f"CSV appears to have no header row: {csv_path}")
        columns = _resolve_columns(reader.fieldnames)
        missing = [name for name in _REQUIRED_FIELDS if name not in columns]
        if missing:
            raise csv.Error("CSV header is missing required columns: " + ", ".join(missing))
        return list(to_records(reader, columns))


__all__ = ["load_records_csv", "to_records"]
