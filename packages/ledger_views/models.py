"""Data models and enumerations for ``ledger_views``.

Calendar-side values (records, day buckets, month grids, trend points, heatmap
cells) are frozen dataclasses: they are recomputed wholesale on every fetch or
month navigation and carry no identity beyond their fields. Wire payloads of
the bulk-import protocol are pydantic models so that server responses are
validated at the boundary.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ZERO = Decimal("0")

# ---------------------------------------------------------------------------
# Direction classification
# ---------------------------------------------------------------------------


class Direction(str, Enum):
    INFLOW = "inflow"
    OUTFLOW = "outflow"
    NEUTRAL = "neutral"


# Every source vocabulary seen for transaction types maps here and nowhere else.
_DIRECTION_SYNONYMS: dict[str, Direction] = {
    "gain": Direction.INFLOW,
    "inflow": Direction.INFLOW,
    "income": Direction.INFLOW,
    "loss": Direction.OUTFLOW,
    "outflow": Direction.OUTFLOW,
    "expense": Direction.OUTFLOW,
}


def normalize_direction(raw: object) -> Direction:
    """Map a source ``type`` value onto :class:`Direction`.

    ``"gain"``/``"inflow"``/``"income"`` are inflows, ``"loss"``/``"outflow"``/
    ``"expense"`` are outflows; anything else (including ``None``) is neutral.
    Matching ignores case and surrounding whitespace.
    """

    if isinstance(raw, Direction):
        return raw
    if not isinstance(raw, str):
        return Direction.NEUTRAL
    return _DIRECTION_SYNONYMS.get(raw.strip().lower(), Direction.NEUTRAL)


class MagnitudeMode(str, Enum):
    """Which day total drives a heatmap or trend series."""

    SPENDING = "spending"
    INCOME = "income"
    NET = "net"

    def value_of(self, bucket: DayBucket) -> Decimal:
        if self is MagnitudeMode.SPENDING:
            return bucket.outflow_total
        if self is MagnitudeMode.INCOME:
            return bucket.inflow_total
        return bucket.net_total


class Granularity(str, Enum):
    DAILY = "daily"
    MONTHLY = "monthly"


# ---------------------------------------------------------------------------
# Records and buckets
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Member:
    """A category or payment method attached to a transaction.

    ``dedup_key`` prefers a genuine identifier, then the icon key, and only
    falls back to the display label. Two labels that collide without an id are
    treated as the same member; that ambiguity lives in the source data.
    """

    label: str
    icon_key: str | None = None
    member_id: str | None = None

    @property
    def dedup_key(self) -> str:
        if self.member_id:
            return f"id:{self.member_id}"
        if self.icon_key:
            return f"icon:{self.icon_key}"
        return f"label:{self.label}"


@dataclass(frozen=True, slots=True)
class TransactionRecord:
    """A validated transaction: one calendar day, one signed amount."""

    id: str | None
    date: date
    amount: Decimal
    direction: Direction
    category: Member | None = None
    payment_method: Member | None = None


@dataclass(frozen=True, slots=True)
class DayBucket:
    """Aggregates for one calendar day.

    ``member_categories`` and ``member_payment_methods`` are ordered sets:
    first-seen order, deduplicated by :attr:`Member.dedup_key`.
    """

    date: date
    inflow_total: Decimal = ZERO
    outflow_total: Decimal = ZERO
    member_categories: tuple[Member, ...] = ()
    member_payment_methods: tuple[Member, ...] = ()

    @property
    def net_total(self) -> Decimal:
        return self.inflow_total - self.outflow_total

    @property
    def key(self) -> str:
        return self.date.isoformat()


@dataclass(frozen=True, slots=True)
class MonthGrid:
    """Every day of one month, zero-filled, plus navigation metadata.

    Attributes
    ----------
    month_offset:
        Months between this grid and the month of "today" (``-1`` for last
        month, ``0`` for the current month).
    salary_day:
        The designated salary day: the last working day of the month.
    """

    year: int
    month: int
    days: tuple[DayBucket, ...]
    month_offset: int
    salary_day: date

    @property
    def inflow_total(self) -> Decimal:
        return sum((d.inflow_total for d in self.days), ZERO)

    @property
    def outflow_total(self) -> Decimal:
        return sum((d.outflow_total for d in self.days), ZERO)

    @property
    def net_total(self) -> Decimal:
        return sum((d.net_total for d in self.days), ZERO)

    def day(self, day_of_month: int) -> DayBucket:
        return self.days[day_of_month - 1]


@dataclass(frozen=True, slots=True)
class TrendPoint:
    period_label: str
    period_key: str
    amount: Decimal
    running_average: Decimal


@dataclass(frozen=True, slots=True)
class HeatmapCell:
    date: date
    value: Decimal
    intensity: float
    color: str


# ---------------------------------------------------------------------------
# Bulk-import job protocol
# ---------------------------------------------------------------------------


def _round_half_up(x: float) -> int:
    return math.floor(x + 0.5)


def percent_of(processed: int, submitted: int) -> int:
    """Whole-number completion percent, rounded half-up and clamped to 0..100."""

    if submitted <= 0:
        return 0
    return max(0, min(100, _round_half_up(processed / submitted * 100)))


class JobStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    @classmethod
    def parse(cls, raw: object) -> JobStatus:
        """Parse a server status string; unknown or missing values mean RUNNING."""

        if isinstance(raw, JobStatus):
            return raw
        if isinstance(raw, str):
            s = raw.strip().upper()
            if s in ("SUBMITTED", "QUEUED"):
                return cls.PENDING
            try:
                return cls(s)
            except ValueError:
                pass
        return cls.RUNNING


class ImportJob(BaseModel):
    """Snapshot of a server-side bulk import job."""

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    job_id: str = Field(min_length=1)
    submitted_count: int = Field(default=0, ge=0)
    processed_count: int = Field(default=0, ge=0)
    percent: int | None = None
    status: JobStatus = JobStatus.PENDING
    message: str | None = None
    # Set during validation: whether the server supplied ``percent`` itself.
    percent_reported: bool = Field(default=False, exclude=True, repr=False)

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, v: object) -> JobStatus:
        return JobStatus.parse(v)

    @field_validator("percent", mode="before")
    @classmethod
    def _round_fractional_percent(cls, v: object) -> object:
        if isinstance(v, float):
            return _round_half_up(v)
        return v

    @field_validator("message")
    @classmethod
    def _blank_message_is_none(cls, v: str | None) -> str | None:
        return v or None

    @model_validator(mode="after")
    def _derive_percent(self) -> ImportJob:
        # Derive from counts when the server omits percent; always clamp.
        pct = self.percent
        reported = pct is not None
        if pct is None:
            if self.submitted_count > 0:
                pct = percent_of(self.processed_count, self.submitted_count)
            else:
                pct = 100 if self.status is JobStatus.COMPLETED else 0
        object.__setattr__(self, "percent", max(0, min(100, int(pct))))
        object.__setattr__(self, "percent_reported", reported)
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


class JobSubmitResponse(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    job_id: str = Field(alias="jobId", min_length=1)

    @field_validator("job_id", mode="before")
    @classmethod
    def _coerce_job_id(cls, v: object) -> object:
        # Some deployments return numeric ids.
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v.strip() if isinstance(v, str) else v


__all__ = [
    "DayBucket",
    "Direction",
    "Granularity",
    "HeatmapCell",
    "ImportJob",
    "JobStatus",
    "JobSubmitResponse",
    "MagnitudeMode",
    "Member",
    "MonthGrid",
    "TransactionRecord",
    "TrendPoint",
    "ZERO",
    "normalize_direction",
    "percent_of",
]
