"""Public interface for the ``ledger_views`` package.

This module re-exports the stable import surface: the pure aggregation,
heatmap and trend transforms, the bulk-import client and its job state
machine, and the public models. There is no runtime logic here.
"""

from .aggregation import (
    aggregate_by_day,
    build_month_grid,
    month_bounds,
    parse_record,
    salary_day,
    signed_amount,
)
from .client import BulkImportJobClient
from .errors import (
    JobFailedStatus,
    JobPollError,
    JobSubmitError,
    LedgerViewsError,
    MalformedRecordError,
    TransactionFetchError,
    TransportError,
)
from .heatmap import interpolate_color, scale_heatmap
from .jobs import JobProgressState
from .models import (
    DayBucket,
    Direction,
    Granularity,
    HeatmapCell,
    ImportJob,
    JobStatus,
    MagnitudeMode,
    Member,
    MonthGrid,
    TransactionRecord,
    TrendPoint,
    normalize_direction,
)
from .trends import build_trend_series, choose_granularity
from .view_state import CalendarViewState, RangeRequest
from .watch import run_import, watch_job

__all__ = [
    # Aggregation / scaling / trends
    "aggregate_by_day",
    "build_month_grid",
    "build_trend_series",
    "choose_granularity",
    "interpolate_color",
    "month_bounds",
    "normalize_direction",
    "parse_record",
    "salary_day",
    "scale_heatmap",
    "signed_amount",
    # Bulk import
    "BulkImportJobClient",
    "JobProgressState",
    "run_import",
    "watch_job",
    # View state
    "CalendarViewState",
    "RangeRequest",
    # Models / types
    "DayBucket",
    "Direction",
    "Granularity",
    "HeatmapCell",
    "ImportJob",
    "JobStatus",
    "MagnitudeMode",
    "Member",
    "MonthGrid",
    "TransactionRecord",
    "TrendPoint",
    # Errors
    "JobFailedStatus",
    "JobPollError",
    "JobSubmitError",
    "LedgerViewsError",
    "MalformedRecordError",
    "TransactionFetchError",
    "TransportError",
]
