"""Explicit per-view calendar state.

Each calendar view owns one :class:`CalendarViewState`. It remembers which
month is visible, the grids already computed for this view, and which fetch is
the latest one. Rapid month switching can leave several fetches in flight; a
result whose request is no longer the latest is discarded instead of
overwriting newer data. Navigation code calls :meth:`CalendarViewState.invalidate`
after anything that changes the underlying transactions (e.g. a completed
bulk import).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any

from .aggregation import aggregate_by_day, build_month_grid, month_bounds, month_offset, shift_month
from .heatmap import scale_heatmap
from .logging_setup import get_logger
from .models import HeatmapCell, MagnitudeMode, MonthGrid, TransactionRecord

_logger = get_logger("ledger_views.view_state")


@dataclass(frozen=True, slots=True)
class RangeRequest:
    """Token for one fetch of the visible range."""

    seq: int
    start: date
    end: date

    @property
    def month(self) -> tuple[int, int]:
        return self.start.year, self.start.month


class CalendarViewState:
    def __init__(
        self,
        *,
        today: date | None = None,
        mode: MagnitudeMode = MagnitudeMode.SPENDING,
    ) -> None:
        self._today = today or date.today()
        self.year = self._today.year
        self.month = self._today.month
        self.mode = mode
        self._seq = 0
        self._latest: RangeRequest | None = None
        self._grids: dict[tuple[int, int], MonthGrid] = {}

    # ---- navigation ----------------------------------------------------------

    @property
    def month_offset(self) -> int:
        return month_offset(self.year, self.month, self._today)

    @property
    def visible_range(self) -> tuple[date, date]:
        return month_bounds(self.year, self.month)

    def navigate(self, delta: int) -> RangeRequest:
        """Move ``delta`` months and start a fetch for the new visible month."""

        self.year, self.month = shift_month(self.year, self.month, delta)
        return self.begin()

    def jump_to(self, year: int, month: int) -> RangeRequest:
        month_bounds(year, month)  # validates
        self.year, self.month = year, month
        return self.begin()

    def jump_to_today(self) -> RangeRequest:
        return self.jump_to(self._today.year, self._today.month)

    # ---- fetch bookkeeping ---------------------------------------------------

    def begin(self) -> RangeRequest:
        """Register a fetch for the visible range; it supersedes earlier ones."""

        self._seq += 1
        start, end = self.visible_range
        self._latest = RangeRequest(seq=self._seq, start=start, end=end)
        return self._latest

    def is_current(self, request: RangeRequest) -> bool:
        return request == self._latest

    def resolve(
        self,
        request: RangeRequest,
        records: Iterable[Mapping[str, Any] | TransactionRecord],
    ) -> MonthGrid | None:
        """Aggregate a finished fetch; return ``None`` when it is stale."""

        if not self.is_current(request):
            _logger.debug(
                "view_state:discard_stale seq=%d latest=%s range=%s..%s",
                request.seq,
                self._latest.seq if self._latest else None,
                request.start,
                request.end,
            )
            return None
        year, month = request.month
        grid = build_month_grid(aggregate_by_day(records), year, month, today=self._today)
        self._grids[(year, month)] = grid
        return grid

    def invalidate(self, year: int | None = None, month: int | None = None) -> None:
        """Drop cached grids: one month when given, otherwise all of them.

        An in-flight fetch for an invalidated month predates the change and is
        dropped; fetches for other months stay current.
        """

        if year is None or month is None:
            self._grids.clear()
            self._latest = None
            return
        self._grids.pop((year, month), None)
        if self._latest is not None and self._latest.month == (year, month):
            self._latest = None

    # ---- derived views -------------------------------------------------------

    def cached_grid(self, year: int, month: int) -> MonthGrid | None:
        return self._grids.get((year, month))

    @property
    def grid(self) -> MonthGrid | None:
        return self.cached_grid(self.year, self.month)

    def heatmap(self) -> dict[str, HeatmapCell]:
        """Heatmap for the visible month, scaled against that month only."""

        grid = self.grid
        if grid is None:
            return {}
        return scale_heatmap(grid.days, self.mode)


__all__ = ["CalendarViewState", "RangeRequest"]
