"""Heatmap scaling for calendar views.

Intensities are relative to the days passed in, i.e. the currently visible
period, so the heaviest day of any month renders at full strength regardless
of how that month compares with others. Callers recompute on every period
change.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from decimal import Decimal
from typing import TypeAlias

from .models import ZERO, DayBucket, HeatmapCell, MagnitudeMode

Ramp: TypeAlias = Sequence[tuple[float, str]]
"""Ordered ``(threshold, "#rrggbb")`` stops covering ``[0.0, 1.0]``."""

SPENDING_RAMP: tuple[tuple[float, str], ...] = (
    (0.0, "#2a2a2a"),
    (0.25, "#5c2b33"),
    (0.5, "#8f3645"),
    (0.75, "#cf667a"),
    (1.0, "#ff4d4f"),
)
INCOME_RAMP: tuple[tuple[float, str], ...] = (
    (0.0, "#2a2a2a"),
    (0.25, "#24402a"),
    (0.5, "#2f5c35"),
    (0.75, "#437746"),
    (1.0, "#06d6a0"),
)
NET_RAMP: tuple[tuple[float, str], ...] = (
    (0.0, "#2a2a2a"),
    (0.33, "#134e4a"),
    (0.66, "#0f766e"),
    (1.0, "#14b8a6"),
)

DEFAULT_RAMPS: dict[MagnitudeMode, Ramp] = {
    MagnitudeMode.SPENDING: SPENDING_RAMP,
    MagnitudeMode.INCOME: INCOME_RAMP,
    MagnitudeMode.NET: NET_RAMP,
}

_HEX_RE = re.compile(r"^#?([0-9a-fA-F]{2})([0-9a-fA-F]{2})([0-9a-fA-F]{2})$")


def hex_to_rgb(color: str) -> tuple[int, int, int]:
    m = _HEX_RE.fullmatch(color.strip())
    if not m:
        raise ValueError(f"invalid hex color: {color!r}")
    return int(m.group(1), 16), int(m.group(2), 16), int(m.group(3), 16)


def rgb_to_hex(r: float, g: float, b: float) -> str:
    def _channel(n: float) -> str:
        return f"{round(max(0.0, min(255.0, n))):02x}"

    return f"#{_channel(r)}{_channel(g)}{_channel(b)}"


def _validate_ramp(ramp: Ramp) -> list[tuple[float, tuple[int, int, int]]]:
    if len(ramp) < 2:
        raise ValueError("heatmap ramp needs at least two stops")
    stops = [(float(t), hex_to_rgb(c)) for t, c in ramp]
    if stops[0][0] != 0.0 or stops[-1][0] != 1.0:
        raise ValueError("heatmap ramp must start at 0.0 and end at 1.0")
    for (t0, _), (t1, _) in zip(stops, stops[1:]):
        if t1 <= t0:
            raise ValueError("heatmap ramp thresholds must be strictly increasing")
    return stops


def interpolate_color(intensity: float, ramp: Ramp) -> str:
    """Linearly interpolate the ramp color at ``intensity`` (clamped to ``[0,1]``)."""

    stops = _validate_ramp(ramp)
    x = max(0.0, min(1.0, float(intensity)))
    for (t0, c0), (t1, c1) in zip(stops, stops[1:]):
        if x <= t1:
            f = (x - t0) / (t1 - t0)
            return rgb_to_hex(*(a + (b - a) * f for a, b in zip(c0, c1)))
    return rgb_to_hex(*stops[-1][1])


def scale_heatmap(
    days: Iterable[DayBucket] | Mapping[str, DayBucket],
    mode: MagnitudeMode = MagnitudeMode.SPENDING,
    *,
    ramp: Ramp | None = None,
) -> dict[str, HeatmapCell]:
    """Return one :class:`HeatmapCell` per visible day, keyed by ISO date.

    ``intensity = |value| / max(|value|)`` over ``days``; when every value is
    zero (or ``days`` is empty) all intensities are ``0.0``.
    """

    buckets = list(days.values()) if isinstance(days, Mapping) else list(days)
    ramp = ramp if ramp is not None else DEFAULT_RAMPS[mode]
    _validate_ramp(ramp)

    values = [(b, mode.value_of(b)) for b in buckets]
    peak = max((abs(v) for _, v in values), default=ZERO)

    cells: dict[str, HeatmapCell] = {}
    for bucket, value in values:
        intensity = 0.0 if peak == 0 else float(abs(value) / peak)
        cells[bucket.key] = HeatmapCell(
            date=bucket.date,
            value=value,
            intensity=intensity,
            color=interpolate_color(intensity, ramp),
        )
    return cells


def peak_value(cells: Mapping[str, HeatmapCell]) -> Decimal:
    """Largest absolute value among ``cells`` (``0`` when empty)."""

    return max((abs(c.value) for c in cells.values()), default=ZERO)


__all__ = [
    "DEFAULT_RAMPS",
    "INCOME_RAMP",
    "NET_RAMP",
    "Ramp",
    "SPENDING_RAMP",
    "hex_to_rgb",
    "interpolate_color",
    "peak_value",
    "rgb_to_hex",
    "scale_heatmap",
]
