"""
Equity curve recording and presentation helpers.
"""

import statistics
from collections.abc import Iterable, Iterator, Sequence
from datetime import datetime
from decimal import Decimal
from typing import Any

from src.core.exceptions.backtest import DataError
from src.core.models.backtest import EquitySnapshot
from src.core.types.financial import ZERO


class EquityCurve:
    """Append-only sequence of equity snapshots with non-decreasing timestamps."""

    def __init__(self) -> None:
        self._points: list[EquitySnapshot] = []

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[EquitySnapshot]:
        return iter(self._points)

    def append(self, snapshot: EquitySnapshot) -> None:
        """
        Raises:
            DataError: If the snapshot is older than the last one
        """
        if self._points and snapshot.timestamp < self._points[-1].timestamp:
            raise DataError(
                f"Equity snapshot at {snapshot.timestamp.isoformat()} precedes "
                f"{self._points[-1].timestamp.isoformat()}"
            )
        self._points.append(snapshot)

    @property
    def points(self) -> tuple[EquitySnapshot, ...]:
        return tuple(self._points)

    @property
    def last(self) -> EquitySnapshot | None:
        return self._points[-1] if self._points else None


def period_returns(points: Sequence[EquitySnapshot]) -> list[Decimal]:
    """Return between consecutive snapshots, skipping non-positive bases."""
    returns: list[Decimal] = []
    for previous, current in zip(points, points[1:]):
        if previous.equity > ZERO:
            returns.append(current.equity / previous.equity - 1)
    return returns


def max_drawdown(points: Iterable[EquitySnapshot]) -> Decimal:
    """Largest peak-to-trough decline as a fraction of the peak."""
    peak = ZERO
    worst = ZERO
    for point in points:
        peak = max(peak, point.equity)
        if peak > ZERO:
            worst = max(worst, (peak - point.equity) / peak)
    return worst


def with_drawdown(points: Iterable[EquitySnapshot]) -> list[dict[str, Any]]:
    """Annotate each point with the running peak and drawdown from it."""
    annotated: list[dict[str, Any]] = []
    peak = ZERO
    for point in points:
        peak = max(peak, point.equity)
        drawdown = (peak - point.equity) / peak if peak > ZERO else ZERO
        annotated.append(
            {
                "timestamp": point.timestamp,
                "equity": point.equity,
                "peak_equity": peak,
                "drawdown": drawdown,
            }
        )
    return annotated


def sample(
    points: Sequence[EquitySnapshot],
    max_points: int = 1000,
    keep_timestamps: Iterable[datetime] = (),
) -> list[EquitySnapshot]:
    """
    Downsample a curve for display.

    Keeps the first and last points, evenly spaced points in between, and
    every point whose timestamp is in keep_timestamps (e.g. trade times).
    """
    if max_points < 2:
        raise ValueError(f"max_points must be at least 2, got {max_points}")
    if len(points) <= max_points:
        return list(points)

    last_index = len(points) - 1
    indices = {round(i * last_index / (max_points - 1)) for i in range(max_points)}
    keep = set(keep_timestamps)
    if keep:
        indices.update(i for i, point in enumerate(points) if point.timestamp in keep)
    return [points[i] for i in sorted(indices)]


def to_json_format(points: Iterable[EquitySnapshot]) -> list[dict[str, Any]]:
    """Chart-friendly points: ISO timestamp and float value."""
    return [{"timestamp": p.timestamp.isoformat(), "value": float(p.equity)} for p in points]


def sampling_metadata(
    original_length: int, sampled_length: int, trade_points_included: int = 0
) -> dict[str, Any]:
    """Describe how a sampled curve relates to the full one."""
    return {
        "sampled": sampled_length < original_length,
        "sample_rate": round(sampled_length / original_length, 4) if original_length else 1.0,
        "original_length": original_length,
        "sampled_length": sampled_length,
        "trade_points_included": trade_points_included,
    }


def summary(points: Sequence[EquitySnapshot]) -> dict[str, Any]:
    """Start, end, peak and trough equity plus mean and volatility of period returns."""
    if not points:
        return {"total_points": 0}

    equities = [p.equity for p in points]
    returns = period_returns(points)
    return {
        "start_equity": equities[0],
        "end_equity": equities[-1],
        "peak_equity": max(equities),
        "trough_equity": min(equities),
        "total_points": len(points),
        "avg_period_return": statistics.mean(returns) if returns else None,
        "volatility": statistics.stdev(returns) if len(returns) > 1 else None,
    }
