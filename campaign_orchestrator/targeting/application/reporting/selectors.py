"""Seat selection and prioritization helpers."""

from __future__ import annotations

from typing import Iterable, List

from targeting.domain.models import SeatMetrics


def _child_metrics(metrics: Iterable[SeatMetrics]) -> List[SeatMetrics]:
    return [metric for metric in metrics if metric.seat.grain == "dun"]


def most_vulnerable_defence(metrics: Iterable[SeatMetrics]) -> SeatMetrics | None:
    defended = [metric for metric in _child_metrics(metrics) if metric.side == "defend"]
    return min(defended, key=lambda metric: (metric.buffer_to_lose, metric.seat.seat_id), default=None)


def nearest_target(metrics: Iterable[SeatMetrics]) -> SeatMetrics | None:
    attacked = [metric for metric in _child_metrics(metrics) if metric.side == "attack"]
    return min(attacked, key=lambda metric: (metric.margin_to_win, metric.seat.seat_id), default=None)


def lowest_turnout(metrics: Iterable[SeatMetrics]) -> SeatMetrics | None:
    known = [metric for metric in _child_metrics(metrics) if metric.seat.turnout_pct is not None]
    return min(known, key=lambda metric: (metric.seat.turnout_pct, metric.seat.seat_id), default=None)


def gotv_priority(metrics: Iterable[SeatMetrics], limit: int = 5) -> List[SeatMetrics]:
    """Child seats ordered by the GOTV volume still needed, largest first."""
    ordered = sorted(
        _child_metrics(metrics),
        key=lambda metric: (-metric.needed_gotv_to_close_gap, metric.seat.seat_id),
    )
    return ordered[:limit]


def tier_counts(metrics: Iterable[SeatMetrics]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for metric in _child_metrics(metrics):
        counts[metric.tier] = counts.get(metric.tier, 0) + 1
    return counts
