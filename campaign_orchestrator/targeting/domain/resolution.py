"""Field precedence resolvers: local override, then enrichment, then estimate."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping

from targeting.domain.models import SeatDetailRow

SEAT_DETAIL_FIELDS: tuple[str, ...] = ("registered_voters", "total_votes_cast", "turnout_pct", "majority_votes")

OPPONENT_SHARE_ESTIMATE = 0.34
MAJORITY_SHARE_ESTIMATE = 0.04
MAJORITY_FLOOR_ESTIMATE = 300


@dataclass(frozen=True)
class Resolved:
    value: float
    source: str

    @property
    def estimated(self) -> bool:
        return self.source == "estimate"


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def estimate_opponent_votes(registered_voters: float) -> int:
    return round_half_up(registered_voters * OPPONENT_SHARE_ESTIMATE)


def estimate_majority(registered_voters: float) -> int:
    return max(MAJORITY_FLOOR_ESTIMATE, round_half_up(registered_voters * MAJORITY_SHARE_ESTIMATE))


def estimate_child_voters(parent_voters: float, child_count: int) -> float:
    if child_count <= 0:
        return 0.0
    return parent_voters / child_count


def resolve_field(
    name: str,
    override: Mapping[str, Any] | None,
    detail: SeatDetailRow | None,
    estimate: float | None = None,
) -> Resolved | None:
    """Resolve one seat-detail figure by precedence.

    Returns None when no layer supplies the field and no estimate is given.
    """
    if override is not None and override.get(name) is not None:
        return Resolved(value=float(override[name]), source="local")
    if detail is not None:
        return Resolved(value=float(getattr(detail, name)), source="detail")
    if estimate is not None:
        return Resolved(value=float(estimate), source="estimate")
    return None
