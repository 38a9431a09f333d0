"""Domain layer package."""

from .models import (
    Assumptions,
    CandidateAggregate,
    CandidateRow,
    ChildRow,
    GeographyRow,
    ProgressRow,
    Seat,
    SeatDetailRow,
    SeatMetrics,
    ThresholdConfig,
    TierThreshold,
    WinnerRow,
    to_number,
)
from .recommendation import get_attack_level, get_defend_risk_level, get_seat_action_notes, recommended_action

__all__ = [
    "Assumptions",
    "CandidateAggregate",
    "CandidateRow",
    "ChildRow",
    "GeographyRow",
    "ProgressRow",
    "Seat",
    "SeatDetailRow",
    "SeatMetrics",
    "ThresholdConfig",
    "TierThreshold",
    "WinnerRow",
    "to_number",
    "get_attack_level",
    "get_defend_risk_level",
    "get_seat_action_notes",
    "recommended_action",
]
