"""Text rendering helpers for the seat summary."""

from __future__ import annotations

from typing import List

from targeting.application.reporting.metrics import fmt_pct, fmt_votes, fmt_votes_signed
from targeting.domain.models import SeatMetrics
from targeting.domain.recommendation import action_label, get_seat_action_notes


def overall_comment(total_dun: int, poi_wins: int, party_of_interest: str, flagged: int) -> str:
    targets = total_dun - poi_wins
    text = (
        f"{total_dun} kerusi DUN: {party_of_interest} menang {poi_wins} (perlu kekalkan), "
        f"{targets} kerusi sasaran (perlu yakinkan)."
    )
    if flagged:
        text += f" {flagged} kerusi ada amaran data."
    return text


def seat_brief(metric: SeatMetrics) -> str:
    seat = metric.seat
    if metric.side == "defend":
        position = f"majoriti {fmt_votes(metric.majority_votes)} ({fmt_pct(metric.majority_percent)})"
    else:
        position = f"perlu {fmt_votes(metric.margin_to_win)} undi lagi ({fmt_pct(metric.margin_to_win_percent)})"
    return (
        f"{seat.seat_name}: {metric.status_tag}, {position}, "
        f"jurang WVT {fmt_votes_signed(metric.gap_to_safe_target)}. {action_label(metric.recommended_action)}"
    )


def seat_notes(metric: SeatMetrics) -> str:
    notes: List[str] = get_seat_action_notes(metric)
    return " | ".join(notes)
