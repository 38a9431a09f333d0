"""Application service for per-seat KPI computation."""

from __future__ import annotations

import math
from dataclasses import replace
from typing import Iterable, Mapping, Sequence

from targeting.config import DEFAULT_PARTY_OF_INTEREST, EngineContext
from targeting.domain.models import Assumptions, Grain, ProgressRow, Seat, SeatMetrics, ThresholdConfig
from targeting.domain.recommendation import (
    get_attack_level,
    get_defend_risk_level,
    recommended_action,
    status_tag,
)
from targeting.domain.resolution import round_half_up

FLAG_TURNOUT_RANGE = "Turnout di luar julat 0 hingga 1"
FLAG_SPOILED_RANGE = "Undi rosak di luar julat 0 hingga 0.10"
FLAG_TOTAL_OVER_VALID = "Jumlah undi dijangka melebihi Undi Sah (Anggaran)"
FLAG_TARGET_OVER_VALID = "Sasaran Selamat (WVT) melebihi Undi Sah (Anggaran)"
FLAG_VOTERS_ESTIMATED = "Data pemilih DUN adalah anggaran"

MAX_SPOILED_RATE = 0.10


def _ratio(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return 0.0
    return numerator / denominator


def _data_quality_flags(
    seat: Seat,
    turnout: float,
    spoiled_rate: float,
    total_vote: float,
    safe_target: int,
    valid_votes: float,
) -> tuple[str, ...]:
    flags: list[str] = []
    if turnout < 0 or turnout > 1:
        flags.append(FLAG_TURNOUT_RANGE)
    if spoiled_rate < 0 or spoiled_rate > MAX_SPOILED_RATE:
        flags.append(FLAG_SPOILED_RANGE)
    if total_vote > valid_votes:
        flags.append(FLAG_TOTAL_OVER_VALID)
    if safe_target > valid_votes:
        flags.append(FLAG_TARGET_OVER_VALID)
    if seat.registered_voters_estimated:
        flags.append(FLAG_VOTERS_ESTIMATED)
    return tuple(flags)


def compute_seat_metrics(
    seat: Seat,
    progress: ProgressRow | None,
    assumptions: Assumptions,
    scenario: str,
    thresholds: ThresholdConfig,
    party_of_interest: str = DEFAULT_PARTY_OF_INTEREST,
) -> SeatMetrics:
    """Derive the funnel targets, margins, tier and recommended action for one seat.

    Pure: an unknown scenario gives turnout 0, a missing snapshot counts as
    zero progress and every ratio over zero valid votes is 0.
    """
    turnout = assumptions.turnout_scenario.get(scenario, 0.0)
    valid_votes = seat.registered_voters * turnout * (1 - assumptions.spoiled_rate)
    if assumptions.buffer_votes is not None:
        buffer_votes = assumptions.buffer_votes
    else:
        buffer_votes = round_half_up(valid_votes * (assumptions.buffer_rate or 0.0))
    minimum_to_win = seat.last_opponent_top_votes + 1
    safe_target = minimum_to_win + buffer_votes

    active = progress if progress is not None else ProgressRow.empty(seat.seat_id)
    banked = active.base_votes + active.persuasion_votes
    total_vote = banked + active.gotv_votes
    gap = safe_target - total_vote

    swing_minimum = math.floor(seat.last_majority / 2) + 1
    swing_percent = _ratio(seat.last_majority / 2, valid_votes)

    defending = seat.poi_leads
    if defending:
        margin_to_win = 0
        buffer_to_lose = max(0, seat.poi_votes - seat.runner_up_votes - 1)
        majority_votes = max(0, seat.winner_votes - seat.runner_up_votes)
        margin_to_win_percent = 0.0
    else:
        margin_to_win = max(0, seat.winner_votes - seat.poi_votes + 1)
        buffer_to_lose = 0
        majority_votes = 0
        margin_to_win_percent = _ratio(margin_to_win, valid_votes)
    majority_percent = _ratio(majority_votes, valid_votes)

    if defending:
        tier = get_defend_risk_level(majority_votes, majority_percent, thresholds)
    else:
        tier = get_attack_level(margin_to_win, margin_to_win_percent, thresholds)

    flags = _data_quality_flags(seat, turnout, assumptions.spoiled_rate, total_vote, safe_target, valid_votes)

    return SeatMetrics(
        seat=seat,
        progress=active,
        turnout=turnout,
        valid_votes=valid_votes,
        buffer_votes=buffer_votes,
        minimum_to_win=minimum_to_win,
        safe_target=safe_target,
        total_vote=total_vote,
        gap_to_safe_target=gap,
        swing_minimum=swing_minimum,
        swing_percent=swing_percent,
        needed_gotv_to_close_gap=max(0.0, gap - banked),
        margin_to_win=margin_to_win,
        buffer_to_lose=buffer_to_lose,
        margin_to_win_percent=margin_to_win_percent,
        majority_votes=majority_votes,
        majority_percent=majority_percent,
        side="defend" if defending else "attack",
        tier=tier,
        status_tag=status_tag(defending, tier, party_of_interest),
        main_opponent_party=seat.runner_up_party if defending else seat.winner_party,
        recommended_action=recommended_action(defending, tier, flags),
        flags=flags,
    )


def get_latest_progress(rows: Iterable[ProgressRow]) -> dict[str, ProgressRow]:
    """Keep the snapshot with the greatest week_start per seat; ties keep the first seen."""
    latest: dict[str, ProgressRow] = {}
    for row in rows:
        existing = latest.get(row.seat_id)
        if existing is None or row.week_start > existing.week_start:
            latest[row.seat_id] = row
    return latest


def _merged_progress(seat_id: str, children: Sequence[SeatMetrics]) -> ProgressRow:
    return ProgressRow(
        week_start=children[0].progress.week_start if children else "",
        seat_id=seat_id,
        base_votes=sum(item.progress.base_votes for item in children),
        persuasion_votes=sum(item.progress.persuasion_votes for item in children),
        gotv_votes=sum(item.progress.gotv_votes for item in children),
        persuadables=sum(item.progress.persuadables for item in children),
        conversion_rate=0.0,
    )


def _union(*groups: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(flag for group in groups for flag in group))


def compute_all_metrics(
    seats: Sequence[Seat],
    latest_progress: Mapping[str, ProgressRow],
    context: EngineContext,
) -> list[SeatMetrics]:
    """Compute child seats first, then roll their progress and flags into parents."""
    child_metrics = [
        compute_seat_metrics(
            seat,
            latest_progress.get(seat.seat_id),
            context.assumptions,
            context.scenario,
            context.thresholds,
            context.party_of_interest,
        )
        for seat in seats
        if seat.grain == "dun"
    ]

    by_parent: dict[str, list[SeatMetrics]] = {}
    for metric in child_metrics:
        by_parent.setdefault(metric.seat.parlimen_code, []).append(metric)

    parent_metrics: list[SeatMetrics] = []
    for seat in seats:
        if seat.grain != "parlimen":
            continue
        children = by_parent.get(seat.parlimen_code, [])
        metric = compute_seat_metrics(
            seat,
            _merged_progress(seat.seat_id, children),
            context.assumptions,
            context.scenario,
            context.thresholds,
            context.party_of_interest,
        )
        flags = _union(metric.flags, *(child.flags for child in children))
        if flags != metric.flags:
            metric = replace(
                metric,
                flags=flags,
                recommended_action=recommended_action(metric.side == "defend", metric.tier, flags),
            )
        parent_metrics.append(metric)

    return [*parent_metrics, *child_metrics]


def filter_metrics(
    metrics: Iterable[SeatMetrics],
    grain: Grain = "dun",
    parlimen_code: str | None = None,
    dun_code: str | None = None,
) -> list[SeatMetrics]:
    """Select metrics at one grain, optionally narrowed to a parent and a child code."""
    selected: list[SeatMetrics] = []
    for metric in metrics:
        if metric.seat.grain != grain:
            continue
        if parlimen_code and metric.seat.parlimen_code != parlimen_code:
            continue
        if grain == "dun" and dun_code and metric.seat.dun_code != dun_code:
            continue
        selected.append(metric)
    return selected


def parent_options(seats: Iterable[Seat]) -> list[tuple[str, str]]:
    options = {seat.parlimen_code: seat.parlimen_name for seat in seats if seat.grain == "parlimen"}
    return sorted(options.items())


def child_options(seats: Iterable[Seat], parlimen_code: str | None = None) -> list[tuple[str, str]]:
    options = {
        seat.seat_id: seat.dun_name or seat.seat_name
        for seat in seats
        if seat.grain == "dun" and (not parlimen_code or seat.parlimen_code == parlimen_code)
    }
    return sorted(options.items())
