import pytest

from targeting.application.metrics_service import (
    FLAG_SPOILED_RANGE,
    FLAG_TARGET_OVER_VALID,
    FLAG_TOTAL_OVER_VALID,
    FLAG_TURNOUT_RANGE,
    FLAG_VOTERS_ESTIMATED,
    child_options,
    compute_all_metrics,
    compute_seat_metrics,
    filter_metrics,
    get_latest_progress,
    parent_options,
)
from targeting.application.seat_service import build_seats
from targeting.domain.models import Assumptions, ProgressRow
from targeting.domain.recommendation import (
    ACTION_BASE_BUILDING,
    ACTION_BASE_GOTV,
    ACTION_MAINTAIN_MOMENTUM,
    ACTION_PERSUASION_GOTV,
    ACTION_REVIEW_DATA,
)


def test_end_to_end_funnel_targets(make_seat, progress, assumptions, thresholds):
    seat = make_seat(registered_voters=10000.0, last_opponent_top_votes=4000)
    metrics = compute_seat_metrics(seat, progress, assumptions, "base", thresholds)

    assert metrics.turnout == 0.6
    assert metrics.valid_votes == pytest.approx(5880)
    assert metrics.minimum_to_win == 4001
    assert metrics.buffer_votes == 176
    assert metrics.safe_target == 4177
    assert metrics.total_vote == 4700
    assert metrics.gap_to_safe_target == -523
    assert metrics.needed_gotv_to_close_gap == 0


def test_fixed_buffer_votes_used_verbatim(make_seat, thresholds):
    assumptions = Assumptions(turnout_scenario={"base": 0.6}, spoiled_rate=0.02, buffer_votes=500, buffer_rate=0.5)
    metrics = compute_seat_metrics(make_seat(), None, assumptions, "base", thresholds)
    assert metrics.buffer_votes == 500
    assert metrics.safe_target == 4501


def test_missing_progress_counts_as_zero(make_seat, assumptions, thresholds):
    metrics = compute_seat_metrics(make_seat(), None, assumptions, "base", thresholds)
    assert metrics.total_vote == 0
    assert metrics.gap_to_safe_target == metrics.safe_target
    assert metrics.needed_gotv_to_close_gap == metrics.safe_target
    assert metrics.progress.seat_id == "N.99"


def test_swing_figures(make_seat, assumptions, thresholds):
    metrics = compute_seat_metrics(make_seat(last_majority=301), None, assumptions, "base", thresholds)
    assert metrics.swing_minimum == 151
    assert metrics.swing_percent == pytest.approx(150.5 / metrics.valid_votes)


def test_unknown_scenario_gives_zero_turnout_without_raising(make_seat, assumptions, thresholds):
    metrics = compute_seat_metrics(make_seat(), None, assumptions, "tsunami", thresholds)
    assert metrics.turnout == 0
    assert metrics.valid_votes == 0
    assert metrics.swing_percent == 0
    assert metrics.margin_to_win_percent == 0
    assert FLAG_TARGET_OVER_VALID in metrics.flags


def test_attack_margin_for_trailing_party(make_seat, assumptions, thresholds):
    metrics = compute_seat_metrics(make_seat(winner_votes=5200, poi_votes=5000, poi_rank=2), None, assumptions, "base", thresholds)
    assert metrics.side == "attack"
    assert metrics.margin_to_win == 201
    assert metrics.buffer_to_lose == 0
    assert metrics.majority_votes == 0
    assert metrics.main_opponent_party == "WARISAN"


def test_defend_buffer_for_leading_party(make_seat, assumptions, thresholds):
    seat = make_seat(
        winner_party="BN",
        winner_votes=5300,
        runner_up_party="WARISAN",
        runner_up_votes=5000,
        poi_votes=5300,
        poi_rank=1,
    )
    metrics = compute_seat_metrics(seat, None, assumptions, "base", thresholds)
    assert metrics.side == "defend"
    assert metrics.margin_to_win == 0
    assert metrics.margin_to_win_percent == 0
    assert metrics.buffer_to_lose == 299
    assert metrics.majority_votes == 300
    assert metrics.majority_percent == pytest.approx(300 / metrics.valid_votes)
    assert metrics.tier == "high risk"
    assert metrics.main_opponent_party == "WARISAN"
    assert metrics.status_tag == "BN Menang (Defend)"


def test_unknown_rank_is_treated_as_attack(make_seat, assumptions, thresholds):
    metrics = compute_seat_metrics(make_seat(poi_rank=None, poi_votes=0), None, assumptions, "base", thresholds)
    assert metrics.side == "attack"
    assert metrics.margin_to_win == 5201


def test_every_data_quality_flag_fires_independently(make_seat, progress, thresholds):
    assumptions = Assumptions(turnout_scenario={"base": 1.2}, spoiled_rate=0.5, buffer_rate=0.0)
    seat = make_seat(registered_voters=1000.0, registered_voters_estimated=True)
    metrics = compute_seat_metrics(seat, progress, assumptions, "base", thresholds)
    assert metrics.flags == (
        FLAG_TURNOUT_RANGE,
        FLAG_SPOILED_RANGE,
        FLAG_TOTAL_OVER_VALID,
        FLAG_TARGET_OVER_VALID,
        FLAG_VOTERS_ESTIMATED,
    )
    assert metrics.recommended_action == ACTION_REVIEW_DATA


@pytest.mark.parametrize(
    "fields, expected",
    [
        ({"winner_votes": 4300, "poi_votes": 4000, "last_opponent_top_votes": 1000}, ACTION_PERSUASION_GOTV),
        ({"winner_votes": 9000, "poi_votes": 1000, "last_opponent_top_votes": 1000}, ACTION_BASE_BUILDING),
        (
            {"poi_rank": 1, "winner_votes": 3100, "poi_votes": 3100, "runner_up_votes": 3000, "last_opponent_top_votes": 3000},
            ACTION_BASE_GOTV,
        ),
        (
            {"poi_rank": 1, "winner_votes": 4000, "poi_votes": 4000, "runner_up_votes": 1000, "last_opponent_top_votes": 1000},
            ACTION_MAINTAIN_MOMENTUM,
        ),
    ],
)
def test_recommended_action_follows_side_and_tier(make_seat, assumptions, thresholds, fields, expected):
    metrics = compute_seat_metrics(make_seat(**fields), None, assumptions, "base", thresholds)
    assert metrics.flags == ()
    assert metrics.recommended_action == expected


def test_compute_is_idempotent(make_seat, progress, assumptions, thresholds):
    seat = make_seat()
    first = compute_seat_metrics(seat, progress, assumptions, "base", thresholds)
    second = compute_seat_metrics(seat, progress, assumptions, "base", thresholds)
    assert first == second


def test_latest_progress_keeps_newest_week():
    rows = [
        ProgressRow("2025-08-04", "N.01", base_votes=1),
        ProgressRow("2025-08-18", "N.01", base_votes=3),
        ProgressRow("2025-08-11", "N.01", base_votes=2),
        ProgressRow("2025-08-11", "N.02", base_votes=9),
        ProgressRow("2025-08-11", "N.02", base_votes=10),
    ]
    latest = get_latest_progress(rows)
    assert latest["N.01"].base_votes == 3
    assert latest["N.02"].base_votes == 9


def _all_metrics(tables, context, progress_rows=()):
    build = build_seats(
        tables["parents"],
        tables["children"],
        tables["winners"],
        seat_detail_rows=tables["details"],
        candidate_rows=tables["candidates"],
        context=context,
    )
    return build, compute_all_metrics(build.seats, get_latest_progress(progress_rows), context)


def test_parent_metrics_sum_child_progress(tables, context):
    progress_rows = [
        ProgressRow("2025-08-11", "N.01", 100, 10, 1, persuadables=5, conversion_rate=0.3),
        ProgressRow("2025-08-11", "N.02", 200, 20, 2, persuadables=6, conversion_rate=0.4),
    ]
    _, metrics = _all_metrics(tables, context, progress_rows)
    by_id = {metric.seat.seat_id: metric for metric in metrics}
    kudat = by_id["P.01"]
    assert kudat.progress.base_votes == 300
    assert kudat.progress.persuadables == 11
    assert kudat.progress.conversion_rate == 0
    assert kudat.progress.week_start == "2025-08-11"
    assert kudat.total_vote == 333
    assert [metric.seat.grain for metric in metrics[:2]] == ["parlimen", "parlimen"]


def test_parent_flags_union_child_flags(tables, context):
    _, metrics = _all_metrics(tables, context)
    by_id = {metric.seat.seat_id: metric for metric in metrics}
    assert FLAG_VOTERS_ESTIMATED in by_id["N.03"].flags
    assert FLAG_VOTERS_ESTIMATED in by_id["P.02"].flags
    assert by_id["P.02"].recommended_action == ACTION_REVIEW_DATA
    assert len(set(by_id["P.02"].flags)) == len(by_id["P.02"].flags)


def test_filters_and_options(tables, context):
    build, metrics = _all_metrics(tables, context)
    assert [metric.seat.seat_id for metric in filter_metrics(metrics, "dun", "P.01")] == ["N.01", "N.02"]
    assert [metric.seat.seat_id for metric in filter_metrics(metrics, "dun", "P.01", "N.02")] == ["N.02"]
    assert [metric.seat.seat_id for metric in filter_metrics(metrics, "parlimen")] == ["P.01", "P.02"]
    assert parent_options(build.seats) == [("P.01", "Kudat"), ("P.02", "Kota Belud")]
    assert child_options(build.seats, "P.01") == [("N.01", "Banggi"), ("N.02", "Bengkoka")]
