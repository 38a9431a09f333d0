"""Seat Targeting reporting pipeline."""

from __future__ import annotations

import logging
from pathlib import Path
from time import perf_counter
from typing import Any, Dict, List

import polars as pl

from targeting.application.analysis_service import AnalysisResult, run_targeting_analysis
from targeting.application.reporting.rendering import overall_comment, seat_brief, seat_notes
from targeting.application.reporting.selectors import (
    gotv_priority,
    lowest_turnout,
    most_vulnerable_defence,
    nearest_target,
    tier_counts,
)
from targeting.config import (
    OVERRIDES_FILE,
    SAVED_THRESHOLDS_FILE,
    EngineContext,
    context_from_env,
    data_dir_from_env,
    output_dir_from_env,
)
from targeting.domain.models import SeatMetrics
from targeting.domain.recommendation import action_label
from targeting.infrastructure.overrides_store import OverridesStore
from targeting.infrastructure.report_exporter import save_metrics_workbook, save_summary_json
from targeting.infrastructure.threshold_store import ThresholdStore

logger = logging.getLogger(__name__)

SEAT_COLUMNS: List[str] = [
    "seat_id",
    "seat_name",
    "grain",
    "state",
    "parlimen_code",
    "parlimen_name",
    "dun_code",
    "dun_name",
    "winner_name",
    "winner_party",
    "winner_votes",
    "runner_up_party",
    "runner_up_votes",
    "poi_votes",
    "poi_rank",
    "registered_voters",
    "registered_voters_estimated",
    "last_opponent_top_votes",
    "last_majority",
    "corners",
    "details_available",
    "candidates_available",
]


def _seat_brief_or_none(metric: SeatMetrics | None) -> Dict[str, Any] | None:
    if metric is None:
        return None
    return {"seat_id": metric.seat.seat_id, "seat_name": metric.seat.seat_name, "brief": seat_brief(metric)}


def build_summary(result: AnalysisResult) -> Dict[str, Any]:
    """JSON-ready overview of one analysis run."""
    context = result.context
    validation = result.validation
    child_metrics = [metric for metric in result.metrics if metric.seat.grain == "dun"]
    flagged = sum(1 for metric in child_metrics if metric.flags)

    return {
        "state": context.state,
        "party_of_interest": context.party_of_interest,
        "scenario": context.scenario,
        "assumptions": context.assumptions.to_dict(),
        "thresholds": context.thresholds.to_dict(),
        "validation": {
            "source_file": validation.source_file,
            "total_dun": validation.total_dun,
            "expected_total": validation.expected_total,
            "duplicate_dun_codes": validation.duplicate_dun_codes,
            "poi_wins": validation.poi_wins,
            "non_poi_wins": validation.non_poi_wins,
        },
        "coverage": {
            "seat_details": result.build.detail_coverage,
            "candidates": result.build.candidate_coverage,
            "unknown_parent_duns": result.build.unknown_parent_duns,
        },
        "warnings": result.warnings,
        "overall_comment": overall_comment(
            validation.total_dun, validation.poi_wins, context.party_of_interest, flagged
        ),
        "tier_counts": tier_counts(result.metrics),
        "highlights": {
            "most_vulnerable_defence": _seat_brief_or_none(most_vulnerable_defence(result.metrics)),
            "nearest_target": _seat_brief_or_none(nearest_target(result.metrics)),
            "lowest_turnout": _seat_brief_or_none(lowest_turnout(result.metrics)),
        },
        "gotv_priority": [
            {
                "seat_id": metric.seat.seat_id,
                "seat_name": metric.seat.seat_name,
                "needed_gotv_to_close_gap": metric.needed_gotv_to_close_gap,
                "notes": seat_notes(metric),
            }
            for metric in gotv_priority(result.metrics)
        ],
    }


def _seat_sheet_df(result: AnalysisResult) -> pl.DataFrame:
    rows = [{name: getattr(seat, name) for name in SEAT_COLUMNS} for seat in result.build.seats]
    if not rows:
        return pl.DataFrame({name: [] for name in SEAT_COLUMNS})
    return pl.DataFrame(rows, infer_schema_length=None)


def _metrics_sheet_df(metrics: List[SeatMetrics]) -> pl.DataFrame:
    rows = []
    for metric in metrics:
        record = metric.to_record()
        record["recommended_action_label"] = action_label(metric.recommended_action)
        record["notes"] = seat_notes(metric)
        rows.append(record)
    if not rows:
        return pl.DataFrame({"seat_id": []})
    return pl.DataFrame(rows, infer_schema_length=None)


def _warnings_sheet_df(warnings: List[str]) -> pl.DataFrame:
    return pl.DataFrame({"warning": warnings}, schema={"warning": pl.Utf8})


def build_sheets(result: AnalysisResult) -> Dict[str, pl.DataFrame]:
    return {
        "seats": _seat_sheet_df(result),
        "metrics": _metrics_sheet_df(result.metrics),
        "warnings": _warnings_sheet_df(result.warnings),
    }


def run_reporting_pipeline(project_root: Path | None = None, context: EngineContext | None = None) -> Dict[str, Any]:
    pipeline_start = perf_counter()
    stage_start = pipeline_start
    stage_timings: list[tuple[str, float]] = []

    def _mark(stage_name: str) -> None:
        nonlocal stage_start
        now = perf_counter()
        stage_timings.append((stage_name, now - stage_start))
        stage_start = now

    root = project_root or Path(__file__).resolve().parents[2]
    data_dir = data_dir_from_env(root)
    output_dir = output_dir_from_env(root)
    output_json_path = output_dir / "summary.json"
    output_excel_path = output_dir / "summary.xlsx"

    result = run_targeting_analysis(
        data_dir,
        context=context or context_from_env(),
        overrides_store=OverridesStore(output_dir / OVERRIDES_FILE),
        threshold_store=ThresholdStore(output_dir / SAVED_THRESHOLDS_FILE),
    )
    _mark("run_targeting_analysis")

    summary = build_summary(result)
    _mark("build_summary")

    save_summary_json(output_json_path, summary)
    _mark("save_json")

    excel_saved, excel_error_message = save_metrics_workbook(output_excel_path, build_sheets(result))
    _mark("save_excel")
    total_elapsed = perf_counter() - pipeline_start

    child_count = sum(1 for seat in result.build.seats if seat.grain == "dun")
    parent_count = len(result.build.seats) - child_count
    print(
        "Summary prepared: "
        f"dun={child_count}, "
        f"parlimen={parent_count}, "
        f"warnings={len(result.warnings)}"
    )
    stage_text = ", ".join([f"{name}={seconds:.3f}s" for name, seconds in stage_timings])
    print(f"Stage Timing: {stage_text}")
    print(f"Total Elapsed: {total_elapsed:.3f}s")
    print(f"Saved JSON: {output_json_path}")
    if excel_saved:
        print(f"Saved Excel: {output_excel_path}")
    else:
        print(f"Excel save skipped (file may be open/locked): {excel_error_message}")
    return summary
