"""Application service for the full seat targeting use case."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from targeting.application.baseline_service import BaselineValidation, validate_winners_rows
from targeting.application.metrics_service import compute_all_metrics, get_latest_progress
from targeting.application.seat_service import SeatBuildResult, build_seats
from targeting.config import EngineContext
from targeting.domain.models import SeatMetrics
from targeting.infrastructure.data_repository import SourceTables, load_tables
from targeting.infrastructure.overrides_store import OverridesStore
from targeting.infrastructure.threshold_store import ThresholdStore

logger = logging.getLogger(__name__)

LOAD_FAILURE_MESSAGE = "Gagal memuatkan data. Semak fail sumber dan cuba lagi."


class DataLoadError(RuntimeError):
    """Raised when a required source table cannot be read at all."""


@dataclass(frozen=True)
class AnalysisResult:
    context: EngineContext
    tables: SourceTables
    build: SeatBuildResult
    validation: BaselineValidation
    metrics: list[SeatMetrics]
    warnings: list[str]


def analyze_tables(
    tables: SourceTables,
    context: EngineContext,
    overrides_store: OverridesStore | None = None,
) -> AnalysisResult:
    """Validate, build seats and compute metrics from already-loaded tables."""
    overrides = overrides_store.load() if overrides_store is not None else None
    validation = validate_winners_rows(
        tables.winners,
        tables.winners_source,
        expected_total=context.expected_total,
        party_of_interest=context.party_of_interest,
    )
    build = build_seats(
        tables.parents,
        tables.children,
        tables.winners,
        seat_detail_rows=tables.seat_details,
        candidate_rows=tables.candidates,
        overrides=overrides,
        context=context,
    )

    warnings = list(validation.warnings)
    if build.duplicate_details:
        source = tables.seat_details_source or "seat details"
        warnings.append(f"Kod DUN berganda dalam {source}: {', '.join(build.duplicate_details)}.")
    for warning in warnings:
        logger.warning(warning)

    metrics = compute_all_metrics(build.seats, get_latest_progress(tables.progress), context)
    return AnalysisResult(
        context=context,
        tables=tables,
        build=build,
        validation=validation,
        metrics=metrics,
        warnings=warnings,
    )


def run_targeting_analysis(
    data_dir: str | Path,
    context: EngineContext | None = None,
    overrides_store: OverridesStore | None = None,
    threshold_store: ThresholdStore | None = None,
) -> AnalysisResult:
    """Load tables, apply saved thresholds and overrides, then analyze every seat."""
    base_context = context or EngineContext()
    try:
        tables = load_tables(data_dir)
    except (OSError, ValueError) as exc:
        logger.error("Data load failed for %s: %s", data_dir, exc)
        raise DataLoadError(LOAD_FAILURE_MESSAGE) from exc

    saved_thresholds = threshold_store.load() if threshold_store is not None else None
    active = base_context.with_inputs(
        assumptions=tables.assumptions,
        thresholds=saved_thresholds or tables.thresholds,
    )
    return analyze_tables(tables, active, overrides_store=overrides_store)
