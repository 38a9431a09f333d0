"""Infrastructure adapter that loads the source tables from a data directory."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from targeting.config import (
    ASSUMPTIONS_FILE,
    CANDIDATE_FILES,
    CHILD_FILE,
    DEFAULT_ASSUMPTIONS,
    DEFAULT_THRESHOLDS,
    PARENT_FILE,
    PROGRESS_FILE,
    SEAT_DETAIL_FILES,
    THRESHOLDS_FILE,
    WINNERS_FILE,
)
from targeting.domain.models import (
    Assumptions,
    CandidateRow,
    ChildRow,
    GeographyRow,
    ProgressRow,
    SeatDetailRow,
    ThresholdConfig,
    WinnerRow,
)
from targeting.ingestion import (
    Record,
    parse_assumptions,
    parse_candidates,
    parse_children,
    parse_geography,
    parse_progress,
    parse_seat_details,
    parse_thresholds,
    parse_winners,
    read_table,
)

logger = logging.getLogger(__name__)

TABLE_SUFFIXES: tuple[str, ...] = (".csv", ".xlsx", ".xlsm")


@dataclass(frozen=True)
class SourceTables:
    parents: list[GeographyRow]
    children: list[ChildRow]
    winners: list[WinnerRow]
    winners_source: str
    seat_details: list[SeatDetailRow] = field(default_factory=list)
    seat_details_source: str = ""
    candidates: list[CandidateRow] = field(default_factory=list)
    progress: list[ProgressRow] = field(default_factory=list)
    assumptions: Assumptions = DEFAULT_ASSUMPTIONS
    thresholds: ThresholdConfig = DEFAULT_THRESHOLDS


def _locate(data_dir: Path, file_name: str) -> Path | None:
    """Find a table by name, accepting an Excel copy under the same stem."""
    exact = data_dir / file_name
    if exact.exists():
        return exact
    stem = Path(file_name).stem
    for suffix in TABLE_SUFFIXES:
        candidate = data_dir / f"{stem}{suffix}"
        if candidate.exists():
            return candidate
    return None


def _read_required(data_dir: Path, file_name: str) -> tuple[list[Record], Path]:
    path = _locate(data_dir, file_name)
    if path is None:
        raise FileNotFoundError(f"Required table not found: {data_dir / file_name}")
    return read_table(path), path


def _read_first_available(data_dir: Path, file_names: Sequence[str]) -> tuple[list[Record], Path | None]:
    for file_name in file_names:
        path = _locate(data_dir, file_name)
        if path is not None:
            return read_table(path), path
    logger.warning("Optional table missing, continuing without it: %s", ", ".join(file_names))
    return [], None


def _read_json(path: Path) -> dict | None:
    if not path.exists():
        logger.warning("Optional config missing, using defaults: %s", path.name)
        return None
    loaded = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(loaded, dict):
        raise ValueError(f"Expected a JSON object in {path}")
    return loaded


def load_tables(data_dir: str | Path) -> SourceTables:
    """Load every source table; a missing geography or winners table raises FileNotFoundError."""
    root = Path(data_dir)
    parent_records, _ = _read_required(root, PARENT_FILE)
    child_records, _ = _read_required(root, CHILD_FILE)
    winner_records, winners_path = _read_required(root, WINNERS_FILE)

    detail_records, detail_path = _read_first_available(root, SEAT_DETAIL_FILES)
    candidate_records, _ = _read_first_available(root, CANDIDATE_FILES)
    progress_records, _ = _read_first_available(root, (PROGRESS_FILE,))

    raw_assumptions = _read_json(root / ASSUMPTIONS_FILE)
    raw_thresholds = _read_json(root / THRESHOLDS_FILE)

    return SourceTables(
        parents=parse_geography(parent_records),
        children=parse_children(child_records),
        winners=parse_winners(winner_records),
        winners_source=winners_path.name,
        seat_details=parse_seat_details(detail_records),
        seat_details_source=detail_path.name if detail_path is not None else "",
        candidates=parse_candidates(candidate_records),
        progress=parse_progress(progress_records),
        assumptions=parse_assumptions(raw_assumptions) if raw_assumptions is not None else DEFAULT_ASSUMPTIONS,
        thresholds=(
            parse_thresholds(raw_thresholds, fallback=DEFAULT_THRESHOLDS)
            if raw_thresholds is not None
            else DEFAULT_THRESHOLDS
        ),
    )
