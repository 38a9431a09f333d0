"""Runtime configuration and immutable defaults for seat targeting."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

from targeting.domain.models import Assumptions, ThresholdConfig

STATE_NAME = "Sabah"
DEFAULT_PARTY_OF_INTEREST = "BN"
DEFAULT_EXPECTED_TOTAL = 73
DEFAULT_SCENARIO = "base"

UNKNOWN_PARENT_CODE = "parlimen_unknown"
UNKNOWN_PARENT_NAME = "Parlimen Tidak Diketahui"
UNKNOWN_PARTY = "Tidak diketahui"
COMBINED_OPPONENT_LABEL = "Gabungan lawan"
PARENT_CORNERS = 3

WINNERS_FILE = "prn_sabah_2025_winners.csv"
PARENT_FILE = "parlimen_sabah.csv"
CHILD_FILE = "dun_sabah.csv"
SEAT_DETAIL_FILES: tuple[str, ...] = (
    "seat_details_enriched_with_candidates.csv",
    "seat_details_enriched_v3.csv",
)
CANDIDATE_FILES: tuple[str, ...] = (
    "seat_details_enriched_with_candidates.csv",
    "seat_details_enriched_with_candidates_v2.csv",
)
PROGRESS_FILE = "progress_weekly.csv"
ASSUMPTIONS_FILE = "assumptions.json"
THRESHOLDS_FILE = "thresholds.json"
OVERRIDES_FILE = "local_overrides.json"
SAVED_THRESHOLDS_FILE = "saved_thresholds.json"

DEFAULT_ASSUMPTIONS = Assumptions(
    turnout_scenario={"low": 0.55, "base": 0.65, "high": 0.75},
    spoiled_rate=0.02,
    buffer_votes=None,
    buffer_rate=0.02,
)

DEFAULT_THRESHOLDS = ThresholdConfig.from_dict(
    {
        "attack": {
            "near": {"vote_threshold": 500, "pct_threshold": 0.02},
            "medium": {"vote_threshold": 1500, "pct_threshold": 0.05},
        },
        "defend": {
            "high_risk": {"vote_threshold": 500, "pct_threshold": 0.02},
            "medium_risk": {"vote_threshold": 1500, "pct_threshold": 0.05},
        },
    }
)


def _env_text(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def _parse_expected_total(raw: str | None = None) -> int:
    if raw is None:
        raw = os.getenv("TARGETING_EXPECTED_TOTAL", str(DEFAULT_EXPECTED_TOTAL))
    try:
        total = int(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid TARGETING_EXPECTED_TOTAL: {raw}") from exc
    if total <= 0:
        raise ValueError(f"TARGETING_EXPECTED_TOTAL must be positive, got {total}")
    return total


@dataclass(frozen=True)
class EngineContext:
    """Everything the builder and metrics engine need besides the data itself."""

    party_of_interest: str = DEFAULT_PARTY_OF_INTEREST
    expected_total: int = DEFAULT_EXPECTED_TOTAL
    state: str = STATE_NAME
    scenario: str = DEFAULT_SCENARIO
    assumptions: Assumptions = field(default_factory=lambda: DEFAULT_ASSUMPTIONS)
    thresholds: ThresholdConfig = field(default_factory=lambda: DEFAULT_THRESHOLDS)

    def with_inputs(
        self,
        assumptions: Assumptions | None = None,
        thresholds: ThresholdConfig | None = None,
        scenario: str | None = None,
    ) -> "EngineContext":
        changes: dict[str, Any] = {}
        if assumptions is not None:
            changes["assumptions"] = assumptions
        if thresholds is not None:
            changes["thresholds"] = thresholds
        if scenario is not None:
            changes["scenario"] = scenario
        return replace(self, **changes)


def context_from_env(overrides: Mapping[str, Any] | None = None) -> EngineContext:
    """Build an EngineContext from TARGETING_* environment variables."""
    values = dict(overrides or {})
    return EngineContext(
        party_of_interest=values.get(
            "party_of_interest",
            _env_text("TARGETING_PARTY_OF_INTEREST", DEFAULT_PARTY_OF_INTEREST).upper(),
        ),
        expected_total=values.get("expected_total", _parse_expected_total()),
        scenario=values.get("scenario", _env_text("TARGETING_SCENARIO", DEFAULT_SCENARIO)),
    )


def data_dir_from_env(project_root: Path) -> Path:
    raw = os.getenv("TARGETING_DATA_DIR")
    return Path(raw) if raw else project_root / "data"


def output_dir_from_env(project_root: Path) -> Path:
    raw = os.getenv("TARGETING_OUTPUT_DIR")
    return Path(raw) if raw else project_root / "output"
