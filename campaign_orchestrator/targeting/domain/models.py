"""Domain models for seat baselines, canvassing progress and computed metrics.

"poi" throughout stands for the party of interest: the single party whose
defend/attack position the engine tracks.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Literal, Mapping

Grain = Literal["parlimen", "dun"]


def to_number(value: Any) -> float:
    """Lenient numeric parse.

    Missing, empty, non-numeric and non-finite values all coerce to 0.0.
    Never raises; bad numbers are caught later by data-quality flags.
    """
    if value is None or isinstance(value, bool):
        return float(value or 0)
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return 0.0
        return number if math.isfinite(number) else 0.0
    text = str(value).strip()
    if not text or "_" in text:
        return 0.0
    try:
        number = float(text)
    except ValueError:
        return 0.0
    return number if math.isfinite(number) else 0.0


def to_count(value: Any) -> int:
    """Lenient vote-count parse, truncated toward zero."""
    return int(to_number(value))


def to_optional_number(value: Any) -> float | None:
    """Like to_number, but absence stays None instead of becoming 0."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
        return number if math.isfinite(number) else None
    text = str(value).strip()
    if not text or "_" in text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _text(row: Mapping[str, Any], key: str) -> str:
    return str(row.get(key, "") or "").strip()


@dataclass(frozen=True)
class GeographyRow:
    """Parent region (parlimen) with its registered-voter roll."""

    parlimen_code: str
    parlimen_name: str
    registered_voters: float

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "GeographyRow":
        voters = row.get("jumlah_pemilih")
        if voters in (None, ""):
            voters = row.get("registered_voters")
        return cls(
            parlimen_code=_text(row, "parlimen_code"),
            parlimen_name=_text(row, "parlimen_name"),
            registered_voters=to_number(voters),
        )


@dataclass(frozen=True)
class ChildRow:
    parlimen_code: str
    parlimen_name: str
    dun_code: str
    dun_name: str

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ChildRow":
        return cls(
            parlimen_code=_text(row, "parlimen_code"),
            parlimen_name=_text(row, "parlimen_name"),
            dun_code=_text(row, "dun_code"),
            dun_name=_text(row, "dun_name"),
        )


@dataclass(frozen=True)
class WinnerRow:
    dun_code: str
    dun_name: str
    winner_name: str
    winner_party: str
    winner_votes: int

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "WinnerRow":
        return cls(
            dun_code=_text(row, "dun_code"),
            dun_name=_text(row, "dun_name"),
            winner_name=_text(row, "winner_name"),
            winner_party=_text(row, "winner_party"),
            winner_votes=to_count(row.get("winner_votes")),
        )


@dataclass(frozen=True)
class SeatDetailRow:
    dun_code: str
    dun_name: str
    registered_voters: float
    total_votes_cast: float
    turnout_pct: float
    majority_votes: float
    source: str = ""

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "SeatDetailRow":
        return cls(
            dun_code=_text(row, "dun_code"),
            dun_name=_text(row, "dun_name"),
            registered_voters=to_number(row.get("registered_voters")),
            total_votes_cast=to_number(row.get("total_votes_cast")),
            turnout_pct=to_number(row.get("turnout_pct")),
            majority_votes=to_number(row.get("majority_votes")),
            source=_text(row, "source"),
        )


@dataclass(frozen=True)
class CandidateRow:
    dun_code: str
    dun_name: str
    candidate_name: str
    party: str
    votes: int
    vote_share_pct: float = 0.0

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "CandidateRow":
        return cls(
            dun_code=_text(row, "dun_code"),
            dun_name=_text(row, "dun_name"),
            candidate_name=_text(row, "candidate_name"),
            party=_text(row, "party"),
            votes=to_count(row.get("votes")),
            vote_share_pct=to_number(row.get("vote_share_pct")),
        )


@dataclass(frozen=True)
class ProgressRow:
    """Weekly canvassing snapshot for one seat."""

    week_start: str
    seat_id: str
    base_votes: float = 0.0
    persuasion_votes: float = 0.0
    gotv_votes: float = 0.0
    persuadables: float = 0.0
    conversion_rate: float = 0.0

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ProgressRow":
        return cls(
            week_start=_text(row, "week_start"),
            seat_id=_text(row, "seat_id"),
            base_votes=to_number(row.get("base_votes")),
            persuasion_votes=to_number(row.get("persuasion_votes")),
            gotv_votes=to_number(row.get("gotv_votes")),
            persuadables=to_number(row.get("persuadables")),
            conversion_rate=to_number(row.get("conversion_rate")),
        )

    @classmethod
    def empty(cls, seat_id: str = "") -> "ProgressRow":
        return cls(week_start="", seat_id=seat_id)


@dataclass(frozen=True)
class Assumptions:
    turnout_scenario: Mapping[str, float]
    spoiled_rate: float
    buffer_votes: int | None = None
    buffer_rate: float | None = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Assumptions":
        scenarios = raw.get("turnout_scenario")
        if not isinstance(scenarios, Mapping):
            scenarios = {}
        buffer_votes = to_optional_number(raw.get("buffer_votes"))
        return cls(
            turnout_scenario={str(name): to_number(value) for name, value in scenarios.items()},
            spoiled_rate=to_number(raw.get("spoiled_rate")),
            buffer_votes=int(buffer_votes) if buffer_votes is not None else None,
            buffer_rate=to_optional_number(raw.get("buffer_rate")),
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "turnout_scenario": dict(self.turnout_scenario),
            "spoiled_rate": self.spoiled_rate,
        }
        if self.buffer_votes is not None:
            payload["buffer_votes"] = self.buffer_votes
        if self.buffer_rate is not None:
            payload["buffer_rate"] = self.buffer_rate
        return payload


@dataclass(frozen=True)
class TierThreshold:
    """One rung of a threshold ladder: either cutoff alone triggers the tier."""

    vote_threshold: float
    pct_threshold: float

    @classmethod
    def from_dict(cls, raw: Any, fallback: "TierThreshold | None" = None) -> "TierThreshold":
        if not isinstance(raw, Mapping):
            raw = {}
        vote = to_optional_number(raw.get("vote_threshold", raw.get("votes")))
        pct = to_optional_number(raw.get("pct_threshold", raw.get("pct")))
        if vote is None:
            vote = fallback.vote_threshold if fallback else 0.0
        if pct is None:
            pct = fallback.pct_threshold if fallback else 0.0
        return cls(vote_threshold=vote, pct_threshold=pct)


@dataclass(frozen=True)
class ThresholdConfig:
    attack_near: TierThreshold
    attack_medium: TierThreshold
    defend_high_risk: TierThreshold
    defend_medium_risk: TierThreshold

    @classmethod
    def from_dict(cls, raw: Any, fallback: "ThresholdConfig | None" = None) -> "ThresholdConfig":
        """Parse the nested attack/defend JSON shape; missing rungs come from fallback."""
        if not isinstance(raw, Mapping):
            raw = {}
        attack = raw.get("attack") if isinstance(raw.get("attack"), Mapping) else {}
        defend = raw.get("defend") if isinstance(raw.get("defend"), Mapping) else {}
        return cls(
            attack_near=TierThreshold.from_dict(attack.get("near"), fallback.attack_near if fallback else None),
            attack_medium=TierThreshold.from_dict(attack.get("medium"), fallback.attack_medium if fallback else None),
            defend_high_risk=TierThreshold.from_dict(
                defend.get("high_risk"), fallback.defend_high_risk if fallback else None
            ),
            defend_medium_risk=TierThreshold.from_dict(
                defend.get("medium_risk"), fallback.defend_medium_risk if fallback else None
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "attack": {"near": asdict(self.attack_near), "medium": asdict(self.attack_medium)},
            "defend": {"high_risk": asdict(self.defend_high_risk), "medium_risk": asdict(self.defend_medium_risk)},
        }


@dataclass(frozen=True)
class CandidateAggregate:
    dun_code: str
    num_candidates: int
    top_party: str
    top_votes: int
    runner_up_party: str
    runner_up_votes: int
    poi_votes: int | None
    poi_rank: int | None
    poi_margin_to_win: int | None
    poi_margin_defend: int | None


@dataclass(frozen=True)
class CandidateOverride:
    candidate_name: str
    party: str
    votes: int
    vote_share_pct: float | None = None


@dataclass(frozen=True)
class LocalOverrides:
    """User corrections keyed by seat code; sanitized by the overrides store."""

    version: int
    updated_at: str
    seat_details: Mapping[str, Mapping[str, float | None]] = field(default_factory=dict)
    candidates: Mapping[str, list[CandidateOverride]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "updatedAt": self.updated_at,
            "seatDetails": {code: dict(detail) for code, detail in self.seat_details.items()},
            "candidates": {code: [asdict(row) for row in rows] for code, rows in self.candidates.items()},
        }


@dataclass(frozen=True)
class Seat:
    """Unified seat entity, built per data load and never mutated."""

    seat_id: str
    seat_name: str
    state: str
    grain: Grain
    parlimen_code: str
    parlimen_name: str
    registered_voters: float
    registered_voters_estimated: bool
    last_opponent_top_votes: int
    last_majority: int
    corners: int
    winner_party: str
    winner_votes: int
    runner_up_party: str
    runner_up_votes: int
    poi_votes: int
    poi_rank: int | None
    dun_code: str | None = None
    dun_name: str | None = None
    winner_name: str | None = None
    parent_unknown: bool = False
    details_available: bool = False
    candidates_available: bool = False
    total_votes_cast: float | None = None
    turnout_pct: float | None = None
    majority_votes: float | None = None
    num_candidates: int = 0
    poi_margin_to_win: int | None = None
    poi_margin_defend: int | None = None

    @property
    def poi_leads(self) -> bool:
        return self.poi_rank == 1


@dataclass(frozen=True)
class SeatMetrics:
    seat: Seat
    progress: ProgressRow
    turnout: float
    valid_votes: float
    buffer_votes: int
    minimum_to_win: int
    safe_target: int
    total_vote: float
    gap_to_safe_target: float
    swing_minimum: int
    swing_percent: float
    needed_gotv_to_close_gap: float
    margin_to_win: int
    buffer_to_lose: int
    margin_to_win_percent: float
    majority_votes: int
    majority_percent: float
    side: Literal["attack", "defend"]
    tier: str
    status_tag: str
    main_opponent_party: str
    recommended_action: str
    flags: tuple[str, ...] = field(default_factory=tuple)

    def to_record(self) -> dict[str, Any]:
        """Flat row for tabular export."""
        record = {
            "seat_id": self.seat.seat_id,
            "seat_name": self.seat.seat_name,
            "grain": self.seat.grain,
            "parlimen_code": self.seat.parlimen_code,
            "dun_code": self.seat.dun_code,
            "winner_party": self.seat.winner_party,
            "poi_rank": self.seat.poi_rank,
            "week_start": self.progress.week_start,
        }
        for name in (
            "turnout",
            "valid_votes",
            "buffer_votes",
            "minimum_to_win",
            "safe_target",
            "total_vote",
            "gap_to_safe_target",
            "swing_minimum",
            "swing_percent",
            "needed_gotv_to_close_gap",
            "margin_to_win",
            "buffer_to_lose",
            "margin_to_win_percent",
            "majority_votes",
            "majority_percent",
            "side",
            "tier",
            "status_tag",
            "main_opponent_party",
            "recommended_action",
        ):
            record[name] = getattr(self, name)
        record["flags"] = "; ".join(self.flags)
        return record
