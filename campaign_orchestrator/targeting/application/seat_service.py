"""Application service that fuses source tables into unified Seat entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

import polars as pl

from targeting.application.baseline_service import duplicate_codes
from targeting.application.candidate_service import aggregate_candidate_rows
from targeting.config import (
    COMBINED_OPPONENT_LABEL,
    PARENT_CORNERS,
    UNKNOWN_PARENT_CODE,
    UNKNOWN_PARENT_NAME,
    UNKNOWN_PARTY,
    EngineContext,
)
from targeting.domain.models import (
    CandidateAggregate,
    CandidateRow,
    ChildRow,
    GeographyRow,
    LocalOverrides,
    Seat,
    SeatDetailRow,
    WinnerRow,
)
from targeting.domain.resolution import (
    estimate_child_voters,
    estimate_majority,
    estimate_opponent_votes,
    resolve_field,
)


@dataclass(frozen=True)
class SeatBuildResult:
    seats: list[Seat]
    candidates_by_dun: dict[str, list[CandidateRow]]
    detail_coverage: int
    candidate_coverage: int
    duplicate_details: list[str]
    unknown_parent_duns: list[str] = field(default_factory=list)

    @property
    def child_seats(self) -> list[Seat]:
        return [seat for seat in self.seats if seat.grain == "dun"]

    @property
    def parent_seats(self) -> list[Seat]:
        return [seat for seat in self.seats if seat.grain == "parlimen"]


def _merge_candidates(
    candidate_rows: Sequence[CandidateRow],
    overrides: LocalOverrides | None,
    child_by_code: Mapping[str, ChildRow],
) -> list[CandidateRow]:
    """A local candidate list replaces every parsed row for that seat."""
    merged: dict[str, list[CandidateRow]] = {}
    for row in candidate_rows:
        merged.setdefault(row.dun_code, []).append(row)

    if overrides is not None:
        for dun_code, rows in overrides.candidates.items():
            child = child_by_code.get(dun_code)
            dun_name = child.dun_name if child is not None else ""
            merged[dun_code] = [
                CandidateRow(
                    dun_code=dun_code,
                    dun_name=dun_name,
                    candidate_name=row.candidate_name,
                    party=row.party,
                    votes=row.votes,
                    vote_share_pct=row.vote_share_pct or 0.0,
                )
                for row in rows
            ]
    return [row for rows in merged.values() for row in rows]


def _has_override(override: Mapping[str, Any] | None) -> bool:
    return override is not None and any(value is not None for value in override.values())


def _top_opponent_votes(
    winner: WinnerRow,
    aggregate: CandidateAggregate | None,
    registered_voters: float,
    party_of_interest: str,
) -> int:
    if aggregate is not None:
        if aggregate.poi_rank == 1:
            return aggregate.runner_up_votes
        return aggregate.top_votes
    if winner.winner_party == party_of_interest:
        return estimate_opponent_votes(registered_voters)
    return winner.winner_votes


def _build_child_seat(
    winner: WinnerRow,
    child: ChildRow | None,
    parent: GeographyRow | None,
    sibling_count: int,
    detail: SeatDetailRow | None,
    override: Mapping[str, Any] | None,
    aggregate: CandidateAggregate | None,
    has_candidates: bool,
    context: EngineContext,
) -> Seat:
    poi = context.party_of_interest
    estimated_voters = estimate_child_voters(parent.registered_voters if parent else 0.0, sibling_count)

    voters = resolve_field("registered_voters", override, detail, estimate=estimated_voters)
    total_votes_cast = resolve_field("total_votes_cast", override, detail)
    turnout_pct = resolve_field("turnout_pct", override, detail)
    majority = resolve_field("majority_votes", override, detail)
    registered_voters = voters.value if voters is not None else 0.0

    if aggregate is not None and aggregate.poi_votes is not None:
        poi_votes = aggregate.poi_votes
    else:
        poi_votes = winner.winner_votes if winner.winner_party == poi else 0
    if aggregate is not None and aggregate.poi_rank is not None:
        poi_rank: int | None = aggregate.poi_rank
    else:
        # Without candidate rows a losing rank cannot be known.
        poi_rank = 1 if winner.winner_party == poi else None

    parent_unknown = child is None or parent is None
    if child is not None and parent is not None:
        parlimen_code = child.parlimen_code
        parlimen_name = child.parlimen_name or parent.parlimen_name
    else:
        parlimen_code = UNKNOWN_PARENT_CODE
        parlimen_name = UNKNOWN_PARENT_NAME

    num_candidates = aggregate.num_candidates if aggregate is not None else 0
    return Seat(
        seat_id=winner.dun_code,
        seat_name=f"{winner.dun_code} {winner.dun_name}",
        state=context.state,
        grain="dun",
        parlimen_code=parlimen_code,
        parlimen_name=parlimen_name,
        dun_code=winner.dun_code,
        dun_name=winner.dun_name,
        winner_name=winner.winner_name,
        parent_unknown=parent_unknown,
        registered_voters=registered_voters,
        registered_voters_estimated=voters is None or voters.estimated,
        last_opponent_top_votes=_top_opponent_votes(winner, aggregate, registered_voters, poi),
        last_majority=int(majority.value) if majority is not None else estimate_majority(registered_voters),
        corners=num_candidates,
        winner_party=winner.winner_party,
        winner_votes=winner.winner_votes,
        runner_up_party=aggregate.runner_up_party if aggregate is not None else UNKNOWN_PARTY,
        runner_up_votes=aggregate.runner_up_votes if aggregate is not None else 0,
        poi_votes=poi_votes,
        poi_rank=poi_rank,
        details_available=detail is not None or _has_override(override),
        candidates_available=has_candidates,
        total_votes_cast=total_votes_cast.value if total_votes_cast is not None else None,
        turnout_pct=turnout_pct.value if turnout_pct is not None else None,
        majority_votes=majority.value if majority is not None else None,
        num_candidates=num_candidates,
        poi_margin_to_win=aggregate.poi_margin_to_win if aggregate is not None else None,
        poi_margin_defend=aggregate.poi_margin_defend if aggregate is not None else None,
    )


def _child_frame(child_seats: Sequence[Seat]) -> pl.DataFrame:
    return pl.DataFrame(
        {
            "parlimen_code": [seat.parlimen_code for seat in child_seats],
            "winner_party": [seat.winner_party for seat in child_seats],
            "winner_votes": [seat.winner_votes for seat in child_seats],
            "poi_votes": [seat.poi_votes for seat in child_seats],
        },
        schema={"parlimen_code": pl.Utf8, "winner_party": pl.Utf8, "winner_votes": pl.Int64, "poi_votes": pl.Int64},
    )


def _party_totals_by_parent(frame: pl.DataFrame, party_of_interest: str) -> dict[str, list[tuple[str, int]]]:
    totals: dict[str, list[tuple[str, int]]] = {}
    if frame.is_empty():
        return totals
    summed = (
        frame.filter(pl.col("winner_party") != pl.lit(party_of_interest))
        .group_by(["parlimen_code", "winner_party"], maintain_order=True)
        .agg(pl.col("winner_votes").sum().alias("party_votes"))
    )
    for row in summed.iter_rows(named=True):
        totals.setdefault(row["parlimen_code"], []).append((row["winner_party"], int(row["party_votes"])))
    return totals


def _poi_totals_by_parent(frame: pl.DataFrame) -> dict[str, int]:
    if frame.is_empty():
        return {}
    summed = frame.group_by("parlimen_code", maintain_order=True).agg(pl.col("poi_votes").sum())
    return {row["parlimen_code"]: int(row["poi_votes"]) for row in summed.iter_rows(named=True)}


def _build_parent_seat(
    parlimen_code: str,
    parent: GeographyRow | None,
    opponent_totals: list[tuple[str, int]],
    poi_total: int,
    context: EngineContext,
) -> Seat:
    poi = context.party_of_interest
    registered_voters = parent.registered_voters if parent is not None else 0.0
    parlimen_name = parent.parlimen_name if parent is not None else UNKNOWN_PARENT_NAME

    # Stable descending sort; the party of interest is listed first so it wins ties.
    ranked_opponents = sorted(opponent_totals, key=lambda item: -item[1])
    opponent_party, opponent_votes = ranked_opponents[0] if ranked_opponents else (COMBINED_OPPONENT_LABEL, 0)
    contenders = sorted([(poi, poi_total), *ranked_opponents], key=lambda item: -item[1])
    winner_party, winner_votes = contenders[0]
    poi_rank = 1 if poi_total >= winner_votes else 2
    poi_won = poi_rank == 1

    gap = abs(poi_total - opponent_votes)
    return Seat(
        seat_id=parlimen_code,
        seat_name=f"{parlimen_code} {parlimen_name}",
        state=context.state,
        grain="parlimen",
        parlimen_code=parlimen_code,
        parlimen_name=parlimen_name,
        parent_unknown=parent is None,
        registered_voters=registered_voters,
        registered_voters_estimated=parent is None,
        last_opponent_top_votes=opponent_votes or estimate_opponent_votes(registered_voters),
        last_majority=gap or estimate_majority(registered_voters),
        corners=PARENT_CORNERS,
        winner_party=poi if poi_won else winner_party,
        winner_votes=poi_total if poi_won else winner_votes,
        runner_up_party=opponent_party if poi_won else poi,
        runner_up_votes=opponent_votes if poi_won else poi_total,
        poi_votes=poi_total,
        poi_rank=poi_rank,
    )


def build_seats(
    parent_rows: Sequence[GeographyRow],
    child_rows: Sequence[ChildRow],
    winner_rows: Sequence[WinnerRow],
    seat_detail_rows: Sequence[SeatDetailRow] = (),
    candidate_rows: Sequence[CandidateRow] = (),
    overrides: LocalOverrides | None = None,
    context: EngineContext | None = None,
) -> SeatBuildResult:
    """Build one child seat per winners row plus one rolled-up seat per parent code.

    Geography, details and candidates are left-joined onto the winners table,
    so missing enrichment never drops a seat.
    """
    context = context or EngineContext()
    children_by_parent: dict[str, list[ChildRow]] = {}
    for row in child_rows:
        children_by_parent.setdefault(row.parlimen_code, []).append(row)
    child_by_code = {row.dun_code: row for row in child_rows}
    parent_by_code = {row.parlimen_code: row for row in parent_rows}

    details_by_dun: dict[str, SeatDetailRow] = {}
    for row in seat_detail_rows:
        details_by_dun.setdefault(row.dun_code, row)
    # The long candidate file repeats identical detail rows; only conflicting rows count.
    duplicate_details = duplicate_codes([row.dun_code for row in dict.fromkeys(seat_detail_rows)])

    seat_overrides = overrides.seat_details if overrides is not None else {}
    merged_candidates = _merge_candidates(candidate_rows, overrides, child_by_code)
    aggregation = aggregate_candidate_rows(merged_candidates, party_of_interest=context.party_of_interest)

    child_seats: list[Seat] = []
    for winner in winner_rows:
        child = child_by_code.get(winner.dun_code)
        parent = parent_by_code.get(child.parlimen_code) if child is not None else None
        siblings = children_by_parent.get(child.parlimen_code, []) if child is not None else []
        child_seats.append(
            _build_child_seat(
                winner,
                child=child,
                parent=parent,
                sibling_count=len(siblings),
                detail=details_by_dun.get(winner.dun_code),
                override=seat_overrides.get(winner.dun_code),
                aggregate=aggregation.aggregates.get(winner.dun_code),
                has_candidates=winner.dun_code in aggregation.grouped_candidates,
                context=context,
            )
        )

    parent_codes: list[str] = []
    for code in [row.parlimen_code for row in parent_rows] + [seat.parlimen_code for seat in child_seats]:
        if code not in parent_codes:
            parent_codes.append(code)

    frame = _child_frame(child_seats)
    opponent_totals = _party_totals_by_parent(frame, context.party_of_interest)
    poi_totals = _poi_totals_by_parent(frame)
    parent_seats = [
        _build_parent_seat(
            code,
            parent=parent_by_code.get(code),
            opponent_totals=opponent_totals.get(code, []),
            poi_total=poi_totals.get(code, 0),
            context=context,
        )
        for code in parent_codes
    ]

    return SeatBuildResult(
        seats=[*parent_seats, *child_seats],
        candidates_by_dun=aggregation.grouped_candidates,
        detail_coverage=sum(1 for seat in child_seats if seat.details_available),
        candidate_coverage=sum(1 for seat in child_seats if seat.candidates_available),
        duplicate_details=duplicate_details,
        unknown_parent_duns=[seat.seat_id for seat in child_seats if seat.parent_unknown],
    )
