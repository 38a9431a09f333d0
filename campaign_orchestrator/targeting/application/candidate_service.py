"""Application service for candidate-level seat aggregates."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

import polars as pl

from targeting.config import DEFAULT_PARTY_OF_INTEREST, UNKNOWN_PARTY
from targeting.domain.models import CandidateAggregate, CandidateRow


@dataclass(frozen=True)
class CandidateAggregation:
    grouped_candidates: dict[str, list[CandidateRow]]
    aggregates: dict[str, CandidateAggregate]


def safe_party(party: str | None) -> str:
    text = str(party or "").strip()
    return text if text else UNKNOWN_PARTY


def _candidate_frame(rows: Sequence[CandidateRow], party_of_interest: str) -> pl.DataFrame:
    frame = pl.DataFrame(
        {
            "dun_code": [row.dun_code for row in rows],
            "party": [safe_party(row.party) for row in rows],
            "votes": [row.votes for row in rows],
        },
        schema={"dun_code": pl.Utf8, "party": pl.Utf8, "votes": pl.Int64},
    )
    # Ordinal ranking keeps input order among tied vote counts.
    return frame.with_columns(
        pl.col("votes").rank("ordinal", descending=True).over("dun_code").cast(pl.Int64).alias("rank"),
        (pl.col("party").str.to_uppercase() == pl.lit(party_of_interest.upper())).alias("is_poi"),
    )


def _seat_summary(ranked: pl.DataFrame) -> pl.DataFrame:
    return ranked.group_by("dun_code", maintain_order=True).agg(
        pl.len().alias("num_candidates"),
        pl.col("votes").max().alias("top_votes"),
        pl.col("party").filter(pl.col("rank") == 1).first().alias("top_party"),
        pl.col("party").filter(pl.col("rank") == 2).first().alias("runner_up_party"),
        pl.col("votes").filter(pl.col("rank") == 2).first().alias("runner_up_votes"),
        pl.col("votes").filter(pl.col("is_poi")).max().alias("poi_votes"),
        pl.col("rank").filter(pl.col("is_poi")).min().alias("poi_rank"),
    )


def _to_aggregate(row: dict[str, Any]) -> CandidateAggregate:
    poi_rank = row.get("poi_rank")
    poi_votes = row.get("poi_votes")
    runner_up_votes = row.get("runner_up_votes")
    top_votes = int(row.get("top_votes") or 0)

    margin_to_win: int | None = None
    margin_defend: int | None = None
    if poi_rank is not None and poi_votes is not None:
        if poi_rank != 1:
            margin_to_win = max(0, top_votes - int(poi_votes) + 1)
        elif runner_up_votes is not None:
            margin_defend = max(0, int(poi_votes) - int(runner_up_votes))
        else:
            margin_defend = int(poi_votes)

    return CandidateAggregate(
        dun_code=str(row["dun_code"]),
        num_candidates=int(row["num_candidates"]),
        top_party=str(row.get("top_party") or UNKNOWN_PARTY),
        top_votes=top_votes,
        runner_up_party=str(row["runner_up_party"]) if row.get("runner_up_party") is not None else UNKNOWN_PARTY,
        runner_up_votes=int(runner_up_votes or 0),
        poi_votes=int(poi_votes) if poi_votes is not None else None,
        poi_rank=int(poi_rank) if poi_rank is not None else None,
        poi_margin_to_win=margin_to_win,
        poi_margin_defend=margin_defend,
    )


def aggregate_candidate_rows(
    rows: Sequence[CandidateRow],
    party_of_interest: str = DEFAULT_PARTY_OF_INTEREST,
) -> CandidateAggregation:
    """Group candidate rows by seat and derive runner-up and party-of-interest figures."""
    grouped: dict[str, list[CandidateRow]] = {}
    for row in rows:
        grouped.setdefault(row.dun_code, []).append(row)
    if not rows:
        return CandidateAggregation(grouped_candidates=grouped, aggregates={})

    summary = _seat_summary(_candidate_frame(rows, party_of_interest))
    aggregates = {str(row["dun_code"]): _to_aggregate(row) for row in summary.iter_rows(named=True)}
    return CandidateAggregation(grouped_candidates=grouped, aggregates=aggregates)
