import json

import pytest

from targeting.config import EngineContext
from targeting.domain.models import Assumptions, ProgressRow, Seat, ThresholdConfig
from targeting.ingestion import (
    parse_candidates,
    parse_children,
    parse_delimited_text,
    parse_geography,
    parse_seat_details,
    parse_winners,
)

PARENT_CSV = """parlimen_code,parlimen_name,jumlah_pemilih
P.01,Kudat,30000
P.02,Kota Belud,20000
"""

CHILD_CSV = """parlimen_code,parlimen_name,dun_code,dun_name
P.01,Kudat,N.01,Banggi
P.01,Kudat,N.02,Bengkoka
P.02,Kota Belud,N.03,Tempasuk
"""

WINNERS_CSV = """dun_code,dun_name,winner_name,winner_party,winner_votes
N.01,Banggi,Ali,BN,5300
N.02,Bengkoka,Bakar,WARISAN,5200
N.03,Tempasuk,Chong,GRS,4000
"""

DETAILS_CSV = """dun_code,dun_name,registered_voters,total_votes_cast,turnout_pct,majority_votes,source,candidate_name,party,votes,vote_share_pct
N.01,Banggi,10000,7000,70,300,spr,Ali,BN,5300,52.0
N.01,Banggi,10000,7000,70,300,spr,Dayang,WARISAN,5000,46.0
N.01,Banggi,10000,7000,70,300,spr,Esah,IND,200,2.0
N.02,Bengkoka,9000,6000,66.7,200,spr,Bakar,WARISAN,5200,46.0
N.02,Bengkoka,9000,6000,66.7,200,spr,Fuad,BN,5000,44.0
N.02,Bengkoka,9000,6000,66.7,200,spr,Gani,GRS,1000,10.0
"""

PROGRESS_CSV = """week_start,seat_id,base_votes,persuasion_votes,gotv_votes,persuadables,conversion_rate
2025-08-04,N.01,3000,500,200,900,0.1
2025-08-11,N.01,3500,800,400,1000,0.2
2025-08-11,N.02,2000,600,100,700,0.1
"""

ASSUMPTIONS = {
    "turnout_scenario": {"low": 0.55, "base": 0.6, "high": 0.75},
    "spoiled_rate": 0.02,
    "buffer_rate": 0.03,
}

THRESHOLDS = {
    "attack": {
        "near": {"vote_threshold": 500, "pct_threshold": 0.02},
        "medium": {"vote_threshold": 1500, "pct_threshold": 0.05},
    },
    "defend": {
        "high_risk": {"vote_threshold": 500, "pct_threshold": 0.02},
        "medium_risk": {"vote_threshold": 1500, "pct_threshold": 0.05},
    },
}


@pytest.fixture
def thresholds():
    return ThresholdConfig.from_dict(THRESHOLDS)


@pytest.fixture
def assumptions():
    return Assumptions.from_dict(ASSUMPTIONS)


@pytest.fixture
def context(assumptions, thresholds):
    return EngineContext(expected_total=3, assumptions=assumptions, thresholds=thresholds)


@pytest.fixture
def tables():
    """Parsed rows for two parlimen seats and three DUN seats."""
    details = parse_delimited_text(DETAILS_CSV)
    return {
        "parents": parse_geography(parse_delimited_text(PARENT_CSV)),
        "children": parse_children(parse_delimited_text(CHILD_CSV)),
        "winners": parse_winners(parse_delimited_text(WINNERS_CSV)),
        "details": parse_seat_details(details),
        "candidates": parse_candidates(details),
    }


@pytest.fixture
def data_dir(tmp_path):
    """A data directory laid out the way the loader expects."""
    root = tmp_path / "data"
    root.mkdir()
    (root / "parlimen_sabah.csv").write_text(PARENT_CSV, encoding="utf-8")
    (root / "dun_sabah.csv").write_text(CHILD_CSV, encoding="utf-8")
    (root / "prn_sabah_2025_winners.csv").write_text(WINNERS_CSV, encoding="utf-8")
    (root / "seat_details_enriched_with_candidates.csv").write_text(DETAILS_CSV, encoding="utf-8")
    (root / "progress_weekly.csv").write_text(PROGRESS_CSV, encoding="utf-8")
    (root / "assumptions.json").write_text(json.dumps(ASSUMPTIONS), encoding="utf-8")
    (root / "thresholds.json").write_text(json.dumps(THRESHOLDS), encoding="utf-8")
    return root


@pytest.fixture
def make_seat():
    """Factory for a DUN seat with sensible defaults."""

    def _make(**fields):
        values = {
            "seat_id": "N.99",
            "seat_name": "N.99 Contoh",
            "state": "Sabah",
            "grain": "dun",
            "parlimen_code": "P.99",
            "parlimen_name": "Contoh",
            "registered_voters": 10000.0,
            "registered_voters_estimated": False,
            "last_opponent_top_votes": 4000,
            "last_majority": 300,
            "corners": 2,
            "winner_party": "WARISAN",
            "winner_votes": 5200,
            "runner_up_party": "BN",
            "runner_up_votes": 5000,
            "poi_votes": 5000,
            "poi_rank": 2,
            "dun_code": "N.99",
            "dun_name": "Contoh",
        }
        values.update(fields)
        return Seat(**values)

    return _make


@pytest.fixture
def progress():
    return ProgressRow(
        week_start="2025-08-11",
        seat_id="N.99",
        base_votes=3500,
        persuasion_votes=800,
        gotv_votes=400,
    )
