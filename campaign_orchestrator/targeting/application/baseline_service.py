"""Application service for winners-table integrity checks."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Sequence

from targeting.config import DEFAULT_EXPECTED_TOTAL, DEFAULT_PARTY_OF_INTEREST
from targeting.domain.models import WinnerRow


@dataclass(frozen=True)
class BaselineValidation:
    total_dun: int
    duplicate_dun_codes: list[str]
    warnings: list[str]
    source_file: str
    poi_wins: int
    non_poi_wins: int
    expected_total: int = DEFAULT_EXPECTED_TOTAL
    party_of_interest: str = DEFAULT_PARTY_OF_INTEREST

    @property
    def is_sound(self) -> bool:
        return not self.warnings


def duplicate_codes(codes: Sequence[str]) -> list[str]:
    counts = Counter(codes)
    return sorted(code for code, count in counts.items() if count > 1)


def validate_winners_rows(
    rows: Sequence[WinnerRow],
    source_file: str,
    expected_total: int = DEFAULT_EXPECTED_TOTAL,
    party_of_interest: str = DEFAULT_PARTY_OF_INTEREST,
) -> BaselineValidation:
    """Check row count and key uniqueness; problems become warnings, not errors."""
    duplicates = duplicate_codes([row.dun_code for row in rows])
    total = len(rows)
    poi_wins = sum(1 for row in rows if row.winner_party == party_of_interest)

    warnings: list[str] = []
    if total != expected_total:
        warnings.append(f"Data tidak lengkap: jumlah DUN = {total} (sepatutnya {expected_total}).")
    if duplicates:
        warnings.append(f"Kod DUN berganda dikesan: {', '.join(duplicates)}.")

    return BaselineValidation(
        total_dun=total,
        duplicate_dun_codes=duplicates,
        warnings=warnings,
        source_file=source_file,
        poi_wins=poi_wins,
        non_poi_wins=total - poi_wins,
        expected_total=expected_total,
        party_of_interest=party_of_interest,
    )
