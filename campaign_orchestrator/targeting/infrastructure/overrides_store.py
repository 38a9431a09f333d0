"""JSON-file store for operator corrections to seat details and candidate lists."""

from __future__ import annotations

import json
import logging
import math
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal, Mapping, Sequence

from targeting.domain.models import CandidateOverride, LocalOverrides
from targeting.domain.resolution import SEAT_DETAIL_FIELDS

logger = logging.getLogger(__name__)

OVERRIDES_VERSION = 1
MergeMode = Literal["merge", "replace"]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def default_overrides() -> LocalOverrides:
    return LocalOverrides(version=OVERRIDES_VERSION, updated_at=_now_iso(), seat_details={}, candidates={})


def _finite_or_none(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def _sanitize_votes(value: Any) -> int:
    number = _finite_or_none(value)
    if number is None:
        return 0
    return max(0, int(number))


def _sanitize_candidate(raw: Any) -> CandidateOverride | None:
    if isinstance(raw, CandidateOverride):
        raw = {
            "candidate_name": raw.candidate_name,
            "party": raw.party,
            "votes": raw.votes,
            "vote_share_pct": raw.vote_share_pct,
        }
    if not isinstance(raw, Mapping):
        return None
    candidate = CandidateOverride(
        candidate_name=str(raw.get("candidate_name") or "").strip(),
        party=str(raw.get("party") or "").strip(),
        votes=_sanitize_votes(raw.get("votes")),
        vote_share_pct=_finite_or_none(raw.get("vote_share_pct")),
    )
    if not candidate.candidate_name and not candidate.party and candidate.votes == 0:
        return None
    return candidate


def sanitize_overrides(raw: Any) -> LocalOverrides:
    """Coerce any decoded payload into a structurally valid LocalOverrides.

    Absent or non-finite numbers stay None so an explicit 0 remains distinct.
    """
    if isinstance(raw, LocalOverrides):
        raw = raw.to_dict()
    if not isinstance(raw, Mapping):
        return default_overrides()

    details_raw = raw.get("seatDetails")
    seat_details: dict[str, dict[str, float | None]] = {}
    if isinstance(details_raw, Mapping):
        for dun_code, detail in details_raw.items():
            detail = detail if isinstance(detail, Mapping) else {}
            seat_details[str(dun_code).strip()] = {name: _finite_or_none(detail.get(name)) for name in SEAT_DETAIL_FIELDS}

    candidates_raw = raw.get("candidates")
    candidates: dict[str, list[CandidateOverride]] = {}
    if isinstance(candidates_raw, Mapping):
        for dun_code, rows in candidates_raw.items():
            rows = rows if isinstance(rows, (list, tuple)) else []
            sanitized = [_sanitize_candidate(row) for row in rows]
            candidates[str(dun_code).strip()] = [row for row in sanitized if row is not None]

    updated_at = raw.get("updatedAt", raw.get("updatedAtISO"))
    return LocalOverrides(
        version=OVERRIDES_VERSION,
        updated_at=updated_at if isinstance(updated_at, str) else _now_iso(),
        seat_details=seat_details,
        candidates=candidates,
    )


class OverridesStore:
    """Persist LocalOverrides as a single JSON document."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> LocalOverrides:
        if not self.path.exists():
            return default_overrides()
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Overrides file %s unreadable, using defaults: %s", self.path, exc)
            return default_overrides()
        if not isinstance(raw, dict):
            logger.warning("Overrides file %s has unexpected shape, using defaults", self.path)
            return default_overrides()
        return sanitize_overrides(raw)

    def save(self, overrides: LocalOverrides | Mapping[str, Any]) -> LocalOverrides:
        payload = sanitize_overrides(overrides)
        stamped = LocalOverrides(
            version=OVERRIDES_VERSION,
            updated_at=_now_iso(),
            seat_details=payload.seat_details,
            candidates=payload.candidates,
        )
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(stamped.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
        return stamped

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


def merge_overrides(
    current: LocalOverrides,
    incoming: LocalOverrides | Mapping[str, Any],
    mode: MergeMode,
    store: OverridesStore,
) -> LocalOverrides:
    """Replace discards current; merge is a per-seat union where incoming wins."""
    sanitized = sanitize_overrides(incoming)
    if mode == "replace":
        return store.save(sanitized)
    if mode != "merge":
        raise ValueError(f"Unknown override merge mode: {mode}")
    return store.save(
        LocalOverrides(
            version=OVERRIDES_VERSION,
            updated_at=_now_iso(),
            seat_details={**current.seat_details, **sanitized.seat_details},
            candidates={**current.candidates, **sanitized.candidates},
        )
    )


def export_overrides(overrides: LocalOverrides) -> str:
    return json.dumps(overrides.to_dict(), indent=2, ensure_ascii=False)


def import_overrides(text: str, mode: MergeMode, store: OverridesStore) -> LocalOverrides:
    """Merge or replace the stored overrides with a JSON export; bad JSON raises ValueError."""
    incoming = json.loads(text)
    if not isinstance(incoming, dict):
        raise ValueError("Override import must be a JSON object")
    return merge_overrides(store.load(), incoming, mode, store)


def save_seat_override(store: OverridesStore, dun_code: str, detail: Mapping[str, Any]) -> LocalOverrides:
    current = store.load()
    seat_details = {code: dict(values) for code, values in current.seat_details.items()}
    seat_details[dun_code] = {name: detail.get(name) for name in SEAT_DETAIL_FIELDS}
    return store.save(
        LocalOverrides(
            version=OVERRIDES_VERSION,
            updated_at=current.updated_at,
            seat_details=seat_details,
            candidates=current.candidates,
        )
    )


def save_candidate_override(
    store: OverridesStore,
    dun_code: str,
    rows: Sequence[CandidateOverride | Mapping[str, Any]],
) -> LocalOverrides:
    current = store.load()
    candidates = dict(current.candidates)
    sanitized = [_sanitize_candidate(row) for row in rows]
    candidates[dun_code] = [row for row in sanitized if row is not None]
    return store.save(
        LocalOverrides(
            version=OVERRIDES_VERSION,
            updated_at=current.updated_at,
            seat_details=current.seat_details,
            candidates=candidates,
        )
    )
