"""Domain policies for seat tier classification and action recommendations."""

from __future__ import annotations

from dataclasses import dataclass

from targeting.domain.models import SeatMetrics, ThresholdConfig, TierThreshold

ATTACK_NEAR = "near"
ATTACK_MEDIUM = "medium"
ATTACK_FAR = "far"
DEFEND_HIGH_RISK = "high risk"
DEFEND_MEDIUM_RISK = "medium risk"
DEFEND_LOW_RISK = "low risk"

ACTION_REVIEW_DATA = "REVIEW_DATA"
ACTION_PERSUASION_GOTV = "PERSUASION_GOTV"
ACTION_BASE_GOTV = "BASE_GOTV"
ACTION_MAINTAIN_MOMENTUM = "MAINTAIN_MOMENTUM"
ACTION_BASE_BUILDING = "BASE_BUILDING"

ACTION_LABELS: dict[str, str] = {
    ACTION_REVIEW_DATA: "Semak data dahulu sebelum tindakan taktikal",
    ACTION_PERSUASION_GOTV: "Serang kerusi pinggir: PERSUASION fokus + GOTV",
    ACTION_BASE_GOTV: "Pertahanan ketat: kukuhkan BASE + GOTV awal",
    ACTION_MAINTAIN_MOMENTUM: "Kekalkan momentum kubu dan perluas BASE",
    ACTION_BASE_BUILDING: "Bina BASE jentera dahulu, PERSUASION berfasa",
}

STATUS_DEFEND = "Menang (Defend)"
STATUS_NEAR = "Sasaran Dekat"
STATUS_MEDIUM = "Sasaran Sederhana"
STATUS_FAR = "Sasaran Jauh"

ACTION_TAG_ORDER: tuple[str, ...] = ("BASE", "PERSUASION", "GOTV")


@dataclass(frozen=True)
class ActionTagGuide:
    tag: str
    meaning: str
    when_to_use: tuple[str, ...]
    example_actions: tuple[str, ...]


ACTION_TAG_GUIDES: dict[str, ActionTagGuide] = {
    "BASE": ActionTagGuide(
        tag="BASE",
        meaning="Jaga dan aktifkan penyokong teras supaya kekal bersama kita.",
        when_to_use=(
            "Bila kerusi nampak rapat dan ada risiko undi asas bocor.",
            "Bila data calon belum lengkap dan jentera teras perlu dikukuhkan dulu.",
        ),
        example_actions=(
            "Ziarah penyokong tegar ikut saluran.",
            "Aktifkan ketua PDM untuk semak komitmen penyokong asas.",
        ),
    ),
    "PERSUASION": ActionTagGuide(
        tag="PERSUASION",
        meaning="Pujuk pengundi atas pagar atau pengundi lembut.",
        when_to_use=(
            "Bila kerusi belum dimenangi dan jurang undi masih boleh dikejar.",
            "Bila mesej isu setempat boleh ubah keputusan di lokaliti sasaran.",
        ),
        example_actions=(
            "Sesi kecil komuniti fokus isu tempatan.",
            "Kempen mesej bersegmen untuk pengundi atas pagar.",
        ),
    ),
    "GOTV": ActionTagGuide(
        tag="GOTV",
        meaning="Pastikan penyokong yang sudah cenderung benar-benar keluar mengundi.",
        when_to_use=(
            "Bila turnout dijangka rendah atau trend keluar mengundi menurun.",
            "Bila hari mengundi hampir dan sokongan perlu ditukar kepada undi sebenar.",
        ),
        example_actions=(
            "Semak senarai belum hadir setiap jam.",
            "Sediakan pengangkutan/peringatan hari mengundi.",
        ),
    ),
}


def _triggers(value: float, percent: float, rung: TierThreshold) -> bool:
    # Either cutoff alone is enough.
    return value <= rung.vote_threshold or percent <= rung.pct_threshold


def get_attack_level(margin_to_win: float, margin_to_win_percent: float, thresholds: ThresholdConfig) -> str:
    if _triggers(margin_to_win, margin_to_win_percent, thresholds.attack_near):
        return ATTACK_NEAR
    if _triggers(margin_to_win, margin_to_win_percent, thresholds.attack_medium):
        return ATTACK_MEDIUM
    return ATTACK_FAR


def get_defend_risk_level(majority_votes: float, majority_percent: float, thresholds: ThresholdConfig) -> str:
    if _triggers(majority_votes, majority_percent, thresholds.defend_high_risk):
        return DEFEND_HIGH_RISK
    if _triggers(majority_votes, majority_percent, thresholds.defend_medium_risk):
        return DEFEND_MEDIUM_RISK
    return DEFEND_LOW_RISK


def recommended_action(defending: bool, tier: str, flags: tuple[str, ...] | list[str]) -> str:
    """Pick the action code; any data-quality flag overrides the tactical choice."""
    if flags:
        return ACTION_REVIEW_DATA
    if not defending and tier == ATTACK_NEAR:
        return ACTION_PERSUASION_GOTV
    if defending and tier == DEFEND_HIGH_RISK:
        return ACTION_BASE_GOTV
    if defending:
        return ACTION_MAINTAIN_MOMENTUM
    return ACTION_BASE_BUILDING


def status_tag(defending: bool, tier: str, party_of_interest: str) -> str:
    if defending:
        return f"{party_of_interest} {STATUS_DEFEND}"
    if tier == ATTACK_NEAR:
        return STATUS_NEAR
    if tier == ATTACK_MEDIUM:
        return STATUS_MEDIUM
    return STATUS_FAR


def action_label(action_code: str) -> str:
    return ACTION_LABELS.get(action_code, action_code)


def action_tags_from_text(text: str) -> list[str]:
    upper = str(text or "").upper()
    return [tag for tag in ACTION_TAG_ORDER if tag in upper]


def get_seat_action_notes(metrics: SeatMetrics) -> list[str]:
    notes: list[str] = []
    if metrics.gap_to_safe_target > max(1000, metrics.safe_target * 0.1):
        notes.append("Jurang besar: tambah usaha persuasi dan GOTV segera.")
    if metrics.total_vote > metrics.valid_votes or metrics.safe_target > metrics.valid_votes:
        notes.append("Sasaran tak realistik: semak semula sasaran undi dan andaian turnout.")
    if metrics.swing_percent <= 0.02:
        notes.append("Kerusi dekat / marginal: gerak cepat untuk pertahan pengundi atas pagar.")
    if not notes:
        notes.append("Prestasi stabil: teruskan pemantauan mingguan dan kemas kini data.")
    return notes
