"""JSON-file store for the operator's tier threshold choices."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from targeting.config import DEFAULT_THRESHOLDS
from targeting.domain.models import ThresholdConfig

logger = logging.getLogger(__name__)


class ThresholdStore:
    def __init__(self, path: str | Path, fallback: ThresholdConfig = DEFAULT_THRESHOLDS) -> None:
        self.path = Path(path)
        self.fallback = fallback

    def load(self) -> ThresholdConfig | None:
        """Saved thresholds, or None when nothing usable has been saved."""
        if not self.path.exists():
            return None
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Threshold file %s unreadable, ignoring: %s", self.path, exc)
            return None
        if not isinstance(raw, dict):
            logger.warning("Threshold file %s has unexpected shape, ignoring", self.path)
            return None
        return ThresholdConfig.from_dict(raw, fallback=self.fallback)

    def load_or_default(self) -> ThresholdConfig:
        return self.load() or self.fallback

    def save(self, thresholds: ThresholdConfig) -> ThresholdConfig:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(thresholds.to_dict(), indent=2), encoding="utf-8")
        return thresholds

    def reset(self) -> ThresholdConfig:
        self.path.unlink(missing_ok=True)
        return self.fallback
