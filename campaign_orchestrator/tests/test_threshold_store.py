from targeting.config import DEFAULT_THRESHOLDS
from targeting.domain.models import ThresholdConfig
from targeting.infrastructure.threshold_store import ThresholdStore


def test_nothing_saved_returns_none_and_default(tmp_path):
    store = ThresholdStore(tmp_path / "saved_thresholds.json")
    assert store.load() is None
    assert store.load_or_default() == DEFAULT_THRESHOLDS


def test_save_round_trip(tmp_path, thresholds):
    store = ThresholdStore(tmp_path / "saved_thresholds.json")
    custom = ThresholdConfig.from_dict({"attack": {"near": {"vote_threshold": 250}}}, fallback=thresholds)
    store.save(custom)
    assert store.load() == custom
    assert store.load().attack_near.vote_threshold == 250
    assert store.load().attack_near.pct_threshold == thresholds.attack_near.pct_threshold


def test_corrupt_file_is_ignored(tmp_path):
    path = tmp_path / "saved_thresholds.json"
    path.write_text("{oops", encoding="utf-8")
    assert ThresholdStore(path).load() is None


def test_reset_restores_defaults(tmp_path, thresholds):
    store = ThresholdStore(tmp_path / "saved_thresholds.json")
    store.save(thresholds)
    assert store.reset() == DEFAULT_THRESHOLDS
    assert not store.path.exists()


def test_reset_returns_the_store_fallback(tmp_path, thresholds):
    custom = ThresholdConfig.from_dict({"defend": {"high_risk": {"vote_threshold": 150}}}, fallback=thresholds)
    store = ThresholdStore(tmp_path / "saved_thresholds.json", fallback=custom)
    store.save(thresholds)
    assert store.reset() == custom
    assert store.load_or_default() == custom
