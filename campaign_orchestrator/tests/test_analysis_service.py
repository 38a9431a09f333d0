import json

import pytest

from targeting.application.analysis_service import DataLoadError, run_targeting_analysis
from targeting.application.report_service import build_sheets, build_summary, run_reporting_pipeline
from targeting.config import EngineContext
from targeting.domain.models import ThresholdConfig
from targeting.infrastructure.data_repository import load_tables
from targeting.infrastructure.overrides_store import OverridesStore, save_seat_override
from targeting.infrastructure.threshold_store import ThresholdStore


def test_load_tables_reads_every_source(data_dir):
    tables = load_tables(data_dir)
    assert len(tables.winners) == 3
    assert tables.winners_source == "prn_sabah_2025_winners.csv"
    assert len(tables.candidates) == 6
    assert tables.seat_details_source == "seat_details_enriched_with_candidates.csv"
    assert tables.assumptions.turnout_scenario["base"] == 0.6


def test_optional_tables_may_be_missing(data_dir):
    (data_dir / "seat_details_enriched_with_candidates.csv").unlink()
    (data_dir / "progress_weekly.csv").unlink()
    (data_dir / "assumptions.json").unlink()
    tables = load_tables(data_dir)
    assert tables.seat_details == []
    assert tables.candidates == []
    assert tables.progress == []
    assert tables.assumptions.turnout_scenario["base"] == 0.65


def test_seat_detail_fallback_file_is_used(data_dir):
    primary = data_dir / "seat_details_enriched_with_candidates.csv"
    primary.rename(data_dir / "seat_details_enriched_v3.csv")
    tables = load_tables(data_dir)
    assert tables.seat_details_source == "seat_details_enriched_v3.csv"
    assert tables.candidates == []


def test_analysis_builds_metrics_for_every_seat(data_dir):
    result = run_targeting_analysis(data_dir, context=EngineContext(expected_total=3))
    assert result.warnings == []
    assert len(result.metrics) == 5
    by_id = {metric.seat.seat_id: metric for metric in result.metrics}
    assert by_id["N.01"].total_vote == 4700
    assert by_id["N.01"].progress.week_start == "2025-08-11"
    assert by_id["N.03"].total_vote == 0


def test_count_mismatch_becomes_warning(data_dir):
    result = run_targeting_analysis(data_dir)
    assert result.warnings == ["Data tidak lengkap: jumlah DUN = 3 (sepatutnya 73)."]
    assert len(result.metrics) == 5


def test_conflicting_detail_rows_are_reported(data_dir):
    path = data_dir / "seat_details_enriched_with_candidates.csv"
    path.write_text(
        path.read_text(encoding="utf-8") + "N.02,Bengkoka,9100,6000,66.7,200,spr,Hana,IND,10,0.1\n",
        encoding="utf-8",
    )
    result = run_targeting_analysis(data_dir, context=EngineContext(expected_total=3))
    assert result.warnings == ["Kod DUN berganda dalam seat_details_enriched_with_candidates.csv: N.02."]


def test_missing_required_table_raises_generic_error(data_dir):
    (data_dir / "prn_sabah_2025_winners.csv").unlink()
    with pytest.raises(DataLoadError) as excinfo:
        run_targeting_analysis(data_dir)
    assert "Gagal memuatkan data" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, FileNotFoundError)


def test_saved_thresholds_take_precedence(data_dir, tmp_path):
    store = ThresholdStore(tmp_path / "saved_thresholds.json")
    custom = ThresholdConfig.from_dict({"attack": {"near": {"vote_threshold": 9999, "pct_threshold": 0}}})
    store.save(custom)
    result = run_targeting_analysis(data_dir, threshold_store=store)
    assert result.context.thresholds == custom


def test_overrides_flow_into_seats(data_dir, tmp_path):
    store = OverridesStore(tmp_path / "local_overrides.json")
    save_seat_override(store, "N.03", {"registered_voters": 15000})
    result = run_targeting_analysis(data_dir, context=EngineContext(expected_total=3), overrides_store=store)
    seat = next(seat for seat in result.build.seats if seat.seat_id == "N.03")
    assert seat.registered_voters == 15000
    assert not seat.registered_voters_estimated


def test_summary_and_sheets(data_dir):
    result = run_targeting_analysis(data_dir, context=EngineContext(expected_total=3))
    summary = build_summary(result)
    assert summary["validation"]["total_dun"] == 3
    assert summary["validation"]["poi_wins"] == 1
    assert summary["coverage"] == {"seat_details": 2, "candidates": 2, "unknown_parent_duns": []}
    assert summary["highlights"]["nearest_target"]["seat_id"] == "N.02"
    assert summary["highlights"]["most_vulnerable_defence"]["seat_id"] == "N.01"
    assert sum(summary["tier_counts"].values()) == 3
    json.dumps(summary)

    sheets = build_sheets(result)
    assert set(sheets) == {"seats", "metrics", "warnings"}
    assert sheets["metrics"].height == 5
    assert sheets["seats"].height == 5
    assert sheets["warnings"].height == 0


def test_reporting_pipeline_writes_outputs(data_dir, tmp_path, monkeypatch, capsys):
    output_dir = tmp_path / "output"
    monkeypatch.setenv("TARGETING_DATA_DIR", str(data_dir))
    monkeypatch.setenv("TARGETING_OUTPUT_DIR", str(output_dir))
    monkeypatch.setenv("TARGETING_EXPECTED_TOTAL", "3")

    summary = run_reporting_pipeline(project_root=tmp_path)

    assert summary["warnings"] == []
    assert json.loads((output_dir / "summary.json").read_text(encoding="utf-8"))["party_of_interest"] == "BN"
    assert (output_dir / "summary.xlsx").exists()
    assert "Summary prepared: dun=3, parlimen=2, warnings=0" in capsys.readouterr().out
