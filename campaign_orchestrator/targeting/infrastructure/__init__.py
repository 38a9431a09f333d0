"""Infrastructure layer package."""

from .data_repository import SourceTables, load_tables
from .overrides_store import OverridesStore, merge_overrides
from .report_exporter import save_metrics_workbook, save_summary_json
from .threshold_store import ThresholdStore

__all__ = [
    "SourceTables",
    "load_tables",
    "OverridesStore",
    "merge_overrides",
    "save_metrics_workbook",
    "save_summary_json",
    "ThresholdStore",
]
