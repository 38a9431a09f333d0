"""Application layer package."""

from .analysis_service import AnalysisResult, DataLoadError, run_targeting_analysis
from .metrics_service import compute_seat_metrics, get_latest_progress
from .report_service import run_reporting_pipeline
from .seat_service import SeatBuildResult, build_seats

__all__ = [
    "AnalysisResult",
    "DataLoadError",
    "run_targeting_analysis",
    "compute_seat_metrics",
    "get_latest_progress",
    "run_reporting_pipeline",
    "SeatBuildResult",
    "build_seats",
]
