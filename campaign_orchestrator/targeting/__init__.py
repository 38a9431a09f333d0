"""Seat targeting package."""

from .application import AnalysisResult, DataLoadError, run_reporting_pipeline, run_targeting_analysis
from .config import EngineContext
from .ingestion import read_table, write_output_excel

__all__ = [
    "AnalysisResult",
    "DataLoadError",
    "EngineContext",
    "read_table",
    "run_reporting_pipeline",
    "run_targeting_analysis",
    "write_output_excel",
]
