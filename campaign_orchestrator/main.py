"""Seat Targeting entrypoint."""

from __future__ import annotations

import logging
import sys

from targeting.application.analysis_service import DataLoadError
from targeting.application.report_service import run_reporting_pipeline

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _configure_logging(level: int = logging.INFO) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)


def main() -> int:
    _configure_logging()
    try:
        run_reporting_pipeline()
    except DataLoadError as exc:
        print(str(exc))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
