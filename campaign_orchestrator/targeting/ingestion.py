"""Table parsing and Excel I/O helpers with Polars-first and openpyxl fallback."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Sequence

import polars as pl

from targeting.domain.models import (
    Assumptions,
    CandidateRow,
    ChildRow,
    GeographyRow,
    ProgressRow,
    SeatDetailRow,
    ThresholdConfig,
    WinnerRow,
    to_number,
)

Record = Dict[str, str]

_LINE_SPLIT = re.compile(r"\r?\n")
EXCEL_SUFFIXES: tuple[str, ...] = (".xlsx", ".xlsm")

__all__ = [
    "Record",
    "to_number",
    "parse_delimited_text",
    "parse_geography",
    "parse_children",
    "parse_winners",
    "parse_seat_details",
    "parse_candidates",
    "parse_progress",
    "parse_assumptions",
    "parse_thresholds",
    "read_table",
    "write_output_excel",
]


def parse_delimited_text(text: str, delimiter: str = ",") -> list[Record]:
    """Split header-first delimited text into one mapping per data row.

    Rows whose field count differs from the header are skipped, never raised.
    Quoting is not supported, so a quoted field containing the delimiter
    splits apart and drops its row.
    """
    stripped = (text or "").strip()
    if not stripped:
        return []
    header_line, *lines = _LINE_SPLIT.split(stripped)
    headers = [value.strip() for value in header_line.split(delimiter)]
    records: list[Record] = []
    for line in lines:
        values = [value.strip() for value in line.split(delimiter)]
        if len(values) != len(headers):
            continue
        records.append(dict(zip(headers, values)))
    return records


def parse_geography(records: Iterable[Mapping[str, Any]]) -> list[GeographyRow]:
    return [GeographyRow.from_row(record) for record in records]


def parse_children(records: Iterable[Mapping[str, Any]]) -> list[ChildRow]:
    return [ChildRow.from_row(record) for record in records]


def parse_winners(records: Iterable[Mapping[str, Any]]) -> list[WinnerRow]:
    return [WinnerRow.from_row(record) for record in records]


def parse_seat_details(records: Iterable[Mapping[str, Any]]) -> list[SeatDetailRow]:
    return [SeatDetailRow.from_row(record) for record in records]


def parse_candidates(records: Iterable[Mapping[str, Any]]) -> list[CandidateRow]:
    """Candidate rows; seat-level rows with no candidate fields are dropped."""
    return [
        CandidateRow.from_row(record)
        for record in records
        if record.get("candidate_name") or record.get("party") or record.get("votes")
    ]


def parse_progress(records: Iterable[Mapping[str, Any]]) -> list[ProgressRow]:
    return [ProgressRow.from_row(record) for record in records]


def _json_mapping(raw: str | Mapping[str, Any]) -> Mapping[str, Any]:
    if isinstance(raw, Mapping):
        return raw
    loaded = json.loads(raw)
    if not isinstance(loaded, dict):
        raise ValueError("Expected a JSON object")
    return loaded


def parse_assumptions(raw: str | Mapping[str, Any]) -> Assumptions:
    return Assumptions.from_dict(_json_mapping(raw))


def parse_thresholds(raw: str | Mapping[str, Any], fallback: ThresholdConfig | None = None) -> ThresholdConfig:
    return ThresholdConfig.from_dict(_json_mapping(raw), fallback=fallback)


def _import_openpyxl() -> tuple[Any, Any]:
    try:
        from openpyxl import Workbook, load_workbook
    except Exception as exc:  # pragma: no cover
        raise RuntimeError("openpyxl is required for Excel fallback I/O.") from exc
    return Workbook, load_workbook


def _normalize_headers(raw_headers: Sequence[Any]) -> list[str]:
    headers: list[str] = []
    seen: dict[str, int] = {}
    for idx, value in enumerate(raw_headers):
        base = str(value).strip() if value not in (None, "") else f"column_{idx + 1}"
        count = seen.get(base, 0)
        name = base if count == 0 else f"{base}_{count + 1}"
        seen[base] = count + 1
        headers.append(name)
    return headers


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _read_with_polars(path: Path) -> list[Record]:
    if not hasattr(pl, "read_excel"):
        raise RuntimeError("polars.read_excel is not available in this environment.")
    frame = pl.read_excel(path)
    if isinstance(frame, dict):
        frame = next(iter(frame.values()), pl.DataFrame())
    headers = _normalize_headers(frame.columns)
    return [
        {name: _cell_text(value) for name, value in zip(headers, row)}
        for row in frame.iter_rows(named=False)
    ]


def _read_with_openpyxl(path: Path) -> list[Record]:
    _, load_workbook = _import_openpyxl()
    workbook = load_workbook(path, read_only=True, data_only=True)
    worksheet = workbook[workbook.sheetnames[0]]
    row_iter = worksheet.iter_rows(values_only=True)
    header_row = next(row_iter, None)
    if header_row is None:
        workbook.close()
        return []

    headers = _normalize_headers(header_row)
    records: list[Record] = []
    for values in row_iter:
        if values is None or all(value is None for value in values):
            continue
        records.append({name: _cell_text(values[idx] if idx < len(values) else None) for idx, name in enumerate(headers)})

    workbook.close()
    return records


def read_table(path: str | Path) -> list[Record]:
    """Read a delimited-text or Excel table into string records."""
    table_path = Path(path)
    if not table_path.exists():
        raise FileNotFoundError(f"Input table not found: {table_path}")

    if table_path.suffix.lower() in EXCEL_SUFFIXES:
        try:
            return _read_with_polars(table_path)
        except Exception:
            return _read_with_openpyxl(table_path)
    return parse_delimited_text(table_path.read_text(encoding="utf-8-sig"))


def _excel_cell_value(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, (int, bool, str)):
        return value
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return None
        return value
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(value, ensure_ascii=False)
    return value


def _write_with_polars(path: Path, sheets: Dict[str, pl.DataFrame]) -> bool:
    if not sheets:
        return False

    first_df = next(iter(sheets.values()))
    if not hasattr(first_df, "write_excel"):
        return False

    try:
        import xlsxwriter
    except ImportError:
        return False

    try:
        with xlsxwriter.Workbook(str(path)) as workbook:
            for sheet_name, frame in sheets.items():
                frame.write_excel(workbook=workbook, worksheet=str(sheet_name)[:31])
        return True
    except Exception:
        return False


def _write_with_openpyxl(path: Path, sheets: Dict[str, pl.DataFrame]) -> None:
    Workbook, _ = _import_openpyxl()
    workbook = Workbook()
    default_sheet = workbook.active
    workbook.remove(default_sheet)

    for sheet_name, frame in sheets.items():
        worksheet = workbook.create_sheet(title=str(sheet_name)[:31])
        worksheet.append(frame.columns)
        for row in frame.iter_rows(named=False):
            worksheet.append([_excel_cell_value(value) for value in row])

    path.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(path)


def write_output_excel(path: str | Path, sheets: Dict[str, pl.DataFrame]) -> None:
    """Write output Excel with Polars-first and openpyxl fallback."""
    excel_path = Path(path)
    excel_path.parent.mkdir(parents=True, exist_ok=True)

    if _write_with_polars(excel_path, sheets):
        return
    _write_with_openpyxl(excel_path, sheets)
