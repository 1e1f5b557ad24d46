"""
Roster loading: delimited text and workbooks -> RosterTable.

Important: Keep imports light at module import time (Streamlit Cloud startup).
pandas is imported only inside the workbook loader.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from errors import MalformedInput

logger = logging.getLogger(__name__)

DELIMITED = "delimited"
WORKBOOK = "workbook"

_SUFFIX_FORMATS = {
    ".csv": (DELIMITED, ","),
    ".txt": (DELIMITED, ","),
    ".tsv": (DELIMITED, "\t"),
    ".xlsx": (WORKBOOK, None),
    ".xlsm": (WORKBOOK, None),
    ".xls": (WORKBOOK, None),
}

_LINE_SPLIT = re.compile(r"\r\n|\n|\r")


class RosterRecord(Mapping[str, str]):
    """One data row: header -> cell value, in column order. Read-only."""

    __slots__ = ("_cells", "row_number")

    def __init__(self, cells: Sequence[Tuple[str, str]], row_number: int = 0):
        self._cells: Dict[str, str] = dict(cells)
        self.row_number = row_number

    def __getitem__(self, key: str) -> str:
        return self._cells[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._cells)

    def __len__(self) -> int:
        return len(self._cells)

    def __repr__(self) -> str:
        return f"RosterRecord(row={self.row_number}, {self._cells!r})"


@dataclass
class RosterTable:
    """Parsed roster: headers, records in row order, and parse diagnostics."""

    headers: List[str]
    records: List[RosterRecord]
    warnings: List[str] = field(default_factory=list)
    load_stats: Dict[str, int] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.records)


def detect_format(filename: str) -> Tuple[str, Optional[str]]:
    """Return (format, delimiter) for a roster filename based on its suffix."""
    suf = Path(filename or "").suffix.lower()
    if suf not in _SUFFIX_FORMATS:
        raise MalformedInput(
            f"Unsupported roster file type {suf or '(none)'!r}. "
            f"Use one of: {', '.join(sorted(_SUFFIX_FORMATS))}"
        )
    return _SUFFIX_FORMATS[suf]


def _make_headers(raw: Sequence[object]) -> List[str]:
    headers = [("" if h is None else str(h)).strip() for h in raw]
    # Blank or repeated headers would collapse record keys; give them a stable name.
    seen: Dict[str, int] = {}
    out = []
    for i, h in enumerate(headers):
        name = h or f"column_{i + 1}"
        if name in seen:
            seen[name] += 1
            name = f"{name}_{seen[name]}"
        else:
            seen[name] = 1
        out.append(name)
    return out


def parse_delimited(data: bytes, delimiter: str = ",") -> RosterTable:
    """
    Parse delimited text (no quoted-field escaping).

    - Blank lines are ignored; the first non-empty line is the header row.
    - Rows with fewer fields than headers are dropped and counted as warnings.
    - Rows with more fields keep the first len(headers) fields (warning).
    """
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise MalformedInput(f"Roster is not valid UTF-8 text: {e}") from e

    lines = [(n, line) for n, line in enumerate(_LINE_SPLIT.split(text), 1) if line.strip()]
    if not lines:
        raise MalformedInput("Roster is empty (no non-empty lines).")

    _, header_line = lines[0]
    headers = _make_headers(header_line.split(delimiter))

    records: List[RosterRecord] = []
    warnings: List[str] = []
    dropped = 0
    truncated = 0
    for line_no, line in lines[1:]:
        cells = [c.strip() for c in line.split(delimiter)]
        if len(cells) < len(headers):
            dropped += 1
            warnings.append(f"line {line_no}: {len(cells)} fields, expected {len(headers)}; row dropped")
            continue
        if len(cells) > len(headers):
            truncated += 1
            warnings.append(f"line {line_no}: {len(cells)} fields, expected {len(headers)}; extra fields ignored")
        records.append(RosterRecord(list(zip(headers, cells)), row_number=line_no))

    for w in warnings:
        logger.warning("roster %s", w)

    return RosterTable(
        headers=headers,
        records=records,
        warnings=warnings,
        load_stats={
            "source_rows": len(lines) - 1,
            "loaded_rows": len(records),
            "dropped_short_rows": dropped,
            "truncated_long_rows": truncated,
        },
    )


def _cell_str(v) -> str:
    if v is None or (isinstance(v, float) and str(v) == "nan"):
        return ""
    s = str(v).strip()
    return "" if s.lower() == "nan" else s


def parse_workbook(data: bytes) -> RosterTable:
    """Load the FIRST sheet of a workbook; its first row is the header row."""
    import pandas as pd

    try:
        df = pd.read_excel(BytesIO(data), sheet_name=0, header=0, dtype=str)
    except ImportError as e:
        if "openpyxl" in str(e).lower():
            raise ImportError(
                "Reading Excel requires openpyxl. Install it with:\n  pip install openpyxl"
            ) from e
        raise
    except Exception as e:
        # pandas/openpyxl raise a zoo of types for corrupt files (BadZipFile, KeyError, ValueError, ...)
        raise MalformedInput(f"Could not read workbook: {e}") from e

    raw_headers = ["" if str(c).startswith("Unnamed:") else c for c in df.columns]
    if len(raw_headers) == 0 or not any(str(h).strip() for h in raw_headers):
        raise MalformedInput("Workbook's first sheet has no header row.")

    headers = _make_headers(raw_headers)
    records: List[RosterRecord] = []
    blank = 0
    # Excel row numbers: header is row 1, first data row is row 2
    for i, row in enumerate(df.itertuples(index=False, name=None)):
        cells = [_cell_str(v) for v in row]
        if not any(cells):
            blank += 1
            continue
        records.append(RosterRecord(list(zip(headers, cells)), row_number=i + 2))

    return RosterTable(
        headers=headers,
        records=records,
        warnings=[],
        load_stats={
            "source_rows": len(df),
            "loaded_rows": len(records),
            "skipped_blank_rows": blank,
            "dropped_short_rows": 0,
            "truncated_long_rows": 0,
        },
    )


def load_roster(data: bytes, filename: str) -> RosterTable:
    """Parse roster bytes; the format is declared by the filename suffix."""
    fmt, delimiter = detect_format(filename)
    if fmt == WORKBOOK:
        table = parse_workbook(data)
    else:
        table = parse_delimited(data, delimiter or ",")
    logger.info(
        "Loaded roster %s: %d rows (%d headers, %d warnings)",
        filename, len(table.records), len(table.headers), len(table.warnings),
    )
    return table


def load_roster_file(path: str) -> RosterTable:
    p = Path(path)
    return load_roster(p.read_bytes(), p.name)
