"""Spreadsheet loading and header-row detection."""

import csv
import datetime
import logging
import numbers
import re
from io import BytesIO, StringIO
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
from openpyxl import load_workbook

from cohort_tracker.models import Cell

logger = logging.getLogger(__name__)


class MalformedInputError(ValueError):
    """The uploaded file cannot be turned into a usable table."""


class HeaderNotFoundError(MalformedInputError):
    """No row of the sheet looks like a header row."""


# Exact (normalized) cell values that mark the start of a table
HEADER_KEYWORDS = {
    "email", "email id", "e-mail",
    "name", "student name", "user name", "full name",
    "roll", "roll no", "roll no.", "rollno", "roll number", "prn",
    "sr.no", "sr no", "sr.no.", "srno.", "sr. no.",
    "division",
}

# Keywords found inside longer header text
HEADER_KEYWORD_RE = re.compile(
    r"\b(?:e-?mail|name|roll\s*(?:no|number)?|rollno|prn|sr\.?\s*no|division)\b"
)

# Words typical of the second row of a two-row header
HEADER_VOCABULARY_RE = re.compile(
    r"\b(?:names?|e-?mail|roll|division|section|lectures?|scores?|marks|overall|tests?"
    r"|total|out of|attempts?|coding|quiz|contest|week)\b"
)

EMAIL_RE = re.compile(r"[^@\s]+@[^@\s]+\.[^@\s]+")


def _norm(value: Any) -> str:
    return re.sub(r"\s+", " ", str(value)).strip().lower()


def to_cell(value: Any) -> Cell:
    """
    Collapse a raw spreadsheet value into a Cell.

    Blank values (None, NaN, whitespace) become "". Time-formatted cells are
    rendered as "H:MM:SS" text so the duration parser sees one shape.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value)
    if not isinstance(value, str) and pd.isna(value):
        return ""
    if isinstance(value, numbers.Real):
        return value if isinstance(value, (int, float)) else float(value)
    if isinstance(value, datetime.timedelta):
        total = int(round(value.total_seconds()))
        return f"{total // 3600}:{(total % 3600) // 60:02d}:{total % 60:02d}"
    if isinstance(value, datetime.time):
        return f"{value.hour}:{value.minute:02d}:{value.second:02d}"
    if isinstance(value, (datetime.datetime, datetime.date)):
        return value.isoformat()
    text = str(value)
    return text if text.strip() else ""


def cell_text(cell: Cell) -> str:
    """Trimmed string form of a cell; integral floats lose their '.0'."""
    if isinstance(cell, float) and cell.is_integer():
        return str(int(cell))
    return str(cell).strip()


def _sheet_to_matrix(ws) -> List[List[Cell]]:
    # Every cell covered by a merged range carries the top-left value
    merged_map = {}
    for rng in ws.merged_cells.ranges:
        min_col, min_row, max_col, max_row = rng.bounds
        top_val = ws.cell(min_row, min_col).value
        for r in range(min_row, max_row + 1):
            for c in range(min_col, max_col + 1):
                merged_map[(r, c)] = top_val

    rows = []
    for r, row in enumerate(ws.iter_rows(values_only=True), start=1):
        values = []
        for c, v in enumerate(row, start=1):
            if (r, c) in merged_map and (v is None or str(v).strip() == ""):
                v = merged_map[(r, c)]
            values.append(to_cell(v))
        rows.append(values)
    return rows


def load_sheets(data: bytes, filename: str = "upload.xlsx") -> Dict[str, List[List[Cell]]]:
    """
    Read every sheet of a spreadsheet file into a cell matrix.

    Args:
        data: Raw file bytes
        filename: Original file name, used to tell CSV from Excel

    Returns:
        Ordered mapping of sheet name -> rows of cells

    Raises:
        MalformedInputError: if the bytes cannot be read as a spreadsheet
    """
    name = (filename or "").lower()

    if name.endswith(".csv"):
        # Rows keep their own length; build_table pads them later
        try:
            text = data.decode("utf-8-sig")
            rows = [row for row in csv.reader(StringIO(text)) if row]
        except (UnicodeDecodeError, csv.Error) as e:
            raise MalformedInputError(f"Could not read CSV file '{filename}': {e}") from e
        return {"CSV": [[to_cell(v) for v in row] for row in rows]}

    if name.endswith((".xlsx", ".xlsm")):
        try:
            wb = load_workbook(BytesIO(data), read_only=False, data_only=True)
        except Exception as e:
            raise MalformedInputError(f"Could not read Excel file '{filename}': {e}") from e
        sheets = {ws.title: _sheet_to_matrix(ws) for ws in wb.worksheets}
        logger.debug("Loaded %s: sheets=%s", filename, list(sheets))
        return sheets

    # Unknown extensions are left to pandas to sniff
    try:
        frames = pd.read_excel(BytesIO(data), sheet_name=None, header=None)
    except Exception as e:
        raise MalformedInputError(f"Could not read spreadsheet '{filename}': {e}") from e
    return {
        sheet: [[to_cell(v) for v in row] for row in df.values.tolist()]
        for sheet, df in frames.items()
    }


def pick_sheet(names: List[str], keyword: Optional[str], fallback_index: int = 0) -> str:
    """
    Choose a sheet by name keyword, falling back to a position.

    Args:
        names: Sheet names in workbook order
        keyword: Lower-case substring to look for, or None
        fallback_index: Position to use when no name matches

    Returns:
        The chosen sheet name

    Raises:
        MalformedInputError: if the workbook has no sheets
    """
    if not names:
        raise MalformedInputError("Workbook contains no sheets")
    if keyword:
        for n in names:
            if keyword in n.lower():
                return n
    if 0 <= fallback_index < len(names):
        return names[fallback_index]
    return names[0]


def _is_header_start(row: List[Cell]) -> bool:
    texts = [_norm(c) for c in row if cell_text(c) != ""]
    if any(t in HEADER_KEYWORDS for t in texts):
        return True
    # Decorated headers ('Roll No:', 'Full Name of Student') need two hits,
    # so a one-cell title row never starts the table
    if any(EMAIL_RE.search(t) for t in texts):
        return False
    return sum(1 for t in texts if HEADER_KEYWORD_RE.search(t)) >= 2


def _looks_header_like(row: List[Cell]) -> bool:
    texts = [_norm(c) for c in row if cell_text(c) != ""]
    if not texts:
        return False
    if any(EMAIL_RE.search(t) for t in texts):
        return False
    return any(HEADER_VOCABULARY_RE.search(t) for t in texts)


def detect_header(matrix: List[List[Cell]], max_header_rows: int = 2) -> Tuple[int, int]:
    """
    Locate the header block of a sheet.

    The first row with a cell equal to a known header keyword, or with two
    cells mentioning one and no e-mail address, starts the block; the rows
    after it join while they still look like header text.

    Args:
        matrix: Sheet rows
        max_header_rows: Largest header block allowed

    Returns:
        (start_row_0based, header_height)

    Raises:
        HeaderNotFoundError: if no row matches a header keyword
    """
    for start, row in enumerate(matrix):
        if not _is_header_start(row):
            continue
        height = 1
        while (
            height < max_header_rows
            and start + height < len(matrix)
            and _looks_header_like(matrix[start + height])
        ):
            height += 1
        logger.debug("Header block detected at row %d (height %d)", start, height)
        return start, height
    raise HeaderNotFoundError("Header row not found")


def _unique_headers(headers: List[str]) -> List[str]:
    seen: Dict[str, int] = {}
    result = []
    for i, h in enumerate(headers):
        h = h or f"Unnamed: {i}"
        if h in seen:
            seen[h] += 1
            candidate = f"{h}.{seen[h]}"
            while candidate in seen:
                seen[h] += 1
                candidate = f"{h}.{seen[h]}"
            seen[candidate] = 0
            result.append(candidate)
        else:
            seen[h] = 0
            result.append(h)
    return result


def build_table(matrix: List[List[Cell]], start: int, height: int) -> pd.DataFrame:
    """
    Turn the rows below a header block into a DataFrame of cells.

    Header cells of a multi-row block are joined cell-wise with a space.
    Short rows are padded with "" and fully blank rows are dropped.
    """
    block = matrix[start:start + height]
    width = max((len(r) for r in matrix[start:]), default=0)

    headers = []
    for c in range(width):
        parts = [cell_text(r[c]) for r in block if c < len(r) and cell_text(r[c])]
        combined = []
        for p in parts:
            # merged group cells repeat the same text down the block
            if not combined or combined[-1] != p:
                combined.append(p)
        headers.append(" ".join(combined).strip())
    headers = _unique_headers(headers)

    rows = []
    for raw in matrix[start + height:]:
        padded = list(raw) + [""] * (width - len(raw))
        if all(cell_text(c) == "" for c in padded):
            continue
        rows.append(padded[:width])

    return pd.DataFrame(rows, columns=headers, dtype=object)


def read_table(
    data: bytes,
    filename: str,
    sheet: Optional[str] = None,
    keyword: Optional[str] = None,
    fallback_index: int = 0,
    max_header_rows: int = 2,
) -> pd.DataFrame:
    """
    Load one sheet of a file as a table keyed by its detected headers.

    Args:
        data: Raw file bytes
        filename: Original file name
        sheet: Exact sheet name to use, if known
        keyword: Sheet-name keyword used when `sheet` is not given
        fallback_index: Sheet position used when the keyword does not match
        max_header_rows: Largest header block allowed

    Returns:
        DataFrame whose columns are the headers and whose values are cells

    Raises:
        MalformedInputError: if the file or the sheet is unusable
    """
    sheets = load_sheets(data, filename)
    if sheet is None:
        sheet = pick_sheet(list(sheets), keyword, fallback_index)
    elif sheet not in sheets:
        raise MalformedInputError(f"Sheet '{sheet}' not found. Available sheets: {list(sheets)}")

    try:
        start, height = detect_header(sheets[sheet], max_header_rows)
    except HeaderNotFoundError as e:
        raise HeaderNotFoundError(f"Header row not found in sheet '{sheet}' of '{filename}'") from e

    df = build_table(sheets[sheet], start, height)
    logger.info("Read %s [%s]: %d rows, %d columns", filename, sheet, len(df), len(df.columns))
    return df
