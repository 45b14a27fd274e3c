"""Per-file aggregation: attendance and assessment sheets into student summaries."""

import logging
import re
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from cohort_tracker import headers as roles
from cohort_tracker.durations import is_lecture_attended
from cohort_tracker.models import Cell, SourceSummary
from cohort_tracker.reader import MalformedInputError, cell_text, detect_header, build_table, load_sheets, pick_sheet

logger = logging.getLogger(__name__)

# Weekly assessment exports carry up to three header rows
ASSESSMENT_HEADER_ROWS = 3

ABSENT_MARKERS = {"", "-", "#n/a"}

_NUMBER_RE = re.compile(r"[-+]?\d*\.?\d+")


def normalize_email(value) -> str:
    return cell_text(value).lower() if value is not None else ""


def normalize_roll(value) -> str:
    return cell_text(value).upper() if value is not None else ""


def derive_key(email: str, roll: str, name: str) -> str:
    """
    Build the join key for a student: e-mail, else roll number, else name.

    Returns "" when all three are blank.
    """
    return normalize_email(email) or normalize_roll(roll) or cell_text(name).lower()


def first_value(row: Dict[str, Cell], cols: List[str]) -> str:
    """First non-blank value among the given columns of a row."""
    for col in cols:
        value = cell_text(row.get(col, ""))
        if value:
            return value
    return ""


def _identity(row: Dict[str, Cell], header_roles: roles.HeaderRoles) -> Dict[str, Optional[str]]:
    email = normalize_email(first_value(row, roles.columns(header_roles, roles.EMAIL)))
    name = first_value(row, roles.columns(header_roles, roles.NAME))
    if not name and email:
        name = email.split("@")[0]
    return {
        "email": email,
        "name": name,
        "roll_no": normalize_roll(first_value(row, roles.columns(header_roles, roles.ROLL))),
        "division": first_value(row, roles.columns(header_roles, roles.DIVISION)) or None,
    }


def parse_score(cell: Cell) -> float:
    """
    Numeric value of a score cell.

    Blank, '-', and text containing 'not' count as 0. Text such as '45 / 100'
    or '72%' yields its leading number.
    """
    if isinstance(cell, (int, float)) and not isinstance(cell, bool):
        value = float(cell)
    else:
        text = cell_text(cell)
        if not text or text == "-" or "not" in text.lower():
            return 0.0
        match = _NUMBER_RE.search(text.replace(",", ""))
        if not match:
            return 0.0
        value = float(match.group(0))
    return value if np.isfinite(value) else 0.0


def is_test_appeared(cell: Cell) -> bool:
    """A test counts as appeared unless the cell is blank, '-', '#N/A' or says 'not ...'."""
    text = cell_text(cell).lower()
    return text not in ABSENT_MARKERS and "not" not in text


def summarize_attendance(df: pd.DataFrame, threshold: float = 1.0) -> Dict[str, SourceSummary]:
    """
    Count attended lectures per student.

    Args:
        df: Attendance sheet as read by the tabular reader
        threshold: Fraction of a lecture's scheduled length needed to be present

    Returns:
        Mapping of student key -> summary carrying attendance fields only
    """
    header_roles = roles.classify_headers(list(df.columns))
    lecture_cols = roles.columns(header_roles, roles.LECTURE)
    total = len(lecture_cols)
    logger.debug("Attendance sheet: %d lecture columns", total)

    summaries: Dict[str, SourceSummary] = {}
    dropped = 0
    for row in df.to_dict(orient="records"):
        ident = _identity(row, header_roles)
        key = derive_key(ident["email"], ident["roll_no"], ident["name"])
        if not key:
            dropped += 1
            continue

        attended = sum(1 for col in lecture_cols if is_lecture_attended(row.get(col, ""), col, threshold))

        if key in summaries:
            logger.debug("Duplicate attendance key '%s', keeping the later row", key)
        summaries[key] = SourceSummary(
            total_sessions=total,
            sessions_attended=attended,
            **ident,
        )

    if dropped:
        logger.debug("Attendance sheet: dropped %d rows without identity", dropped)
    return summaries


def assessment_columns(header_roles: roles.HeaderRoles) -> List[str]:
    """Coding-score columns, or the aptitude platform's test columns when there are none."""
    cols = roles.columns(header_roles, roles.CODING_SCORE)
    if cols:
        return cols
    return roles.columns(header_roles, roles.APTITUDE, roles.CODING_TEST)


def summarize_assessment(df: pd.DataFrame) -> Dict[str, SourceSummary]:
    """
    Count appeared tests and average the coding scores per student.

    Every test column is counted in the average, so a missed test pulls the
    average down.

    Returns:
        Mapping of student key -> summary carrying test fields only
    """
    header_roles = roles.classify_headers(list(df.columns))
    test_cols = assessment_columns(header_roles)
    total = len(test_cols)
    logger.debug("Assessment sheet: %d test columns %s", total, test_cols)

    summaries: Dict[str, SourceSummary] = {}
    for row in df.to_dict(orient="records"):
        ident = _identity(row, header_roles)
        key = derive_key(ident["email"], ident["roll_no"], ident["name"])
        if not key:
            continue

        cells = [row.get(col, "") for col in test_cols]
        score_sum = sum(parse_score(c) for c in cells)
        avg: Optional[float] = round(score_sum / total, 2) if total else None

        summaries[key] = SourceSummary(
            total_tests=total,
            tests_appeared=sum(1 for c in cells if is_test_appeared(c)),
            coding_score_sum=score_sum,
            coding_columns=total,
            avg_coding_score=avg,
            **ident,
        )
    return summaries


def combine_sheets(
    attendance: Dict[str, SourceSummary],
    assessment: Dict[str, SourceSummary],
    total_sessions: int,
    total_tests: int,
) -> Dict[str, SourceSummary]:
    """
    Join the attendance and assessment summaries of one file on the student key.

    A student found in only one sheet gets zeros for the other one, with that
    sheet's column count as the total, so "0 out of N" stays distinct from
    "no data".
    """
    combined: Dict[str, SourceSummary] = {}
    for key in list(attendance) + [k for k in assessment if k not in attendance]:
        a = attendance.get(key)
        s = assessment.get(key)

        name = (a.name if a else "") or (s.name if s else "")
        email = (a.email if a else "") or (s.email if s else "") or (key if "@" in key else "")
        roll_no = (a.roll_no if a else "") or (s.roll_no if s else "")
        division = (a.division if a else None) or (s.division if s else None)

        summary = SourceSummary(
            name=name,
            email=email,
            roll_no=roll_no,
            division=division,
            total_sessions=a.total_sessions if a else total_sessions,
            sessions_attended=a.sessions_attended if a else 0,
            total_tests=s.total_tests if s else total_tests,
            tests_appeared=s.tests_appeared if s else 0,
            coding_score_sum=s.coding_score_sum if s else 0.0,
            coding_columns=s.coding_columns if s else total_tests,
            avg_coding_score=s.avg_coding_score if s else None,
        )
        combined[derive_key(email, roll_no, name)] = summary
    return combined


def summarize_track_workbook(
    data: bytes,
    filename: str,
    threshold: float = 1.0,
    max_header_rows: int = 2,
) -> Dict[str, SourceSummary]:
    """
    Summarize one coding-platform track workbook.

    The attendance sheet is the one named like 'attendance' (else the first
    sheet); the assessment sheet is the one named like 'weekly assessment'
    (else the second, else the first).

    Args:
        data: Raw workbook bytes
        filename: Original file name
        threshold: Lecture attendance threshold ratio
        max_header_rows: Header block limit for the attendance sheet

    Returns:
        Mapping of student key -> SourceSummary

    Raises:
        MalformedInputError: if either sheet has no detectable header row
    """
    sheets = load_sheets(data, filename)
    names = list(sheets)
    attendance_name = pick_sheet(names, "attendance", 0)
    assessment_name = pick_sheet(names, "weekly assessment", 1)

    tables = {}
    for label, sheet, height in (
        ("attendance", attendance_name, max_header_rows),
        ("assessment", assessment_name, max(max_header_rows, ASSESSMENT_HEADER_ROWS)),
    ):
        try:
            start, h = detect_header(sheets[sheet], height)
        except MalformedInputError as e:
            raise MalformedInputError(
                f"{filename}: {label} sheet '{sheet}' is unusable ({e})"
            ) from e
        tables[label] = build_table(sheets[sheet], start, h)

    attendance_df, assessment_df = tables["attendance"], tables["assessment"]
    attendance = summarize_attendance(attendance_df, threshold)
    assessment = summarize_assessment(assessment_df)

    total_sessions = len(roles.columns(roles.classify_headers(list(attendance_df.columns)), roles.LECTURE))
    total_tests = len(assessment_columns(roles.classify_headers(list(assessment_df.columns))))

    result = combine_sheets(attendance, assessment, total_sessions, total_tests)
    logger.info(
        "%s: %d students (%d lectures, %d tests)",
        filename, len(result), total_sessions, total_tests,
    )
    return result
