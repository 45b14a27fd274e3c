"""Aptitude-test platform report: tests appeared and latest marks per student."""

import logging
from typing import List

import pandas as pd

from cohort_tracker import headers as roles
from cohort_tracker.aggregate import first_value, normalize_email, normalize_roll
from cohort_tracker.models import AptitudeRecord, Cell
from cohort_tracker.reader import cell_text
from cohort_tracker.roster import format_progress, sort_records

logger = logging.getLogger(__name__)

ABSENT = "AB"


def _taken(cell: Cell) -> bool:
    text = cell_text(cell)
    return text != "" and text != "-"


def _latest(row, cols: List[str]):
    if not cols:
        return ABSENT
    value = row.get(cols[-1], "")
    return value if _taken(value) else ABSENT


def build_aptitude_report(df: pd.DataFrame) -> List[AptitudeRecord]:
    """
    Summarize an aptitude platform export.

    Tests are the 'Overall ... (50)' and 'We ... (100)' columns. The recent
    marks are taken from the last column of each kind, 'AB' when blank.

    Args:
        df: Sheet as read by the tabular reader

    Returns:
        Records ordered by division then roll number
    """
    header_roles = roles.classify_headers(list(df.columns))
    aptitude_cols = roles.columns(header_roles, roles.APTITUDE)
    coding_cols = roles.columns(header_roles, roles.CODING_TEST)
    test_cols = aptitude_cols + coding_cols
    logger.debug("Aptitude sheet: %d aptitude, %d coding test columns", len(aptitude_cols), len(coding_cols))

    name_cols = roles.columns(header_roles, roles.NAME)
    roll_cols = roles.columns(header_roles, roles.ROLL)
    email_cols = roles.columns(header_roles, roles.EMAIL)
    division_cols = roles.columns(header_roles, roles.DIVISION)

    records = []
    for row in df.to_dict(orient="records"):
        name = first_value(row, name_cols)
        roll = normalize_roll(first_value(row, roll_cols))
        email = normalize_email(first_value(row, email_cols))
        if not (name or roll or email):
            continue

        appeared = sum(1 for col in test_cols if _taken(row.get(col, "")))
        records.append(AptitudeRecord(
            name=name or "-",
            roll_no=roll or "-",
            email=email or "-",
            division=first_value(row, division_cols) or "-",
            tests_appeared=format_progress(appeared, len(test_cols)),
            recent_aptitude_marks=_latest(row, aptitude_cols),
            recent_coding_score=_latest(row, coding_cols),
        ))

    return sort_records(records)
