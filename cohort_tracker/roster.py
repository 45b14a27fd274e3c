"""Roster reading and assembly of the final per-student records."""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from cohort_tracker import headers as roles
from cohort_tracker.aggregate import first_value, normalize_email, normalize_roll
from cohort_tracker.models import OutputRecord, RosterEntry, SourceSummary
from cohort_tracker.reconcile import lookup

logger = logging.getLogger(__name__)

DIVISION_ORDER = {"A": 0, "B": 1, "C": 2}
OTHER_DIVISIONS = 99
NO_DATA = "-"


def read_roster(df: pd.DataFrame) -> List[RosterEntry]:
    """
    Extract roster entries from a roster table.

    Alternate spellings ('Roll No', 'RollNo', 'PRN', 'Email ID', ...) are
    resolved through the header classifier. Rows with no name, roll number
    or e-mail are skipped.
    """
    header_roles = roles.classify_headers(list(df.columns))
    name_cols = roles.columns(header_roles, roles.NAME)
    roll_cols = roles.columns(header_roles, roles.ROLL)
    division_cols = roles.columns(header_roles, roles.DIVISION)
    email_cols = roles.columns(header_roles, roles.EMAIL)

    entries = []
    for row in df.to_dict(orient="records"):
        entry = RosterEntry(
            name=first_value(row, name_cols),
            roll_no=normalize_roll(first_value(row, roll_cols)),
            division=first_value(row, division_cols),
            email=first_value(row, email_cols),
        )
        if not (entry.name or entry.roll_no or entry.email):
            continue
        entries.append(entry)

    logger.info("Roster: %d students", len(entries))
    return entries


def is_not_registered(email: str) -> bool:
    return "not registered" in (email or "").lower()


def format_progress(attained: int, total: int) -> str:
    return f"{attained} out of {total}"


def _roll_index(reconciled: Dict[str, SourceSummary]) -> Dict[str, SourceSummary]:
    # Summaries keyed by e-mail can still be found by their roll number
    index: Dict[str, SourceSummary] = {}
    for summary in reconciled.values():
        if summary.roll_no and summary.roll_no not in index:
            index[summary.roll_no] = summary
    return index


def sort_key(division: Optional[str], roll_no: Optional[str]) -> Tuple[int, str]:
    """Division A, B, C first, every other label as one block after; then roll number as text."""
    rank = DIVISION_ORDER.get((division or "").strip().upper(), OTHER_DIVISIONS)
    return rank, roll_no or ""


def sort_records(records: Sequence) -> list:
    """Stable sort of records exposing `division` and `roll_no`."""
    return sorted(records, key=lambda r: sort_key(r.division, r.roll_no))


def assemble(
    roster: List[RosterEntry],
    reconciled: Dict[str, SourceSummary],
    totals: Optional[Tuple[int, int]],
) -> List[OutputRecord]:
    """
    Build one output record per roster entry.

    Args:
        roster: Roster entries, the students to report
        reconciled: Student key -> chosen summary
        totals: Cohort (lectures, tests) totals, or None if no file had data

    Returns:
        Records ordered by division then roll number
    """
    by_roll = _roll_index(reconciled)
    records = []

    for entry in roster:
        if is_not_registered(entry.email):
            records.append(OutputRecord(
                name=entry.name,
                roll_no=entry.roll_no,
                division=entry.division,
                email=entry.email,
                sessions_attended=NO_DATA,
                tests_appeared=NO_DATA,
            ))
            continue

        email = normalize_email(entry.email)
        roll = normalize_roll(entry.roll_no)
        chosen = lookup(reconciled, [email, roll]) or (by_roll.get(roll) if roll else None)

        if chosen is None:
            if totals is None:
                sessions = tests = NO_DATA
            else:
                sessions = format_progress(0, totals[0])
                tests = format_progress(0, totals[1])
            logger.debug("No source data for roster entry %s / %s", email, roll)
            records.append(OutputRecord(
                name=entry.name,
                roll_no=entry.roll_no,
                division=entry.division,
                email=entry.email,
                sessions_attended=sessions,
                tests_appeared=tests,
            ))
            continue

        records.append(OutputRecord(
            name=entry.name or chosen.name,
            roll_no=entry.roll_no or chosen.roll_no,
            division=entry.division or chosen.division or "",
            email=entry.email or chosen.email,
            sessions_attended=(
                format_progress(chosen.sessions_attended, chosen.total_sessions)
                if chosen.total_sessions else NO_DATA
            ),
            tests_appeared=format_progress(chosen.tests_appeared, chosen.total_tests),
        ))

    return sort_records(records)
