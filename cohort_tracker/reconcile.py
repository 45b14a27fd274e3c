"""Cross-file reconciliation of per-student summaries."""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from cohort_tracker.models import CumulativeStudent, SourceSummary

logger = logging.getLogger(__name__)


def choose_summary(current: SourceSummary, candidate: SourceSummary) -> SourceSummary:
    """
    Pick between two summaries of the same student.

    More sessions attended wins. On equal sessions the candidate wins when
    it appeared in at least as many tests, so a full tie goes to the later
    source.
    """
    if candidate.sessions_attended > current.sessions_attended:
        return candidate
    if candidate.sessions_attended < current.sessions_attended:
        return current
    return candidate if candidate.tests_appeared >= current.tests_appeared else current


def reconcile_sources(sources: List[Dict[str, SourceSummary]]) -> Dict[str, SourceSummary]:
    """
    Merge per-file summaries into one summary per student key.

    Args:
        sources: Per-file mappings of student key -> summary, in upload order

    Returns:
        Mapping of every key present in any source to the chosen summary
    """
    reconciled: Dict[str, SourceSummary] = {}
    for idx, source in enumerate(sources):
        for key, summary in source.items():
            if key in reconciled:
                chosen = choose_summary(reconciled[key], summary)
                if chosen is summary:
                    logger.debug("Key '%s': source %d replaces earlier summary", key, idx)
                reconciled[key] = chosen
            else:
                reconciled[key] = summary
    logger.debug("Reconciled %d sources into %d students", len(sources), len(reconciled))
    return reconciled


def lookup(reconciled: Dict[str, SourceSummary], keys: Iterable[str]) -> Optional[SourceSummary]:
    """First summary found under the given keys, skipping blank keys."""
    for key in keys:
        if key and key in reconciled:
            return reconciled[key]
    return None


def cohort_totals(sources: List[Dict[str, SourceSummary]]) -> Optional[Tuple[int, int]]:
    """
    Lecture and test totals for the cohort.

    The largest totals seen in any summary are used. Returns None when no
    source holds any student.
    """
    summaries = [s for source in sources for s in source.values()]
    if not summaries:
        return None
    return (
        max(s.total_sessions for s in summaries),
        max(s.total_tests for s in summaries),
    )


def accumulate_sources(sources: List[Dict[str, SourceSummary]]) -> List[CumulativeStudent]:
    """
    Add up attendance and coding scores per e-mail across every file.

    Unlike `reconcile_sources` nothing is chosen: lectures, attended counts,
    score sums and column counts are summed, and the coding average is
    recomputed from the sums. Students without an e-mail are skipped.

    Returns:
        Students sorted by name
    """
    totals: Dict[str, Dict] = {}
    for source in sources:
        for summary in source.values():
            email = summary.email
            if not email:
                continue
            acc = totals.setdefault(email, {
                "name": "",
                "attended": 0,
                "total_lectures": 0,
                "score_sum": 0.0,
                "coding_columns": 0,
            })
            acc["name"] = acc["name"] or summary.name
            acc["attended"] += summary.sessions_attended
            acc["total_lectures"] += summary.total_sessions
            acc["score_sum"] += summary.coding_score_sum
            acc["coding_columns"] += summary.coding_columns

    students = []
    for email, acc in totals.items():
        avg = round(acc["score_sum"] / acc["coding_columns"], 2) if acc["coding_columns"] else 0.0
        students.append(CumulativeStudent(
            name=acc["name"] or email.split("@")[0],
            email=email,
            attended=acc["attended"],
            total_lectures=acc["total_lectures"],
            avg_coding=avg,
            coding_columns=acc["coding_columns"],
        ))

    students.sort(key=lambda s: (s.name.lower(), s.email))
    return students
