"""End-to-end processing runs: files in, ordered records out."""

import logging
from typing import Dict, List, Tuple

from cohort_tracker.aggregate import summarize_track_workbook
from cohort_tracker.aptitude import build_aptitude_report
from cohort_tracker.models import AptitudeRecord, CumulativeStudent, OutputRecord, SourceSummary
from cohort_tracker.reader import read_table
from cohort_tracker.reconcile import accumulate_sources, cohort_totals, reconcile_sources
from cohort_tracker.roster import assemble, read_roster

logger = logging.getLogger(__name__)

# (filename, file bytes)
Upload = Tuple[str, bytes]


def summarize_tracks(
    tracks: List[Upload],
    threshold: float = 1.0,
    max_header_rows: int = 2,
) -> List[Dict[str, SourceSummary]]:
    """Summarize every track workbook; the first unusable file aborts the run."""
    return [
        summarize_track_workbook(data, filename, threshold, max_header_rows)
        for filename, data in tracks
    ]


def process_cohort(
    roster: Upload,
    tracks: List[Upload],
    threshold: float = 1.0,
    max_header_rows: int = 2,
) -> List[OutputRecord]:
    """
    Run the full roster + track pipeline.

    Args:
        roster: Roster file
        tracks: Track workbooks, in the order used to break ties
        threshold: Lecture attendance threshold ratio
        max_header_rows: Header block limit

    Returns:
        One record per roster entry, ordered by division then roll number

    Raises:
        MalformedInputError: if any file is unusable (no partial output)
    """
    roster_name, roster_bytes = roster
    entries = read_roster(read_table(roster_bytes, roster_name, max_header_rows=max_header_rows))

    sources = summarize_tracks(tracks, threshold, max_header_rows)
    reconciled = reconcile_sources(sources)
    records = assemble(entries, reconciled, cohort_totals(sources))

    logger.info(
        "Processed cohort: %d roster entries, %d track files, %d reconciled students",
        len(entries), len(tracks), len(reconciled),
    )
    return records


def process_aptitude(upload: Upload, max_header_rows: int = 2) -> List[AptitudeRecord]:
    """Build the aptitude platform report from its first sheet."""
    filename, data = upload
    return build_aptitude_report(read_table(data, filename, fallback_index=0, max_header_rows=max_header_rows))


def process_cumulative(
    tracks: List[Upload],
    threshold: float = 1.0,
    max_header_rows: int = 2,
) -> List[CumulativeStudent]:
    """Attendance and coding averages summed over every track workbook."""
    return accumulate_sources(summarize_tracks(tracks, threshold, max_header_rows))
