"""Unit tests for aggregate module."""

import pandas as pd
import pytest

from cohort_tracker.aggregate import (
    combine_sheets,
    derive_key,
    is_test_appeared,
    parse_score,
    summarize_assessment,
    summarize_attendance,
    summarize_track_workbook,
)
from cohort_tracker.reader import MalformedInputError
from conftest import LECTURE_1, build_workbook


def attendance_df(rows):
    return pd.DataFrame(rows, columns=["User Name", "Email", "Roll No", LECTURE_1, "Lecture 2"], dtype=object)


def test_derive_key_priority():
    assert derive_key(" Asha@X.com ", "a01", "Asha") == "asha@x.com"
    assert derive_key("", " a01 ", "Asha") == "A01"
    assert derive_key("", "", " Asha K ") == "asha k"
    assert derive_key("", "", "") == ""


def test_summarize_attendance_counts():
    df = attendance_df([
        ["Asha", "Asha@X.com ", "", "1:00:00", "0:10:00"],
        ["Ravi", "ravi@x.com", "", "0:59:00", "-"],
        ["", "", "", "1:00:00", "1"],
    ])
    result = summarize_attendance(df)

    assert set(result) == {"asha@x.com", "ravi@x.com"}
    assert result["asha@x.com"].sessions_attended == 2
    assert result["asha@x.com"].total_sessions == 2
    assert result["ravi@x.com"].sessions_attended == 0


def test_summarize_attendance_threshold():
    df = attendance_df([["Asha", "asha@x.com", "", "0:45:00", ""]])
    assert summarize_attendance(df)["asha@x.com"].sessions_attended == 0
    assert summarize_attendance(df, threshold=0.75)["asha@x.com"].sessions_attended == 1


def test_summarize_attendance_identity_fallbacks():
    df = attendance_df([
        ["", "kiran@x.com", "", "-", "-"],
        ["Meera", "", "a07", "-", "-"],
        ["Dev", "", "", "-", "-"],
    ])
    result = summarize_attendance(df)

    assert result["kiran@x.com"].name == "kiran"
    assert result["A07"].name == "Meera"
    assert result["A07"].roll_no == "A07"
    assert "dev" in result


def test_summarize_attendance_later_duplicate_wins():
    df = attendance_df([
        ["Dev", "", "", "1:00:00", "-"],
        ["Dev", "", "", "-", "-"],
    ])
    assert summarize_attendance(df)["dev"].sessions_attended == 0


@pytest.mark.parametrize("cell,expected", [
    ("-", 0.0),
    ("", 0.0),
    ("Not Attempted", 0.0),
    ("45 / 100", 45.0),
    ("72%", 72.0),
    (72.5, 72.5),
    ("abc", 0.0),
])
def test_parse_score(cell, expected):
    assert parse_score(cell) == expected


def test_is_test_appeared():
    assert is_test_appeared(0) is True
    assert is_test_appeared("35") is True
    assert is_test_appeared("") is False
    assert is_test_appeared("-") is False
    assert is_test_appeared("#N/A") is False
    assert is_test_appeared("Not Attended") is False


def test_summarize_assessment_counts_every_column():
    """Absent cells add 0 but still count towards the average."""
    df = pd.DataFrame(
        [
            ["Asha", "asha@x.com", 80, "-", "Not Attended"],
            ["Ravi", "ravi@x.com", "90", "70", ""],
        ],
        columns=["Name", "Email", "Week 1 Coding Problem Score", "Week 2 Coding Problem Score", "Week 3 Coding Score"],
        dtype=object,
    )
    result = summarize_assessment(df)

    asha = result["asha@x.com"]
    assert asha.total_tests == 3
    assert asha.tests_appeared == 1
    assert asha.coding_score_sum == 80.0
    assert asha.coding_columns == 3
    assert asha.avg_coding_score == 26.67

    ravi = result["ravi@x.com"]
    assert ravi.tests_appeared == 2
    assert ravi.avg_coding_score == 53.33


def test_summarize_assessment_aptitude_columns():
    df = pd.DataFrame(
        [["Asha", "asha@x.com", 40, "-"]],
        columns=["Name", "Email", "Overall - Marks (50)", "We Score (100)"],
        dtype=object,
    )
    asha = summarize_assessment(df)["asha@x.com"]
    assert asha.total_tests == 2
    assert asha.tests_appeared == 1


def test_summarize_assessment_without_test_columns():
    df = pd.DataFrame([["Asha", "asha@x.com"]], columns=["Name", "Email"], dtype=object)
    asha = summarize_assessment(df)["asha@x.com"]
    assert asha.total_tests == 0
    assert asha.avg_coding_score is None


def test_combine_sheets_zero_fills_missing_side():
    attendance = summarize_attendance(attendance_df([["Asha", "asha@x.com", "A01", "1:00:00", "-"]]))
    assessment = summarize_assessment(pd.DataFrame(
        [["Asha", "asha@x.com", 60, 40], ["Kiran", "kiran@x.com", 50, "-"]],
        columns=["Name", "Email", "Coding Score 1", "Coding Score 2"],
        dtype=object,
    ))
    combined = combine_sheets(attendance, assessment, total_sessions=2, total_tests=2)

    asha = combined["asha@x.com"]
    assert (asha.sessions_attended, asha.total_sessions) == (1, 2)
    assert (asha.tests_appeared, asha.total_tests) == (2, 2)
    assert asha.roll_no == "A01"
    assert asha.avg_coding_score == 50.0

    kiran = combined["kiran@x.com"]
    assert (kiran.sessions_attended, kiran.total_sessions) == (0, 2)
    assert (kiran.tests_appeared, kiran.total_tests) == (1, 2)


def test_combine_sheets_attendance_only_student():
    attendance = summarize_attendance(attendance_df([["Ravi", "ravi@x.com", "", "1:00:00", "1:00:00"]]))
    combined = combine_sheets(attendance, {}, total_sessions=2, total_tests=5)

    ravi = combined["ravi@x.com"]
    assert (ravi.tests_appeared, ravi.total_tests) == (0, 5)
    assert ravi.avg_coding_score is None


def test_summarize_track_workbook(java_track):
    result = summarize_track_workbook(java_track, "java.xlsx")

    asha = result["asha@x.com"]
    assert (asha.sessions_attended, asha.total_sessions) == (2, 2)
    assert (asha.tests_appeared, asha.total_tests) == (2, 2)
    assert asha.avg_coding_score == 75.0

    ravi = result["ravi@x.com"]
    assert (ravi.sessions_attended, ravi.total_sessions) == (1, 2)
    assert (ravi.tests_appeared, ravi.total_tests) == (1, 2)


def test_summarize_track_workbook_sheet_position_fallback():
    data = build_workbook({
        "Sheet1": [["User Name", "Email", LECTURE_1], ["Asha", "asha@x.com", "1:00:00"]],
        "Sheet2": [["Name", "Email", "Coding Score"], ["Asha", "asha@x.com", 10]],
    })
    asha = summarize_track_workbook(data, "track.xlsx")["asha@x.com"]
    assert asha.sessions_attended == 1
    assert asha.tests_appeared == 1


def test_summarize_track_workbook_unusable_sheet():
    data = build_workbook({
        "Attendance": [["User Name", "Email", LECTURE_1], ["Asha", "asha@x.com", "1:00:00"]],
        "Weekly Assessment": [["no header here"]],
    })
    with pytest.raises(MalformedInputError, match="assessment"):
        summarize_track_workbook(data, "track.xlsx")
