"""Unit tests for aptitude module."""

import pandas as pd

from cohort_tracker.aptitude import build_aptitude_report

COLUMNS = [
    "Name", "Roll No", "Email", "Division",
    "Test 1 Overall - Marks (50)", "Test 2 Overall - Marks (50)",
    "We Coding 1 (100)", "We Coding 2 (100)",
]


def test_build_aptitude_report():
    df = pd.DataFrame(
        [
            ["Ravi", "b02", "Ravi@X.com", "B", 20, "", "-", "-"],
            ["Asha", "a01", "asha@x.com", "A", 40, 35, "-", 88],
        ],
        columns=COLUMNS,
        dtype=object,
    )
    records = build_aptitude_report(df)

    assert [r.name for r in records] == ["Asha", "Ravi"]
    asha, ravi = records
    assert asha.roll_no == "A01"
    assert asha.tests_appeared == "3 out of 4"
    assert asha.recent_aptitude_marks == 35
    assert asha.recent_coding_score == 88

    assert ravi.email == "ravi@x.com"
    assert ravi.tests_appeared == "1 out of 4"
    assert ravi.recent_aptitude_marks == "AB"
    assert ravi.recent_coding_score == "AB"


def test_build_aptitude_report_missing_fields():
    df = pd.DataFrame(
        [["Kiran", "", "", 45], ["", "", "", ""]],
        columns=["Name", "Roll No", "Email", "Test Overall (50)"],
        dtype=object,
    )
    records = build_aptitude_report(df)

    assert len(records) == 1
    kiran = records[0]
    assert (kiran.roll_no, kiran.email, kiran.division) == ("-", "-", "-")
    assert kiran.tests_appeared == "1 out of 1"
    assert kiran.recent_aptitude_marks == 45
    assert kiran.recent_coding_score == "AB"
