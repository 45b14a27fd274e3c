"""Shared fixtures: spreadsheets built in memory."""

from io import BytesIO

import pytest
from openpyxl import Workbook

LECTURE_1 = "Lecture 1 (2025-07-26, 10:00 AM - 11:00 AM)"
LECTURE_2 = "Lecture 2 (2025-07-27, 10:00 AM - 11:00 AM)"


def build_workbook(sheets):
    """Save {sheet title: rows} as xlsx bytes."""
    wb = Workbook()
    wb.remove(wb.active)
    for title, rows in sheets.items():
        ws = wb.create_sheet(title)
        for row in rows:
            ws.append(row)
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def build_track_workbook(attendance_rows, assessment_rows):
    """A coding-platform track export with a three-row assessment header."""
    return build_workbook({
        "Attendance": [["User Name", "Email", LECTURE_1, LECTURE_2]] + attendance_rows,
        "Weekly Assessment Report": [
            ["Name", "Email", "Week 1", "Week 2"],
            ["", "", "Coding Problem Score out of 100", "Coding Problem Score out of 100"],
        ] + assessment_rows,
    })


@pytest.fixture
def java_track():
    return build_track_workbook(
        [
            ["Asha", "asha@x.com", "1:00:00", "1:00:00"],
            ["Ravi", "ravi@x.com", "0:30:00", "1:00:00"],
        ],
        [
            ["Asha", "asha@x.com", 80, 70],
            ["Ravi", "ravi@x.com", 50, "-"],
        ],
    )


@pytest.fixture
def cpp_track():
    return build_track_workbook(
        [
            ["Asha", "asha@x.com", "1:00:00", "-"],
            ["Ravi", "ravi@x.com", "1:00:00", "1:00:00"],
        ],
        [
            ["Asha", "asha@x.com", 90, "-"],
            ["Ravi", "ravi@x.com", "-", "Not Attended"],
        ],
    )


@pytest.fixture
def roster_workbook():
    return build_workbook({
        "Sheet1": [
            ["Department of Computer Engineering", "", "", ""],
            ["Name", "Roll No", "Division", "Email ID"],
            ["Ravi", "r02", "B", "ravi@x.com"],
            ["Asha", "r01", "A", "asha@x.com"],
            ["Meera", "r03", "A", "Not Registered"],
            ["Kiran", "r00", "A", "kiran@x.com"],
        ],
    })
