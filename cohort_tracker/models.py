"""Data models for the Cohort Progress Tracker application."""

from typing import Optional, Dict, List, Union
from pydantic import BaseModel, ConfigDict

# A spreadsheet cell after reading: text, a number, or "" for blank.
Cell = Union[str, int, float]


class SourceSummary(BaseModel):
    """Per-student summary built from one track workbook."""
    model_config = ConfigDict(frozen=True)

    name: str = ""
    email: str = ""
    roll_no: str = ""
    division: Optional[str] = None
    total_sessions: int = 0
    sessions_attended: int = 0
    total_tests: int = 0
    tests_appeared: int = 0
    coding_score_sum: float = 0.0
    coding_columns: int = 0
    avg_coding_score: Optional[float] = None


class RosterEntry(BaseModel):
    """One enrolled student from the roster file."""
    name: str = ""
    roll_no: str = ""
    division: str = ""
    email: str = ""


class OutputRecord(BaseModel):
    """Final per-student row for display and export."""
    name: str
    roll_no: str
    division: str
    email: str
    sessions_attended: str
    tests_appeared: str


class AptitudeRecord(BaseModel):
    """Per-student row from the aptitude-test platform."""
    name: str
    roll_no: str
    email: str
    division: str
    tests_appeared: str
    recent_aptitude_marks: Union[str, float, int]
    recent_coding_score: Union[str, float, int]


class CumulativeStudent(BaseModel):
    """Attendance and coding average summed across every track file."""
    name: str
    email: str
    attended: int
    total_lectures: int
    avg_coding: float
    coding_columns: int


class CohortResponse(BaseModel):
    """Response from the cohort upload endpoint."""
    success: bool
    message: str
    records: List[OutputRecord]
    summary: Dict[str, int]


class AptitudeResponse(BaseModel):
    """Response from the aptitude upload endpoint."""
    success: bool
    message: str
    records: List[AptitudeRecord]


class CumulativeResponse(BaseModel):
    """Response from the cumulative track summary endpoint."""
    success: bool
    students: List[CumulativeStudent]
