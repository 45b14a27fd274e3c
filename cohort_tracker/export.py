"""Re-export of output records to CSV and Excel."""

from io import BytesIO
from typing import List

import pandas as pd

from cohort_tracker.models import OutputRecord

EXPORT_COLUMNS = {
    "name": "Name",
    "roll_no": "Roll No",
    "division": "Division",
    "email": "Email",
    "sessions_attended": "Sessions Attended",
    "tests_appeared": "Tests Appeared",
}


def records_to_dataframe(records: List[OutputRecord]) -> pd.DataFrame:
    """One row per record, columns in display order."""
    rows = [r.model_dump() for r in records]
    df = pd.DataFrame(rows, columns=list(EXPORT_COLUMNS))
    return df.rename(columns=EXPORT_COLUMNS)


def export_csv_bytes(records: List[OutputRecord]) -> bytes:
    return records_to_dataframe(records).to_csv(index=False).encode("utf-8-sig")


def export_excel_bytes(records: List[OutputRecord], sheet_name: str = "Students") -> bytes:
    output = BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        records_to_dataframe(records).to_excel(writer, sheet_name=sheet_name, index=False)
    return output.getvalue()
