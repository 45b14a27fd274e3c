"""FastAPI main application for the Cohort Progress Tracker."""

import asyncio
import logging
import traceback
from datetime import datetime
from typing import Dict, List

from fastapi import FastAPI, File, UploadFile, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from cohort_tracker import __version__
from cohort_tracker.config import load_settings
from cohort_tracker.export import export_csv_bytes, export_excel_bytes
from cohort_tracker.headers import classify_headers
from cohort_tracker.models import AptitudeResponse, CohortResponse, CumulativeResponse, OutputRecord
from cohort_tracker.pipeline import Upload, process_aptitude, process_cohort, process_cumulative
from cohort_tracker.reader import MalformedInputError, build_table, detect_header, load_sheets
from cohort_tracker.roster import is_not_registered

settings = load_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Cohort Progress Tracker", version=__version__)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ALLOWED_EXTENSIONS = (".xlsx", ".xlsm", ".csv")

# In-memory storage for results (session-based)
results_cache: Dict[str, List[OutputRecord]] = {}


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler_json(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions and return JSON."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail}
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler_json(request: Request, exc: RequestValidationError):
    """Handle validation errors and return JSON."""
    return JSONResponse(
        status_code=422,
        content={"detail": exc.errors()}
    )


# Only reached by exceptions the handlers above do not cover
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions and return JSON."""
    logger.exception("Unhandled error on %s", request.url.path)
    error_detail = str(exc)
    if settings.debug:
        error_detail = f"{str(exc)}\n\n{traceback.format_exc()}"

    return JSONResponse(
        status_code=500,
        content={
            "detail": f"Internal server error: {error_detail}",
            "type": type(exc).__name__
        }
    )


async def read_upload(file: UploadFile) -> Upload:
    """Read one uploaded file, enforcing type and size limits."""
    filename = file.filename or ""
    if not filename.lower().endswith(ALLOWED_EXTENSIONS):
        logger.warning("Rejected upload with unsupported type: %s", filename)
        raise HTTPException(
            status_code=400,
            detail=f"Invalid file type for '{filename}'. Please upload an Excel or CSV file"
        )

    file_bytes = await file.read()
    if len(file_bytes) > settings.max_upload_size:
        logger.warning("Rejected oversized upload: %s (%d bytes)", filename, len(file_bytes))
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size: {settings.max_upload_size_mb}MB"
        )
    return filename, file_bytes


async def read_uploads(files: List[UploadFile]) -> List[Upload]:
    return list(await asyncio.gather(*(read_upload(f) for f in files)))


def latest_results() -> List[OutputRecord]:
    if not results_cache:
        raise HTTPException(status_code=404, detail="No results available")
    return results_cache[max(results_cache.keys())]


@app.get("/health")
async def health_check():
    """Health check endpoint to test server connectivity."""
    return JSONResponse(content={"status": "ok", "message": "Server is running"})


@app.post("/debug-headers")
async def debug_headers(file: UploadFile = File(...)):
    """Show the detected header row and column roles of every sheet."""
    filename, file_bytes = await read_upload(file)
    try:
        sheets = load_sheets(file_bytes, filename)
    except MalformedInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    report = {}
    for sheet, matrix in sheets.items():
        try:
            start, height = detect_header(matrix, settings.max_header_rows)
        except MalformedInputError as e:
            report[sheet] = {"error": str(e)}
            continue
        df = build_table(matrix, start, height)
        report[sheet] = {
            "header_row": start,
            "header_height": height,
            "columns": list(df.columns),
            "roles": {role: [h for _, h in cols] for role, cols in classify_headers(list(df.columns)).items()},
            "rows": len(df),
        }
    return JSONResponse(content=report)


@app.post("/cohort", response_model=CohortResponse)
async def upload_cohort(
    roster: UploadFile = File(...),
    tracks: List[UploadFile] = File(...),
):
    """Process a roster file against two or more track workbooks."""
    if len(tracks) < 2:
        raise HTTPException(status_code=400, detail="Upload at least two track files")

    roster_upload, *track_uploads = await read_uploads([roster, *tracks])

    try:
        records = process_cohort(
            roster_upload,
            track_uploads,
            threshold=settings.attendance_threshold,
            max_header_rows=settings.max_header_rows,
        )
    except ValueError as e:
        logger.warning("Cohort run failed: %s", e)
        raise HTTPException(status_code=400, detail=str(e))

    session_id = datetime.now().isoformat()
    results_cache.clear()
    results_cache[session_id] = records

    summary = {
        'Total': len(records),
        'Not Registered': sum(1 for r in records if is_not_registered(r.email)),
        'No Activity': sum(1 for r in records if r.sessions_attended.startswith("0 out of") and r.tests_appeared.startswith("0 out of")),
    }

    return CohortResponse(
        success=True,
        message=f"Successfully processed {len(records)} students",
        records=records,
        summary=summary,
    )


@app.post("/aptitude", response_model=AptitudeResponse)
async def upload_aptitude(file: UploadFile = File(...)):
    """Process an aptitude platform export."""
    upload = await read_upload(file)
    try:
        records = process_aptitude(upload, max_header_rows=settings.max_header_rows)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return AptitudeResponse(
        success=True,
        message=f"Successfully processed {len(records)} students",
        records=records,
    )


@app.post("/tracks/cumulative", response_model=CumulativeResponse)
async def upload_cumulative(tracks: List[UploadFile] = File(...)):
    """Sum attendance and coding averages across track workbooks."""
    uploads = await read_uploads(tracks)
    try:
        students = process_cumulative(
            uploads,
            threshold=settings.attendance_threshold,
            max_header_rows=settings.max_header_rows,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return CumulativeResponse(success=True, students=students)


@app.get("/results")
async def get_results():
    """Get the last processed cohort."""
    records = latest_results()
    return {
        'session_id': max(results_cache.keys()),
        'records': [r.model_dump() for r in records],
    }


@app.get("/download.csv")
async def download_csv():
    """Download the last processed cohort as CSV."""
    records = latest_results()
    stamp = max(results_cache.keys())[:10]
    return Response(
        content=export_csv_bytes(records),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=cohort_progress_{stamp}.csv"},
    )


@app.get("/download.xlsx")
async def download_xlsx():
    """Download the last processed cohort as an Excel workbook."""
    records = latest_results()
    stamp = max(results_cache.keys())[:10]
    return Response(
        content=export_excel_bytes(records),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename=cohort_progress_{stamp}.xlsx"},
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
