"""
Student Attendance Tracker - FastAPI Application Entry Point.

This is the main application module that:
1. Initializes the FastAPI app with CORS middleware
2. Sets up structured JSON logging
3. Implements request ID middleware (X-Request-ID header)
4. Maps domain errors to HTTP responses
5. Registers all API route handlers

The application follows a modular architecture:
- routes/: API endpoint handlers
- models/: SQLAlchemy ORM models
- services/: Business logic (directory, reconciliation, aggregation, reporting)
- exceptions.py: Error taxonomy
- logging_config.py: Structured logging configuration
- database.py: Database connection management
"""

import os
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from attendance_tracker.logging_config import (
    setup_logging, get_logger, log_with_context, timed,
    request_id_var, generate_request_id
)
from attendance_tracker.exceptions import AttendanceTrackerError, StorageUnavailable
from attendance_tracker.routes import attendance, reports, stats, students
from attendance_tracker.database import DATABASE_URL, create_tables

# Import all models so they are registered with Base.metadata
from attendance_tracker.models.student import Student
from attendance_tracker.models.attendance import AttendanceRecord

# ──────────────────────────────────────────────────────────────
# Initialize structured logging BEFORE anything else
# ──────────────────────────────────────────────────────────────
setup_logging()
logger = get_logger("http")

# Auto-create tables for SQLite local development
if DATABASE_URL.startswith("sqlite"):
    logger.info("Using SQLite, creating tables directly")
    create_tables()

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

app = FastAPI(
    title="Student Attendance Tracker",
    description=(
        "Student directory and daily attendance ledger. Accepts batches of "
        "attendance marks, keeps one mark per student per day, and serves "
        "daily, branch and trend statistics and downloadable reports."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"]
)


# ──────────────────────────────────────────────────────────────
# Request ID Middleware
#
# Tags every log entry of a request with one UUID, returns it in
# X-Request-ID and logs start/completion with latency.
# ──────────────────────────────────────────────────────────────
@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    req_id = generate_request_id()
    request_id_var.set(req_id)

    log_with_context(logger, "INFO",
        f"Request started: {request.method} {request.url.path}",
        context={"request_id": req_id},
        extra_data={
            "ip": request.client.host if request.client else "unknown",
            "user_agent": request.headers.get("user-agent", ""),
            "query_params": dict(request.query_params)
        })

    with timed() as timing:
        response = await call_next(request)

    response.headers["X-Request-ID"] = req_id

    log_with_context(logger, "INFO",
        f"Request completed: {request.method} {request.url.path} -> {response.status_code}",
        context={"request_id": req_id},
        extra_data={
            "duration_ms": timing["duration_ms"],
            "status_code": response.status_code
        })

    return response


# ──────────────────────────────────────────────────────────────
# Error handlers
#
# Every error body is {"message": ...}. Storage driver text is
# logged, never returned.
# ──────────────────────────────────────────────────────────────
@app.exception_handler(AttendanceTrackerError)
async def domain_error_handler(request: Request, exc: AttendanceTrackerError):
    level = "ERROR" if exc.status_code >= 500 else "WARNING"
    log_with_context(logger, level, f"{exc.code}: {exc.message}",
                     extra_data={"path": request.url.path, "status_code": exc.status_code})
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    log_with_context(logger, "ERROR", "Unhandled storage error",
                     extra_data={"path": request.url.path, "error": str(exc)})
    error = StorageUnavailable()
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(RequestValidationError)
async def payload_error_handler(request: Request, exc: RequestValidationError):
    """Structurally invalid payloads are a 400, matching the rest of the API."""
    problems = [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"code": "VALIDATION_ERROR", "message": "Invalid request payload", "errors": problems},
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.detail})


# ──────────────────────────────────────────────────────────────
# Register API routes
# ──────────────────────────────────────────────────────────────
app.include_router(students.router, tags=["Students"])
app.include_router(attendance.router, tags=["Attendance"])
app.include_router(stats.router, tags=["Statistics"])
app.include_router(reports.router, tags=["Reports"])


@app.get("/health", tags=["Health"])
def health_check():
    """Health check endpoint for Docker health checks and monitoring."""
    return {"status": "healthy", "service": "attendance-tracker-backend", "version": "1.0.0"}


@app.get("/", tags=["Root"])
def root():
    """Root endpoint with API information."""
    return {
        "service": "Student Attendance Tracker",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "add_student": "POST /students",
            "students": "GET /students",
            "student": "GET /students/{registerNumber}",
            "remove_student": "DELETE /students/{registerNumber}",
            "submit_attendance": "POST /attendance",
            "attendance": "GET /attendance",
            "attendance_by_date": "GET /attendance/by-date/{date}",
            "daily_stats": "GET /stats/daily/{date}",
            "today_stats": "GET /stats/today",
            "range_stats": "GET /stats/range",
            "branch_stats": "GET /stats/branches",
            "year_stats": "GET /stats/years",
            "summary": "GET /stats/summary",
            "report": "GET /reports?startDate&endDate&format",
            "daily_report": "GET /reports/daily/{date}"
        }
    }
