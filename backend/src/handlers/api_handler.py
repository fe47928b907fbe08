"""FastAPI application for the Bug Report API."""

import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.templating import Jinja2Templates
from mangum import Mangum
from starlette.datastructures import UploadFile

from models.bug_report import BugReport, ReportSubmission
from models.log_event import SERVICE_NAME
from services.log_forwarder import LogForwarder
from services.report_ingestion import ReportIngestionService, ReportValidationError
from services.report_store import (
    PersistenceError,
    ReportDecodeError,
    ReportNotFoundError,
    ReportStore,
    StorageUnavailableError,
    create_report_store,
)
from utils.config import Settings

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"
SLOW_REQUEST_MS = 1000

# Per-part limit for multipart fields; raw-text logs can be large
MAX_FORM_PART_BYTES = 32 * 1024 * 1024

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))


def sort_newest_first(reports: list[BugReport]) -> list[BugReport]:
    """Order reports for display, most recent first."""
    return sorted(reports, key=lambda report: report.timestamp, reverse=True)


async def read_screenshot(form) -> bytes | None:
    """Return the screenshot bytes, or None if the part is absent or unreadable."""
    part = form.get("screenshot")
    if not isinstance(part, UploadFile):
        return None
    try:
        data = await part.read()
    except OSError as e:
        logger.warning("Ignoring unreadable screenshot part: %s", e)
        return None
    return data or None


def request_log_level(status_code: int, duration_ms: float, report_id: str | None):
    """Pick the log level and tag for a finished request, or (None, None) to skip it.

    Accepted submissions are always logged so each report id has an access line.
    """
    if duration_ms > SLOW_REQUEST_MS:
        return logging.WARNING, "SLOW"
    if status_code >= 500:
        return logging.ERROR, "ERROR"
    if status_code >= 400:
        return logging.INFO, "CLIENT_ERROR"
    if report_id:
        return logging.INFO, "SUBMITTED"
    return None, None


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"success": False, "error": message}
    )


def _render_error(request: Request, status_code: int, message: str) -> HTMLResponse:
    return templates.TemplateResponse(
        request, "error.html", {"error": message}, status_code=status_code
    )


def create_app(
    settings: Settings | None = None,
    store: ReportStore | None = None,
    forwarder: LogForwarder | None = None,
) -> FastAPI:
    """Build the application.

    Args:
        settings: Application settings; read from the environment if omitted
        store: Report store; built from the settings if omitted
        forwarder: Log forwarder; built from the settings if omitted
    """
    settings = settings or Settings.from_env()
    logging.basicConfig(level=settings.log_level)

    store = store or create_report_store(settings)
    forwarder = forwarder or LogForwarder(
        settings.log_ingest_api_key, settings.log_ingest_url
    )
    ingestion = ReportIngestionService(store, forwarder)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if store.configured:
            try:
                store.ensure_container()
            except PersistenceError as e:
                logger.warning("Failed to ensure container exists: %s", e)
        logger.info("Bug report API started")
        logger.info(
            "Storage container: %s (configured=%s)",
            settings.container_name,
            store.configured,
        )
        logger.info("Log forwarding enabled: %s", forwarder.enabled)
        yield

    app = FastAPI(
        title="Bug Report API",
        description="Collects bug reports from client apps",
        version=API_VERSION,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.ingestion = ingestion

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log slow, failed and submission requests with timing."""
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        report_id = getattr(request.state, "report_id", None)
        level, tag = request_log_level(response.status_code, duration_ms, report_id)
        if level is not None:
            logger.log(
                level,
                "[%s] %s %s %.0fms status=%d report=%s",
                tag,
                request.method,
                request.url.path,
                duration_ms,
                response.status_code,
                report_id or "-",
            )

        return response

    # MARK: - Error Handlers

    @app.exception_handler(ReportValidationError)
    async def validation_error_handler(request: Request, exc: ReportValidationError):
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(ReportNotFoundError)
    async def not_found_handler(request: Request, exc: ReportNotFoundError):
        return _error(status.HTTP_404_NOT_FOUND, "Report not found")

    @app.exception_handler(ReportDecodeError)
    async def decode_error_handler(request: Request, exc: ReportDecodeError):
        logger.error("%s", exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to load report")

    @app.exception_handler(StorageUnavailableError)
    async def unavailable_handler(request: Request, exc: StorageUnavailableError):
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, str(exc))

    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(request: Request, exc: PersistenceError):
        logger.error("Storage error on %s %s: %s", request.method, request.url.path, exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Storage operation failed")

    # MARK: - Health Check

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": SERVICE_NAME, "version": API_VERSION}

    # MARK: - Report API

    @app.post("/api/reports")
    async def submit_report(request: Request):
        """Submit a bug report as a multipart form."""
        form = await request.form(max_part_size=MAX_FORM_PART_BYTES)
        submission = ReportSubmission.from_form(form)
        screenshot = await read_screenshot(form)

        # Storage and forwarding block; keep them off the event loop
        try:
            report = await run_in_threadpool(ingestion.submit, submission, screenshot)
        except PersistenceError as e:
            logger.error("Failed to save report: %s", e)
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to save report")

        request.state.report_id = report.id
        return {"success": True, "reportId": report.id}

    @app.get("/api/reports")
    def list_reports():
        """List all reports, newest first."""
        reports = sort_newest_first(store.list_reports())
        return {
            "success": True,
            "reports": [report.to_dict() for report in reports],
            "count": len(reports),
        }

    @app.get("/api/reports/{report_id}")
    def get_report(report_id: str):
        """Get a single report."""
        return store.get_report(report_id).to_dict()

    # MARK: - HTML Viewer

    @app.get("/", response_class=HTMLResponse)
    def index(request: Request):
        """Render the report list."""
        try:
            reports = sort_newest_first(store.list_reports())
        except StorageUnavailableError as e:
            return _render_error(request, status.HTTP_503_SERVICE_UNAVAILABLE, str(e))
        except PersistenceError as e:
            logger.error("Failed to load reports: %s", e)
            return _render_error(
                request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to load reports"
            )

        return templates.TemplateResponse(
            request, "index.html", {"reports": reports, "count": len(reports)}
        )

    @app.get("/reports/{report_id}", response_class=HTMLResponse)
    def detail(request: Request, report_id: str):
        """Render a single report."""
        try:
            report = store.get_report(report_id)
        except ReportNotFoundError:
            return _render_error(request, status.HTTP_404_NOT_FOUND, "Report not found")
        except StorageUnavailableError as e:
            return _render_error(request, status.HTTP_503_SERVICE_UNAVAILABLE, str(e))
        except (ReportDecodeError, PersistenceError) as e:
            logger.error("Failed to load report %s: %s", report_id, e)
            return _render_error(
                request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to load report"
            )

        return templates.TemplateResponse(request, "detail.html", {"report": report})

    return app


app = create_app()

# MARK: - Lambda Handler

api_handler = Mangum(app, lifespan="auto")


# For local development
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
