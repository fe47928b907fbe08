"""Service for turning multipart submissions into stored bug reports."""

import logging
from datetime import UTC, datetime

from pydantic import TypeAdapter, ValidationError
from ulid import ULID

from models.bug_report import (
    REPORT_ID_PREFIX,
    BugReport,
    DeviceInfo,
    LogEntry,
    ReportSubmission,
    UserInfo,
)
from services.log_forwarder import LogForwarder
from services.report_store import PersistenceError, ReportStore

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("title", "description", "currentRoute")

_navigation_history = TypeAdapter(list[str] | None)
_log_entries = TypeAdapter(list[LogEntry] | None)


class ReportValidationError(ValueError):
    """The submission is missing required fields or has malformed JSON."""

    pass


def new_report_id() -> str:
    return f"{REPORT_ID_PREFIX}{ULID()}"


def parse_timestamp(raw: str, now: datetime) -> datetime:
    """Parse an RFC 3339 date-time, falling back to ``now`` when unparseable.

    A date without a time part is not a date-time and falls back as well.
    """
    raw = raw.strip()
    if "T" not in raw.upper():
        return now
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return now
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def parse_navigation_history(raw: str) -> list[str]:
    """Parse the navigation history JSON array.

    The field is required: absent or empty input is malformed JSON. A JSON
    ``null`` means no history.
    """
    try:
        return _navigation_history.validate_json(raw) or []
    except ValidationError as e:
        raise ReportValidationError("Invalid navigationHistory JSON") from e


def parse_logs(raw: str, now: datetime) -> list[LogEntry]:
    """Parse client logs.

    Structured logs arrive as a JSON array of entries. Anything else that is
    not empty (plain text, a JSON object, an array of the wrong shape) is kept
    verbatim as a single info entry.
    """
    if not raw:
        return []
    try:
        return _log_entries.validate_json(raw) or []
    except ValidationError:
        return [
            LogEntry(
                level="info",
                message=raw,
                timestamp=now.replace(microsecond=0).isoformat(),
            )
        ]


def parse_submission(submission: ReportSubmission, now: datetime | None = None) -> BugReport:
    """Validate a submission and build a new report with a fresh id.

    Raises:
        ReportValidationError: If a required field is empty or a JSON field
            other than ``logs`` is malformed
    """
    now = now or datetime.now(UTC)

    if not (submission.title and submission.description and submission.current_route):
        raise ReportValidationError(
            f"Missing required fields: {', '.join(REQUIRED_FIELDS)}"
        )

    navigation_history = parse_navigation_history(submission.navigation_history)
    logs = parse_logs(submission.logs, now)

    try:
        device_info = DeviceInfo.model_validate_json(submission.device_info)
    except ValidationError as e:
        raise ReportValidationError("Invalid deviceInfo JSON") from e

    user_info = None
    if submission.user_info:
        try:
            user_info = UserInfo.model_validate_json(submission.user_info)
        except ValidationError as e:
            raise ReportValidationError("Invalid userInfo JSON") from e

    return BugReport(
        id=new_report_id(),
        title=submission.title,
        description=submission.description,
        steps_to_reproduce=submission.steps_to_reproduce or None,
        current_route=submission.current_route,
        navigation_history=navigation_history,
        logs=logs,
        device_info=device_info,
        user_info=user_info,
        timestamp=parse_timestamp(submission.timestamp, now),
        trace_id=submission.trace_id or None,
    )


class ReportIngestionService:
    """Accepts submissions, stores them and forwards a summary event."""

    def __init__(self, store: ReportStore, forwarder: LogForwarder):
        """Initialize the ingestion service.

        Args:
            store: Report store; may be a disabled store, in which case
                reports are written to the application log instead
            forwarder: Log ingestion forwarder
        """
        self.store = store
        self.forwarder = forwarder

    def submit(
        self, submission: ReportSubmission, screenshot: bytes | None = None
    ) -> BugReport:
        """Submit a new bug report.

        Args:
            submission: Raw form fields
            screenshot: Screenshot bytes, if a file part was uploaded

        Returns:
            The created BugReport

        Raises:
            ReportValidationError: If the submission is invalid (nothing is
                stored or forwarded)
            PersistenceError: If the configured store fails to save the report
        """
        report = parse_submission(submission)

        if screenshot and self.store.configured:
            report = self._attach_screenshot(report, screenshot)

        if self.store.configured:
            self.store.save_report(report)
            logger.info("Saved bug report %s", report.id)
        else:
            logger.info("Bug report received (no storage): %s", report.to_json())

        self._forward(report)
        return report

    def _attach_screenshot(self, report: BugReport, screenshot: bytes) -> BugReport:
        try:
            url = self.store.save_screenshot(report.id, screenshot)
        except PersistenceError as e:
            logger.warning("Failed to upload screenshot for %s: %s", report.id, e)
            return report
        return report.model_copy(update={"screenshot_url": url})

    def _forward(self, report: BugReport) -> None:
        # The response is already decided; nothing here may fail the request
        try:
            self.forwarder.forward(report)
        except Exception:
            logger.warning("Log forwarding failed for %s", report.id, exc_info=True)
