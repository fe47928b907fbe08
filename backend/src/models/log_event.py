"""Event model for the external log ingestion service."""

from typing import Any

from pydantic import BaseModel, Field

from .bug_report import BugReport

SERVICE_NAME = "bug-report-api"
CHANNEL_NAME = "bug-report"


class LogIngestEvent(BaseModel):
    """Summary event forwarded to the log ingestion endpoint."""

    time: str
    service: str = SERVICE_NAME
    level: str = "info"
    message: str
    channel: str = CHANNEL_NAME
    context: dict[str, Any] = Field(default_factory=dict)
    trace_id: str | None = None

    @classmethod
    def from_report(cls, report: BugReport) -> "LogIngestEvent":
        """Derive the forwarded event from a persisted report."""
        return cls(
            time=report.timestamp.isoformat(),
            message=f"Bug report submitted: {report.title}",
            context={
                "report_id": report.id,
                "title": report.title,
                "current_route": report.current_route,
                "platform": report.device_info.platform,
                "app_version": report.device_info.app_version,
                "has_screenshot": report.has_screenshot,
                "navigation_history": report.navigation_history,
            },
            trace_id=report.trace_id or None,
        )
