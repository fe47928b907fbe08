"""Best-effort forwarding of report events to the log ingestion service."""

import logging

import requests

from models.bug_report import BugReport
from models.log_event import LogIngestEvent

logger = logging.getLogger(__name__)

FORWARD_TIMEOUT_SECONDS = 5
ACCEPTED_STATUS_CODES = (200, 201)


class LogForwarder:
    """Posts a summary event for each new report to the ingestion endpoint.

    Forwarding never raises: every failure is logged at warning level and
    dropped, without retry.
    """

    def __init__(
        self,
        api_key: str | None,
        url: str,
        timeout: float = FORWARD_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ):
        self.api_key = api_key
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def forward(self, report: BugReport) -> bool:
        """Send the event for a report.

        Returns:
            True if the service accepted the event, False if forwarding is
            disabled or failed
        """
        if not self.enabled:
            return False

        event = LogIngestEvent.from_report(report)
        try:
            response = self.session.post(
                self.url,
                data=event.model_dump_json(exclude_none=True),
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self.api_key}",
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("Failed to forward report %s to log ingestion: %s", report.id, e)
            return False

        if response.status_code not in ACCEPTED_STATUS_CODES:
            logger.warning(
                "Log ingestion returned status %d for report %s",
                response.status_code,
                report.id,
            )
            return False
        return True
