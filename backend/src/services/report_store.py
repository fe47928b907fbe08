"""Blob storage for bug reports.

Each report lives under its own key prefix in one bucket:

    <id>/metadata.json   full report (pretty-printed)
    <id>/logs.json       log entries only (pretty-printed)
    <id>/screenshot.png  optional screenshot
"""

import logging
from abc import ABC, abstractmethod

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import TypeAdapter, ValidationError

from models.bug_report import BugReport, LogEntry
from utils.config import Settings, StorageConnection

logger = logging.getLogger(__name__)

METADATA_BLOB = "metadata.json"
LOGS_BLOB = "logs.json"
SCREENSHOT_BLOB = "screenshot.png"

_NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}
_ALREADY_EXISTS_CODES = {"BucketAlreadyOwnedByYou", "BucketAlreadyExists"}

_log_entries = TypeAdapter(list[LogEntry])


class PersistenceError(Exception):
    """The storage backend failed to read or write."""

    pass


class StorageUnavailableError(PersistenceError):
    """No storage backend is configured."""

    pass


class ReportNotFoundError(Exception):
    """No report exists for the requested id."""

    def __init__(self, report_id: str):
        super().__init__(f"Report not found: {report_id}")
        self.report_id = report_id


class ReportDecodeError(Exception):
    """Stored report metadata could not be decoded."""

    def __init__(self, report_id: str, reason: str):
        super().__init__(f"Failed to decode report {report_id}: {reason}")
        self.report_id = report_id


def blob_key(report_id: str, name: str) -> str:
    return f"{report_id}/{name}"


class ReportStore(ABC):
    """Storage interface for reports and their screenshots."""

    configured: bool = True

    @abstractmethod
    def save_report(self, report: BugReport) -> None:
        """Persist report metadata and logs."""

    @abstractmethod
    def save_screenshot(self, report_id: str, data: bytes) -> str:
        """Persist a screenshot and return its URL."""

    @abstractmethod
    def get_report(self, report_id: str) -> BugReport:
        """Fetch a single report."""

    @abstractmethod
    def list_reports(self) -> list[BugReport]:
        """Fetch every stored report, in no particular order."""

    @abstractmethod
    def ensure_container(self) -> None:
        """Create the backing container if it does not exist."""


class DisabledReportStore(ReportStore):
    """Stand-in used when no storage backend is configured."""

    configured = False

    def _unavailable(self):
        raise StorageUnavailableError("Report storage is not configured")

    def save_report(self, report: BugReport) -> None:
        self._unavailable()

    def save_screenshot(self, report_id: str, data: bytes) -> str:
        self._unavailable()

    def get_report(self, report_id: str) -> BugReport:
        self._unavailable()

    def list_reports(self) -> list[BugReport]:
        self._unavailable()

    def ensure_container(self) -> None:
        pass


class S3ReportStore(ReportStore):
    """Report store backed by an S3-compatible bucket."""

    def __init__(self, client, container_name: str, base_url: str | None = None):
        """Initialize the store.

        Args:
            client: boto3 S3 client
            container_name: Bucket holding the reports
            base_url: Public endpoint used to build screenshot URLs. Defaults
                to the client's endpoint.
        """
        self.client = client
        self.container_name = container_name
        self.base_url = (base_url or client.meta.endpoint_url).rstrip("/")

    def save_report(self, report: BugReport) -> None:
        metadata = report.to_json(indent=2).encode("utf-8")
        logs = _log_entries.dump_json(
            report.logs, by_alias=True, exclude_none=True, indent=2
        )

        self._upload(blob_key(report.id, METADATA_BLOB), metadata, "application/json")
        self._upload(blob_key(report.id, LOGS_BLOB), logs, "application/json")

    def save_screenshot(self, report_id: str, data: bytes) -> str:
        key = blob_key(report_id, SCREENSHOT_BLOB)
        self._upload(key, data, "image/png")
        return self.screenshot_url(report_id)

    def screenshot_url(self, report_id: str) -> str:
        """Deterministic URL of a report's screenshot."""
        return f"{self.base_url}/{self.container_name}/{blob_key(report_id, SCREENSHOT_BLOB)}"

    def get_report(self, report_id: str) -> BugReport:
        key = blob_key(report_id, METADATA_BLOB)
        try:
            response = self.client.get_object(Bucket=self.container_name, Key=key)
            data = response["Body"].read()
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in _NOT_FOUND_CODES:
                raise ReportNotFoundError(report_id) from e
            raise PersistenceError(f"Failed to download {key}: {e}") from e
        except BotoCoreError as e:
            raise PersistenceError(f"Failed to download {key}: {e}") from e

        try:
            return BugReport.model_validate_json(data)
        except ValidationError as e:
            raise ReportDecodeError(report_id, str(e)) from e

    def list_reports(self) -> list[BugReport]:
        reports = []
        for report_id in self._list_report_ids():
            try:
                reports.append(self.get_report(report_id))
            except (ReportNotFoundError, ReportDecodeError, PersistenceError) as e:
                logger.warning("Skipping report %s: %s", report_id, e)
        return reports

    def ensure_container(self) -> None:
        kwargs = {"Bucket": self.container_name}
        region = self.client.meta.region_name
        if region and region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": region}

        try:
            self.client.create_bucket(**kwargs)
            logger.info("Created container %s", self.container_name)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in _ALREADY_EXISTS_CODES:
                return
            raise PersistenceError(
                f"Failed to create container {self.container_name}: {e}"
            ) from e
        except BotoCoreError as e:
            raise PersistenceError(
                f"Failed to create container {self.container_name}: {e}"
            ) from e

    def _list_report_ids(self) -> list[str]:
        suffix = "/" + METADATA_BLOB
        report_ids = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.container_name):
                for item in page.get("Contents", []):
                    key = item["Key"]
                    if key.endswith(suffix):
                        report_ids.append(key[: -len(suffix)])
        except (ClientError, BotoCoreError) as e:
            raise PersistenceError(f"Failed to list blobs: {e}") from e
        return report_ids

    def _upload(self, key: str, data: bytes, content_type: str) -> None:
        try:
            self.client.put_object(
                Bucket=self.container_name,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to upload %s: %s", key, e)
            raise PersistenceError(f"Failed to upload {key}: {e}") from e


def create_report_store(settings: Settings) -> ReportStore:
    """Build the report store described by the settings.

    Falls back to a DisabledReportStore (reports are only logged) when no
    connection string is set or it cannot be parsed.
    """
    if not settings.storage_enabled:
        logger.warning(
            "STORAGE_CONNECTION_STRING not set - reports will be logged only (no persistence)"
        )
        return DisabledReportStore()

    try:
        connection = StorageConnection.parse(settings.storage_connection_string)
    except ValueError as e:
        logger.warning(
            "Failed to initialize report storage: %s (reports will be logged only)", e
        )
        return DisabledReportStore()

    client_kwargs = {
        "region_name": connection.region or settings.region,
        "endpoint_url": connection.endpoint_url,
        "config": Config(s3={"addressing_style": "path"}),
    }
    if connection.has_credentials():
        client_kwargs["aws_access_key_id"] = connection.access_key_id
        client_kwargs["aws_secret_access_key"] = connection.secret_access_key

    client = boto3.client("s3", **client_kwargs)
    return S3ReportStore(client, settings.container_name, base_url=connection.endpoint_url)
