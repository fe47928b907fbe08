"""Services for the Bug Report API."""

from .log_forwarder import LogForwarder
from .report_ingestion import ReportIngestionService, ReportValidationError
from .report_store import (
    DisabledReportStore,
    PersistenceError,
    ReportDecodeError,
    ReportNotFoundError,
    ReportStore,
    S3ReportStore,
    StorageUnavailableError,
    create_report_store,
)

__all__ = [
    "LogForwarder",
    "ReportIngestionService",
    "ReportValidationError",
    "ReportStore",
    "S3ReportStore",
    "DisabledReportStore",
    "create_report_store",
    "PersistenceError",
    "StorageUnavailableError",
    "ReportNotFoundError",
    "ReportDecodeError",
]
