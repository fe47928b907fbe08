"""Data models for the Bug Report API."""

from .bug_report import BugReport, DeviceInfo, LogEntry, ReportSubmission, UserInfo
from .log_event import LogIngestEvent

__all__ = [
    "BugReport",
    "DeviceInfo",
    "LogEntry",
    "UserInfo",
    "ReportSubmission",
    "LogIngestEvent",
]
