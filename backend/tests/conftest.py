"""Pytest configuration and shared fixtures."""

import json
from datetime import UTC, datetime
from unittest.mock import MagicMock, Mock

import boto3
import pytest
from moto import mock_aws

from models.bug_report import BugReport, DeviceInfo, LogEntry, UserInfo
from services.log_forwarder import LogForwarder
from services.report_store import ReportStore, S3ReportStore

TEST_BUCKET = "bug-reports-test"


@pytest.fixture
def sample_device_info():
    """Create sample device info for testing."""
    return DeviceInfo(
        platform="ios",
        os="iOS",
        os_version="17.2",
        app_version="1.4.0",
        build_number="42",
        device_model="iPhone15,2",
        manufacturer="Apple",
    )


@pytest.fixture
def make_report(sample_device_info):
    """Factory for BugReport objects with sensible defaults."""

    def _make(
        report_id="br_01HXYZ123456789ABCDEFGHIJ",
        title="Crash on settings screen",
        timestamp=None,
        **overrides,
    ) -> BugReport:
        fields = dict(
            id=report_id,
            title=title,
            description="App closes when tapping the theme toggle",
            steps_to_reproduce="1. Open settings\n2. Tap theme",
            current_route="/settings",
            navigation_history=["/home", "/profile", "/settings"],
            logs=[
                LogEntry(
                    level="error",
                    message="TypeError: undefined is not an object",
                    timestamp="2026-01-20T10:00:00Z",
                    context={"component": "ThemeToggle", "attempt": 2},
                ),
                LogEntry(level="info", message="Settings opened", timestamp="2026-01-20T09:59:58Z"),
            ],
            device_info=sample_device_info,
            user_info=UserInfo(user_id="user_123", username="skier", email="skier@example.com"),
            timestamp=timestamp or datetime(2026, 1, 20, 10, 0, 5, tzinfo=UTC),
            trace_id="trace-abc",
        )
        fields.update(overrides)
        return BugReport(**fields)

    return _make


@pytest.fixture
def form_data():
    """Valid multipart form fields for a report submission."""
    return {
        "title": "Crash on settings screen",
        "description": "App closes when tapping the theme toggle",
        "stepsToReproduce": "1. Open settings\n2. Tap theme",
        "currentRoute": "/settings",
        "navigationHistory": json.dumps(["/home", "/settings"]),
        "logs": json.dumps(
            [
                {"level": "warn", "message": "slow render", "timestamp": "2026-01-20T09:59:00Z"},
                {
                    "level": "error",
                    "message": "boom",
                    "timestamp": "2026-01-20T10:00:00Z",
                    "context": {"screen": "settings"},
                },
            ]
        ),
        "deviceInfo": json.dumps(
            {
                "platform": "android",
                "os": "Android",
                "osVersion": "14",
                "appVersion": "1.4.0",
                "buildNumber": "42",
                "deviceModel": "Pixel 8",
            }
        ),
        "userInfo": json.dumps({"userId": "user_123", "email": "skier@example.com"}),
        "timestamp": "2026-01-20T10:00:05Z",
        "traceId": "trace-abc",
    }


@pytest.fixture
def mock_store():
    """Create a mock configured report store."""
    store = MagicMock(spec=ReportStore)
    store.configured = True
    store.save_screenshot.return_value = (
        "https://s3.amazonaws.com/bug-reports/br_x/screenshot.png"
    )
    store.list_reports.return_value = []
    return store


@pytest.fixture
def mock_forwarder():
    """Create a mock log forwarder."""
    forwarder = Mock(spec=LogForwarder)
    forwarder.enabled = True
    forwarder.forward.return_value = True
    return forwarder


@pytest.fixture
def aws_credentials(monkeypatch):
    """Fake AWS credentials for moto, restored after each test."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")


@pytest.fixture
def s3_client(aws_credentials):
    """S3 client inside a moto mock, with the test bucket created."""
    with mock_aws():
        client = boto3.client("s3", region_name="us-east-1")
        client.create_bucket(Bucket=TEST_BUCKET)
        yield client


@pytest.fixture
def s3_store(s3_client):
    """S3ReportStore backed by moto."""
    return S3ReportStore(s3_client, TEST_BUCKET)
