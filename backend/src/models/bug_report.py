"""Bug report data models."""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

REPORT_ID_PREFIX = "br_"


class CamelModel(BaseModel):
    """Base model serialized with camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LogEntry(CamelModel):
    """A single client-side log line attached to a report."""

    level: str = ""
    message: str = ""
    timestamp: str = ""
    context: dict[str, Any] | None = None


class DeviceInfo(CamelModel):
    """Device and app build the report was submitted from."""

    platform: str
    os: str
    os_version: str
    app_version: str
    build_number: str
    device_model: str | None = None
    manufacturer: str | None = None


class UserInfo(CamelModel):
    """Optional identity of the submitting user."""

    user_id: str | None = None
    username: str | None = None
    email: str | None = None


class BugReport(CamelModel):
    """Stored bug report record. Never modified after creation."""

    id: str = Field(..., description="Report identifier, br_<token>")
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    steps_to_reproduce: str | None = None
    current_route: str = Field(..., min_length=1)
    navigation_history: list[str] = Field(default_factory=list)
    logs: list[LogEntry] = Field(default_factory=list)
    device_info: DeviceInfo
    user_info: UserInfo | None = None
    timestamp: datetime
    trace_id: str | None = None
    screenshot_url: str | None = None

    @field_validator("timestamp")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC so reports always sort together."""
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @property
    def has_screenshot(self) -> bool:
        return bool(self.screenshot_url)

    def to_json(self, indent: int | None = None) -> str:
        """Serialize in the wire/storage format (camelCase, no empty fields)."""
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=indent)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ReportSubmission(BaseModel):
    """Raw form fields of a multipart report submission.

    All values are the strings exactly as posted; decoding and validation
    happen in the ingestion service so that malformed input maps to a 400.
    """

    title: str = ""
    description: str = ""
    steps_to_reproduce: str = ""
    current_route: str = ""
    navigation_history: str = ""
    logs: str = ""
    device_info: str = ""
    user_info: str = ""
    timestamp: str = ""
    trace_id: str = ""

    @classmethod
    def from_form(cls, form) -> "ReportSubmission":
        """Build from a multipart form mapping, ignoring non-text parts."""

        def text(name: str) -> str:
            value = form.get(name)
            return value if isinstance(value, str) else ""

        return cls(
            title=text("title"),
            description=text("description"),
            steps_to_reproduce=text("stepsToReproduce"),
            current_route=text("currentRoute"),
            navigation_history=text("navigationHistory"),
            logs=text("logs"),
            device_info=text("deviceInfo"),
            user_info=text("userInfo"),
            timestamp=text("timestamp"),
            trace_id=text("traceId"),
        )
