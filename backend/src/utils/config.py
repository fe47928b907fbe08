"""Runtime configuration for the Bug Report API.

Settings are read from the environment exactly once, when the app is built,
and handed to the services that need them.
"""

import os

from pydantic import BaseModel, Field

DEFAULT_PORT = 8080
DEFAULT_CONTAINER_NAME = "bug-reports"
DEFAULT_REGION = "us-west-2"
DEFAULT_ENDPOINT_SUFFIX = "amazonaws.com"
DEFAULT_LOG_INGEST_URL = "https://logging.scenextras.com/api/v1/ingest"


class StorageConnection(BaseModel):
    """Parsed form of STORAGE_CONNECTION_STRING.

    The string is a ``;``-separated list of ``Key=Value`` pairs, e.g.
    ``AccountName=s3.us-west-2;EndpointSuffix=amazonaws.com``. The blob
    endpoint is ``https://<AccountName>.<EndpointSuffix>``.
    """

    account_name: str
    endpoint_suffix: str = DEFAULT_ENDPOINT_SUFFIX
    access_key_id: str | None = None
    secret_access_key: str | None = None
    region: str | None = None

    @property
    def endpoint_url(self) -> str:
        return f"https://{self.account_name}.{self.endpoint_suffix}"

    def has_credentials(self) -> bool:
        """Whether explicit keys are given (else boto3's default chain is used)."""
        return bool(self.access_key_id and self.secret_access_key)

    @classmethod
    def parse(cls, connection_string: str) -> "StorageConnection":
        """Parse a connection string.

        Raises:
            ValueError: If a segment is not Key=Value or AccountName is missing
        """
        keys = {
            "accountname": "account_name",
            "endpointsuffix": "endpoint_suffix",
            "accesskeyid": "access_key_id",
            "secretaccesskey": "secret_access_key",
            "region": "region",
        }
        values: dict[str, str] = {}
        for segment in connection_string.split(";"):
            segment = segment.strip()
            if not segment:
                continue
            name, sep, value = segment.partition("=")
            if not sep:
                raise ValueError(f"Malformed connection string segment: {name!r}")
            field = keys.get(name.strip().lower())
            # Unknown keys are ignored
            if field and value.strip():
                values[field] = value.strip()

        if "account_name" not in values:
            raise ValueError("Connection string is missing AccountName")
        return cls(**values)


class Settings(BaseModel):
    """Application settings."""

    port: int = DEFAULT_PORT
    storage_connection_string: str | None = None
    container_name: str = DEFAULT_CONTAINER_NAME
    region: str = DEFAULT_REGION
    log_ingest_api_key: str | None = None
    log_ingest_url: str = DEFAULT_LOG_INGEST_URL
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @property
    def storage_enabled(self) -> bool:
        return bool(self.storage_connection_string)

    @property
    def log_forwarding_enabled(self) -> bool:
        return bool(self.log_ingest_api_key)

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        """Build settings from environment variables."""
        env = os.environ if environ is None else environ
        return cls(
            port=int(env.get("PORT") or DEFAULT_PORT),
            storage_connection_string=env.get("STORAGE_CONNECTION_STRING") or None,
            container_name=env.get("STORAGE_CONTAINER_NAME") or DEFAULT_CONTAINER_NAME,
            region=env.get("AWS_DEFAULT_REGION") or DEFAULT_REGION,
            log_ingest_api_key=env.get("LOGWARD_API_KEY") or None,
            log_ingest_url=env.get("LOG_INGEST_URL") or DEFAULT_LOG_INGEST_URL,
            cors_origins=[
                origin.strip()
                for origin in env.get("CORS_ORIGINS", "*").split(",")
                if origin.strip()
            ],
            log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        )
