"""Client settings powered by Pydantic BaseSettings."""

from enum import Enum
from pathlib import Path
from typing import Annotated

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TrafficProtocol(str, Enum):
    """Protocol used to answer traffic queries."""

    WS = "ws"
    SOAP = "soap"
    REST = "rest"


class ArborSettings(BaseSettings):
    """Centralized configuration for a Sightline leader.

    Values come from keyword arguments, ``ARBOR_*`` environment variables
    or a ``.env`` file, in that order of precedence.
    """

    model_config = SettingsConfigDict(
        env_prefix="ARBOR_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    hostname: Annotated[str, Field(min_length=1, description="Leader hostname")]
    wskey: SecretStr | None = Field(default=None, description="Web services API key")
    rest_token: SecretStr | None = Field(default=None, description="REST API token")
    username: str | None = Field(default=None, description="SOAP username")
    password: SecretStr | None = Field(default=None, description="SOAP password")
    wsdl: str | None = Field(default=None, description="WSDL location for SOAP")

    cache: bool = Field(default=False, description="Turn response caching on or off")
    cache_ttl: Annotated[int, Field(ge=1)] = 900
    cache_path: Path | None = Field(
        default=None, description="SQLite cache file; in-memory cache when unset"
    )

    timeout_seconds: Annotated[float, Field(ge=1.0, le=600.0)] = 30.0
    verify_tls: bool = True
    max_page_workers: Annotated[int, Field(ge=1, le=16)] = 8
    traffic_protocol: TrafficProtocol = TrafficProtocol.WS

    @field_validator("hostname")
    @classmethod
    def validate_hostname(cls, v: str) -> str:
        """Reject URLs where a bare hostname is expected."""
        v = v.strip().rstrip("/")
        if "://" in v or "/" in v:
            msg = f"hostname must be a bare host name, got '{v}'"
            raise ValueError(msg)
        return v

    @property
    def rest_url(self) -> str:
        """Base URL of the REST API."""
        return f"https://{self.hostname}/api/sp/"

    @property
    def ws_url(self) -> str:
        """Base URL of the legacy web services API."""
        return f"https://{self.hostname}/arborws/"

    @property
    def soap_url(self) -> str:
        """Endpoint of the SOAP API."""
        return f"https://{self.hostname}/soap/sp"


def get_settings() -> ArborSettings:
    """Get a settings instance from the environment."""
    return ArborSettings()  # type: ignore[call-arg]
