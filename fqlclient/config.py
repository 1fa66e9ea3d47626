"""
Client configuration using Pydantic Settings
"""
import logging
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ENDPOINT = "https://db.fauna.com"


class ClientSettings(BaseSettings):
    """Client settings, read from ``FAUNA_*`` environment variables or a ``.env`` file"""

    secret: Optional[str] = Field(default=None, description="Access key or token secret")
    endpoint: str = Field(default=DEFAULT_ENDPOINT, description="Service base URL")
    query_timeout_ms: int = Field(default=5000, ge=1, description="Server-side query timeout")
    client_timeout_s: float = Field(default=60.0, gt=0, description="HTTP timeout for one request")
    typecheck: bool = Field(default=True, description="Ask the service to typecheck queries")
    track_txn_time: bool = Field(default=True, description="Send the last seen transaction time")
    linearized: Optional[bool] = Field(default=None, description="Force linearized reads")
    max_contention_retries: Optional[int] = Field(
        default=None, ge=0, description="Retries on transaction contention"
    )
    debug: bool = Field(default=False, description="Log HTTP exchanges at DEBUG")

    model_config = SettingsConfigDict(
        env_prefix="FAUNA_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
    )

    @field_validator("endpoint")
    @classmethod
    def normalize_endpoint(cls, v: str) -> str:
        """Strip whitespace and trailing slashes"""
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError("endpoint must be an http(s) URL")
        return v

    def apply_logging(self) -> None:
        """Raise the package logger to DEBUG when ``debug`` is set"""
        if self.debug:
            logging.getLogger("fqlclient").setLevel(logging.DEBUG)
