"""Timeout settings for management sessions.

Every network wait in the resolver is bounded by one of these values.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SessionTimeoutSettings(BaseSettings):
    """Management session timeout configuration."""

    session_connect_timeout: int = Field(
        15, alias="SESSION_CONNECT_TIMEOUT", description="SSH connect/auth timeout in seconds"
    )

    query_timeout: int = Field(
        30, alias="QUERY_TIMEOUT", description="Remote CIM query timeout in seconds"
    )

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
timeout_settings = SessionTimeoutSettings()

SESSION_CONNECT_TIMEOUT: int = timeout_settings.session_connect_timeout
QUERY_TIMEOUT: int = timeout_settings.query_timeout
