"""
Configuration classes for the vaultr SDK.

Environment variables are read once, when a ``ClientConfig`` is built.
"""

import os
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_ADDR = "http://127.0.0.1:8200"


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.environ.get(name)
    return value if value else default


class ClientConfig(BaseModel):
    """Configuration for a vault client."""
    model_config = ConfigDict(extra="forbid")

    addr: str = Field(
        default_factory=lambda: _env("VAULT_ADDR", DEFAULT_ADDR),
        validate_default=True,
        description="Address of the vault server",
    )
    token: Optional[str] = Field(
        default_factory=lambda: _env("VAULT_TOKEN"),
        description="Default token used by token login",
    )
    github_token: Optional[str] = Field(
        default_factory=lambda: _env("VAULT_AUTH_GITHUB_TOKEN"),
        description="Default GitHub token used by github login",
    )
    namespace: Optional[str] = Field(None, description="Vault enterprise namespace")

    timeout: float = Field(30.0, description="Request timeout in seconds")
    max_connections: int = Field(10, description="Maximum number of connections")
    verify_ssl: bool = Field(True, description="Whether to verify SSL certificates")
    ca_bundle: Optional[str] = Field(None, description="Path to CA bundle file")

    # Only connection failures are retried, and only when max_attempts > 1
    max_attempts: int = Field(1, ge=1, description="Attempts per request on connection failure")
    retry_backoff_factor: float = Field(1.0, description="Retry backoff multiplier in seconds")

    # Logging configuration
    log_requests: bool = Field(False, description="Whether to log HTTP requests")
    log_responses: bool = Field(False, description="Whether to log HTTP responses")

    @field_validator("addr")
    @classmethod
    def _strip_addr(cls, value: str) -> str:
        return value.rstrip("/")
