"""
SOLE RESPONSIBILITY: Defines all Pydantic data contracts for environment resolution,
serving as the single source of truth for data shapes.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from .urls import sanitize_base_url


class EnvironmentName(str, Enum):
    """Deployment environment a client can be running in."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"


class EnvironmentProfile(BaseModel):
    """Static per-environment routing record."""

    model_config = ConfigDict(frozen=True)

    name: EnvironmentName
    base_url: str
    api_root: str = ""
    description: str = ""

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Profiles always carry a sanitized base URL."""
        sanitized = sanitize_base_url(v)
        if not sanitized:
            raise ValueError("Profile base_url cannot be empty")
        return sanitized


class ResolvedConfig(BaseModel):
    """Result of one environment resolution. Recomputed on every call."""

    env: EnvironmentName
    base_url: str
    api_root: str
    description: str
    forced: bool = False  # a manual environment flag is persisted
    override_applied: bool = False  # base_url comes from a persisted override


class RuntimeSnapshot(BaseModel):
    """Read-only diagnostic view of the inputs and outcome of resolution."""

    env: EnvironmentName
    manual_env: Optional[EnvironmentName] = None
    channel: str = ""
    platform: str = ""
    environment: str = ""
    testing_base_url: str = ""
    production_base_url: str = ""
