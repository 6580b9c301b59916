"""
SOLE RESPONSIBILITY: Centralized error codes and exception types for miniroute.
Usage errors are raised to the caller; runtime degradations are only logged with their code.
"""

from enum import Enum
from typing import Dict, Any, Optional


class ErrorCode(Enum):
    """Trackable error identifiers for consistent error handling."""

    # Usage & Validation Errors (2xxx) - raised synchronously to the caller
    ENV_NAME_INVALID = 2001
    ENV_NOT_OVERRIDABLE = 2002
    BASE_URL_INVALID = 2003

    # Host Call Errors (3xxx) - raised to the caller awaiting a host primitive
    DOWNLOAD_FAILED = 3001
    HOST_NOT_INSTALLED = 3002

    # Runtime Degradations (5xxx) - logged, never raised
    SIGNAL_READ_FAILED = 5001
    STORAGE_UNAVAILABLE = 5002
    INSTALL_FAILED = 5003
    REWRITE_FAILED = 5004
    PLACEHOLDER_BASE_URL = 5005

    @property
    def is_usage_error(self) -> bool:
        """Usage errors are programming mistakes and must reach the caller."""
        return 2000 <= self.value < 3000

    def tag(self) -> str:
        """Short log prefix, e.g. '[E5001 SIGNAL_READ_FAILED]'."""
        return f"[E{self.value} {self.name}]"


class MinirouteError(Exception):
    """Base class for all errors raised by miniroute."""

    code: ErrorCode = ErrorCode.ENV_NAME_INVALID

    def __init__(self, message: str, code: Optional[ErrorCode] = None, **details: Any):
        super().__init__(message)
        if code is not None:
            self.code = code
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging and CLI output."""
        return {
            "error_code": self.code.value,
            "error_name": self.code.name,
            "message": str(self),
            "details": self.details,
        }


class InvalidEnvironmentError(MinirouteError, ValueError):
    """Unknown environment name, or an environment that cannot take an override."""

    code = ErrorCode.ENV_NAME_INVALID


class InvalidBaseURLError(MinirouteError, ValueError):
    """Override URL that is empty or cannot be sanitized."""

    code = ErrorCode.BASE_URL_INVALID


class ImageDownloadError(MinirouteError, RuntimeError):
    """Host download_file failed, answered a non-200 status, or is not available."""

    code = ErrorCode.DOWNLOAD_FAILED
