"""
Test fixtures and utilities for miniroute testing.
"""

from .mocks import *
from .sample_data import *

__all__ = [
    "FakeHost",
    "StaticSignals",
    "FailingStore",
    "PRECEDENCE_CASES",
    "LAN_BASE_URL",
    "MEDIA_BASE_URL",
    "media_payload",
    "student_profile_payload",
]
