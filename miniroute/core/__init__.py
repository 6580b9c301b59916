"""
Core environment resolution and URL normalization for miniroute.
Pure logic shared by the request interceptor and the diagnostics CLI.
"""

from .models import EnvironmentName, EnvironmentProfile, ResolvedConfig, RuntimeSnapshot

from .environments import (
    DEFAULT_PROFILES,
    ProfileRegistry,
    has_placeholder,
    normalize_env_name,
)

from .errors import ErrorCode, MinirouteError, InvalidEnvironmentError, InvalidBaseURLError, ImageDownloadError

from .media import MediaRewriter, rewrite_rich_text_images

from .resolver import EnvironmentManager, resolve_environment

from .signals import HostSignals, SignalResult

from .store import STORAGE_KEYS, KeyValueStore, MemoryStore, JsonFileStore, OverrideStore

from .urls import UrlNormalizer, fix_host, join_url, sanitize_base_url

__all__ = [
    # Data model
    "EnvironmentName",
    "EnvironmentProfile",
    "ResolvedConfig",
    "RuntimeSnapshot",
    # Registry
    "DEFAULT_PROFILES",
    "ProfileRegistry",
    "has_placeholder",
    "normalize_env_name",
    # Errors
    "ErrorCode",
    "MinirouteError",
    "InvalidEnvironmentError",
    "InvalidBaseURLError",
    "ImageDownloadError",
    # Media
    "MediaRewriter",
    "rewrite_rich_text_images",
    # Resolution
    "EnvironmentManager",
    "resolve_environment",
    "HostSignals",
    "SignalResult",
    # Storage
    "STORAGE_KEYS",
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    "OverrideStore",
    # URLs
    "UrlNormalizer",
    "fix_host",
    "join_url",
    "sanitize_base_url",
]
