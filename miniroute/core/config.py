"""
SOLE RESPONSIBILITY: Configuration management with defaults and layered sources.
Provides host signals, storage location, interceptor behaviour, logging and profile settings.
"""

import os
import json
from pathlib import Path
from dataclasses import dataclass, field, asdict
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass
class SignalConfig:
    """Host signals for processes that have no platform API to ask."""
    platform: Optional[str] = None  # e.g. "devtools", "ios", "android"
    environment: Optional[str] = None  # e.g. "wxdevtools"
    channel: Optional[str] = None  # "develop", "trial", "release"


@dataclass
class StorageConfig:
    """Override storage configuration."""
    path: Optional[str] = None  # defaults to ~/.miniroute/storage.json
    persistent: bool = True  # False keeps overrides in memory only


@dataclass
class InterceptorConfig:
    """Request interceptor configuration."""
    is_production: bool = False
    poll_attempts: int = 20
    poll_interval_seconds: float = 0.5


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    debug: bool = False
    log_to_file: bool = False


@dataclass
class Config:
    """Complete configuration."""
    signals: SignalConfig = field(default_factory=SignalConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    interceptor: InterceptorConfig = field(default_factory=InterceptorConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    profiles: Dict[str, Dict[str, str]] = field(default_factory=dict)

    @classmethod
    def load(cls, user_config_path: Optional[Path] = None, project_config_path: Optional[Path] = None) -> "Config":
        """
        Load configuration from multiple sources in priority order:
        1. Environment variables (highest)
        2. Local config file (project, ./.miniroute.json)
        3. User config file (~/.miniroute/config.json)
        4. Default values (lowest)
        """
        config = cls()

        if user_config_path is None:
            user_config_path = Path.home() / ".miniroute" / "config.json"
        if project_config_path is None:
            project_config_path = Path.cwd() / ".miniroute.json"

        for label, path in (("user", user_config_path), ("project", project_config_path)):
            if not path.exists():
                continue
            try:
                with open(path, encoding="utf-8") as f:
                    config._merge_dict(json.load(f))
                logger.info(f"Loaded {label} config from {path}")
            except Exception as e:
                logger.warning(f"Error loading {label} config: {e}")

        # Override with environment variables
        config._load_env_vars()

        return config

    def _merge_dict(self, config_dict: dict):
        """Merge dictionary into config."""
        for section in ("signals", "storage", "interceptor", "logging"):
            values = config_dict.get(section)
            if not isinstance(values, dict):
                continue
            target = getattr(self, section)
            for key, value in values.items():
                if hasattr(target, key):
                    setattr(target, key, value)

        profiles = config_dict.get("profiles")
        if isinstance(profiles, dict):
            for env_name, fields in profiles.items():
                if isinstance(fields, dict):
                    self.profiles.setdefault(env_name, {}).update(fields)

    def _load_env_vars(self):
        """Load configuration from environment variables."""
        # Signal config
        if val := os.environ.get("MINIROUTE_PLATFORM"):
            self.signals.platform = val
        if val := os.environ.get("MINIROUTE_PLATFORM_ENV"):
            self.signals.environment = val
        if val := os.environ.get("MINIROUTE_CHANNEL"):
            self.signals.channel = val

        # Storage config
        if val := os.environ.get("MINIROUTE_STORAGE_PATH"):
            self.storage.path = val

        # Interceptor config
        if val := os.environ.get("MINIROUTE_PRODUCTION"):
            self.interceptor.is_production = val.lower() in _TRUE_VALUES
        if val := os.environ.get("MINIROUTE_POLL_ATTEMPTS"):
            self.interceptor.poll_attempts = int(val)
        if val := os.environ.get("MINIROUTE_POLL_INTERVAL"):
            self.interceptor.poll_interval_seconds = float(val)

        # Logging config
        if val := os.environ.get("MINIROUTE_LOG_LEVEL"):
            self.logging.level = val
        if val := os.environ.get("MINIROUTE_DEBUG"):
            self.logging.debug = val.lower() in _TRUE_VALUES

    def storage_path(self) -> Path:
        if self.storage.path:
            return Path(self.storage.path).expanduser()
        return Path.home() / ".miniroute" / "storage.json"

    def save(self, path: Optional[Path] = None):
        """Save configuration to file."""
        if path is None:
            path = Path.home() / ".miniroute" / "config.json"

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(asdict(self), f, indent=2)

        logger.info(f"Saved config to {path}")


# Global singleton
_config: Optional[Config] = None


def get_config() -> Config:
    """Get global configuration instance."""
    global _config
    if _config is None:
        _config = Config.load()
    return _config


def reload_config():
    """Reload configuration from sources."""
    global _config
    _config = Config.load()
    logger.info("Configuration reloaded")
