"""
Builds the process-wide EnvironmentManager and RequestInterceptor from configuration.
"""

import logging
from typing import Optional

from ..core.config import Config, get_config
from ..core.environments import ProfileRegistry
from ..core.resolver import EnvironmentManager
from ..core.signals import HostSignals
from ..core.store import JsonFileStore, OverrideStore
from .interceptor import RequestInterceptor

logger = logging.getLogger(__name__)


def create_environment(config: Optional[Config] = None, signals: Optional[HostSignals] = None) -> EnvironmentManager:
    """
    EnvironmentManager backed by the configured storage file.
    Host signals come from the config unless the caller passes live ones.
    """
    config = config or get_config()

    backend = JsonFileStore(config.storage_path()) if config.storage.persistent else None
    if backend is None:
        logger.debug("Persistent storage disabled, overrides are kept in memory")

    return EnvironmentManager(
        store=OverrideStore(backend),
        signals=signals if signals is not None else HostSignals.from_config(config.signals),
        registry=ProfileRegistry.from_dict(config.profiles),
    )


def create_interceptor(
    config: Optional[Config] = None,
    environment: Optional[EnvironmentManager] = None,
    signals: Optional[HostSignals] = None,
) -> RequestInterceptor:
    """RequestInterceptor over the configured environment, not yet installed."""
    config = config or get_config()
    if environment is None:
        environment = create_environment(config, signals)

    return RequestInterceptor(
        environment,
        is_production=config.interceptor.is_production,
        poll_attempts=config.interceptor.poll_attempts,
        poll_interval=config.interceptor.poll_interval_seconds,
    )
