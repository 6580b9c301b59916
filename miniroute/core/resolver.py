"""
SOLE RESPONSIBILITY: Decide which environment the client runs in and resolve it to a base URL,
merging the static profile table with persisted manual overrides.
"""

import logging
from typing import Any, Optional

from .environments import (
    OVERRIDABLE_ENVIRONMENTS,
    ProfileRegistry,
    has_placeholder,
    normalize_env_name,
)
from .errors import ErrorCode, InvalidBaseURLError, InvalidEnvironmentError
from .models import EnvironmentName, ResolvedConfig, RuntimeSnapshot
from .signals import (
    CHANNEL_DEVELOP,
    CHANNEL_RELEASE,
    CHANNEL_TRIAL,
    DEVTOOLS_ENVIRONMENT,
    DEVTOOLS_PLATFORM,
    HostSignals,
    SignalResult,
)
from .store import STORAGE_KEYS, MemoryStore, OverrideStore
from .urls import sanitize_base_url

logger = logging.getLogger(__name__)


def resolve_environment(
    explicit_production: Optional[bool],
    manual_env: Any = None,
    channel: SignalResult = SignalResult(),
    platform: SignalResult = SignalResult(),
    environment: SignalResult = SignalResult(),
) -> EnvironmentName:
    """
    Pure precedence chain, first match wins:

    1. explicit production flag is True          -> production
    2. persisted manual environment              -> that environment
    3. channel release / trial                   -> production / testing
    4. channel develop                           -> testing on a device, development in devtools
    5. platform present and not devtools         -> testing
    6. environment present and not wxdevtools    -> testing
    7. otherwise                                 -> development

    Absent signals fall through; this function never raises.
    """
    if explicit_production is True:
        return EnvironmentName.PRODUCTION

    manual = normalize_env_name(manual_env)
    if manual is not None:
        return manual

    if channel.equals(CHANNEL_RELEASE):
        return EnvironmentName.PRODUCTION
    if channel.equals(CHANNEL_TRIAL):
        return EnvironmentName.TESTING
    if channel.equals(CHANNEL_DEVELOP):
        if platform.present and platform.value != DEVTOOLS_PLATFORM:
            return EnvironmentName.TESTING
        return EnvironmentName.DEVELOPMENT

    if platform.present and platform.value != DEVTOOLS_PLATFORM:
        return EnvironmentName.TESTING
    if environment.present and environment.value != DEVTOOLS_ENVIRONMENT:
        return EnvironmentName.TESTING

    return EnvironmentName.DEVELOPMENT


def _override_key(env: Optional[EnvironmentName]) -> Optional[str]:
    if env == EnvironmentName.TESTING:
        return STORAGE_KEYS["TESTING_BASE_URL"]
    if env == EnvironmentName.PRODUCTION:
        return STORAGE_KEYS["PRODUCTION_BASE_URL"]
    return None


class EnvironmentManager:
    """
    Resolves environment configuration and manages persisted overrides.

    One instance is created at process start and shared by everything that needs the
    base URL. Resolution is recomputed on every call; only the summary log is emitted
    once, and re-armed whenever an override changes.
    """

    def __init__(
        self,
        store: Optional[OverrideStore] = None,
        signals: Optional[HostSignals] = None,
        registry: Optional[ProfileRegistry] = None,
    ):
        self.store = store if store is not None else OverrideStore(MemoryStore())
        self.signals = signals if signals is not None else HostSignals()
        self.registry = registry if registry is not None else ProfileRegistry()
        self._summary_logged = False

    # -------------------- Reads --------------------

    def get_manual_environment(self) -> Optional[EnvironmentName]:
        return normalize_env_name(self.store.read(STORAGE_KEYS["FORCE_ENV"]))

    def get_override(self, env_name: Any) -> str:
        """Sanitized persisted base URL for testing / production, "" when none."""
        key = _override_key(normalize_env_name(env_name))
        if key is None:
            return ""
        return sanitize_base_url(self.store.read(key))

    def resolve_environment(self, is_production: Optional[bool] = None) -> EnvironmentName:
        return resolve_environment(
            is_production,
            self.get_manual_environment(),
            self.signals.channel(),
            self.signals.platform(),
            self.signals.environment(),
        )

    def get_resolved_config(self, is_production: Optional[bool] = None) -> ResolvedConfig:
        manual_env = self.get_manual_environment()
        channel = self.signals.channel()
        platform = self.signals.platform()
        environment = self.signals.environment()

        env = resolve_environment(is_production, manual_env, channel, platform, environment)
        profile = self.registry.get(env)
        override = self.get_override(env)

        config = ResolvedConfig(
            env=env,
            base_url=override or profile.base_url,
            api_root=profile.api_root,
            description=profile.description,
            forced=manual_env is not None,
            override_applied=bool(override),
        )

        if not self._summary_logged:
            self._log_summary(config, channel, platform)
            self._summary_logged = True

        if env in OVERRIDABLE_ENVIRONMENTS and has_placeholder(config.base_url):
            self._warn_placeholder(config)

        return config

    def get_env_config(self, is_production: Optional[bool] = None) -> ResolvedConfig:
        return self.get_resolved_config(is_production)

    def get_base_url(self, is_production: Optional[bool] = None) -> str:
        return self.get_resolved_config(is_production).base_url

    def get_api_root(self, is_production: Optional[bool] = None) -> str:
        return self.get_resolved_config(is_production).api_root

    def get_runtime_snapshot(self, is_production: Optional[bool] = None) -> RuntimeSnapshot:
        """Inspection only: reads signals and storage, never writes."""
        return RuntimeSnapshot(
            env=self.resolve_environment(is_production),
            manual_env=self.get_manual_environment(),
            channel=str(self.signals.channel()),
            platform=str(self.signals.platform()),
            environment=str(self.signals.environment()),
            testing_base_url=str(self.store.read(STORAGE_KEYS["TESTING_BASE_URL"]) or ""),
            production_base_url=str(self.store.read(STORAGE_KEYS["PRODUCTION_BASE_URL"]) or ""),
        )

    # -------------------- Mutations --------------------

    def set_manual_environment(self, name: Any) -> EnvironmentName:
        """Force resolution to an environment until cleared. Raises on unknown names."""
        normalized = normalize_env_name(name)
        if normalized is None:
            raise InvalidEnvironmentError(f"Invalid environment name: {name!r}", name=name)

        self.store.write(STORAGE_KEYS["FORCE_ENV"], normalized.value)
        self._summary_logged = False
        logger.info(f"Manual environment set to {normalized.value}")
        return normalized

    def clear_manual_environment(self) -> None:
        self.store.remove(STORAGE_KEYS["FORCE_ENV"])
        self._summary_logged = False
        logger.info("Manual environment cleared")

    def set_environment_base_url(self, env_name: Any, base_url: Any) -> str:
        """
        Persist a base URL override for testing or production.
        Returns the sanitized URL that was stored.
        """
        normalized = normalize_env_name(env_name)
        if normalized not in OVERRIDABLE_ENVIRONMENTS:
            raise InvalidEnvironmentError(
                f"Only testing / production accept a base URL override, got {env_name!r}",
                code=ErrorCode.ENV_NOT_OVERRIDABLE if normalized is not None else ErrorCode.ENV_NAME_INVALID,
                name=env_name,
            )

        sanitized = sanitize_base_url(base_url)
        if not sanitized:
            raise InvalidBaseURLError(f"Invalid base URL: {base_url!r}", url=base_url)

        self.store.write(_override_key(normalized), sanitized)
        self._summary_logged = False
        logger.info(f"{normalized.value} base URL set to {sanitized}")
        return sanitized

    def clear_environment_base_url(self, env_name: Any) -> None:
        """Drop an override; resolution falls back to the static profile. Unknown names are ignored."""
        key = _override_key(normalize_env_name(env_name))
        if key is None:
            return
        self.store.remove(key)
        self._summary_logged = False
        logger.info(f"{normalize_env_name(env_name).value} base URL override cleared")

    def clear_all(self) -> None:
        """Remove the manual environment and both base URL overrides."""
        for key in STORAGE_KEYS.values():
            self.store.remove(key)
        self._summary_logged = False
        logger.info("All environment overrides cleared")

    # -------------------- Diagnostics --------------------

    def _log_summary(self, config: ResolvedConfig, channel: SignalResult, platform: SignalResult) -> None:
        logger.info(
            f"Environment resolved: env={config.env.value} forced={config.forced} "
            f"channel={channel.value or '-'} platform={platform.value or 'unknown'} "
            f"description={config.description!r} base_url={config.base_url} "
            f"override_applied={config.override_applied}"
        )

    def _warn_placeholder(self, config: ResolvedConfig) -> None:
        if config.env == EnvironmentName.TESTING:
            fix = "run 'miniroute set-base-url testing 192.168.x.x:8080/app/' or configure profiles.testing.base_url"
        else:
            fix = "configure profiles.production.base_url with the release server domain"
        logger.warning(
            f"{ErrorCode.PLACEHOLDER_BASE_URL.tag()} Environment {config.env.value} is not configured, "
            f"requests will go to {config.base_url}: {fix}"
        )
