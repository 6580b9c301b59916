"""
SOLE RESPONSIBILITY: Best-effort reads of host platform and release-channel signals.
Every read yields a SignalResult; a failing or missing signal is "absent", never an exception.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from .errors import ErrorCode

logger = logging.getLogger(__name__)

# Identifiers the host reports when running inside the local developer tooling
DEVTOOLS_PLATFORM = "devtools"
DEVTOOLS_ENVIRONMENT = "wxdevtools"

# Release channels reported by the host
CHANNEL_RELEASE = "release"
CHANNEL_TRIAL = "trial"
CHANNEL_DEVELOP = "develop"


@dataclass(frozen=True)
class SignalResult:
    """Outcome of one signal lookup: a normalized value, or absent."""

    value: Optional[str] = None

    @property
    def present(self) -> bool:
        return bool(self.value)

    @classmethod
    def absent(cls) -> "SignalResult":
        return cls(None)

    @classmethod
    def of(cls, raw: Any) -> "SignalResult":
        """Lower-cased, stripped string value; anything empty or non-string is absent."""
        if raw is None:
            return cls.absent()
        text = str(raw).strip().lower()
        return cls(text) if text else cls.absent()

    def equals(self, other: str) -> bool:
        return self.present and self.value == other

    def __str__(self) -> str:
        return self.value or ""


SignalSource = Callable[[], Optional[Mapping[str, Any]]]


def _pick(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


class HostSignals:
    """
    Reads platform / environment / channel identifiers from the host.

    platform_signal() returns {"platform_id": ..., "environment_id": ...}
    channel_signal() returns {"channel_id": ...}
    (camelCase keys are accepted too). Either callable may be None, return None, or raise.
    """

    def __init__(
        self,
        platform_signal: Optional[SignalSource] = None,
        channel_signal: Optional[SignalSource] = None,
    ):
        self._platform_signal = platform_signal
        self._channel_signal = channel_signal

    @classmethod
    def from_config(cls, signal_config) -> "HostSignals":
        """Signals taken from a static SignalConfig (configuration files / env vars)."""
        return cls(
            platform_signal=lambda: {
                "platform_id": signal_config.platform,
                "environment_id": signal_config.environment,
            },
            channel_signal=lambda: {"channel_id": signal_config.channel},
        )

    def _read(self, source: Optional[SignalSource], name: str, *keys: str) -> SignalResult:
        if source is None:
            return SignalResult.absent()
        try:
            data = source()
        except Exception as e:
            logger.warning(f"{ErrorCode.SIGNAL_READ_FAILED.tag()} {name} signal unavailable: {e}")
            return SignalResult.absent()
        if not isinstance(data, Mapping):
            return SignalResult.absent()
        return SignalResult.of(_pick(data, *keys))

    def platform(self) -> SignalResult:
        return self._read(self._platform_signal, "platform", "platform_id", "platformId", "platform")

    def environment(self) -> SignalResult:
        return self._read(self._platform_signal, "environment", "environment_id", "environmentId", "environment")

    def channel(self) -> SignalResult:
        return self._read(self._channel_signal, "channel", "channel_id", "channelId", "envVersion")
