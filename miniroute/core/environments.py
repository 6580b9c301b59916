"""
SOLE RESPONSIBILITY: Environment names, their aliases and the static profile registry.
"""

from typing import Dict, Mapping, Optional, Any

from .models import EnvironmentName, EnvironmentProfile


# Alias table: every accepted spelling maps to one of the three canonical names
ENV_ALIASES: Dict[str, EnvironmentName] = {
    "development": EnvironmentName.DEVELOPMENT,
    "develop": EnvironmentName.DEVELOPMENT,
    "dev": EnvironmentName.DEVELOPMENT,
    "testing": EnvironmentName.TESTING,
    "test": EnvironmentName.TESTING,
    "trial": EnvironmentName.TESTING,
    "debug": EnvironmentName.TESTING,
    "production": EnvironmentName.PRODUCTION,
    "prod": EnvironmentName.PRODUCTION,
    "release": EnvironmentName.PRODUCTION,
}

# Only non-development environments can have their base URL overridden
OVERRIDABLE_ENVIRONMENTS = (EnvironmentName.TESTING, EnvironmentName.PRODUCTION)

# Tokens left in a profile URL until the operator configures the real host
PLACEHOLDER_TOKENS = ("YOUR_LOCAL_IP", "your-domain.com")


def normalize_env_name(name: Any) -> Optional[EnvironmentName]:
    """Map any alias (case-insensitive) to its canonical name, or None if unknown."""
    if isinstance(name, EnvironmentName):
        return name
    if not isinstance(name, str):
        return None
    return ENV_ALIASES.get(name.strip().lower())


def has_placeholder(base_url: Optional[str]) -> bool:
    """True when a base URL is empty or still carries a placeholder token."""
    if not base_url:
        return True
    return any(token in base_url for token in PLACEHOLDER_TOKENS)


DEFAULT_PROFILES: Dict[EnvironmentName, EnvironmentProfile] = {
    EnvironmentName.DEVELOPMENT: EnvironmentProfile(
        name=EnvironmentName.DEVELOPMENT,
        base_url="http://localhost:8080/app/",
        api_root="app/",
        description="Development - local devtools / simulator",
    ),
    # On-device preview needs a host the phone can reach, e.g. http://192.168.1.10:8080/app/
    EnvironmentName.TESTING: EnvironmentProfile(
        name=EnvironmentName.TESTING,
        base_url="http://YOUR_LOCAL_IP:8080/app/",
        api_root="app/",
        description="Testing - on-device preview / trial, configure a reachable server",
    ),
    EnvironmentName.PRODUCTION: EnvironmentProfile(
        name=EnvironmentName.PRODUCTION,
        base_url="https://your-domain.com/app/",
        api_root="app/",
        description="Production - release server (HTTPS required)",
    ),
}


class ProfileRegistry:
    """
    Fixed table of one EnvironmentProfile per EnvironmentName.
    Lookups are total: anything unknown falls back to development.
    """

    def __init__(self, profiles: Optional[Mapping[EnvironmentName, EnvironmentProfile]] = None):
        table = dict(DEFAULT_PROFILES)
        if profiles:
            table.update(profiles)
        self._profiles: Dict[EnvironmentName, EnvironmentProfile] = table

    @classmethod
    def from_dict(cls, raw: Optional[Mapping[str, Mapping[str, str]]]) -> "ProfileRegistry":
        """
        Build a registry from configuration, e.g.
        {"testing": {"base_url": "http://192.168.1.10:8080/app/"}}.
        Missing fields keep the default profile's values; unknown names are ignored.
        """
        profiles: Dict[EnvironmentName, EnvironmentProfile] = {}
        for key, fields in (raw or {}).items():
            env = normalize_env_name(key)
            if env is None or not isinstance(fields, Mapping):
                continue
            default = DEFAULT_PROFILES[env]
            profiles[env] = EnvironmentProfile(
                name=env,
                base_url=fields.get("base_url", default.base_url),
                api_root=fields.get("api_root", default.api_root),
                description=fields.get("description", default.description),
            )
        return cls(profiles)

    def get(self, name: Any) -> EnvironmentProfile:
        """Profile for a name or alias; the legacy 'debug' alias shares the testing profile."""
        env = normalize_env_name(name)
        if env is None:
            return self._profiles[EnvironmentName.DEVELOPMENT]
        return self._profiles[env]

    def __getitem__(self, name: Any) -> EnvironmentProfile:
        return self.get(name)

    def __iter__(self):
        return iter(self._profiles.values())
