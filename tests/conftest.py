"""
Global pytest configuration and fixtures for miniroute testing.
"""

import logging
import pytest
from pathlib import Path
from unittest.mock import patch

# Add the project root to sys.path for imports
import sys
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from miniroute.core.environments import ProfileRegistry
from miniroute.core.resolver import EnvironmentManager
from miniroute.core.store import MemoryStore, OverrideStore
from miniroute.client.interceptor import RequestInterceptor

from tests.fixtures import FakeHost, StaticSignals, LAN_BASE_URL


ENV_VARS = (
    "MINIROUTE_PLATFORM",
    "MINIROUTE_PLATFORM_ENV",
    "MINIROUTE_CHANNEL",
    "MINIROUTE_PRODUCTION",
    "MINIROUTE_STORAGE_PATH",
    "MINIROUTE_LOG_LEVEL",
    "MINIROUTE_DEBUG",
    "MINIROUTE_POLL_ATTEMPTS",
    "MINIROUTE_POLL_INTERVAL",
)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep every test away from the real home directory, working directory and env vars."""
    home = tmp_path / "home"
    work = tmp_path / "work"
    home.mkdir()
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    monkeypatch.chdir(work)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    with patch("pathlib.Path.home", return_value=home):
        yield home


@pytest.fixture(autouse=True)
def quiet_miniroute_logger():
    """Let records propagate to caplog without handlers left over from CLI tests."""
    logger = logging.getLogger("miniroute")
    saved_handlers, saved_level = logger.handlers[:], logger.level
    logger.handlers = []
    logger.propagate = True
    yield logger
    logger.handlers = saved_handlers
    logger.setLevel(saved_level)


@pytest.fixture(scope="function")
def memory_store():
    """Backend dict the override store writes through to."""
    return MemoryStore()


@pytest.fixture(scope="function")
def override_store(memory_store):
    return OverrideStore(memory_store)


@pytest.fixture(scope="function")
def devtools_signals():
    """Signals reported by the local developer tooling."""
    return StaticSignals(platform="devtools", environment="wxdevtools", channel="develop")


@pytest.fixture(scope="function")
def device_signals():
    """Signals reported by a phone running a develop build."""
    return StaticSignals(platform="ios", environment="wechat", channel="develop")


@pytest.fixture(scope="function")
def environment(override_store, devtools_signals):
    """Fresh EnvironmentManager resolving to development."""
    return EnvironmentManager(store=override_store, signals=devtools_signals, registry=ProfileRegistry())


@pytest.fixture(scope="function")
def testing_environment(override_store, device_signals):
    """EnvironmentManager resolving to testing with a LAN override stored."""
    manager = EnvironmentManager(store=override_store, signals=device_signals, registry=ProfileRegistry())
    manager.set_environment_base_url("testing", LAN_BASE_URL)
    return manager


@pytest.fixture(scope="function")
def fake_host():
    return FakeHost()


@pytest.fixture(scope="function")
def interceptor(testing_environment):
    """Interceptor over the testing environment, not yet installed."""
    return RequestInterceptor(testing_environment)
